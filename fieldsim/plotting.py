# fieldsim/plotting.py
"""
Generates diagnostic plots from engine measurements and saves them to a PDF file.

Provides helper functions for the plot types the report uses (time series,
field heatmaps, histograms) and `generate_plots_pdf`, which lays out the
multi-page report from collected graph data and the GRAPH_SETTINGS flags.
"""

import matplotlib
matplotlib.use('Agg') # non-interactive backend, set before importing pyplot
import matplotlib.pyplot as plt
from matplotlib.backends.backend_pdf import PdfPages
import numpy as np
import os
import datetime
import traceback
from typing import Dict, Any, List, Optional

# --- plotting constants for consistent styling ---
TITLE_FONTSIZE = 10
LABEL_FONTSIZE = 8
TICK_FONTSIZE = 7
LEGEND_FONTSIZE = 7
LINE_WIDTH = 1.5
GRID_ALPHA = 0.6


def _get_plot_setting(graph_settings: Dict, key: str, default: bool = False) -> bool:
    return graph_settings.get(key, default)

def _history_columns(history: List[Dict[str, Any]], keys: List[str]) -> Optional[Dict[str, np.ndarray]]:
    """Turns a list of measurement records into float arrays; None entries become NaN."""
    if not history: return None
    columns = {}
    for k in keys:
        columns[k] = np.array([np.nan if r.get(k) is None else r[k] for r in history], dtype=np.float64)
    return columns


def _plot_time_series(ax: plt.Axes, step_data: np.ndarray, series_data: Dict[str, np.ndarray], title: str, ylabel: str, yscale: str = 'linear'):
    """
    helper to plot one or more series against the step counter.

    args:
        ax: matplotlib axes to plot on.
        step_data: engine step of each record.
        series_data: dictionary mapping series labels to data arrays.
        title: plot title.
        ylabel: y-axis label.
        yscale: y-axis scale ('linear' or 'log').
    """
    ax.set_title(title, fontsize=TITLE_FONTSIZE)
    ax.set_xlabel("Step", fontsize=LABEL_FONTSIZE)
    ax.set_ylabel(ylabel, fontsize=LABEL_FONTSIZE)
    has_valid_series = False
    for label, data_arr in series_data.items():
        valid = np.isfinite(data_arr)
        if yscale == 'log': valid &= data_arr > 0
        if np.any(valid):
            ax.plot(step_data[valid], data_arr[valid], label=label, lw=LINE_WIDTH)
            has_valid_series = True
    if not has_valid_series:
        ax.text(0.5, 0.5, "No Valid Data", ha='center', va='center', transform=ax.transAxes)
        ax.grid(False)
        return
    if len(series_data) > 1: ax.legend(fontsize=LEGEND_FONTSIZE)
    ax.grid(True, linestyle=':', alpha=GRID_ALPHA)
    ax.tick_params(axis='both', which='major', labelsize=TICK_FONTSIZE)
    ax.set_yscale(yscale)


def _plot_field(ax: plt.Axes, field: Optional[np.ndarray], scale: float, title: str, cmap: str = 'inferno', label: str = ""):
    """heatmap of an (N, N) plane; row 0 is the bottom of the domain."""
    ax.set_title(title, fontsize=TITLE_FONTSIZE)
    if field is None or field.size == 0:
        ax.text(0.5, 0.5, "No Data", ha='center', va='center', transform=ax.transAxes); return
    finite = field[np.isfinite(field)]
    if finite.size == 0:
        ax.text(0.5, 0.5, "No Finite Data", ha='center', va='center', transform=ax.transAxes); return
    image = ax.imshow(field, origin='lower', extent=(-scale, scale, -scale, scale), cmap=cmap,
                      vmin=float(np.min(finite)), vmax=float(np.max(finite)), interpolation='nearest')
    cbar = ax.figure.colorbar(image, ax=ax, fraction=0.046, pad=0.04)
    cbar.ax.tick_params(labelsize=TICK_FONTSIZE)
    if label: cbar.set_label(label, fontsize=LABEL_FONTSIZE)
    ax.set_xlabel("x", fontsize=LABEL_FONTSIZE); ax.set_ylabel("y", fontsize=LABEL_FONTSIZE)
    ax.tick_params(axis='both', which='major', labelsize=TICK_FONTSIZE)


def _plot_histogram(ax: plt.Axes, data: Optional[np.ndarray], bins: int, title: str, xlabel: str):
    """histogram of finite cell values."""
    ax.set_title(title, fontsize=TITLE_FONTSIZE)
    if data is None or data.size == 0:
        ax.text(0.5, 0.5, "No Data", ha='center', va='center', transform=ax.transAxes); ax.grid(False); return
    finite_data = data[np.isfinite(data)]
    if finite_data.size == 0:
        ax.text(0.5, 0.5, "No Finite Data", ha='center', va='center', transform=ax.transAxes); ax.grid(False); return
    ax.hist(finite_data.ravel(), bins=bins)
    ax.set_xlabel(xlabel, fontsize=LABEL_FONTSIZE)
    ax.set_ylabel("Number of Cells", fontsize=LABEL_FONTSIZE)
    ax.grid(True, linestyle=':', alpha=GRID_ALPHA)
    ax.tick_params(axis='both', which='major', labelsize=TICK_FONTSIZE)


def collect_graph_data(engine) -> Dict[str, Any]:
    """Snapshot of everything the report needs, copied out of the engine."""
    field = np.array(engine.get_current_buffer()[0], dtype=np.float64)
    derivatives = np.array(engine.compute_derivatives(), dtype=np.float64)
    return {
        'model': engine.model_id,
        'scale': engine.scale,
        'channel': engine.channels[0],
        'history': engine.get_history(),
        'final_field': field,
        'final_derivative_magnitude': np.hypot(derivatives[0], derivatives[1]),
    }


def generate_plots_pdf(graph_data: Dict[str, Any], graph_settings: Dict, output_dir: str) -> str:
    """
    Generates a multi-page PDF containing diagnostic plots. Returns the file
    name, or "" if nothing was written.
    """
    if not graph_data: print("Plotting Error: No graph data provided."); return ""
    os.makedirs(output_dir, exist_ok=True)
    timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    pdf_filename = os.path.join(output_dir, f"fieldsim_{graph_data.get('model', 'engine')}_{timestamp}.pdf")
    print(f"Generating plots PDF: {os.path.normpath(pdf_filename)}")

    channel = graph_data.get('channel', 'value')
    scale = float(graph_data.get('scale', 1.0))
    bins = int(graph_settings.get('histogram_bins', 50))
    columns = _history_columns(graph_data.get('history', []), ['step', 'mean', 'min', 'max', 'rayleigh', 'nusselt'])
    has_dimensionless = columns is not None and np.any(np.isfinite(columns['rayleigh']))

    try:
        with PdfPages(pdf_filename) as pdf:
            pages_written = 0

            # page 1: field statistics over time
            if _get_plot_setting(graph_settings, 'plot_temperature_stats') and columns is not None:
                fig, axes = plt.subplots(1, 2 if has_dimensionless and _get_plot_setting(graph_settings, 'plot_dimensionless') else 1,
                                         figsize=(10, 4), squeeze=False)
                fig.suptitle(f"Field Statistics ({channel})", fontsize=14)
                _plot_time_series(axes[0, 0], columns['step'],
                                  {'Mean': columns['mean'], 'Min': columns['min'], 'Max': columns['max']},
                                  f"{channel.capitalize()} Mean / Extremes", channel.capitalize())
                if axes.shape[1] > 1:
                    _plot_time_series(axes[0, 1], columns['step'],
                                      {'Ra': columns['rayleigh'], 'Nu': columns['nusselt']},
                                      "Dimensionless Numbers", "Value", yscale='log')
                plt.tight_layout(rect=[0, 0.03, 1, 0.95])
                pdf.savefig(fig); plt.close(fig); pages_written += 1

            # page 2: final state
            final_plots = [
                ('plot_final_field', lambda ax: _plot_field(ax, graph_data.get('final_field'), scale, f"Final {channel.capitalize()}", label=channel)),
                ('plot_final_derivatives', lambda ax: _plot_field(ax, graph_data.get('final_derivative_magnitude'), scale, "Derivative Magnitude", cmap='viridis')),
                ('plot_hist_field', lambda ax: _plot_histogram(ax, graph_data.get('final_field'), bins, f"{channel.capitalize()} Distribution", channel.capitalize())),
            ]
            enabled = [plot for setting, plot in final_plots if _get_plot_setting(graph_settings, setting)]
            if enabled:
                fig, axes = plt.subplots(1, len(enabled), figsize=(4 * len(enabled) + 1, 4), squeeze=False)
                fig.suptitle("Final State", fontsize=14)
                for ax, plot in zip(axes[0], enabled):
                    try:
                        plot(ax)
                    except Exception as e_plot:
                        print(f"ERROR plotting final state: {e_plot}"); traceback.print_exc()
                        ax.cla(); ax.text(0.5, 0.5, "Plotting Error", ha='center', va='center', transform=ax.transAxes)
                plt.tight_layout(rect=[0, 0.03, 1, 0.95])
                pdf.savefig(fig); plt.close(fig); pages_written += 1

            if pages_written == 0:
                fig = plt.figure(figsize=(6, 2))
                fig.text(0.5, 0.5, "No plots enabled or no data collected.", ha='center', va='center')
                pdf.savefig(fig); plt.close(fig)

        print(f"Successfully generated PDF: {pdf_filename}")
        return pdf_filename

    except Exception as e:
        print(f"ERROR during PDF generation process: {e}"); traceback.print_exc()
        if os.path.exists(pdf_filename):
            try: os.remove(pdf_filename)
            except OSError: pass
        return ""
