# fieldsim/main.py
# ==================================================
#      <<< HEADLESS RUNNER >>>
# ==================================================
"""
main.py is the command-line entry point for running a preset experiment.

1. Configuration: Reads DEFAULT_SETTINGS, applies command-line overrides
   (model, resolution, wall dissipation, runtime parameters) and builds an
   Engine through `create_engine`.
2. Threading Setup:
    - Main Thread: builds the engine, starts the worker, waits, writes the report.
    - Simulation Worker Thread (daemon): advances the engine and measures at
      the configured interval.
    - Synchronization Primitives: `threading.Lock` (engine_lock) serializes
      every engine call; `threading.Event` (stop_simulation_flag) lets Ctrl+C
      stop the worker between frames.
3. PDF Generation: After the run, collects the measurement history and final
   field and writes a diagnostic PDF into the output directory.
"""
import argparse
import os
import sys
import threading
import time
import traceback

# --- Project Setup ---
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# --- Engine Components ---
from fieldsim.engine import create_engine, ENGINE_VERSION
from fieldsim.experiments import run_experiment, get_experiment
from fieldsim.errors import ConfigurationError, NumericalInstabilityWarning
from fieldsim.plotting import collect_graph_data, generate_plots_pdf
from fieldsim.utils import format_value_scientific

# --- Configuration ---
from fieldconfig.default_settings import DEFAULT_SETTINGS, scale_for_walls
from fieldconfig.param_defs import PARAM_DEFS, PARAM_ALIASES
from fieldconfig.available_experiments import AVAILABLE_EXPERIMENTS

# --- Threading ---
engine_lock = threading.Lock()
stop_simulation_flag = threading.Event()


def _parse_param(text: str):
    """'name=value' -> (name, float)."""
    if '=' not in text:
        raise argparse.ArgumentTypeError(f"Expected name=value, got '{text}'")
    name, value = text.split('=', 1)
    name = name.strip()
    if name not in PARAM_DEFS and name not in PARAM_ALIASES:
        raise argparse.ArgumentTypeError(f"Unknown parameter '{name}'. Valid: {list(PARAM_DEFS) + list(PARAM_ALIASES)}")
    try:
        return name, float(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Parameter '{name}' needs a number, got '{value}'") from e


def build_arg_parser() -> argparse.ArgumentParser:
    gs = DEFAULT_SETTINGS['GRAPH_SETTINGS']
    parser = argparse.ArgumentParser(description=f"fieldsim v{ENGINE_VERSION}: run a preset field experiment headlessly.")
    parser.add_argument('-e', '--experiment', default=DEFAULT_SETTINGS['default_experiment'],
                        choices=[e['id'] for e in AVAILABLE_EXPERIMENTS], help="Preset experiment to run.")
    parser.add_argument('-f', '--frames', type=int, default=300, help="Number of Engine.step() calls.")
    parser.add_argument('-n', '--resolution', type=int, default=DEFAULT_SETTINGS['resolution'], help="Cells per side.")
    parser.add_argument('--dissipate-walls', action='store_true', help="Simulate a margin around the visible window (scale 3).")
    parser.add_argument('--double', action='store_true', help="Use float64 buffers.")
    parser.add_argument('-m', '--measure-interval', type=int, default=gs['measure_interval_steps'],
                        help="Measure every N frames.")
    parser.add_argument('-p', '--param', type=_parse_param, action='append', default=[],
                        help="Runtime parameter override, e.g. -p diffusivity=0.5 (repeatable).")
    parser.add_argument('-o', '--output-dir', default=os.path.join(PROJECT_ROOT, gs['output_dir']),
                        help="Directory for the PDF report.")
    parser.add_argument('--no-plots', action='store_true', help="Skip the PDF report.")
    return parser


def _print_diagnostics(warning: NumericalInstabilityWarning, details):
    print(f"Warn: {warning}")


def simulation_loop_worker(engine, frames: int, measure_interval: int):
    """Advances the engine `frames` times, measuring every `measure_interval` frames."""
    print(f"--- Simulation Worker Started ({frames} frames) ---")
    start_time = time.perf_counter()
    try:
        with engine_lock:
            engine.measure() # t=0 record
        for frame in range(1, frames + 1):
            if stop_simulation_flag.is_set():
                print(f"Simulation stopped at frame {frame - 1}.")
                break
            with engine_lock:
                engine.step()
                if frame % measure_interval == 0 or frame == frames:
                    record = engine.measure()
                    print(f"  Step {record['step']:>6}: mean={record['mean']:.3f} min={record['min']:.3f} max={record['max']:.3f}"
                          + (f" Ra={format_value_scientific(record['rayleigh'])} Nu={record['nusselt']:.3f}" if record['rayleigh'] is not None else ""))
    except Exception as e:
        print(f"ERROR in simulation worker: {e}"); traceback.print_exc()
    finally:
        duration = time.perf_counter() - start_time
        print(f"--- Simulation Worker Finished ({duration:.2f} s) ---")


def main(argv=None) -> int:
    args = build_arg_parser().parse_args(argv)
    if args.frames < 0: print("ERROR: --frames must be >= 0"); return 2
    if args.measure_interval < 1: print("ERROR: --measure-interval must be >= 1"); return 2

    experiment_def = get_experiment(args.experiment)
    settings = dict(DEFAULT_SETTINGS)
    settings['dissipate_walls'] = args.dissipate_walls
    settings['scale'] = scale_for_walls(args.dissipate_walls)
    settings['use_double_precision'] = args.double

    try:
        engine = create_engine(resolution=args.resolution, model=experiment_def['model'],
                               model_parameters=dict(args.param), diagnostics=_print_diagnostics,
                               settings=settings)
        run_experiment(engine, args.experiment)
    except ConfigurationError as e:
        print(f"ERROR: {e}")
        return 2

    stop_simulation_flag.clear()
    worker = threading.Thread(target=simulation_loop_worker, args=(engine, args.frames, args.measure_interval), daemon=True)
    worker.start()
    try:
        while worker.is_alive():
            worker.join(timeout=0.5)
    except KeyboardInterrupt:
        print("\nCtrl+C received, stopping simulation...")
        stop_simulation_flag.set()
        worker.join()

    with engine_lock:
        state = engine.get_state()
    print(f"Run complete: {state['steps_taken']} steps, t={state['time']:.3f}, {state['history_length']} records.")

    gs = settings['GRAPH_SETTINGS']
    if args.no_plots or not gs.get('enable_plotting', True):
        return 0
    with engine_lock:
        graph_data = collect_graph_data(engine)
    pdf_filename = generate_plots_pdf(graph_data, gs, args.output_dir)
    return 0 if pdf_filename else 1


if __name__ == "__main__":
    sys.exit(main())
