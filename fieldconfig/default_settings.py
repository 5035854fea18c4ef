# fieldsim/fieldconfig/default_settings.py
from fieldconfig.param_defs import PARAM_DEFS

# NOTE: the kernels read 'ambient_temp', 'buoyancy_span', etc. from this dict at
# setup; only the PARAM_DEFS entries are tunable while the engine runs.

DEFAULT_SETTINGS = {
    # --- Grid ---
    'resolution': 256,            # Cells per side (power of two)
    'dissipate_walls': False,     # True -> larger simulated margin around the visible window
    'use_double_precision': False,# float32 buffers unless requested
    'default_model': 'thermal_numba',
    'default_experiment': 'diffusion',

    # --- Thermal Model ---
    'ambient_temp': 20.0,         # Rest temperature (degC)
    'buoyancy_span': 80.0,        # Temperature span that normalises buoyancy
    'min_temp': 0.0,              # Clamp floor (degC)
    'max_temp': 120.0,            # Clamp ceiling (degC)
    'convection_damping': 0.98,   # Per-step decay of the convection velocity
    'advection_factor': 0.1,      # Blend weight per unit of |velocity_y|

    # --- Wave Model ---
    'rest_height': 0.0,

    # --- Measurement ---
    'max_history_length': 1000,   # Ring capacity; the oldest record is evicted beyond it

    # --- Graphing Settings ---
    'GRAPH_SETTINGS': {
        'enable_plotting': True,
        'measure_interval_steps': 10,
        'output_dir': 'output',
        'plot_temperature_stats': True,
        'plot_dimensionless': True,
        'plot_final_field': True,
        'plot_final_derivatives': True,
        'plot_hist_field': True,
        'histogram_bins': 50,
    },
    # 'scale' calculated below
}

# live parameters take their defaults from PARAM_DEFS
for _name, _pdef in PARAM_DEFS.items():
    DEFAULT_SETTINGS[_name] = _pdef['val']


# --- Calculate Derived Defaults ---

def scale_for_walls(dissipate_walls: bool) -> float:
    """Domain half-extent: 1.0 shows the whole grid, 3.0 keeps a margin that lets waves fade out."""
    return 3.0 if dissipate_walls else 1.0

DEFAULT_SETTINGS['scale'] = scale_for_walls(DEFAULT_SETTINGS['dissipate_walls'])


# --- Validation ---
if DEFAULT_SETTINGS['min_temp'] >= DEFAULT_SETTINGS['max_temp']:
    raise ValueError("DEFAULT_SETTINGS: 'min_temp' must be below 'max_temp'.")
if not DEFAULT_SETTINGS['min_temp'] <= DEFAULT_SETTINGS['ambient_temp'] <= DEFAULT_SETTINGS['max_temp']:
    raise ValueError("DEFAULT_SETTINGS: 'ambient_temp' must lie inside [min_temp, max_temp].")
if DEFAULT_SETTINGS['buoyancy_span'] <= 0:
    raise ValueError("DEFAULT_SETTINGS: 'buoyancy_span' must be positive.")
if int(DEFAULT_SETTINGS['max_history_length']) < 1:
    raise ValueError("DEFAULT_SETTINGS: 'max_history_length' must be >= 1.")

# Check that the selected default model exists
from fieldconfig.available_models import AVAILABLE_MODELS
if not any(model_def['id'] == DEFAULT_SETTINGS['default_model'] for model_def in AVAILABLE_MODELS):
    raise ValueError(f"Default model ID '{DEFAULT_SETTINGS['default_model']}' is not defined in available_models.py")
