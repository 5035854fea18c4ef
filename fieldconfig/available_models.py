# fieldsim/fieldconfig/available_models.py
"""
Defines the update kernels (physical models) available for selection.
The structure allows dynamic loading by the Engine.
"""

# 'channels' is the per-cell state vector, the first channel is the one that is
# measured and differentiated. 'substeps' is how many kernel updates one
# Engine.step() performs.
AVAILABLE_MODELS = [
    {
        "id": "thermal_numba",
        "name": "Thermal Gas (Numba)",
        "description": "Heat diffusion with buoyant convection and approximate advection, Numba kernel (CPU).",
        "module": "fieldsim.kernels.thermal_numba",
        "class": "ThermalNumba",
        "channels": ("temperature", "rate", "velocity_y"),
        "substeps": 1,
        "injection_mode": "blend",
        "derivative_mode": "gradient",
        "notes": "Temperature is clamped to [min_temp, max_temp] after every step.",
    },
    {
        "id": "wave_numba",
        "name": "Water Height Field (Numba)",
        "description": "Damped 2D wave equation on a height field, Numba kernel (CPU).",
        "module": "fieldsim.kernels.wave_numba",
        "class": "WaveNumba",
        "channels": ("height", "velocity"),
        "substeps": 2,
        "injection_mode": "additive",
        "derivative_mode": "normal",
        "notes": "Unclamped; wave speeds above 2 run several passes per update to stay stable.",
    },
]

# short names accepted by create_engine(model=...)
MODEL_ALIASES = {
    "thermal": "thermal_numba",
    "wave": "wave_numba",
    "water": "wave_numba",
}

# --- validate the models ---
def _validate_models():
    seen_ids = set()
    for model_def in AVAILABLE_MODELS:
        required_keys = ["id", "name", "module", "class", "channels", "substeps", "injection_mode", "derivative_mode"]
        if not all(key in model_def for key in required_keys):
            raise ValueError(f"Model definition is missing required keys: {model_def}")
        if model_def["id"] in seen_ids:
            raise ValueError(f"Duplicate model id '{model_def['id']}' in AVAILABLE_MODELS.")
        if model_def["injection_mode"] not in ("blend", "additive"):
            raise ValueError(f"Unknown injection_mode for '{model_def['id']}': {model_def['injection_mode']}")
        if model_def["derivative_mode"] not in ("gradient", "normal"):
            raise ValueError(f"Unknown derivative_mode for '{model_def['id']}': {model_def['derivative_mode']}")
        if int(model_def["substeps"]) < 1:
            raise ValueError(f"'substeps' must be >= 1 for '{model_def['id']}'")
        seen_ids.add(model_def["id"])
    for alias, target in MODEL_ALIASES.items():
        if target not in seen_ids:
            raise ValueError(f"MODEL_ALIASES['{alias}'] points to unknown model '{target}'")
_validate_models()
