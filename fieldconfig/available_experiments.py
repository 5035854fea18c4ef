# fieldsim/fieldconfig/available_experiments.py
"""
Defines a list of all preset experiments available for selection.
"""

AVAILABLE_EXPERIMENTS = [
    {
        "id": "diffusion",
        "name": "Point Diffusion",
        "description": "Single hot point source in the centre of the domain.",
        "model": "thermal_numba",
        "function": "start_diffusion_experiment",
    },
    {
        "id": "convection",
        "name": "Bottom Heating (Convection)",
        "description": "Wide heat source near the bottom edge; warm gas rises.",
        "model": "thermal_numba",
        "function": "start_convection_experiment",
    },
    {
        "id": "conduction",
        "name": "Wall Conduction",
        "description": "Hot left wall (80) against a right wall at ambient (20).",
        "model": "thermal_numba",
        "function": "start_conduction_experiment",
    },
    {
        "id": "random_drops",
        "name": "Random Drops",
        "description": "Twenty small drops of alternating sign scattered over the visible window.",
        "model": "wave_numba",
        "function": "start_random_drops",
    },
]

# --- experiment validation ---
def _validate_experiments():
    for experiment_def in AVAILABLE_EXPERIMENTS:
        required_keys = ["id", "name", "model", "function"]
        if not all(key in experiment_def for key in required_keys):
            raise ValueError(f"Experiment definition is missing required keys: {experiment_def}")
_validate_experiments()
