# fieldsim/experiments.py
"""
Preset experiments. Each start_* function writes its initial disturbance into
an existing engine; `run_experiment` looks the preset up in
AVAILABLE_EXPERIMENTS and checks that the engine runs the matching model.
"""

from typing import Optional

import numpy as np

from fieldconfig.available_experiments import AVAILABLE_EXPERIMENTS
from fieldsim.errors import ConfigurationError
from fieldsim.utils import dynamic_import


def start_diffusion_experiment(engine):
    """Point source in the centre."""
    engine.add_heat_source(0.0, 0.0, 0.1, 100.0, 0.5)

def start_convection_experiment(engine):
    """Wide source near the bottom edge."""
    engine.add_heat_source(0.0, -0.8, 0.3, 80.0, 0.2)

def start_conduction_experiment(engine):
    """Hot left wall against a right wall at ambient."""
    engine.set_wall_temperature('left', 80.0)
    engine.set_wall_temperature('right', 20.0)

def start_random_drops(engine, count: int = 20, rng: Optional[np.random.Generator] = None):
    """Scatters `count` small drops of alternating sign over the visible window."""
    rng = rng if rng is not None else np.random.default_rng()
    for i in range(count):
        x, y = rng.uniform(-1.0, 1.0, size=2)
        engine.add_drop(float(x), float(y), 0.03, 0.01 if (i & 1) else -0.01)


def get_experiment(experiment_id: str) -> dict:
    experiment_def = next((e for e in AVAILABLE_EXPERIMENTS if e['id'] == experiment_id), None)
    if experiment_def is None:
        raise ConfigurationError(f"Unknown experiment '{experiment_id}'. Valid: {[e['id'] for e in AVAILABLE_EXPERIMENTS]}")
    return experiment_def

def run_experiment(engine, experiment_id: str, **kwargs):
    """Applies a preset to `engine`. Raises ConfigurationError on a model mismatch."""
    experiment_def = get_experiment(experiment_id)
    if experiment_def['model'] != engine.model_id:
        raise ConfigurationError(
            f"Experiment '{experiment_id}' needs model '{experiment_def['model']}', engine runs '{engine.model_id}'.")
    print(f"Starting experiment: {experiment_def['name']}")
    start_func = dynamic_import(__name__, experiment_def['function'])
    start_func(engine, **kwargs)
