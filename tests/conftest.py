"""Shared fixtures: small engines and hand-built buffers."""

import numpy as np
import pytest

from fieldsim.engine import create_engine

THERMAL_CHANNELS = ('temperature', 'rate', 'velocity_y')
WAVE_CHANNELS = ('height', 'velocity')


def cell_centers(n: int, scale: float = 1.0) -> np.ndarray:
    """Domain coordinate of each cell centre along one axis."""
    return -scale + (np.arange(n) + 0.5) * (2.0 * scale / n)


@pytest.fixture
def make_engine():
    def _make(model='thermal', resolution=32, **kwargs):
        return create_engine(resolution=resolution, model=model, **kwargs)
    return _make


@pytest.fixture
def thermal_engine(make_engine):
    return make_engine('thermal', resolution=32, scale=1.0)


@pytest.fixture
def wave_engine(make_engine):
    return make_engine('wave', resolution=32, scale=1.0)
