"""Thermal diffusion-convection update.

- A uniform ambient field is a fixed point.
- Temperature stays inside [min_temp, max_temp] whatever the input.
- NaN survives the clamp and is counted.
- Symmetric sources stay mirror symmetric under the edge-clamped stencil.
- End-to-end 64 x 64 heat source scenario.
"""

import warnings

import numpy as np
import pytest

from fieldconfig.default_settings import DEFAULT_SETTINGS
from fieldsim.engine import create_engine
from fieldsim.errors import ConfigurationError, NumericalInstabilityWarning
from fieldsim.kernels.thermal_numba import ThermalNumba

from conftest import THERMAL_CHANNELS, cell_centers


def _kernel(n=16, **overrides):
    config = dict(DEFAULT_SETTINGS)
    config.update(overrides)
    kernel = ThermalNumba(config)
    kernel.setup(n, THERMAL_CHANNELS)
    return kernel


def _ambient(n=16):
    src = np.zeros((3, n, n), dtype=np.float32)
    src[0] = 20.0
    return src


def test_ambient_field_is_fixed_point():
    kernel = _kernel()
    src = _ambient()
    dst = np.empty_like(src)
    report = kernel.update(src, dst)
    assert report == {'out_of_range': 0, 'non_finite': 0}
    assert np.all(dst[0] == 20.0)
    assert np.all(dst[1:] == 0.0)


def test_clamp_invariant_holds_for_wild_input():
    rng = np.random.default_rng(7)
    kernel = _kernel(diffusivity=2.0, gravity=1.0, dt=0.1)
    src = np.empty((3, 16, 16), dtype=np.float32)
    src[0] = rng.uniform(-200.0, 400.0, size=(16, 16))
    src[1] = rng.uniform(-1e4, 1e4, size=(16, 16))
    src[2] = rng.uniform(-50.0, 50.0, size=(16, 16))
    dst = np.empty_like(src)
    report = kernel.update(src, dst)
    assert report['out_of_range'] > 0
    assert report['non_finite'] == 0
    assert np.all(dst[0] >= 0.0)
    assert np.all(dst[0] <= 120.0)


def test_nan_propagates_through_clamp():
    kernel = _kernel()
    src = _ambient()
    src[0, 5, 5] = np.nan
    dst = np.empty_like(src)
    report = kernel.update(src, dst)
    assert np.isnan(dst[0, 5, 5])
    assert report['non_finite'] >= 1
    # far away cells do not see it
    assert dst[0, 12, 12] == 20.0


def test_parameters_are_clamped_at_construction():
    kernel = _kernel(diffusivity=50.0, retention=0.5, gravity=-1.0, dt=1.0)
    assert kernel.get_parameters() == {
        'diffusivity': 2.0, 'retention': 0.9, 'gravity': 0.0, 'dt': 0.1,
    }
    assert kernel.time_increment() == 0.1


def test_named_setters_clamp():
    kernel = _kernel()
    assert kernel.set_diffusivity(-1.0) == 0.01
    assert kernel.set_retention(1.5) == 0.999
    assert kernel.set_gravity(0.5) == 0.5
    assert kernel.set_dt(0.0) == 0.001


def test_setup_rejects_bad_constants():
    with pytest.raises(ConfigurationError):
        _kernel(min_temp=100.0, max_temp=50.0)
    with pytest.raises(ConfigurationError):
        _kernel(buoyancy_span=0.0)
    with pytest.raises(ConfigurationError):
        ThermalNumba(dict(DEFAULT_SETTINGS)).setup(16, ('height', 'velocity'))


def test_mirror_symmetry_of_symmetric_sources():
    engine = create_engine(resolution=64, scale=1.0, model='thermal')
    engine.add_heat_source(-0.4, 0.1, 0.15, 100.0, 0.5)
    engine.add_heat_source(0.4, 0.1, 0.15, 100.0, 0.5)
    for _ in range(20):
        engine.step()
    field = np.asarray(engine.get_current_buffer('temperature'), dtype=np.float64)
    np.testing.assert_allclose(field, field[:, ::-1], rtol=0, atol=1e-3)
    assert field.max() > 20.0


def test_end_to_end_heat_source_scenario():
    engine = create_engine(
        resolution=64, scale=1.0, model='thermal',
        model_parameters={'ambient_temp': 20.0, 'diffusivity': 0.1, 'retention': 0.995, 'gravity': 0.1},
    )
    engine.add_heat_source(0.0, 0.0, 0.1, 100.0, 0.5)
    with warnings.catch_warnings():
        warnings.simplefilter("error", NumericalInstabilityWarning)
        report = engine.step()
    assert report == {'out_of_range': 0, 'non_finite': 0}

    field = engine.get_current_buffer('temperature')
    center = field[31:33, 31:33]
    assert np.all(center > 20.0)
    assert np.all(center < 100.0)

    xs = cell_centers(64)
    distance = np.hypot(xs[np.newaxis, :], xs[:, np.newaxis])
    assert np.all(field[distance > 0.2] == 20.0)
    assert np.all((field >= 0.0) & (field <= 120.0))
