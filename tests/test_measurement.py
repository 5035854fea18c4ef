"""Measurement records and the bounded history.

- Single pass statistics, NaN carried into the record.
- Rayleigh/Nusselt with the regime switch at Ra = 1708.
- History capacity and eviction order.
"""

import itertools
import warnings

import numpy as np
import pytest

from fieldsim.measurement import MeasurementEngine, nusselt_number, rayleigh_number
from fieldsim.errors import ConfigurationError, NumericalInstabilityWarning


def _field(values):
    arr = np.asarray(values, dtype=np.float64)
    return arr[np.newaxis, :, :]


def test_basic_statistics():
    meter = MeasurementEngine()
    record = meter.measure(_field([[1.0, 2.0], [3.0, 6.0]]), step=4)
    assert record['mean'] == pytest.approx(3.0)
    assert record['min'] == 1.0
    assert record['max'] == 6.0
    assert record['step'] == 4
    assert record['rayleigh'] is None
    assert record['nusselt'] is None
    assert record['stable'] is True


def test_nusselt_regime_switch():
    assert nusselt_number(0.0) == 1.0
    assert nusselt_number(1708.0) == 1.0
    above = nusselt_number(1708.0 + 1e-6)
    assert above == pytest.approx(0.54 * 1708.0 ** 0.25)
    assert above > 1.0
    assert nusselt_number(1e6) == pytest.approx(0.54 * 1e6 ** 0.25)


def test_rayleigh_formula():
    # g * beta * dT * L^3 / (nu * alpha) = 0.1 * 1e-3 * 2 / (1e-6 * 0.1)
    assert rayleigh_number(2.0, 0.1, 0.1) == pytest.approx(2000.0)
    assert rayleigh_number(0.0, 0.1, 0.1) == 0.0


@pytest.mark.parametrize("delta_t, expected_nu", [
    (1.0, 1.0),
    (2.0, 0.54 * 2000.0 ** 0.25),
])
def test_thermal_record_dimensionless_numbers(delta_t, expected_nu):
    meter = MeasurementEngine()
    record = meter.measure(_field([[20.0, 20.0], [20.0, 20.0 + delta_t]]), gravity=0.1, diffusivity=0.1)
    assert record['rayleigh'] == pytest.approx(1000.0 * delta_t)
    assert record['nusselt'] == pytest.approx(expected_nu)


def test_nan_is_propagated_not_replaced():
    meter = MeasurementEngine()
    record = meter.measure(_field([[1.0, np.nan], [3.0, 4.0]]), gravity=0.1, diffusivity=0.1)
    assert np.isnan(record['mean'])
    assert np.isnan(record['min'])
    assert np.isnan(record['max'])
    assert np.isnan(record['rayleigh'])
    assert np.isnan(record['nusselt'])
    assert record['non_finite'] == 1
    assert record['stable'] is False


def test_out_of_range_marks_record_unstable():
    meter = MeasurementEngine()
    record = meter.measure(_field([[10.0, 130.0]]), clamp_range=(0.0, 120.0))
    assert record['stable'] is False


def test_history_bound_and_eviction_order():
    counter = itertools.count(1)
    meter = MeasurementEngine(max_history_length=1000, clock=lambda: next(counter))
    field = _field(np.zeros((4, 4)))
    for step in range(1500):
        meter.measure(field, step=step)
    history = meter.get_history()
    assert len(history) == 1000
    assert history[0]['timestamp'] == 501
    assert history[-1]['timestamp'] == 1500
    assert meter.total_measurements == 1500
    assert meter.get_last()['timestamp'] == 1500


def test_history_records_are_not_shared():
    meter = MeasurementEngine()
    record = meter.measure(_field([[1.0]]))
    record['mean'] = 99.0
    meter.get_history()[0]['mean'] = 42.0
    assert meter.get_history()[0]['mean'] == 1.0
    assert meter.get_last()['mean'] == 1.0


def test_history_series_and_clear():
    meter = MeasurementEngine(max_history_length=3)
    for v in (1.0, 2.0, 3.0, 4.0):
        meter.measure(_field([[v]]))
    np.testing.assert_array_equal(meter.history_series('mean'), [2.0, 3.0, 4.0])
    assert np.all(np.isnan(meter.history_series('rayleigh')))
    meter.clear()
    assert meter.history_length() == 0
    assert meter.get_last() is None


def test_invalid_capacity():
    with pytest.raises(ConfigurationError):
        MeasurementEngine(max_history_length=0)


def test_engine_measure_thermal(thermal_engine):
    thermal_engine.add_heat_source(0.0, 0.0, 0.3, 100.0, 0.5)
    record = thermal_engine.measure()
    assert record['min'] == pytest.approx(20.0)
    assert record['max'] > record['min']
    delta_t = record['max'] - record['min']
    assert record['rayleigh'] == pytest.approx(rayleigh_number(delta_t, 0.1, 0.1))
    assert record['nusselt'] > 1.0
    assert thermal_engine.get_last_measurement() == record


def test_engine_measure_wave_has_no_dimensionless_numbers(wave_engine):
    record = wave_engine.measure()
    assert record['mean'] == 0.0
    assert record['rayleigh'] is None
    assert record['nusselt'] is None


def test_engine_reports_non_finite_measurement(make_engine):
    engine = make_engine('wave', resolution=16, scale=1.0)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", NumericalInstabilityWarning)
        # overflows the float32 buffer to inf, the next step turns it into NaN
        engine.add_drop(0.0, 0.0, 0.3, 1e300)
        engine.step()
    with pytest.warns(NumericalInstabilityWarning):
        record = engine.measure()
    assert record['non_finite'] > 0
    assert record['stable'] is False
