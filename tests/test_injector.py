"""Source/sink injection.

- Zero strength and non-positive radius leave the target a bit-exact copy.
- Blend mode pulls toward the value, additive mode adds a linear bump.
- Cells outside the radius and other channels are copied untouched.
- Wall bands blend one edge of the grid.
"""

import numpy as np
import pytest

from fieldsim.injector import SourceInjector
from fieldsim.errors import ConfigurationError

from conftest import cell_centers

N = 16


def _thermal_field():
    src = np.zeros((3, N, N), dtype=np.float32)
    src[0] = 20.0
    src[1] = 0.25
    src[2] = -0.5
    return src


def _falloff(center, radius, scale=1.0):
    xs = cell_centers(N, scale)
    dx = xs[np.newaxis, :] - center[0]
    dy = xs[:, np.newaxis] - center[1]
    return np.maximum(0.0, 1.0 - np.hypot(dx, dy) / radius)


def test_zero_strength_is_bit_identical():
    src = _thermal_field()
    src[0, 3, 4] = 37.123  # not uniform
    dst = np.full_like(src, -1.0)
    written = SourceInjector(1.0).inject(dst, src, (0.0, 0.0), 0.5, 0.0, 100.0)
    assert written == 0
    assert dst.tobytes() == src.tobytes()


@pytest.mark.parametrize("radius", [0.0, -0.3])
def test_non_positive_radius_is_noop(radius):
    src = _thermal_field()
    dst = np.empty_like(src)
    assert SourceInjector(1.0).inject(dst, src, (0.0, 0.0), radius, 0.5, 100.0) == 0
    assert dst.tobytes() == src.tobytes()


def test_blend_pulls_toward_value():
    src = _thermal_field()
    original = src.copy()
    dst = np.empty_like(src)
    written = SourceInjector(1.0).inject(dst, src, (0.0, 0.0), 0.5, 0.5, 100.0)

    falloff = _falloff((0.0, 0.0), 0.5)
    expected = 20.0 + falloff * 0.5 * (100.0 - 20.0)
    np.testing.assert_allclose(dst[0], expected, rtol=1e-6)
    assert written == int(np.count_nonzero(falloff > 0))
    # outside the disc, other channels and the source are untouched
    outside = falloff == 0
    assert np.all(dst[0][outside] == 20.0)
    np.testing.assert_array_equal(dst[1:], src[1:])
    np.testing.assert_array_equal(src, original)


def test_negative_strength_is_a_sink():
    src = _thermal_field()
    dst = np.empty_like(src)
    SourceInjector(1.0).inject(dst, src, (0.0, 0.0), 0.5, -0.5, 100.0)
    center = dst[0, N // 2, N // 2]
    assert center < 20.0
    assert np.all(dst[0] <= 20.0)


def test_additive_mode_ignores_value():
    src = np.zeros((2, N, N), dtype=np.float32)
    dst_a = np.empty_like(src)
    dst_b = np.empty_like(src)
    injector = SourceInjector(1.0, mode="additive")
    injector.inject(dst_a, src, (0.25, -0.25), 0.3, 0.01, 0.0)
    injector.inject(dst_b, src, (0.25, -0.25), 0.3, 0.01, 123.0)

    expected = _falloff((0.25, -0.25), 0.3) * 0.01
    np.testing.assert_allclose(dst_a[0], expected, atol=1e-7)
    np.testing.assert_array_equal(dst_a, dst_b)
    assert np.all(dst_a[1] == 0.0)


def test_disc_respects_scale():
    src = _thermal_field()
    dst = np.empty_like(src)
    # with scale 3 the same radius covers fewer cells
    small = SourceInjector(3.0).inject(dst, src, (0.0, 0.0), 0.5, 1.0, 100.0)
    large = SourceInjector(1.0).inject(dst, src, (0.0, 0.0), 0.5, 1.0, 100.0)
    assert 0 < small < large


@pytest.mark.parametrize("side, index", [
    ("left", (slice(None), 0)),
    ("right", (slice(None), -1)),
    ("bottom", (0, slice(None))),
    ("top", (-1, slice(None))),
])
def test_wall_band(side, index):
    src = _thermal_field()
    dst = np.empty_like(src)
    SourceInjector(1.0).inject_wall(dst, src, side, 80.0)
    assert np.all(dst[0][index] == 80.0)
    assert np.count_nonzero(dst[0] != 20.0) == N
    np.testing.assert_array_equal(dst[1:], src[1:])


def test_wall_band_width_falls_off():
    src = _thermal_field()
    dst = np.empty_like(src)
    SourceInjector(1.0).inject_wall(dst, src, "left", 80.0, strength=1.0, width=2)
    assert np.all(dst[0, :, 0] == 80.0)
    np.testing.assert_allclose(dst[0, :, 1], 50.0)
    assert np.all(dst[0, :, 2:] == 20.0)


def test_invalid_mode_and_side():
    with pytest.raises(ConfigurationError):
        SourceInjector(1.0, mode="multiply")
    src = _thermal_field()
    with pytest.raises(ConfigurationError):
        SourceInjector(1.0).inject_wall(np.empty_like(src), src, "front", 80.0)
