# fieldsim/derivatives.py
"""
Spatial derivative extraction for rendering and analysis.

Pure functions of one buffer: forward differences against the +x and +y
neighbour (edge clamped, so the last column/row has a zero difference). Two
output modes:

- 'gradient': (dT/dx, dT/dy) per cell, optionally divided by the display scale
- 'normal':   x and z components of the unit surface normal of a height field,
              normalize(-delta * gx, delta^2, -delta * gy) with delta = 1/N
"""

import math

import numpy as np
from numba import njit, prange

from fieldsim.constants import GRADIENT_DISPLAY_SCALE
from fieldsim.errors import ConfigurationError

DERIVATIVE_MODES = ("gradient", "normal")


@njit(cache=True, parallel=True)
def forward_gradient_numba(field, out, inv_display_scale):
    """(Numba Kernel) Forward-difference gradient of a 2D field into out[0] (x) and out[1] (y)."""
    n = field.shape[0]
    last = n - 1
    for row in prange(n):
        i = np.int64(row)
        i_up = min(i + 1, last)
        for j in range(n):
            center = field[i, j]
            out[0, i, j] = (field[i, min(j + 1, last)] - center) * inv_display_scale
            out[1, i, j] = (field[i_up, j] - center) * inv_display_scale


@njit(cache=True, parallel=True)
def surface_normal_numba(field, out, delta):
    """(Numba Kernel) x/z components of the height-field normal into out[0], out[1]."""
    n = field.shape[0]
    last = n - 1
    delta_sq = delta * delta
    for row in prange(n):
        i = np.int64(row)
        i_up = min(i + 1, last)
        for j in range(n):
            center = field[i, j]
            gx = field[i, min(j + 1, last)] - center
            gy = field[i_up, j] - center
            nx = -delta * gx
            nz = -delta * gy
            norm = math.sqrt(nx * nx + delta_sq * delta_sq + nz * nz)
            out[0, i, j] = nx / norm
            out[1, i, j] = nz / norm


class DerivativeExtractor:
    """Computes per-cell derivative planes from one channel of a buffer."""

    def __init__(self, mode: str = "gradient", channel: int = 0, display_scale: float = GRADIENT_DISPLAY_SCALE):
        if mode not in DERIVATIVE_MODES:
            raise ConfigurationError(f"Unknown derivative mode '{mode}'. Valid: {DERIVATIVE_MODES}")
        if display_scale <= 0:
            raise ConfigurationError("display_scale must be positive.")
        self.mode = mode
        self.channel = int(channel)
        self.display_scale = float(display_scale)

    def compute(self, buffer_view: np.ndarray, mode: str = None, normalized: bool = True) -> np.ndarray:
        """
        Returns a new (2, N, N) read-only array; the buffer is never modified.

        `normalized` only applies to 'gradient' and divides by the display scale.
        """
        mode = mode or self.mode
        if mode not in DERIVATIVE_MODES:
            raise ConfigurationError(f"Unknown derivative mode '{mode}'. Valid: {DERIVATIVE_MODES}")
        field = buffer_view[self.channel]
        n = field.shape[0]
        out = np.empty((2, n, n), dtype=field.dtype)
        if mode == "gradient":
            inv_scale = 1.0 / self.display_scale if normalized else 1.0
            forward_gradient_numba(field, out, inv_scale)
        else:
            surface_normal_numba(field, out, 1.0 / n)
        out.flags.writeable = False
        return out
