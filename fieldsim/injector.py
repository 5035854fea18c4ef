# fieldsim/injector.py
"""
Localised source/sink injection.

Writes a disturbance into the target buffer from the source buffer using a
linear falloff max(0, 1 - distance / radius) measured in domain coordinates.
Two blend modes exist:

- 'blend'    new = old + falloff * strength * (value - old)  (pulls toward value)
- 'additive' new = old + falloff * strength                  (adds a bump)

A negative strength is a sink; there is no separate code path for it. Cells
with zero falloff are copied bit for bit, and a zero strength or non-positive
radius leaves the target an exact copy of the source.
"""

import math

import numpy as np
from numba import njit, prange

from fieldsim.errors import ConfigurationError

INJECTION_MODES = ("blend", "additive")
WALL_SIDES = {"left": 0, "right": 1, "bottom": 2, "top": 3}


@njit(cache=True, parallel=True)
def inject_disc_numba(src, dst, channel, center_x, center_y, radius, strength, value, scale, additive):
    """(Numba Kernel) Blends a disc of cells around (center_x, center_y). dst must already hold a copy of src."""
    n = src.shape[1]
    cell = 2.0 * scale / n
    written = 0
    for row in prange(n):
        i = np.int64(row)
        dy = (-scale + (i + 0.5) * cell) - center_y
        for j in range(n):
            dx = (-scale + (j + 0.5) * cell) - center_x
            falloff = 1.0 - math.sqrt(dx * dx + dy * dy) / radius
            if falloff > 0.0:
                old = src[channel, i, j]
                if additive:
                    dst[channel, i, j] = old + falloff * strength
                else:
                    dst[channel, i, j] = old + falloff * strength * (value - old)
                written += 1
    return written


@njit(cache=True, parallel=True)
def inject_wall_numba(src, dst, channel, side, width, value, strength):
    """(Numba Kernel) Blends a band of `width` cells along one wall toward `value`."""
    n = src.shape[1]
    for row in prange(n):
        i = np.int64(row)
        for j in range(n):
            if side == 0:
                depth = j
            elif side == 1:
                depth = n - 1 - j
            elif side == 2:
                depth = i
            else:
                depth = n - 1 - i
            if depth < width:
                falloff = 1.0 - depth / width
                old = src[channel, i, j]
                dst[channel, i, j] = old + falloff * strength * (value - old)


class SourceInjector:
    """Writes localised disturbances into a target buffer."""

    def __init__(self, scale: float, mode: str = "blend", channel: int = 0):
        if mode not in INJECTION_MODES:
            raise ConfigurationError(f"Unknown injection mode '{mode}'. Valid: {INJECTION_MODES}")
        self.scale = float(scale)
        self.mode = mode
        self.channel = int(channel)

    def inject(self, target: np.ndarray, source: np.ndarray, center_xy, radius: float,
               strength: float, value: float = 0.0) -> int:
        """
        Writes the disturbance into `target`, reading only `source`.

        Returns the number of cells that received a non-zero falloff.
        """
        np.copyto(target, source)
        if not radius > 0 or strength == 0:
            return 0
        center_x, center_y = center_xy
        return int(inject_disc_numba(source, target, self.channel,
                                     float(center_x), float(center_y), float(radius),
                                     float(strength), float(value), self.scale,
                                     self.mode == "additive"))

    def inject_wall(self, target: np.ndarray, source: np.ndarray, side: str, value: float,
                    strength: float = 1.0, width: int = 1):
        """Pulls the cells within `width` cells of one wall toward `value`."""
        if side not in WALL_SIDES:
            raise ConfigurationError(f"Unknown wall '{side}'. Valid: {list(WALL_SIDES)}")
        np.copyto(target, source)
        if width < 1 or strength == 0:
            return
        inject_wall_numba(source, target, self.channel, WALL_SIDES[side], int(width), float(value), float(strength))
