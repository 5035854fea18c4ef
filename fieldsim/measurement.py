# fieldsim/measurement.py
"""
Measurement and analysis of a field buffer.

Reduces one channel to {sum, min, max} in a single pass, derives the mean and,
for the thermal model, the Rayleigh and Nusselt numbers, and appends a
time-stamped record to a bounded history. Non-finite values are carried into
the record as they are; the engine does not try to repair an unstable field.
"""

import math
import time
from collections import deque
from typing import Any, Callable, Dict, List, Optional

import numpy as np
from numba import njit

from fieldsim.constants import CONST_nu, CONST_beta, CONST_L, RA_CRITICAL, NU_COEFF, NU_EXPONENT
from fieldsim.errors import ConfigurationError


@njit(cache=True)
def reduce_field_numba(field):
    """(Numba Kernel) Single pass (sum, min, max, non_finite_count). Any NaN makes min and max NaN."""
    total = 0.0
    lo = np.inf
    hi = -np.inf
    non_finite = 0
    has_nan = False
    n_rows, n_cols = field.shape
    for i in range(n_rows):
        for j in range(n_cols):
            v = field[i, j]
            total += v
            if v != v:
                has_nan = True
                non_finite += 1
                continue
            if math.isinf(v):
                non_finite += 1
            if v < lo:
                lo = v
            if v > hi:
                hi = v
    if has_nan:
        lo = np.nan
        hi = np.nan
    return total, lo, hi, non_finite


def rayleigh_number(delta_t: float, gravity: float, diffusivity: float) -> float:
    """Ra = g * beta * dT * L^3 / (nu * alpha)."""
    return (gravity * CONST_beta * delta_t * CONST_L ** 3) / (CONST_nu * diffusivity)

def nusselt_number(rayleigh: float) -> float:
    """Nu = 1 in the conduction regime (Ra <= 1708), else 0.54 * Ra^0.25."""
    if rayleigh > RA_CRITICAL:
        return NU_COEFF * rayleigh ** NU_EXPONENT
    if rayleigh != rayleigh:
        return rayleigh # NaN stays NaN
    return 1.0


class MeasurementEngine:
    """Samples a buffer channel and keeps a bounded, append-only history of records."""

    def __init__(self, max_history_length: int = 1000, channel: int = 0,
                 clock: Optional[Callable[[], float]] = None):
        if int(max_history_length) < 1:
            raise ConfigurationError(f"max_history_length must be >= 1, got {max_history_length}")
        self.channel = int(channel)
        self.max_history_length = int(max_history_length)
        self._clock = clock if clock is not None else time.perf_counter
        self._history: deque = deque(maxlen=self.max_history_length)
        self._last: Optional[Dict[str, Any]] = None
        self._count = 0

    def reduce(self, buffer_view: np.ndarray) -> Dict[str, Any]:
        """Statistics of the measured channel without recording anything."""
        field = buffer_view[self.channel]
        total, lo, hi, non_finite = reduce_field_numba(field)
        cell_count = field.size
        return {
            'mean': float(total) / cell_count,
            'min': float(lo),
            'max': float(hi),
            'non_finite': int(non_finite),
        }

    def measure(self, buffer_view: np.ndarray, step: int = 0,
                gravity: Optional[float] = None, diffusivity: Optional[float] = None,
                clamp_range=None) -> Dict[str, Any]:
        """
        Produces one record and appends it to the history.

        The dimensionless numbers are computed only when both `gravity` and
        `diffusivity` are given (thermal model); otherwise they are None.
        `clamp_range` marks the record unstable if the extremes lie outside it.
        """
        stats = self.reduce(buffer_view)
        rayleigh = None
        nusselt = None
        if gravity is not None and diffusivity is not None:
            delta_t = stats['max'] - stats['min']
            rayleigh = rayleigh_number(delta_t, float(gravity), float(diffusivity))
            nusselt = nusselt_number(rayleigh)

        stable = stats['non_finite'] == 0
        if clamp_range is not None and stable:
            lo, hi = clamp_range
            stable = lo <= stats['min'] and stats['max'] <= hi

        record = {
            'timestamp': self._clock(),
            'step': int(step),
            'mean': stats['mean'],
            'min': stats['min'],
            'max': stats['max'],
            'rayleigh': rayleigh,
            'nusselt': nusselt,
            'non_finite': stats['non_finite'],
            'stable': stable,
        }
        self._history.append(record)
        self._last = record
        self._count += 1
        return dict(record)

    # --- history access (copies, the stored records are never handed out) ---
    def get_history(self) -> List[Dict[str, Any]]:
        return [dict(r) for r in self._history]

    def get_last(self) -> Optional[Dict[str, Any]]:
        return dict(self._last) if self._last is not None else None

    def history_length(self) -> int:
        return len(self._history)

    @property
    def total_measurements(self) -> int:
        return self._count

    def history_series(self, key: str) -> np.ndarray:
        """One column of the history as a float array (None becomes NaN)."""
        return np.array([np.nan if r[key] is None else r[key] for r in self._history], dtype=np.float64)

    def clear(self):
        self._history.clear()
        self._last = None
