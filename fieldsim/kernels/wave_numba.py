# fieldsim/kernels/wave_numba.py
"""
Water height-field model using a Numba-accelerated stencil kernel.

Discretises d2h/dt2 = c^2 lap(h) with a damping factor, one unit of time per
update: v += (avg4(h) - h) * c^2 / 2, v *= damping, h += v. At the default
wave speed (2.0) this is the classic interactive water update. The explicit
scheme needs c^2 / 2 <= 2, so faster waves split the unit of time into
ceil(c / 2) passes, each covering 1/m of the time with coupling c^2 / (2 m^2)
and damping**(1/m). Passes ping-pong between the target and a scratch buffer.
"""

import math
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
from numba import njit, prange

from fieldsim.kernels.base import UpdateKernel
from fieldsim.errors import ConfigurationError

CH_HEIGHT = 0
CH_VELOCITY = 1

STABLE_WAVE_SPEED = 2.0 # largest c one pass of the avg4 stencil can take


@njit(cache=True, parallel=True)
def wave_step_numba(src, dst, coupling, damping, min_height, max_height, v_in_scale, v_out_scale):
    """
    (Numba Kernel) One damped wave pass from src into dst. Returns (out_of_range, non_finite).

    The velocity channel is read times v_in_scale and stored times v_out_scale,
    which converts between per-update and per-pass velocity when sub-cycling.
    """
    n = src.shape[1]
    last = n - 1
    out_of_range = 0
    non_finite = 0
    for row in prange(n):
        i = np.int64(row)
        i_up = min(i + 1, last)
        i_down = max(i - 1, 0)
        for j in range(n):
            h = src[CH_HEIGHT, i, j]
            average = (src[CH_HEIGHT, i, max(j - 1, 0)] + src[CH_HEIGHT, i, min(j + 1, last)]
                       + src[CH_HEIGHT, i_up, j] + src[CH_HEIGHT, i_down, j]) * 0.25

            velocity = (src[CH_VELOCITY, i, j] * v_in_scale + (average - h) * coupling) * damping
            height = h + velocity

            if height != height or math.isinf(height):
                non_finite += 1
            if height < min_height:
                out_of_range += 1
                height = min_height
            elif height > max_height:
                out_of_range += 1
                height = max_height

            dst[CH_HEIGHT, i, j] = height
            dst[CH_VELOCITY, i, j] = velocity * v_out_scale
    return out_of_range, non_finite


class WaveNumba(UpdateKernel):
    """Damped height-field waves with reflecting (edge-clamped) walls."""
    PARAMETERS = ('wave_speed', 'damping')

    def setup(self, resolution: int, channels: Sequence[str]):
        if tuple(channels)[:2] != ('height', 'velocity'):
            raise ConfigurationError(f"WaveNumba expects channels (height, velocity), got {tuple(channels)}")
        try:
            self.rest_height = float(self.config.get('rest_height', 0.0))
        except (ValueError, TypeError) as e: raise ConfigurationError(f"Invalid config value for WaveNumba: {e}") from e
        self.resolution = int(resolution)
        self._scratch: Optional[np.ndarray] = None
        super().setup(resolution, channels)
        print(f"WaveNumba Setup: N={self.resolution}, WaveSpeed={self.wave_speed:.2f}, Damping={self.damping:.3f}, Passes={self.subcycles()}")

    def rest_values(self) -> Tuple[float, ...]:
        return (float(self.config.get('rest_height', 0.0)), 0.0)

    def subcycles(self) -> int:
        """Passes per update that keep the explicit scheme stable at the current wave speed."""
        return max(1, int(math.ceil(self.wave_speed / STABLE_WAVE_SPEED)))

    def _scratch_like(self, arr: np.ndarray) -> np.ndarray:
        if self._scratch is None or self._scratch.shape != arr.shape or self._scratch.dtype != arr.dtype:
            self._scratch = np.empty_like(arr)
        return self._scratch

    def update(self, src: np.ndarray, dst: np.ndarray) -> Dict[str, int]:
        lo, hi = self.clamp_range()
        passes = self.subcycles()
        coupling = 0.5 * self.wave_speed * self.wave_speed / (passes * passes)
        damping = self.damping ** (1.0 / passes)
        if passes == 1:
            out_of_range, non_finite = wave_step_numba(src, dst, coupling, damping, lo, hi, 1.0, 1.0)
            return {'out_of_range': int(out_of_range), 'non_finite': int(non_finite)}

        scratch = self._scratch_like(dst)
        read = src
        for p in range(passes):
            # the last pass must land in dst
            write = dst if (passes - 1 - p) % 2 == 0 else scratch
            v_in_scale = 1.0 / passes if p == 0 else 1.0
            v_out_scale = float(passes) if p == passes - 1 else 1.0
            out_of_range, non_finite = wave_step_numba(read, write, coupling, damping, lo, hi, v_in_scale, v_out_scale)
            read = write
        # counts of the state that is handed back
        return {'out_of_range': int(out_of_range), 'non_finite': int(non_finite)}

    @property
    def wave_speed(self) -> float: return self._params['wave_speed']
    @property
    def damping(self) -> float: return self._params['damping']

    def set_wave_speed(self, value: float) -> float: return self.set_parameter('wave_speed', value)
    def set_damping(self, value: float) -> float: return self.set_parameter('damping', value)
