# fieldsim/kernels/thermal_numba.py
"""
Thermal gas model implementation using a Numba-accelerated stencil kernel.

State per cell: temperature T, its rate of change dT/dt and a vertical
convection velocity. One update integrates dT/dt = alpha * lap(T) + convection:
diffusion through the 5-point Laplacian, buoyancy driven by the excess over
ambient temperature, damping of both rates, explicit integration, a cheap
advection blend along y, and a final clamp of T.
"""

import math
from typing import Dict, Sequence, Tuple

import numpy as np
from numba import njit, prange

from fieldsim.kernels.base import UpdateKernel
from fieldsim.errors import ConfigurationError

# channel layout, must match AVAILABLE_MODELS['thermal_numba']['channels']
CH_TEMPERATURE = 0
CH_RATE = 1
CH_VELOCITY_Y = 2

# --- Numba Kernel ---
# Rows are the y axis (row + 1 is "up"), columns the x axis. Out-of-grid
# neighbours sample the edge cell itself, which insulates the walls.
# fastmath stays off: NaN must survive the clamp so measurement can see it.

@njit(cache=True, parallel=True)
def thermal_step_numba(src, dst, diffusivity, retention, gravity, dt,
                       ambient, span, convection_damping, advection_factor,
                       min_temp, max_temp):
    """(Numba Kernel) One thermal update from src into dst. Returns (out_of_range, non_finite)."""
    n = src.shape[1]
    last = n - 1
    out_of_range = 0
    non_finite = 0
    for row in prange(n):
        i = np.int64(row) # prange may hand out an unsigned index
        i_up = min(i + 1, last)
        i_down = max(i - 1, 0)
        for j in range(n):
            t_center = src[CH_TEMPERATURE, i, j]
            t_left = src[CH_TEMPERATURE, i, max(j - 1, 0)]
            t_right = src[CH_TEMPERATURE, i, min(j + 1, last)]
            t_up = src[CH_TEMPERATURE, i_up, j]
            t_down = src[CH_TEMPERATURE, i_down, j]

            laplacian = t_left + t_right + t_up + t_down - 4.0 * t_center

            rate = src[CH_RATE, i, j] + laplacian * diffusivity
            vel_y = src[CH_VELOCITY_Y, i, j] + ((t_center - ambient) / span) * gravity

            rate *= retention
            vel_y *= convection_damping

            temp = t_center + rate * dt

            # semi-Lagrangian style lookup, one cell per unit of vel_y * dt
            y_sample = i - vel_y * dt
            if y_sample != y_sample:
                convected = y_sample
            else:
                if y_sample < 0.0:
                    y_sample = 0.0
                elif y_sample > last:
                    y_sample = float(last)
                i0 = int(math.floor(y_sample))
                i1 = min(i0 + 1, last)
                frac = y_sample - i0
                convected = src[CH_TEMPERATURE, i0, j] * (1.0 - frac) + src[CH_TEMPERATURE, i1, j] * frac
            weight = abs(vel_y) * advection_factor
            temp = temp * (1.0 - weight) + convected * weight

            if temp != temp or math.isinf(temp):
                non_finite += 1
            if temp < min_temp:
                out_of_range += 1
                temp = min_temp
            elif temp > max_temp:
                out_of_range += 1
                temp = max_temp

            dst[CH_TEMPERATURE, i, j] = temp
            dst[CH_RATE, i, j] = rate
            dst[CH_VELOCITY_Y, i, j] = vel_y
    return out_of_range, non_finite


# --- Python Class Definition ---

class ThermalNumba(UpdateKernel):
    """Diffusion-convection model for a heated gas layer."""
    PARAMETERS = ('diffusivity', 'retention', 'gravity', 'dt')

    def setup(self, resolution: int, channels: Sequence[str]):
        """Validates config and stores the fixed model constants."""
        if tuple(channels)[:3] != ('temperature', 'rate', 'velocity_y'):
            raise ConfigurationError(f"ThermalNumba expects channels (temperature, rate, velocity_y), got {tuple(channels)}")
        try:
            self.ambient_temp = float(self.config['ambient_temp'])
            self.buoyancy_span = float(self.config['buoyancy_span'])
            self.min_temp = float(self.config['min_temp'])
            self.max_temp = float(self.config['max_temp'])
            self.convection_damping = float(self.config.get('convection_damping', 0.98))
            self.advection_factor = float(self.config.get('advection_factor', 0.1))
        except KeyError as e: raise ConfigurationError(f"Missing required config key for ThermalNumba: {e}") from e
        except (ValueError, TypeError) as e: raise ConfigurationError(f"Invalid config value for ThermalNumba: {e}") from e

        # Sanity checks
        if self.buoyancy_span <= 0: raise ConfigurationError("'buoyancy_span' must be positive.")
        if self.min_temp >= self.max_temp: raise ConfigurationError("'min_temp' must be below 'max_temp'.")
        if not self.min_temp <= self.ambient_temp <= self.max_temp:
            raise ConfigurationError(f"'ambient_temp' {self.ambient_temp} outside [{self.min_temp}, {self.max_temp}].")

        self.resolution = int(resolution)
        super().setup(resolution, channels)

        print(f"ThermalNumba Setup: N={self.resolution}, Ambient={self.ambient_temp:.1f}, Clamp=[{self.min_temp:.1f}, {self.max_temp:.1f}]")
        print(f"  Diffusivity={self.diffusivity:.3f}, Retention={self.retention:.3f}, Gravity={self.gravity:.2f}, dt={self.dt:.3f}")

    def rest_values(self) -> Tuple[float, ...]:
        return (float(self.config.get('ambient_temp', 20.0)), 0.0, 0.0)

    def clamp_range(self) -> Tuple[float, float]:
        return (self.min_temp, self.max_temp)

    def time_increment(self) -> float:
        return self.dt

    def update(self, src: np.ndarray, dst: np.ndarray) -> Dict[str, int]:
        """Runs the thermal stencil kernel on the whole grid."""
        out_of_range, non_finite = thermal_step_numba(
            src, dst,
            self.diffusivity, self.retention, self.gravity, self.dt,
            self.ambient_temp, self.buoyancy_span,
            self.convection_damping, self.advection_factor,
            self.min_temp, self.max_temp,
        )
        return {'out_of_range': int(out_of_range), 'non_finite': int(non_finite)}

    # --- named setters ---
    @property
    def diffusivity(self) -> float: return self._params['diffusivity']
    @property
    def retention(self) -> float: return self._params['retention']
    @property
    def gravity(self) -> float: return self._params['gravity']
    @property
    def dt(self) -> float: return self._params['dt']

    def set_diffusivity(self, value: float) -> float: return self.set_parameter('diffusivity', value)
    def set_retention(self, value: float) -> float: return self.set_parameter('retention', value)
    def set_gravity(self, value: float) -> float: return self.set_parameter('gravity', value)
    def set_dt(self, value: float) -> float: return self.set_parameter('dt', value)
