# fieldsim/kernels/base.py
"""
Defines the Abstract Base Class (ABC) for all field update kernels.

A kernel is a strategy selected when the Engine is built: it knows the state
vector of its model, the rest value of each channel, its clamp range and its
tunable parameters, and it turns one read-only buffer into the next one.
Kernels never own buffers and never swap them.
"""

import math
from abc import ABC, abstractmethod
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from fieldconfig.param_defs import PARAM_DEFS
from fieldsim.errors import ConfigurationError
from fieldsim.utils import clamp_value


class UpdateKernel(ABC):
    """
    Abstract Base Class for per-step stencil updates.

    Subclasses list their tunable parameter names in PARAMETERS (keys of
    PARAM_DEFS), implement `setup`, `rest_values` and `update`, and may
    override `clamp_range`.
    """
    PARAMETERS: Tuple[str, ...] = ()

    def __init__(self, config: Optional[Dict] = None):
        """
        Args:
            config: Engine-wide configuration dictionary. Stored internally.
        """
        self.config: Dict = config.copy() if config is not None else {}
        self._params: Dict[str, float] = {}
        self._is_setup: bool = False
        for name in self.PARAMETERS:
            self._params[name] = self._clamped(name, self.config.get(name, PARAM_DEFS[name]['val']))

    @abstractmethod
    def setup(self, resolution: int, channels: Sequence[str]):
        """
        Validate configuration against the grid and precompute constants.
        Implementations must call super().setup() once they succeed.
        """
        self._is_setup = True

    def is_ready(self) -> bool:
        return self._is_setup

    @abstractmethod
    def rest_values(self) -> Tuple[float, ...]:
        """Uniform per-channel value the buffers start from."""

    def clamp_range(self) -> Tuple[float, float]:
        """Range the first channel is held in after every update."""
        return (-math.inf, math.inf)

    @abstractmethod
    def update(self, src: np.ndarray, dst: np.ndarray) -> Dict[str, int]:
        """
        Write the next state of every cell of `dst` from `src`.

        Returns counts of cells that left the clamp range before clamping
        ('out_of_range') and of non-finite cells ('non_finite').
        """

    # --- parameters ---
    def supports(self, name: str) -> bool:
        return name in self._params

    def _clamped(self, name: str, value) -> float:
        try:
            value_f = float(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Parameter '{name}' needs a number, got {value!r}") from e
        if math.isnan(value_f):
            raise ConfigurationError(f"Parameter '{name}' cannot be NaN")
        pdef = PARAM_DEFS[name]
        return clamp_value(value_f, pdef['min'], pdef['max'])

    def set_parameter(self, name: str, value) -> float:
        """Clamps `value` into the documented range and applies it. Returns the effective value."""
        if not self.supports(name):
            raise ConfigurationError(f"{self.__class__.__name__} has no parameter '{name}'. Valid: {list(self._params)}")
        self._params[name] = self._clamped(name, value)
        self.config[name] = self._params[name]
        return self._params[name]

    def get_parameter(self, name: str) -> float:
        if not self.supports(name):
            raise ConfigurationError(f"{self.__class__.__name__} has no parameter '{name}'. Valid: {list(self._params)}")
        return self._params[name]

    def get_parameters(self) -> Dict[str, float]:
        return dict(self._params)

    def time_increment(self) -> float:
        """Simulated time covered by one `update` call."""
        return 1.0
