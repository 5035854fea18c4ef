# fieldsim/engine.py
"""
Engine: composition root of the grid field simulation.

This class owns one of each core component and exposes the operations the
rendering and interaction layers consume:
- the BufferSwapController holding the ping-pong pair of FieldBuffers.
- the UpdateKernel selected from AVAILABLE_MODELS (thermal or wave).
- the SourceInjector, DerivativeExtractor and MeasurementEngine.
- step/time tracking, runtime parameters and instability reporting.

All operations are synchronous and assume one caller at a time; hosts with
several threads serialize access themselves (see main.py).
"""

import math
import time
import traceback
import warnings
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from fieldconfig.default_settings import DEFAULT_SETTINGS, scale_for_walls
from fieldconfig.available_models import AVAILABLE_MODELS, MODEL_ALIASES
from fieldconfig.param_defs import PARAM_DEFS, PARAM_ALIASES
from fieldsim.field_buffer import BufferSwapController
from fieldsim.kernels.base import UpdateKernel
from fieldsim.injector import SourceInjector
from fieldsim.derivatives import DerivativeExtractor
from fieldsim.measurement import MeasurementEngine
from fieldsim.errors import ConfigurationError, NumericalInstabilityWarning
from fieldsim.utils import dynamic_import, is_power_of_two

ENGINE_VERSION = "1.0"

# settings that create_engine(model_parameters=...) may override besides PARAM_DEFS,
# with the models that read them (None: every model)
MODEL_CONSTANTS = {
    'ambient_temp': ('thermal_numba',),
    'buoyancy_span': ('thermal_numba',),
    'min_temp': ('thermal_numba',),
    'max_temp': ('thermal_numba',),
    'convection_damping': ('thermal_numba',),
    'advection_factor': ('thermal_numba',),
    'rest_height': ('wave_numba',),
    'max_history_length': None,
    'use_double_precision': None,
}

# diagnostics(warning, details) receives every instability report
DiagnosticsCallback = Callable[[NumericalInstabilityWarning, Dict[str, Any]], None]


def _resolve_model_id(model: str) -> Dict[str, Any]:
    model_id = MODEL_ALIASES.get(model, model)
    model_def = next((m for m in AVAILABLE_MODELS if m['id'] == model_id), None)
    if model_def is None:
        valid = [m['id'] for m in AVAILABLE_MODELS] + list(MODEL_ALIASES)
        raise ConfigurationError(f"Unknown model '{model}'. Valid: {valid}")
    return model_def

def _finite_float(name: str, value) -> float:
    try:
        value_f = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"'{name}' needs a number, got {value!r}") from e
    if not math.isfinite(value_f):
        raise ConfigurationError(f"'{name}' must be finite, got {value!r}")
    return value_f

def _model_constant(name: str, value):
    """Checks one MODEL_CONSTANTS value and returns it in the type the engine uses."""
    if name == 'use_double_precision':
        if not isinstance(value, (bool, np.bool_)):
            raise ConfigurationError(f"'use_double_precision' must be True or False, got {value!r}")
        return bool(value)
    if name == 'max_history_length':
        if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, np.integer)) or value < 1:
            raise ConfigurationError(f"'max_history_length' must be a positive integer, got {value!r}")
        return int(value)
    return _finite_float(name, value)


class Engine:
    """
    Double-buffered field simulation for one physical model.

    Built by `create_engine`; the constructor expects a complete, already
    validated settings dictionary.
    """

    def __init__(self, settings: Dict[str, Any], model_def: Dict[str, Any],
                 diagnostics: Optional[DiagnosticsCallback] = None,
                 clock: Optional[Callable[[], float]] = None):
        print(f"\n===== Initializing Engine v{ENGINE_VERSION} ({model_def['id']}) =====")
        start_time_init = time.perf_counter()

        self._settings: Dict[str, Any] = settings.copy()
        self._model_def = model_def
        self._diagnostics = diagnostics
        self._steps_taken: int = 0
        self._time: float = 0.0
        self._last_step_report: Dict[str, int] = {'out_of_range': 0, 'non_finite': 0}

        try:
            resolution = int(self._settings['resolution'])
            self._scale = float(self._settings['scale'])
            use_double = _model_constant('use_double_precision', self._settings.get('use_double_precision', False))
            history_length = _model_constant('max_history_length', self._settings.get('max_history_length', 1000))
            dtype = np.float64 if use_double else np.float32
            channels = tuple(model_def['channels'])

            print("1. Selecting Update Kernel...")
            kernel_class = dynamic_import(model_def['module'], model_def['class'])
            self._kernel: UpdateKernel = kernel_class(self._settings)
            self._kernel.setup(resolution, channels)

            print(f"2. Allocating Field Buffers (2 x {len(channels)} x {resolution} x {resolution}, {np.dtype(dtype).name})...")
            self._buffers = BufferSwapController(resolution, channels, self._kernel.rest_values(), dtype)

            print("3. Creating Injector, Derivative Extractor, Measurement Engine...")
            self._injector = SourceInjector(self._scale, mode=model_def['injection_mode'])
            self._derivatives = DerivativeExtractor(mode=model_def['derivative_mode'])
            self._measurement = MeasurementEngine(history_length, clock=clock)
        except Exception as e:
            print(f"\n!!! FATAL ERROR during Engine Initialization: {e} !!!")
            traceback.print_exc()
            raise

        init_duration = time.perf_counter() - start_time_init
        print(f"===== Engine Initialization Complete ({init_duration:.3f} s) =====")
        print(f"  N={resolution}, Scale={self._scale:.1f}, Substeps={self.substeps}, Precision={np.dtype(dtype).name}")

    # --- properties ---
    @property
    def model_id(self) -> str: return self._model_def['id']
    @property
    def resolution(self) -> int: return self._buffers.resolution
    @property
    def scale(self) -> float: return self._scale
    @property
    def channels(self): return self._buffers.channels
    @property
    def substeps(self) -> int: return int(self._model_def['substeps'])
    @property
    def kernel(self) -> UpdateKernel: return self._kernel

    def get_steps_taken(self) -> int: return self._steps_taken
    def get_time(self) -> float: return self._time

    # --- injection ---
    def inject_disturbance(self, x: float, y: float, radius: float, value: float, strength: float) -> int:
        """
        Writes a localized disturbance around (x, y) (domain coordinates) and swaps.

        `value` is the blend target for the thermal model and is ignored by the
        wave model, which adds `strength` instead. Returns the number of cells touched.
        """
        x = _finite_float('x', x); y = _finite_float('y', y)
        value = _finite_float('value', value); strength = _finite_float('strength', strength)
        radius = _finite_float('radius', radius)
        with self._buffers.write_step() as (src, dst):
            written = self._injector.inject(dst, src, (x, y), radius, strength, value)
        return written

    def add_heat_source(self, x: float, y: float, radius: float, temperature: float, intensity: float = 0.1) -> int:
        return self.inject_disturbance(x, y, radius, temperature, intensity)

    def add_cold_source(self, x: float, y: float, radius: float, temperature: float, intensity: float = 0.1) -> int:
        """Heat source with the intensity negated (a sink)."""
        return self.inject_disturbance(x, y, radius, temperature, -intensity)

    def add_drop(self, x: float, y: float, radius: float, strength: float) -> int:
        return self.inject_disturbance(x, y, radius, 0.0, strength)

    def set_wall_temperature(self, side: str, value: float, strength: float = 1.0, width: int = 1):
        """Pulls a band of `width` cells along one wall ('left', 'right', 'bottom', 'top') toward `value`."""
        value = _finite_float('value', value); strength = _finite_float('strength', strength)
        if int(width) < 1 or int(width) > self.resolution:
            raise ConfigurationError(f"Wall width must be in [1, {self.resolution}], got {width}")
        with self._buffers.write_step() as (src, dst):
            self._injector.inject_wall(dst, src, side, value, strength, int(width))

    # --- simulation ---
    def step(self) -> Dict[str, int]:
        """
        Advances the simulation by one frame (the model's number of sub-steps).

        Each sub-step reads the current buffer, writes the next one and swaps.
        Returns the summed {'out_of_range', 'non_finite'} counts of the frame.
        """
        report = {'out_of_range': 0, 'non_finite': 0}
        for _ in range(self.substeps):
            with self._buffers.write_step() as (src, dst):
                sub_report = self._kernel.update(src, dst)
            report['out_of_range'] += sub_report['out_of_range']
            report['non_finite'] += sub_report['non_finite']
            self._time += self._kernel.time_increment()
        self._steps_taken += 1
        self._last_step_report = report

        if report['out_of_range'] or report['non_finite']:
            lo, hi = self._kernel.clamp_range()
            self._report_instability(
                f"Step {self._steps_taken}: {report['out_of_range']} cells left [{lo}, {hi}] before clamping, "
                f"{report['non_finite']} non-finite.",
                dict(report, step=self._steps_taken, source='step'))
        return dict(report)

    def compute_derivatives(self, mode: Optional[str] = None, normalized: bool = True) -> np.ndarray:
        """(2, N, N) read-only derivative planes of the current buffer. See DerivativeExtractor."""
        return self._derivatives.compute(self._buffers.current(), mode=mode, normalized=normalized)

    def measure(self) -> Dict[str, Any]:
        """Reduces the current buffer to one record and appends it to the history."""
        is_thermal = self._kernel.supports('gravity') and self._kernel.supports('diffusivity')
        record = self._measurement.measure(
            self._buffers.current(),
            step=self._steps_taken,
            gravity=self._kernel.get_parameter('gravity') if is_thermal else None,
            diffusivity=self._kernel.get_parameter('diffusivity') if is_thermal else None,
            clamp_range=self._kernel.clamp_range(),
        )
        if record['non_finite']:
            self._report_instability(
                f"Measurement at step {self._steps_taken}: {record['non_finite']} non-finite cells.",
                {'non_finite': record['non_finite'], 'step': self._steps_taken, 'source': 'measure'})
        return record

    def _report_instability(self, message: str, details: Dict[str, Any]):
        warning = NumericalInstabilityWarning(message)
        if self._diagnostics is not None:
            self._diagnostics(warning, details)
        else:
            warnings.warn(warning, stacklevel=3)

    # --- parameters ---
    def set_parameter(self, name: str, value) -> float:
        """
        Sets a runtime parameter, clamped silently into its documented range.

        Accepts 'waveSpeed' as an alias of 'wave_speed'. Raises ConfigurationError
        for unknown names, names the active model does not use, and non-numeric
        or NaN values; the engine is left unchanged in those cases.
        Returns the effective (clamped) value.
        """
        key = PARAM_ALIASES.get(name, name)
        if key not in PARAM_DEFS:
            raise ConfigurationError(f"Unknown parameter '{name}'. Valid: {list(PARAM_DEFS) + list(PARAM_ALIASES)}")
        if not self._kernel.supports(key):
            raise ConfigurationError(f"Parameter '{name}' is not used by model '{self.model_id}'.")
        effective = self._kernel.set_parameter(key, value)
        self._settings[key] = effective
        return effective

    def get_parameter(self, name: str) -> float:
        key = PARAM_ALIASES.get(name, name)
        if key not in PARAM_DEFS or not self._kernel.supports(key):
            raise ConfigurationError(f"Parameter '{name}' is not used by model '{self.model_id}'.")
        return self._kernel.get_parameter(key)

    def get_parameters(self) -> Dict[str, float]:
        return self._kernel.get_parameters()

    # --- read back ---
    def get_current_buffer(self, channel: Optional[str] = None) -> np.ndarray:
        """
        Read-only view of the latest complete state, (C, N, N) or one (N, N) channel.

        The view follows the buffer it was taken from; copy it to keep a snapshot.
        """
        view = self._buffers.current()
        if channel is None:
            return view
        return view[self._buffers.channel_index(channel)]

    def get_visible_region(self, channel: Optional[str] = None) -> np.ndarray:
        """The part of the grid inside [-1, 1] x [-1, 1]; the whole grid when scale <= 1."""
        view = self.get_current_buffer(channel)
        n = self.resolution
        margin = 0
        if self._scale > 1.0:
            margin = int(round(n * (self._scale - 1.0) / (2.0 * self._scale)))
            margin = min(margin, (n - 1) // 2)
        if margin == 0:
            return view
        return view[..., margin:n - margin, margin:n - margin]

    def get_last_measurement(self) -> Optional[Dict[str, Any]]:
        return self._measurement.get_last()

    def get_history(self) -> List[Dict[str, Any]]:
        return self._measurement.get_history()

    def history_series(self, key: str) -> np.ndarray:
        return self._measurement.history_series(key)

    def get_last_step_report(self) -> Dict[str, int]:
        return dict(self._last_step_report)

    def export_data(self) -> Dict[str, Any]:
        """Plain-dict export of the last record, the history and the engine settings."""
        return {
            'measurements': self.get_last_measurement(),
            'history': self.get_history(),
            'settings': {
                'model': self.model_id,
                'resolution': self.resolution,
                'scale': self._scale,
                'channels': list(self.channels),
                'substeps': self.substeps,
                'clamp_range': list(self._kernel.clamp_range()),
                'parameters': self.get_parameters(),
                'max_history_length': self._measurement.max_history_length,
            },
        }

    def get_state(self) -> Dict[str, Any]:
        return {
            'model': self.model_id,
            'resolution': self.resolution,
            'scale': self._scale,
            'steps_taken': self._steps_taken,
            'time': self._time,
            'parameters': self.get_parameters(),
            'history_length': self._measurement.history_length(),
            'swap_count': self._buffers.swap_count,
        }

    def reset(self):
        """Returns the field to its rest state and clears the history; parameters are kept."""
        print("===== Resetting Engine to Rest State =====")
        self._buffers.reset()
        self._measurement.clear()
        self._steps_taken = 0
        self._time = 0.0
        self._last_step_report = {'out_of_range': 0, 'non_finite': 0}


def create_engine(resolution: Optional[int] = None, scale: Optional[float] = None,
                  model_parameters: Optional[Dict[str, Any]] = None, model: Optional[str] = None,
                  diagnostics: Optional[DiagnosticsCallback] = None,
                  settings: Optional[Dict[str, Any]] = None,
                  clock: Optional[Callable[[], float]] = None) -> Engine:
    """
    Builds an Engine from DEFAULT_SETTINGS plus overrides.

    Args:
        resolution: cells per side (positive int, power of two recommended).
        scale: domain half-extent; defaults from 'dissipate_walls' (1.0 or 3.0).
        model_parameters: runtime parameters (clamped) and model constants
            such as 'ambient_temp'. Unknown names raise ConfigurationError.
        model: model id or alias ('thermal', 'wave', 'water'); defaults to
            the 'default_model' setting.
        diagnostics: optional callback(warning, details) for instability reports.
        settings: a full settings dict to start from instead of DEFAULT_SETTINGS.
        clock: timestamp source for measurement records.
    """
    base = settings if settings is not None else DEFAULT_SETTINGS
    config = dict(base)
    config['GRAPH_SETTINGS'] = dict(base.get('GRAPH_SETTINGS', {}))

    model_def = _resolve_model_id(model if model is not None else config.get('default_model', 'thermal_numba'))

    if resolution is None:
        resolution = config.get('resolution', 256)
    if isinstance(resolution, bool) or not isinstance(resolution, (int, np.integer)) or resolution <= 0:
        raise ConfigurationError(f"resolution must be a positive integer, got {resolution!r}")
    if not is_power_of_two(int(resolution)):
        print(f"Warn: resolution {resolution} is not a power of two.")
    config['resolution'] = int(resolution)

    if scale is None:
        scale = config.get('scale', scale_for_walls(bool(config.get('dissipate_walls', False))))
    scale = _finite_float('scale', scale)
    if scale <= 0:
        raise ConfigurationError(f"scale must be positive, got {scale}")
    config['scale'] = scale

    for name, value in (model_parameters or {}).items():
        key = PARAM_ALIASES.get(name, name)
        if key in PARAM_DEFS:
            if model_def['id'] not in PARAM_DEFS[key]['models']:
                raise ConfigurationError(f"Parameter '{name}' is not used by model '{model_def['id']}'.")
            config[key] = value  # clamped by the kernel
        elif key in MODEL_CONSTANTS:
            owners = MODEL_CONSTANTS[key]
            if owners is not None and model_def['id'] not in owners:
                raise ConfigurationError(f"Model constant '{name}' is not used by model '{model_def['id']}'.")
            config[key] = _model_constant(key, value)
        else:
            raise ConfigurationError(f"Unknown model parameter '{name}'.")

    return Engine(config, model_def, diagnostics=diagnostics, clock=clock)
