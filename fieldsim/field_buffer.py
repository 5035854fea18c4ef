# fieldsim/field_buffer.py

"""
Double-buffered field storage.

A FieldBuffer is one N x N grid of per-cell state vectors, stored channel-first
as a (channels, N, N) NumPy array so that each channel is a contiguous 2D plane
for the Numba kernels. The BufferSwapController owns two of them and hands out
a read-only view of the current one and, only inside `write_step()`, the
writable next one. The swap happens after the write block finishes, never
halfway through it.
"""

import gc
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Sequence, Tuple

import numpy as np

from fieldsim.errors import ConfigurationError, ResourceInitializationError

# type definitions
ChannelName = str
NpArray = np.ndarray


class FieldBuffer:
    """One fixed-resolution grid of cell state vectors."""

    def __init__(self, resolution: int, channels: Sequence[ChannelName], dtype: type = np.float32):
        if not isinstance(resolution, (int, np.integer)) or isinstance(resolution, bool) or resolution <= 0:
            raise ConfigurationError(f"resolution must be a positive integer, got {resolution!r}")
        if not channels:
            raise ConfigurationError("FieldBuffer needs at least one channel.")
        self.resolution = int(resolution)
        self.channels: Tuple[ChannelName, ...] = tuple(channels)
        self._channel_index: Dict[ChannelName, int] = {name: i for i, name in enumerate(self.channels)}
        full_shape = (len(self.channels), self.resolution, self.resolution)
        try:
            self._data = np.zeros(full_shape, dtype=dtype)
        except MemoryError as e:
            print(f"ERROR: FieldBuffer failed allocating {full_shape} {np.dtype(dtype).name}. Not enough memory.")
            gc.collect()
            raise ResourceInitializationError(f"Cannot allocate field buffer {full_shape}") from e
        except (TypeError, ValueError) as e:
            raise ResourceInitializationError(f"Unsupported field buffer format {full_shape} {dtype!r}: {e}") from e
        self._data.flags.writeable = False # writable only between get_writeable() and release_writeable()
        self._locked_writeable = False

    # public info getters
    @property
    def dtype(self) -> np.dtype: return self._data.dtype
    @property
    def shape(self) -> Tuple[int, ...]: return self._data.shape
    @property
    def nbytes(self) -> int: return self._data.nbytes

    def channel_index(self, name: ChannelName) -> int:
        if name not in self._channel_index:
            raise KeyError(f"Unknown channel: '{name}'. Valid: {list(self.channels)}")
        return self._channel_index[name]

    def get_writeable(self) -> NpArray:
        """Unlocks the backing array for writing. Pair with `release_writeable()`."""
        if self._locked_writeable:
            raise RuntimeError("FieldBuffer already locked for writing.")
        self._locked_writeable = True
        self._data.flags.writeable = True
        return self._data

    def release_writeable(self):
        """Makes the backing array read-only again (okay to call when not locked)."""
        self._data.flags.writeable = False
        self._locked_writeable = False

    def read_view(self) -> NpArray:
        """View of the storage; read-only, and so is its base outside a write."""
        view = self._data.view()
        view.flags.writeable = False
        return view

    def fill(self, rest_values: Sequence[float]):
        """Sets every cell of every channel to its rest value."""
        if len(rest_values) != len(self.channels):
            raise ValueError(f"Expected {len(self.channels)} rest values, got {len(rest_values)}")
        data = self.get_writeable()
        try:
            for i, value in enumerate(rest_values):
                data[i].fill(value)
        finally:
            self.release_writeable()


class BufferSwapController:
    """
    Owns the ping-pong pair of FieldBuffers.

    `current()` is always read-only. The writable target is reachable only
    through `write_step()`, which swaps roles once the block has written every
    cell and leaves them untouched if the block raises.
    """

    def __init__(self, resolution: int, channels: Sequence[ChannelName],
                 rest_values: Sequence[float], dtype: type = np.float32):
        self._rest_values = tuple(float(v) for v in rest_values)
        self._buffers = (FieldBuffer(resolution, channels, dtype), FieldBuffer(resolution, channels, dtype))
        for buf in self._buffers:
            buf.fill(self._rest_values)
        self._current_idx = 0
        self._write_in_progress = False
        self._target: Optional[NpArray] = None
        self._swap_count = 0

    @property
    def resolution(self) -> int: return self._buffers[0].resolution
    @property
    def channels(self) -> Tuple[ChannelName, ...]: return self._buffers[0].channels
    @property
    def dtype(self) -> np.dtype: return self._buffers[0].dtype
    @property
    def swap_count(self) -> int: return self._swap_count

    def channel_index(self, name: ChannelName) -> int:
        return self._buffers[0].channel_index(name)

    def current(self) -> NpArray:
        """Read-only view of the buffer holding the latest complete state."""
        return self._buffers[self._current_idx].read_view()

    def next(self) -> NpArray:
        """Writable target buffer; only valid inside `write_step()`."""
        if not self._write_in_progress:
            raise RuntimeError("next() is only available inside write_step().")
        return self._target

    def swap(self):
        if self._write_in_progress:
            raise RuntimeError("Cannot swap while a write step is in progress.")
        self._current_idx = 1 - self._current_idx
        self._swap_count += 1

    @contextmanager
    def write_step(self) -> Iterator[Tuple[NpArray, NpArray]]:
        """Yields (read-only source, writable target); swaps after the block completes."""
        if self._write_in_progress:
            raise RuntimeError("Nested write_step(): the target buffer is already being written.")
        target_buf = self._buffers[1 - self._current_idx]
        self._target = target_buf.get_writeable()
        self._write_in_progress = True
        try:
            yield self.current(), self._target
        finally:
            self._write_in_progress = False
            self._target = None
            target_buf.release_writeable()
        self.swap() # only reached when the block finished without raising

    def reset(self):
        """Returns both buffers to the rest state."""
        if self._write_in_progress:
            raise RuntimeError("Cannot reset while a write step is in progress.")
        for buf in self._buffers:
            buf.fill(self._rest_values)
        self._current_idx = 0
