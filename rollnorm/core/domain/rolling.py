from __future__ import annotations
import logging
import operator
from typing import Iterable, Iterator, Optional

import numpy as np
from numpy.typing import DTypeLike

from rollnorm.core.ports.series import SeriesPort


logger = logging.getLogger(__name__)

DEFAULT_DTYPE = np.float64


def float_dtype(dtype: DTypeLike) -> np.dtype:
    """Return dtype as a numpy dtype, rejecting anything that is not a real float."""
    dt = np.dtype(dtype)
    if not np.issubdtype(dt, np.floating):
        raise TypeError(f"dtype must be a floating point type, got {dt}")
    return dt


def window_as(window: int, dtype: np.dtype) -> np.floating:
    """Convert the window length to dtype, failing unless the conversion is exact."""
    try:
        n = dtype.type(window)
    except OverflowError:
        raise ValueError(f"Window of {window} is too large for {dtype}") from None
    if not np.isfinite(n) or int(n) != window:
        raise ValueError(f"Window of {window} cannot be represented exactly as {dtype}")
    return n


class RollingSeries(SeriesPort):
    """Ring buffer of the last ``window`` values with running sum, mean and variance.

    Every operation except construction runs in O(1). Indexing goes back in
    time: ``series[0]`` is the latest value, ``series[1]`` the one inserted
    before it, and ``series[window - 1]`` the oldest value still held.

    Args:
        window: Number of values held. Fixed for the lifetime of the series.
        dtype: numpy floating type used for storage and arithmetic.
        resync_every: If set, recompute the aggregates from the buffer after
            this many inserts to discard accumulated rounding error.

    Not thread safe. Callers sharing a series must lock around it.
    """

    def __init__(
        self,
        window: int,
        dtype: DTypeLike = DEFAULT_DTYPE,
        resync_every: Optional[int] = None,
    ):
        window = operator.index(window)
        if window <= 0:
            raise ValueError(f"Window must be positive, got {window}")

        if resync_every is not None:
            resync_every = operator.index(resync_every)
            if resync_every <= 0:
                raise ValueError(f"resync_every must be positive, got {resync_every}")

        self._dtype = float_dtype(dtype)
        self._n = window_as(window, self._dtype)
        self._buf = np.zeros(window, dtype=self._dtype)
        # the first insert advances to slot 0
        self._offset = window - 1

        zero = self._dtype.type(0)
        self._sum = zero
        self._mean = zero
        self._variance = zero
        # trailing slots equal to the current value, capped at the window
        self._run = window

        self._resync_every = resync_every
        self._since_resync = 0

    @classmethod
    def from_window(
        cls,
        values: Iterable[float],
        dtype: DTypeLike = DEFAULT_DTYPE,
        resync_every: Optional[int] = None,
    ) -> RollingSeries:
        """Build a full series from the given values, oldest first.

        The window length is the number of values and the last one becomes
        the current value. Aggregates are computed once here, in O(N).
        """
        buf = np.array(list(values), dtype=float_dtype(dtype))
        if buf.ndim != 1 or buf.size == 0:
            raise ValueError(f"Initial window must be a non-empty flat sequence, got shape {buf.shape}")
        if not np.all(np.isfinite(buf)):
            raise ValueError("Initial window contains non-finite values")

        series = cls(buf.size, dtype=dtype, resync_every=resync_every)
        series._buf[:] = buf
        differs = np.flatnonzero(buf != buf[-1])
        series._run = buf.size if differs.size == 0 else buf.size - 1 - int(differs[-1])
        series._recompute()
        logger.debug("Created %r", series)
        return series

    def insert(self, value: float) -> None:
        new = self._dtype.type(value)
        if not np.isfinite(new):
            raise ValueError(f"Cannot insert non-finite value {value!r}")

        window = len(self._buf)
        if new == self._buf[self._offset]:
            self._run = min(self._run + 1, window)
        else:
            self._run = 1

        self._offset = (self._offset + 1) % window
        old = self._buf[self._offset]
        self._buf[self._offset] = new

        old_mean = self._mean
        self._mean = old_mean + (new - old) / self._n

        # both means are needed, the update is not symmetric in them
        self._variance = self._variance + (new - old) * (new - self._mean + old - old_mean) / self._n
        if self._variance < 0:
            self._variance = self._dtype.type(0)

        self._sum = self._sum - old + new
        self._settle_constant()

        if self._resync_every is not None:
            self._since_resync += 1
            if self._since_resync >= self._resync_every:
                self.resync()

    def resync(self) -> None:
        """Recompute sum, mean and variance from the buffer. O(N)."""
        drift = self._variance
        self._recompute()
        logger.debug(
            "Resynced window of %d: variance %s -> %s", len(self._buf), drift, self._variance
        )

    def _recompute(self):
        self._sum = self._buf.sum(dtype=self._dtype)
        self._mean = self._sum / self._n
        self._variance = np.square(self._buf - self._mean).sum(dtype=self._dtype) / self._n
        self._since_resync = 0
        self._settle_constant()

    def _settle_constant(self):
        """Pin the aggregates of a window holding a single repeated value."""
        if self._run < len(self._buf):
            return
        value = self._buf[self._offset]
        self._sum = value * self._n
        self._mean = value
        self._variance = self._dtype.type(0)

    def mean(self) -> np.floating:
        return self._mean

    def var(self) -> np.floating:
        return self._variance

    def curr(self) -> np.floating:
        return self._buf[self._offset]

    def sum(self) -> np.floating:
        return self._sum

    def values(self) -> np.ndarray:
        """Copy of the window, newest first."""
        n = len(self._buf)
        return self._buf[(self._offset - np.arange(n)) % n]

    @property
    def window(self) -> int:
        return len(self._buf)

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    @property
    def resync_every(self) -> Optional[int]:
        return self._resync_every

    def copy(self) -> RollingSeries:
        other = type(self).__new__(type(self))
        other.__dict__.update(self.__dict__)
        other._buf = self._buf.copy()
        return other

    def __copy__(self) -> RollingSeries:
        return self.copy()

    def __deepcopy__(self, memo) -> RollingSeries:
        return self.copy()

    def __getitem__(self, index: int) -> np.floating:
        try:
            i = operator.index(index)
        except TypeError:
            raise TypeError(f"Series indices must be integers, got {type(index).__name__}") from None

        n = len(self._buf)
        if not 0 <= i < n:
            raise IndexError(f"Index {i} out of range for window of {n}")
        return self._buf[(self._offset - i) % n]

    def __len__(self) -> int:
        return len(self._buf)

    def __iter__(self) -> Iterator[np.floating]:
        return iter(self.values())

    def __repr__(self) -> str:
        return (
            f"RollingSeries(window={len(self._buf)}, dtype={self._dtype}, "
            f"curr={self.curr()}, mean={self._mean}, var={self._variance})"
        )
