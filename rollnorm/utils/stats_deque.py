from collections import deque
from threading import Lock
from operator import attrgetter
from typing import Generic, TypeVar, List, Optional
from enum import Enum, auto
from dataclasses import dataclass

import numpy as np
from numpy.typing import DTypeLike

from rollnorm.core.domain.rolling import RollingSeries, DEFAULT_DTYPE

""" Use example

    class Sample:
      def __init__(self, timestamp, x):
          self.timestamp = timestamp
          self.x = x

    queue = StatsQueue(
        maxlen=100,
        window=20,
        stats=[
            StatSpec.raw("x", "x"),
            TIMESTAMP_DIFF,
        ]
    )

    for i in range(25):
        queue.put(Sample(i, i * 2))

    print("Mean x:", queue.mean("x"))
    print("z-score of last x:", queue.norm("x"))
    print("Stdev ts:", queue.stdev("timestamp_diff"))
"""


class StatOp(Enum):
    RAW = auto()
    DIFF = auto()


@dataclass
class StatSpec:
    name: str
    field: str
    op: StatOp

    @staticmethod
    def raw(name: str, field: str):
        return StatSpec(name, field, StatOp.RAW)

    @staticmethod
    def diff(name: str, field: str):
        return StatSpec(name, field, StatOp.DIFF)


TIMESTAMP_DIFF = StatSpec.diff("timestamp_diff", "timestamp")


T = TypeVar("T")


class StatsQueue(Generic[T]):
    """Queue of samples T + rolling stats on selected attributes.

    Args:
        maxlen: Maximum total samples stored (the raw buffer).
        window: Rolling window size for statistics.
        stats: Which attribute of T feeds which named series, and how.
        dtype: Floating type of the rolling series.
        resync_every: Passed on to every RollingSeries.

    NOTES:
      Stats keep their own ring buffers, so popping samples with get()
      does not change them. The lock is the only synchronization the
      series get.
    """

    def __init__(
        self,
        maxlen: int,
        window: int,
        stats: List[StatSpec],
        dtype: DTypeLike = DEFAULT_DTYPE,
        resync_every: Optional[int] = None,
    ):
        self.data: deque[T] = deque(maxlen=maxlen)
        self.lock = Lock()

        self.stats_config = {spec.name: (spec.field, spec.op) for spec in stats}

        self.accessors = {
            stat_name: attrgetter(attr)
            for stat_name, (attr, _) in self.stats_config.items()
        }

        self.stats = {
            name: RollingSeries(window, dtype=dtype, resync_every=resync_every)
            for name in self.stats_config
        }
        self._prev: Optional[T] = None

    def put(self, sample: T):
        with self.lock:
            prev = self._prev

            for stat_name, (_, op) in self.stats_config.items():
                accessor = self.accessors[stat_name]

                if op == StatOp.RAW:
                    value = accessor(sample)
                elif op == StatOp.DIFF:
                    if prev is None:
                        value = 0.0
                    else:
                        value = accessor(sample) - accessor(prev)
                else:
                    raise ValueError(f"Unknown StatOp: {op}")

                self.stats[stat_name].insert(value)

            self.data.append(sample)
            self._prev = sample

    def get(self) -> Optional[T]:
        with self.lock:
            if not self.data:
                return None
            return self.data.popleft()

    def _series(self, name: str) -> RollingSeries:
        if name not in self.stats:
            raise KeyError(f"No stats named {name}")
        return self.stats[name]

    def mean(self, name: str) -> np.floating:
        with self.lock:
            return self._series(name).mean()

    def var(self, name: str) -> np.floating:
        with self.lock:
            return self._series(name).var()

    def stdev(self, name: str) -> np.floating:
        with self.lock:
            return self._series(name).stdev()

    def norm(self, name: str) -> np.floating:
        with self.lock:
            return self._series(name).norm()

    def curr(self, name: str) -> np.floating:
        with self.lock:
            return self._series(name).curr()

    def sum(self, name: str) -> np.floating:
        with self.lock:
            return self._series(name).sum()

    def snapshot(self, name: str) -> RollingSeries:
        """Independent copy of a series, safe to read without the lock."""
        with self.lock:
            return self._series(name).copy()

    def __len__(self):
        return len(self.data)

    def __iter__(self):
        with self.lock:
            return iter(list(self.data))
