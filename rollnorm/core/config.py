import yaml
from pathlib import Path
from typing import Any, Dict, Optional, List

import numpy as np

from rollnorm.core.domain.rolling import RollingSeries, float_dtype
from rollnorm.utils.stats_deque import StatsQueue, StatSpec, StatOp, TIMESTAMP_DIFF


DEFAULT_WINDOW = 50
DEFAULT_DTYPE = "float64"
DEFAULT_RESYNC_EVERY: Optional[int] = None
DEFAULT_MAXLEN = 1000
DEFAULT_STATS = [TIMESTAMP_DIFF]


class Config:
    def __init__(self, path: str):
        """
        Load YAML configuration from the given path.

        Args:
            path: Path to config.yaml. An empty file means all defaults.
        """
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"Config file not found: {self.path}")

        with open(self.path, "r") as f:
            self._data: Dict[str, Any] = yaml.safe_load(f) or {}

    def get(self, key: str, default=None):
        """Get a config value by key."""
        return self._data.get(key, default)

    @property
    def window(self) -> int:
        window = self._data.get("window", DEFAULT_WINDOW)
        if not isinstance(window, int) or isinstance(window, bool) or window <= 0:
            raise ValueError(f"window must be a positive integer, got {window!r}")
        return window

    @property
    def dtype(self) -> np.dtype:
        raw = self._data.get("dtype", DEFAULT_DTYPE)
        try:
            return float_dtype(raw)
        except TypeError:
            raise ValueError(f"dtype '{raw}' is not a floating point type")

    @property
    def resync_every(self) -> Optional[int]:
        raw = self._data.get("resync_every", DEFAULT_RESYNC_EVERY)
        if raw is None:
            return None
        if not isinstance(raw, int) or isinstance(raw, bool) or raw <= 0:
            raise ValueError(f"resync_every must be a positive integer or null, got {raw!r}")
        return raw

    @property
    def queue_maxlen(self) -> int:
        queue_props = self._data.get("queue") or {}
        maxlen = queue_props.get("maxlen", DEFAULT_MAXLEN)
        if not isinstance(maxlen, int) or isinstance(maxlen, bool) or maxlen <= 0:
            raise ValueError(f"queue.maxlen must be a positive integer, got {maxlen!r}")
        return maxlen

    def stat_specs(self) -> List[StatSpec]:
        raw_stats = self._data.get("stats")

        if not raw_stats:
            return list(DEFAULT_STATS)

        specs: List[StatSpec] = []

        for entry in raw_stats:
            name = entry.get("name")
            field = entry.get("field", name)
            if not name:
                raise ValueError(f"Stat entry without a name: {entry}")

            op_name = entry.get("op", StatOp.RAW.name)
            try:
                op = StatOp[op_name]
            except KeyError:
                raise ValueError(f"Unknown stat op '{op_name}' for '{name}'")

            specs.append(StatSpec(name, field, op))

        return specs

    def rolling_series(self) -> RollingSeries:
        return RollingSeries(self.window, dtype=self.dtype, resync_every=self.resync_every)

    def stats_queue(self) -> StatsQueue:
        return StatsQueue(
            maxlen=self.queue_maxlen,
            window=self.window,
            stats=self.stat_specs(),
            dtype=self.dtype,
            resync_every=self.resync_every,
        )
