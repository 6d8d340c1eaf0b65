from __future__ import annotations
from abc import ABC, abstractmethod
import numpy as np


class SeriesPort(ABC):
    """
    Abstract base class for a rolling series of real values.

    Implementations keep the aggregates up to date on every insert; the
    derived reads below only combine them.
    """

    @abstractmethod
    def insert(self, value: float) -> None:
        """Push a new value, evicting the oldest one."""
        pass

    @abstractmethod
    def mean(self) -> float:
        pass

    @abstractmethod
    def var(self) -> float:
        """Population variance of the window."""
        pass

    @abstractmethod
    def curr(self) -> float:
        """Latest value."""
        pass

    @abstractmethod
    def sum(self) -> float:
        pass

    @abstractmethod
    def __getitem__(self, index: int) -> float:
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass

    def stdev(self) -> float:
        # incremental updates can leave the variance a hair below zero
        return np.sqrt(np.maximum(self.var(), 0))

    def norm(self) -> float:
        """Latest value as a z-score. A constant window normalizes to zero."""
        stdev = self.stdev()
        if stdev == 0:
            return type(stdev)(0)
        return (self.curr() - self.mean()) / stdev
