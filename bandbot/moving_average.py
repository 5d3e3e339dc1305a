"""
Bounded price history with a simple moving average.
"""

from collections import deque
from decimal import Decimal
from itertools import islice
from typing import List, Optional, Union

from .models import PriceSample

DEFAULT_HISTORY_SIZE = 100


class MovingAverageTracker:
    """Keeps the most recent samples in insertion order, oldest evicted first."""

    def __init__(self, capacity: int = DEFAULT_HISTORY_SIZE):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._history = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._history)

    def update(self, sample: Union[PriceSample, Decimal]) -> None:
        value = sample.value if isinstance(sample, PriceSample) else Decimal(sample)
        if value <= 0:
            raise ValueError("price must be positive")
        self._history.append(value)

    def values(self) -> List[Decimal]:
        return list(self._history)

    @property
    def latest(self) -> Optional[Decimal]:
        return self._history[-1] if self._history else None

    def average(self, period: int) -> Optional[Decimal]:
        """
        Arithmetic mean of the last `period` samples.
        Returns None while fewer than `period` samples are available.
        """
        if not (1 <= period <= self.capacity):
            raise ValueError(f"period must be between 1 and {self.capacity}")
        if len(self._history) < period:
            return None
        start = len(self._history) - period
        window = islice(self._history, start, None)
        return sum(window, Decimal(0)) / period
