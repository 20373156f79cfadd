import time
from abc import ABC, abstractmethod


class AbstractClock(ABC):
    """Source of the current unix timestamp used for claim windows."""

    @abstractmethod
    async def now(self) -> int:
        pass


class SystemClock(AbstractClock):
    async def now(self) -> int:
        return int(time.time())


class FixedClock(AbstractClock):
    """
    Manually driven clock for tests and dry runs.
    Time only moves when told to, and never backwards.
    """

    def __init__(self, timestamp: int = 0):
        self._timestamp = timestamp

    async def now(self) -> int:
        return self._timestamp

    def increase(self, seconds: int):
        if seconds < 0:
            raise ValueError("Cannot move the clock backwards")
        self._timestamp += seconds

    def increase_to(self, timestamp: int):
        if timestamp < self._timestamp:
            raise ValueError(f"Cannot move the clock backwards: {timestamp} < {self._timestamp}")
        self._timestamp = timestamp
