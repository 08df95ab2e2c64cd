"""Time source abstraction."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod


class Clock(ABC):
    @abstractmethod
    def now(self) -> float:
        """Return the current time in seconds."""


class MonotonicClock(Clock):
    """Clock backed by :func:`time.monotonic`, immune to wall-clock jumps."""

    def now(self) -> float:
        return time.monotonic()
