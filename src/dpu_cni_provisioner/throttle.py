"""Rate limiting for disruptive actions."""

from __future__ import annotations

from typing import Optional

from dpu_net_utils.clock import Clock


class ApplyThrottle:
    """Allow an action at most once per ``cooldown`` seconds.

    The first call to :meth:`acquire` always succeeds. Afterwards it succeeds
    only once more than ``cooldown`` seconds have passed since the last
    successful acquisition, whatever the outcome of the throttled action was.
    Over any window of length ``T`` at most ``ceil(T / cooldown)`` acquisitions
    succeed.
    """

    def __init__(self, clock: Clock, cooldown: float) -> None:
        self._clock = clock
        self._cooldown = cooldown
        self._last: Optional[float] = None

    @property
    def last(self) -> Optional[float]:
        return self._last

    def remaining(self) -> float:
        """Seconds left until the action may run again."""

        if self._last is None:
            return 0.0
        return max(0.0, self._last + self._cooldown - self._clock.now())

    def acquire(self) -> bool:
        now = self._clock.now()
        if self._last is not None and now - self._last <= self._cooldown:
            return False
        self._last = now
        return True
