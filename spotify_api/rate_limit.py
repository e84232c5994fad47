import time
from typing import Callable, Optional


class FixedDelay:
    """Sleeps a fixed interval on every pause()."""

    def __init__(self, seconds: float = 0.5, *, sleep: Callable[[float], None] = time.sleep):
        self.seconds = max(0.0, float(seconds))
        self._sleep = sleep

    def pause(self) -> None:
        if self.seconds > 0:
            self._sleep(self.seconds)


class FixedIntervalGate:
    """Guarantees at least ``interval`` seconds between consecutive pause() returns.

    Time already spent since the previous pause counts toward the interval.
    """

    def __init__(
        self,
        interval: float = 0.5,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.interval = max(0.0, float(interval))
        self._sleep = sleep
        self._clock = clock
        self._last: Optional[float] = None

    def pause(self) -> None:
        now = self._clock()
        if self._last is not None:
            remaining = self.interval - (now - self._last)
            if remaining > 0:
                self._sleep(remaining)
                now = self._clock()
        self._last = now


class NoDelay:
    def pause(self) -> None:
        return None
