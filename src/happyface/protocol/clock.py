"""
Monotonic clocks for the capture loop.
"""

import time
from typing import Optional


class SessionClock:
    """
    Milliseconds on a monotonic clock, measured from the clock's creation.

    Sample timestamps and stage start times come from here, never from
    wall-clock time.
    """

    def __init__(self, origin: Optional[float] = None):
        self._origin = time.perf_counter() if origin is None else origin

    def now_ms(self) -> float:
        return (time.perf_counter() - self._origin) * 1000.0


class DetectionTimestamps:
    """
    Strictly increasing timestamps for the classifier's video mode.

    Advances by the rounded time elapsed since the previous detection,
    and by at least 1ms so two calls never share a timestamp.
    """

    def __init__(self):
        self._value = 0
        self._last_now_ms: Optional[float] = None

    @property
    def value(self) -> int:
        return self._value

    def reset(self) -> None:
        self._value = 0
        self._last_now_ms = None

    def next(self, now_ms: float) -> int:
        if self._last_now_ms is None:
            step = 1
        else:
            step = max(1, int(round(now_ms - self._last_now_ms)))
        self._last_now_ms = now_ms
        self._value += step
        return self._value
