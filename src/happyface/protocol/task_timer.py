"""
Fixed-duration countdown for a task stage.
"""

import math
from typing import Optional


class TaskTimer:
    """
    Countdown started at task entry.

    Polling may happen at irregular intervals; completion is reported
    once per instance, on the first poll at or past the duration.
    """

    def __init__(self, duration_ms: float = 5000.0):
        self.duration_ms = duration_ms
        self._started_at_ms: Optional[float] = None
        self._fired = False
        self._canceled = False

    def start(self, now_ms: float) -> None:
        self._started_at_ms = now_ms
        self._fired = False
        self._canceled = False

    def cancel(self) -> None:
        self._canceled = True

    @property
    def is_running(self) -> bool:
        return self._started_at_ms is not None and not (self._fired or self._canceled)

    def elapsed(self, now_ms: float) -> float:
        if self._started_at_ms is None:
            return 0.0
        return max(0.0, now_ms - self._started_at_ms)

    def remaining(self, now_ms: float) -> float:
        return max(0.0, self.duration_ms - self.elapsed(now_ms))

    def remaining_seconds(self, now_ms: float) -> int:
        """Whole seconds left, rounded up, for countdown display."""
        return int(math.ceil(self.remaining(now_ms) / 1000.0))

    def progress(self, now_ms: float) -> float:
        """Fraction of the duration elapsed, 0-1."""
        if self.duration_ms <= 0:
            return 1.0
        return min(1.0, self.elapsed(now_ms) / self.duration_ms)

    def poll(self, now_ms: float) -> bool:
        """
        Check for completion.

        Returns:
            True exactly once, on the first poll where elapsed >= duration
        """
        if not self.is_running:
            return False
        if self.elapsed(now_ms) >= self.duration_ms:
            self._fired = True
            return True
        return False
