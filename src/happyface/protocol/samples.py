"""
Timestamped readings buffered per capture stage.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple


@dataclass(frozen=True)
class Sample:
    """One classifier reading captured during an active stage."""
    primary_score: float
    captured_at_ms: float  # Monotonic clock, not wall-clock
    secondary_score: Optional[float] = None


class SampleBuffer:
    """
    Ordered samples for exactly one stage.

    The buffer only accepts appends while its owning stage is active,
    as reported by the `is_active` callable.
    """

    def __init__(self, stage, is_active: Callable[[], bool]):
        self.stage = stage
        self._is_active = is_active
        self._samples: List[Sample] = []

    def clear(self) -> None:
        self._samples = []

    def append(self, sample: Sample) -> None:
        if not self._is_active():
            return
        self._samples.append(sample)

    def all(self) -> Tuple[Sample, ...]:
        """Read-only snapshot of the buffered samples."""
        return tuple(self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    def __repr__(self) -> str:
        return f"SampleBuffer({self.stage}, {len(self._samples)} samples)"
