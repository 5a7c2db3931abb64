"""
Pure metric functions over buffered samples.
"""

import math
from dataclasses import dataclass, asdict
from typing import Sequence, TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from ..protocol.samples import Sample

MAX_VARIANCE = 1.0
LATENCY_TARGET_FRACTION = 0.5


@dataclass(frozen=True)
class PeakLatency:
    """Peak intensity of a stage and the time to reach half of it."""
    peak: float
    latency_ms: int

    def to_dict(self) -> dict:
        return asdict(self)


def capped_variance(values: Sequence[float], cap: float = MAX_VARIANCE) -> float:
    """
    Population variance capped at `cap`.

    An empty sequence is treated as maximally unstable, not as stable.
    """
    if len(values) == 0:
        return cap
    return float(min(cap, np.var(np.asarray(values, dtype=float))))


def baseline_stability(samples: Sequence["Sample"]) -> float:
    """
    Mean of the capped variances of the two baseline channels.

    Lower is more stable. Result is in [0, 1].
    """
    primary = [s.primary_score for s in samples]
    secondary = [s.secondary_score or 0.0 for s in samples]
    return (capped_variance(primary) + capped_variance(secondary)) / 2


def peak_intensity(samples: Sequence["Sample"]) -> float:
    if not samples:
        return 0.0
    return float(max(s.primary_score for s in samples))


def reaction_latency(
    samples: Sequence["Sample"],
    task_started_at_ms: float,
    target_fraction: float = LATENCY_TARGET_FRACTION,
) -> int:
    """
    Milliseconds from task start to the first sample at or above
    `target_fraction` of the peak.

    Returns 0 for an empty buffer. With a zero peak every sample meets
    the target, so the first sample's offset is returned. Halves round up.
    """
    if not samples:
        return 0
    target = peak_intensity(samples) * target_fraction
    for sample in samples:
        if sample.primary_score >= target:
            return max(0, int(math.floor(sample.captured_at_ms - task_started_at_ms + 0.5)))
    return 0


def peak_and_latency(
    samples: Sequence["Sample"],
    task_started_at_ms: float,
    target_fraction: float = LATENCY_TARGET_FRACTION,
) -> PeakLatency:
    return PeakLatency(
        peak=peak_intensity(samples),
        latency_ms=reaction_latency(samples, task_started_at_ms, target_fraction),
    )


def mean_symmetry(samples: Sequence["Sample"]) -> float:
    """Mean per-sample symmetry, stored as each smile sample's secondary score."""
    if not samples:
        return 0.0
    values = [max(0.0, s.secondary_score or 0.0) for s in samples]
    return float(np.mean(values))


def blink_rate(blink_count: int, total_duration_s: float) -> float:
    """Blink events per minute."""
    if total_duration_s <= 0:
        return 0.0
    return blink_count / total_duration_s * 60.0


def blink_duration_base_s(frown_samples: Sequence["Sample"]) -> float:
    """
    Time base for the blink rate: the last frown sample's clock reading,
    in seconds. 0 when the frown stage recorded nothing.
    """
    if not frown_samples:
        return 0.0
    return frown_samples[-1].captured_at_ms / 1000.0
