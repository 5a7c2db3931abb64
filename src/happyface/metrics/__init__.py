"""
Biomarker metrics and the screening classification.
"""

from .engine import (
    PeakLatency,
    baseline_stability,
    peak_intensity,
    reaction_latency,
    peak_and_latency,
    mean_symmetry,
    blink_rate,
)
from .aggregator import (
    BiomarkerAggregator,
    BiomarkerRecord,
    ClassificationThresholds,
    FrownMetrics,
    SmileMetrics,
    Subject,
    radar_scores,
    LABEL_NORMAL,
    LABEL_CONSULT,
)

__all__ = [
    "PeakLatency",
    "baseline_stability",
    "peak_intensity",
    "reaction_latency",
    "peak_and_latency",
    "mean_symmetry",
    "blink_rate",
    "BiomarkerAggregator",
    "BiomarkerRecord",
    "ClassificationThresholds",
    "FrownMetrics",
    "SmileMetrics",
    "Subject",
    "radar_scores",
    "LABEL_NORMAL",
    "LABEL_CONSULT",
]
