"""
Biomarker aggregation and screening classification.

Combines metric outputs into an immutable BiomarkerRecord and applies a
fixed rule set. The label is a heuristic screening flag, not a diagnosis.
"""

from dataclasses import dataclass, asdict, field
from typing import Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING

from loguru import logger

from . import engine

if TYPE_CHECKING:
    from ..protocol.samples import Sample

LABEL_NORMAL = "normal"
LABEL_CONSULT = "recommend professional consultation"


@dataclass(frozen=True)
class Subject:
    """Subject identity, set once at session start."""
    name: str
    age: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SmileMetrics:
    peak_intensity: float
    latency_ms: int
    symmetry: float


@dataclass(frozen=True)
class FrownMetrics:
    peak_intensity: float
    latency_ms: int


@dataclass
class ClassificationThresholds:
    """Limits for the screening rules. Any failing check flips the label."""
    max_baseline_stability: float = 0.5
    min_smile_peak: float = 0.3
    min_frown_peak: float = 0.3
    min_smile_symmetry: float = 0.6


@dataclass(frozen=True)
class BiomarkerRecord:
    """Final output of one session. Never mutated after creation."""
    subject: Subject
    baseline_stability: float
    smile_metrics: SmileMetrics
    frown_metrics: FrownMetrics
    blink_rate: float
    summary: str
    issues: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_normal(self) -> bool:
        return self.summary == LABEL_NORMAL

    def to_dict(self) -> dict:
        """Serialize using the persisted record schema."""
        return {
            "user_info": {"name": self.subject.name, "age": int(self.subject.age)},
            "biomarkers": {
                "baseline_stability": float(self.baseline_stability),
                "smile_metrics": {
                    "peak_intensity": float(self.smile_metrics.peak_intensity),
                    "latency_ms": int(self.smile_metrics.latency_ms),
                    "symmetry": float(self.smile_metrics.symmetry),
                },
                "frown_metrics": {
                    "peak_intensity": float(self.frown_metrics.peak_intensity),
                    "latency_ms": int(self.frown_metrics.latency_ms),
                },
                "blink_rate": float(self.blink_rate),
            },
            "raw_data_summary": self.summary,
            "issues": list(self.issues),
        }


def find_issues(
    baseline_stability: float,
    smile: SmileMetrics,
    frown: FrownMetrics,
    thresholds: ClassificationThresholds,
) -> List[str]:
    """Names of the failing checks, in a fixed order."""
    issues = []
    if baseline_stability > thresholds.max_baseline_stability:
        issues.append("baseline")
    if smile.peak_intensity < thresholds.min_smile_peak:
        issues.append("smile")
    if frown.peak_intensity < thresholds.min_frown_peak:
        issues.append("frown")
    if smile.symmetry < thresholds.min_smile_symmetry:
        issues.append("symmetry")
    return issues


def classify(issues: Sequence[str]) -> str:
    return LABEL_NORMAL if not issues else LABEL_CONSULT


class BiomarkerAggregator:
    """
    Builds the BiomarkerRecord from a finished session's buffers.

    Has no side effects: persistence and display are the caller's job.
    """

    def __init__(
        self,
        thresholds: Optional[ClassificationThresholds] = None,
        latency_fraction: float = 0.5,
    ):
        self.thresholds = thresholds or ClassificationThresholds()
        self.latency_fraction = latency_fraction

    def assemble(
        self,
        subject: Subject,
        baseline_stability: float,
        smile: SmileMetrics,
        frown: FrownMetrics,
        blink_rate: float,
    ) -> BiomarkerRecord:
        """Apply the classification rules to already computed metrics."""
        issues = find_issues(baseline_stability, smile, frown, self.thresholds)
        return BiomarkerRecord(
            subject=subject,
            baseline_stability=baseline_stability,
            smile_metrics=smile,
            frown_metrics=frown,
            blink_rate=blink_rate,
            summary=classify(issues),
            issues=tuple(issues),
        )

    def aggregate(
        self,
        subject: Subject,
        baseline_samples: Sequence["Sample"],
        smile_samples: Sequence["Sample"],
        frown_samples: Sequence["Sample"],
        smile_started_at_ms: float,
        frown_started_at_ms: float,
        blink_count: int,
    ) -> BiomarkerRecord:
        """
        Compute every metric and return the classified record.

        Args:
            subject: Session subject
            baseline_samples: (smile, frown) samples of the baseline stage
            smile_samples: (smile, symmetry) samples of the smile task
            frown_samples: (frown,) samples of the frown task
            smile_started_at_ms: Smile task start, latency reference
            frown_started_at_ms: Frown task start, latency reference
            blink_count: Debounced blink events over both tasks

        Returns:
            BiomarkerRecord
        """
        stability = engine.baseline_stability(baseline_samples)
        smile_pl = engine.peak_and_latency(smile_samples, smile_started_at_ms, self.latency_fraction)
        frown_pl = engine.peak_and_latency(frown_samples, frown_started_at_ms, self.latency_fraction)
        symmetry = engine.mean_symmetry(smile_samples)
        rate = engine.blink_rate(blink_count, engine.blink_duration_base_s(frown_samples))

        record = self.assemble(
            subject=subject,
            baseline_stability=stability,
            smile=SmileMetrics(
                peak_intensity=min(1.0, smile_pl.peak),
                latency_ms=smile_pl.latency_ms,
                symmetry=min(1.0, symmetry),
            ),
            frown=FrownMetrics(
                peak_intensity=min(1.0, frown_pl.peak),
                latency_ms=frown_pl.latency_ms,
            ),
            blink_rate=rate,
        )

        logger.info(
            f"Biomarkers: stability={stability:.3f}, "
            f"smile peak={record.smile_metrics.peak_intensity:.3f} "
            f"latency={record.smile_metrics.latency_ms}ms "
            f"symmetry={record.smile_metrics.symmetry:.3f}, "
            f"frown peak={record.frown_metrics.peak_intensity:.3f} "
            f"latency={record.frown_metrics.latency_ms}ms, "
            f"blink_rate={rate:.1f}/min"
        )
        if record.issues:
            logger.info(f"Flagged checks: {', '.join(record.issues)}")
        return record


def radar_scores(record: BiomarkerRecord) -> Dict[str, float]:
    """
    Five display scores on a 0-100 scale.

    Neural response drops by one point per 15ms of mean task latency.
    """
    smile = record.smile_metrics
    frown = record.frown_metrics
    mean_latency = (smile.latency_ms + frown.latency_ms) / 2
    return {
        "smile_strength": min(100.0, smile.peak_intensity * 100),
        "frown_strength": min(100.0, frown.peak_intensity * 100),
        "symmetry": min(100.0, smile.symmetry * 100),
        "static_stability": max(0.0, 100 - record.baseline_stability * 100),
        "neural_response": max(0.0, 100 - mean_latency / 15),
    }
