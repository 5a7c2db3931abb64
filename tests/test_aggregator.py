import pytest

from happyface.metrics.aggregator import (
    LABEL_CONSULT,
    LABEL_NORMAL,
    BiomarkerAggregator,
    FrownMetrics,
    SmileMetrics,
    Subject,
    radar_scores,
)
from happyface.protocol.samples import Sample

SUBJECT = Subject(name="Ada", age=36)


def test_single_failing_check_flips_label():
    record = BiomarkerAggregator().assemble(
        SUBJECT,
        baseline_stability=0.2,
        smile=SmileMetrics(peak_intensity=0.25, latency_ms=300, symmetry=0.9),
        frown=FrownMetrics(peak_intensity=0.5, latency_ms=250),
        blink_rate=12.0,
    )
    assert record.summary == LABEL_CONSULT
    assert record.issues == ("smile",)


def test_all_checks_pass():
    record = BiomarkerAggregator().assemble(
        SUBJECT,
        baseline_stability=0.5,
        smile=SmileMetrics(peak_intensity=0.3, latency_ms=300, symmetry=0.6),
        frown=FrownMetrics(peak_intensity=0.3, latency_ms=250),
        blink_rate=0.0,
    )
    assert record.summary == LABEL_NORMAL
    assert record.is_normal


def test_each_check_is_independent():
    agg = BiomarkerAggregator()
    record = agg.assemble(
        SUBJECT,
        baseline_stability=0.8,
        smile=SmileMetrics(peak_intensity=0.1, latency_ms=0, symmetry=0.2),
        frown=FrownMetrics(peak_intensity=0.1, latency_ms=0),
        blink_rate=0.0,
    )
    assert record.issues == ("baseline", "smile", "frown", "symmetry")


def test_aggregate_from_buffers():
    baseline = [Sample(0.1, captured_at_ms=t, secondary_score=0.1) for t in range(0, 330, 33)]
    smile = [
        Sample(v, captured_at_ms=10_000 + dt, secondary_score=0.95)
        for v, dt in zip([0, 0.2, 0.5, 0.8, 0.8], [0, 100, 200, 300, 400])
    ]
    frown = [Sample(v, captured_at_ms=20_000 + dt) for v, dt in zip([0.1, 0.6], [0, 150])]

    record = BiomarkerAggregator().aggregate(
        SUBJECT, baseline, smile, frown,
        smile_started_at_ms=10_000, frown_started_at_ms=20_000, blink_count=4,
    )

    assert record.baseline_stability == pytest.approx(0.0, abs=1e-12)
    assert record.smile_metrics.peak_intensity == 0.8
    assert record.smile_metrics.latency_ms == 300
    assert record.smile_metrics.symmetry == pytest.approx(0.95)
    assert record.frown_metrics.latency_ms == 150
    assert record.blink_rate == pytest.approx(4 / 20.15 * 60)
    assert record.summary == LABEL_NORMAL


def test_record_is_immutable():
    record = BiomarkerAggregator().aggregate(SUBJECT, [], [], [], 0, 0, 0)
    with pytest.raises(AttributeError):
        record.summary = LABEL_NORMAL


def test_empty_session_is_flagged():
    record = BiomarkerAggregator().aggregate(SUBJECT, [], [], [], 0, 0, 0)
    assert record.baseline_stability == 1.0
    assert record.blink_rate == 0.0
    assert record.summary == LABEL_CONSULT


def test_to_dict_schema():
    record = BiomarkerAggregator().assemble(
        SUBJECT, 0.1,
        SmileMetrics(0.9, 250, 0.8), FrownMetrics(0.7, 300), blink_rate=15.0,
    )
    doc = record.to_dict()
    assert doc["user_info"] == {"name": "Ada", "age": 36}
    assert doc["biomarkers"]["smile_metrics"] == {"peak_intensity": 0.9, "latency_ms": 250, "symmetry": 0.8}
    assert doc["biomarkers"]["frown_metrics"] == {"peak_intensity": 0.7, "latency_ms": 300}
    assert doc["raw_data_summary"] == LABEL_NORMAL


def test_radar_scores():
    record = BiomarkerAggregator().assemble(
        SUBJECT, 0.2,
        SmileMetrics(0.8, 300, 0.9), FrownMetrics(0.5, 600), blink_rate=10.0,
    )
    scores = radar_scores(record)
    assert scores["smile_strength"] == pytest.approx(80)
    assert scores["frown_strength"] == pytest.approx(50)
    assert scores["symmetry"] == pytest.approx(90)
    assert scores["static_stability"] == pytest.approx(80)
    assert scores["neural_response"] == pytest.approx(70)
