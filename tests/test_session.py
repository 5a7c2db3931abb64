import numpy as np
import pytest

from happyface.errors import AcquisitionError, InvalidSubjectError
from happyface.metrics.aggregator import LABEL_NORMAL
from happyface.pipeline.session import CaptureSession, SessionConfig, UploadStatus, create_store
from happyface.protocol.state_machine import Stage
from happyface.storage.record_store import JsonlRecordStore


class FakeClock:
    """Advances by `step` ms on every reading."""

    def __init__(self, step=10.0):
        self.t = 0.0
        self.step = step

    def now_ms(self):
        self.t += self.step
        return self.t


class FakeCamera:
    def __init__(self, ok=True):
        self.ok = ok
        self.running = False
        self.last_error = None if ok else "no camera"

    def start(self):
        self.running = self.ok
        return self.ok

    def stop(self):
        self.running = False

    def latest_frame(self):
        return (0.0, np.zeros((4, 4, 3), dtype=np.uint8))


SCRIPT = {
    Stage.BASELINE: {"mouthSmileLeft": 0.05, "mouthSmileRight": 0.05, "browDownLeft": 0.05, "browDownRight": 0.05},
    Stage.RESET_SMILE: {"mouthSmileLeft": 0.1, "mouthSmileRight": 0.1},
    Stage.SMILE: {"mouthSmileLeft": 0.8, "mouthSmileRight": 0.8},
    Stage.RESET_FROWN: {"browDownLeft": 0.05, "browDownRight": 0.05},
    Stage.FROWN: {"browDownLeft": 0.6, "browDownRight": 0.6, "eyeBlinkLeft": 0.9, "eyeBlinkRight": 0.9},
}


class ScriptedClassifier:
    """
    Returns scores chosen by the session's current stage.

    Like a video-mode landmarker, a loaded instance answers None to any
    timestamp that does not exceed the previous one.
    """

    def __init__(self):
        self.session = None
        self.loaded = False
        self.closed = False
        self.loads = 0
        self.rejected = 0
        self.timestamps = []
        self._last_ts = None

    def load(self):
        self.loaded = True
        self.closed = False
        self.loads += 1
        self._last_ts = None

    def close(self):
        self.closed = True

    def detect(self, frame, timestamp_ms):
        if self._last_ts is not None and timestamp_ms <= self._last_ts:
            self.rejected += 1
            return None
        self._last_ts = timestamp_ms
        self.timestamps.append(timestamp_ms)
        return SCRIPT.get(self.session.stage)


class MemoryStore:
    def __init__(self, error=None):
        self.error = error
        self.saved = []

    def save(self, record):
        if self.error is not None:
            raise self.error
        self.saved.append(record)
        return f"rec-{len(self.saved)}"


def make_session(store=None, camera=None):
    classifier = ScriptedClassifier()
    session = CaptureSession(
        SessionConfig(show_preview=False, store="none", idle_sleep_ms=0),
        classifier=classifier,
        camera=camera or FakeCamera(),
        store=store,
        clock=FakeClock(),
    )
    classifier.session = session
    return session, classifier


def test_run_walks_every_stage_and_saves():
    store = MemoryStore()
    session, classifier = make_session(store=store)

    outcome = session.run("Ada", 36)

    assert outcome.upload_status == UploadStatus.SAVED
    assert outcome.record_id == "rec-1"
    assert store.saved == [outcome.record]
    assert [t.to_stage for t in outcome.transitions] == [
        Stage.BASELINE, Stage.RESET_SMILE, Stage.SMILE, Stage.RESET_FROWN, Stage.FROWN, Stage.RESULT,
    ]
    assert outcome.transitions[2].reason == "relaxed-and-stable"

    record = outcome.record
    assert record.smile_metrics.peak_intensity == pytest.approx(0.8)
    assert record.smile_metrics.symmetry == pytest.approx(1.0)
    assert record.frown_metrics.peak_intensity == pytest.approx(0.6)
    assert record.baseline_stability == pytest.approx(0.0, abs=1e-12)
    assert record.blink_rate > 0
    assert record.summary == LABEL_NORMAL

    assert classifier.closed
    assert not session.camera.running


def test_classifier_timestamps_strictly_increase_and_respect_interval():
    session, classifier = make_session(store=MemoryStore())
    session.run("Ada", 36)
    ts = classifier.timestamps
    assert all(b > a for a, b in zip(ts, ts[1:]))
    # 10ms clock steps against a 33ms minimum interval
    assert all(b - a >= 33 for a, b in zip(ts[1:], ts[2:]))


def test_upload_failure_keeps_record():
    error = ConnectionError("offline")
    session, _ = make_session(store=MemoryStore(error=error))

    outcome = session.run("Ada", 36)

    assert outcome.upload_status == UploadStatus.FAILED
    assert outcome.error is error
    assert outcome.record_id is None
    assert outcome.record.summary == LABEL_NORMAL


def test_no_store_skips_upload():
    session, _ = make_session(store=None)
    outcome = session.run("Ada", 36)
    assert outcome.upload_status == UploadStatus.SKIPPED


def test_invalid_subject_acquires_nothing():
    session, classifier = make_session()
    with pytest.raises(InvalidSubjectError):
        session.start("", 36)
    assert not classifier.loaded
    assert session.stage == Stage.SETUP


def test_camera_failure_is_fatal_to_start():
    session, classifier = make_session(camera=FakeCamera(ok=False))
    with pytest.raises(AcquisitionError):
        session.start("Ada", 36)
    assert session.stage == Stage.SETUP
    assert classifier.closed


def test_tick_stops_after_restart():
    session, _ = make_session()
    session.start("Ada", 36)
    assert session.tick() is True
    session.restart()
    assert session.tick() is False
    assert session.stage == Stage.SETUP
    session.release()


def test_create_store():
    assert isinstance(create_store(SessionConfig(store="jsonl")), JsonlRecordStore)
    assert create_store(SessionConfig(store="none")) is None
    with pytest.raises(ValueError):
        create_store(SessionConfig(store="http"))
    with pytest.raises(ValueError):
        create_store(SessionConfig(store="ftp"))


def test_restart_keeps_detection_timestamps_increasing():
    session, classifier = make_session()
    session.start("Ada", 36)
    for _ in range(60):
        session.tick()

    session.restart()
    session.start("Grace", 50)
    for _ in range(60):
        session.tick()

    assert classifier.loads == 1
    assert classifier.rejected == 0
    assert len(session.machine.state.baseline_samples) > 0
    session.release()


def test_rerun_after_release_reloads_classifier():
    session, classifier = make_session(store=MemoryStore())
    session.run("Ada", 36)
    session.restart()

    outcome = session.run("Grace", 50)

    assert outcome.upload_status == UploadStatus.SAVED
    assert outcome.record.subject.name == "Grace"
    assert classifier.loads == 2
    assert classifier.rejected == 0


def test_second_run_on_finished_session_acquires_nothing():
    session, classifier = make_session(store=MemoryStore())
    session.run("Ada", 36)
    assert session.stage == Stage.RESULT

    with pytest.raises(RuntimeError):
        session.run("Ada", 36)

    assert classifier.loads == 1
    assert not session.camera.running
    assert session.stage == Stage.RESULT
