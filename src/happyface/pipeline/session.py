"""
Capture session runner.

Connects the webcam, the blendshape classifier, the capture protocol and
the record store into one cooperative loop:
1. Validate the subject and start camera + classifier
2. Sample the classifier at ~30 Hz and poll the countdown at 10 Hz
3. Let the state machine walk the protocol stages
4. Hand the finished record to the store
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from loguru import logger

from ..errors import AcquisitionError
from ..metrics.aggregator import BiomarkerAggregator, BiomarkerRecord, ClassificationThresholds
from ..protocol.clock import DetectionTimestamps, SessionClock
from ..protocol.state_machine import (
    CaptureStateMachine,
    CountdownTick,
    ProtocolConfig,
    SampleTick,
    Stage,
    Transition,
    validate_subject,
)
from ..storage.record_store import HttpRecordStore, JsonlRecordStore
from ..vision.action_units import ChannelScores, raw_readout
from ..vision.blendshape_analyzer import AnalyzerConfig, BlendshapeAnalyzer
from ..vision.webcam_capture import CaptureConfig, WebcamCapture
from .preview import PreviewConfig, PreviewWindow


@dataclass
class SessionConfig:
    """Configuration for a capture session."""

    protocol: ProtocolConfig = field(default_factory=ProtocolConfig)
    thresholds: ClassificationThresholds = field(default_factory=ClassificationThresholds)
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    analyzer: AnalyzerConfig = field(default_factory=AnalyzerConfig)

    # Storage
    store: str = "jsonl"  # jsonl, http, none
    records_path: str = "data/emotion_records.jsonl"
    upload_endpoint: Optional[str] = None
    upload_api_key: Optional[str] = None

    # Display
    show_preview: bool = True
    result_display_seconds: float = 5.0

    # Loop
    idle_sleep_ms: float = 5.0


class UploadStatus(Enum):
    SAVED = "saved"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class SessionOutcome:
    """The record of a finished session and how its upload went."""
    record: BiomarkerRecord
    upload_status: UploadStatus
    record_id: Optional[str] = None
    error: Optional[BaseException] = None
    transitions: List[Transition] = field(default_factory=list)


def create_store(config: SessionConfig):
    """Build the record store named by `config.store`, or None."""
    if config.store == "jsonl":
        return JsonlRecordStore(config.records_path)
    if config.store == "http":
        if not config.upload_endpoint:
            raise ValueError("store=http requires upload_endpoint")
        return HttpRecordStore(config.upload_endpoint, api_key=config.upload_api_key)
    if config.store == "none":
        return None
    raise ValueError(f"Unknown store: {config.store}")


class CaptureSession:
    """
    Runs one guided capture session end to end.

    Collaborators can be injected (any object with the same methods),
    otherwise they are built from the config.

    Usage:
        with CaptureSession(config) as session:
            outcome = session.run("Ada", 36)
    """

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        classifier=None,
        camera=None,
        store=None,
        clock: Optional[SessionClock] = None,
        preview: Optional[PreviewWindow] = None,
    ):
        self.config = config or SessionConfig()
        self.classifier = classifier or BlendshapeAnalyzer(self.config.analyzer)
        self.camera = camera or WebcamCapture(self.config.capture)
        self.store = store if store is not None else create_store(self.config)
        self.clock = clock or SessionClock()
        if preview is None and self.config.show_preview:
            preview = PreviewWindow(PreviewConfig())
        self.preview = preview

        self.machine = CaptureStateMachine(
            self.config.protocol,
            BiomarkerAggregator(
                self.config.thresholds,
                latency_fraction=self.config.protocol.latency_target_fraction,
            ),
        )
        self._timestamps = DetectionTimestamps()
        self._transitions: List[Transition] = []
        self._last_sample_ms: Optional[float] = None
        self._last_countdown_ms: Optional[float] = None
        self._last_frame = None
        self._last_scores = None
        self._acquired = False
        self._aborted = False

    @property
    def stage(self) -> Stage:
        return self.machine.stage

    @property
    def transitions(self) -> List[Transition]:
        return list(self._transitions)

    # ========== Lifecycle ==========

    def _acquire(self) -> None:
        """Load the classifier and open the camera."""
        if self._acquired:
            return
        self.classifier.load()
        # A freshly loaded classifier starts a new timestamp sequence
        self._timestamps.reset()
        if not self.camera.start():
            self.classifier.close()
            raise AcquisitionError(f"Failed to start camera: {self.camera.last_error}")
        self._acquired = True

    def release(self) -> None:
        """Stop the camera, close the classifier and preview. Idempotent."""
        if self._acquired:
            self.camera.stop()
            self.classifier.close()
            self._acquired = False
        if self.preview is not None:
            self.preview.close()

    def start(self, name, age) -> Transition:
        """
        Validate the subject, acquire camera and classifier, enter BASELINE.

        Raises:
            InvalidSubjectError: Invalid input; nothing is acquired
            AcquisitionError: Camera or classifier failed; stage stays SETUP
            RuntimeError: If the session is not in SETUP; nothing is acquired
        """
        if self.machine.stage != Stage.SETUP:
            raise RuntimeError(f"Cannot start session from stage {self.machine.stage.value}")
        subject = validate_subject(name, age)
        self._acquire()

        now = self.clock.now_ms()
        self._transitions = []
        self._last_sample_ms = now
        self._last_countdown_ms = now
        self._aborted = False

        transition = self.machine.start(subject.name, subject.age, now)
        self._transitions.append(transition)
        return transition

    def restart(self) -> None:
        """Abandon the current session and return to SETUP."""
        self.machine.restart()
        self._last_frame = None
        self._last_scores = None
        if self.preview is not None:
            self.preview.reset_quit()

    # ========== Loop ==========

    def _sample(self, now: float) -> None:
        frame_data = self.camera.latest_frame()
        scores = None
        if frame_data is not None:
            _, frame = frame_data
            self._last_frame = frame
            scores = self.classifier.detect(frame, self._timestamps.next(now))
        self._last_scores = scores

        channels = ChannelScores.from_scores(scores) if scores else None
        self.machine.post(SampleTick(now_ms=now, channels=channels))

    def tick(self) -> bool:
        """
        Run one loop iteration.

        Returns:
            False once the session is no longer active (SETUP or RESULT)
        """
        if not self.machine.is_active:
            return False

        now = self.clock.now_ms()
        protocol = self.config.protocol

        if now - self._last_sample_ms >= protocol.sample_interval_ms:
            self._sample(now)
            self._last_sample_ms = now

        if now - self._last_countdown_ms >= protocol.countdown_interval_ms:
            self.machine.post(CountdownTick(now_ms=now))
            self._last_countdown_ms = now

        self._transitions.extend(self.machine.dispatch())

        if self.preview is not None and self.machine.is_active:
            readout = raw_readout(self._last_scores) if self._last_scores else None
            self.preview.show(self.preview.draw_status(self._last_frame, self.machine.countdown(now), readout))
            if self.preview.should_quit:
                logger.info("Session aborted by user")
                self._aborted = True
                self.restart()
                return False

        return self.machine.is_active

    def run(self, name, age) -> Optional[SessionOutcome]:
        """
        Run a full session for one subject.

        Returns:
            SessionOutcome, or None if the session was aborted
        """
        self.start(name, age)
        try:
            while self.tick():
                time.sleep(self.config.idle_sleep_ms / 1000.0)
        finally:
            self.release()

        if self._aborted or self.machine.record is None:
            return None

        outcome = self.persist(self.machine.record)
        if self.preview is not None and self.config.result_display_seconds > 0:
            self.preview.show(
                self.preview.draw_result(outcome.record),
                wait_ms=int(self.config.result_display_seconds * 1000),
            )
            self.preview.close()
        return outcome

    def persist(self, record: BiomarkerRecord) -> SessionOutcome:
        """
        Hand the record to the store once. A failure is reported on the
        outcome; the record itself is kept as computed.
        """
        if self.store is None:
            return SessionOutcome(record, UploadStatus.SKIPPED, transitions=self.transitions)

        try:
            record_id = self.store.save(record)
        except Exception as e:
            logger.error(f"Record upload failed: {e}")
            return SessionOutcome(record, UploadStatus.FAILED, error=e, transitions=self.transitions)

        return SessionOutcome(record, UploadStatus.SAVED, record_id=record_id, transitions=self.transitions)

    def __enter__(self) -> "CaptureSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()
