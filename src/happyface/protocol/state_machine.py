"""
Guided capture protocol.

Sequences baseline measurement, the smile and frown tasks and the reset
gates in front of each task:

    SETUP -> BASELINE -> RESET_SMILE -> SMILE -> RESET_FROWN -> FROWN -> RESULT

Sampling and countdown ticks are posted as events and applied by a single
dispatcher, so no tick ever mutates the session while another is being
handled.
"""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Deque, List, Optional, Union

from loguru import logger

from ..errors import InvalidSubjectError
from ..metrics.aggregator import BiomarkerAggregator, BiomarkerRecord, Subject
from ..vision.action_units import ChannelScores
from .reset_gate import GateConfig, GateStatus, ResetGate
from .samples import Sample, SampleBuffer
from .task_timer import TaskTimer


class Stage(Enum):
    SETUP = "setup"
    BASELINE = "baseline"
    RESET_SMILE = "reset_smile"
    SMILE = "smile"
    RESET_FROWN = "reset_frown"
    FROWN = "frown"
    RESULT = "result"


STAGE_ORDER = [
    Stage.SETUP,
    Stage.BASELINE,
    Stage.RESET_SMILE,
    Stage.SMILE,
    Stage.RESET_FROWN,
    Stage.FROWN,
    Stage.RESULT,
]

TIMED_STAGES = (Stage.BASELINE, Stage.SMILE, Stage.FROWN)
RESET_STAGES = (Stage.RESET_SMILE, Stage.RESET_FROWN)
IDLE_STAGES = (Stage.SETUP, Stage.RESULT)

INSTRUCTIONS = {
    Stage.SETUP: "Enter your name and age to begin",
    Stage.BASELINE: "Keep your face still and relaxed",
    Stage.RESET_SMILE: "Please relax your face...",
    Stage.SMILE: "Smile broadly, showing your teeth!",
    Stage.RESET_FROWN: "Please relax your face...",
    Stage.FROWN: "Frown as hard as you can!",
    Stage.RESULT: "Done",
}

MIN_AGE = 1
MAX_AGE = 120


@dataclass
class ProtocolConfig:
    """Timing and threshold constants of the capture protocol."""
    task_duration_ms: float = 5000.0
    relax_threshold: float = 0.3
    reset_stable_ms: float = 1000.0
    reset_timeout_ms: float = 4000.0
    blink_threshold: float = 0.5
    blink_debounce_ms: float = 200.0
    latency_target_fraction: float = 0.5
    sample_interval_ms: float = 33.0  # ~30 fps
    countdown_interval_ms: float = 100.0  # 10 Hz

    def gate_config(self) -> GateConfig:
        return GateConfig(
            relax_threshold=self.relax_threshold,
            stable_ms=self.reset_stable_ms,
            timeout_ms=self.reset_timeout_ms,
        )


@dataclass(frozen=True)
class SampleTick:
    """One classifier reading; `channels` is None when no face was detected."""
    now_ms: float
    channels: Optional[ChannelScores] = None


@dataclass(frozen=True)
class CountdownTick:
    now_ms: float


Event = Union[SampleTick, CountdownTick]


@dataclass(frozen=True)
class Transition:
    """A stage change and what caused it (timer, gate outcome, start)."""
    from_stage: Stage
    to_stage: Stage
    at_ms: float
    reason: str


def validate_subject(name, age) -> Subject:
    """
    Validate session-start input.

    Args:
        name: Subject name, surrounding whitespace is ignored
        age: Integer age in [1, 120]; integral strings are accepted

    Returns:
        Subject

    Raises:
        InvalidSubjectError: If either field is invalid
    """
    clean_name = name.strip() if isinstance(name, str) else ""
    if not clean_name:
        raise InvalidSubjectError("Name must be a non-empty string")

    if isinstance(age, bool):
        raise InvalidSubjectError(f"Invalid age: {age!r}")
    if isinstance(age, str):
        try:
            age = int(age.strip(), 10)
        except ValueError:
            raise InvalidSubjectError(f"Invalid age: {age!r}") from None
    if isinstance(age, float):
        if not age.is_integer():
            raise InvalidSubjectError(f"Age must be a whole number: {age!r}")
        age = int(age)
    if not isinstance(age, int) or not MIN_AGE <= age <= MAX_AGE:
        raise InvalidSubjectError(f"Age must be between {MIN_AGE} and {MAX_AGE}: {age!r}")

    return Subject(name=clean_name, age=age)


@dataclass
class SessionState:
    """Mutable aggregate of one session, owned by the state machine."""
    config: ProtocolConfig = field(default_factory=ProtocolConfig)
    stage: Stage = Stage.SETUP
    subject: Optional[Subject] = None
    blink_event_count: int = 0
    blink_event_timestamps: List[float] = field(default_factory=list)
    smile_task_started_at_ms: Optional[float] = None
    frown_task_started_at_ms: Optional[float] = None
    record: Optional[BiomarkerRecord] = None

    def __post_init__(self):
        self.baseline_samples = SampleBuffer(Stage.BASELINE, lambda: self.stage == Stage.BASELINE)
        self.smile_samples = SampleBuffer(Stage.SMILE, lambda: self.stage == Stage.SMILE)
        self.frown_samples = SampleBuffer(Stage.FROWN, lambda: self.stage == Stage.FROWN)
        self.smile_gate = ResetGate("smile", self.config.gate_config())
        self.frown_gate = ResetGate("frown", self.config.gate_config())
        self.timer = TaskTimer(self.config.task_duration_ms)


class CaptureStateMachine:
    """
    Runs the guided capture protocol for a single subject.

    Usage:
        machine = CaptureStateMachine()
        machine.start("Ada", 36, now_ms=clock.now_ms())
        machine.post(SampleTick(now_ms, channels))
        machine.post(CountdownTick(now_ms))
        transitions = machine.dispatch()

    When the frown task completes the record is computed and available
    as `machine.record`; listeners registered with `on_result` receive it.
    """

    def __init__(
        self,
        config: Optional[ProtocolConfig] = None,
        aggregator: Optional[BiomarkerAggregator] = None,
    ):
        self.config = config or ProtocolConfig()
        self.aggregator = aggregator or BiomarkerAggregator(
            latency_fraction=self.config.latency_target_fraction
        )
        self._state = SessionState(config=self.config)
        self._events: Deque[Event] = deque()
        self._result_listeners: List[Callable[[BiomarkerRecord], None]] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def stage(self) -> Stage:
        return self._state.stage

    @property
    def record(self) -> Optional[BiomarkerRecord]:
        return self._state.record

    @property
    def is_active(self) -> bool:
        """True while the session is between SETUP and RESULT."""
        return self._state.stage not in IDLE_STAGES

    def on_result(self, listener: Callable[[BiomarkerRecord], None]) -> None:
        self._result_listeners.append(listener)

    # ========== Session control ==========

    def start(self, name, age, now_ms: float) -> Transition:
        """
        Validate the subject and enter the baseline stage.

        Raises:
            InvalidSubjectError: Invalid name or age; stage stays SETUP
            RuntimeError: If the session is not in SETUP
        """
        if self._state.stage != Stage.SETUP:
            raise RuntimeError(f"Cannot start session from stage {self._state.stage.value}")

        subject = validate_subject(name, age)
        self._state.subject = subject
        self._state.baseline_samples.clear()
        logger.info(f"Session started for {subject.name} (age {subject.age})")
        return self._advance(Stage.BASELINE, now_ms, "start")

    def restart(self) -> None:
        """Return to SETUP, discarding every session field and pending event."""
        self._state.timer.cancel()
        self._events.clear()
        self._state = SessionState(config=self.config)
        logger.info("Session restarted")

    # ========== Event handling ==========

    def post(self, event: Event) -> None:
        self._events.append(event)

    def dispatch(self) -> List[Transition]:
        """Apply all queued events in order, returning resulting transitions."""
        transitions = []
        while self._events:
            event = self._events.popleft()
            if not self.is_active:
                # Stale ticks after RESULT or a restart are dropped
                continue
            if isinstance(event, SampleTick):
                transition = self._on_sample(event)
            else:
                transition = self._on_countdown(event)
            if transition is not None:
                transitions.append(transition)
        return transitions

    def handle(self, event: Event) -> List[Transition]:
        """Post a single event and dispatch immediately."""
        self.post(event)
        return self.dispatch()

    def _on_sample(self, tick: SampleTick) -> Optional[Transition]:
        state = self._state
        stage = state.stage
        now = tick.now_ms
        channels = tick.channels

        if stage in RESET_STAGES:
            gate = state.smile_gate if stage == Stage.RESET_SMILE else state.frown_gate
            if channels is None:
                status = gate.expire(now)
            else:
                score = channels.smile if stage == Stage.RESET_SMILE else channels.frown
                status = gate.evaluate(score, now)
            if status == GateStatus.STILL_WAITING:
                return None
            next_stage = Stage.SMILE if stage == Stage.RESET_SMILE else Stage.FROWN
            return self._advance(next_stage, now, status.value)

        if channels is None:
            return None

        if stage == Stage.BASELINE:
            state.baseline_samples.append(
                Sample(primary_score=channels.smile, secondary_score=channels.frown, captured_at_ms=now)
            )
        elif stage == Stage.SMILE:
            state.smile_samples.append(
                Sample(primary_score=channels.smile, secondary_score=channels.symmetry, captured_at_ms=now)
            )
            self._track_blink(channels.blink, now)
        elif stage == Stage.FROWN:
            state.frown_samples.append(Sample(primary_score=channels.frown, captured_at_ms=now))
            self._track_blink(channels.blink, now)
        return None

    def _on_countdown(self, tick: CountdownTick) -> Optional[Transition]:
        state = self._state
        if state.stage not in TIMED_STAGES:
            return None
        if not state.timer.poll(tick.now_ms):
            return None

        next_stage = {
            Stage.BASELINE: Stage.RESET_SMILE,
            Stage.SMILE: Stage.RESET_FROWN,
            Stage.FROWN: Stage.RESULT,
        }[state.stage]
        return self._advance(next_stage, tick.now_ms, "timer")

    def _track_blink(self, blink_score: float, now_ms: float) -> None:
        """Count a blink unless one was already counted within the debounce window."""
        state = self._state
        if blink_score <= self.config.blink_threshold:
            return
        timestamps = state.blink_event_timestamps
        if timestamps and now_ms - timestamps[-1] < self.config.blink_debounce_ms:
            return
        timestamps.append(now_ms)
        state.blink_event_count += 1
        logger.debug(f"Blink #{state.blink_event_count} at {now_ms:.0f}ms")

    # ========== Transitions ==========

    def _advance(self, next_stage: Stage, now_ms: float, reason: str) -> Transition:
        state = self._state
        previous = state.stage
        if STAGE_ORDER.index(next_stage) != STAGE_ORDER.index(previous) + 1:
            raise RuntimeError(f"Illegal transition {previous.value} -> {next_stage.value}")

        # Leaving a stage always cancels its countdown
        state.timer.cancel()
        state.stage = next_stage

        if next_stage == Stage.BASELINE:
            state.timer.start(now_ms)
        elif next_stage == Stage.RESET_SMILE:
            state.smile_gate.enter(now_ms)
        elif next_stage == Stage.SMILE:
            state.smile_samples.clear()
            state.smile_task_started_at_ms = now_ms
            state.timer.start(now_ms)
        elif next_stage == Stage.RESET_FROWN:
            state.frown_gate.enter(now_ms)
        elif next_stage == Stage.FROWN:
            state.frown_samples.clear()
            state.frown_task_started_at_ms = now_ms
            state.timer.start(now_ms)
        elif next_stage == Stage.RESULT:
            self._finish()

        logger.info(f"Stage {previous.value} -> {next_stage.value} ({reason}) at {now_ms:.0f}ms")
        return Transition(from_stage=previous, to_stage=next_stage, at_ms=now_ms, reason=reason)

    def _finish(self) -> None:
        state = self._state
        state.record = self.aggregator.aggregate(
            subject=state.subject,
            baseline_samples=state.baseline_samples.all(),
            smile_samples=state.smile_samples.all(),
            frown_samples=state.frown_samples.all(),
            smile_started_at_ms=state.smile_task_started_at_ms or 0.0,
            frown_started_at_ms=state.frown_task_started_at_ms or 0.0,
            blink_count=state.blink_event_count,
        )
        for listener in self._result_listeners:
            listener(state.record)

    # ========== Display ==========

    def instruction(self) -> str:
        return INSTRUCTIONS[self._state.stage]

    def countdown(self, now_ms: float) -> dict:
        """Countdown display values for the current stage."""
        timer = self._state.timer
        timed = self._state.stage in TIMED_STAGES
        return {
            "stage": self._state.stage.value,
            "instruction": self.instruction(),
            "remaining_s": timer.remaining_seconds(now_ms) if timed else None,
            "progress": timer.progress(now_ms) if timed else 0.0,
        }
