"""
Reset gate: waits for the face to return to, and stay in, a neutral position.

Before each expression task the relevant channel (smile or frown) has to
stay below the relax threshold for a continuous window. A timeout forces
progression for subjects who cannot fully relax.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from loguru import logger


class GateStatus(Enum):
    """What a single gate evaluation reports."""
    STILL_WAITING = "still-waiting"
    RELAXED_AND_STABLE = "relaxed-and-stable"
    TIMED_OUT = "timed-out"


class GatePhase(Enum):
    IDLE = "idle"
    RELAXING = "relaxing"
    SATISFIED = "satisfied"
    TIMED_OUT = "timed-out"


@dataclass(frozen=True)
class GateState:
    """Tagged gate state; `relaxed_since_ms` is only set while RELAXING."""
    phase: GatePhase
    entered_at_ms: float
    relaxed_since_ms: Optional[float] = None

    @classmethod
    def idle(cls, entered_at_ms: float) -> "GateState":
        return cls(GatePhase.IDLE, entered_at_ms)

    def relaxing(self, since_ms: float) -> "GateState":
        return GateState(GatePhase.RELAXING, self.entered_at_ms, since_ms)

    def back_to_idle(self) -> "GateState":
        return GateState(GatePhase.IDLE, self.entered_at_ms)

    @property
    def is_done(self) -> bool:
        return self.phase in (GatePhase.SATISFIED, GatePhase.TIMED_OUT)


@dataclass
class GateConfig:
    """Thresholds for the reset gate."""
    relax_threshold: float = 0.3
    stable_ms: float = 1000.0
    timeout_ms: float = 4000.0


class ResetGate:
    """
    Debounced neutral-face detector for one channel.

    Call `enter()` when the reset stage starts and `evaluate()` on every
    sampling tick with the live channel score.
    """

    def __init__(self, channel: str, config: Optional[GateConfig] = None):
        self.channel = channel
        self.config = config or GateConfig()
        self._state: Optional[GateState] = None

    @property
    def state(self) -> Optional[GateState]:
        return self._state

    def enter(self, now_ms: float) -> None:
        self._state = GateState.idle(now_ms)
        logger.debug(f"Reset gate [{self.channel}] entered at {now_ms:.0f}ms")

    def expire(self, now_ms: float) -> GateStatus:
        """
        Timeout-only check for ticks without a reading.

        A missing reading neither starts nor breaks the relax streak.
        """
        if self._state is None:
            self.enter(now_ms)
        state = self._state
        if state.phase == GatePhase.SATISFIED:
            return GateStatus.RELAXED_AND_STABLE
        if state.phase == GatePhase.TIMED_OUT:
            return GateStatus.TIMED_OUT
        if now_ms - state.entered_at_ms >= self.config.timeout_ms:
            self._state = GateState(GatePhase.TIMED_OUT, state.entered_at_ms)
            logger.info(f"Reset gate [{self.channel}] timed out without a reading")
            return GateStatus.TIMED_OUT
        return GateStatus.STILL_WAITING

    def evaluate(self, score: float, now_ms: float) -> GateStatus:
        """
        Evaluate one reading.

        Args:
            score: Live score of the gated channel, 0-1
            now_ms: Monotonic time of the reading

        Returns:
            GateStatus for this tick
        """
        if self._state is None:
            self.enter(now_ms)

        state = self._state
        if state.phase == GatePhase.SATISFIED:
            return GateStatus.RELAXED_AND_STABLE
        if state.phase == GatePhase.TIMED_OUT:
            return GateStatus.TIMED_OUT

        if now_ms - state.entered_at_ms >= self.config.timeout_ms:
            self._state = GateState(GatePhase.TIMED_OUT, state.entered_at_ms)
            logger.info(f"Reset gate [{self.channel}] timed out, forcing progression")
            return GateStatus.TIMED_OUT

        if score < self.config.relax_threshold:
            if state.phase == GatePhase.IDLE:
                state = state.relaxing(now_ms)
            self._state = state
            if now_ms - state.relaxed_since_ms >= self.config.stable_ms:
                self._state = GateState(GatePhase.SATISFIED, state.entered_at_ms)
                logger.info(f"Reset gate [{self.channel}] relaxed and stable")
                return GateStatus.RELAXED_AND_STABLE
            return GateStatus.STILL_WAITING

        # Any rise above threshold cancels the streak
        if state.phase == GatePhase.RELAXING:
            logger.debug(f"Reset gate [{self.channel}] streak broken (score={score:.3f})")
        self._state = state.back_to_idle()
        return GateStatus.STILL_WAITING
