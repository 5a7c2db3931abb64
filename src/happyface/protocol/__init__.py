"""
Guided capture protocol: sample buffers, reset gates, task timers and the
stage state machine.
"""

from .samples import Sample, SampleBuffer
from .reset_gate import ResetGate, GateConfig, GateStatus, GatePhase, GateState
from .task_timer import TaskTimer
from .clock import SessionClock, DetectionTimestamps
from .state_machine import (
    CaptureStateMachine,
    ProtocolConfig,
    SessionState,
    Stage,
    SampleTick,
    CountdownTick,
    Transition,
    validate_subject,
)

__all__ = [
    "Sample",
    "SampleBuffer",
    "ResetGate",
    "GateConfig",
    "GateStatus",
    "GatePhase",
    "GateState",
    "TaskTimer",
    "SessionClock",
    "DetectionTimestamps",
    "CaptureStateMachine",
    "ProtocolConfig",
    "SessionState",
    "Stage",
    "SampleTick",
    "CountdownTick",
    "Transition",
    "validate_subject",
]
