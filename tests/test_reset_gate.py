from happyface.protocol.reset_gate import GateConfig, GatePhase, GateStatus, ResetGate


def make_gate():
    gate = ResetGate("smile", GateConfig(relax_threshold=0.3, stable_ms=1000, timeout_ms=4000))
    gate.enter(0.0)
    return gate


def test_relaxed_after_continuous_stable_window():
    gate = make_gate()
    assert gate.evaluate(0.1, 100) == GateStatus.STILL_WAITING
    assert gate.state.phase == GatePhase.RELAXING
    assert gate.state.relaxed_since_ms == 100
    assert gate.evaluate(0.1, 1099) == GateStatus.STILL_WAITING
    assert gate.evaluate(0.1, 1100) == GateStatus.RELAXED_AND_STABLE


def test_rise_above_threshold_resets_streak():
    gate = make_gate()
    gate.evaluate(0.1, 0)
    gate.evaluate(0.1, 900)
    assert gate.evaluate(0.35, 950) == GateStatus.STILL_WAITING
    assert gate.state.phase == GatePhase.IDLE
    assert gate.state.relaxed_since_ms is None
    # Streak restarts at the next sub-threshold reading
    assert gate.evaluate(0.1, 1000) == GateStatus.STILL_WAITING
    assert gate.evaluate(0.1, 1999) == GateStatus.STILL_WAITING
    assert gate.evaluate(0.1, 2000) == GateStatus.RELAXED_AND_STABLE


def test_threshold_value_itself_is_not_relaxed():
    gate = make_gate()
    assert gate.evaluate(0.3, 0) == GateStatus.STILL_WAITING
    assert gate.state.phase == GatePhase.IDLE


def test_times_out_regardless_of_score():
    gate = make_gate()
    assert gate.evaluate(0.9, 3999) == GateStatus.STILL_WAITING
    assert gate.evaluate(0.9, 4000) == GateStatus.TIMED_OUT
    assert gate.state.phase == GatePhase.TIMED_OUT


def test_timeout_wins_over_stable_relaxation():
    gate = make_gate()
    gate.evaluate(0.1, 3500)
    assert gate.evaluate(0.1, 4500) == GateStatus.TIMED_OUT


def test_expire_without_reading_keeps_streak():
    gate = make_gate()
    gate.evaluate(0.1, 200)
    assert gate.expire(600) == GateStatus.STILL_WAITING
    assert gate.state.relaxed_since_ms == 200
    assert gate.evaluate(0.1, 1200) == GateStatus.RELAXED_AND_STABLE


def test_expire_times_out():
    gate = make_gate()
    assert gate.expire(4000) == GateStatus.TIMED_OUT
