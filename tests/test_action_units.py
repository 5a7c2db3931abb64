import pytest

from happyface.vision.action_units import (
    ChannelScores,
    blink_intensity,
    frown_intensity,
    raw_readout,
    smile_intensity,
    smile_symmetry,
)


def test_two_sided_averages():
    scores = {"mouthSmileLeft": 0.6, "mouthSmileRight": 0.4, "eyeBlinkLeft": 1.0}
    assert smile_intensity(scores) == pytest.approx(0.5)
    assert blink_intensity(scores) == pytest.approx(0.5)


def test_frown_is_max_of_three_components():
    scores = {
        "browDownLeft": 0.2,
        "browDownRight": 0.4,
        "browInnerUp": 0.25,
        "mouthFrownLeft": 0.5,
        "mouthFrownRight": 0.1,
    }
    assert frown_intensity(scores) == pytest.approx(0.3)
    assert frown_intensity({"browInnerUp": 0.7}) == pytest.approx(0.7)


def test_symmetry_bounds():
    assert smile_symmetry({"mouthSmileLeft": 0.5, "mouthSmileRight": 0.5}) == pytest.approx(1.0)
    assert smile_symmetry({"mouthSmileLeft": 0.9, "mouthSmileRight": 0.0}) == pytest.approx(0.0, abs=1e-5)
    # Both zero: epsilon keeps it defined
    assert smile_symmetry({}) == pytest.approx(1.0)


def test_missing_names_read_as_zero():
    channels = ChannelScores.from_scores({})
    assert channels.smile == 0.0
    assert channels.frown == 0.0
    assert channels.blink == 0.0


def test_raw_readout():
    readout = raw_readout({"mouthSmileLeft": 0.3, "mouthSmileRight": 0.2, "browInnerUp": 0.4})
    assert readout["smile_sum"] == pytest.approx(0.5)
    assert readout["frown"] == pytest.approx(0.4)
