"""
Channel scores derived from the classifier's named action-unit map.

The classifier reports blendshape-style names (mouthSmileLeft, browDownRight,
...) with scores in [0, 1]. Names missing from the map read as 0.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Mapping

SYMMETRY_EPSILON = 1e-6


def _score(scores: Mapping[str, float], name: str) -> float:
    return float(scores.get(name, 0.0) or 0.0)


def smile_intensity(scores: Mapping[str, float]) -> float:
    """Mean of the two mouth-corner smile scores."""
    return (_score(scores, "mouthSmileLeft") + _score(scores, "mouthSmileRight")) / 2


def frown_intensity(scores: Mapping[str, float]) -> float:
    """
    Composite frown score: the strongest of lowered brows, drawn-together
    brows and downturned mouth corners.
    """
    brow_down = (_score(scores, "browDownLeft") + _score(scores, "browDownRight")) / 2
    brow_inner_up = _score(scores, "browInnerUp")
    mouth_frown = (_score(scores, "mouthFrownLeft") + _score(scores, "mouthFrownRight")) / 2
    return max(brow_down, brow_inner_up, mouth_frown)


def blink_intensity(scores: Mapping[str, float]) -> float:
    return (_score(scores, "eyeBlinkLeft") + _score(scores, "eyeBlinkRight")) / 2


def smile_symmetry(scores: Mapping[str, float], epsilon: float = SYMMETRY_EPSILON) -> float:
    """1 - |left - right| / (left + right + eps), clamped to >= 0."""
    left = _score(scores, "mouthSmileLeft")
    right = _score(scores, "mouthSmileRight")
    asymmetry = abs(left - right) / (left + right + epsilon)
    return max(0.0, 1.0 - asymmetry)


@dataclass(frozen=True)
class ChannelScores:
    """The four channels the capture protocol consumes from one reading."""
    smile: float = 0.0
    frown: float = 0.0
    blink: float = 0.0
    symmetry: float = 0.0

    @classmethod
    def from_scores(cls, scores: Mapping[str, float]) -> "ChannelScores":
        return cls(
            smile=smile_intensity(scores),
            frown=frown_intensity(scores),
            blink=blink_intensity(scores),
            symmetry=smile_symmetry(scores),
        )

    def to_dict(self) -> dict:
        return asdict(self)


def raw_readout(scores: Mapping[str, float]) -> Dict[str, float]:
    """Raw smile pair and frown components, for a live debug display."""
    left = _score(scores, "mouthSmileLeft")
    right = _score(scores, "mouthSmileRight")
    brow_down = (_score(scores, "browDownLeft") + _score(scores, "browDownRight")) / 2
    brow_inner_up = _score(scores, "browInnerUp")
    mouth_frown = (_score(scores, "mouthFrownLeft") + _score(scores, "mouthFrownRight")) / 2
    return {
        "smile_left": left,
        "smile_right": right,
        "smile_sum": left + right,
        "brow_down": brow_down,
        "brow_inner_up": brow_inner_up,
        "mouth_frown": mouth_frown,
        "frown": max(brow_down, brow_inner_up, mouth_frown),
    }
