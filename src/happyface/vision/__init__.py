"""
Vision module: webcam capture, blendshape classification and the channel
scores the capture protocol consumes.
"""

from .action_units import ChannelScores, raw_readout
from .webcam_capture import WebcamCapture, CaptureConfig
from .blendshape_analyzer import BlendshapeAnalyzer, AnalyzerConfig

__all__ = [
    "ChannelScores",
    "raw_readout",
    "WebcamCapture",
    "CaptureConfig",
    "BlendshapeAnalyzer",
    "AnalyzerConfig",
]
