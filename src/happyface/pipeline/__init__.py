"""
Pipeline module tying camera, classifier, protocol and storage together.
"""

from .session import (
    CaptureSession,
    SessionConfig,
    SessionOutcome,
    UploadStatus,
    create_store,
)
from .preview import PreviewWindow, PreviewConfig

__all__ = [
    "CaptureSession",
    "SessionConfig",
    "SessionOutcome",
    "UploadStatus",
    "create_store",
    "PreviewWindow",
    "PreviewConfig",
]
