"""
Exception types raised by the capture session.
"""


class HappyFaceError(Exception):
    """Base class for session errors."""


class InvalidSubjectError(HappyFaceError, ValueError):
    """Subject identity failed validation; the session stays in setup."""


class AcquisitionError(HappyFaceError, RuntimeError):
    """Camera or classifier could not be started."""
