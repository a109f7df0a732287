"""
Exception types shared by the capture pipeline and calibration sessions.
"""
from __future__ import annotations


class LiveCalibratorError(RuntimeError):
    pass


class CameraError(LiveCalibratorError):
    """Camera could not be opened. Fatal for the whole pipeline."""


class CameraReadError(CameraError):
    """A read failed on an already opened camera."""


class CaptureError(LiveCalibratorError):
    """Raised at the capture thread join point when the loop died."""


class CalibrationError(LiveCalibratorError):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason
