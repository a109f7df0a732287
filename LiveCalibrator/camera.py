"""
Camera abstraction using OpenCV VideoCapture.

- Opens one camera index (default 0); failure to open is fatal
- Reports the device's native width, height and nominal FPS after opening
- read() blocks for one BGR frame and raises on failure (no retry: a broken
  handle does not heal itself)
- close() releases the handle and is safe to call twice
"""
from __future__ import annotations

import logging
import math
import os
from typing import Optional

try:
    import cv2  # type: ignore
except Exception:  # pragma: no cover
    cv2 = None

from LiveCalibrator.core.errors import CameraError, CameraReadError

logger = logging.getLogger(__name__)

DEFAULT_FPS = 30.0

_BACKENDS = {
    "dshow": "CAP_DSHOW",
    "msmf": "CAP_MSMF",
    "v4l2": "CAP_V4L2",
    "avfoundation": "CAP_AVFOUNDATION",
    "any": "CAP_ANY",
}


def backend_from_env() -> Optional[int]:
    """Backend forced via LIVECALIB_CAMERA_BACKEND=dshow|msmf|v4l2|avfoundation|any."""
    preferred = (os.environ.get("LIVECALIB_CAMERA_BACKEND", "") or "").strip().lower()
    if not preferred or cv2 is None:
        return None
    attr = _BACKENDS.get(preferred)
    if attr is None:
        logger.warning("Unknown camera backend %r, using OpenCV default", preferred)
        return None
    return getattr(cv2, attr, None)


class Camera:
    def __init__(self, index: int = 0, backend: Optional[int] = None) -> None:
        self.index = int(index)
        self.backend = backend
        self.width = 0
        self.height = 0
        self.fps = DEFAULT_FPS
        self.cap = None

    def open(self) -> None:
        if cv2 is None:
            raise CameraError("OpenCV (cv2) is not installed.")
        backend = self.backend if self.backend is not None else backend_from_env()
        if backend is None:
            backend = getattr(cv2, "CAP_ANY", 0)
        cap = cv2.VideoCapture(self.index, backend)
        if cap is None or not cap.isOpened():
            if cap is not None:
                cap.release()
            raise CameraError(f"Unable to open camera {self.index} (backend {backend}).")
        self.cap = cap
        self.width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        fps = float(cap.get(cv2.CAP_PROP_FPS) or 0.0)
        # some drivers report 0 or NaN
        self.fps = fps if math.isfinite(fps) and fps > 0 else DEFAULT_FPS
        logger.info("Camera %d: width %d, height %d, FPS: %.1f", self.index, self.width, self.height, self.fps)

    def read(self):
        """Return one BGR numpy array. Raises CameraReadError on failure."""
        if self.cap is None:
            raise CameraReadError("Camera is not open.")
        ok, frame = self.cap.read()
        if not ok or frame is None or getattr(frame, "size", 0) == 0:
            raise CameraReadError(f"Failed to read a frame from camera {self.index}.")
        return frame

    def close(self) -> None:
        if self.cap is not None:
            try:
                self.cap.release()
            finally:
                self.cap = None
                logger.debug("Camera %d released", self.index)

    @property
    def is_open(self) -> bool:
        return bool(self.cap is not None and getattr(self.cap, "isOpened", lambda: False)())

    @property
    def frame_interval(self) -> float:
        return 1.0 / float(self.fps if self.fps > 0 else DEFAULT_FPS)
