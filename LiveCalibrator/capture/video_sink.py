"""
Best-effort video archive on top of cv2.VideoWriter.

Write failures are logged and counted but never raised: archival must not stop
capture.
"""
from __future__ import annotations

import logging
import os
from typing import Optional, Tuple

import cv2  # type: ignore

logger = logging.getLogger(__name__)


class VideoSink:
    def __init__(self, path: str, fps: float, size: Tuple[int, int], fourcc: str = "mp4v") -> None:
        self.path = path
        self.fps = float(fps)
        self.size = (int(size[0]), int(size[1]))
        self.fourcc = fourcc
        self.frames_written = 0
        self.failures = 0
        self._writer: Optional[object] = None

    def open(self) -> bool:
        directory = os.path.dirname(self.path)
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)
            writer = cv2.VideoWriter(self.path, cv2.VideoWriter_fourcc(*self.fourcc), self.fps, self.size, True)
        except (OSError, cv2.error) as e:
            logger.warning("Video sink %s could not be created: %s", self.path, e)
            return False
        if not writer.isOpened():
            logger.warning("Video sink %s did not open (fourcc %s); recording disabled", self.path, self.fourcc)
            writer.release()
            return False
        self._writer = writer
        logger.info("Recording to %s at %.1f FPS, %dx%d", self.path, self.fps, self.size[0], self.size[1])
        return True

    @property
    def is_open(self) -> bool:
        return self._writer is not None

    def write(self, frame_bgr) -> bool:
        if self._writer is None:
            return False
        h, w = frame_bgr.shape[:2]
        if w <= 0 or h <= 0:
            return False
        if (w, h) != self.size:
            frame_bgr = cv2.resize(frame_bgr, self.size)
        try:
            self._writer.write(frame_bgr)  # type: ignore[attr-defined]
        except cv2.error as e:
            self.failures += 1
            logger.warning("Video sink write failed (%d so far): %s", self.failures, e)
            return False
        self.frames_written += 1
        return True

    def close(self) -> None:
        if self._writer is not None:
            try:
                self._writer.release()  # type: ignore[attr-defined]
            finally:
                self._writer = None
                logger.info("Video sink closed after %d frames", self.frames_written)
