from __future__ import annotations

import time
from dataclasses import dataclass

import cv2  # type: ignore
import numpy as np


@dataclass(frozen=True)
class Frame:
    """One captured image, RGBA, read-only after construction."""

    index: int
    width: int
    height: int
    pixels: np.ndarray  # (height, width, 4) uint8
    timestamp: float = 0.0

    def __post_init__(self) -> None:
        px = self.pixels
        if px.dtype != np.uint8 or px.ndim != 3 or px.shape != (self.height, self.width, 4):
            raise ValueError(f"expected ({self.height}, {self.width}, 4) uint8 pixels, got {px.shape} {px.dtype}")
        if px.flags.writeable:
            px = px.copy() if not px.flags.owndata else px
            px.setflags(write=False)
            object.__setattr__(self, "pixels", px)

    def gray(self) -> np.ndarray:
        return cv2.cvtColor(self.pixels, cv2.COLOR_RGBA2GRAY)


def to_display(bgr: np.ndarray) -> np.ndarray:
    """BGR (or grayscale) camera image -> new contiguous RGBA array."""
    if bgr.ndim == 2:
        return cv2.cvtColor(bgr, cv2.COLOR_GRAY2RGBA)
    if bgr.shape[2] == 4:
        return cv2.cvtColor(bgr, cv2.COLOR_BGRA2RGBA)
    return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGBA)


def make_frame(index: int, bgr: np.ndarray) -> Frame:
    rgba = to_display(bgr)
    h, w = rgba.shape[:2]
    return Frame(index=index, width=int(w), height=int(h), pixels=rgba, timestamp=time.monotonic())
