from __future__ import annotations

from typing import Optional

import numpy as np

from LiveCalibrator.capture.channel import LatestChannel
from LiveCalibrator.capture.frame import Frame

DEFAULT_TICK_MARGIN_FPS = 10.0


def tick_interval_ms(fps: float, margin: float = DEFAULT_TICK_MARGIN_FPS) -> int:
    """UI timer period: poll a little faster than the camera delivers."""
    rate = max(1.0, float(fps) + float(margin))
    return max(1, int(round(1000.0 / rate)))


class RenderBridge:
    """
    Pulled by the UI tick. Copies the newest frame into one reusable RGBA buffer.

    pull() never blocks; with nothing new it hands back the previous buffer
    (all zeros before the first frame).
    """

    def __init__(self, channel: LatestChannel[Frame], width: int, height: int) -> None:
        self.channel = channel
        self.buffer = np.zeros((max(1, int(height)), max(1, int(width)), 4), dtype=np.uint8)
        self.fresh = False
        self.last_index: Optional[int] = None
        self.frames_rendered = 0

    def pull(self) -> np.ndarray:
        frame = self.channel.try_recv()
        if frame is None:
            self.fresh = False
            return self.buffer
        if self.buffer.shape != frame.pixels.shape:
            self.buffer = np.empty_like(frame.pixels)
        np.copyto(self.buffer, frame.pixels)
        self.fresh = True
        self.last_index = frame.index
        self.frames_rendered += 1
        return self.buffer

    @property
    def width(self) -> int:
        return int(self.buffer.shape[1])

    @property
    def height(self) -> int:
        return int(self.buffer.shape[0])
