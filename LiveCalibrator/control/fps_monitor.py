from __future__ import annotations

import time
from collections import deque
from typing import Deque, Optional


class FPSMonitor:
    """Rate of fresh frames seen by the UI tick, averaged over the last `window` frames."""

    def __init__(self, window: int = 60) -> None:
        self.window = max(2, int(window))
        self._stamps: Deque[float] = deque(maxlen=self.window)

    def tick(self, now: Optional[float] = None) -> None:
        self._stamps.append(time.perf_counter() if now is None else float(now))

    def reset(self) -> None:
        self._stamps.clear()

    def fps(self) -> float:
        if len(self._stamps) < 2:
            return 0.0
        span = self._stamps[-1] - self._stamps[0]
        if span <= 0:
            return 0.0
        return (len(self._stamps) - 1) / span
