"""
Acceptance policy for detected samples.

Count is the only hard rule of a session; this adds optional diversity on top:
a minimum time between accepted samples and a minimum image-space shift of the
pattern centroid away from every sample accepted so far. Both default to 0
(disabled).
"""
from __future__ import annotations

import math
import time
from typing import List, Optional, Tuple

from .detectors import Detection
from .models import StartRequest


class AcceptancePolicy:
    def __init__(self, min_interval_s: float = 0.0, min_shift_px: float = 0.0) -> None:
        self.min_interval_s = max(0.0, float(min_interval_s))
        self.min_shift_px = max(0.0, float(min_shift_px))
        self._last_accept: Optional[float] = None
        self._centroids: List[Tuple[float, float]] = []
        self.rejected = 0

    @classmethod
    def from_request(cls, req: StartRequest) -> "AcceptancePolicy":
        return cls(req.min_interval_s, req.min_shift_px)

    @property
    def enabled(self) -> bool:
        return self.min_interval_s > 0 or self.min_shift_px > 0

    def allows(self, detection: Detection, now: Optional[float] = None) -> bool:
        now = time.monotonic() if now is None else float(now)
        if self._last_accept is not None and (now - self._last_accept) < self.min_interval_s:
            self.rejected += 1
            return False
        if self.min_shift_px > 0:
            cx, cy = detection.centroid()
            for px, py in self._centroids:
                if math.hypot(cx - px, cy - py) < self.min_shift_px:
                    self.rejected += 1
                    return False
        return True

    def record(self, detection: Detection, now: Optional[float] = None) -> None:
        self._last_accept = time.monotonic() if now is None else float(now)
        self._centroids.append(detection.centroid())

    def reset(self) -> None:
        self._last_accept = None
        self._centroids.clear()
        self.rejected = 0
