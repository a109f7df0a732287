"""
Calibration data models.

CalibrationTarget and CalibrationResult are immutable once built. SampleSet is
owned by a single calibration session thread and only grows through add().
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np


class CalibrationVariant(str, Enum):
    CHESSBOARD = "chessboard"
    CIRCLE_GRID = "circle_grid"
    ARUCO_GRID = "aruco_grid"


class SessionState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    SOLVING = "solving"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.COMPLETED, SessionState.FAILED, SessionState.CANCELLED)


class StartResult(str, Enum):
    ACCEPTED = "accepted"
    BUSY = "busy"


@dataclass(frozen=True)
class StartRequest:
    variant: CalibrationVariant = CalibrationVariant.CHESSBOARD
    rows: int = 6
    cols: int = 9
    required_samples: int = 10
    square_size: float = 1.0
    refine: bool = True
    # circle grid
    asymmetric: bool = False
    # aruco grid board
    marker_length: float = 1.0
    marker_separation: float = 0.2
    dictionary: str = "DICT_4X4_50"
    min_markers: int = 4
    # acceptance policy, 0 disables
    min_interval_s: float = 0.0
    min_shift_px: float = 0.0

    def validate(self) -> None:
        if int(self.rows) < 2 or int(self.cols) < 2:
            raise ValueError(f"grid must be at least 2x2, got {self.rows}x{self.cols}")
        if int(self.required_samples) < 1:
            raise ValueError("required_samples must be positive")
        if float(self.square_size) <= 0:
            raise ValueError("square_size must be positive")
        if self.variant == CalibrationVariant.ARUCO_GRID:
            if float(self.marker_length) <= 0 or float(self.marker_separation) < 0:
                raise ValueError("marker_length must be positive and marker_separation non-negative")
            if int(self.min_markers) < 1:
                raise ValueError("min_markers must be positive")
        if float(self.min_interval_s) < 0 or float(self.min_shift_px) < 0:
            raise ValueError("acceptance thresholds cannot be negative")


@dataclass(frozen=True)
class CalibrationTarget:
    rows: int
    cols: int
    object_points: np.ndarray  # (N, 3) float32, z == 0

    def __post_init__(self) -> None:
        pts = np.ascontiguousarray(self.object_points, dtype=np.float32).reshape(-1, 3)
        pts.setflags(write=False)
        object.__setattr__(self, "object_points", pts)

    @property
    def point_count(self) -> int:
        return int(self.object_points.shape[0])


class SampleSet:
    """Accepted (object points, image points) pairs, capped at `required`."""

    def __init__(self, required: int) -> None:
        self.required = max(1, int(required))
        self.object_points: List[np.ndarray] = []
        self.image_points: List[np.ndarray] = []

    def __len__(self) -> int:
        return len(self.image_points)

    @property
    def is_full(self) -> bool:
        return len(self) >= self.required

    def add(self, object_points: np.ndarray, image_points: np.ndarray) -> int:
        if self.is_full:
            raise ValueError(f"sample set already holds {self.required} samples")
        obj = np.asarray(object_points, dtype=np.float32).reshape(-1, 3)
        img = np.asarray(image_points, dtype=np.float32).reshape(-1, 1, 2)
        if obj.shape[0] != img.shape[0]:
            raise ValueError(f"point count mismatch: {obj.shape[0]} object vs {img.shape[0]} image")
        self.object_points.append(obj)
        self.image_points.append(img)
        return len(self)

    def clear(self) -> None:
        self.object_points.clear()
        self.image_points.clear()


@dataclass(frozen=True)
class CalibrationResult:
    camera_matrix: np.ndarray
    dist_coeffs: np.ndarray
    rms: float
    image_size: Tuple[int, int]
    sample_count: int
    per_view_errors: Tuple[float, ...] = field(default_factory=tuple)

    def summary(self) -> str:
        k = self.camera_matrix
        return (
            f"fx={k[0, 0]:.2f} fy={k[1, 1]:.2f} cx={k[0, 2]:.2f} cy={k[1, 2]:.2f} "
            f"rms={self.rms:.3f}px samples={self.sample_count}"
        )


@dataclass(frozen=True)
class SessionStatus:
    state: SessionState
    captured: int = 0
    required: int = 0
    result: Optional[CalibrationResult] = None
    reason: str = ""

    def message(self) -> str:
        if self.state == SessionState.CAPTURING:
            return f"Captured frames: {self.captured}/{self.required}"
        if self.state == SessionState.SOLVING:
            return f"Solving calibration from {self.captured} samples..."
        if self.state == SessionState.COMPLETED and self.result is not None:
            return f"Calibration complete: {self.result.summary()}"
        if self.state == SessionState.FAILED:
            return f"Calibration failed: {self.reason}"
        if self.state == SessionState.CANCELLED:
            return "Calibration cancelled"
        return "Idle"
