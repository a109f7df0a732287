from __future__ import annotations

import threading
import time

import numpy as np
import pytest

from LiveCalibrator.calibration.detectors import Detection, PatternDetector, grid_points
from LiveCalibrator.calibration.models import CalibrationResult, CalibrationTarget, CalibrationVariant
from LiveCalibrator.capture.frame import Frame
from LiveCalibrator.core.errors import CalibrationError, CameraReadError


class FakeCamera:
    """Produces solid BGR frames whose blue channel is the read counter."""

    def __init__(self, width=32, height=24, fail_after=None, delay=0.0):
        self.width = width
        self.height = height
        self.fail_after = fail_after
        self.delay = delay
        self.reads = 0
        self.closed = False
        self.closed_event = threading.Event()

    def read(self):
        if self.fail_after is not None and self.reads >= self.fail_after:
            raise CameraReadError("camera unplugged")
        if self.delay:
            time.sleep(self.delay)
        self.reads += 1
        img = np.zeros((self.height, self.width, 3), np.uint8)
        img[..., 0] = self.reads % 256
        img[..., 1] = 20
        img[..., 2] = 30
        return img

    def close(self):
        self.closed = True
        self.closed_event.set()


class FakeDetector(PatternDetector):
    """
    Accepts a frame when `accept(gray)` is true. Image points come from
    `views[gray[0, 0]]` when views are given, else from the reference grid.
    """

    variant = CalibrationVariant.CHESSBOARD

    def __init__(self, rows=6, cols=9, square_size=1.0, accept=lambda gray: True, views=None, error=None):
        super().__init__(rows, cols, square_size)
        self.accept = accept
        self.views = views
        self.error = error
        self.calls = 0

    def detect(self, gray, target: CalibrationTarget):
        self.calls += 1
        if self.error is not None:
            err, self.error = self.error, None
            raise err
        if not self.accept(gray):
            return None
        if self.views is not None:
            pts = self.views[int(gray[0, 0]) % len(self.views)]
        else:
            pts = target.object_points[:, :2] * 10.0 + self.calls
        return Detection(np.asarray(pts, np.float32).reshape(-1, 1, 2), target.object_points)


class FakeSolver:
    def __init__(self, fail_reason=None):
        self.fail_reason = fail_reason
        self.calls = 0
        self.sample_counts = []

    def solve(self, samples, image_size):
        self.calls += 1
        self.sample_counts.append(len(samples))
        if self.fail_reason:
            raise CalibrationError(self.fail_reason)
        return CalibrationResult(
            camera_matrix=np.eye(3),
            dist_coeffs=np.zeros(5),
            rms=0.1,
            image_size=tuple(image_size),
            sample_count=len(samples),
            per_view_errors=tuple(0.1 for _ in range(len(samples))),
        )


def make_frame(index: int, value: int = 0, width: int = 32, height: int = 24) -> Frame:
    px = np.full((height, width, 4), value, np.uint8)
    px[..., 3] = 255
    return Frame(index=index, width=width, height=height, pixels=px, timestamp=float(index + 1))


def wait_for(predicate, timeout=3.0, step=0.005) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(step)
    return bool(predicate())


def synthetic_views(rows=6, cols=9, square=25.0, count=10):
    """Exact projections of a planar grid seen from `count` distinct poses."""
    import cv2

    k = np.array([[800.0, 0.0, 320.0], [0.0, 800.0, 240.0], [0.0, 0.0, 1.0]])
    obj = grid_points(rows, cols, square)
    views = []
    for i in range(count):
        rvec = np.array([0.35 * np.sin(i), 0.35 * np.cos(0.7 * i), 0.05 * i], dtype=np.float64)
        tvec = np.array([-cols * square / 2.0, -rows * square / 2.0, 600.0 + 25.0 * i], dtype=np.float64)
        img, _ = cv2.projectPoints(obj, rvec, tvec, k, np.zeros(5))
        views.append(img.reshape(-1, 1, 2).astype(np.float32))
    return k, obj, views


@pytest.fixture
def fake_camera():
    return FakeCamera()


@pytest.fixture
def fake_solver():
    return FakeSolver()
