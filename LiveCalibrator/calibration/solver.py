"""
Intrinsic calibration solve over a full SampleSet (cv2.calibrateCamera).

Raises CalibrationError when OpenCV rejects the input or the fit does not
produce finite parameters.
"""
from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

import cv2  # type: ignore
import numpy as np

from LiveCalibrator.core.errors import CalibrationError

from .models import CalibrationResult, SampleSet

logger = logging.getLogger(__name__)

MIN_POINTS_PER_VIEW = 4


def per_view_errors(
    object_points: Sequence[np.ndarray],
    image_points: Sequence[np.ndarray],
    rvecs,
    tvecs,
    camera_matrix: np.ndarray,
    dist_coeffs: np.ndarray,
) -> List[float]:
    """RMS reprojection error of each view, in pixels."""
    errors = []
    for obj, img, rvec, tvec in zip(object_points, image_points, rvecs, tvecs):
        proj, _ = cv2.projectPoints(obj, rvec, tvec, camera_matrix, dist_coeffs)
        diff = img.reshape(-1, 2) - proj.reshape(-1, 2)
        errors.append(float(np.sqrt((diff * diff).sum(axis=1).mean())))
    return errors


class CalibrationSolver:
    def __init__(self, max_iter: int = 30, epsilon: float = 0.1, flags: int = 0) -> None:
        self.criteria = (cv2.TERM_CRITERIA_COUNT | cv2.TERM_CRITERIA_EPS, int(max_iter), float(epsilon))
        self.flags = int(flags)

    def solve(self, samples: SampleSet, image_size: Tuple[int, int]) -> CalibrationResult:
        n = len(samples)
        if n == 0:
            raise CalibrationError("no samples to calibrate from")
        for i, img in enumerate(samples.image_points):
            if img.shape[0] < MIN_POINTS_PER_VIEW:
                raise CalibrationError(f"sample {i} has only {img.shape[0]} points")
        width, height = int(image_size[0]), int(image_size[1])
        if width <= 0 or height <= 0:
            raise CalibrationError(f"invalid image size {width}x{height}")

        logger.info("Solving calibration from %d samples at %dx%d", n, width, height)
        try:
            rms, camera_matrix, dist_coeffs, rvecs, tvecs = cv2.calibrateCamera(
                list(samples.object_points),
                list(samples.image_points),
                (width, height),
                None,
                None,
                flags=self.flags,
                criteria=self.criteria,
            )
        except cv2.error as e:
            raise CalibrationError(f"solver rejected the samples: {getattr(e, 'err', None) or e}") from e

        camera_matrix = np.asarray(camera_matrix, dtype=np.float64).reshape(3, 3)
        dist_coeffs = np.asarray(dist_coeffs, dtype=np.float64).ravel()
        if not (np.isfinite(rms) and np.isfinite(camera_matrix).all() and np.isfinite(dist_coeffs).all()):
            raise CalibrationError("solver did not converge (non-finite parameters)")
        if camera_matrix[0, 0] <= 0 or camera_matrix[1, 1] <= 0:
            raise CalibrationError("degenerate solution: non-positive focal length")

        errors = per_view_errors(samples.object_points, samples.image_points, rvecs, tvecs, camera_matrix, dist_coeffs)
        logger.info("Camera matrix:\n%s", camera_matrix)
        logger.info("Distortion coefficients: %s (rms %.4f px)", dist_coeffs, rms)
        return CalibrationResult(
            camera_matrix=camera_matrix,
            dist_coeffs=dist_coeffs,
            rms=float(rms),
            image_size=(width, height),
            sample_count=n,
            per_view_errors=tuple(errors),
        )
