"""
Calibration target variants.

Each variant pairs a target geometry (reference points on the z = 0 plane) with
an OpenCV detector that returns image points in the same order. The session
state machine only sees the PatternDetector interface; DETECTORS maps a
CalibrationVariant to its class.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import ClassVar, Dict, Optional, Tuple, Type

import cv2  # type: ignore
import numpy as np

from .models import CalibrationTarget, CalibrationVariant, StartRequest

logger = logging.getLogger(__name__)

CHESSBOARD_FLAGS = cv2.CALIB_CB_ADAPTIVE_THRESH | cv2.CALIB_CB_NORMALIZE_IMAGE


@dataclass(frozen=True)
class Detection:
    image_points: np.ndarray   # (N, 1, 2) float32
    object_points: np.ndarray  # (N, 3) float32, matching image_points row for row

    @property
    def count(self) -> int:
        return int(self.image_points.shape[0])

    def centroid(self) -> Tuple[float, float]:
        pts = self.image_points.reshape(-1, 2)
        c = pts.mean(axis=0)
        return float(c[0]), float(c[1])


def grid_points(rows: int, cols: int, spacing: float = 1.0) -> np.ndarray:
    """Row-major (x = col, y = row) reference points, z = 0."""
    pts = np.zeros((rows * cols, 3), np.float32)
    pts[:, :2] = np.mgrid[0:cols, 0:rows].T.reshape(-1, 2)
    pts[:, :2] *= float(spacing)
    return pts


class PatternDetector:
    variant: ClassVar[CalibrationVariant]
    refinable: ClassVar[bool] = False

    def __init__(self, rows: int, cols: int, square_size: float = 1.0) -> None:
        self.rows = int(rows)
        self.cols = int(cols)
        self.square_size = float(square_size)

    @classmethod
    def from_request(cls, req: StartRequest) -> "PatternDetector":
        return cls(req.rows, req.cols, req.square_size)

    @property
    def pattern_size(self) -> Tuple[int, int]:
        return self.cols, self.rows

    def build_target(self) -> CalibrationTarget:
        return CalibrationTarget(self.rows, self.cols, grid_points(self.rows, self.cols, self.square_size))

    def detect(self, gray: np.ndarray, target: CalibrationTarget) -> Optional[Detection]:
        raise NotImplementedError

    def _full_grid(self, found: bool, points, target: CalibrationTarget) -> Optional[Detection]:
        if not found or points is None:
            return None
        pts = np.asarray(points, dtype=np.float32).reshape(-1, 1, 2)
        if pts.shape[0] != target.point_count:
            return None
        return Detection(pts, target.object_points)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.rows}x{self.cols}, square={self.square_size:g})"


class ChessboardDetector(PatternDetector):
    variant = CalibrationVariant.CHESSBOARD
    refinable = True

    def detect(self, gray: np.ndarray, target: CalibrationTarget) -> Optional[Detection]:
        found, corners = cv2.findChessboardCorners(gray, self.pattern_size, flags=CHESSBOARD_FLAGS)
        return self._full_grid(bool(found), corners, target)


class CircleGridDetector(PatternDetector):
    variant = CalibrationVariant.CIRCLE_GRID

    def __init__(self, rows: int, cols: int, square_size: float = 1.0, asymmetric: bool = False) -> None:
        super().__init__(rows, cols, square_size)
        self.asymmetric = bool(asymmetric)

    @classmethod
    def from_request(cls, req: StartRequest) -> "PatternDetector":
        return cls(req.rows, req.cols, req.square_size, asymmetric=req.asymmetric)

    def build_target(self) -> CalibrationTarget:
        if not self.asymmetric:
            return super().build_target()
        pts = np.zeros((self.rows * self.cols, 3), np.float32)
        i = 0
        for r in range(self.rows):
            for c in range(self.cols):
                pts[i] = ((2 * c + r % 2) * self.square_size, r * self.square_size, 0.0)
                i += 1
        return CalibrationTarget(self.rows, self.cols, pts)

    def detect(self, gray: np.ndarray, target: CalibrationTarget) -> Optional[Detection]:
        flags = cv2.CALIB_CB_ASYMMETRIC_GRID if self.asymmetric else cv2.CALIB_CB_SYMMETRIC_GRID
        found, centers = cv2.findCirclesGrid(gray, self.pattern_size, flags=flags)
        return self._full_grid(bool(found), centers, target)


def _get_dictionary(name: str):
    aruco = cv2.aruco
    if not hasattr(aruco, name):
        available = [k for k in dir(aruco) if k.startswith("DICT_")]
        raise ValueError(f"Unknown dictionary '{name}'. Available examples: {', '.join(sorted(available)[:8])}")
    return aruco.getPredefinedDictionary(getattr(aruco, name))


def _create_grid_board(cols: int, rows: int, marker_length: float, separation: float, dictionary):
    aruco = cv2.aruco
    # OpenCV < 4.7 only has the factory function
    if hasattr(aruco, "GridBoard_create"):
        return aruco.GridBoard_create(cols, rows, marker_length, separation, dictionary)
    return aruco.GridBoard((cols, rows), marker_length, separation, dictionary)


def _create_marker_detector(dictionary):
    aruco = cv2.aruco
    if not hasattr(aruco, "ArucoDetector"):
        return None
    if hasattr(aruco, "DetectorParameters"):
        return aruco.ArucoDetector(dictionary, aruco.DetectorParameters())
    return aruco.ArucoDetector(dictionary)


class ArucoGridDetector(PatternDetector):
    """
    Grid board of cols x rows ArUco markers. Partial views are accepted once
    min_markers markers are seen; each sample then carries only the object
    points of the markers actually detected.
    """

    variant = CalibrationVariant.ARUCO_GRID

    def __init__(
        self,
        rows: int,
        cols: int,
        marker_length: float = 1.0,
        marker_separation: float = 0.2,
        dictionary: str = "DICT_4X4_50",
        min_markers: int = 4,
    ) -> None:
        super().__init__(rows, cols, marker_length)
        self.marker_length = float(marker_length)
        self.marker_separation = float(marker_separation)
        self.dictionary_name = dictionary
        self.min_markers = max(1, int(min_markers))
        self._dictionary = _get_dictionary(dictionary)
        self.board = _create_grid_board(self.cols, self.rows, self.marker_length, self.marker_separation, self._dictionary)
        self._detector = _create_marker_detector(self._dictionary)
        ids = self.board.getIds() if hasattr(self.board, "getIds") else self.board.ids
        objs = self.board.getObjPoints() if hasattr(self.board, "getObjPoints") else self.board.objPoints
        self._marker_corners: Dict[int, np.ndarray] = {
            int(i): np.asarray(o, dtype=np.float32).reshape(4, 3) for i, o in zip(np.asarray(ids).flatten(), objs)
        }

    @classmethod
    def from_request(cls, req: StartRequest) -> "PatternDetector":
        return cls(
            req.rows,
            req.cols,
            marker_length=req.marker_length,
            marker_separation=req.marker_separation,
            dictionary=req.dictionary,
            min_markers=req.min_markers,
        )

    def build_target(self) -> CalibrationTarget:
        pts = np.vstack([self._marker_corners[k] for k in sorted(self._marker_corners)])
        return CalibrationTarget(self.rows, self.cols, pts)

    def _detect_markers(self, gray):
        if self._detector is not None:
            corners, ids, _ = self._detector.detectMarkers(gray)
        else:
            corners, ids, _ = cv2.aruco.detectMarkers(gray, self._dictionary)
        return corners, ids

    def detect(self, gray: np.ndarray, target: CalibrationTarget) -> Optional[Detection]:
        corners, ids = self._detect_markers(gray)
        if ids is None or len(ids) == 0:
            return None
        obj, img = [], []
        for marker, marker_id in zip(corners, np.asarray(ids).flatten()):
            ref = self._marker_corners.get(int(marker_id))
            if ref is None:
                continue
            obj.append(ref)
            img.append(np.asarray(marker, dtype=np.float32).reshape(4, 2))
        if len(obj) < self.min_markers:
            return None
        return Detection(np.vstack(img).reshape(-1, 1, 2), np.vstack(obj))


DETECTORS: Dict[CalibrationVariant, Type[PatternDetector]] = {
    cls.variant: cls for cls in (ChessboardDetector, CircleGridDetector, ArucoGridDetector)
}


def detector_for(req: StartRequest) -> PatternDetector:
    try:
        cls = DETECTORS[CalibrationVariant(req.variant)]
    except (KeyError, ValueError):
        raise ValueError(f"Unknown calibration variant: {req.variant!r}") from None
    return cls.from_request(req)


class SubPixelRefiner:
    def __init__(
        self,
        window: Tuple[int, int] = (11, 11),
        zero_zone: Tuple[int, int] = (-1, -1),
        max_iter: int = 30,
        epsilon: float = 0.1,
    ) -> None:
        self.window = (int(window[0]), int(window[1]))
        self.zero_zone = (int(zero_zone[0]), int(zero_zone[1]))
        self.criteria = (cv2.TERM_CRITERIA_COUNT | cv2.TERM_CRITERIA_EPS, int(max_iter), float(epsilon))

    def refine(self, gray: np.ndarray, points: np.ndarray) -> np.ndarray:
        pts = np.array(points, dtype=np.float32).reshape(-1, 1, 2)
        refined = cv2.cornerSubPix(gray, pts, self.window, self.zero_zone, self.criteria)
        return np.asarray(refined if refined is not None else pts, dtype=np.float32).reshape(-1, 1, 2)
