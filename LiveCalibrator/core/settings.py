"""
Settings manager for LiveCalibrator.

Loads/saves JSON settings (LiveCalibrator/settings.json by default) and exposes
typed helpers. Missing keys fall back to defaults.
"""
from __future__ import annotations

import copy
import json
import logging
import os
from typing import Any, Dict, Optional, Tuple

from LiveCalibrator.calibration.models import CalibrationVariant, StartRequest

logger = logging.getLogger(__name__)

DEFAULTS: Dict[str, Any] = {
    "camera_index": 0,
    "video": {"enabled": True, "path": "output.mp4", "fourcc": "mp4v"},
    "ui": {"tick_margin_fps": 10.0},
    "calibration": {
        "variant": CalibrationVariant.CHESSBOARD.value,
        "rows": 6,
        "cols": 9,
        "required_samples": 10,
        "square_size": 1.0,
        "refine": {"enabled": True, "window": [11, 11], "max_iter": 30, "epsilon": 0.1},
        "solver": {"max_iter": 30, "epsilon": 0.1},
        "circle_grid": {"asymmetric": False},
        "aruco": {
            "dictionary": "DICT_4X4_50",
            "marker_length": 1.0,
            "marker_separation": 0.2,
            "min_markers": 4,
        },
        "acceptance": {"min_interval_s": 0.0, "min_shift_px": 0.0},
    },
}


class SettingsManager:
    def __init__(self, path: Optional[str] = None) -> None:
        if path is None:
            here = os.path.dirname(os.path.abspath(__file__))
            path = os.path.join(os.path.dirname(here), "settings.json")
        self.path = path
        self.data: Dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        if not os.path.exists(self.path):
            self.data = copy.deepcopy(DEFAULTS)
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                self.data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable settings file %s: %s", self.path, e)
            self.data = copy.deepcopy(DEFAULTS)

    def save(self) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self.data, f, indent=2)

    def _section(self, *keys: str) -> Dict[str, Any]:
        node: Any = self.data
        default: Any = DEFAULTS
        for k in keys:
            node = node.get(k, {}) if isinstance(node, dict) else {}
            default = default.get(k, {})
        merged = dict(default)
        if isinstance(node, dict):
            merged.update(node)
        return merged

    def _calib(self) -> Dict[str, Any]:
        return self.data.setdefault("calibration", {})

    # Camera / video ----------------------------------------------------
    def camera_index(self) -> int:
        return int(self.data.get("camera_index", 0))

    def set_camera_index(self, idx: int) -> None:
        self.data["camera_index"] = int(idx)

    def record_enabled(self) -> bool:
        return bool(self._section("video")["enabled"])

    def video_path(self) -> str:
        return str(self._section("video")["path"])

    def set_video_path(self, path: str) -> None:
        self.data.setdefault("video", {})["path"] = str(path)

    def video_fourcc(self) -> str:
        code = str(self._section("video")["fourcc"])
        return code if len(code) == 4 else "mp4v"

    def tick_margin_fps(self) -> float:
        return float(self._section("ui")["tick_margin_fps"])

    # Calibration -------------------------------------------------------
    def calibration_variant(self) -> CalibrationVariant:
        raw = self._section("calibration")["variant"]
        try:
            return CalibrationVariant(raw)
        except ValueError:
            return CalibrationVariant.CHESSBOARD

    def grid_size(self) -> Tuple[int, int]:
        c = self._section("calibration")
        return int(c["rows"]), int(c["cols"])

    def required_samples(self) -> int:
        return int(self._section("calibration")["required_samples"])

    def square_size(self) -> float:
        return float(self._section("calibration")["square_size"])

    def refine_enabled(self) -> bool:
        return bool(self._section("calibration", "refine")["enabled"])

    def refine_window(self) -> Tuple[int, int]:
        w = self._section("calibration", "refine")["window"]
        try:
            return int(w[0]), int(w[1])
        except (TypeError, IndexError, ValueError):
            return 11, 11

    def refine_criteria(self) -> Tuple[int, float]:
        r = self._section("calibration", "refine")
        return int(r["max_iter"]), float(r["epsilon"])

    def solver_criteria(self) -> Tuple[int, float]:
        s = self._section("calibration", "solver")
        return int(s["max_iter"]), float(s["epsilon"])

    def circle_grid_asymmetric(self) -> bool:
        return bool(self._section("calibration", "circle_grid")["asymmetric"])

    def aruco_params(self) -> Dict[str, Any]:
        return self._section("calibration", "aruco")

    def acceptance_params(self) -> Dict[str, float]:
        a = self._section("calibration", "acceptance")
        return {"min_interval_s": float(a["min_interval_s"]), "min_shift_px": float(a["min_shift_px"])}

    def start_request(self) -> StartRequest:
        rows, cols = self.grid_size()
        aruco = self.aruco_params()
        acc = self.acceptance_params()
        return StartRequest(
            variant=self.calibration_variant(),
            rows=rows,
            cols=cols,
            required_samples=self.required_samples(),
            square_size=self.square_size(),
            refine=self.refine_enabled(),
            asymmetric=self.circle_grid_asymmetric(),
            marker_length=float(aruco["marker_length"]),
            marker_separation=float(aruco["marker_separation"]),
            dictionary=str(aruco["dictionary"]),
            min_markers=int(aruco["min_markers"]),
            min_interval_s=acc["min_interval_s"],
            min_shift_px=acc["min_shift_px"],
        )

    def remember_request(self, req: StartRequest) -> None:
        c = self._calib()
        c["variant"] = req.variant.value
        c["rows"] = int(req.rows)
        c["cols"] = int(req.cols)
        c["required_samples"] = int(req.required_samples)
        c["square_size"] = float(req.square_size)
        c.setdefault("refine", {})["enabled"] = bool(req.refine)
        c.setdefault("circle_grid", {})["asymmetric"] = bool(req.asymmetric)
        aruco = c.setdefault("aruco", {})
        aruco["dictionary"] = str(req.dictionary)
        aruco["marker_length"] = float(req.marker_length)
        aruco["marker_separation"] = float(req.marker_separation)
        aruco["min_markers"] = int(req.min_markers)
        acc = c.setdefault("acceptance", {})
        acc["min_interval_s"] = float(req.min_interval_s)
        acc["min_shift_px"] = float(req.min_shift_px)
