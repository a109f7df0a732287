import json
import logging

from LiveCalibrator.calibration.models import CalibrationVariant, StartRequest
from LiveCalibrator.core.log import setup_logging
from LiveCalibrator.core.settings import SettingsManager


def test_defaults_without_a_file(tmp_path):
    s = SettingsManager(str(tmp_path / "settings.json"))
    assert s.camera_index() == 0
    assert s.record_enabled()
    assert s.video_path() == "output.mp4"
    assert s.video_fourcc() == "mp4v"
    assert s.tick_margin_fps() == 10.0
    assert s.refine_window() == (11, 11)
    assert s.refine_criteria() == (30, 0.1)
    assert s.solver_criteria() == (30, 0.1)
    req = s.start_request()
    assert req == StartRequest()


def test_request_round_trips_through_the_file(tmp_path):
    path = tmp_path / "nested" / "settings.json"
    s = SettingsManager(str(path))
    req = StartRequest(
        variant=CalibrationVariant.CIRCLE_GRID,
        rows=4,
        cols=11,
        required_samples=15,
        square_size=20.0,
        asymmetric=True,
        min_shift_px=12.0,
    )
    s.remember_request(req)
    s.set_camera_index(1)
    s.save()

    again = SettingsManager(str(path))
    assert again.start_request() == req
    assert again.camera_index() == 1


def test_partial_and_broken_files_fall_back(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"calibration": {"rows": 7, "refine": {"max_iter": 50}}}), encoding="utf-8")
    s = SettingsManager(str(path))
    assert s.grid_size() == (7, 9)
    assert s.refine_criteria() == (50, 0.1)
    assert s.refine_enabled()

    path.write_text("{not json", encoding="utf-8")
    s.load()
    assert s.grid_size() == (6, 9)

    path.write_text(json.dumps({"calibration": {"variant": "hexagons"}, "video": {"fourcc": "x"}}), encoding="utf-8")
    s.load()
    assert s.calibration_variant() == CalibrationVariant.CHESSBOARD
    assert s.video_fourcc() == "mp4v"


def test_log_level_from_environment(monkeypatch):
    monkeypatch.setenv("LIVECALIB_LOG_LEVEL", "debug")
    setup_logging()
    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("matplotlib").level == logging.WARNING
    setup_logging("warning")
    assert logging.getLogger().level == logging.WARNING
    setup_logging("nonsense")
    assert logging.getLogger().level == logging.INFO
