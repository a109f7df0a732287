from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

try:
    from PyQt6.QtCore import QTimer
    from PyQt6.QtWidgets import QApplication, QMessageBox
except Exception:  # pragma: no cover
    QApplication = None  # type: ignore
    QTimer = None  # type: ignore
    QMessageBox = None  # type: ignore

from LiveCalibrator.camera import Camera
from LiveCalibrator.calibration.controller import SessionController
from LiveCalibrator.calibration.detectors import SubPixelRefiner
from LiveCalibrator.calibration.models import SessionState, SessionStatus, StartRequest, StartResult
from LiveCalibrator.calibration.solver import CalibrationSolver
from LiveCalibrator.capture.capture_thread import CaptureThread
from LiveCalibrator.capture.channel import FrameBroadcaster
from LiveCalibrator.capture.render_bridge import RenderBridge, tick_interval_ms
from LiveCalibrator.capture.video_sink import VideoSink
from LiveCalibrator.control.fps_monitor import FPSMonitor
from LiveCalibrator.core.errors import CameraError, CaptureError
from LiveCalibrator.core.log import setup_logging
from LiveCalibrator.core.settings import SettingsManager
from LiveCalibrator.ui.main_window import MainWindow
from LiveCalibrator.ui.result_window import CalibrationResultWindow

logger = logging.getLogger(__name__)

CAPTURE_JOIN_TIMEOUT_S = 3.0


def session_banner(status: Optional[SessionStatus]) -> Optional[str]:
    """Overlay text for the video while a session is running."""
    if status is None or status.state not in (SessionState.CAPTURING, SessionState.SOLVING):
        return None
    return status.message()


class AppCore:
    """Owns the capture pipeline and the session controller; the Qt timer drives the UI side."""

    def __init__(self, settings: SettingsManager, camera: Camera, record: bool = True) -> None:
        self.settings = settings
        self.camera = camera
        self.frame_size = (camera.width, camera.height)
        self.frames = FrameBroadcaster()
        self.sink: Optional[VideoSink] = None
        if record:
            sink = VideoSink(settings.video_path(), camera.fps, self.frame_size, settings.video_fourcc())
            if sink.open():
                self.sink = sink
        self.capture = CaptureThread(camera, self.frames, camera.frame_interval, sink=self.sink)
        self.render = RenderBridge(self.frames.subscribe("render"), camera.width, camera.height)

        solver_iter, solver_eps = settings.solver_criteria()
        refine_iter, refine_eps = settings.refine_criteria()
        refine_window = settings.refine_window()
        self.controller = SessionController(
            self.frames,
            self.frame_size,
            solver_factory=lambda: CalibrationSolver(solver_iter, solver_eps),
            refiner_factory=lambda: SubPixelRefiner(refine_window, max_iter=refine_iter, epsilon=refine_eps),
        )
        self.fps = FPSMonitor(window=60)
        self._last_request: Optional[StartRequest] = None
        self._result_wnd: Optional[CalibrationResultWindow] = None
        self._pipeline_down = False

        self.win = MainWindow(settings.start_request())
        self.win.calibrationRequested.connect(self.start_calibration)  # type: ignore[attr-defined]
        self.win.cancelRequested.connect(self.cancel_calibration)  # type: ignore[attr-defined]

        self.timer = QTimer()
        self.timer.setInterval(tick_interval_ms(camera.fps, settings.tick_margin_fps()))
        self.timer.timeout.connect(self._on_tick)  # type: ignore[attr-defined]

    def start(self) -> None:
        self.capture.start()
        self.timer.start()
        logger.info("UI tick every %d ms", self.timer.interval())

    # Calibration -------------------------------------------------------
    def start_calibration(self, request: StartRequest) -> None:
        if self._pipeline_down:
            return
        try:
            result = self.controller.start(request)
        except ValueError as e:
            QMessageBox.warning(self.win, "Calibration", f"Invalid calibration settings.\n{e}")
            return
        if result == StartResult.BUSY:
            self.win.show_message("A calibration session is already running.")
            return
        self._last_request = request
        try:
            self.settings.remember_request(request)
            self.settings.save()
        except OSError as e:
            logger.warning("Could not save settings: %s", e)

    def cancel_calibration(self) -> None:
        if not self.controller.cancel():
            self.win.show_message("No calibration session is running.")

    def _on_retry(self) -> None:
        if self._last_request is not None:
            self.start_calibration(self._last_request)

    def _show_result(self, status) -> None:
        if status.result is None:
            return
        self._result_wnd = CalibrationResultWindow(status.result)
        self._result_wnd.retry.connect(self._on_retry)  # type: ignore[attr-defined]
        self._result_wnd.show()

    # Tick --------------------------------------------------------------
    def _on_tick(self) -> None:
        if self.capture.failed:
            self._on_pipeline_failure()
            return
        status = self.controller.poll()
        frame = self.render.pull()
        if self.render.fresh:
            self.fps.tick()
            self.win.update_video(frame, session_banner(self.controller.last_status))
        self.win.update_pipeline(self.render.width, self.render.height, self.fps.fps(), self.sink is not None)

        if status is not None:
            self.win.show_status(status)
            if status.state == SessionState.COMPLETED:
                self._show_result(status)
        self.controller.reap()

    def _on_pipeline_failure(self) -> None:
        if self._pipeline_down:
            return
        self._pipeline_down = True
        self.timer.stop()
        self.controller.shutdown()
        msg = f"Camera stopped: {self.capture.error}"
        self.win.set_pipeline_down(msg)
        QMessageBox.critical(self.win, "Camera", f"{msg}\nThe capture pipeline is down; restart the application.")

    # Shutdown ----------------------------------------------------------
    def shutdown(self) -> int:
        try:
            self.timer.stop()
        except RuntimeError:
            pass
        self.controller.shutdown()
        self.capture.stop()
        try:
            self.capture.join(CAPTURE_JOIN_TIMEOUT_S)
        except CaptureError as e:
            logger.error("Capture ended with an error: %s", e)
            return 1
        if self.capture.is_alive():
            logger.error("Capture thread did not stop within %.1fs", CAPTURE_JOIN_TIMEOUT_S)
            return 1
        logger.info("Camera stopped and resources released")
        return 0


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Live camera preview with intrinsic calibration.")
    parser.add_argument("--camera", type=int, default=None, help="Camera index (default from settings, 0).")
    parser.add_argument("--output", default=None, help="Video archive path (default output.mp4).")
    parser.add_argument("--no-record", action="store_true", help="Do not archive frames to a video file.")
    parser.add_argument("--settings", default=None, help="Path to a settings JSON file.")
    parser.add_argument("--log-level", default=None, help="Logging level (default LIVECALIB_LOG_LEVEL or INFO).")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    setup_logging(args.log_level)
    if QApplication is None:
        logger.error("PyQt6 is not installed. Please install dependencies.")
        return 1
    settings = SettingsManager(args.settings)
    if args.camera is not None:
        settings.set_camera_index(args.camera)
    if args.output:
        settings.set_video_path(args.output)
    record = settings.record_enabled() and not args.no_record

    app = QApplication(sys.argv[:1])
    camera = Camera(settings.camera_index())
    try:
        camera.open()
    except CameraError as e:
        logger.error("%s", e)
        QMessageBox.critical(None, "Camera", f"Unable to open camera.\n{e}")
        return 1

    core = AppCore(settings, camera, record=record)
    core.start()
    core.win.show()
    code = app.exec()
    rc = core.shutdown()
    return int(code) or rc


if __name__ == "__main__":
    raise SystemExit(main())
