"""
Calibration session: IDLE -> CAPTURING -> SOLVING -> COMPLETED | FAILED,
with CANCELLED reachable from IDLE and CAPTURING.

A session collects `required` accepted detections from incoming frames and then
runs one solve over the whole SampleSet. It is single-use: terminal states are
final. All mutation happens on the thread that calls feed()/run().
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Tuple

import cv2  # type: ignore

from LiveCalibrator.capture.channel import LatestChannel
from LiveCalibrator.capture.frame import Frame
from LiveCalibrator.core.errors import CalibrationError

from .detectors import Detection, PatternDetector, SubPixelRefiner
from .models import CalibrationResult, CalibrationTarget, SampleSet, SessionState, SessionStatus
from .policy import AcceptancePolicy
from .solver import CalibrationSolver

logger = logging.getLogger(__name__)

DEFAULT_REQUIRED_SAMPLES = 10


class CalibrationSession:
    def __init__(
        self,
        detector: PatternDetector,
        frame_size: Tuple[int, int],
        required: int = DEFAULT_REQUIRED_SAMPLES,
        solver: Optional[CalibrationSolver] = None,
        refiner: Optional[SubPixelRefiner] = None,
        policy: Optional[AcceptancePolicy] = None,
        on_status: Optional[Callable[[SessionStatus], None]] = None,
    ) -> None:
        self.detector = detector
        self.frame_size = (int(frame_size[0]), int(frame_size[1]))
        self.required = max(1, int(required))
        self.solver = solver if solver is not None else CalibrationSolver()
        self.refiner = refiner
        self.policy = policy if policy is not None else AcceptancePolicy()
        self.on_status = on_status

        self.state = SessionState.IDLE
        self.target: Optional[CalibrationTarget] = None
        self.samples = SampleSet(self.required)
        self.result: Optional[CalibrationResult] = None
        self.reason = ""
        self.frames_seen = 0
        self.detections = 0

    # Status ------------------------------------------------------------
    def status(self) -> SessionStatus:
        return SessionStatus(
            state=self.state,
            captured=len(self.samples),
            required=self.required,
            result=self.result if self.state == SessionState.COMPLETED else None,
            reason=self.reason if self.state == SessionState.FAILED else "",
        )

    def _set_state(self, state: SessionState) -> None:
        self.state = state
        st = self.status()
        logger.info("%s", st.message())
        if self.on_status is not None:
            self.on_status(st)

    # Transitions -------------------------------------------------------
    def start(self) -> None:
        if self.state != SessionState.IDLE:
            raise RuntimeError(f"session cannot start from {self.state.value}")
        self.target = self.detector.build_target()
        self.samples = SampleSet(self.required)
        self.policy.reset()
        logger.info("Calibration started: %r, %d samples required", self.detector, self.required)
        self._set_state(SessionState.CAPTURING)

    def feed(self, frame: Frame) -> SessionState:
        """Process one frame. Only frames seen while CAPTURING have any effect."""
        if self.state != SessionState.CAPTURING or self.target is None:
            return self.state
        self.frames_seen += 1
        gray = frame.gray()
        try:
            detection = self.detector.detect(gray, self.target)
        except cv2.error as e:
            logger.debug("Detection error on frame %d, skipped: %s", frame.index, e)
            return self.state
        if detection is None:
            return self.state
        self.detections += 1
        if self.refiner is not None and self.detector.refinable:
            try:
                detection = Detection(self.refiner.refine(gray, detection.image_points), detection.object_points)
            except cv2.error as e:
                logger.debug("Sub-pixel refinement failed on frame %d, skipped: %s", frame.index, e)
                return self.state
        if not self.policy.allows(detection, frame.timestamp or None):
            return self.state
        self.policy.record(detection, frame.timestamp or None)
        self.samples.add(detection.object_points, detection.image_points)
        self._set_state(SessionState.CAPTURING)
        if self.samples.is_full:
            self._solve()
        return self.state

    def cancel(self) -> bool:
        if self.state not in (SessionState.IDLE, SessionState.CAPTURING):
            return False
        self.samples.clear()
        self._set_state(SessionState.CANCELLED)
        return True

    def fail(self, reason: str) -> None:
        if self.state.is_terminal:
            return
        self.reason = reason
        self._set_state(SessionState.FAILED)

    def _solve(self) -> None:
        self._set_state(SessionState.SOLVING)
        try:
            self.result = self.solver.solve(self.samples, self.frame_size)
        except CalibrationError as e:
            self.fail(e.reason)
            return
        self._set_state(SessionState.COMPLETED)

    # Thread body -------------------------------------------------------
    def run(self, frames: LatestChannel[Frame], cancel: threading.Event, idle_wait: float = 0.01) -> SessionStatus:
        try:
            if self.state == SessionState.IDLE:
                self.start()
            while not self.state.is_terminal:
                if cancel.is_set():
                    self.cancel()
                    break
                frame = frames.try_recv()
                if frame is None:
                    cancel.wait(idle_wait)
                    continue
                self.feed(frame)
        except Exception as e:
            logger.exception("Calibration session crashed")
            self.fail(f"{type(e).__name__}: {e}")
        return self.status()
