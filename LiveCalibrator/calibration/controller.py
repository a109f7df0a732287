"""
Session controller: one calibration session thread at a time.

start() rejects with StartResult.BUSY while a session thread is alive (no
queuing, no replacement). Progress flows back through a latest-wins status
channel that the UI tick polls; reap() joins a finished thread and drops its
frame subscription.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Tuple

from LiveCalibrator.capture.channel import FrameBroadcaster, LatestChannel
from LiveCalibrator.capture.frame import Frame

from .detectors import PatternDetector, SubPixelRefiner, detector_for
from .models import SessionStatus, StartRequest, StartResult
from .policy import AcceptancePolicy
from .session import CalibrationSession
from .solver import CalibrationSolver

logger = logging.getLogger(__name__)


class SessionController:
    def __init__(
        self,
        frames: FrameBroadcaster[Frame],
        frame_size: Tuple[int, int],
        solver_factory: Callable[[], CalibrationSolver] = CalibrationSolver,
        refiner_factory: Callable[[], SubPixelRefiner] = SubPixelRefiner,
        detector_factory: Callable[[StartRequest], PatternDetector] = detector_for,
        idle_wait: float = 0.01,
    ) -> None:
        self.frames = frames
        self.frame_size = (int(frame_size[0]), int(frame_size[1]))
        self.solver_factory = solver_factory
        self.refiner_factory = refiner_factory
        self.detector_factory = detector_factory
        self.idle_wait = float(idle_wait)
        self.status_channel: LatestChannel[SessionStatus] = LatestChannel("session-status")
        self.last_status: Optional[SessionStatus] = None
        self.sessions_started = 0

        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._cancel: Optional[threading.Event] = None
        self._subscription: Optional[LatestChannel[Frame]] = None
        self._session: Optional[CalibrationSession] = None

    @property
    def active(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    def start(self, request: StartRequest) -> StartResult:
        request.validate()
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                logger.info("Calibration request rejected: a session is already running")
                return StartResult.BUSY
            self._reap_locked()
            detector = self.detector_factory(request)
            session = CalibrationSession(
                detector,
                self.frame_size,
                required=request.required_samples,
                solver=self.solver_factory(),
                refiner=self.refiner_factory() if request.refine else None,
                policy=AcceptancePolicy.from_request(request),
                on_status=self.status_channel.send,
            )
            self.sessions_started += 1
            self._session = session
            self._cancel = threading.Event()
            self._subscription = self.frames.subscribe(f"calibration-{self.sessions_started}")
            self._thread = threading.Thread(
                target=session.run,
                args=(self._subscription, self._cancel, self.idle_wait),
                name=f"calibration-{self.sessions_started}",
                daemon=True,
            )
            self._thread.start()
        return StartResult.ACCEPTED

    def cancel(self) -> bool:
        with self._lock:
            if self._thread is None or not self._thread.is_alive() or self._cancel is None:
                return False
            self._cancel.set()
            return True

    def poll(self) -> Optional[SessionStatus]:
        status = self.status_channel.try_recv()
        if status is not None:
            self.last_status = status
        return status

    def reap(self) -> bool:
        with self._lock:
            return self._reap_locked()

    def _reap_locked(self) -> bool:
        if self._thread is None or self._thread.is_alive():
            return False
        self._thread.join()
        if self._subscription is not None:
            self.frames.unsubscribe(self._subscription)
        logger.debug("Reaped %s", self._thread.name)
        self._thread = None
        self._cancel = None
        self._subscription = None
        self._session = None
        return True

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the current session thread; True once nothing is running."""
        with self._lock:
            thread = self._thread
        if thread is not None:
            thread.join(timeout)
        return not self.active

    def shutdown(self, timeout: Optional[float] = 2.0) -> None:
        self.cancel()
        self.join(timeout)
        self.reap()
