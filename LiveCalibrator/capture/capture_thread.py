"""
Capture thread: read -> convert -> publish loop over one exclusively owned camera.

- Polls the stop event once per iteration and paces itself to frame_interval by
  waiting on that same event, so a stop request is honored within one interval
- A read error ends the loop; it is re-raised as CaptureError from join()
- Every raw BGR frame is forwarded to the optional video sink (best-effort)
- On exit the sink is closed and the camera released before the thread ends
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Optional

from LiveCalibrator.capture.channel import FrameBroadcaster
from LiveCalibrator.capture.frame import Frame, make_frame
from LiveCalibrator.core.errors import CameraError, CaptureError

logger = logging.getLogger(__name__)


class CaptureThread:
    def __init__(self, source, broadcaster: FrameBroadcaster[Frame], frame_interval: float = 0.0, sink=None) -> None:
        self.source = source
        self.broadcaster = broadcaster
        self.frame_interval = max(0.0, float(frame_interval))
        self.sink = sink
        self.frames_captured = 0
        self.sink_failures = 0
        self._stop = threading.Event()
        self._error: Optional[BaseException] = None
        self._thread: Optional[threading.Thread] = None

    # Lifecycle ---------------------------------------------------------
    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("capture thread already started")
        self._thread = threading.Thread(target=self._run, name="capture", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the loop to exit. Raises CaptureError if it died on a device error."""
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                return
        if self._error is not None:
            raise CaptureError(str(self._error)) from self._error

    def is_alive(self) -> bool:
        return bool(self._thread is not None and self._thread.is_alive())

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    @property
    def failed(self) -> bool:
        return self._error is not None

    # Loop --------------------------------------------------------------
    def _run(self) -> None:
        logger.info("Capture started (interval %.1f ms)", self.frame_interval * 1000.0)
        try:
            while not self._stop.is_set():
                started = time.perf_counter()
                raw = self.source.read()
                frame = make_frame(self.frames_captured, raw)
                self.broadcaster.publish(frame)
                self.frames_captured += 1
                self._archive(raw)
                remaining = self.frame_interval - (time.perf_counter() - started)
                if remaining > 0:
                    self._stop.wait(remaining)
        except CameraError as e:
            self._error = e
            logger.error("Capture stopped: %s", e)
        except Exception as e:
            self._error = e
            logger.exception("Capture loop crashed")
        finally:
            self._release()
        logger.info("Capture finished after %d frames", self.frames_captured)

    def _archive(self, raw) -> None:
        if self.sink is None:
            return
        try:
            ok = self.sink.write(raw)
        except Exception as e:
            ok = False
            logger.warning("Video sink raised, frame %d not archived: %s", self.frames_captured, e)
        if ok is False:
            self.sink_failures += 1

    def _release(self) -> None:
        if self.sink is not None:
            try:
                self.sink.close()
            except Exception:
                logger.warning("Video sink close failed", exc_info=True)
        self.source.close()
