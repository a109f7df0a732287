import threading

import cv2
import numpy as np
import pytest

from LiveCalibrator.calibration.detectors import Detection
from LiveCalibrator.calibration.models import SampleSet, SessionState
from LiveCalibrator.calibration.policy import AcceptancePolicy
from LiveCalibrator.calibration.session import CalibrationSession
from LiveCalibrator.capture.channel import LatestChannel

from conftest import FakeDetector, FakeSolver, make_frame, wait_for


def _session(detector=None, solver=None, required=10, policy=None):
    states = []
    s = CalibrationSession(
        detector or FakeDetector(),
        (640, 480),
        required=required,
        solver=solver or FakeSolver(),
        policy=policy,
        on_status=states.append,
    )
    return s, states


def test_ten_accepted_frames_complete_the_session():
    solver = FakeSolver()
    s, statuses = _session(solver=solver)
    s.start()
    for i in range(10):
        s.feed(make_frame(i))

    assert s.state == SessionState.COMPLETED
    assert solver.sample_counts == [10]
    assert s.result is not None and s.result.sample_count == 10
    states = [st.state for st in statuses]
    assert states[0] == SessionState.CAPTURING
    assert states[-2:] == [SessionState.SOLVING, SessionState.COMPLETED]
    assert [st.captured for st in statuses if st.state == SessionState.CAPTURING] == list(range(11))

    s.feed(make_frame(10))
    assert len(s.samples) == 10
    assert solver.calls == 1


def test_frames_without_a_pattern_never_solve():
    solver = FakeSolver()
    s, _ = _session(detector=FakeDetector(accept=lambda gray: False), solver=solver)
    s.start()
    for i in range(50):
        s.feed(make_frame(i))
    assert s.state == SessionState.CAPTURING
    assert len(s.samples) == 0
    assert solver.calls == 0
    assert s.frames_seen == 50


def test_cancel_discards_samples_and_next_session_starts_empty():
    solver = FakeSolver()
    s, statuses = _session(solver=solver)
    s.start()
    for i in range(9):
        s.feed(make_frame(i))
    assert len(s.samples) == 9

    assert s.cancel() is True
    assert s.state == SessionState.CANCELLED
    assert len(s.samples) == 0
    assert statuses[-1].captured == 0
    assert solver.calls == 0
    assert s.cancel() is False

    s2, _ = _session()
    s2.start()
    assert len(s2.samples) == 0
    assert s2.state == SessionState.CAPTURING


def test_solver_failure_reports_reason():
    s, statuses = _session(solver=FakeSolver(fail_reason="degenerate views"), required=3)
    s.start()
    for i in range(3):
        s.feed(make_frame(i))
    assert s.state == SessionState.FAILED
    assert s.reason == "degenerate views"
    assert statuses[-1].message() == "Calibration failed: degenerate views"
    assert s.status().result is None


def test_detector_cv_error_is_skipped():
    det = FakeDetector(error=cv2.error("bad frame"))
    s, _ = _session(detector=det, required=2)
    s.start()
    s.feed(make_frame(0))
    assert s.state == SessionState.CAPTURING
    assert len(s.samples) == 0
    s.feed(make_frame(1))
    s.feed(make_frame(2))
    assert s.state == SessionState.COMPLETED


def test_start_only_from_idle():
    s, _ = _session()
    s.start()
    with pytest.raises(RuntimeError):
        s.start()


def test_min_shift_policy_spreads_samples():
    # the fake detector moves the pattern by (1, 1) px per call
    policy = AcceptancePolicy(min_shift_px=5.0)
    s, _ = _session(policy=policy)
    s.start()
    for i in range(10):
        s.feed(make_frame(i))
    assert len(s.samples) == 3
    assert policy.rejected == 7


def test_min_interval_policy():
    policy = AcceptancePolicy(min_interval_s=1.0)
    pts = np.zeros((4, 1, 2), np.float32)
    det = Detection(pts, np.zeros((4, 3), np.float32))
    assert policy.enabled
    assert policy.allows(det, now=0.0)
    policy.record(det, now=0.0)
    assert not policy.allows(det, now=0.5)
    assert policy.allows(det, now=1.5)
    policy.reset()
    assert policy.allows(det, now=0.1)
    assert not AcceptancePolicy().enabled


def test_sample_set_is_capped_and_checks_counts():
    samples = SampleSet(1)
    obj = np.zeros((4, 3), np.float32)
    with pytest.raises(ValueError):
        samples.add(obj, np.zeros((3, 2), np.float32))
    assert samples.add(obj, np.zeros((4, 2), np.float32)) == 1
    assert samples.image_points[0].shape == (4, 1, 2)
    assert samples.is_full
    with pytest.raises(ValueError):
        samples.add(obj, np.zeros((4, 2), np.float32))


def test_run_loop_honors_cancel():
    s, _ = _session()
    frames = LatestChannel()
    cancel = threading.Event()
    result = {}
    t = threading.Thread(target=lambda: result.setdefault("status", s.run(frames, cancel, 0.005)))
    t.start()
    assert wait_for(lambda: s.state == SessionState.CAPTURING)
    frames.send(make_frame(0))
    assert wait_for(lambda: len(s.samples) == 1)

    cancel.set()
    t.join(2.0)
    assert not t.is_alive()
    assert result["status"].state == SessionState.CANCELLED


def test_run_loop_turns_crashes_into_failure():
    s, _ = _session(detector=FakeDetector(error=RuntimeError("boom")))
    frames = LatestChannel()
    frames.send(make_frame(0))
    status = s.run(frames, threading.Event(), 0.005)
    assert status.state == SessionState.FAILED
    assert status.reason == "RuntimeError: boom"
