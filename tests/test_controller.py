import numpy as np
import pytest

from LiveCalibrator.calibration.controller import SessionController
from LiveCalibrator.calibration.models import SessionState, StartRequest, StartResult
from LiveCalibrator.calibration.solver import CalibrationSolver
from LiveCalibrator.capture.channel import FrameBroadcaster

from conftest import FakeDetector, FakeSolver, make_frame, synthetic_views, wait_for


def _controller(detector, solver_factory=FakeSolver, frame_size=(640, 480)):
    frames = FrameBroadcaster()
    ctrl = SessionController(
        frames,
        frame_size,
        solver_factory=solver_factory,
        detector_factory=lambda req: detector,
        idle_wait=0.002,
    )
    return frames, ctrl


def _status_is(ctrl, predicate):
    def check():
        ctrl.poll()
        return ctrl.last_status is not None and predicate(ctrl.last_status)
    return wait_for(check)


def _feed_accepted(frames, ctrl, values):
    for n, v in enumerate(values, start=1):
        frames.publish(make_frame(n, value=v))
        assert _status_is(ctrl, lambda st, n=n: st.captured >= n or st.state.is_terminal)


def test_second_start_while_running_is_rejected():
    frames, ctrl = _controller(FakeDetector(accept=lambda gray: False))
    assert ctrl.start(StartRequest()) == StartResult.ACCEPTED
    assert ctrl.start(StartRequest()) == StartResult.BUSY
    assert ctrl.sessions_started == 1
    assert frames.subscriber_count == 1

    assert ctrl.cancel()
    assert ctrl.join(2.0)
    assert _status_is(ctrl, lambda st: st.state == SessionState.CANCELLED)
    assert ctrl.reap()
    assert frames.subscriber_count == 0

    assert ctrl.start(StartRequest()) == StartResult.ACCEPTED
    assert ctrl.sessions_started == 2
    ctrl.shutdown()
    assert not ctrl.active


def test_invalid_request_is_refused():
    _, ctrl = _controller(FakeDetector())
    with pytest.raises(ValueError):
        ctrl.start(StartRequest(rows=1))
    assert ctrl.sessions_started == 0


def test_cancel_after_nine_samples():
    solvers = []

    def solver_factory():
        solvers.append(FakeSolver())
        return solvers[-1]

    frames, ctrl = _controller(FakeDetector(), solver_factory=solver_factory)
    assert ctrl.start(StartRequest(required_samples=10)) == StartResult.ACCEPTED
    _feed_accepted(frames, ctrl, range(9))
    assert ctrl.last_status.captured == 9

    assert ctrl.cancel()
    assert ctrl.join(2.0)
    assert _status_is(ctrl, lambda st: st.state == SessionState.CANCELLED)
    assert ctrl.last_status.captured == 0
    assert solvers[0].calls == 0
    assert ctrl.cancel() is False


def test_end_to_end_calibration_with_synthetic_views():
    k, _, views = synthetic_views(rows=6, cols=9, square=25.0, count=10)
    detector = FakeDetector(rows=6, cols=9, square_size=25.0, views=views)
    frames, ctrl = _controller(detector, solver_factory=CalibrationSolver)

    assert ctrl.start(StartRequest(rows=6, cols=9, square_size=25.0, required_samples=10)) == StartResult.ACCEPTED
    _feed_accepted(frames, ctrl, range(10))
    assert _status_is(ctrl, lambda st: st.state.is_terminal)
    ctrl.join(2.0)

    st = ctrl.last_status
    assert st.state == SessionState.COMPLETED, st.reason
    res = st.result
    assert res.camera_matrix.shape == (3, 3)
    assert res.dist_coeffs.size == 5
    assert res.sample_count == 10
    assert len(res.per_view_errors) == 10
    assert res.image_size == (640, 480)
    assert abs(res.camera_matrix[0, 0] - k[0, 0]) / k[0, 0] < 0.05
    assert np.isfinite(res.rms) and res.rms < 0.5

    ctrl.reap()
    assert not ctrl.active
