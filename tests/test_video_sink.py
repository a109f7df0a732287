import cv2
import numpy as np

from LiveCalibrator.capture.video_sink import VideoSink


class FakeWriter:
    instances = []

    def __init__(self, path, fourcc, fps, size, is_color=True, opened=True, fail_on=()):
        self.path = path
        self.fourcc = fourcc
        self.fps = fps
        self.size = size
        self.opened = opened
        self.fail_on = set(fail_on)
        self.written = []
        self.calls = 0
        self.released = 0
        FakeWriter.instances.append(self)

    def isOpened(self):
        return self.opened

    def write(self, frame):
        self.calls += 1
        if self.calls - 1 in self.fail_on:
            raise cv2.error("encoder rejected frame")
        self.written.append(frame)

    def release(self):
        self.released += 1


def _patch(monkeypatch, **kwargs):
    FakeWriter.instances = []
    monkeypatch.setattr(cv2, "VideoWriter", lambda *a: FakeWriter(*a, **kwargs))


def _bgr(w, h):
    return np.zeros((h, w, 3), np.uint8)


def test_open_and_write(monkeypatch, tmp_path):
    _patch(monkeypatch)
    path = tmp_path / "archive" / "output.mp4"
    sink = VideoSink(str(path), 30.0, (64, 48))
    assert sink.open()
    assert sink.is_open
    assert path.parent.is_dir()

    writer = FakeWriter.instances[0]
    assert writer.fourcc == cv2.VideoWriter_fourcc(*"mp4v")
    assert writer.fps == 30.0 and writer.size == (64, 48)

    assert sink.write(_bgr(64, 48))
    assert sink.frames_written == 1


def test_writer_that_does_not_open(monkeypatch, tmp_path):
    _patch(monkeypatch, opened=False)
    sink = VideoSink(str(tmp_path / "out.mp4"), 30.0, (64, 48))
    assert sink.open() is False
    assert not sink.is_open
    assert FakeWriter.instances[0].released == 1
    assert sink.write(_bgr(64, 48)) is False


def test_mismatched_frames_are_resized(monkeypatch, tmp_path):
    _patch(monkeypatch)
    sink = VideoSink(str(tmp_path / "out.mp4"), 25.0, (64, 48))
    sink.open()
    assert sink.write(_bgr(32, 20))
    assert FakeWriter.instances[0].written[0].shape == (48, 64, 3)


def test_write_errors_are_counted_not_raised(monkeypatch, tmp_path):
    _patch(monkeypatch, fail_on={1})
    sink = VideoSink(str(tmp_path / "out.mp4"), 30.0, (64, 48))
    sink.open()
    results = [sink.write(_bgr(64, 48)) for _ in range(3)]
    assert results == [True, False, True]
    assert sink.failures == 1
    assert sink.frames_written == 2


def test_close_releases_writer_once(monkeypatch, tmp_path):
    _patch(monkeypatch)
    sink = VideoSink(str(tmp_path / "out.mp4"), 30.0, (64, 48))
    sink.open()
    sink.close()
    sink.close()
    assert FakeWriter.instances[0].released == 1
    assert not sink.is_open
    assert sink.write(_bgr(64, 48)) is False
