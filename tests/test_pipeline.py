import math
import threading
import time
from types import SimpleNamespace

import pytest

np = pytest.importorskip("numpy")
pytest.importorskip("cv2")

from repgate.counter.detector import RepDetector  # noqa: E402
from repgate.counter.exercises import PUSHUPS  # noqa: E402
from repgate.counter.loader import PoseModelLoader  # noqa: E402
from repgate.counter.pipeline import PosePipeline  # noqa: E402

W, H = 640, 480


def _landmarks(angle):
    """33 MediaPipe landmarks; both arms bent to `angle` in pixel space."""
    lms = [SimpleNamespace(x=0.0, y=0.0, z=0.0, visibility=0.0) for _ in range(33)]
    th = math.radians(angle)
    for (s, e, w), ox in (((11, 13, 15), 200.0), ((12, 14, 16), 400.0)):
        pts = {s: (ox - 100.0, 240.0), e: (ox, 240.0), w: (ox - 100.0 * math.cos(th), 240.0 + 100.0 * math.sin(th))}
        for idx, (px, py) in pts.items():
            lms[idx] = SimpleNamespace(x=px / W, y=py / H, z=0.0, visibility=0.9)
    return lms


class FakeCapture:
    def __init__(self, n_frames, opened=True):
        self.n_frames = n_frames
        self.opened = opened
        self.released = False

    def isOpened(self):
        return self.opened

    def read(self):
        if self.n_frames <= 0:
            return False, None
        self.n_frames -= 1
        return True, np.zeros((H, W, 3), dtype=np.uint8)

    def release(self):
        self.released = True


class FakePose:
    def __init__(self, angles):
        self.angles = list(angles)

    def process(self, image):
        if not self.angles:
            return SimpleNamespace(pose_landmarks=None)
        angle = self.angles.pop(0)
        if angle is None:
            return SimpleNamespace(pose_landmarks=None)
        return SimpleNamespace(pose_landmarks=SimpleNamespace(landmark=_landmarks(angle)))


def _wait_for(pred, timeout=3.0):
    end = time.time() + timeout
    while time.time() < end:
        if pred():
            return True
        time.sleep(0.01)
    return False


def test_camera_frames_drive_the_detector():
    reps = []
    det = RepDetector(PUSHUPS, on_rep=lambda: reps.append(1))
    cap = FakeCapture(n_frames=4)
    loader = PoseModelLoader(lambda: FakePose([170, 90, 170, None]))
    pipe = PosePipeline(det, loader, max_fps=0, capture_factory=lambda idx: cap)
    pipe.start()
    try:
        assert _wait_for(lambda: cap.n_frames == 0)
        assert _wait_for(lambda: det.status == PUSHUPS.message("no_pose"))
        assert reps == [1]
    finally:
        pipe.stop()
        pipe.join(timeout=2.0)
    assert not pipe.is_alive()
    assert cap.released
    assert not det.running


def test_camera_unavailable_reports_error():
    errors = []
    det = RepDetector(PUSHUPS)
    loader = PoseModelLoader(lambda: FakePose([]))
    pipe = PosePipeline(det, loader, on_error=errors.append,
                        capture_factory=lambda idx: FakeCapture(0, opened=False))
    pipe.start()
    pipe.join(timeout=2.0)
    assert errors == ["Webcam not available"]
    assert not loader.loaded


def test_pause_skips_frames():
    det = RepDetector(PUSHUPS)
    cap = FakeCapture(n_frames=100)
    pipe = PosePipeline(det, PoseModelLoader(lambda: FakePose([])), max_fps=0,
                        capture_factory=lambda idx: cap)
    pipe.pause()
    pipe.start()
    time.sleep(0.1)
    assert cap.n_frames == 100
    pipe.stop()
    pipe.join(timeout=2.0)


def test_stopped_pipeline_does_not_report_late_errors():
    errors = []
    pipe = PosePipeline(RepDetector(PUSHUPS), PoseModelLoader(lambda: FakePose([])),
                        on_error=errors.append,
                        capture_factory=lambda idx: FakeCapture(0, opened=False))
    pipe.stop()
    pipe.start()
    pipe.join(timeout=2.0)
    assert errors == []


def test_slow_camera_failure_leaves_next_session_alone(monkeypatch):
    from repgate.common.config import Settings
    from repgate.counter import pipeline as pipeline_mod
    from repgate.counter.session import RepSessionManager

    opening = threading.Event()

    def slow_closed_capture(idx):
        opening.wait(3.0)
        return FakeCapture(0, opened=False)

    class SlowCameraPipeline(PosePipeline):
        def __init__(self, *args, **kwargs):
            kwargs["capture_factory"] = slow_closed_capture
            super().__init__(*args, **kwargs)

    monkeypatch.setattr(pipeline_mod, "PosePipeline", SlowCameraPipeline)
    mgr = RepSessionManager(settings=Settings(), loader=PoseModelLoader(lambda: FakePose([])))
    mgr.start("pushups", source="camera")
    camera = mgr.active_pipeline
    mgr.stop()                      # join gives up while the capture is still opening
    web_id, _ = mgr.start("squats", source="web")

    opening.set()
    camera.join(timeout=2.0)
    assert not camera.is_alive()
    assert mgr.active_id == web_id
    assert mgr.status().state == "running"
