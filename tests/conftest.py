import math

import pytest

from repgate.counter.exercises import ExerciseProfile, PUSHUPS
from repgate.counter.keypoints import Keypoint, PoseSnapshot


def arm_keypoints(angle_deg, score=1.0, offset=0.0, side="left"):
    """Shoulder/elbow/wrist for one arm with the given elbow angle."""
    th = math.radians(angle_deg)
    return {
        f"{side}_shoulder": Keypoint(f"{side}_shoulder", offset - 1.0, 0.0, score),
        f"{side}_elbow": Keypoint(f"{side}_elbow", offset, 0.0, score),
        f"{side}_wrist": Keypoint(f"{side}_wrist", offset - math.cos(th), math.sin(th), score),
    }


def pushup_frame(angle_deg, ts=None, score=1.0):
    kps = {}
    kps.update(arm_keypoints(angle_deg, score, offset=0.0, side="left"))
    kps.update(arm_keypoints(angle_deg, score, offset=5.0, side="right"))
    return PoseSnapshot(keypoints=kps, ts=ts)


def signal_frame(value, ts=None, score=1.0):
    """Frame for the scripted profile: the signal is carried on the nose x."""
    return PoseSnapshot(keypoints={"nose": Keypoint("nose", float(value), 0.0, score)}, ts=ts)


SCRIPTED = ExerciseProfile(
    name="scripted",
    required_keypoints=("nose",),
    signal=lambda snap: snap.get("nose").x,
    down_threshold=120.0,
    up_threshold=155.0,
    min_rep_interval_ms=600,
)


class Recorder:
    def __init__(self):
        self.reps = 0
        self.confidences = []
        self.stages = []
        self.statuses = []
        self.traces = []

    def on_rep(self):
        self.reps += 1

    def callbacks(self):
        return dict(
            on_rep=self.on_rep,
            on_confidence=self.confidences.append,
            on_stage=self.stages.append,
            on_status=self.statuses.append,
            debug_cb=self.traces.append,
        )


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def pushups():
    return PUSHUPS


@pytest.fixture
def scripted():
    return SCRIPTED


@pytest.fixture
def frames():
    class _Frames:
        pushup = staticmethod(pushup_frame)
        signal = staticmethod(signal_frame)
    return _Frames
