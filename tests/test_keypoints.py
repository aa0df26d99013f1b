from types import SimpleNamespace

import pytest

from repgate.counter.keypoints import (
    KEYPOINT_NAMES, Keypoint, PoseSnapshot, from_mediapipe, from_movenet, validate_names,
)


def test_keypoint_is_immutable():
    kp = Keypoint("nose", 1.0, 2.0, 0.9)
    with pytest.raises(Exception):
        kp.x = 3.0


def test_point_includes_z_only_when_set():
    assert Keypoint("nose", 1.0, 2.0).point() == (1.0, 2.0)
    assert Keypoint("nose", 1.0, 2.0, z=-0.5).point() == (1.0, 2.0, -0.5)


def test_validate_names_rejects_unknown():
    assert validate_names(["left_elbow"]) == ("left_elbow",)
    with pytest.raises(ValueError, match="left_elbo"):
        validate_names(["left_elbo"])


def test_from_movenet_skips_unknown_and_malformed():
    snap = from_movenet([
        {"name": "left_elbow", "x": 10, "y": 20, "score": 0.8},
        {"name": "tail", "x": 1, "y": 1, "score": 1.0},
        {"name": "right_elbow", "x": "oops", "y": 1, "score": 1.0},
        {"name": "nose", "x": 5, "y": 6},
    ], ts=1.5)
    assert set(snap.keypoints) == {"left_elbow", "nose"}
    assert snap.get("left_elbow").score == 0.8
    assert snap.score("nose") == 0.0
    assert snap.score("right_elbow") == 0.0
    assert snap.point("left_elbow") == (10.0, 20.0)
    assert snap.ts == 1.5


def test_from_mediapipe_maps_indices_and_scales():
    landmarks = [SimpleNamespace(x=0.1 * i / 33, y=0.5, z=0.0, visibility=0.9) for i in range(33)]
    snap = from_mediapipe(landmarks, ts=2.0, width=640, height=480)
    assert set(snap.keypoints) <= set(KEYPOINT_NAMES)
    assert len(snap) == 17
    elbow = snap.get("left_elbow")
    assert elbow.x == pytest.approx(0.1 * 13 / 33 * 640)
    assert elbow.y == pytest.approx(240.0)
    assert elbow.score == 0.9


def test_from_mediapipe_handles_nothing():
    assert len(from_mediapipe(None)) == 0
    assert len(from_mediapipe([SimpleNamespace(x=0.1, y=0.1, z=0.0, visibility=1.0)])) == 1


def test_snapshot_get_missing():
    snap = PoseSnapshot()
    assert snap.get("nose") is None
    assert snap.point("nose") is None
    assert len(snap) == 0
