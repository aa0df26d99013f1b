from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

# COCO-17 names, as emitted by MoveNet / pose-detection
KEYPOINT_NAMES: Tuple[str, ...] = (
    "nose",
    "left_eye", "right_eye",
    "left_ear", "right_ear",
    "left_shoulder", "right_shoulder",
    "left_elbow", "right_elbow",
    "left_wrist", "right_wrist",
    "left_hip", "right_hip",
    "left_knee", "right_knee",
    "left_ankle", "right_ankle",
)

# MediaPipe Pose landmark index -> canonical name
MEDIAPIPE_INDEX: Dict[int, str] = {
    0: "nose",
    2: "left_eye", 5: "right_eye",
    7: "left_ear", 8: "right_ear",
    11: "left_shoulder", 12: "right_shoulder",
    13: "left_elbow", 14: "right_elbow",
    15: "left_wrist", 16: "right_wrist",
    23: "left_hip", 24: "right_hip",
    25: "left_knee", 26: "right_knee",
    27: "left_ankle", 28: "right_ankle",
}


@dataclass(frozen=True)
class Keypoint:
    name: str
    x: float
    y: float
    score: float = 0.0   # confidence/visibility [0..1]
    z: Optional[float] = None

    def point(self) -> Tuple[float, ...]:
        if self.z is None:
            return (self.x, self.y)
        return (self.x, self.y, self.z)


@dataclass(frozen=True)
class PoseSnapshot:
    """
    All keypoints for one frame. ts is seconds; None means "stamp on arrival".
    """
    keypoints: Mapping[str, Keypoint] = field(default_factory=dict)
    ts: Optional[float] = None

    def get(self, name: str) -> Optional[Keypoint]:
        return self.keypoints.get(name)

    def point(self, name: str) -> Optional[Tuple[float, ...]]:
        kp = self.keypoints.get(name)
        return kp.point() if kp is not None else None

    def score(self, name: str) -> float:
        kp = self.keypoints.get(name)
        return kp.score if kp is not None else 0.0

    def __len__(self) -> int:
        return len(self.keypoints)


def validate_names(names: Iterable[str]) -> Tuple[str, ...]:
    names = tuple(names)
    unknown = [n for n in names if n not in KEYPOINT_NAMES]
    if unknown:
        raise ValueError(f"unknown keypoint name(s): {', '.join(unknown)}")
    return names


def _coerce(name: str, x: Any, y: Any, score: Any, z: Any = None) -> Optional[Keypoint]:
    try:
        return Keypoint(
            name=name,
            x=float(x),
            y=float(y),
            score=float(score) if score is not None else 0.0,
            z=float(z) if z is not None else None,
        )
    except (TypeError, ValueError):
        logger.debug("dropping malformed keypoint %s", name)
        return None


def from_movenet(keypoints: Iterable[Mapping[str, Any]], ts: Optional[float] = None) -> PoseSnapshot:
    """Build a snapshot from MoveNet-style dicts: {name, x, y, score, z?}."""
    out: Dict[str, Keypoint] = {}
    for raw in keypoints or ():
        name = raw.get("name") if isinstance(raw, Mapping) else None
        if name not in KEYPOINT_NAMES:
            continue
        kp = _coerce(name, raw.get("x"), raw.get("y"), raw.get("score"), raw.get("z"))
        if kp is not None:
            out[name] = kp
    return PoseSnapshot(keypoints=out, ts=ts)


def from_mediapipe(landmarks: Optional[Sequence[Any]], ts: Optional[float] = None,
                   width: float = 1.0, height: float = 1.0) -> PoseSnapshot:
    """
    Build a snapshot from a MediaPipe landmark list (objects with x/y/z/visibility).
    Coordinates stay normalized unless width/height are given.
    """
    out: Dict[str, Keypoint] = {}
    if not landmarks:
        return PoseSnapshot(keypoints=out, ts=ts)
    for idx, name in MEDIAPIPE_INDEX.items():
        if idx >= len(landmarks):
            continue
        lm = landmarks[idx]
        x, y = getattr(lm, "x", None), getattr(lm, "y", None)
        if x is None or y is None:
            continue
        z = getattr(lm, "z", None)
        kp = _coerce(name, x * width, y * height, getattr(lm, "visibility", None),
                     z * width if z is not None else None)
        if kp is not None:
            out[name] = kp
    return PoseSnapshot(keypoints=out, ts=ts)
