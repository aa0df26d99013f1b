from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional, Tuple

from repgate.counter.keypoints import PoseSnapshot, validate_names
from repgate.counter.pose_core import angle_3pt, has_angle, mean_angle, midpoint
from repgate.counter.quality import DEFAULT_MIN_SCORE

Signal = Callable[[PoseSnapshot], float]
Alignment = Callable[[PoseSnapshot, float], Optional[str]]

# Side points only count for alignment hints above this score
ALIGNMENT_MIN_SCORE = 0.3

# arm closure at or below this means arms are overhead
JUMPING_JACKS_DOWN = 60.0

# vertical shoulder-hip gap (pixels) above which a push-up is filmed head-on
TORSO_OFFSET_PX = 160.0

DEFAULT_MESSAGES: Dict[str, str] = {
    "ready": "AI ready! Lower with control and come back up.",
    "no_pose": "Step back so I can see your whole body.",
    "out_of_frame": "Make sure your whole body stays inside the frame.",
    "down": "Hold the bottom position.",
    "rep": "Rep complete! Go again.",
    "top": "Good, now go back down.",
    "between": "Keep going, all the way down.",
}


class UnknownExerciseError(KeyError):
    pass


@dataclass(frozen=True)
class ExerciseProfile:
    """
    Everything the detector needs to know about one exercise.

    signal maps a snapshot to a scalar (degrees for all built-ins); a rep is
    signal <= down_threshold followed by signal >= up_threshold.
    """
    name: str
    required_keypoints: Tuple[str, ...]
    signal: Signal
    down_threshold: float
    up_threshold: float
    min_keypoint_confidence: float = DEFAULT_MIN_SCORE
    min_rep_interval_ms: int = 600
    alignment: Optional[Alignment] = None
    messages: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_MESSAGES))
    label: str = ""

    def __post_init__(self):
        validate_names(self.required_keypoints)
        if not (0.0 <= self.down_threshold < self.up_threshold <= 180.0):
            raise ValueError(
                f"{self.name}: need 0 <= down_threshold < up_threshold <= 180, "
                f"got {self.down_threshold} / {self.up_threshold}"
            )
        if not (0.0 <= self.min_keypoint_confidence <= 1.0):
            raise ValueError(f"{self.name}: min_keypoint_confidence must be in [0, 1]")
        if self.min_rep_interval_ms < 0:
            raise ValueError(f"{self.name}: min_rep_interval_ms must be >= 0")
        missing = [k for k in DEFAULT_MESSAGES if k not in self.messages]
        if missing:
            raise ValueError(f"{self.name}: messages missing {', '.join(missing)}")

    def message(self, key: str) -> str:
        return self.messages[key]

    def describe(self) -> dict:
        return {
            "name": self.name,
            "label": self.label or self.name.replace("_", " ").title(),
            "required_keypoints": list(self.required_keypoints),
            "down_threshold": self.down_threshold,
            "up_threshold": self.up_threshold,
            "min_keypoint_confidence": self.min_keypoint_confidence,
            "min_rep_interval_ms": self.min_rep_interval_ms,
        }


def _bilateral(snap: PoseSnapshot, a: str, b: str, c: str) -> float:
    left = angle_3pt(snap.point(f"left_{a}"), snap.point(f"left_{b}"), snap.point(f"left_{c}"))
    right = angle_3pt(snap.point(f"right_{a}"), snap.point(f"right_{b}"), snap.point(f"right_{c}"))
    return mean_angle((left, right))


def _confident(snap: PoseSnapshot, *names: str) -> bool:
    return all(snap.score(n) > ALIGNMENT_MIN_SCORE for n in names)


# ---------------- signals ----------------

def elbow_angle(snap: PoseSnapshot) -> float:
    return _bilateral(snap, "shoulder", "elbow", "wrist")


def knee_angle(snap: PoseSnapshot) -> float:
    return _bilateral(snap, "hip", "knee", "ankle")


def arm_closure(snap: PoseSnapshot) -> float:
    """180 - shoulder abduction: ~0 with arms overhead, ~180 with arms at the sides.

    A side whose abduction can't be measured (wrist on the shoulder, missing
    point) is left out; with neither side measurable the arms read as down.
    """
    sides = []
    for side in ("left", "right"):
        hip, shoulder, wrist = (snap.point(f"{side}_{j}") for j in ("hip", "shoulder", "wrist"))
        if has_angle(hip, shoulder, wrist):
            sides.append(180.0 - angle_3pt(hip, shoulder, wrist))
    return mean_angle(sides)


# ---------------- alignment hints ----------------

def plank_alignment(snap: PoseSnapshot, signal: float) -> Optional[str]:
    if not _confident(snap, "left_hip", "right_hip"):
        return None
    # facing the camera head-on the torso is foreshortened into a tall column
    shoulder = midpoint(snap.point("left_shoulder"), snap.point("right_shoulder"))
    hip = midpoint(snap.point("left_hip"), snap.point("right_hip"))
    if shoulder is not None and hip is not None and abs(shoulder[1] - hip[1]) > TORSO_OFFSET_PX:
        return "Lower the camera or angle yourself sideways so your torso is visible."
    if not _confident(snap, "left_knee", "right_knee"):
        return None
    if _bilateral(snap, "shoulder", "hip", "knee") < 165.0:
        return "Keep your hips aligned for better form."
    return None


def torso_upright(snap: PoseSnapshot, signal: float) -> Optional[str]:
    if not _confident(snap, "left_shoulder", "right_shoulder"):
        return None
    hip = midpoint(snap.point("left_hip"), snap.point("right_hip"))
    shoulder = midpoint(snap.point("left_shoulder"), snap.point("right_shoulder"))
    if hip is None or shoulder is None:
        return None
    # image y grows downwards, so "straight up" from the hip is -y
    above = (hip[0], hip[1] - 1.0) + tuple(hip[2:])
    if angle_3pt(shoulder, hip, above) > 45.0:
        return "Keep your chest up."
    return None


def feet_apart(snap: PoseSnapshot, signal: float) -> Optional[str]:
    if signal > JUMPING_JACKS_DOWN:
        return None
    la, ra = snap.get("left_ankle"), snap.get("right_ankle")
    lh, rh = snap.get("left_hip"), snap.get("right_hip")
    if la is None or ra is None or lh is None or rh is None:
        return None
    if abs(la.x - ra.x) < abs(lh.x - rh.x):
        return "Jump your feet out wider."
    return None


# ---------------- built-in profiles ----------------

PUSHUPS = ExerciseProfile(
    name="pushups",
    label="Push-ups",
    required_keypoints=(
        "left_shoulder", "right_shoulder",
        "left_elbow", "right_elbow",
        "left_wrist", "right_wrist",
    ),
    signal=elbow_angle,
    down_threshold=120.0,
    up_threshold=155.0,
    min_rep_interval_ms=600,
    alignment=plank_alignment,
    messages={
        "ready": "AI ready! Lower your chest with control and press back up.",
        "no_pose": "Step back so I can see your whole body.",
        "out_of_frame": "Make sure your upper body and arms stay inside the frame.",
        "down": "Hold the bottom position, keep your core tight.",
        "rep": "Rep complete! Drive back down for the next one.",
        "top": "Lock your elbows at the top and squeeze your glutes.",
        "between": "Lower with control until your elbows reach 90°.",
    },
)

SQUATS = ExerciseProfile(
    name="squats",
    label="Squats",
    required_keypoints=(
        "left_hip", "right_hip",
        "left_knee", "right_knee",
        "left_ankle", "right_ankle",
    ),
    signal=knee_angle,
    down_threshold=90.0,
    up_threshold=160.0,
    min_rep_interval_ms=600,
    alignment=torso_upright,
    messages={
        "ready": "AI ready! Squat down and stand back up, keeping your back straight.",
        "no_pose": "Step back so I can see your whole body.",
        "out_of_frame": "Make sure your hips, knees and feet stay inside the frame.",
        "down": "Good depth, now drive up through your heels.",
        "rep": "Rep complete! Sit back into the next one.",
        "top": "Stand tall, then sit back down.",
        "between": "Keep going until your thighs are parallel.",
    },
)

JUMPING_JACKS = ExerciseProfile(
    name="jumping_jacks",
    label="Jumping Jacks",
    required_keypoints=(
        "left_shoulder", "right_shoulder",
        "left_wrist", "right_wrist",
        "left_hip", "right_hip",
        "left_ankle", "right_ankle",
    ),
    signal=arm_closure,
    down_threshold=JUMPING_JACKS_DOWN,
    up_threshold=150.0,
    min_rep_interval_ms=400,
    alignment=feet_apart,
    messages={
        "ready": "AI ready! Jump with arms and legs apart, then back together.",
        "no_pose": "Step back so I can see your whole body.",
        "out_of_frame": "Make sure your arms and feet stay inside the frame.",
        "down": "Arms up! Now bring them back down.",
        "rep": "Rep complete! Keep the rhythm.",
        "top": "Jump out and raise your arms overhead.",
        "between": "Reach all the way up.",
    },
)

EXERCISES: Dict[str, ExerciseProfile] = {p.name: p for p in (PUSHUPS, SQUATS, JUMPING_JACKS)}

_ALIASES = {
    "pushup": "pushups",
    "push_ups": "pushups",
    "push-ups": "pushups",
    "squat": "squats",
    "jumping": "jumping_jacks",
    "jumping_jack": "jumping_jacks",
    "jumping-jacks": "jumping_jacks",
}


def get_profile(name: str) -> ExerciseProfile:
    key = (name or "").strip().lower().replace(" ", "_")
    key = _ALIASES.get(key, key)
    try:
        return EXERCISES[key]
    except KeyError:
        raise UnknownExerciseError(f"unknown exercise {name!r}; expected one of {sorted(EXERCISES)}") from None
