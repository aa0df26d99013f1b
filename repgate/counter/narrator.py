from __future__ import annotations
from typing import Literal, Optional

from repgate.counter.exercises import ExerciseProfile

# Where the signal sits relative to the hysteresis band this frame
Zone = Literal["down", "up", "between"]


def narrate(
    profile: ExerciseProfile,
    *,
    pose_found: bool = True,
    gate_passed: bool = True,
    zone: Zone = "between",
    rep_counted: bool = False,
    alignment: Optional[str] = None,
) -> str:
    """Pick the guidance line for the current frame."""
    if not pose_found:
        return profile.message("no_pose")
    if not gate_passed:
        return profile.message("out_of_frame")
    if rep_counted:
        return profile.message("rep")
    if alignment:
        return alignment
    if zone == "down":
        return profile.message("down")
    if zone == "up":
        return profile.message("top")
    return profile.message("between")
