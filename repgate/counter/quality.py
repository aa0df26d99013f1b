from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence, Tuple

from repgate.counter.keypoints import PoseSnapshot

DEFAULT_MIN_SCORE = 0.4


@dataclass(frozen=True)
class QualityResult:
    passed: bool
    confidence: float
    missing: Tuple[str, ...] = ()   # absent or below threshold


def evaluate(snapshot: PoseSnapshot, required: Sequence[str], min_score: float = DEFAULT_MIN_SCORE) -> QualityResult:
    """
    Gate a frame: every required keypoint must be present with score >= min_score.
    Confidence is the mean score of the required points, or 0 when the gate fails.
    """
    if not required:
        return QualityResult(passed=True, confidence=1.0)

    scores = []
    missing = []
    for name in required:
        kp = snapshot.get(name)
        if kp is None or kp.score < min_score:
            missing.append(name)
            continue
        scores.append(kp.score)

    if missing:
        return QualityResult(passed=False, confidence=0.0, missing=tuple(missing))
    return QualityResult(passed=True, confidence=sum(scores) / len(scores))
