from __future__ import annotations
import math
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

# Utility math

NEUTRAL_ANGLE = 180.0  # "fully extended"; never completes a rep on its own
_EPS = 1e-9

Point = Sequence[float]


def _rays(a: Optional[Point], b: Optional[Point], c: Optional[Point]) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """b->a and b->c as vectors, or None when the angle at b is undefined."""
    if a is None or b is None or c is None:
        return None
    try:
        pb = np.asarray(b, dtype=float)
        ab = np.asarray(a, dtype=float) - pb
        cb = np.asarray(c, dtype=float) - pb
    except (TypeError, ValueError):
        return None
    n_ab = float(np.linalg.norm(ab))
    n_cb = float(np.linalg.norm(cb))
    if not (n_ab > _EPS and n_cb > _EPS):   # also rejects NaN
        return None
    return ab, cb


def has_angle(a: Optional[Point], b: Optional[Point], c: Optional[Point]) -> bool:
    """True when angle_3pt(a, b, c) is measured rather than the NEUTRAL_ANGLE fallback."""
    return _rays(a, b, c) is not None


def angle_3pt(a: Optional[Point], b: Optional[Point], c: Optional[Point]) -> float:
    """Return angle ABC in degrees with B as vertex, folded into [0, 180].

    Accepts 2D or 3D points. A missing point, a zero-length segment or anything
    that isn't numeric gives NEUTRAL_ANGLE instead of raising.
    """
    rays = _rays(a, b, c)
    if rays is None:
        return NEUTRAL_ANGLE
    ab, cb = rays
    cos_t = float(np.clip(np.dot(ab, cb) / (np.linalg.norm(ab) * np.linalg.norm(cb)), -1.0, 1.0))
    ang = math.degrees(math.acos(cos_t))
    if ang > 180.0:
        ang = 360.0 - ang
    return ang


def midpoint(a: Optional[Point], b: Optional[Point]) -> Optional[tuple]:
    if a is None or b is None:
        return None
    return tuple((float(p) + float(q)) / 2.0 for p, q in zip(a, b))


def mean_angle(values: Iterable[float]) -> float:
    vals = list(values)
    if not vals:
        return NEUTRAL_ANGLE
    return sum(vals) / len(vals)
