from __future__ import annotations
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Union


class EventType(str, Enum):
    SESSION_STARTED = "session_started"
    SESSION_PAUSED = "session_paused"
    SESSION_RESUMED = "session_resumed"
    SESSION_STOPPED = "session_stopped"
    REP = "rep"
    CONFIDENCE = "confidence"
    STAGE = "stage"
    STATUS = "status"
    TRACE = "trace"


@dataclass
class SessionEvent:
    type: EventType
    session_id: str
    exercise: str
    ts: float
    count: int = 0


@dataclass
class RepEvent:
    session_id: str
    ts: float
    count: int
    type: EventType = EventType.REP


@dataclass
class ConfidenceEvent:
    session_id: str
    ts: float
    confidence: float
    type: EventType = EventType.CONFIDENCE


@dataclass
class StageEvent:
    session_id: str
    ts: float
    stage: str   # "ready" | "down" | "up"
    type: EventType = EventType.STAGE


@dataclass
class StatusEvent:
    session_id: str
    ts: float
    message: str
    type: EventType = EventType.STATUS


Event = Union[SessionEvent, RepEvent, ConfidenceEvent, StageEvent, StatusEvent]


def to_dict(ev: Event) -> dict:
    """JSON-ready dict with the enum flattened to its string value."""
    out = asdict(ev)
    out["type"] = ev.type.value
    return out
