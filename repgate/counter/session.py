from __future__ import annotations
import functools
import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Literal, Optional, Tuple, Union

from repgate.common.config import Settings, get_settings
from repgate.common.events import (
    ConfidenceEvent, Event, EventType, RepEvent, SessionEvent, StageEvent, StatusEvent, to_dict,
)
from repgate.counter.detector import Phase, RepDetector
from repgate.counter.exercises import get_profile
from repgate.counter.keypoints import PoseSnapshot
from repgate.counter.loader import PoseModelLoader, mediapipe_pose_factory
from repgate.counter.web_pipeline import WebPosePipeline

logger = logging.getLogger(__name__)

Source = Literal["web", "camera"]


@dataclass
class SessionStatus:
    session_id: str
    state: str
    count: int
    exercise: Optional[str] = None
    source: Optional[str] = None
    phase: str = Phase.READY.value
    confidence: float = 0.0
    message: Optional[str] = None


@dataclass
class FinalSummary:
    session_id: str
    total_reps: int


class RepSessionManager:
    """
    Owns one exercise session at a time: the detector, the adapter feeding it
    and the rep count. Detector callbacks are turned into events for the sink.
    """
    def __init__(self, settings: Optional[Settings] = None, loader: Optional[PoseModelLoader] = None):
        self.settings = settings or get_settings()
        self.loader = loader or PoseModelLoader(mediapipe_pose_factory(self.settings.model_complexity))
        self.active_id: Optional[str] = None
        self.active_source: Optional[Source] = None
        self.active_pipeline = None
        self.detector: Optional[RepDetector] = None
        self.count = 0
        self.paused = False
        self._lock = threading.Lock()
        self._event_sink: Optional[Callable[[dict], None]] = None

    def set_event_sink(self, sink: Optional[Callable[[dict], None]]):
        self._event_sink = sink

    # ---- event fan-out ----

    def _emit(self, ev: Union[Event, dict]):
        if self._event_sink is None:
            return
        payload = ev if isinstance(ev, dict) else to_dict(ev)
        try:
            self._event_sink(payload)
        except Exception:
            logger.exception("event sink failed on %s", payload.get("type"))

    def _emit_debug(self, ev):
        """Forward detector traces; accepts a dict or anything printable."""
        if isinstance(ev, dict):
            logger.debug(ev.get("msg", ev))
            self._emit(ev)
        else:
            logger.debug("%s", ev)
            self._emit({"type": EventType.TRACE.value, "msg": str(ev)})

    def _on_rep(self):
        with self._lock:
            self.count += 1
            count = self.count
        self._emit(RepEvent(session_id=self.active_id or "", ts=time.time(), count=count))

    def _on_confidence(self, score: float):
        self._emit(ConfidenceEvent(session_id=self.active_id or "", ts=time.time(), confidence=round(score, 4)))

    def _on_stage(self, phase: Phase):
        self._emit(StageEvent(session_id=self.active_id or "", ts=time.time(), stage=phase.value))

    def _on_status(self, message: str):
        self._emit(StatusEvent(session_id=self.active_id or "", ts=time.time(), message=message))

    def _on_error(self, msg: str, pipeline=None):
        # Called from pipeline thread on camera/model failure
        if pipeline is not None and pipeline is not self.active_pipeline:
            logger.info("ignoring error from a replaced pipeline: %s", msg)
            return
        sid = self.active_id or ""
        exercise = self._exercise() or ""
        self._emit({"type": EventType.TRACE.value, "msg": f"pipeline error: {msg}"})
        self._teardown()
        self._emit(SessionEvent(EventType.SESSION_STOPPED, sid, exercise, time.time(), self.count))

    # ---- lifecycle ----

    def start(self, exercise: str, source: Source = "web") -> Tuple[str, str]:
        profile = get_profile(exercise)   # raises before we touch the running session
        if source not in ("web", "camera"):
            raise ValueError(f"unknown source {source!r}")

        if self.active_pipeline is not None:
            self.stop(self.active_id)

        sid = str(uuid.uuid4())
        self.active_id = sid
        self.active_source = source
        self.count = 0
        self.paused = False

        detector = RepDetector(
            profile,
            on_rep=self._on_rep,
            on_confidence=self._on_confidence,
            on_stage=self._on_stage,
            on_status=self._on_status,
            debug_cb=self._emit_debug,
        )
        self.detector = detector

        if source == "camera":
            from repgate.counter.pipeline import PosePipeline   # pulls in cv2
            pipe = PosePipeline(
                detector,
                self.loader,
                camera_index=self.settings.camera_index,
                max_fps=self.settings.max_fps,
                show_window=self.settings.show_window,
            )
            pipe.on_error = functools.partial(self._on_error, pipeline=pipe)
        else:
            pipe = WebPosePipeline(detector, debug_cb=self._emit_debug)

        self.active_pipeline = pipe
        self._emit(SessionEvent(EventType.SESSION_STARTED, sid, profile.name, time.time()))
        pipe.start()
        logger.info("session %s started: %s (%s)", sid, profile.name, source)
        return sid, f"started {profile.name}"

    def push_frame(self, snapshot: PoseSnapshot) -> bool:
        if isinstance(self.active_pipeline, WebPosePipeline):
            return self.active_pipeline.push_frame(snapshot)
        return False

    def push_empty(self, ts: Optional[float] = None):
        if isinstance(self.active_pipeline, WebPosePipeline):
            self.active_pipeline.push_empty(ts)

    def pause(self, session_id: Optional[str] = None) -> str:
        if self.active_pipeline is None:
            return self.active_id or ""
        self.active_pipeline.pause()
        self.paused = True
        self._emit(SessionEvent(EventType.SESSION_PAUSED, self.active_id or "", self._exercise() or "", time.time(), self.count))
        return self.active_id or ""

    def resume(self, session_id: Optional[str] = None) -> str:
        if self.active_pipeline is None:
            return self.active_id or ""
        self.active_pipeline.resume()
        self.paused = False
        self._emit(SessionEvent(EventType.SESSION_RESUMED, self.active_id or "", self._exercise() or "", time.time(), self.count))
        return self.active_id or ""

    def reset(self, session_id: Optional[str] = None) -> str:
        """Zero the count and the detector's phase/debounce state. Idempotent."""
        if self.detector is not None:
            self.detector.reset()
        with self._lock:
            self.count = 0
        return self.active_id or ""

    def stop(self, session_id: Optional[str] = None) -> FinalSummary:
        sid = self.active_id or ""
        exercise = self._exercise() or ""
        if self.active_pipeline is not None:
            self.active_pipeline.stop()   # waits out a frame already in the detector
            self.active_pipeline.join(timeout=1.0)
        total = self.count
        if self.active_pipeline is not None:
            self._emit(SessionEvent(EventType.SESSION_STOPPED, sid, exercise, time.time(), total))
            logger.info("session %s stopped after %d reps", sid, total)
        self._teardown()
        return FinalSummary(session_id=sid, total_reps=total)

    def status(self, session_id: Optional[str] = None) -> SessionStatus:
        det = self.detector
        if self.active_pipeline is None:
            state = "stopped"
        else:
            state = "paused" if self.paused else "running"
        return SessionStatus(
            session_id=self.active_id or "",
            state=state,
            count=self.count,
            exercise=self._exercise(),
            source=self.active_source,
            phase=det.phase.value if det else Phase.READY.value,
            confidence=det.confidence if det else 0.0,
            message=det.status if det else None,
        )

    def _exercise(self) -> Optional[str]:
        return self.detector.profile.name if self.detector else None

    def _teardown(self):
        self.active_pipeline = None
        self.active_id = None
        self.active_source = None
        self.detector = None
        self.paused = False
