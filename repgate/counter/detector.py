from __future__ import annotations
import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional

from repgate.counter.exercises import ExerciseProfile
from repgate.counter.keypoints import PoseSnapshot
from repgate.counter.narrator import Zone, narrate
from repgate.counter.quality import QualityResult, evaluate

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    READY = "ready"
    DOWN = "down"
    UP = "up"


class RepDetector:
    """
    Hysteresis rep detector driven by one pose snapshot per frame.

    signal <= down_threshold          -> DOWN
    signal >= up_threshold            -> UP (rep if previous phase was DOWN and
                                         min_rep_interval_ms has passed since the last rep)
    in between                        -> phase unchanged, never a rep
    quality gate fails / no pose      -> READY, confidence 0

    The detector only signals reps through on_rep(); counting is the caller's job.
    Frames and controls may come from different threads (camera loop vs. HTTP);
    they are serialized, so a frame is either fully applied before stop()/reset()
    or not at all.
    """
    def __init__(
        self,
        profile: ExerciseProfile,
        on_rep: Optional[Callable[[], None]] = None,
        on_confidence: Optional[Callable[[float], None]] = None,
        on_stage: Optional[Callable[[Phase], None]] = None,
        on_status: Optional[Callable[[str], None]] = None,
        debug_cb: Optional[Callable[[dict], None]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.profile = profile
        self._on_rep = on_rep or (lambda: None)
        self._on_confidence = on_confidence or (lambda *_: None)
        self._on_stage = on_stage or (lambda *_: None)
        self._on_status = on_status or (lambda *_: None)
        self._dbg = debug_cb or (lambda *_: None)
        self._clock = clock

        self._phase = Phase.READY
        self._last_rep_ts: Optional[float] = None   # None = no rep yet, debounce open
        self._last_status: Optional[str] = None
        self._last_status_ts = 0.0
        self._running = False
        self._lock = threading.RLock()

        self.confidence = 0.0
        self.signal: Optional[float] = None

    # ---- read-only state ----

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def last_rep_ts(self) -> Optional[float]:
        return self._last_rep_ts

    @property
    def status(self) -> Optional[str]:
        return self._last_status

    @property
    def status_changed_at(self) -> float:
        return self._last_status_ts

    @property
    def running(self) -> bool:
        return self._running

    # ---- lifecycle ----

    def start(self):
        with self._lock:
            if self._running:
                return
            self._running = True
            self._dbg({"type": "trace", "msg": f"detector started: {self.profile.name}"})
            self._update_status(self.profile.message("ready"), self._clock())

    def stop(self, end_session: bool = True):
        """Halt frame processing. Ending the session also clears phase and timing."""
        with self._lock:
            self._running = False
            if end_session:
                self.reset()
                self.confidence = 0.0
                self._on_confidence(0.0)
            self._dbg({"type": "trace", "msg": f"detector stopped (end_session={end_session})"})

    def pause(self):
        self.stop(end_session=False)

    def resume(self):
        with self._lock:
            self._running = True

    def reset(self):
        """Back to READY with no debounce history. Safe to call at any time, any number of times."""
        with self._lock:
            self._last_rep_ts = None
            self._last_status = None
            self.signal = None
            self._enter_phase(Phase.READY)

    # ---- per-frame ----

    def process(self, snapshot: PoseSnapshot) -> bool:
        """Consume one frame; returns True when this frame completed a rep."""
        with self._lock:
            if not self._running:
                return False
            return self._process(snapshot)

    def no_pose(self, ts: Optional[float] = None):
        """The pose source found nobody in this frame."""
        with self._lock:
            if not self._running:
                return
            self._degrade(ts if ts is not None else self._clock(), pose_found=False)

    # ---- internals ----

    def _process(self, snapshot: PoseSnapshot) -> bool:
        ts = snapshot.ts if snapshot.ts is not None else self._clock()

        if len(snapshot) == 0:
            self._degrade(ts, pose_found=False)
            return False

        gate: QualityResult = evaluate(
            snapshot, self.profile.required_keypoints, self.profile.min_keypoint_confidence
        )
        if not gate.passed:
            self._degrade(ts, pose_found=True)
            return False

        self.confidence = gate.confidence
        self._on_confidence(gate.confidence)

        sig = float(self.profile.signal(snapshot))
        self.signal = sig
        alignment = self.profile.alignment(snapshot, sig) if self.profile.alignment else None

        rep = False
        zone: Zone = "between"
        if sig <= self.profile.down_threshold:
            zone = "down"
            self._enter_phase(Phase.DOWN)
        elif sig >= self.profile.up_threshold:
            zone = "up"
            rep = self._phase == Phase.DOWN and self._debounce_elapsed(ts)
            if self._phase == Phase.DOWN and not rep:
                self._dbg({"type": "trace", "msg": "rep suppressed (debounce)"})
            self._enter_phase(Phase.UP)
            if rep:
                self._last_rep_ts = ts

        self._update_status(
            narrate(self.profile, zone=zone, rep_counted=rep, alignment=alignment), ts
        )
        if rep:
            logger.debug("%s: rep at %.3f (signal %.1f)", self.profile.name, ts, sig)
            self._dbg({"type": "trace", "msg": f"rep++ ({sig:.1f}°)"})
            self._on_rep()
        return rep

    def _degrade(self, ts: float, pose_found: bool):
        self.confidence = 0.0
        self.signal = None
        self._on_confidence(0.0)
        self._enter_phase(Phase.READY)
        self._update_status(narrate(self.profile, pose_found=pose_found, gate_passed=False), ts)

    def _debounce_elapsed(self, ts: float) -> bool:
        if self._last_rep_ts is None:
            return True
        return (ts - self._last_rep_ts) * 1000.0 >= self.profile.min_rep_interval_ms

    def _enter_phase(self, new_phase: Phase):
        if new_phase != self._phase:
            self._phase = new_phase
            self._dbg({"type": "trace", "msg": f"state→{new_phase.value}"})
            self._on_stage(new_phase)

    def _update_status(self, message: str, ts: float):
        if message == self._last_status:
            return
        self._last_status = message
        self._last_status_ts = ts
        self._on_status(message)
