from __future__ import annotations
import logging
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


def mediapipe_pose_factory(model_complexity: int = 1,
                           min_detection_confidence: float = 0.5,
                           min_tracking_confidence: float = 0.5) -> Callable[[], Any]:
    def _build():
        import mediapipe as mp  # heavy; only pay for it when a camera session starts
        return mp.solutions.pose.Pose(
            static_image_mode=False,
            model_complexity=model_complexity,
            enable_segmentation=False,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )
    return _build


class PoseModelLoader:
    """
    Loads a pose model once and hands the same instance to every caller.
    Pass it to each pipeline that needs the model instead of keeping a module global.
    """
    def __init__(self, factory: Optional[Callable[[], Any]] = None):
        self._factory = factory or mediapipe_pose_factory()
        self._lock = threading.Lock()
        self._handle: Any = None

    @property
    def loaded(self) -> bool:
        return self._handle is not None

    def ensure_loaded(self) -> Any:
        if self._handle is not None:
            return self._handle
        with self._lock:
            if self._handle is None:
                logger.info("loading pose model")
                self._handle = self._factory()
        return self._handle

    def close(self):
        with self._lock:
            handle, self._handle = self._handle, None
        if handle is not None and hasattr(handle, "close"):
            try:
                handle.close()
            except Exception:
                logger.exception("error closing pose model")
