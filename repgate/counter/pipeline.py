from __future__ import annotations
import logging
import threading
import time
from typing import Callable, Optional

import cv2

from repgate.counter.detector import RepDetector
from repgate.counter.keypoints import from_mediapipe
from repgate.counter.loader import PoseModelLoader

logger = logging.getLogger(__name__)


class PosePipeline(threading.Thread):
    """
    Webcam -> MediaPipe -> RepDetector, one frame at a time on a daemon thread.
    Frames that arrive faster than max_fps are dropped, never queued.
    """
    def __init__(
            self,
            detector: RepDetector,
            loader: PoseModelLoader,
            camera_index: int = 0,
            max_fps: float = 30.0,
            show_window: bool = False,
            on_error: Optional[Callable[[str], None]] = None,
            capture_factory: Callable[[int], "cv2.VideoCapture"] = cv2.VideoCapture,
    ):
        super().__init__(daemon=True)
        self.detector = detector
        self.loader = loader
        self.camera_index = camera_index
        self.min_frame_s = 1.0 / max_fps if max_fps and max_fps > 0 else 0.0
        self.show_window = show_window
        self.on_error = on_error
        self._capture_factory = capture_factory
        self._halt = threading.Event()
        self._paused = threading.Event()
        self.cap = None

    def run(self):
        try:
            self.cap = self._capture_factory(self.camera_index)
            if not self.cap.isOpened():
                raise RuntimeError("Webcam not available")

            pose = self.loader.ensure_loaded()

            if self.show_window:
                try:
                    cv2.namedWindow("repgate", cv2.WINDOW_NORMAL)
                except cv2.error:
                    logger.warning("no display available, running headless")
                    self.show_window = False

            if self._halt.is_set():
                return
            self.detector.start()
            last_t = 0.0
            while not self._halt.is_set():
                if self._paused.is_set():
                    time.sleep(0.05)
                    continue
                ok, frame = self.cap.read()
                if not ok:
                    time.sleep(0.01)
                    continue
                t = time.time()
                if t - last_t < self.min_frame_s:
                    continue
                last_t = t

                h, w = frame.shape[:2]
                image = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
                res = pose.process(image)
                if res.pose_landmarks:
                    snap = from_mediapipe(res.pose_landmarks.landmark, ts=t, width=w, height=h)
                    self.detector.process(snap)
                else:
                    self.detector.no_pose(t)

                if self.show_window:
                    self._draw(frame)

        except Exception as e:
            if self._halt.is_set():
                # already stopped; the session this belonged to is gone
                logger.info("PosePipeline error after stop: %s", e)
            else:
                logger.exception("PosePipeline error")
                if self.on_error:
                    self.on_error(str(e))
        finally:
            if self.cap is not None:
                self.cap.release()
            if self.show_window:
                try:
                    cv2.destroyAllWindows()
                except cv2.error:
                    pass

    def _draw(self, frame):
        try:
            cv2.putText(frame, f"{self.detector.phase.value}  conf {self.detector.confidence:.2f}", (20, 40),
                        cv2.FONT_HERSHEY_SIMPLEX, 1, (0, 255, 0), 2)
            if self.detector.status:
                cv2.putText(frame, self.detector.status, (20, 80),
                            cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 255), 1)
            cv2.imshow("repgate", frame)
            _ = cv2.waitKey(1)
        except cv2.error:
            logger.warning("display failed, running headless")
            self.show_window = False

    def stop(self):
        self._halt.set()
        self.detector.stop(end_session=True)

    def pause(self):
        self._paused.set()
        self.detector.pause()

    def resume(self):
        self._paused.clear()
        self.detector.resume()
