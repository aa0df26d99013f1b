# repgate/counter/web_pipeline.py
from __future__ import annotations
from typing import Callable, Optional

from repgate.counter.detector import RepDetector
from repgate.counter.keypoints import PoseSnapshot


class WebPosePipeline:
    """
    A minimal 'pipeline' that consumes keypoints estimated in the browser.
    No camera, no threads. Just call push_frame(snapshot) per message.
    """
    def __init__(self, detector: RepDetector, debug_cb: Optional[Callable[[dict], None]] = None):
        self.detector = detector
        self.debug_cb = debug_cb

    # keep for API parity with PosePipeline
    def start(self):
        self.detector.start()

    def stop(self):
        self.detector.stop(end_session=True)

    def pause(self):
        self.detector.pause()

    def resume(self):
        self.detector.resume()

    def join(self, timeout: Optional[float] = None):
        return

    def push_frame(self, snapshot: PoseSnapshot) -> bool:
        """Feed one frame of keypoints; True if it completed a rep."""
        return self.detector.process(snapshot)

    def push_empty(self, ts: Optional[float] = None):
        """The browser ran the model but found nobody."""
        self.detector.no_pose(ts)
