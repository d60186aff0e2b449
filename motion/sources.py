from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Deque, Optional

import cv2
import numpy as np

from .config import CameraConfig

logger = logging.getLogger(__name__)


class SourceError(RuntimeError):
    """The capture device could not be opened or stopped delivering frames."""


class CaptureSource:
    """
    OpenCV camera reader. A background thread keeps the newest frames in a
    small buffer; ``most_recent_frame`` hands out the newest one and drops
    the rest.
    """

    def __init__(self, camera: CameraConfig, snapshot_timeout: float = 5.0):
        self.camera = camera
        self.snapshot_timeout = snapshot_timeout

        self.capture: Optional[cv2.VideoCapture] = None
        self.running = False
        self.thread: Optional[threading.Thread] = None

        self.buffer: Deque[np.ndarray] = deque(maxlen=camera.buffer_size)
        self.lock = threading.Lock()
        self.frame_ready = threading.Condition(self.lock)

    def open(self) -> None:
        if self.running:
            return
        self.capture = cv2.VideoCapture(self.camera.index)
        if not self.capture.isOpened():
            self.capture.release()
            self.capture = None
            raise SourceError(f"Cannot open camera {self.camera.index}")
        self.capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.camera.width)
        self.capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.camera.height)

        width = int(self.capture.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(self.capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
        logger.info("Camera %d opened at %dx%d", self.camera.index, width, height)

        self.running = True
        self.thread = threading.Thread(target=self._read_frames, daemon=True, name="capture-reader")
        self.thread.start()

    def release(self) -> None:
        with self.frame_ready:
            self.running = False
            self.frame_ready.notify_all()
        if self.thread:
            self.thread.join(timeout=2)
            self.thread = None
        if self.capture:
            self.capture.release()
            self.capture = None
        with self.lock:
            self.buffer.clear()
        logger.info("Camera %d released", self.camera.index)

    def most_recent_frame(self) -> Optional[np.ndarray]:
        with self.lock:
            if not self.buffer:
                return None
            frame = self.buffer.pop()
            self.buffer.clear()
        return frame

    def snapshot(self) -> np.ndarray:
        deadline = time.monotonic() + self.snapshot_timeout
        with self.frame_ready:
            while not self.buffer:
                if not self.running:
                    raise SourceError(f"Camera {self.camera.index} was released while waiting for a snapshot")
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise SourceError(f"Timed out after {self.snapshot_timeout}s waiting for a snapshot frame")
                self.frame_ready.wait(remaining)
            return self.buffer[-1]

    def push(self, frame: np.ndarray) -> None:
        """Buffers a frame and wakes any snapshot waiter."""
        frame.setflags(write=False)
        with self.frame_ready:
            self.buffer.append(frame)
            self.frame_ready.notify_all()

    def _read_frames(self) -> None:
        while self.running and self.capture is not None:
            ok, frame = self.capture.read()
            if not ok or frame is None:
                time.sleep(0.05)
                continue
            self.push(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
