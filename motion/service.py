from __future__ import annotations

import asyncio
import json
import logging
import threading
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional

import cv2
import numpy as np

from .config import MotionSettings
from .detector import MotionDetector, Verdict
from .scheduler import Scheduler
from .session import DetectionSession
from .sinks import annotate
from .sources import CaptureSource, SourceError

logger = logging.getLogger(__name__)


@dataclass
class VerdictRecord:
    timestamp: float
    motion_detected: bool
    changed_fraction: float
    threshold: int
    fps: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def default_source_factory(settings: MotionSettings) -> CaptureSource:
    return CaptureSource(settings.camera, snapshot_timeout=settings.acquisition.snapshot_timeout)


def build_detector(settings: MotionSettings) -> MotionDetector:
    return MotionDetector(
        motion_fraction=settings.detection.motion_fraction,
        luminance_weights=settings.detection.luminance_weights,
    )


class MotionService:
    """
    Background monitor: owns the camera, the detection session and its
    scheduler, and acts as the session's sink (storage, live preview,
    websocket fan-out).
    """

    def __init__(
        self,
        settings: MotionSettings,
        db=None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        source_factory: Callable[[MotionSettings], Any] = default_source_factory,
    ):
        self.settings = settings
        self.db = db
        self.loop = loop
        self.source_factory = source_factory

        self.source = None
        self.session: Optional[DetectionSession] = None
        self.scheduler: Optional[Scheduler] = None
        self.accepting = False

        self.listeners: List[asyncio.Queue] = []
        self.last_frame_jpeg: Optional[bytes] = None
        self.last_record: Optional[VerdictRecord] = None
        self.prev_ts: Optional[float] = None

        self.lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self.session is not None and self.session.running

    def start(self) -> None:
        if self.running:
            return
        source = self.source_factory(self.settings)
        self.session = DetectionSession(source, self, build_detector(self.settings))
        try:
            source.open()
        except SourceError:
            self.session.stop()
            logger.error("Motion service failed to start", exc_info=True)
            raise

        self.source = source
        self.accepting = True
        self.prev_ts = None
        self.session.initialize()
        self._log_event("STARTED")
        self.scheduler = Scheduler()
        self.scheduler.start(self.session, period=self.settings.acquisition.period)
        logger.info("Motion service started")

    def stop(self) -> None:
        self.accepting = False
        source, self.source = self.source, None
        if self.scheduler:
            self.scheduler.cancel()
        # release() wakes a tick blocked in snapshot(); it must precede the join.
        if source:
            source.release()
        if self.scheduler:
            self.scheduler.join(timeout=self.settings.acquisition.snapshot_timeout + 2)
            if self.scheduler.thread and self.scheduler.thread.is_alive():
                logger.warning("Scheduler thread did not finish within the stop timeout")
            self.scheduler = None
        if self.session:
            self.session.stop()
        if source:
            self._log_event("STOPPED")
            logger.info("Motion service stopped")

    def update_settings(self, settings: MotionSettings) -> None:
        """
        Applies new settings. Camera or acquisition changes restart the
        monitor; if the new camera cannot be opened the previous settings
        are restored and restarted before the SourceError is re-raised.
        """
        restart = self.running and (
            settings.camera != self.settings.camera or settings.acquisition != self.settings.acquisition
        )
        previous, self.settings = self.settings, settings
        if not restart:
            if self.session:
                self.session.detector = build_detector(settings)
            return

        self.stop()
        try:
            self.start()
        except SourceError:
            logger.warning("Restoring previous settings after failed restart")
            self.settings = previous
            self.start()
            raise

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self.listeners.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        if queue in self.listeners:
            self.listeners.remove(queue)

    def latest_frame(self) -> Optional[bytes]:
        with self.lock:
            return self.last_frame_jpeg

    def latest_verdict(self) -> Optional[VerdictRecord]:
        with self.lock:
            return self.last_record

    def is_alive(self) -> bool:
        return self.accepting

    def present(self, frame: np.ndarray, verdict: Verdict) -> None:
        now = time.time()
        fps = 0.0
        if self.prev_ts is not None and now > self.prev_ts:
            fps = 1.0 / (now - self.prev_ts)
        self.prev_ts = now

        record = VerdictRecord(
            timestamp=now,
            motion_detected=verdict.motion_detected,
            changed_fraction=verdict.changed_fraction,
            threshold=verdict.threshold,
            fps=fps,
        )
        previous = self.latest_verdict()
        if previous is None or previous.motion_detected != record.motion_detected:
            self._log_event("MOTION_DETECTED" if record.motion_detected else "MOTION_NOT_DETECTED", now)

        if self.db:
            self.db.log_verdict(record)
        self._store_frame(annotate(frame, verdict), record)
        self._broadcast(record)

    def _log_event(self, event_type: str, ts: Optional[float] = None) -> None:
        if self.db:
            self.db.log_event(event_type, ts if ts is not None else time.time())

    def _store_frame(self, frame: np.ndarray, record: VerdictRecord) -> None:
        ok, buf = cv2.imencode(".jpg", cv2.cvtColor(frame, cv2.COLOR_RGB2BGR))
        with self.lock:
            self.last_record = record
            if ok:
                self.last_frame_jpeg = buf.tobytes()

    def _broadcast(self, record: VerdictRecord) -> None:
        if self.loop is None:
            return
        payload = json.dumps(record.to_dict())
        for queue in list(self.listeners):
            self.loop.call_soon_threadsafe(self._push_queue, queue, payload)

    @staticmethod
    def _push_queue(queue: asyncio.Queue, payload: str) -> None:
        try:
            if queue.qsize() > 2:
                queue.get_nowait()
            queue.put_nowait(payload)
        except asyncio.QueueFull:
            return
