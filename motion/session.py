from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import NamedTuple, Optional, Protocol

import numpy as np

from .detector import DimensionMismatch, MotionDetector, Verdict

logger = logging.getLogger(__name__)


class FrameSource(Protocol):
    def most_recent_frame(self) -> Optional[np.ndarray]:
        """Newest buffered frame or None; discards everything older."""

    def snapshot(self) -> np.ndarray:
        """Blocks until a frame is available."""


class Sink(Protocol):
    def present(self, frame: np.ndarray, verdict: Verdict) -> None:
        ...

    def is_alive(self) -> bool:
        ...


class TickResult(NamedTuple):
    frame: np.ndarray
    verdict: Verdict


@dataclass
class SessionState:
    background: Optional[np.ndarray] = None
    running: bool = False


class DetectionSession:
    """
    Runs one acquisition/detection step per tick. Each processed frame
    becomes the background for the following tick.
    """

    def __init__(self, source: FrameSource, sink: Sink, detector: MotionDetector):
        self.source = source
        self.sink = sink
        self.detector = detector
        self._state = SessionState()

    @property
    def running(self) -> bool:
        return self._state.running

    @property
    def background(self) -> Optional[np.ndarray]:
        return self._state.background

    def initialize(self) -> None:
        self._state = SessionState(background=None, running=True)
        logger.debug("Detection session initialized")

    def stop(self) -> None:
        if self._state.running:
            logger.info("Detection session stopped")
        self._state = SessionState(background=None, running=False)

    def tick(self) -> Optional[TickResult]:
        if not self._state.running:
            return None

        if not self.sink.is_alive():
            logger.info("Sink is no longer alive, stopping session")
            self.stop()
            return None

        frame = self.source.most_recent_frame()
        if frame is None:
            return None

        background = self._state.background
        if background is None:
            background = self.source.snapshot()
            logger.debug("Background initialized from snapshot %s", background.shape)

        try:
            verdict = self.detector.detect(frame, background)
        except DimensionMismatch as exc:
            logger.warning("Skipping tick: %s; background will be re-acquired", exc)
            self._state.background = None
            return None

        self.sink.present(frame, verdict)
        self._state.background = frame
        return TickResult(frame=frame, verdict=verdict)
