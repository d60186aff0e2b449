from __future__ import annotations

import logging
import math
import threading
import time
from typing import Callable, Optional

from .session import DetectionSession

logger = logging.getLogger(__name__)


class Scheduler:
    """
    Fires ``session.tick()`` on a fixed-rate grid of deadlines. Ticks run on
    a single thread, so they never overlap; deadlines missed while a tick
    was still running are skipped rather than replayed.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self.ticks = 0
        self.skipped = 0
        self.thread: Optional[threading.Thread] = None
        self._cancel = threading.Event()
        self._active = threading.Lock()

    @property
    def running(self) -> bool:
        return self._active.locked()

    def start(self, session: DetectionSession, period: float = 0.1) -> None:
        self._check_period(period)
        if self.running or (self.thread and self.thread.is_alive()):
            raise RuntimeError("scheduler is already running")
        self._cancel.clear()
        self.thread = threading.Thread(target=self.run, args=(session, period), daemon=True, name="motion-scheduler")
        self.thread.start()

    def run(self, session: DetectionSession, period: float = 0.1) -> None:
        """Blocking variant of start(); returns once cancelled or the session stops."""
        self._check_period(period)
        if not self._active.acquire(blocking=False):
            raise RuntimeError("scheduler is already running")
        try:
            self._loop(session, period)
        finally:
            self._active.release()

    def cancel(self) -> None:
        self._cancel.set()

    def join(self, timeout: Optional[float] = None) -> None:
        if self.thread and self.thread is not threading.current_thread():
            self.thread.join(timeout=timeout)

    @staticmethod
    def _check_period(period: float) -> None:
        if period <= 0:
            raise ValueError(f"period must be positive, got {period}")

    def _loop(self, session: DetectionSession, period: float) -> None:
        logger.info("Scheduler started with period %.3fs", period)
        origin = self.clock()
        index = 0

        while not self._cancel.is_set():
            delay = origin + index * period - self.clock()
            if delay > 0 and self._cancel.wait(delay):
                break

            try:
                session.tick()
            except Exception:
                logger.exception("Tick failed, stopping session")
                session.stop()
                break
            self.ticks += 1

            if not session.running:
                logger.info("Session is not running, scheduler exiting")
                break

            index += 1
            overrun = self.clock() - (origin + index * period)
            if overrun > 0:
                missed = math.floor(overrun / period) + 1
                self.skipped += missed
                index += missed
                logger.debug("Tick overran, skipped %d period(s)", missed)

        logger.info("Scheduler finished after %d tick(s), %d skipped", self.ticks, self.skipped)
