from __future__ import annotations

import logging
from typing import Optional, Sequence

import cv2
import numpy as np

from .detector import Verdict
from .session import Sink

logger = logging.getLogger(__name__)

DETECTED_COLOR = (0, 200, 0)
NOT_DETECTED_COLOR = (220, 0, 0)
TEXT_COLOR = (255, 255, 255)


def annotate(frame: np.ndarray, verdict: Verdict, font_scale: Optional[float] = None) -> np.ndarray:
    """Returns an RGB copy of ``frame`` with the verdict banner in the top-left corner."""
    if frame.ndim == 2:
        canvas = cv2.cvtColor(frame, cv2.COLOR_GRAY2RGB)
    else:
        canvas = np.ascontiguousarray(frame[:, :, :3]).copy()

    if font_scale is None:
        font_scale = max(canvas.shape[1] / 640.0, 0.4)
    thickness = max(int(round(font_scale * 2)), 1)
    label = verdict.label
    (text_w, text_h), baseline = cv2.getTextSize(label, cv2.FONT_HERSHEY_SIMPLEX, font_scale, thickness)
    pad = 6

    box_color = DETECTED_COLOR if verdict.motion_detected else NOT_DETECTED_COLOR
    cv2.rectangle(canvas, (0, 0), (text_w + 2 * pad, text_h + baseline + 2 * pad), box_color, thickness=-1)
    cv2.putText(
        canvas,
        label,
        (pad, pad + text_h),
        cv2.FONT_HERSHEY_SIMPLEX,
        font_scale,
        TEXT_COLOR,
        thickness,
        cv2.LINE_AA,
    )
    return canvas


class WindowSink:
    """OpenCV window display. Closing the window or pressing 'q' ends its life."""

    def __init__(self, title: str = "Motion Detector"):
        self.title = title
        self.shown = False
        self.closed = False
        cv2.namedWindow(self.title, cv2.WINDOW_AUTOSIZE)

    def present(self, frame: np.ndarray, verdict: Verdict) -> None:
        if self.closed:
            return
        cv2.imshow(self.title, cv2.cvtColor(annotate(frame, verdict), cv2.COLOR_RGB2BGR))
        self.shown = True
        if (cv2.waitKey(1) & 0xFF) == ord("q"):
            self.closed = True

    def is_alive(self) -> bool:
        if self.closed:
            return False
        if not self.shown:
            cv2.waitKey(1)
            return True
        try:
            visible = cv2.getWindowProperty(self.title, cv2.WND_PROP_VISIBLE)
        except cv2.error:
            visible = 0
        if visible < 1:
            self.closed = True
        return not self.closed

    def close(self) -> None:
        self.closed = True
        try:
            cv2.destroyWindow(self.title)
        except cv2.error:
            logger.debug("Window %r already destroyed", self.title)


class LoggingSink:
    """Logs motion state transitions at INFO and every verdict at DEBUG."""

    def __init__(self, name: str = "motion.verdicts"):
        self.log = logging.getLogger(name)
        self.last: Optional[bool] = None
        self.count = 0

    def present(self, frame: np.ndarray, verdict: Verdict) -> None:
        self.count += 1
        self.log.debug(
            "frame %d: %s (changed %.4f, threshold %d)",
            self.count,
            verdict.label,
            verdict.changed_fraction,
            verdict.threshold,
        )
        if verdict.motion_detected != self.last:
            self.log.info("%s (changed fraction %.4f)", verdict.label, verdict.changed_fraction)
            self.last = verdict.motion_detected

    def is_alive(self) -> bool:
        return True


class CompositeSink:
    """Fans each verdict out to several sinks; alive only while all of them are."""

    def __init__(self, *sinks: Sink):
        self.sinks: Sequence[Sink] = sinks

    def present(self, frame: np.ndarray, verdict: Verdict) -> None:
        for sink in self.sinks:
            sink.present(frame, verdict)

    def is_alive(self) -> bool:
        return all(sink.is_alive() for sink in self.sinks)
