import logging

import numpy as np

from motion.detector import Verdict
from motion.sinks import DETECTED_COLOR, NOT_DETECTED_COLOR, CompositeSink, LoggingSink, annotate

DETECTED = Verdict(motion_detected=True, changed_fraction=0.01, threshold=12)
NOT_DETECTED = Verdict(motion_detected=False, changed_fraction=0.5, threshold=90)


class FlagSink:
    def __init__(self, alive=True):
        self.alive = alive
        self.count = 0

    def present(self, frame, verdict):
        self.count += 1

    def is_alive(self):
        return self.alive


def test_annotate_draws_banner_without_touching_input():
    frame = np.zeros((120, 320, 3), dtype=np.uint8)
    detected = annotate(frame, DETECTED)
    not_detected = annotate(frame, NOT_DETECTED)

    assert not frame.any()
    assert detected.shape == frame.shape
    assert tuple(detected[1, 1]) == DETECTED_COLOR
    assert tuple(not_detected[1, 1]) == NOT_DETECTED_COLOR
    assert not detected[-1, -1].any()


def test_annotate_grayscale_frame():
    frame = np.zeros((60, 160), dtype=np.uint8)
    assert annotate(frame, DETECTED).shape == (60, 160, 3)


def test_composite_sink_fans_out_and_requires_all_alive():
    first, second = FlagSink(), FlagSink()
    sink = CompositeSink(first, second)
    sink.present(np.zeros((2, 2, 3), dtype=np.uint8), DETECTED)
    assert (first.count, second.count) == (1, 1)
    assert sink.is_alive()

    second.alive = False
    assert not sink.is_alive()


def test_logging_sink_reports_transitions(caplog):
    sink = LoggingSink()
    frame = np.zeros((2, 2, 3), dtype=np.uint8)
    with caplog.at_level(logging.INFO, logger="motion.verdicts"):
        sink.present(frame, DETECTED)
        sink.present(frame, DETECTED)
        sink.present(frame, NOT_DETECTED)

    messages = [r.getMessage() for r in caplog.records if r.levelno == logging.INFO]
    assert len(messages) == 2
    assert messages[0].startswith("Movement Detected")
    assert messages[1].startswith("Movement Not Detected")
    assert sink.count == 3
    assert sink.is_alive()
