import threading
import time

import numpy as np
import pytest

from motion.config import CameraConfig
from motion.sources import CaptureSource, SourceError


def _frame(value):
    return np.full((4, 4, 3), value, dtype=np.uint8)


def _source(snapshot_timeout=5.0, buffer_size=4):
    source = CaptureSource(CameraConfig(buffer_size=buffer_size), snapshot_timeout=snapshot_timeout)
    source.running = True
    return source


def test_most_recent_frame_returns_newest_and_flushes_backlog():
    source = _source()
    for value in (0, 1, 2):
        source.push(_frame(value))

    newest = source.most_recent_frame()
    assert newest[0, 0, 0] == 2
    assert len(source.buffer) == 0
    assert source.most_recent_frame() is None


def test_most_recent_frame_on_empty_buffer():
    assert _source().most_recent_frame() is None


def test_buffer_keeps_only_latest_frames():
    source = _source(buffer_size=2)
    for value in range(5):
        source.push(_frame(value))
    assert [f[0, 0, 0] for f in source.buffer] == [3, 4]


def test_pushed_frames_are_read_only():
    source = _source()
    source.push(_frame(9))
    with pytest.raises(ValueError):
        source.most_recent_frame()[0, 0, 0] = 1


def test_snapshot_returns_buffered_frame_without_consuming_it():
    source = _source()
    source.push(_frame(7))
    assert source.snapshot()[0, 0, 0] == 7
    assert source.most_recent_frame()[0, 0, 0] == 7


def test_snapshot_times_out():
    source = _source(snapshot_timeout=0.05)
    started = time.monotonic()
    with pytest.raises(SourceError, match="Timed out"):
        source.snapshot()
    assert time.monotonic() - started < 1.0


def test_snapshot_wakes_when_a_frame_arrives():
    source = _source(snapshot_timeout=5.0)
    timer = threading.Timer(0.05, source.push, args=(_frame(3),))
    timer.start()
    started = time.monotonic()
    assert source.snapshot()[0, 0, 0] == 3
    assert time.monotonic() - started < 2.0


def test_release_wakes_blocked_snapshot():
    source = _source(snapshot_timeout=5.0)
    outcome = {}

    def wait_for_snapshot():
        started = time.monotonic()
        try:
            source.snapshot()
        except SourceError as exc:
            outcome["error"] = str(exc)
        outcome["elapsed"] = time.monotonic() - started

    waiter = threading.Thread(target=wait_for_snapshot)
    waiter.start()
    time.sleep(0.1)
    source.release()
    waiter.join(timeout=2)

    assert not waiter.is_alive()
    assert "released" in outcome["error"]
    assert outcome["elapsed"] < 2.0


def test_snapshot_after_release_fails_immediately():
    source = _source()
    source.release()
    with pytest.raises(SourceError, match="released"):
        source.snapshot()
