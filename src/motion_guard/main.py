import argparse
import logging
import sys
from typing import List, Optional

from backend.config_loader import load_settings
from motion.detector import MotionDetector
from motion.scheduler import Scheduler
from motion.session import DetectionSession
from motion.sinks import CompositeSink, LoggingSink, WindowSink
from motion.sources import CaptureSource, SourceError

logger = logging.getLogger("motion_guard")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Live frame-to-frame motion monitor")
    parser.add_argument("--config", default="configs/default.yaml", help="YAML settings file")
    parser.add_argument("--camera", type=int, default=None, help="camera index, overrides the config")
    parser.add_argument("--period", type=float, default=None, help="seconds between ticks, overrides the config")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = load_settings(args.config)
    if args.camera is not None:
        settings.camera.index = args.camera
    if args.period is not None:
        settings.acquisition.period = args.period
    settings.validate()

    source = CaptureSource(settings.camera, snapshot_timeout=settings.acquisition.snapshot_timeout)
    window = WindowSink(settings.display.title)
    detector = MotionDetector(
        motion_fraction=settings.detection.motion_fraction,
        luminance_weights=settings.detection.luminance_weights,
    )
    session = DetectionSession(source, CompositeSink(window, LoggingSink()), detector)

    try:
        source.open()
    except SourceError as exc:
        session.stop()
        window.close()
        logger.error("Motion monitor failed to start: %s", exc)
        return 1

    session.initialize()
    scheduler = Scheduler()
    try:
        # GUI calls must stay on the main thread, so the loop blocks here.
        scheduler.run(session, period=settings.acquisition.period)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        session.stop()
        source.release()
        window.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
