"""
Frame-differencing motion monitor.
"""

from .config import MotionSettings
from .detector import DimensionMismatch, MotionDetector, Verdict
from .scheduler import Scheduler
from .session import DetectionSession, SessionState, TickResult
from .service import MotionService

__all__ = [
    "DetectionSession",
    "DimensionMismatch",
    "MotionDetector",
    "MotionService",
    "MotionSettings",
    "Scheduler",
    "SessionState",
    "TickResult",
    "Verdict",
]
