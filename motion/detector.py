"""
Frame-pair motion detection: absolute difference, luminance reduction,
Otsu binarization and a global changed-pixel fraction.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Sequence

import cv2
import numpy as np

from .config import DEFAULT_LUMINANCE_WEIGHTS


class DimensionMismatch(ValueError):
    """Raised when a frame and its background do not share the same shape."""

    def __init__(self, frame_shape: tuple, background_shape: tuple):
        super().__init__(f"frame shape {frame_shape} does not match background shape {background_shape}")
        self.frame_shape = frame_shape
        self.background_shape = background_shape


@dataclass(frozen=True)
class Verdict:
    motion_detected: bool
    changed_fraction: float
    threshold: int

    @property
    def label(self) -> str:
        return "Movement Detected" if self.motion_detected else "Movement Not Detected"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def to_intensity(image: np.ndarray, weights: Sequence[float] = DEFAULT_LUMINANCE_WEIGHTS) -> np.ndarray:
    """
    Reduce an (H, W, C) image to a single uint8 intensity channel using
    perceptual weights. 2-D images are returned as-is.
    """
    if image.ndim == 2:
        return image
    channels = image.shape[2]
    if channels == 1:
        return image[:, :, 0]
    if channels == 4:
        image = image[:, :, :3]
        channels = 3
    if channels != len(weights):
        raise ValueError(f"{len(weights)} luminance weights given for a {channels}-channel image")

    weighted = image.astype(np.float64) @ np.asarray(weights, dtype=np.float64)
    return np.clip(np.rint(weighted), 0, 255).astype(np.uint8)


def otsu_threshold(intensity: np.ndarray) -> int:
    """
    Returns the integer level t in 1..255 maximising the between-class
    variance of the populations [0, t) and [t, 255]. When several levels
    tie (empty bins between the classes) their mean, rounded half up, is
    returned; every tied level produces the same mask.

    A histogram that no level can split (a flat image) yields 1, so zero
    intensity is never above the threshold and any non-zero intensity is.
    """
    hist = np.bincount(intensity.ravel(), minlength=256)[:256].astype(np.float64)
    levels = np.arange(256, dtype=np.float64)

    counts = np.cumsum(hist)
    sums = np.cumsum(hist * levels)
    total, total_sum = counts[-1], sums[-1]

    below = counts[:-1]
    above = total - below
    valid = (below > 0) & (above > 0)
    if not valid.any():
        return 1

    with np.errstate(divide="ignore", invalid="ignore"):
        mean_below = sums[:-1] / below
        mean_above = (total_sum - sums[:-1]) / above
        between = below * above * (mean_below - mean_above) ** 2
    between[~valid] = -1.0
    tied = np.flatnonzero(between == between.max()) + 1
    return int(np.floor(tied.mean() + 0.5))


class MotionDetector:
    def __init__(self, motion_fraction: float = 0.08, luminance_weights: Sequence[float] = DEFAULT_LUMINANCE_WEIGHTS):
        self.motion_fraction = motion_fraction
        self.luminance_weights = tuple(luminance_weights)

    def detect(self, frame: np.ndarray, background: np.ndarray) -> Verdict:
        if frame.shape != background.shape:
            raise DimensionMismatch(frame.shape, background.shape)
        if frame.size == 0:
            raise ValueError("cannot detect motion on an empty frame")
        if frame.dtype != np.uint8 or background.dtype != np.uint8:
            raise ValueError(f"frames must be uint8, got {frame.dtype} and {background.dtype}")

        diff = cv2.absdiff(frame, background)
        intensity = to_intensity(diff, self.luminance_weights)
        threshold = otsu_threshold(intensity)
        changed_fraction = float(np.count_nonzero(intensity >= threshold)) / intensity.size

        # A small changed fraction is reported as motion; a large one is not.
        return Verdict(
            motion_detected=not changed_fraction > self.motion_fraction,
            changed_fraction=changed_fraction,
            threshold=threshold,
        )
