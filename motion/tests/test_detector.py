import numpy as np
import pytest

from motion.detector import DimensionMismatch, MotionDetector, otsu_threshold, to_intensity


def _solid(value, shape=(4, 4, 3)):
    return np.full(shape, value, dtype=np.uint8)


def test_black_background_white_frame_is_large_fraction():
    verdict = MotionDetector().detect(_solid(255), _solid(0))
    assert verdict.changed_fraction == 1.0
    assert verdict.motion_detected is False
    assert verdict.label == "Movement Not Detected"


def test_identical_gray_frames_report_motion():
    frame = _solid(128)
    verdict = MotionDetector().detect(frame, frame.copy())
    assert verdict.changed_fraction == 0.0
    assert verdict.motion_detected is True
    assert verdict.label == "Movement Detected"


def test_identical_random_frames_are_deterministic():
    rng = np.random.default_rng(7)
    frame = rng.integers(0, 256, size=(24, 32, 3), dtype=np.uint8)
    detector = MotionDetector()
    verdicts = [detector.detect(frame, frame) for _ in range(3)]
    assert all(v == verdicts[0] for v in verdicts)
    assert verdicts[0].changed_fraction == 0.0


def test_dimension_mismatch():
    with pytest.raises(DimensionMismatch):
        MotionDetector().detect(_solid(0, (10, 10, 3)), _solid(0, (20, 20, 3)))


def test_small_patch_reports_motion_and_large_patch_does_not():
    background = _solid(0, (20, 20, 3))
    small = background.copy()
    small[:2, :2] = 200
    large = background.copy()
    large[:10, :] = 200

    detector = MotionDetector(motion_fraction=0.08)
    small_verdict = detector.detect(small, background)
    large_verdict = detector.detect(large, background)

    assert small_verdict.changed_fraction == pytest.approx(4 / 400)
    assert small_verdict.motion_detected is True
    assert large_verdict.changed_fraction == pytest.approx(0.5)
    assert large_verdict.motion_detected is False


def test_motion_fraction_is_configurable():
    background = _solid(0, (10, 10, 3))
    frame = background.copy()
    frame[:3, :] = 255
    assert MotionDetector(motion_fraction=0.5).detect(frame, background).motion_detected is True
    assert MotionDetector(motion_fraction=0.1).detect(frame, background).motion_detected is False


def test_otsu_threshold_lies_between_two_peaks():
    intensity = np.concatenate([np.full(500, 50), np.full(300, 200)]).astype(np.uint8)
    threshold = otsu_threshold(intensity)
    assert 50 < threshold < 200


def test_otsu_threshold_averages_tied_levels():
    # Every level in 51..200 splits {50, 200} identically.
    intensity = np.concatenate([np.full(500, 50), np.full(300, 200)]).astype(np.uint8)
    assert otsu_threshold(intensity) == 126

    two_values = np.array([0, 0, 0, 200], dtype=np.uint8)
    assert otsu_threshold(two_values) == 101


def test_tied_threshold_is_reported_in_verdict():
    background = np.zeros((20, 20, 3), dtype=np.uint8)
    frame = background.copy()
    frame[:2, :2] = 200
    verdict = MotionDetector().detect(frame, background)
    assert verdict.threshold == 101
    assert verdict.changed_fraction == pytest.approx(4 / 400)


def test_otsu_threshold_noisy_bimodal():
    rng = np.random.default_rng(0)
    low = rng.normal(60, 6, 2000)
    high = rng.normal(190, 6, 1000)
    intensity = np.clip(np.concatenate([low, high]), 0, 255).astype(np.uint8)
    threshold = otsu_threshold(intensity)
    assert 60 < threshold < 190


def test_otsu_threshold_flat_image():
    assert otsu_threshold(np.zeros((5, 5), dtype=np.uint8)) == 1
    assert otsu_threshold(np.full((5, 5), 255, dtype=np.uint8)) == 1


def test_to_intensity_uses_perceptual_weights():
    image = np.zeros((1, 3, 3), dtype=np.uint8)
    image[0, 0] = (255, 0, 0)
    image[0, 1] = (0, 255, 0)
    image[0, 2] = (0, 0, 255)
    gray = to_intensity(image)
    assert gray.dtype == np.uint8
    assert gray.tolist() == [[76, 150, 29]]


def test_to_intensity_passes_single_channel_through():
    image = np.arange(16, dtype=np.uint8).reshape(4, 4)
    assert to_intensity(image) is image
    assert to_intensity(image[:, :, None]).shape == (4, 4)


def test_to_intensity_rejects_weight_channel_mismatch():
    with pytest.raises(ValueError):
        to_intensity(np.zeros((2, 2, 2), dtype=np.uint8))


def test_grayscale_frames_are_supported():
    background = np.zeros((8, 8), dtype=np.uint8)
    frame = background.copy()
    frame[0, 0] = 255
    verdict = MotionDetector().detect(frame, background)
    assert verdict.changed_fraction == pytest.approx(1 / 64)
    assert verdict.motion_detected is True
