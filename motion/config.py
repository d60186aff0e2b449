from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Tuple


DEFAULT_LUMINANCE_WEIGHTS = (0.2989, 0.5870, 0.1140)


@dataclass
class CameraConfig:
    index: int = 0
    width: int = 640
    height: int = 480
    buffer_size: int = 4


@dataclass
class DetectionConfig:
    motion_fraction: float = 0.08
    luminance_weights: Tuple[float, ...] = DEFAULT_LUMINANCE_WEIGHTS


@dataclass
class AcquisitionConfig:
    period: float = 0.1
    snapshot_timeout: float = 5.0


@dataclass
class DisplayConfig:
    title: str = "Motion Detector"


@dataclass
class StorageConfig:
    database_path: str = "artifacts/motion_monitor.db"


@dataclass
class MotionSettings:
    camera: CameraConfig = field(default_factory=CameraConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    acquisition: AcquisitionConfig = field(default_factory=AcquisitionConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    @classmethod
    def from_dict(cls, payload: dict) -> "MotionSettings":
        camera_data = payload.get("camera") or {}
        detection_data = payload.get("detection") or {}
        acquisition_data = payload.get("acquisition") or {}
        display_data = payload.get("display") or {}
        storage_data = payload.get("storage") or {}

        camera = CameraConfig(
            index=int(camera_data.get("index", 0)),
            width=int(camera_data.get("width", 640)),
            height=int(camera_data.get("height", 480)),
            buffer_size=int(camera_data.get("buffer_size", 4)),
        )
        detection = DetectionConfig(
            motion_fraction=float(detection_data.get("motion_fraction", 0.08)),
            luminance_weights=tuple(
                float(w) for w in detection_data.get("luminance_weights", DEFAULT_LUMINANCE_WEIGHTS)
            ),
        )
        acquisition = AcquisitionConfig(
            period=float(acquisition_data.get("period", 0.1)),
            snapshot_timeout=float(acquisition_data.get("snapshot_timeout", 5.0)),
        )
        display = DisplayConfig(title=str(display_data.get("title", "Motion Detector")))
        storage = StorageConfig(
            database_path=str(storage_data.get("database_path", "artifacts/motion_monitor.db")),
        )
        settings = cls(
            camera=camera,
            detection=detection,
            acquisition=acquisition,
            display=display,
            storage=storage,
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.acquisition.period <= 0:
            raise ValueError(f"acquisition.period must be positive, got {self.acquisition.period}")
        if self.acquisition.snapshot_timeout <= 0:
            raise ValueError("acquisition.snapshot_timeout must be positive")
        if not 0.0 <= self.detection.motion_fraction <= 1.0:
            raise ValueError(f"detection.motion_fraction must be in [0, 1], got {self.detection.motion_fraction}")
        weights = self.detection.luminance_weights
        if len(weights) != 3 or any(w < 0 for w in weights):
            raise ValueError(f"detection.luminance_weights must be three non-negative numbers, got {weights}")
        if self.camera.buffer_size < 1:
            raise ValueError("camera.buffer_size must be at least 1")

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["detection"]["luminance_weights"] = list(self.detection.luminance_weights)
        return payload
