from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class CameraSchema(BaseModel):
    index: int = 0
    width: int = 640
    height: int = 480
    buffer_size: int = Field(4, ge=1)


class DetectionSchema(BaseModel):
    motion_fraction: float = Field(0.08, ge=0.0, le=1.0)
    luminance_weights: List[float] = Field(default_factory=lambda: [0.2989, 0.5870, 0.1140], min_length=3, max_length=3)


class AcquisitionSchema(BaseModel):
    period: float = Field(0.1, gt=0.0)
    snapshot_timeout: float = Field(5.0, gt=0.0)


class DisplaySchema(BaseModel):
    title: str = "Motion Detector"


class StorageSchema(BaseModel):
    database_path: str = "artifacts/motion_monitor.db"


class SettingsSchema(BaseModel):
    camera: CameraSchema = CameraSchema()
    detection: DetectionSchema = DetectionSchema()
    acquisition: AcquisitionSchema = AcquisitionSchema()
    display: DisplaySchema = DisplaySchema()
    storage: StorageSchema = StorageSchema()


class VerdictSchema(BaseModel):
    timestamp: float
    motion_detected: bool
    changed_fraction: float
    threshold: int
    fps: float


class HistoryResponse(BaseModel):
    verdicts: List[VerdictSchema]
    events: List[dict]
