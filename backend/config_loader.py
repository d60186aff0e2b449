from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from motion.config import MotionSettings

ROOT = Path(__file__).resolve().parent.parent
CONFIG_PATH = ROOT / "configs" / "default.yaml"

PathLike = Union[str, Path]


def load_settings(path: Optional[PathLike] = None) -> MotionSettings:
    """Reads YAML settings; a missing or empty file yields the defaults."""
    cfg_path = Path(path) if path is not None else CONFIG_PATH
    if not cfg_path.exists():
        return MotionSettings()
    with cfg_path.open("r") as fh:
        data: Dict[str, Any] = yaml.safe_load(fh) or {}
    return MotionSettings.from_dict(data)


def persist_settings(path: PathLike, payload: Dict[str, Any]) -> None:
    MotionSettings.from_dict(payload)
    cfg_path = Path(path)
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    with cfg_path.open("w") as fh:
        yaml.safe_dump(payload, fh, sort_keys=False)


def resolve_database_path(settings: MotionSettings, root: Path = ROOT) -> Path:
    """Database path from the settings, relative paths anchored at ``root``; parent created."""
    db_path = Path(settings.storage.database_path).expanduser()
    if not db_path.is_absolute():
        db_path = root / db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path
