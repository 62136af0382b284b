from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "TONEMASTER_"
# Engine locations honoured without the prefix as well.
LEGACY_ENGINE_ENV = {"ffmpeg_path": "FFMPEG_PATH", "ffprobe_path": "FFPROBE_PATH"}


def _default_work_root() -> Path:
    return Path(tempfile.gettempdir()) / "tonemaster"


class EngineSettings(BaseModel):
    ffmpeg_path: str | None = None
    ffprobe_path: str | None = None
    work_root: Path = Field(default_factory=_default_work_root)
    probe_timeout_seconds: float = Field(30.0, gt=0.0)
    min_pass_timeout_seconds: float = Field(120.0, gt=0.0)
    pass_timeout_factor: float = Field(4.0, gt=0.0)
    limiting_lra: float = Field(11.0, ge=1.0, le=50.0)
    retention_hours: float = Field(24.0, gt=0.0)
    max_source_bytes: int = Field(100 * 1024 * 1024, gt=0)
    concurrency_limit: int = Field(2, ge=1, le=32)

    @field_validator("ffmpeg_path", "ffprobe_path")
    @classmethod
    def _blank_path_is_unset(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    def pass_timeout_seconds(self, duration_seconds: float) -> float:
        return max(self.min_pass_timeout_seconds, duration_seconds * self.pass_timeout_factor)

    @property
    def retention_seconds(self) -> float:
        return self.retention_hours * 3600.0


def load_engine_settings(path: Path | None = None, environ: Mapping[str, str] | None = None) -> EngineSettings:
    """Build settings from an optional JSON/YAML file plus environment overrides."""

    data: dict[str, Any] = _load_config_data(path) if path is not None else {}
    data.update(_environment_overrides(os.environ if environ is None else environ))
    return EngineSettings.model_validate(data)


def _environment_overrides(environ: Mapping[str, str]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for field_name in EngineSettings.model_fields:
        legacy = LEGACY_ENGINE_ENV.get(field_name)
        if legacy and environ.get(legacy, "").strip():
            overrides[field_name] = environ[legacy]
        value = environ.get(f"{ENV_PREFIX}{field_name.upper()}")
        if value is not None and value.strip():
            overrides[field_name] = value
    return overrides


def _load_config_data(path: Path) -> dict:
    if path.suffix.lower() in {".yaml", ".yml"}:
        try:
            import yaml
        except ImportError as exc:
            raise ImportError("PyYAML is required to load YAML configs.") from exc

        with path.open("r", encoding="utf-8") as handle:
            return yaml.safe_load(handle) or {}

    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)
