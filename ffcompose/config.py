"""Pipeline settings loaded from an optional YAML file and the environment.

Example ``ffcompose.yaml``::

    ffmpeg_path: /usr/local/bin/ffmpeg
    scratch_dir: /var/cache/ffcompose
    max_concurrent_jobs: 1
    watermark_text: EventMarketers
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger("ffcompose")

CONFIG_ENV = "FFCOMPOSE_CONFIG"

# Environment variable -> settings field
_ENV_OVERRIDES: dict[str, str] = {
    "FFCOMPOSE_FFMPEG_PATH": "ffmpeg_path",
    "FFCOMPOSE_SCRATCH_DIR": "scratch_dir",
    "FFCOMPOSE_MAX_CONCURRENT_JOBS": "max_concurrent_jobs",
}


def _default_scratch_dir() -> str:
    return os.path.join(tempfile.gettempdir(), "ffcompose")


class PipelineSettings(BaseModel):
    """Settings shared by every pipeline call."""

    ffmpeg_path: Optional[str] = None  # None = search PATH
    scratch_dir: str = Field(default_factory=_default_scratch_dir)
    max_concurrent_jobs: int = Field(default=2, ge=1)

    # Watermark drawn above every layer in download exports
    watermark_text: str = "EventMarketers"
    watermark_x: int = 10
    watermark_y: int = 10
    watermark_font_size: int = 20
    watermark_color: str = "white"
    watermark_opacity: float = Field(default=0.5, ge=0.0, le=1.0)

    # Encoding
    frame_jpeg_quality: int = Field(default=2, ge=1, le=31)
    video_codec: str = "libx264"
    audio_codec: str = "aac"
    pixel_format: str = "yuv420p"


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise ValueError(f"Malformed settings file {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path}: top-level must be a mapping")
    return data


def load_settings(path: Optional[str | Path] = None) -> PipelineSettings:
    """Build settings from defaults, a YAML file and environment overrides.

    Precedence, lowest first: field defaults, the YAML file (``path`` or the
    ``FFCOMPOSE_CONFIG`` variable), then ``FFCOMPOSE_*`` variables.

    Raises:
        ValueError: If the YAML file is malformed.
        FileNotFoundError: If an explicit settings file does not exist.
    """
    values: dict[str, Any] = {}

    config_path = path or os.environ.get(CONFIG_ENV)
    if config_path:
        config_path = Path(config_path)
        values.update(_read_yaml(config_path))
        logger.debug("Loaded settings from %s", config_path)

    for env_name, field_name in _ENV_OVERRIDES.items():
        if env_name in os.environ:
            values[field_name] = os.environ[env_name]

    known = set(PipelineSettings.model_fields)
    for key in sorted(set(values) - known):
        logger.warning("Ignoring unknown setting %r", key)
        values.pop(key)

    return PipelineSettings(**values)
