"""Quality presets and output container definitions."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel


class Quality(str, Enum):
    """Encoding quality requested by the caller."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class OutputFormat(str, Enum):
    """Supported output containers."""
    MP4 = "mp4"
    MOV = "mov"
    AVI = "avi"

    @property
    def extension(self) -> str:
        return self.value


class VideoEncoding(BaseModel):
    """Video encoder settings for one quality level."""
    codec: str = "libx264"
    crf: int
    preset: str
    pixel_format: Optional[str] = "yuv420p"

    def to_ffmpeg_args(self) -> list[str]:
        """Convert to FFMPEG command arguments."""
        args = ["-c:v", self.codec, "-crf", str(self.crf), "-preset", self.preset]
        if self.pixel_format:
            args.extend(["-pix_fmt", self.pixel_format])
        return args


# Fixed mapping; callers and tests rely on these exact values
QUALITY_PRESETS: dict[Quality, VideoEncoding] = {
    Quality.LOW: VideoEncoding(crf=28, preset="fast"),
    Quality.MEDIUM: VideoEncoding(crf=23, preset="medium"),
    Quality.HIGH: VideoEncoding(crf=18, preset="slow"),
}


def encoding_for(
    quality: Optional[Quality | str],
    codec: str = "libx264",
    pixel_format: Optional[str] = "yuv420p",
) -> VideoEncoding:
    """Resolve a quality level to encoder settings.

    ``None`` and unrecognised values fall back to the high preset.
    """
    try:
        level = Quality(quality) if quality is not None else Quality.HIGH
    except ValueError:
        level = Quality.HIGH
    return QUALITY_PRESETS[level].model_copy(
        update={"codec": codec, "pixel_format": pixel_format}
    )
