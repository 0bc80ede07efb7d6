"""Per-request processing options."""

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .formats import OutputFormat, Quality


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TrimRange(_CamelModel):
    """Section of the source to keep, in seconds."""
    start: float = Field(ge=0)
    end: float

    @model_validator(mode="after")
    def _check_order(self) -> "TrimRange":
        if self.start >= self.end:
            raise ValueError(f"trim start ({self.start}) must be before end ({self.end})")
        return self

    @property
    def duration(self) -> float:
        return self.end - self.start


class ProcessingOptions(_CamelModel):
    """Options for export-time composition."""

    add_watermark: bool = False
    # Reserved: compression is expressed through ``quality``
    compress: bool = False
    trim: Optional[TrimRange] = None
    add_audio_uri: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("add_audio_uri", "addAudioUri", "addAudio")
    )
    canvas_image_uri: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("canvas_image_uri", "canvasImageUri", "canvasImage")
    )
    quality: Quality = Quality.HIGH
    output_format: OutputFormat = OutputFormat.MP4
    embed_overlays: bool = True
    # Target frame size; enables position clamping and canvas scaling
    width: Optional[int] = Field(default=None, gt=0)
    height: Optional[int] = Field(default=None, gt=0)

    @property
    def frame_size(self) -> Optional[tuple[int, int]]:
        if self.width and self.height:
            return (self.width, self.height)
        return None


class RenderOptions(_CamelModel):
    """Options for preview/edit-time composition."""

    width: int = Field(gt=0)
    height: int = Field(gt=0)
    duration: Optional[float] = Field(default=None, gt=0)
    frame_rate: Optional[float] = Field(default=None, gt=0)
    quality: Optional[Quality] = None

    @property
    def frame_size(self) -> tuple[int, int]:
        return (self.width, self.height)


class CombineOptions(_CamelModel):
    """Options for turning frames back into a video."""

    frame_rate: float = Field(default=1.0, gt=0)
    quality: Quality = Quality.HIGH
