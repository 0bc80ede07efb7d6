"""Overlay layer model.

A request carries an ordered list of layers. List order is compositing
order: later layers are drawn on top of earlier ones. ``z_index`` is
accepted because the editor sends it, but it never affects ordering.
"""

from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from ..errors import InvalidLayerError

MIN_FONT_SIZE = 12
MAX_FONT_SIZE = 48


class LayerKind(str, Enum):
    """What a layer draws."""
    TEXT = "text"
    IMAGE = "image"
    LOGO = "logo"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Position(_CamelModel):
    """Pixel offset from the top-left corner of the frame."""
    x: int
    y: int


class Size(_CamelModel):
    """Pixel dimensions of a layer."""
    width: int
    height: int


class LayerStyle(_CamelModel):
    """Optional text styling."""
    font_size: Optional[int] = None
    color: Optional[str] = None
    font_family: Optional[str] = None
    font_weight: Optional[str] = None
    background_color: Optional[str] = None


class Layer(_CamelModel):
    """One positioned overlay unit."""

    id: str
    kind: LayerKind = Field(
        validation_alias=AliasChoices("kind", "type"), serialization_alias="type"
    )
    content: str
    position: Position
    size: Size
    style: Optional[LayerStyle] = None
    z_index: Optional[int] = None
    field_type: Optional[str] = None

    @model_validator(mode="after")
    def _check_invariants(self) -> "Layer":
        self.check()
        return self

    def check(self) -> None:
        """Validate the layer invariants.

        Raises:
            InvalidLayerError: If size is not positive, the position is
                negative or the content is empty.
        """
        if self.size.width <= 0 or self.size.height <= 0:
            raise InvalidLayerError(
                f"size must be positive, got {self.size.width}x{self.size.height}",
                layer_id=self.id,
            )
        if self.position.x < 0 or self.position.y < 0:
            raise InvalidLayerError(
                f"position must not be negative, got ({self.position.x}, {self.position.y})",
                layer_id=self.id,
            )
        if not self.content or not self.content.strip():
            if self.kind == LayerKind.TEXT:
                raise InvalidLayerError("text layer has no text", layer_id=self.id)
            raise InvalidLayerError(
                f"{self.kind.value} layer has no source path", layer_id=self.id
            )

    @property
    def is_text(self) -> bool:
        return self.kind == LayerKind.TEXT

    def font_size(self) -> int:
        """Font size for text layers, clamped to the supported range.

        Uses ``style.font_size`` when set, otherwise the layer height.
        """
        requested = None
        if self.style is not None:
            requested = self.style.font_size
        if requested is None:
            requested = self.size.height
        return clamp(requested, MIN_FONT_SIZE, MAX_FONT_SIZE)


def clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(value, upper))
