"""Filter graph IR for layer composition.

Layers are compiled into an ordered list of stages. Each stage reads the
labelled output of the stage before it and writes a new label, so every
layer is composited on top of the previous result:

    [0:v]drawtext=...[stage_1];
    [2:v]scale=120:80[img_2];
    [stage_1][img_2]overlay=10:20[stage_2];
    [stage_2]drawtext=...[watermark]

The graph is serialized once into a ``-filter_complex`` argument and the
last stage's label is mapped as the encoded video stream.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

from ..errors import InvalidLayerError
from ..media.layers import Layer, LayerKind
from ..sanitize import (
    FONT_FILE_EXTENSIONS,
    escape_drawtext,
    normalize_color,
    to_local_path,
)

logger = logging.getLogger("ffcompose")

DEFAULT_TEXT_COLOR = "FFFFFF"

_BOLD_WEIGHTS = {"bold", "bolder", "semibold", "600", "700", "800", "900"}


@dataclass
class Filter:
    """Represents a single FFMPEG filter."""
    name: str
    params: dict[str, str | int | float | None] = field(default_factory=dict)
    inputs: list[str] = field(default_factory=list)
    outputs: list[str] = field(default_factory=list)

    def to_string(self) -> str:
        """Convert filter to FFMPEG filter string.

        A parameter with an empty key is written as a bare positional value.
        """
        parts = [f"[{inp}]" for inp in self.inputs]

        if self.params:
            param_str = ":".join(
                str(v) if k == "" else (f"{k}={v}" if v is not None else k)
                for k, v in self.params.items()
            )
            parts.append(f"{self.name}={param_str}")
        else:
            parts.append(self.name)

        parts.extend(f"[{out}]" for out in self.outputs)
        return "".join(parts)


@dataclass
class FilterChain:
    """A chain of filters connected in sequence."""
    filters: list[Filter] = field(default_factory=list)

    def add(self, filter_obj: Filter) -> "FilterChain":
        """Add a filter to the chain."""
        self.filters.append(filter_obj)
        return self

    def add_filter(
        self,
        name: str,
        params: Optional[dict] = None,
        inputs: Optional[list[str]] = None,
        outputs: Optional[list[str]] = None,
    ) -> "FilterChain":
        """Add a filter by parameters."""
        self.filters.append(Filter(
            name=name,
            params=params or {},
            inputs=inputs or [],
            outputs=outputs or [],
        ))
        return self

    def to_string(self) -> str:
        """Convert filter chain to FFMPEG filter string."""
        if not self.filters:
            return ""
        return ",".join(f.to_string() for f in self.filters)


class StageKind(str, Enum):
    """Role of a stage in the composition graph."""
    CANVAS = "canvas"
    TEXT = "text"
    IMAGE = "image"
    WATERMARK = "watermark"


@dataclass
class GraphStage:
    """One composition step: consumes ``input_label``, produces ``output_label``."""
    kind: StageKind
    input_label: str
    output_label: str
    filters: list[Filter] = field(default_factory=list)
    layer_id: Optional[str] = None

    def to_string(self) -> str:
        return ";".join(f.to_string() for f in self.filters)


@dataclass
class FilterGraph:
    """Ordered composition stages plus the extra inputs they read."""
    base_label: str = "0:v"
    stages: list[GraphStage] = field(default_factory=list)
    extra_inputs: list[str] = field(default_factory=list)

    @property
    def output_label(self) -> str:
        """Label of the composited stream; the base label when empty."""
        if not self.stages:
            return self.base_label
        return self.stages[-1].output_label

    @property
    def is_empty(self) -> bool:
        return not self.stages

    @property
    def layer_stages(self) -> list[GraphStage]:
        return [s for s in self.stages if s.kind in (StageKind.TEXT, StageKind.IMAGE)]

    def to_string(self) -> str:
        """Serialize to ``-filter_complex`` syntax."""
        return ";".join(stage.to_string() for stage in self.stages)


class FilterGraphBuilder:
    """Compiles layers into a chained :class:`FilterGraph`.

    Args:
        base_label: Label of the video stream the first stage reads.
        first_input_index: FFmpeg input index given to the first extra
            input (canvas or layer image) the graph registers.
        frame_size: Target ``(width, height)``. When known, layer positions
            beyond the frame are clamped to its last row/column and the
            canvas image is scaled to it.
    """

    def __init__(
        self,
        base_label: str = "0:v",
        first_input_index: int = 1,
        frame_size: Optional[tuple[int, int]] = None,
    ):
        self.frame_size = frame_size
        self._graph = FilterGraph(base_label=base_label)
        self._first_input_index = first_input_index
        self._layer_count = 0
        self._layer_ids: set[str] = set()
        self._has_watermark = False

    @property
    def _current_label(self) -> str:
        return self._graph.output_label

    def _register_input(self, path: str) -> int:
        index = self._first_input_index + len(self._graph.extra_inputs)
        self._graph.extra_inputs.append(path)
        return index

    def _check_open(self) -> None:
        if self._has_watermark:
            raise ValueError("The watermark must be the last stage of the graph")

    def add_canvas(self, canvas_path: str) -> "FilterGraphBuilder":
        """Overlay a static canvas image above the base video, below all layers."""
        self._check_open()
        if self._layer_count:
            raise ValueError("The canvas must be added before any layer")

        index = self._register_input(to_local_path(canvas_path))
        source = f"{index}:v"
        filters = []
        if self.frame_size:
            width, height = self.frame_size
            filters.append(Filter("scale", {"": f"{width}:{height}"}, [source], ["canvas_src"]))
            source = "canvas_src"
        filters.append(Filter("overlay", {"": "0:0"}, [self._current_label, source], ["canvas"]))

        self._graph.stages.append(GraphStage(
            kind=StageKind.CANVAS,
            input_label=self._current_label,
            output_label="canvas",
            filters=filters,
        ))
        return self

    def add_layers(self, layers: Iterable[Layer]) -> "FilterGraphBuilder":
        """Add layers in list order. All layers are validated first."""
        layers = list(layers)
        seen = set(self._layer_ids)
        for layer in layers:
            layer.check()
            if layer.id in seen:
                raise InvalidLayerError("duplicate layer id", layer_id=layer.id)
            seen.add(layer.id)
            if layer.is_text:
                self._text_params(layer)

        for layer in layers:
            self.add_layer(layer)
        return self

    def add_layer(self, layer: Layer) -> "FilterGraphBuilder":
        """Append one layer as the next stage of the chain."""
        self._check_open()
        layer.check()
        if layer.id in self._layer_ids:
            raise InvalidLayerError("duplicate layer id", layer_id=layer.id)

        self._layer_count += 1
        output = f"stage_{self._layer_count}"
        previous = self._current_label

        if layer.kind == LayerKind.TEXT:
            filters = [Filter("drawtext", self._text_params(layer), [previous], [output])]
            kind = StageKind.TEXT
        else:
            x, y = self._position(layer)
            index = self._register_input(to_local_path(layer.content))
            scaled = f"img_{self._layer_count}"
            filters = [
                Filter("scale", {"": f"{layer.size.width}:{layer.size.height}"},
                       [f"{index}:v"], [scaled]),
                Filter("overlay", {"": f"{x}:{y}"}, [previous, scaled], [output]),
            ]
            kind = StageKind.IMAGE

        self._graph.stages.append(GraphStage(
            kind=kind,
            input_label=previous,
            output_label=output,
            filters=filters,
            layer_id=layer.id,
        ))
        self._layer_ids.add(layer.id)
        return self

    def add_watermark(
        self,
        text: str,
        x: int = 10,
        y: int = 10,
        font_size: int = 20,
        color: str = "white",
        opacity: float = 0.5,
    ) -> "FilterGraphBuilder":
        """Append the watermark. No stage can be added after it.

        ``opacity`` replaces any ``@alpha`` suffix already on ``color``.
        """
        self._check_open()
        base_color = normalize_color(color).split("@", 1)[0]
        params = {
            "text": escape_drawtext(text),
            "expansion": "none",
            "x": x,
            "y": y,
            "fontsize": font_size,
            "fontcolor": f"{base_color}@{opacity}",
        }
        self._graph.stages.append(GraphStage(
            kind=StageKind.WATERMARK,
            input_label=self._current_label,
            output_label="watermark",
            filters=[Filter("drawtext", params, [self._current_label], ["watermark"])],
        ))
        self._has_watermark = True
        return self

    def build(self) -> FilterGraph:
        return self._graph

    def _position(self, layer: Layer) -> tuple[int, int]:
        x, y = layer.position.x, layer.position.y
        if self.frame_size:
            width, height = self.frame_size
            cx, cy = min(x, width - 1), min(y, height - 1)
            if (cx, cy) != (x, y):
                logger.debug(
                    "Clamped layer %s position (%d, %d) to (%d, %d)",
                    layer.id, x, y, cx, cy,
                )
            x, y = cx, cy
        return x, y

    def _text_params(self, layer: Layer) -> dict[str, str | int]:
        x, y = self._position(layer)
        style = layer.style
        try:
            color = normalize_color(style.color) if style and style.color else DEFAULT_TEXT_COLOR
            box_color = (
                normalize_color(style.background_color)
                if style and style.background_color else None
            )
        except ValueError as e:
            raise InvalidLayerError(str(e), layer_id=layer.id) from e

        params: dict[str, str | int] = {
            "text": escape_drawtext(layer.content),
            "expansion": "none",
            "x": x,
            "y": y,
            "fontsize": layer.font_size(),
            "fontcolor": color,
        }

        font = _font_option(style.font_family if style else None,
                            style.font_weight if style else None)
        if font:
            params.update(font)

        if box_color:
            params["box"] = 1
            params["boxcolor"] = box_color
        return params


def _font_option(family: Optional[str], weight: Optional[str]) -> dict[str, str]:
    bold = bool(weight) and weight.strip().lower() in _BOLD_WEIGHTS
    if family and Path(family).suffix.lower() in FONT_FILE_EXTENSIONS:
        return {"fontfile": escape_drawtext(family)}
    if not family and not bold:
        return {}
    pattern = family or "Sans"
    if bold:
        pattern += ":style=Bold"
    return {"font": escape_drawtext(pattern)}
