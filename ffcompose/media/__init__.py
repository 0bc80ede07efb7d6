"""Layer, option and format models."""

from .formats import OutputFormat, Quality, QUALITY_PRESETS, VideoEncoding, encoding_for
from .layers import Layer, LayerKind, LayerStyle, Position, Size
from .options import CombineOptions, ProcessingOptions, RenderOptions, TrimRange

__all__ = [
    "OutputFormat",
    "Quality",
    "QUALITY_PRESETS",
    "VideoEncoding",
    "encoding_for",
    "Layer",
    "LayerKind",
    "LayerStyle",
    "Position",
    "Size",
    "CombineOptions",
    "ProcessingOptions",
    "RenderOptions",
    "TrimRange",
]
