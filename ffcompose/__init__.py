"""
ffcompose: overlay composition pipeline built on FFMPEG

Compiles positioned text, image and logo layers into a single chained
FFMPEG filter graph, runs it as an asynchronous subprocess and manages
the resulting videos and frames.
"""

__version__ = "1.0.0"

from .config import PipelineSettings, load_settings
from .errors import (
    EngineExecutionError,
    FilesystemError,
    InvalidLayerError,
    PipelineError,
    ProbeError,
)
from .media import (
    CombineOptions,
    Layer,
    LayerKind,
    LayerStyle,
    OutputFormat,
    Position,
    ProcessingOptions,
    Quality,
    RenderOptions,
    Size,
    TrimRange,
)
from .pipeline import JobState, VideoPipeline

__all__ = [
    "PipelineSettings",
    "load_settings",
    "EngineExecutionError",
    "FilesystemError",
    "InvalidLayerError",
    "PipelineError",
    "ProbeError",
    "CombineOptions",
    "Layer",
    "LayerKind",
    "LayerStyle",
    "OutputFormat",
    "Position",
    "ProcessingOptions",
    "Quality",
    "RenderOptions",
    "Size",
    "TrimRange",
    "JobState",
    "VideoPipeline",
]
