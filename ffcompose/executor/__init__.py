"""FFMPEG command building and execution modules."""

from .artifacts import Artifact, ArtifactKind, ArtifactManager, Purpose, load_frame
from .command_builder import (
    CommandBuilder,
    FFMPEGCommand,
    build_combine_command,
    build_composition_command,
    build_frame_capture_command,
)
from .filter_graph import (
    Filter,
    FilterChain,
    FilterGraph,
    FilterGraphBuilder,
    GraphStage,
    StageKind,
)
from .probe import EngineCapabilities, parse_version, probe_engine, verify_engine
from .process_manager import MediaEngine, ProcessManager, ProcessResult, ProgressInfo

__all__ = [
    "Artifact",
    "ArtifactKind",
    "ArtifactManager",
    "Purpose",
    "load_frame",
    "CommandBuilder",
    "FFMPEGCommand",
    "build_combine_command",
    "build_composition_command",
    "build_frame_capture_command",
    "Filter",
    "FilterChain",
    "FilterGraph",
    "FilterGraphBuilder",
    "GraphStage",
    "StageKind",
    "EngineCapabilities",
    "parse_version",
    "probe_engine",
    "verify_engine",
    "MediaEngine",
    "ProcessManager",
    "ProcessResult",
    "ProgressInfo",
]
