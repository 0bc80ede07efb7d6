"""FFMPEG command builder and the composition command assemblers."""

import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..media.formats import VideoEncoding
from ..media.options import TrimRange
from .filter_graph import Filter, FilterChain, FilterGraph


@dataclass
class FFMPEGCommand:
    """Represents a complete FFMPEG command."""
    inputs: list[str] = field(default_factory=list)
    outputs: list[str] = field(default_factory=list)
    # Keyed by input index so the same file can be read twice
    input_options: dict[int, list[str]] = field(default_factory=dict)
    output_options: list[str] = field(default_factory=list)
    video_filters: FilterChain = field(default_factory=FilterChain)
    complex_filter: Optional[str] = None
    maps: list[str] = field(default_factory=list)
    global_options: list[str] = field(default_factory=list)
    overwrite: bool = True

    def to_args(self) -> list[str]:
        """Convert command to list of arguments for subprocess."""
        args = ["ffmpeg"]

        # Global options
        if self.overwrite:
            args.append("-y")
        args.extend(self.global_options)

        # Inputs with their options
        for index, input_path in enumerate(self.inputs):
            args.extend(self.input_options.get(index, []))
            args.extend(["-i", input_path])

        # Filters
        if self.complex_filter:
            args.extend(["-filter_complex", self.complex_filter])
        else:
            vf = self.video_filters.to_string()
            if vf:
                args.extend(["-vf", vf])

        for stream in self.maps:
            args.extend(["-map", stream])

        # Output options
        args.extend(self.output_options)

        # Outputs
        args.extend(self.outputs)

        return args

    def to_string(self) -> str:
        """Convert command to shell string."""
        return " ".join(shlex.quote(arg) for arg in self.to_args())

    @property
    def output_path(self) -> Optional[str]:
        return self.outputs[0] if self.outputs else None


class CommandBuilder:
    """Builder for constructing FFMPEG commands."""

    def __init__(self):
        self._command = FFMPEGCommand()

    def input(
        self,
        path: str | Path,
        options: Optional[list[str]] = None,
    ) -> "CommandBuilder":
        """Add an input file."""
        self._command.inputs.append(str(path))
        if options:
            self._command.input_options[len(self._command.inputs) - 1] = list(options)
        return self

    @property
    def input_count(self) -> int:
        return len(self._command.inputs)

    def output(self, path: str | Path) -> "CommandBuilder":
        """Set output file."""
        self._command.outputs.append(str(path))
        return self

    def output_options(self, *options: str) -> "CommandBuilder":
        """Add output options."""
        self._command.output_options.extend(options)
        return self

    def global_options(self, *options: str) -> "CommandBuilder":
        """Add global options."""
        self._command.global_options.extend(options)
        return self

    def encoding(self, encoding: VideoEncoding) -> "CommandBuilder":
        """Apply video encoder settings (codec, CRF, preset, pixel format)."""
        self._command.output_options.extend(encoding.to_ffmpeg_args())
        return self

    def audio_codec(self, codec: str) -> "CommandBuilder":
        """Set audio codec."""
        self._command.output_options.extend(["-c:a", codec])
        return self

    def vf(self, *filters: str | Filter) -> "CommandBuilder":
        """Add video filters."""
        for f in filters:
            if isinstance(f, str):
                self._command.video_filters.add_filter(f)
            else:
                self._command.video_filters.add(f)
        return self

    def map(self, *streams: str) -> "CommandBuilder":
        """Select output streams (``[label]`` or ``index:type`` specifiers)."""
        self._command.maps.extend(streams)
        return self

    def trim(
        self,
        start: Optional[float] = None,
        end: Optional[float] = None,
        duration: Optional[float] = None,
    ) -> "CommandBuilder":
        """Add trim/seek options."""
        if start is not None:
            self._command.output_options.extend(["-ss", str(start)])
        if end is not None:
            self._command.output_options.extend(["-to", str(end)])
        if duration is not None:
            self._command.output_options.extend(["-t", str(duration)])
        return self

    def frame_rate(self, rate: int | float) -> "CommandBuilder":
        """Set output frame rate."""
        self._command.output_options.extend(["-r", _number(rate)])
        return self

    def complex_filter(self, filter_graph: str) -> "CommandBuilder":
        """Set complex filtergraph."""
        self._command.complex_filter = filter_graph
        return self

    def filter_graph(self, graph: FilterGraph) -> "CommandBuilder":
        """Add the graph's extra inputs, its filter and map its output.

        The extra inputs must receive the indices the graph was built with,
        so this is called right after the inputs that precede them.
        """
        for path in graph.extra_inputs:
            self.input(path)
        if not graph.is_empty:
            self.complex_filter(graph.to_string())
            self.map(f"[{graph.output_label}]")
        return self

    def build(self) -> FFMPEGCommand:
        """Build and return the command."""
        return self._command

    def build_args(self) -> list[str]:
        """Build and return command as argument list."""
        return self._command.to_args()


def _number(value: int | float) -> str:
    """Format a number without a trailing ``.0`` for whole values."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.6f}".rstrip("0")


def build_composition_command(
    video: str,
    output_path: str | Path,
    graph: FilterGraph,
    encoding: VideoEncoding,
    audio_uri: Optional[str] = None,
    trim: Optional[TrimRange] = None,
    duration: Optional[float] = None,
    frame_rate: Optional[float] = None,
    audio_codec: str = "aac",
) -> FFMPEGCommand:
    """Assemble a composition command around a built filter graph.

    Input order is fixed: the source video is input 0, the graph's extra
    inputs follow (the graph must have been built with
    ``first_input_index=1``), and an external audio track comes last.
    """
    builder = CommandBuilder()
    builder.input(video)
    builder.filter_graph(graph)

    if graph.is_empty:
        builder.map("0:v")

    if audio_uri:
        audio_index = builder.input_count
        builder.input(audio_uri)
        builder.map(f"{audio_index}:a")
        builder.output_options("-shortest")
    else:
        builder.map("0:a?")

    if trim is not None:
        builder.trim(start=trim.start, end=trim.end)
    if duration is not None:
        builder.trim(duration=duration)
    if frame_rate is not None:
        builder.frame_rate(frame_rate)

    builder.encoding(encoding)
    builder.audio_codec(audio_codec)
    builder.output(output_path)
    return builder.build()


def build_frame_capture_command(
    video: str,
    output_path: str | Path,
    timestamp: float,
    graph: Optional[FilterGraph] = None,
    jpeg_quality: int = 2,
) -> FFMPEGCommand:
    """Assemble a command that writes exactly one JPEG frame at ``timestamp``."""
    builder = CommandBuilder()
    builder.input(video, ["-ss", _number(timestamp)])
    if graph is not None:
        builder.filter_graph(graph)
    builder.output_options("-frames:v", "1", "-q:v", str(jpeg_quality))
    builder.output(output_path)
    return builder.build()


def build_combine_command(
    frames: list[str],
    output_path: str | Path,
    frame_rate: float,
    frame_size: tuple[int, int],
    encoding: VideoEncoding,
) -> FFMPEGCommand:
    """Assemble a command that turns still frames into a video.

    Every frame is held for ``1 / frame_rate`` seconds. A single frame is
    looped; several frames are normalised to ``frame_size`` and joined with
    the ``concat`` filter.
    """
    if not frames:
        raise ValueError("At least one frame is required")

    rate = _number(frame_rate)
    hold = _number(1.0 / frame_rate)
    width, height = frame_size
    builder = CommandBuilder()

    if len(frames) == 1:
        builder.input(frames[0], ["-loop", "1", "-framerate", rate, "-t", hold])
        builder.vf(Filter("scale", {"": f"{width}:{height}"}))
    else:
        chains = []
        labels = []
        for index, frame in enumerate(frames):
            builder.input(frame, ["-loop", "1", "-framerate", rate, "-t", hold])
            label = f"f{index}"
            chain = FilterChain()
            chain.add_filter(
                "scale",
                {"": f"{width}:{height}", "force_original_aspect_ratio": "decrease"},
                inputs=[f"{index}:v"],
            )
            chain.add_filter("pad", {"": f"{width}:{height}:(ow-iw)/2:(oh-ih)/2"})
            chain.add_filter("setsar", {"": "1"}, outputs=[label])
            chains.append(chain.to_string())
            labels.append(label)

        concat = Filter(
            "concat",
            {"n": len(frames), "v": 1, "a": 0},
            inputs=labels,
            outputs=["out"],
        )
        builder.complex_filter(";".join(chains + [concat.to_string()]))
        builder.map("[out]")

    builder.encoding(encoding)
    builder.frame_rate(frame_rate)
    builder.output(output_path)
    return builder.build()
