"""Tests for the command builder and the command assemblers."""

import pytest

from ffcompose.executor.command_builder import (
    CommandBuilder,
    FFMPEGCommand,
    build_combine_command,
    build_composition_command,
    build_frame_capture_command,
)
from ffcompose.executor.filter_graph import FilterGraphBuilder
from ffcompose.media.formats import QUALITY_PRESETS, Quality, encoding_for
from ffcompose.media.layers import Layer
from ffcompose.media.options import TrimRange


def flag_value(args, flag):
    return args[args.index(flag) + 1]


def layer(layer_id="t", kind="text", content="Hi"):
    return Layer.model_validate({
        "id": layer_id,
        "kind": kind,
        "content": content,
        "position": {"x": 5, "y": 5},
        "size": {"width": 100, "height": 20},
    })


class TestQualityMapping:
    """Quality levels map to fixed CRF/preset pairs."""

    @pytest.mark.parametrize("quality,crf,preset", [
        ("low", "28", "fast"),
        ("medium", "23", "medium"),
        ("high", "18", "slow"),
        (None, "18", "slow"),
        ("ultra", "18", "slow"),
    ])
    def test_mapping(self, quality, crf, preset):
        args = encoding_for(quality).to_ffmpeg_args()
        assert flag_value(args, "-crf") == crf
        assert flag_value(args, "-preset") == preset
        assert flag_value(args, "-c:v") == "libx264"
        assert flag_value(args, "-pix_fmt") == "yuv420p"

    def test_presets_are_not_mutated(self):
        encoding_for(Quality.LOW, codec="libx265")
        assert QUALITY_PRESETS[Quality.LOW].codec == "libx264"


class TestCommandBuilder:
    """Tests for CommandBuilder class."""

    def test_basic_command(self):
        args = CommandBuilder().input("/input.mp4").output("/output.mp4").build_args()
        assert args == ["ffmpeg", "-y", "-i", "/input.mp4", "/output.mp4"]

    def test_input_options_are_per_index(self):
        builder = CommandBuilder()
        builder.input("/same.png", ["-loop", "1"])
        builder.input("/same.png")
        builder.output("/out.mp4")
        args = builder.build_args()
        assert args[:7] == ["ffmpeg", "-y", "-loop", "1", "-i", "/same.png", "-i"]

    def test_trim(self):
        args = CommandBuilder().input("/in.mp4").trim(start=5, end=30).output("/o.mp4").build_args()
        assert flag_value(args, "-ss") == "5"
        assert flag_value(args, "-to") == "30"

    def test_frame_rate_formatting(self):
        args = CommandBuilder().frame_rate(30.0).build_args()
        assert flag_value(args, "-r") == "30"
        args = CommandBuilder().frame_rate(29.97).build_args()
        assert flag_value(args, "-r") == "29.97"

    def test_audio_codec(self):
        args = CommandBuilder().input("/in.mp4").audio_codec("aac").output("/o.mp4").build_args()
        assert args[-3:] == ["-c:a", "aac", "/o.mp4"]

    def test_to_string_quotes(self):
        cmd = FFMPEGCommand(inputs=["/my video.mp4"], outputs=["/out.mp4"])
        assert "'/my video.mp4'" in cmd.to_string()


class TestCompositionCommand:
    """Assembling graph, inputs and encoding."""

    def test_graph_output_is_mapped(self):
        graph = FilterGraphBuilder().add_layers([
            layer("a"), layer("b", kind="image", content="/logo.png"),
        ]).build()
        cmd = build_composition_command("/in.mp4", "/out.mp4", graph, encoding_for("medium"))
        args = cmd.to_args()

        assert args.count("-filter_complex") == 1
        assert "-vf" not in args
        assert flag_value(args, "-filter_complex") == graph.to_string()
        assert args[args.index("-map") + 1] == "[stage_2]"
        assert "0:a?" in args
        # source first, then the graph's image
        assert [args[i + 1] for i, a in enumerate(args) if a == "-i"] == ["/in.mp4", "/logo.png"]
        assert flag_value(args, "-crf") == "23"
        assert args[-1] == "/out.mp4"
        assert cmd.output_path == "/out.mp4"

    def test_no_layers_maps_source_video(self):
        cmd = build_composition_command(
            "/in.mp4", "/out.mp4", FilterGraphBuilder().build(), encoding_for(None)
        )
        args = cmd.to_args()
        assert "-filter_complex" not in args
        assert flag_value(args, "-map") == "0:v"

    def test_external_audio_is_last_input(self):
        graph = FilterGraphBuilder().add_layers([
            layer("img", kind="image", content="/logo.png"),
        ]).build()
        args = build_composition_command(
            "/in.mp4", "/out.mp4", graph, encoding_for("high"), audio_uri="/track.mp3"
        ).to_args()
        inputs = [args[i + 1] for i, a in enumerate(args) if a == "-i"]
        assert inputs == ["/in.mp4", "/logo.png", "/track.mp3"]
        assert "2:a" in args
        assert "0:a?" not in args
        assert "-shortest" in args

    def test_trim_duration_and_rate(self):
        args = build_composition_command(
            "/in.mp4", "/out.mp4", FilterGraphBuilder().build(), encoding_for("low"),
            trim=TrimRange(start=1, end=4.5), duration=10, frame_rate=24,
        ).to_args()
        assert flag_value(args, "-ss") == "1.0"
        assert flag_value(args, "-to") == "4.5"
        assert flag_value(args, "-t") == "10"
        assert flag_value(args, "-r") == "24"


class TestFrameCommands:
    """Frame capture and frame combination commands."""

    def test_capture_single_frame(self):
        args = build_frame_capture_command("/in.mp4", "/frame.jpg", 2.5).to_args()
        assert args[args.index("-ss") + 2:args.index("-ss") + 4] == ["-i", "/in.mp4"]
        assert flag_value(args, "-ss") == "2.5"
        assert flag_value(args, "-frames:v") == "1"
        assert flag_value(args, "-q:v") == "2"
        assert args[-1] == "/frame.jpg"

    def test_capture_with_layers(self):
        graph = FilterGraphBuilder().add_layers([layer()]).build()
        args = build_frame_capture_command("/in.mp4", "/f.jpg", 0, graph=graph).to_args()
        assert flag_value(args, "-map") == "[stage_1]"

    def test_combine_single_frame_loops(self):
        args = build_combine_command(
            ["/f.jpg"], "/out.mp4", 1, (640, 360), encoding_for("high")
        ).to_args()
        assert args[2:10] == ["-loop", "1", "-framerate", "1", "-t", "1", "-i", "/f.jpg"]
        assert flag_value(args, "-vf") == "scale=640:360"
        assert flag_value(args, "-pix_fmt") == "yuv420p"
        assert flag_value(args, "-r") == "1"

    def test_combine_sequence_concats(self):
        args = build_combine_command(
            ["/a.jpg", "/b.jpg", "/c.jpg"], "/out.mp4", 2, (640, 360), encoding_for("medium")
        ).to_args()
        graph = flag_value(args, "-filter_complex")
        assert graph.endswith("[f0][f1][f2]concat=n=3:v=1:a=0[out]")
        assert "[2:v]scale=640:360:force_original_aspect_ratio=decrease" in graph
        assert flag_value(args, "-map") == "[out]"
        assert args.count("-loop") == 3
        assert flag_value(args, "-t") == "0.5"
        assert flag_value(args, "-r") == "2"

    def test_combine_requires_frames(self):
        with pytest.raises(ValueError):
            build_combine_command([], "/out.mp4", 1, (2, 2), encoding_for("high"))
