"""Pytest configuration and shared fixtures for ffcompose tests.

Adds the project root to sys.path so the package imports without being
installed, and provides a fake media engine that records commands instead
of spawning FFmpeg.
"""

import os
import sys
from pathlib import Path

import pytest

project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from ffcompose.config import PipelineSettings  # noqa: E402
from ffcompose.executor.command_builder import FFMPEGCommand  # noqa: E402
from ffcompose.executor.process_manager import ProcessResult  # noqa: E402
from ffcompose.pipeline import VideoPipeline  # noqa: E402

FFMPEG_VERSION_OUTPUT = (
    "ffmpeg version 6.1.1 Copyright (c) 2000-2023 the FFmpeg developers\n"
    "built with gcc 12 (Debian 12.2.0-14)\n"
    "configuration: --enable-gpl --enable-libfreetype --enable-libx264\n"
)


def ok_result(stdout: str = "", stderr: str = "") -> ProcessResult:
    return ProcessResult(
        success=True, return_code=0, stdout=stdout, stderr=stderr, command="ffmpeg"
    )


def failed_result(stderr: str, return_code: int = 1) -> ProcessResult:
    return ProcessResult(
        success=False,
        return_code=return_code,
        stdout="",
        stderr=stderr,
        command="ffmpeg",
        error_message=stderr.strip().splitlines()[-1] if stderr.strip() else None,
    )


class FakeEngine:
    """Records every command and answers with queued results.

    When the queue is empty each call succeeds, writes a placeholder to the
    command's output path and reports that path. With ``write_output=False``
    it succeeds without writing anything.
    """

    def __init__(self, results=None, write_output=True):
        self.commands = []
        self.results = list(results or [])
        self.write_output = write_output

    async def execute(self, command, progress_callback=None, total_duration=None):
        self.commands.append(command)
        if self.results:
            return self.results.pop(0)
        output_path = command.output_path if isinstance(command, FFMPEGCommand) else None
        if output_path and self.write_output:
            Path(output_path).write_bytes(b"encoded")
        result = ok_result()
        result.output_path = output_path
        return result

    @property
    def calls(self) -> int:
        return len(self.commands)

    def args(self, index: int = -1) -> list[str]:
        return self.commands[index].to_args()


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def settings(tmp_path):
    return PipelineSettings(scratch_dir=str(tmp_path / "scratch"))


@pytest.fixture
def pipeline(fake_engine, settings):
    return VideoPipeline(engine=fake_engine, settings=settings)


@pytest.fixture
def video_file(tmp_path):
    path = tmp_path / "input.mp4"
    path.write_bytes(b"not really a video")
    return str(path)


@pytest.fixture
def text_layer_data():
    return {
        "id": "title",
        "type": "text",
        "content": "Grand Opening",
        "position": {"x": 40, "y": 60},
        "size": {"width": 400, "height": 36},
        "style": {"fontSize": 32, "color": "#FF0000"},
    }


@pytest.fixture
def logo_layer_data(tmp_path):
    return {
        "id": "logo",
        "type": "logo",
        "content": str(tmp_path / "logo.png"),
        "position": {"x": 10, "y": 20},
        "size": {"width": 120, "height": 80},
    }
