"""Process management for FFMPEG execution."""

import asyncio
import logging
import re
import shutil
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Protocol, runtime_checkable

from .command_builder import FFMPEGCommand

logger = logging.getLogger("ffcompose")

ProgressCallback = Callable[["ProgressInfo"], None]


@dataclass
class ProcessResult:
    """Result of an FFMPEG process execution."""
    success: bool
    return_code: int
    stdout: str
    stderr: str
    command: str
    duration: Optional[float] = None
    output_path: Optional[str] = None
    error_message: Optional[str] = None
    stack_trace: Optional[str] = None

    @property
    def diagnostic_output(self) -> str:
        """Everything the engine printed; FFmpeg logs to stderr."""
        return "\n".join(part for part in (self.stderr, self.stdout) if part)

    @property
    def output_size(self) -> Optional[int]:
        """Get output file size if available."""
        if self.output_path and Path(self.output_path).exists():
            return Path(self.output_path).stat().st_size
        return None


@dataclass
class ProgressInfo:
    """Progress information during FFMPEG execution."""
    frame: int = 0
    fps: float = 0.0
    time: float = 0.0
    bitrate: str = ""
    speed: str = ""
    size: int = 0
    progress_percent: float = 0.0
    finished: bool = False

    def update(self, line: str, total_duration: Optional[float] = None) -> bool:
        """Apply one ``key=value`` line of ``-progress`` output.

        Returns:
            True when the line closes a progress block and listeners
            should be notified.
        """
        if "=" not in line:
            return False
        key, value = line.split("=", 1)
        try:
            if key == "frame":
                self.frame = int(value)
            elif key == "fps":
                self.fps = float(value) if value else 0.0
            elif key == "out_time_ms":
                self.time = int(value) / 1_000_000
                if total_duration and total_duration > 0:
                    self.progress_percent = min(100, (self.time / total_duration) * 100)
            elif key == "bitrate":
                self.bitrate = value
            elif key == "speed":
                self.speed = value
            elif key == "total_size":
                self.size = int(value) if value.isdigit() else 0
            elif key == "progress":
                if value == "end":
                    self.finished = True
                    self.progress_percent = 100
                return True
        except ValueError:
            # FFmpeg reports N/A before the first frame
            pass
        return False


@runtime_checkable
class MediaEngine(Protocol):
    """The capability the pipeline needs from a media engine."""

    async def execute(
        self,
        command: FFMPEGCommand | list[str],
        progress_callback: Optional[ProgressCallback] = None,
        total_duration: Optional[float] = None,
    ) -> ProcessResult:
        ...


class ProcessManager:
    """Runs FFMPEG as an asyncio subprocess.

    The manager never retries and applies no timeout. A caller that wraps
    :meth:`execute` in ``asyncio.wait_for`` or cancels the task gets the
    child process killed before the cancellation propagates.
    """

    def __init__(self, ffmpeg_path: Optional[str] = None):
        """Initialize process manager.

        Args:
            ffmpeg_path: Path to ffmpeg executable. If None, searches PATH
                when the first command runs.
        """
        self._configured_path = ffmpeg_path
        self._running: set[asyncio.subprocess.Process] = set()

    @property
    def ffmpeg_path(self) -> Optional[str]:
        return self._configured_path or shutil.which("ffmpeg")

    @property
    def running(self) -> int:
        """Number of child processes still running."""
        return len(self._running)

    def kill_all(self) -> None:
        """Kill every running child process."""
        for process in list(self._running):
            if process.returncode is None:
                logger.warning("Killing ffmpeg process %s", process.pid)
                process.kill()

    async def execute(
        self,
        command: FFMPEGCommand | list[str],
        progress_callback: Optional[ProgressCallback] = None,
        total_duration: Optional[float] = None,
    ) -> ProcessResult:
        """Execute an FFMPEG command and wait for it to finish.

        Args:
            command: FFMPEGCommand object or list of arguments.
            progress_callback: Called with progress as FFmpeg reports it.
            total_duration: Expected output duration, for percentages.

        Returns:
            ProcessResult with execution details. Spawn failures are
            reported as a failed result, not raised.
        """
        if isinstance(command, FFMPEGCommand):
            args = command.to_args()
            cmd_string = command.to_string()
            output_path = command.output_path
        else:
            args = list(command)
            cmd_string = " ".join(args)
            output_path = None

        if args and args[0] == "ffmpeg":
            executable = self.ffmpeg_path
            if not executable:
                return ProcessResult(
                    success=False,
                    return_code=-1,
                    stdout="",
                    stderr="ffmpeg not found in PATH",
                    command=cmd_string,
                    error_message="ffmpeg not found in PATH",
                )
            args[0] = executable

        if progress_callback is not None:
            args = [args[0], "-progress", "pipe:1", "-nostats"] + args[1:]

        loop = asyncio.get_running_loop()
        started = loop.time()

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            return ProcessResult(
                success=False,
                return_code=-1,
                stdout="",
                stderr=str(e),
                command=cmd_string,
                error_message=str(e),
                stack_trace=traceback.format_exc(),
            )

        self._running.add(process)
        try:
            stdout, stderr = await self._communicate(
                process, progress_callback, total_duration
            )
        except asyncio.CancelledError:
            if process.returncode is None:
                logger.info("Cancelled; killing ffmpeg process %s", process.pid)
                process.kill()
            await process.wait()
            raise
        finally:
            self._running.discard(process)

        success = process.returncode == 0
        return ProcessResult(
            success=success,
            return_code=process.returncode,
            stdout=stdout,
            stderr=stderr,
            command=cmd_string,
            duration=loop.time() - started,
            output_path=output_path if success else None,
            error_message=None if success else self._parse_error(stderr),
        )

    async def _communicate(
        self,
        process: asyncio.subprocess.Process,
        progress_callback: Optional[ProgressCallback],
        total_duration: Optional[float],
    ) -> tuple[str, str]:
        if progress_callback is None:
            out, err = await process.communicate()
            return (
                out.decode(errors="replace"),
                err.decode(errors="replace"),
            )

        stdout_data: list[str] = []
        stderr_data: list[str] = []

        async def read_stderr():
            while True:
                line = await process.stderr.readline()
                if not line:
                    break
                stderr_data.append(line.decode(errors="replace"))

        async def read_stdout():
            progress = ProgressInfo()
            while True:
                line = await process.stdout.readline()
                if not line:
                    break
                line_str = line.decode(errors="replace").strip()
                stdout_data.append(line_str)
                if progress.update(line_str, total_duration):
                    progress_callback(progress)

        # Run both readers concurrently
        await asyncio.gather(read_stdout(), read_stderr())
        await process.wait()
        return "\n".join(stdout_data), "".join(stderr_data)

    def _parse_error(self, stderr: str) -> str:
        """Extract meaningful error message from ffmpeg stderr."""
        lines = stderr.strip().split("\n")

        # Look for common error patterns
        error_patterns = [
            r"Error.*",
            r"Invalid.*",
            r"No such file.*",
            r".*not found.*",
            r"Permission denied.*",
        ]

        for line in reversed(lines):
            for pattern in error_patterns:
                if re.search(pattern, line, re.IGNORECASE):
                    return line.strip()

        # Return last non-empty line if no pattern matched
        for line in reversed(lines):
            if line.strip():
                return line.strip()

        return "Unknown error"
