"""Video composition pipeline.

:class:`VideoPipeline` is the entry point used by the rest of the backend.
Each call is an independent coroutine::

    pipeline = VideoPipeline()
    path = await pipeline.process_video_for_download(
        "/uploads/clip.mp4",
        [{"id": "t1", "type": "text", "content": "Grand opening",
          "position": {"x": 40, "y": 60}, "size": {"width": 400, "height": 36}}],
        {"addWatermark": True, "quality": "medium"},
    )

The engine is injected, so tests pass a fake that returns canned results.
Engine calls go through a semaphore sized by ``max_concurrent_jobs``.
Cancelling a call (or timing it out with ``asyncio.wait_for``) kills the
FFmpeg process it started.
"""

import asyncio
import logging
import uuid
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from .config import PipelineSettings, load_settings
from .errors import EngineExecutionError, ProbeError
from .executor.artifacts import Artifact, ArtifactKind, ArtifactManager, Purpose
from .executor.command_builder import FFMPEGCommand, build_composition_command
from .executor.filter_graph import FilterGraph, FilterGraphBuilder
from .executor.probe import EngineCapabilities, parse_version, probe_engine, verify_engine
from .executor.process_manager import MediaEngine, ProcessManager, ProgressCallback
from .media.formats import encoding_for
from .media.layers import Layer
from .media.options import CombineOptions, ProcessingOptions, RenderOptions
from .sanitize import validate_input_uri

logger = logging.getLogger("ffcompose")

LayerInput = Layer | dict[str, Any]


class JobState(str, Enum):
    """Lifecycle of one pipeline call."""
    IDLE = "idle"
    BUILDING = "building"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def _coerce_layers(layers: Optional[Iterable[LayerInput]]) -> list[Layer]:
    if not layers:
        return []
    return [
        layer if isinstance(layer, Layer) else Layer.model_validate(layer)
        for layer in layers
    ]


class VideoPipeline:
    """Compiles overlay layers into FFmpeg commands and runs them.

    Args:
        engine: Media engine; defaults to a :class:`ProcessManager` using
            ``settings.ffmpeg_path``.
        settings: Pipeline settings; defaults to :func:`load_settings`.
        artifacts: Artifact manager; defaults to one rooted at
            ``settings.scratch_dir``.
    """

    def __init__(
        self,
        engine: Optional[MediaEngine] = None,
        settings: Optional[PipelineSettings] = None,
        artifacts: Optional[ArtifactManager] = None,
    ):
        self.settings = settings or load_settings()
        self.engine = engine or ProcessManager(self.settings.ffmpeg_path)
        self.artifacts = artifacts or ArtifactManager(
            self.settings.scratch_dir,
            jpeg_quality=self.settings.frame_jpeg_quality,
        )
        self._gate = asyncio.Semaphore(self.settings.max_concurrent_jobs)

    # ------------------------------------------------------------------ #
    #   Composition                                                      #
    # ------------------------------------------------------------------ #

    async def process_video(
        self,
        video_uri: str,
        layers: Iterable[LayerInput],
        render_options: RenderOptions | dict[str, Any],
        progress_callback: Optional[ProgressCallback] = None,
    ) -> str:
        """Compose layers onto a video for preview.

        No watermark and no canvas image are added.

        Returns:
            Path of the processed video.

        Raises:
            InvalidLayerError: A layer failed validation; the engine was not run.
            FilesystemError: The video is unreadable or the scratch directory
                is not writable.
            EngineExecutionError: FFmpeg failed; the message holds its output.
        """
        options = RenderOptions.model_validate(render_options)

        def build() -> FFMPEGCommand:
            video = validate_input_uri(video_uri)
            graph = (
                FilterGraphBuilder(frame_size=options.frame_size)
                .add_layers(_coerce_layers(layers))
                .build()
            )
            output_path = self.artifacts.new_path(Purpose.PROCESSED_VIDEO, "mp4")
            return build_composition_command(
                video,
                output_path,
                graph,
                self._encoding(options.quality),
                duration=options.duration,
                frame_rate=options.frame_rate,
                audio_codec=self.settings.audio_codec,
            )

        artifact = await self._run(
            "Video processing", build, ArtifactKind.PROCESSED_VIDEO,
            progress_callback=progress_callback, total_duration=options.duration,
        )
        return str(artifact.path)

    async def process_video_for_download(
        self,
        video_uri: str,
        layers: Iterable[LayerInput],
        options: Optional[ProcessingOptions | dict[str, Any]] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> str:
        """Compose layers onto a video for export.

        Overlays are always burned in. The optional canvas image sits
        directly above the video and below every layer; the watermark is
        drawn above everything.

        Returns:
            Path of the exported video.

        Raises:
            InvalidLayerError, FilesystemError, EngineExecutionError: As for
                :meth:`process_video`.
        """
        opts = ProcessingOptions.model_validate(options or {})
        if not opts.embed_overlays:
            logger.info("Download exports always embed overlays; ignoring embed_overlays=False")

        def build() -> FFMPEGCommand:
            video = validate_input_uri(video_uri)
            audio = validate_input_uri(opts.add_audio_uri) if opts.add_audio_uri else None

            builder = FilterGraphBuilder(frame_size=opts.frame_size)
            if opts.canvas_image_uri:
                builder.add_canvas(opts.canvas_image_uri)
            builder.add_layers(_coerce_layers(layers))
            if opts.add_watermark:
                s = self.settings
                builder.add_watermark(
                    s.watermark_text,
                    x=s.watermark_x,
                    y=s.watermark_y,
                    font_size=s.watermark_font_size,
                    color=s.watermark_color,
                    opacity=s.watermark_opacity,
                )
            graph = builder.build()

            output_path = self.artifacts.new_path(
                Purpose.DOWNLOAD_VIDEO, opts.output_format.extension
            )
            return build_composition_command(
                video,
                output_path,
                graph,
                self._encoding(opts.quality),
                audio_uri=audio,
                trim=opts.trim,
                audio_codec=self.settings.audio_codec,
            )

        total = opts.trim.duration if opts.trim else None
        artifact = await self._run(
            "Download processing", build, ArtifactKind.PROCESSED_VIDEO,
            progress_callback=progress_callback, total_duration=total,
        )
        return str(artifact.path)

    # ------------------------------------------------------------------ #
    #   Frames                                                           #
    # ------------------------------------------------------------------ #

    async def capture_frame(
        self,
        video_uri: str,
        timestamp: float,
        layers: Optional[Iterable[LayerInput]] = None,
    ) -> str:
        """Extract one JPEG frame at ``timestamp`` seconds.

        When layers are given they are drawn onto the captured frame.
        """

        def build() -> FFMPEGCommand:
            video = validate_input_uri(video_uri)
            graph: Optional[FilterGraph] = None
            coerced = _coerce_layers(layers)
            if coerced:
                graph = FilterGraphBuilder().add_layers(coerced).build()
            return self.artifacts.frame_capture_command(video, timestamp, graph=graph)

        artifact = await self._run("Frame capture", build, ArtifactKind.FRAME)
        return str(artifact.path)

    async def combine_frames(
        self,
        frames: list[str],
        output_path: Optional[str] = None,
        options: Optional[CombineOptions | dict[str, Any]] = None,
    ) -> str:
        """Join frames into a video, each held for ``1 / frame_rate`` seconds.

        Without ``output_path`` the video is written to the scratch directory.
        The input frames are not deleted.
        """
        opts = CombineOptions.model_validate(options or {})

        def build() -> FFMPEGCommand:
            local_frames = [validate_input_uri(frame) for frame in frames]
            return self.artifacts.combine_command(
                local_frames,
                opts.frame_rate,
                self._encoding(opts.quality),
                output_path=output_path,
            )

        artifact = await self._run(
            "Frame combination", build, ArtifactKind.PROCESSED_VIDEO
        )
        return str(artifact.path)

    # ------------------------------------------------------------------ #
    #   Engine health                                                    #
    # ------------------------------------------------------------------ #

    async def test_engine(self) -> bool:
        """Return whether the engine answers a version probe."""
        try:
            async with self._gate:
                output = await probe_engine(self.engine)
        except ProbeError as e:
            logger.error("FFmpeg test failed: %s", e)
            return False
        logger.info("FFmpeg is working: %s", output[:200])
        return True

    async def get_engine_version(self) -> str:
        """Return the engine version, or ``"Unknown"``. Never raises."""
        try:
            async with self._gate:
                output = await probe_engine(self.engine)
            return parse_version(output)
        except Exception as e:
            # Version info is advisory; any engine failure maps to "Unknown"
            logger.warning("Could not determine FFmpeg version: %s", e)
            return "Unknown"

    async def verify_engine(self) -> EngineCapabilities:
        """Report version, drawtext/freetype support and a drawtext smoke test."""
        async with self._gate:
            return await verify_engine(self.engine)

    # ------------------------------------------------------------------ #
    #   Internals                                                        #
    # ------------------------------------------------------------------ #

    def _encoding(self, quality):
        return encoding_for(
            quality,
            codec=self.settings.video_codec,
            pixel_format=self.settings.pixel_format,
        )

    async def _run(
        self,
        operation: str,
        build: Callable[[], FFMPEGCommand],
        kind: ArtifactKind,
        progress_callback: Optional[ProgressCallback] = None,
        total_duration: Optional[float] = None,
    ) -> Artifact:
        job = uuid.uuid4().hex[:8]
        state = JobState.IDLE

        def transition(new_state: JobState) -> None:
            nonlocal state
            logger.debug("[%s] %s: %s -> %s", job, operation, state.value, new_state.value)
            state = new_state

        transition(JobState.BUILDING)
        try:
            command = build()
        except Exception:
            transition(JobState.FAILED)
            raise

        logger.info("[%s] %s command: %s", job, operation, command.to_string())
        transition(JobState.EXECUTING)
        try:
            async with self._gate:
                result = await self.engine.execute(
                    command,
                    progress_callback=progress_callback,
                    total_duration=total_duration,
                )
        except BaseException:
            transition(JobState.FAILED)
            raise

        if not result.success:
            transition(JobState.FAILED)
            logger.error("[%s] %s failed", job, operation)
            logger.error("[%s] Output: %s", job, result.diagnostic_output)
            if result.stack_trace:
                logger.error("[%s] Stack trace: %s", job, result.stack_trace)
            raise EngineExecutionError(
                operation,
                result.diagnostic_output,
                stack_trace=result.stack_trace,
                command=result.command,
            )

        # ffmpeg exits 0 when nothing was encoded, e.g. a seek past the last frame
        path = Path(result.output_path or command.output_path)
        if not path.is_file() or path.stat().st_size == 0:
            transition(JobState.FAILED)
            logger.error("[%s] %s wrote no output to %s", job, operation, path)
            logger.error("[%s] Output: %s", job, result.diagnostic_output)
            diagnostic = "\n".join(
                part for part in (result.diagnostic_output, f"Output file missing or empty: {path}")
                if part
            )
            raise EngineExecutionError(operation, diagnostic, command=result.command)

        transition(JobState.SUCCEEDED)
        logger.info("[%s] %s completed: %s", job, operation, path)
        return Artifact(path=path, kind=kind)
