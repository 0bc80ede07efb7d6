"""Scratch-directory artifacts: output naming, frame capture, frame joining."""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

import numpy as np
from PIL import Image

from ..errors import FilesystemError
from ..media.formats import VideoEncoding
from ..sanitize import ensure_writable_dir, to_local_path
from .command_builder import (
    FFMPEGCommand,
    build_combine_command,
    build_frame_capture_command,
)
from .filter_graph import FilterGraph

logger = logging.getLogger("ffcompose")


class ArtifactKind(str, Enum):
    PROCESSED_VIDEO = "processed_video"
    FRAME = "frame"


class Purpose(str, Enum):
    """Prefix of generated file names."""
    PROCESSED_VIDEO = "processed_video"
    DOWNLOAD_VIDEO = "download_video"
    FRAME = "frame"
    COMBINED = "combined"


@dataclass(frozen=True)
class Artifact:
    """A file produced by the pipeline. The caller owns it once returned."""
    path: Path
    kind: ArtifactKind


class ArtifactManager:
    """Names, and builds commands for, files in the scratch directory.

    The manager never deletes anything: inputs stay untouched and outputs
    belong to the caller.
    """

    def __init__(self, scratch_dir: str | Path, jpeg_quality: int = 2):
        self.scratch_dir = Path(scratch_dir)
        self.jpeg_quality = jpeg_quality
        self._lock = threading.Lock()
        self._last_stamp = 0

    def _next_stamp(self) -> int:
        # Strictly increasing, so back-to-back calls never share a name
        with self._lock:
            stamp = max(int(time.time() * 1000), self._last_stamp + 1)
            self._last_stamp = stamp
            return stamp

    def new_path(self, purpose: Purpose | str, extension: str) -> Path:
        """Return an unused ``{purpose}_{unix_millis}.{extension}`` path.

        Raises:
            FilesystemError: If the scratch directory is not writable.
        """
        directory = ensure_writable_dir(self.scratch_dir)
        prefix = Purpose(purpose).value
        extension = extension.lstrip(".")
        while True:
            path = directory / f"{prefix}_{self._next_stamp()}.{extension}"
            if not path.exists():
                return path

    def frame_capture_command(
        self,
        video: str,
        timestamp: float,
        graph: Optional[FilterGraph] = None,
    ) -> FFMPEGCommand:
        """Command that extracts one JPEG frame at ``timestamp`` seconds."""
        if timestamp < 0:
            raise ValueError(f"Timestamp must not be negative: {timestamp}")
        output_path = self.new_path(Purpose.FRAME, "jpg")
        return build_frame_capture_command(
            video,
            output_path,
            timestamp,
            graph=graph,
            jpeg_quality=self.jpeg_quality,
        )

    def combine_command(
        self,
        frames: list[str],
        frame_rate: float,
        encoding: VideoEncoding,
        output_path: Optional[str | Path] = None,
        extension: str = "mp4",
    ) -> FFMPEGCommand:
        """Command that joins ``frames`` into a video.

        The output size is taken from the first frame, rounded down to even
        dimensions as required by ``yuv420p``.

        Raises:
            FilesystemError: If a frame cannot be read as an image.
        """
        if not frames:
            raise ValueError("At least one frame is required")

        local_frames = [to_local_path(frame) for frame in frames]
        sizes = [frame_size(frame) for frame in local_frames]
        width, height = sizes[0]
        even_size = (max(2, width - width % 2), max(2, height - height % 2))

        if output_path is None:
            output_path = self.new_path(Purpose.COMBINED, extension)
        else:
            output_path = Path(to_local_path(str(output_path)))
            ensure_writable_dir(output_path.parent)

        logger.debug(
            "Combining %d frame(s) at %s fps into %dx%d",
            len(frames), frame_rate, even_size[0], even_size[1],
        )
        return build_combine_command(
            local_frames, output_path, frame_rate, even_size, encoding
        )


def frame_size(path: str | Path) -> tuple[int, int]:
    """Read an image's ``(width, height)``.

    Raises:
        FilesystemError: If the file is missing or not a readable image.
    """
    try:
        with Image.open(path) as img:
            return img.size
    except OSError as e:
        raise FilesystemError(f"Cannot read frame {path}: {e}", path=str(path)) from e


def load_frame(path: str | Path) -> np.ndarray:
    """Load a frame as an ``(height, width, 3)`` uint8 RGB array.

    Raises:
        FilesystemError: If the file is missing or not a readable image.
    """
    try:
        with Image.open(path) as img:
            arr = np.array(img.convert("RGB"))
    except OSError as e:
        raise FilesystemError(f"Cannot read frame {path}: {e}", path=str(path)) from e
    return arr
