"""Health checks against the media engine."""

import logging
import re

from pydantic import BaseModel

from ..errors import ProbeError
from .process_manager import MediaEngine

logger = logging.getLogger("ffcompose")

VERSION_PATTERN = re.compile(r"ffmpeg version (\S+)")

VERSION_PROBE = ["ffmpeg", "-version"]
FILTERS_PROBE = ["ffmpeg", "-hide_banner", "-filters"]
DRAWTEXT_SMOKE_TEST = [
    "ffmpeg", "-hide_banner",
    "-f", "lavfi", "-i", "testsrc=duration=1:size=320x240:rate=1",
    "-vf", "drawtext=text=probe:x=10:y=10:fontsize=24:fontcolor=white",
    "-t", "1", "-f", "null", "-",
]


class EngineCapabilities(BaseModel):
    """What the installed engine can do."""
    version: str = "Unknown"
    has_drawtext: bool = False
    has_freetype: bool = False
    drawtext_works: bool = False

    @property
    def can_compose(self) -> bool:
        """True when text and image layers can both be rendered."""
        return self.has_drawtext and self.drawtext_works


async def probe_engine(engine: MediaEngine) -> str:
    """Run ``ffmpeg -version`` and return its output.

    Raises:
        ProbeError: If the engine could not run or reported failure.
    """
    result = await engine.execute(list(VERSION_PROBE))
    if not result.success:
        raise ProbeError(f"Engine probe failed: {result.diagnostic_output}")
    return result.diagnostic_output


def parse_version(output: str) -> str:
    """Extract the version token from ``-version`` output.

    Raises:
        ProbeError: If no version token is present.
    """
    match = VERSION_PATTERN.search(output or "")
    if not match:
        raise ProbeError("No version token in engine output")
    return match.group(1)


async def verify_engine(engine: MediaEngine) -> EngineCapabilities:
    """Collect version, filter availability and a drawtext smoke test.

    Never raises for engine failures; missing capabilities are reported as
    ``False`` fields.
    """
    caps = EngineCapabilities()

    try:
        output = await probe_engine(engine)
    except ProbeError as e:
        logger.warning("Engine verification failed: %s", e)
        return caps

    try:
        caps.version = parse_version(output)
    except ProbeError:
        logger.warning("Engine version could not be parsed")
    caps.has_freetype = "--enable-libfreetype" in output

    filters = await engine.execute(list(FILTERS_PROBE))
    if filters.success:
        caps.has_drawtext = re.search(r"\bdrawtext\b", filters.diagnostic_output) is not None

    if caps.has_drawtext:
        smoke = await engine.execute(list(DRAWTEXT_SMOKE_TEST))
        caps.drawtext_works = smoke.success
        if not smoke.success:
            logger.warning("drawtext smoke test failed: %s", smoke.error_message)

    logger.info(
        "Engine %s: drawtext=%s freetype=%s smoke_test=%s",
        caps.version, caps.has_drawtext, caps.has_freetype, caps.drawtext_works,
    )
    return caps
