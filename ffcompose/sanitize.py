"""Escaping and path checks for values passed to FFmpeg.

Text drawn by ``drawtext`` passes through two parsers: the filter option
parser and then the filter graph parser. Each level has its own special
characters, so text is escaped for the option level first and the result
escaped again for the graph level.
"""

import os
import re
from pathlib import Path

from .errors import FilesystemError, InvalidLayerError

# Special characters of the filter option parser (``key=value:key=value``)
_OPTION_SPECIALS = ("\\", "'", ":")

# Special characters of the filter graph parser
_GRAPH_SPECIALS = ("\\", "'", "[", "]", ",", ";")

_HEX_COLOR = re.compile(r"^(?:0x|#)?([0-9a-fA-F]{6}|[0-9a-fA-F]{8}|[0-9a-fA-F]{3})$")
_NAMED_COLOR = re.compile(r"^[A-Za-z]+(?:@(?:0(?:\.\d+)?|1(?:\.0+)?))?$")

_URI_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")

# Extensions that select the ``fontfile`` option instead of a fontconfig name
FONT_FILE_EXTENSIONS = {".ttf", ".otf", ".ttc", ".woff", ".woff2"}


def _escape(text: str, specials: tuple[str, ...]) -> str:
    # Backslash is first in every tuple so added escapes are not doubled
    for char in specials:
        if char in text:
            text = text.replace(char, "\\" + char)
    return text


def escape_option_value(value: str) -> str:
    """Escape a value for the filter option level."""
    if not value:
        return value
    return _escape(value, _OPTION_SPECIALS)


def escape_graph_value(value: str) -> str:
    """Escape a value for the filter graph level."""
    if not value:
        return value
    return _escape(value, _GRAPH_SPECIALS)


def escape_drawtext(text: str) -> str:
    """Escape literal text for a ``drawtext`` node inside ``-filter_complex``.

    Args:
        text: The raw text string.

    Returns:
        Text that FFmpeg will render literally.
    """
    # Line breaks inside a filter graph would end the argument
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return escape_graph_value(escape_option_value(text))


def normalize_color(color: str) -> str:
    """Normalize a user colour to the form FFmpeg expects.

    Hex colours lose any leading ``#`` or ``0x`` and are upper-cased
    (``#ff0000`` becomes ``FF0000``; three digit shorthand is expanded).
    Colour names such as ``white`` or ``white@0.5`` pass through unchanged.

    Raises:
        ValueError: If the value is neither a hex colour nor a colour name.
    """
    value = (color or "").strip()
    match = _HEX_COLOR.match(value)
    if match:
        digits = match.group(1).upper()
        if len(digits) == 3:
            digits = "".join(c * 2 for c in digits)
        return digits
    if _NAMED_COLOR.match(value):
        return value.lower()
    raise ValueError(f"Invalid colour: {color!r}")


def is_remote_uri(uri: str) -> bool:
    """True for URIs with a scheme other than ``file://``."""
    return bool(_URI_SCHEME.match(uri)) and not uri.lower().startswith("file://")


def to_local_path(uri: str) -> str:
    """Strip a ``file://`` prefix, leaving every other URI untouched."""
    if uri.lower().startswith("file://"):
        return uri[len("file://"):]
    return uri


def validate_input_uri(uri: str) -> str:
    """Check that an input the engine will read is usable.

    Local paths must exist and be readable files. Remote URIs are returned
    as-is because only the engine can open them.

    Returns:
        The path or URI to hand to FFmpeg.

    Raises:
        InvalidLayerError: If the value is empty.
        FilesystemError: If a local path is missing or unreadable.
    """
    if not uri or not uri.strip():
        raise InvalidLayerError("Input path cannot be empty")

    if is_remote_uri(uri):
        return uri

    path = Path(to_local_path(uri))
    if not path.is_file():
        raise FilesystemError(f"Input file not found: {path}", path=str(path))
    if not os.access(path, os.R_OK):
        raise FilesystemError(f"Input file is not readable: {path}", path=str(path))
    return str(path)


def ensure_writable_dir(path: str | Path) -> Path:
    """Create ``path`` if needed and check it can be written to.

    Raises:
        FilesystemError: If the directory cannot be created or written.
    """
    directory = Path(path)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilesystemError(
            f"Cannot create scratch directory {directory}: {e}", path=str(directory)
        ) from e
    if not os.access(directory, os.W_OK):
        raise FilesystemError(
            f"Scratch directory is not writable: {directory}", path=str(directory)
        )
    return directory
