"""Tests for ffcompose.sanitize."""

import os

import pytest

from ffcompose.errors import FilesystemError, InvalidLayerError
from ffcompose.sanitize import (
    ensure_writable_dir,
    escape_drawtext,
    escape_graph_value,
    escape_option_value,
    is_remote_uri,
    normalize_color,
    to_local_path,
    validate_input_uri,
)


class TestEscaping:
    """Two-level escaping for drawtext inside -filter_complex."""

    def test_plain_text_unchanged(self):
        assert escape_drawtext("Grand Opening 2024") == "Grand Opening 2024"

    def test_option_level(self):
        assert escape_option_value("a:b'c\\d") == "a\\:b\\'c\\\\d"

    def test_graph_level(self):
        assert escape_graph_value("a,b;c[d]") == "a\\,b\\;c\\[d\\]"

    def test_quote_is_escaped_twice(self):
        # ' -> \' (option level) -> \\\' (graph level)
        assert escape_drawtext("It's") == "It\\\\\\'s"

    def test_colon_cannot_inject_options(self):
        escaped = escape_drawtext("x:textfile=/etc/passwd")
        assert ":textfile" not in escaped.replace("\\:", "")

    def test_comma_and_semicolon_cannot_split_graph(self):
        escaped = escape_drawtext("Buy 1, get 1; today")
        assert escaped == "Buy 1\\, get 1\\; today"

    def test_empty(self):
        assert escape_drawtext("") == ""


class TestNormalizeColor:
    """Colours become bare hex or lower-case names."""

    @pytest.mark.parametrize("raw,expected", [
        ("#FF0000", "FF0000"),
        ("ff0000", "FF0000"),
        ("0x00ff00", "00FF00"),
        ("#fff", "FFFFFF"),
        ("#11223344", "11223344"),
        ("White", "white"),
        ("white@0.5", "white@0.5"),
    ])
    def test_valid(self, raw, expected):
        assert normalize_color(raw) == expected

    @pytest.mark.parametrize("raw", ["", "#12", "red:box=1", "rgb(1,2,3)"])
    def test_invalid(self, raw):
        with pytest.raises(ValueError):
            normalize_color(raw)


class TestInputUris:
    """Local inputs are checked, remote ones passed through."""

    def test_file_prefix_stripped(self):
        assert to_local_path("file:///data/video.mp4") == "/data/video.mp4"
        assert to_local_path("/data/video.mp4") == "/data/video.mp4"

    def test_remote_detection(self):
        assert is_remote_uri("https://cdn.example.com/v.mp4")
        assert not is_remote_uri("file:///tmp/v.mp4")
        assert not is_remote_uri("/tmp/v.mp4")

    def test_existing_file(self, video_file):
        assert validate_input_uri(video_file) == video_file
        assert validate_input_uri("file://" + video_file) == video_file

    def test_missing_file(self, tmp_path):
        with pytest.raises(FilesystemError, match="not found") as exc:
            validate_input_uri(str(tmp_path / "missing.mp4"))
        assert exc.value.path.endswith("missing.mp4")

    def test_directory_is_not_a_file(self, tmp_path):
        with pytest.raises(FilesystemError):
            validate_input_uri(str(tmp_path))

    def test_remote_passed_through(self):
        uri = "https://cdn.example.com/v.mp4"
        assert validate_input_uri(uri) == uri

    def test_empty(self):
        with pytest.raises(InvalidLayerError):
            validate_input_uri("  ")


class TestScratchDir:
    """Scratch directory creation."""

    def test_creates_nested(self, tmp_path):
        target = tmp_path / "a" / "b"
        assert ensure_writable_dir(target) == target
        assert target.is_dir()

    def test_file_in_the_way(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        with pytest.raises(FilesystemError):
            ensure_writable_dir(blocker / "scratch")

    @pytest.mark.skipif(os.name == "nt" or os.geteuid() == 0,
                        reason="permission bits are not enforced")
    def test_read_only_dir(self, tmp_path):
        target = tmp_path / "ro"
        target.mkdir()
        target.chmod(0o500)
        try:
            with pytest.raises(FilesystemError, match="not writable"):
                ensure_writable_dir(target)
        finally:
            target.chmod(0o700)
