from __future__ import annotations

from pathlib import Path

import pytest

from src.config_loader import ConfigError, load_config, load_config_or_default
from src.datatypes import AppConfig, OverlayPosition, SourceBackend


def _write(tmp_path: Path, text: str, *, bom: bool = False) -> Path:
    path = tmp_path / "camgrid.toml"
    data = text.encode("utf-8")
    if bom:
        data = b"\xef\xbb\xbf" + data
    path.write_bytes(data)
    return path


def test_empty_file_yields_defaults(tmp_path: Path) -> None:
    cfg = load_config(_write(tmp_path, ""))

    assert cfg == AppConfig()
    assert cfg.sources.backend is SourceBackend.VAPOURSYNTH
    assert cfg.overlay.font_size == 60
    assert cfg.compositor.clear_between_ticks is False


def test_sections_are_parsed_and_coerced(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        """
[sources]
backend = "FFmpeg"
source_plugin = "FFMS2"
ffprobe_timeout_seconds = 5

[timecode]
default_frequency = 25

[compositor]
clear_between_ticks = "true"

[overlay]
position = "center"
enabled = 1
text_color = [255, 255, 0]
margin = 0

[output]
codec = "mpeg4"

[discovery]
recursive = false
output_suffix = ".mp4"

[cli]
progress = false
""",
        bom=True,
    )

    cfg = load_config(path)

    assert cfg.sources.backend is SourceBackend.FFMPEG
    assert cfg.sources.source_plugin == "ffms2"
    assert cfg.sources.ffprobe_timeout_seconds == 5.0
    assert cfg.timecode.default_frequency == 25.0
    assert cfg.compositor.clear_between_ticks is True
    assert cfg.overlay.position is OverlayPosition.CENTER
    assert cfg.overlay.enabled is True
    assert cfg.overlay.text_color == (255, 255, 0)
    assert cfg.overlay.margin == 0
    assert cfg.output.codec == "mpeg4"
    assert cfg.discovery.recursive is False
    assert cfg.discovery.output_suffix == ".mp4"
    assert cfg.cli.progress is False


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("[bogus]\nkey = 1\n", "Unknown configuration section"),
        ("[overlay]\nnope = 1\n", "Invalid keys in [overlay]"),
        ("[sources]\nbackend = \"gstreamer\"\n", "sources.backend must be one of"),
        ("[sources]\nsource_plugin = \"bestsource\"\n", "sources.source_plugin"),
        ("[compositor]\nclear_between_ticks = \"maybe\"\n", "must be a boolean"),
        ("[timecode]\ndefault_frequency = 0\n", "timecode.default_frequency must be > 0"),
        ("[overlay]\nfont_size = 0\n", "overlay.font_size must be >= 1"),
        ("[overlay]\nbackground_color = [0, 0, 300]\n", "between 0 and 255"),
        ("[overlay]\ntext_color = \"white\"\n", "three integers"),
        ("[overlay]\nfont_path = \"/no/such/font.ttf\"\n", "font_path does not exist"),
        ("[output]\ncodec = \"\"\n", "output.codec"),
        ("[discovery]\ncamera_glob = \"*.avi\"\n", "{stem}"),
        ("[discovery]\noutput_suffix = \"avi\"\n", "output_suffix"),
        ("overlay = 3\n", "[overlay] must be a table"),
        ("[overlay\n", "Failed to parse TOML"),
    ],
)
def test_invalid_config_raises(tmp_path: Path, text: str, message: str) -> None:
    with pytest.raises(ConfigError) as excinfo:
        load_config(_write(tmp_path, text))
    assert message in str(excinfo.value)


def test_non_utf8_file_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "latin1.toml"
    path.write_bytes("[output]\ncodec = \"caf\xe9\"\n".encode("latin-1"))
    with pytest.raises(ConfigError):
        load_config(path)


def test_load_config_or_default_without_path() -> None:
    assert load_config_or_default(None) == AppConfig()


def test_load_config_or_default_missing_explicit_path(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config_or_default(tmp_path / "missing.toml")
