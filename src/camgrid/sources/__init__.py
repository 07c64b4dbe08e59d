"""Frame source protocol, backend selection and per-file descriptors."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Optional, Protocol, runtime_checkable

from src.datatypes import AppConfig, SourceBackend, SourcesConfig
from src.camgrid.errors import SourceOpenError, TimecodeParseError
from src.camgrid.models import DEFAULT_TIMECODE_FREQUENCY, SourceDescriptor
from src.camgrid.timecode import parse_frequency, parse_timecode

from .ffmpeg import FFmpegFrameSource
from .probe import ProbeError, TimecodeTag, VideoProbe, probe_video, read_timecode

logger = logging.getLogger(__name__)


@runtime_checkable
class FrameSource(Protocol):
    """Sequential decoder for one input file."""

    label: str
    width: int
    height: int
    frame_rate: float
    frame_count: int
    bit_rate: int

    def next_frame(self) -> Optional[Any]:
        ...

    def close(self) -> None:
        ...


SourceOpener = Callable[[Path], FrameSource]
TimecodeReader = Callable[[Path], TimecodeTag]


def ffprobe_for(ffmpeg_path: str) -> str:
    """Return the ffprobe executable that sits beside *ffmpeg_path*."""

    path = Path(ffmpeg_path)
    if path.stem.lower() != "ffmpeg":
        return "ffprobe"
    renamed = path.with_name("ffprobe" + path.suffix)
    return str(renamed) if path.parent != Path(".") else renamed.name


def _probe_bit_rate(path: Path, *, timeout: float, ffprobe: str) -> int:
    try:
        return probe_video(path, timeout=timeout, ffprobe=ffprobe).bit_rate
    except ProbeError as exc:
        logger.debug("Bit rate unavailable for %s: %s", path.name, exc)
        return 0


def open_source(path: Path, cfg: SourcesConfig, *, ffmpeg: str = "ffmpeg") -> FrameSource:
    """
    Open *path* with the configured decoding backend.

    Raises:
        SourceOpenError: If the file cannot be opened by the selected backend.
    """

    ffprobe = ffprobe_for(ffmpeg)
    if cfg.backend is SourceBackend.FFMPEG:
        return FFmpegFrameSource(
            path, ffmpeg=ffmpeg, ffprobe=ffprobe, probe_timeout=cfg.ffprobe_timeout_seconds
        )

    from src.camgrid.vs import VapourSynthFrameSource, configure

    configure(search_paths=cfg.vapoursynth_python_paths, source_preference=cfg.source_plugin)
    bit_rate = _probe_bit_rate(path, timeout=cfg.ffprobe_timeout_seconds, ffprobe=ffprobe)
    return VapourSynthFrameSource(path, cache_dir=cfg.cache_dir or None, bit_rate=bit_rate)


def make_opener(cfg: AppConfig) -> SourceOpener:
    """Bind :func:`open_source` to the decoder and ffmpeg settings of *cfg*."""

    def _open(path: Path) -> FrameSource:
        return open_source(path, cfg.sources, ffmpeg=cfg.output.ffmpeg_path)

    return _open


def make_timecode_reader(cfg: AppConfig) -> TimecodeReader:
    """Bind :func:`read_timecode` to the probe settings of *cfg*."""

    ffprobe = ffprobe_for(cfg.output.ffmpeg_path)

    def _read(path: Path) -> TimecodeTag:
        return read_timecode(path, timeout=cfg.sources.ffprobe_timeout_seconds, ffprobe=ffprobe)

    return _read


def build_descriptor(
    path: Path,
    source: FrameSource,
    tag: TimecodeTag,
    *,
    default_frequency: float = DEFAULT_TIMECODE_FREQUENCY,
) -> SourceDescriptor:
    """
    Combine the facts reported by an opened *source* with its embedded timecode *tag*.

    A malformed timecode is logged and treated as absent; the source itself stays usable.

    Raises:
        SourceOpenError: If the source reports unusable geometry or frame rate.
    """

    origin = None
    if tag.timecode:
        try:
            origin = parse_timecode(tag.timecode)
        except TimecodeParseError as exc:
            logger.warning("Ignoring timecode in %s: %s", path.name, exc)
    frequency = parse_frequency(tag.frequency, default=default_frequency)
    try:
        return SourceDescriptor(
            path=path,
            width=int(source.width),
            height=int(source.height),
            native_frame_rate=float(source.frame_rate),
            frame_count=max(0, int(source.frame_count)),
            bit_rate=max(0, int(source.bit_rate)),
            timecode_origin=origin,
            timecode_frequency=frequency,
        )
    except ValueError as exc:
        raise SourceOpenError(path, str(exc)) from exc


__all__ = [
    "FFmpegFrameSource",
    "FrameSource",
    "ProbeError",
    "SourceOpener",
    "TimecodeReader",
    "TimecodeTag",
    "VideoProbe",
    "build_descriptor",
    "ffprobe_for",
    "make_opener",
    "make_timecode_reader",
    "open_source",
    "probe_video",
    "read_timecode",
]
