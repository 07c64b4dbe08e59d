"""ffprobe-backed stream metadata and embedded timecode tags."""

from __future__ import annotations

import json
import logging
import math
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional, cast

from src.camgrid import subproc as _subproc

logger = logging.getLogger(__name__)

_TIMECODE_KEYS = ("timecode",)
_FREQUENCY_KEYS = ("timecodefrequency", "timecode_frequency", "timecode frequency")


class ProbeError(RuntimeError):
    """Raised when ffprobe cannot describe a file."""


@dataclass(frozen=True)
class TimecodeTag:
    """Raw embedded timecode tags; either field is ``None`` when absent."""

    timecode: Optional[str] = None
    frequency: Optional[str] = None


@dataclass(frozen=True)
class VideoProbe:
    """Facts about the first video stream of a file."""

    width: int
    height: int
    frame_rate: float
    frame_count: int
    bit_rate: int
    tags: Mapping[str, str] = field(default_factory=dict)

    @property
    def timecode_tag(self) -> TimecodeTag:
        return extract_timecode_tag(self.tags)


def _to_int(value: object, default: int = 0) -> int:
    """Safely convert a JSON-derived value to an integer."""

    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else default
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            try:
                numeric = float(value)
            except ValueError:
                return default
            return int(numeric) if math.isfinite(numeric) else default
    return default


def _as_str_dict(value: object) -> dict[str, object]:
    if isinstance(value, dict) and all(isinstance(key, str) for key in value):
        return cast(dict[str, object], value)
    return {}


def parse_rate(text: object) -> Optional[float]:
    """Parse an ffprobe rate such as ``30000/1001`` or ``25``; ``None`` when unusable."""

    if text is None:
        return None
    raw = str(text).strip()
    if not raw:
        return None
    try:
        if "/" in raw:
            num_str, den_str = raw.split("/", 1)
            num = float(num_str)
            den = float(den_str)
            if den == 0:
                return None
            value = num / den
        else:
            value = float(raw)
    except ValueError:
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return value


def extract_timecode_tag(tags: Mapping[str, object]) -> TimecodeTag:
    """Pick timecode and frequency entries out of a tag mapping, case-insensitively."""

    lowered = {str(key).strip().lower(): value for key, value in tags.items()}
    timecode = next((str(lowered[key]) for key in _TIMECODE_KEYS if lowered.get(key)), None)
    frequency = next((str(lowered[key]) for key in _FREQUENCY_KEYS if lowered.get(key)), None)
    return TimecodeTag(timecode=timecode, frequency=frequency)


def parse_probe_payload(payload: Mapping[str, object], path: Path) -> VideoProbe:
    """Build a :class:`VideoProbe` from ffprobe's JSON output."""

    streams = payload.get("streams")
    if not isinstance(streams, list) or not streams:
        raise ProbeError(f"No video stream found in {path.name}")
    stream = _as_str_dict(streams[0])
    fmt = _as_str_dict(payload.get("format"))

    width = _to_int(stream.get("width"))
    height = _to_int(stream.get("height"))
    if width <= 0 or height <= 0:
        raise ProbeError(f"Invalid video dimensions for {path.name}: {width}x{height}")
    frame_rate = parse_rate(stream.get("avg_frame_rate")) or parse_rate(stream.get("r_frame_rate"))
    if frame_rate is None:
        raise ProbeError(f"Unable to determine frame rate for {path.name}")

    frame_count = _to_int(stream.get("nb_frames"))
    if frame_count <= 0:
        duration = parse_rate(stream.get("duration")) or parse_rate(fmt.get("duration"))
        frame_count = int(round(duration * frame_rate)) if duration else 0

    bit_rate = _to_int(stream.get("bit_rate")) or _to_int(fmt.get("bit_rate"))

    tags: Dict[str, str] = {}
    for source in (_as_str_dict(fmt.get("tags")), _as_str_dict(stream.get("tags"))):
        for key, value in source.items():
            tags.setdefault(key, str(value))

    return VideoProbe(
        width=width,
        height=height,
        frame_rate=frame_rate,
        frame_count=max(0, frame_count),
        bit_rate=max(0, bit_rate),
        tags=tags,
    )


def probe_video(path: Path, *, timeout: float | None = None, ffprobe: str = "ffprobe") -> VideoProbe:
    """Run ffprobe on *path* and describe its first video stream."""

    try:
        _subproc.require_tool(ffprobe)
    except _subproc.ToolMissingError as exc:
        raise ProbeError(str(exc)) from exc
    cmd = [
        ffprobe,
        "-v",
        "error",
        "-select_streams",
        "v:0",
        "-show_entries",
        "stream=width,height,avg_frame_rate,r_frame_rate,nb_frames,bit_rate,duration"
        ":stream_tags:format=bit_rate,duration:format_tags",
        "-of",
        "json",
        str(path),
    ]
    try:
        result = _subproc.run_checked(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout,
            check=True,
        )
    except subprocess.TimeoutExpired as exc:
        raise ProbeError(f"ffprobe timed out for {path.name}") from exc
    except subprocess.CalledProcessError as exc:
        message = (exc.stderr or "").strip() or "unknown error"
        raise ProbeError(f"ffprobe failed for {path.name}: {message}") from exc
    except OSError as exc:
        raise ProbeError(f"ffprobe could not be started for {path.name}: {exc}") from exc

    try:
        payload = json.loads(result.stdout or "{}")
    except json.JSONDecodeError as exc:
        raise ProbeError(f"Unable to parse ffprobe output for {path.name}") from exc
    if not isinstance(payload, dict):
        raise ProbeError(f"Unexpected ffprobe output for {path.name}")
    return parse_probe_payload(cast(dict[str, object], payload), path)


def read_timecode(path: Path, *, timeout: float | None = None, ffprobe: str = "ffprobe") -> TimecodeTag:
    """Return the embedded timecode tags of *path*; probe failures count as absent."""

    try:
        tag = probe_video(path, timeout=timeout, ffprobe=ffprobe).timecode_tag
    except ProbeError as exc:
        logger.warning("Unable to read timecode tags from %s: %s", path.name, exc)
        return TimecodeTag()
    if tag.timecode:
        logger.info("Reading timecode (%s) tag in: %s", tag.timecode, path.name)
    else:
        logger.info("No timecode found in: %s", path.name)
    if tag.frequency:
        logger.debug("Reading timecode frequency (%s) tag in: %s", tag.frequency, path.name)
    return tag


__all__ = [
    "ProbeError",
    "TimecodeTag",
    "VideoProbe",
    "extract_timecode_tag",
    "parse_probe_payload",
    "parse_rate",
    "probe_video",
    "read_timecode",
]
