"""Exception taxonomy for grid merge jobs."""
from __future__ import annotations

from pathlib import Path


class CamgridError(RuntimeError):
    """Base class for merge engine failures."""


class SourceOpenError(CamgridError):
    """Raised when an input file cannot be opened for decoding."""

    def __init__(self, path: str | Path, message: str) -> None:
        super().__init__(message)
        self.path = Path(path)


class EmptySourceSetError(CamgridError):
    """Raised when no usable source remains for a recording."""

    def __init__(self, message: str, *, dropped: tuple[Path, ...] = ()) -> None:
        super().__init__(message)
        self.dropped = dropped


class TimecodeParseError(CamgridError, ValueError):
    """Raised when an embedded timecode string cannot be parsed."""


class FramePullError(CamgridError):
    """Raised when a source fails to decode its next frame."""


class SinkError(CamgridError):
    """Raised when the output frame sink cannot be opened or finalised."""


class SinkWriteError(SinkError):
    """Raised when writing a composed canvas to the sink fails."""

    def __init__(self, message: str, *, tick: int | None = None) -> None:
        super().__init__(message)
        self.tick = tick


__all__ = [
    "CamgridError",
    "EmptySourceSetError",
    "FramePullError",
    "SinkError",
    "SinkWriteError",
    "SourceOpenError",
    "TimecodeParseError",
]
