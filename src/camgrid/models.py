"""Immutable records describing the inputs and geometry of one merge job."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_TIMECODE_FREQUENCY = 30.0


@dataclass(frozen=True)
class TimecodeOrigin:
    """Start of an embedded ``HH:MM:SS:FF`` timecode."""

    hour: int = 0
    minute: int = 0
    second: int = 0
    subframe: int = 0


@dataclass(frozen=True)
class SourceDescriptor:
    """Static facts about one opened input stream."""

    path: Path
    width: int
    height: int
    native_frame_rate: float
    frame_count: int
    bit_rate: int = 0
    timecode_origin: Optional[TimecodeOrigin] = None
    timecode_frequency: float = DEFAULT_TIMECODE_FREQUENCY

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"{self.path.name}: resolution must be positive, got {self.width}x{self.height}")
        if not self.native_frame_rate > 0:
            raise ValueError(f"{self.path.name}: frame rate must be positive, got {self.native_frame_rate}")
        if self.frame_count < 0:
            raise ValueError(f"{self.path.name}: frame count must be >= 0, got {self.frame_count}")
        if not self.timecode_frequency > 0:
            raise ValueError(
                f"{self.path.name}: timecode frequency must be positive, got {self.timecode_frequency}"
            )

    @property
    def has_timecode(self) -> bool:
        return self.timecode_origin is not None

    @property
    def label(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class GridPlan:
    """Column and row counts of the output grid."""

    columns: int
    rows: int

    @property
    def cells(self) -> int:
        return self.columns * self.rows

    def __str__(self) -> str:
        return f"{self.columns}x{self.rows}"


__all__ = [
    "DEFAULT_TIMECODE_FREQUENCY",
    "GridPlan",
    "SourceDescriptor",
    "TimecodeOrigin",
]
