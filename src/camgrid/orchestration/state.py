from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from src.camgrid.models import GridPlan, SourceDescriptor
from src.camgrid.sink import SinkFactory
from src.camgrid.sources import SourceOpener, TimecodeReader

ProgressCallback = Callable[[int, int], None]


@dataclass
class JobDependencies:
    """Injected collaborators of one merge job."""

    opener: SourceOpener
    timecode_reader: TimecodeReader
    sink_factory: SinkFactory
    on_tick: Optional[ProgressCallback] = None
    today: Optional[_dt.date] = None


@dataclass
class JobResult:
    output_path: Path
    descriptors: Tuple[SourceDescriptor, ...]
    dropped: Tuple[Path, ...]
    plan: GridPlan
    canvas_size: Tuple[int, int]
    output_rate: float
    bit_rate: int
    ticks_written: int
    first_overlay: Optional[str] = None


@dataclass(frozen=True)
class RecordingJob:
    """One capture: its marker file, the grid file to write and its camera inputs."""

    marker: Path
    output_path: Path
    inputs: Tuple[Path, ...]


class OutcomeStatus(str, Enum):
    WRITTEN = "written"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class RecordingOutcome:
    recording: RecordingJob
    status: OutcomeStatus
    reason: str = ""
    result: Optional[JobResult] = None


@dataclass
class BatchResult:
    root: Path
    outcomes: List[RecordingOutcome] = field(default_factory=list)

    def _count(self, status: OutcomeStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is status)

    @property
    def written(self) -> int:
        return self._count(OutcomeStatus.WRITTEN)

    @property
    def skipped(self) -> int:
        return self._count(OutcomeStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(OutcomeStatus.FAILED)

    @property
    def ok(self) -> bool:
        return self.failed == 0


__all__ = [
    "BatchResult",
    "JobDependencies",
    "JobResult",
    "OutcomeStatus",
    "ProgressCallback",
    "RecordingJob",
    "RecordingOutcome",
]
