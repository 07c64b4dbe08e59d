"""Merge job orchestration and batch processing."""

from .batch import discover_recordings, run_batch, run_recording
from .job import SynchronizationOrchestrator, default_job_dependencies, min_known_bit_rate, run_merge_job
from .state import (
    BatchResult,
    JobDependencies,
    JobResult,
    OutcomeStatus,
    RecordingJob,
    RecordingOutcome,
)

__all__ = [
    "BatchResult",
    "JobDependencies",
    "JobResult",
    "OutcomeStatus",
    "RecordingJob",
    "RecordingOutcome",
    "SynchronizationOrchestrator",
    "default_job_dependencies",
    "discover_recordings",
    "min_known_bit_rate",
    "run_batch",
    "run_merge_job",
    "run_recording",
]
