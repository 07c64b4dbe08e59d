"""Recording discovery and the sequential batch runner."""
from __future__ import annotations

import glob
import logging
from pathlib import Path
from typing import Callable, List, Optional

from src.datatypes import AppConfig, DiscoveryConfig
from src.camgrid.errors import CamgridError

from .job import default_job_dependencies, run_merge_job
from .state import BatchResult, JobDependencies, OutcomeStatus, RecordingJob, RecordingOutcome

logger = logging.getLogger(__name__)


def _camera_pattern(camera_glob: str, stem: str) -> str:
    return camera_glob.replace("{stem}", glob.escape(stem))


def discover_recordings(root: Path, cfg: DiscoveryConfig) -> List[RecordingJob]:
    """
    Find every recording under *root*.

    A recording is identified by a marker file (``*.qtm`` by default). Its camera files
    sit next to it and match ``camera_glob`` with ``{stem}`` replaced by the marker's
    stem; they are returned sorted by name, which fixes their grid order.
    """

    root = Path(root)
    if not root.is_dir():
        raise FileNotFoundError(f"Recording root does not exist: {root}")
    finder = root.rglob if cfg.recursive else root.glob
    markers = sorted(path for path in finder(cfg.marker_glob) if path.is_file())
    recordings: List[RecordingJob] = []
    for marker in markers:
        output_path = marker.with_name(f"{marker.stem}{cfg.output_suffix}")
        inputs = tuple(
            sorted(
                path
                for path in marker.parent.glob(_camera_pattern(cfg.camera_glob, marker.stem))
                if path.is_file() and path != output_path
            )
        )
        recordings.append(RecordingJob(marker=marker, output_path=output_path, inputs=inputs))
    logger.debug("Discovered %d recording(s) under %s", len(recordings), root)
    return recordings


def run_recording(
    recording: RecordingJob,
    cfg: AppConfig,
    dependencies: JobDependencies,
    *,
    skip_existing: bool = True,
) -> RecordingOutcome:
    """Merge one recording, applying the skip rules and containing job failures."""

    if skip_existing and recording.output_path.exists():
        logger.info("%s already exists", recording.output_path)
        return RecordingOutcome(recording, OutcomeStatus.SKIPPED, "output already exists")
    if not recording.inputs:
        logger.info("No camera files found for %s", recording.marker.name)
        return RecordingOutcome(recording, OutcomeStatus.SKIPPED, "no camera files")

    logger.info("Merging %d file(s) into %s", len(recording.inputs), recording.output_path)
    try:
        result = run_merge_job(recording.inputs, recording.output_path, cfg, dependencies)
    except CamgridError as exc:
        logger.error("Failed to merge %s: %s", recording.marker.name, exc)
        return RecordingOutcome(recording, OutcomeStatus.FAILED, str(exc))
    except Exception as exc:
        logger.exception("Unexpected error while merging %s", recording.marker.name)
        return RecordingOutcome(recording, OutcomeStatus.FAILED, f"{type(exc).__name__}: {exc}")
    return RecordingOutcome(recording, OutcomeStatus.WRITTEN, result=result)


def run_batch(
    root: Path,
    cfg: AppConfig,
    *,
    dependencies: Optional[JobDependencies] = None,
    on_start: Optional[Callable[[RecordingJob], None]] = None,
    on_outcome: Optional[Callable[[RecordingOutcome], None]] = None,
) -> BatchResult:
    """Merge every recording under *root* in discovery order, one after another."""

    deps = dependencies or default_job_dependencies(cfg)
    batch = BatchResult(root=Path(root))
    for recording in discover_recordings(root, cfg.discovery):
        if on_start is not None:
            on_start(recording)
        outcome = run_recording(recording, cfg, deps)
        batch.outcomes.append(outcome)
        if on_outcome is not None:
            on_outcome(outcome)
    logger.info(
        "Batch finished: %d written, %d skipped, %d failed",
        batch.written,
        batch.skipped,
        batch.failed,
    )
    return batch


__all__ = ["discover_recordings", "run_batch", "run_recording"]
