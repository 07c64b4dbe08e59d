"""Public shim exposing the camgrid CLI and library surface."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional, Sequence, cast

import src.camgrid.cli_entry as _cli_entry
from src.config_loader import load_config_or_default
from src.camgrid.orchestration import (
    BatchResult,
    JobDependencies,
    JobResult,
    run_batch,
    run_merge_job,
)

CLIAppError = _cli_entry.CLIAppError

__all__ = (
    "run_cli",
    "merge_files",
    "main",
    "BatchResult",
    "CLIAppError",
    "JobDependencies",
    "JobResult",
)


def run_cli(
    root: str | Path,
    config_path: str | None = None,
    *,
    dependencies: Optional[JobDependencies] = None,
) -> BatchResult:
    """Merge every recording under *root* without console output."""
    cfg = load_config_or_default(config_path)
    return run_batch(Path(root), cfg, dependencies=dependencies)


def merge_files(
    output: str | Path,
    inputs: Sequence[str | Path],
    config_path: str | None = None,
    *,
    dependencies: Optional[JobDependencies] = None,
) -> JobResult:
    """Merge *inputs*, in order, into *output*."""
    cfg = load_config_or_default(config_path)
    return run_merge_job([Path(path) for path in inputs], Path(output), cfg, dependencies)


main = _cli_entry.main


if __name__ == "__main__":
    _entry_point = cast(Callable[[], None], main)
    _entry_point()
