"""Click CLI wiring and entry points for camgrid."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, Tuple

import click
from rich import print
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeRemainingColumn

from src.config_loader import ConfigError, load_config_or_default
from src.datatypes import AppConfig, OverlayPosition, SourceBackend
from src.camgrid.errors import CamgridError, SourceOpenError
from src.camgrid.layout import plan_grid
from src.camgrid.orchestration import (
    BatchResult,
    JobResult,
    OutcomeStatus,
    RecordingJob,
    RecordingOutcome,
    default_job_dependencies,
    run_batch,
)
from src.camgrid.orchestration.batch import run_recording
from src.camgrid.sources import build_descriptor, make_opener, make_timecode_reader

_LOG_FORMAT = "%(message)s"


class CLIAppError(RuntimeError):
    """Raised when the CLI cannot complete its work."""

    def __init__(self, message: str, *, code: int = 1, rich_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.code = code
        self.rich_message = rich_message or message


def configure_logging(*, quiet: bool, verbose: bool) -> int:
    """Route log records through rich; return the chosen level."""

    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format=_LOG_FORMAT,
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False, markup=False)],
        force=True,
    )
    return level


def load_cli_config(
    config_path: Optional[str],
    *,
    clear_canvas: bool = False,
    overlay_position: Optional[str] = None,
    backend: Optional[str] = None,
    no_progress: bool = False,
) -> AppConfig:
    """Load the config file (or defaults) and apply command-line overrides."""

    try:
        cfg = load_config_or_default(config_path)
    except FileNotFoundError as exc:
        raise CLIAppError(
            f"Config file not found: {config_path}",
            code=2,
            rich_message=f"[red]Config file not found:[/red] {escape(str(config_path))}",
        ) from exc
    except ConfigError as exc:
        raise CLIAppError(
            f"Config error: {exc}",
            code=2,
            rich_message=f"[red]Config error:[/red] {escape(str(exc))}",
        ) from exc

    if clear_canvas:
        cfg.compositor.clear_between_ticks = True
    if overlay_position:
        cfg.overlay.position = OverlayPosition(overlay_position)
    if backend:
        cfg.sources.backend = SourceBackend(backend)
    if no_progress:
        cfg.cli.progress = False
    return cfg


class _TickProgress:
    """Per-tick progress bar shared by the recordings of one invocation."""

    def __init__(self, progress: Optional[Progress]) -> None:
        self._progress = progress
        self._task: Any = None

    def start(self, label: str) -> None:
        if self._progress is None:
            return
        if self._task is not None:
            self._progress.remove_task(self._task)
        self._task = self._progress.add_task(label, total=None)

    def update(self, tick: int, total: int) -> None:
        if self._progress is None or self._task is None:
            return
        self._progress.update(self._task, completed=tick, total=total)


@contextmanager
def _tick_progress(enabled: bool) -> Iterator[_TickProgress]:
    if not enabled:
        yield _TickProgress(None)
        return
    progress = Progress(
        TextColumn("[bold cyan]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeRemainingColumn(),
        transient=True,
    )
    with progress:
        yield _TickProgress(progress)


def _describe_job(result: JobResult) -> str:
    width, height = result.canvas_size
    parts = [
        f"[green]Wrote[/green] {escape(str(result.output_path))}",
        f"{result.plan} grid",
        f"{width}x{height}",
        f"{result.output_rate:g} fps",
        f"{result.ticks_written} frames",
    ]
    if result.dropped:
        names = ", ".join(path.name for path in result.dropped)
        parts.append(f"[yellow]dropped: {escape(names)}[/yellow]")
    return " | ".join(parts)


def _print_outcome(outcome: RecordingOutcome) -> None:
    name = escape(outcome.recording.marker.name)
    if outcome.status is OutcomeStatus.WRITTEN and outcome.result is not None:
        print(_describe_job(outcome.result))
    elif outcome.status is OutcomeStatus.SKIPPED:
        print(f"[dim]Skipped {name}: {escape(outcome.reason)}[/dim]")
    else:
        print(f"[red]Failed {name}:[/red] {escape(outcome.reason)}")


def _print_summary(batch: BatchResult) -> None:
    colour = "green" if batch.ok else "red"
    print(
        f"[{colour}]{batch.written} written[/{colour}], {batch.skipped} skipped, "
        f"{batch.failed} failed under {escape(str(batch.root))}"
    )


def run_batch_command(root: Path, cfg: AppConfig, *, quiet: bool = False) -> BatchResult:
    """Run every recording under *root* with console reporting."""

    if not root.is_dir():
        raise CLIAppError(
            f"Recording root does not exist: {root}",
            code=2,
            rich_message=f"[red]Recording root does not exist:[/red] {escape(str(root))}",
        )
    with _tick_progress(cfg.cli.progress and not quiet) as ticks:
        deps = default_job_dependencies(cfg, on_tick=ticks.update)

        def _on_start(recording: RecordingJob) -> None:
            ticks.start(recording.output_path.name)

        on_outcome: Optional[Callable[[RecordingOutcome], None]] = None if quiet else _print_outcome
        batch = run_batch(root, cfg, dependencies=deps, on_start=_on_start, on_outcome=on_outcome)
    if not quiet:
        _print_summary(batch)
    return batch


def merge_command(
    output: Path,
    inputs: Tuple[Path, ...],
    cfg: AppConfig,
    *,
    skip_existing: bool = False,
    quiet: bool = False,
) -> RecordingOutcome:
    """Merge an explicit, ordered list of inputs into *output*."""

    recording = RecordingJob(marker=output, output_path=output, inputs=tuple(inputs))
    with _tick_progress(cfg.cli.progress and not quiet) as ticks:
        ticks.start(output.name)
        deps = default_job_dependencies(cfg, on_tick=ticks.update)
        outcome = run_recording(recording, cfg, deps, skip_existing=skip_existing)
    if not quiet:
        _print_outcome(outcome)
    return outcome


def _common_options(func: Callable[..., Any]) -> Callable[..., Any]:
    options = [
        click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False), help="TOML config file."),
        click.option("--clear-canvas", is_flag=True, help="Zero the canvas before composing each output frame."),
        click.option(
            "--overlay-position",
            type=click.Choice([position.value for position in OverlayPosition]),
            default=None,
            help="Override [overlay].position.",
        ),
        click.option(
            "--backend",
            type=click.Choice([backend.value for backend in SourceBackend]),
            default=None,
            help="Override [sources].backend.",
        ),
        click.option("--quiet", is_flag=True, help="Only report errors."),
        click.option("--verbose", is_flag=True, help="Show informational log output."),
        click.option("--no-progress", is_flag=True, help="Disable the per-frame progress bar."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
def main() -> None:
    """Merge synchronized multi-camera recordings into grid videos."""


@main.command("run")
@click.argument("root", required=False, default=".", type=click.Path(file_okay=False, path_type=Path))
@_common_options
def run_cmd(
    root: Path,
    config_path: Optional[str],
    clear_canvas: bool,
    overlay_position: Optional[str],
    backend: Optional[str],
    quiet: bool,
    verbose: bool,
    no_progress: bool,
) -> None:
    """Merge every recording found under ROOT."""

    configure_logging(quiet=quiet, verbose=verbose)
    try:
        cfg = load_cli_config(
            config_path,
            clear_canvas=clear_canvas,
            overlay_position=overlay_position,
            backend=backend,
            no_progress=no_progress,
        )
        batch = run_batch_command(root, cfg, quiet=quiet)
    except CLIAppError as exc:
        print(exc.rich_message)
        raise click.exceptions.Exit(exc.code) from exc
    if not batch.ok:
        raise click.exceptions.Exit(1)


@main.command("merge")
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
@click.argument("inputs", nargs=-1, required=True, type=click.Path(dir_okay=False, path_type=Path))
@click.option("--skip-existing", is_flag=True, help="Do nothing when OUTPUT already exists.")
@_common_options
def merge_cmd(
    output: Path,
    inputs: Tuple[Path, ...],
    skip_existing: bool,
    config_path: Optional[str],
    clear_canvas: bool,
    overlay_position: Optional[str],
    backend: Optional[str],
    quiet: bool,
    verbose: bool,
    no_progress: bool,
) -> None:
    """Merge INPUT files, in the given order, into OUTPUT."""

    configure_logging(quiet=quiet, verbose=verbose)
    try:
        cfg = load_cli_config(
            config_path,
            clear_canvas=clear_canvas,
            overlay_position=overlay_position,
            backend=backend,
            no_progress=no_progress,
        )
    except CLIAppError as exc:
        print(exc.rich_message)
        raise click.exceptions.Exit(exc.code) from exc
    outcome = merge_command(output, inputs, cfg, skip_existing=skip_existing, quiet=quiet)
    if outcome.status is OutcomeStatus.FAILED:
        raise click.exceptions.Exit(1)


@main.command("grid")
@click.argument("count", type=click.IntRange(min=1))
def grid_cmd(count: int) -> None:
    """Print the columns x rows layout used for COUNT sources."""

    plan = plan_grid(count)
    click.echo(f"{plan.columns}x{plan.rows}")


@main.command("probe")
@click.argument("inputs", nargs=-1, required=True, type=click.Path(dir_okay=False, path_type=Path))
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False), help="TOML config file.")
@click.option(
    "--backend",
    type=click.Choice([backend.value for backend in SourceBackend]),
    default=None,
    help="Override [sources].backend.",
)
@click.option("--verbose", is_flag=True, help="Show informational log output.")
def probe_cmd(inputs: Tuple[Path, ...], config_path: Optional[str], backend: Optional[str], verbose: bool) -> None:
    """Print resolution, rate, length, bit rate and timecode of each INPUT."""

    configure_logging(quiet=False, verbose=verbose)
    try:
        cfg = load_cli_config(config_path, backend=backend)
    except CLIAppError as exc:
        print(exc.rich_message)
        raise click.exceptions.Exit(exc.code) from exc
    opener = make_opener(cfg)
    reader = make_timecode_reader(cfg)
    failures = 0
    for path in inputs:
        try:
            source = opener(path)
        except SourceOpenError as exc:
            failures += 1
            print(f"[red]{escape(path.name)}:[/red] {escape(str(exc))}")
            continue
        try:
            descriptor = build_descriptor(
                path, source, reader(path), default_frequency=cfg.timecode.default_frequency
            )
        except CamgridError as exc:
            failures += 1
            print(f"[red]{escape(path.name)}:[/red] {escape(str(exc))}")
            continue
        finally:
            source.close()
        origin = descriptor.timecode_origin
        timecode = (
            f"{origin.hour:02d}:{origin.minute:02d}:{origin.second:02d}:{origin.subframe:02d}"
            f" @ {descriptor.timecode_frequency:g}"
            if origin is not None
            else "none"
        )
        print(
            f"[bold]{escape(descriptor.label)}[/bold] {descriptor.width}x{descriptor.height} "
            f"{descriptor.native_frame_rate:g} fps, {descriptor.frame_count} frames, "
            f"bit rate {descriptor.bit_rate or 'unknown'}, timecode {timecode}"
        )
    if failures:
        raise click.exceptions.Exit(1)


__all__ = [
    "CLIAppError",
    "configure_logging",
    "load_cli_config",
    "main",
    "merge_command",
    "run_batch_command",
]
