"""Single-recording merge: open sources, tick the resamplers, compose and encode."""
from __future__ import annotations

import logging
from contextlib import ExitStack
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from src.datatypes import AppConfig
from src.camgrid.errors import EmptySourceSetError, SinkError, SourceOpenError
from src.camgrid.layout import plan_grid
from src.camgrid.models import SourceDescriptor
from src.camgrid.render import FrameCompositor
from src.camgrid.resample import FrameRateResampler, output_rate_for, tick_all
from src.camgrid.sink import FrameSink, SinkSpec, ffmpeg_sink_factory
from src.camgrid.sources import FrameSource, build_descriptor, make_opener, make_timecode_reader
from src.camgrid.timecode import TimecodeClock

from .state import JobDependencies, JobResult, ProgressCallback

logger = logging.getLogger(__name__)


def default_job_dependencies(
    cfg: AppConfig, *, on_tick: Optional[ProgressCallback] = None
) -> JobDependencies:
    """Build the production collaborators described by *cfg*."""

    return JobDependencies(
        opener=make_opener(cfg),
        timecode_reader=make_timecode_reader(cfg),
        sink_factory=ffmpeg_sink_factory(ffmpeg=cfg.output.ffmpeg_path, loglevel=cfg.output.loglevel),
        on_tick=on_tick,
    )


def min_known_bit_rate(descriptors: Sequence[SourceDescriptor]) -> int:
    """Return the smallest positive bit rate among *descriptors*, or 0 when none is known."""

    known = [descriptor.bit_rate for descriptor in descriptors if descriptor.bit_rate > 0]
    return min(known) if known else 0


class SynchronizationOrchestrator:
    """
    Merge the camera files of one recording into a single grid video.

    Sources that fail to open are dropped and reported in :class:`JobResult`. Every
    output tick resamples each source, composes the canvas with the current clock
    string, advances the clock and writes the canvas. Sources are released through an
    :class:`~contextlib.ExitStack` whether the run drains normally or aborts.
    """

    def __init__(
        self,
        inputs: Sequence[Path],
        output_path: Path,
        cfg: AppConfig,
        dependencies: JobDependencies,
    ) -> None:
        self.inputs = [Path(path) for path in inputs]
        self.output_path = Path(output_path)
        self.cfg = cfg
        self.dependencies = dependencies

    def _open_sources(
        self, stack: ExitStack
    ) -> Tuple[List[FrameSource], List[SourceDescriptor], List[Path]]:
        sources: List[FrameSource] = []
        descriptors: List[SourceDescriptor] = []
        dropped: List[Path] = []
        for path in self.inputs:
            try:
                source = self.dependencies.opener(path)
            except SourceOpenError as exc:
                logger.warning("Skipping %s: %s", path.name, exc)
                dropped.append(path)
                continue
            stack.callback(source.close)
            tag = self.dependencies.timecode_reader(path)
            try:
                descriptor = build_descriptor(
                    path, source, tag, default_frequency=self.cfg.timecode.default_frequency
                )
            except SourceOpenError as exc:
                logger.warning("Skipping %s: %s", path.name, exc)
                dropped.append(path)
                continue
            sources.append(source)
            descriptors.append(descriptor)
        return sources, descriptors, dropped

    def _tick(
        self,
        sink: FrameSink,
        resamplers: Sequence[FrameRateResampler],
        compositor: FrameCompositor,
        clock: TimecodeClock,
        max_length: int,
    ) -> Tuple[int, Optional[str]]:
        first_overlay: Optional[str] = None
        on_tick = self.dependencies.on_tick
        for tick in range(1, max_length + 1):
            frames = tick_all(resamplers)
            text = clock.render()
            if first_overlay is None:
                first_overlay = text
            canvas = compositor.compose(frames, text)
            clock.advance()
            sink.write_frame(canvas)
            logger.debug(
                "Tick %d/%d: %s (%d/%d sources present)",
                tick,
                max_length,
                text,
                sum(frame is not None for frame in frames),
                len(frames),
            )
            if on_tick is not None:
                on_tick(tick, max_length)
        return max_length, first_overlay

    def run(self) -> JobResult:
        """
        Run the merge to completion.

        Raises:
            EmptySourceSetError: If no input could be opened.
            SinkError: If the encoder cannot be started, written to or finalised. The
                partial output is removed.
        """

        cfg = self.cfg
        with ExitStack() as stack:
            sources, descriptors, dropped = self._open_sources(stack)
            if not sources:
                raise EmptySourceSetError(
                    f"No usable source for {self.output_path.name}", dropped=tuple(dropped)
                )
            plan = plan_grid(len(descriptors))
            output_rate = output_rate_for(sources)
            bit_rate = min_known_bit_rate(descriptors)
            max_length = max(descriptor.frame_count for descriptor in descriptors)
            clock = TimecodeClock.seeded(
                descriptors,
                output_rate=output_rate,
                today=self.dependencies.today,
                max_synthesized_frequency=cfg.timecode.max_synthesized_frequency,
            )
            compositor = FrameCompositor(
                descriptors,
                plan,
                cfg.overlay,
                clear_between_ticks=cfg.compositor.clear_between_ticks,
            )
            resamplers = [
                FrameRateResampler(source, output_rate, label=descriptor.label)
                for source, descriptor in zip(sources, descriptors)
            ]
            width, height = compositor.size
            logger.info(
                "Writing file: %s %dx%d (%s grid) Frequency %s Bitrate %s",
                self.output_path,
                width,
                height,
                plan,
                output_rate,
                bit_rate or "default",
            )
            if max_length == 0:
                logger.warning("No source of %s reports a frame count; nothing to write", self.output_path.name)

            sink = self.dependencies.sink_factory(self.output_path)
            sink.open(
                SinkSpec(
                    width=width,
                    height=height,
                    frame_rate=output_rate,
                    bit_rate=bit_rate,
                    codec=cfg.output.codec,
                    pixel_format=cfg.output.pixel_format,
                )
            )
            try:
                ticks_written, first_overlay = self._tick(sink, resamplers, compositor, clock, max_length)
            except Exception as exc:
                logger.error("Aborting %s: %s", self.output_path.name, exc)
                sink.abort()
                raise
            for resampler in resamplers:
                resampler.release()

        try:
            sink.close()
        except SinkError:
            sink.abort()
            raise

        return JobResult(
            output_path=self.output_path,
            descriptors=tuple(descriptors),
            dropped=tuple(dropped),
            plan=plan,
            canvas_size=(width, height),
            output_rate=output_rate,
            bit_rate=bit_rate,
            ticks_written=ticks_written,
            first_overlay=first_overlay,
        )


def run_merge_job(
    inputs: Sequence[Path],
    output_path: Path,
    cfg: AppConfig,
    dependencies: Optional[JobDependencies] = None,
) -> JobResult:
    """Merge *inputs*, in order, into *output_path*."""

    deps = dependencies or default_job_dependencies(cfg)
    return SynchronizationOrchestrator(inputs, output_path, cfg, deps).run()


__all__ = [
    "SynchronizationOrchestrator",
    "default_job_dependencies",
    "min_known_bit_rate",
    "run_merge_job",
]
