from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import pytest

from src.datatypes import AppConfig
from src.camgrid.errors import EmptySourceSetError, SinkWriteError, SourceOpenError
from src.camgrid.models import GridPlan
from src.camgrid.orchestration import min_known_bit_rate, run_merge_job
from src.camgrid.sources import TimecodeTag
from tests.helpers.fakes import FakeSource, FakeWorld

_JOB_LOGGER = "src.camgrid.orchestration.job"


def _paths(tmp_path: Path, count: int) -> List[Path]:
    return [tmp_path / f"take_Miqus_{index}.avi" for index in range(count)]


def _overlay_texts(caplog: pytest.LogCaptureFixture) -> List[str]:
    return [
        str(record.args[2])
        for record in caplog.records
        if record.name == _JOB_LOGGER and record.msg.startswith("Tick ")
    ]


def _first_tick_with(texts: List[str], prefix: str) -> int:
    return next(index for index, text in enumerate(texts, start=1) if text.startswith(prefix))


def test_two_equal_sources_without_timecode(
    tmp_path: Path, world: FakeWorld, cfg: AppConfig, caplog: pytest.LogCaptureFixture
) -> None:
    inputs = _paths(tmp_path, 2)
    for index, path in enumerate(inputs):
        world.sources[path] = FakeSource(width=16, height=12, frame_rate=30.0, frame_count=100, fill=index * 100)

    with caplog.at_level(logging.DEBUG, logger=_JOB_LOGGER):
        result = run_merge_job(inputs, tmp_path / "take.avi", cfg, world.dependencies())

    sink = world.sinks[0]
    assert result.ticks_written == 100
    assert sink.written == 100
    assert result.plan == GridPlan(2, 1)
    assert result.canvas_size == (32, 12)
    assert result.output_rate == 30.0
    assert result.first_overlay == "00:00:00"
    assert sink.spec is not None
    assert (sink.spec.width, sink.spec.height, sink.spec.frame_rate) == (32, 12, 30.0)
    assert sink.closed and not sink.aborted

    texts = _overlay_texts(caplog)
    assert len(texts) == 100
    assert texts[29] == "00:00:00"
    assert texts[30] == "00:00:01"
    assert _first_tick_with(texts, "00:00:03") == 91

    last = sink.frames[-1]
    assert last[0, 0, 0] == 99
    assert last[0, 16, 0] == (100 + 99) % 256


def test_mixed_rates_with_reference_timecode(
    tmp_path: Path, world: FakeWorld, cfg: AppConfig, caplog: pytest.LogCaptureFixture
) -> None:
    inputs = _paths(tmp_path, 3)
    slow = FakeSource(width=16, height=12, frame_rate=25.0, frame_count=90, fill=1)
    world.sources[inputs[0]] = slow
    world.sources[inputs[1]] = FakeSource(width=16, height=12, frame_rate=30.0, frame_count=100, fill=2)
    world.sources[inputs[2]] = FakeSource(width=16, height=12, frame_rate=30.0, frame_count=100, fill=3)
    world.tags[inputs[0]] = TimecodeTag(timecode="01:02:03:05", frequency="25")

    with caplog.at_level(logging.DEBUG, logger=_JOB_LOGGER):
        result = run_merge_job(inputs, tmp_path / "take.avi", cfg, world.dependencies())

    assert result.ticks_written == 100
    assert result.plan == GridPlan(3, 1)
    assert result.canvas_size == (48, 12)
    assert result.output_rate == 30.0
    assert result.first_overlay == "01:02:03.05"

    texts = _overlay_texts(caplog)
    assert texts[0] == "01:02:03.05"
    # subframe 5 needs 20 increments at 25/30 per tick to reach 25
    first_rollover = _first_tick_with(texts, "01:02:04")
    assert first_rollover in (25, 26)
    assert texts[first_rollover - 1] == "01:02:04.00"
    second_rollover = _first_tick_with(texts, "01:02:05")
    assert second_rollover - first_rollover in (29, 30, 31)

    # the slow source is never blank and shows the last frame it produced
    last = world.sinks[0].frames[-1]
    assert last[0, 0, 0] == (1 + slow.position - 1) % 256
    assert all(frame[0, 0, 0] != 0 for frame in world.sinks[0].frames)


def test_exhausted_source_keeps_last_frame_on_canvas(tmp_path: Path, world: FakeWorld, cfg: AppConfig) -> None:
    inputs = _paths(tmp_path, 2)
    world.sources[inputs[0]] = FakeSource(frame_rate=30.0, frame_count=60, fill=0)
    world.sources[inputs[1]] = FakeSource(frame_rate=30.0, frame_count=40, fill=100)

    result = run_merge_job(inputs, tmp_path / "take.avi", cfg, world.dependencies())

    frames = world.sinks[0].frames
    assert result.ticks_written == 60
    assert frames[39][0, 8, 0] == 139
    assert frames[-1][0, 8, 0] == 139
    assert frames[-1][0, 0, 0] == 59


def test_clear_between_ticks_blanks_exhausted_source(tmp_path: Path, world: FakeWorld, cfg: AppConfig) -> None:
    cfg.compositor.clear_between_ticks = True
    inputs = _paths(tmp_path, 2)
    world.sources[inputs[0]] = FakeSource(frame_rate=30.0, frame_count=10, fill=1)
    world.sources[inputs[1]] = FakeSource(frame_rate=30.0, frame_count=5, fill=100)

    run_merge_job(inputs, tmp_path / "take.avi", cfg, world.dependencies())

    frames = world.sinks[0].frames
    assert frames[4][0, 8, 0] == 104
    assert frames[5][0, 8, 0] == 0


def test_failed_source_is_excluded(
    tmp_path: Path, world: FakeWorld, cfg: AppConfig, caplog: pytest.LogCaptureFixture
) -> None:
    inputs = _paths(tmp_path, 3)
    world.sources[inputs[0]] = FakeSource(width=16, height=12, frame_count=5)
    world.sources[inputs[1]] = SourceOpenError(inputs[1], "corrupt header")
    world.sources[inputs[2]] = FakeSource(width=20, height=10, frame_count=5)

    with caplog.at_level(logging.WARNING, logger=_JOB_LOGGER):
        result = run_merge_job(inputs, tmp_path / "take.avi", cfg, world.dependencies())

    assert result.dropped == (inputs[1],)
    assert [descriptor.path for descriptor in result.descriptors] == [inputs[0], inputs[2]]
    assert result.plan == GridPlan(2, 1)
    assert result.canvas_size == (40, 12)
    assert any("corrupt header" in record.getMessage() for record in caplog.records)


def test_no_usable_source_aborts_before_sink(tmp_path: Path, world: FakeWorld, cfg: AppConfig) -> None:
    inputs = _paths(tmp_path, 2)

    with pytest.raises(EmptySourceSetError) as excinfo:
        run_merge_job(inputs, tmp_path / "take.avi", cfg, world.dependencies())

    assert excinfo.value.dropped == tuple(inputs)
    assert world.sinks == []


def test_sink_write_failure_aborts_and_releases_sources(tmp_path: Path, world: FakeWorld, cfg: AppConfig) -> None:
    inputs = _paths(tmp_path, 2)
    sources = [FakeSource(frame_count=50), FakeSource(frame_count=50)]
    for path, source in zip(inputs, sources):
        world.sources[path] = source
    world.sink_fail_at = 5

    with pytest.raises(SinkWriteError) as excinfo:
        run_merge_job(inputs, tmp_path / "take.avi", cfg, world.dependencies())

    sink = world.sinks[0]
    assert excinfo.value.tick == 5
    assert sink.written == 4
    assert sink.aborted and not sink.closed
    assert all(source.closed for source in sources)


def test_sources_closed_and_progress_reported(tmp_path: Path, world: FakeWorld, cfg: AppConfig) -> None:
    inputs = _paths(tmp_path, 2)
    sources = [FakeSource(frame_count=3), FakeSource(frame_count=4)]
    for path, source in zip(inputs, sources):
        world.sources[path] = source

    run_merge_job(inputs, tmp_path / "take.avi", cfg, world.dependencies())

    assert all(source.closed for source in sources)
    assert world.ticks == [(1, 4), (2, 4), (3, 4), (4, 4)]


def test_sink_spec_uses_fastest_rate_and_smallest_known_bit_rate(
    tmp_path: Path, world: FakeWorld, cfg: AppConfig
) -> None:
    inputs = _paths(tmp_path, 3)
    world.sources[inputs[0]] = FakeSource(frame_rate=25.0, frame_count=2, bit_rate=0)
    world.sources[inputs[1]] = FakeSource(frame_rate=50.0, frame_count=2, bit_rate=8_000_000)
    world.sources[inputs[2]] = FakeSource(frame_rate=30.0, frame_count=2, bit_rate=3_000_000)
    cfg.output.codec = "mpeg4"

    result = run_merge_job(inputs, tmp_path / "take.avi", cfg, world.dependencies())

    spec = world.sinks[0].spec
    assert spec is not None
    assert spec.frame_rate == 50.0
    assert spec.bit_rate == 3_000_000
    assert spec.codec == "mpeg4"
    assert result.bit_rate == 3_000_000


def test_malformed_timecode_falls_back_to_next_source(tmp_path: Path, world: FakeWorld, cfg: AppConfig) -> None:
    inputs = _paths(tmp_path, 2)
    for path in inputs:
        world.sources[path] = FakeSource(frame_count=2)
    world.tags[inputs[0]] = TimecodeTag(timecode="not a timecode")
    world.tags[inputs[1]] = TimecodeTag(timecode="10:20:30:04", frequency="30")

    result = run_merge_job(inputs, tmp_path / "take.avi", cfg, world.dependencies())

    assert result.descriptors[0].timecode_origin is None
    assert result.first_overlay == "10:20:30.04"


def test_overlay_is_drawn_on_written_frames(tmp_path: Path, world: FakeWorld) -> None:
    cfg = AppConfig()
    cfg.overlay.font_size = 12
    inputs = _paths(tmp_path, 1)
    world.sources[inputs[0]] = FakeSource(width=160, height=90, frame_count=1, fill=128)

    run_merge_job(inputs, tmp_path / "take.avi", cfg, world.dependencies())

    frame = world.sinks[0].frames[0]
    assert tuple(frame[10, 10]) == (0, 0, 0)
    assert tuple(frame[89, 159]) == (128, 128, 128)


def test_min_known_bit_rate_ignores_unknown(tmp_path: Path, world: FakeWorld, cfg: AppConfig) -> None:
    inputs = _paths(tmp_path, 2)
    for path in inputs:
        world.sources[path] = FakeSource(frame_count=1, bit_rate=0)

    result = run_merge_job(inputs, tmp_path / "take.avi", cfg, world.dependencies())

    assert result.bit_rate == 0
    assert min_known_bit_rate(result.descriptors) == 0
