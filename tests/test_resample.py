from __future__ import annotations

import numpy as np
import pytest

from src.camgrid.resample import FrameRateResampler, output_rate_for, tick_all
from tests.helpers.fakes import FakeSource


def test_equal_rate_pulls_every_tick() -> None:
    source = FakeSource(frame_rate=30.0, frame_count=20)
    resampler = FrameRateResampler(source, 30.0)

    values = []
    for _ in range(20):
        frame = resampler.tick()
        assert frame is not None
        values.append(int(frame[0, 0, 0]))

    assert values == list(range(20))
    assert source.pulls == 20


def test_half_rate_pulls_once_per_two_ticks() -> None:
    source = FakeSource(frame_rate=15.0, frame_count=100)
    resampler = FrameRateResampler(source, 30.0)

    first = resampler.tick()
    assert first is not None and int(first[0, 0, 0]) == 0
    assert source.pulls == 1

    values = []
    for _ in range(20):
        frame = resampler.tick()
        assert frame is not None
        values.append(int(frame[0, 0, 0]))

    assert source.pulls - 1 == 10
    assert values == [1, 1, 2, 2, 3, 3, 4, 4, 5, 5, 6, 6, 7, 7, 8, 8, 9, 9, 10, 10]


def test_accumulator_stays_bounded() -> None:
    source = FakeSource(frame_rate=25.0, frame_count=1000)
    resampler = FrameRateResampler(source, 30.0)

    for _ in range(600):
        resampler.tick()
        assert 0.0 <= resampler.accumulator < 1.0


def test_25_on_30_does_not_drift() -> None:
    source = FakeSource(frame_rate=25.0, frame_count=1000)
    resampler = FrameRateResampler(source, 30.0)

    for _ in range(300):
        resampler.tick()

    # one bootstrap pull, then 25 pulls per 30 ticks
    assert abs((source.pulls - 1) - 250) <= 1


def test_exhausted_source_yields_absent_frames() -> None:
    source = FakeSource(frame_rate=30.0, frame_count=3)
    resampler = FrameRateResampler(source, 30.0)

    frames = [resampler.tick() for _ in range(5)]

    assert all(frame is not None for frame in frames[:3])
    assert frames[3] is None
    assert frames[4] is None


def test_slower_exhausted_source_keeps_last_frame_between_pulls() -> None:
    source = FakeSource(frame_rate=15.0, frame_count=2)
    resampler = FrameRateResampler(source, 30.0)

    frames = [resampler.tick() for _ in range(5)]

    assert [int(frame[0, 0, 0]) for frame in frames[:3] if frame is not None] == [0, 1, 1]
    assert frames[3] is None
    assert frames[4] is None


def test_pull_failure_becomes_absent_frame_for_that_tick() -> None:
    source = FakeSource(frame_rate=30.0, frame_count=5, fail_on={2})
    resampler = FrameRateResampler(source, 30.0, label="cam")

    frames = [resampler.tick() for _ in range(5)]

    assert frames[2] is None
    assert frames[3] is not None
    assert int(frames[3][0, 0, 0]) == 3


def test_decoder_library_error_becomes_absent_frame() -> None:
    source = FakeSource(frame_rate=30.0, frame_count=4, crash_on={1})
    resampler = FrameRateResampler(source, 30.0, label="cam")

    frames = [resampler.tick() for _ in range(4)]

    assert frames[1] is None
    assert frames[2] is not None and int(frames[2][0, 0, 0]) == 2


def test_release_drops_held_frame() -> None:
    resampler = FrameRateResampler(FakeSource(frame_rate=10.0), 30.0)
    resampler.tick()
    assert resampler.held_frame is not None

    resampler.release()

    assert resampler.held_frame is None


def test_output_rate_is_fastest_source() -> None:
    sources = [FakeSource(frame_rate=25.0), FakeSource(frame_rate=29.97), FakeSource(frame_rate=15.0)]
    assert output_rate_for(sources) == pytest.approx(29.97)


def test_output_rate_requires_a_source() -> None:
    with pytest.raises(ValueError):
        output_rate_for([])


def test_tick_all_preserves_order() -> None:
    first = FrameRateResampler(FakeSource(fill=10), 30.0)
    second = FrameRateResampler(FakeSource(fill=20), 30.0)

    frames = tick_all([first, second])

    assert [int(np.asarray(frame)[0, 0, 0]) for frame in frames] == [10, 20]
