from __future__ import annotations

from pathlib import Path

import pytest

from src.camgrid.layout import canvas_size, cell_origins, cell_size, plan_grid
from src.camgrid.models import GridPlan, SourceDescriptor


def _descriptor(name: str, width: int, height: int) -> SourceDescriptor:
    return SourceDescriptor(
        path=Path(name),
        width=width,
        height=height,
        native_frame_rate=30.0,
        frame_count=10,
    )


@pytest.mark.parametrize(
    ("count", "expected"),
    [
        (1, (1, 1)),
        (2, (2, 1)),
        (3, (3, 1)),
        (4, (2, 2)),
        (5, (3, 2)),
        (6, (3, 2)),
        (7, (4, 2)),
        (8, (4, 2)),
        (9, (3, 3)),
        (10, (5, 2)),
        (11, (4, 3)),
        (12, (4, 3)),
        (13, (4, 4)),
        (14, (4, 4)),
        (15, (5, 3)),
        (16, (4, 4)),
        (17, (5, 4)),
        (20, (5, 4)),
    ],
)
def test_plan_grid_table(count: int, expected: tuple[int, int]) -> None:
    plan = plan_grid(count)
    assert (plan.columns, plan.rows) == expected
    assert plan.cells >= count


@pytest.mark.parametrize(("count", "side"), [(21, 11), (22, 11), (25, 13), (40, 20)])
def test_plan_grid_falls_back_to_square_half_count(count: int, side: int) -> None:
    assert plan_grid(count) == GridPlan(columns=side, rows=side)


def test_plan_grid_rejects_empty_set() -> None:
    with pytest.raises(ValueError):
        plan_grid(0)


def test_grid_plan_str_uses_columns_by_rows() -> None:
    assert str(plan_grid(5)) == "3x2"


def test_canvas_size_uses_largest_source_per_cell() -> None:
    descriptors = [_descriptor("a.avi", 640, 480), _descriptor("b.avi", 320, 512), _descriptor("c.avi", 100, 100)]
    plan = plan_grid(len(descriptors))

    assert cell_size(descriptors) == (640, 512)
    assert canvas_size(descriptors, plan) == (640 * 3, 512)


def test_cell_origins_are_row_major() -> None:
    descriptors = [_descriptor(f"{index}.avi", 64, 48) for index in range(5)]
    plan = plan_grid(len(descriptors))

    origins = cell_origins(descriptors, plan)

    assert origins == [(0, 0), (64, 0), (128, 0), (0, 48), (64, 48)]


def test_cell_origins_advance_by_each_source_width() -> None:
    descriptors = [
        _descriptor("a.avi", 40, 30),
        _descriptor("b.avi", 20, 10),
        _descriptor("c.avi", 40, 30),
        _descriptor("d.avi", 40, 30),
    ]
    plan = plan_grid(len(descriptors))

    origins = cell_origins(descriptors, plan)

    # row height comes from the source that closes the row
    assert origins == [(0, 0), (40, 0), (0, 10), (40, 10)]


def test_cell_origins_stay_on_canvas_for_equal_sizes() -> None:
    descriptors = [_descriptor(f"{index}.avi", 32, 24) for index in range(7)]
    plan = plan_grid(len(descriptors))
    width, height = canvas_size(descriptors, plan)

    for x, y in cell_origins(descriptors, plan):
        assert 0 <= x <= width - 32
        assert 0 <= y <= height - 24
