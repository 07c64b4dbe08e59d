"""Grid planning and canvas geometry for composite output."""
from __future__ import annotations

import math
from typing import Final, List, Mapping, Sequence, Tuple

from .models import GridPlan, SourceDescriptor

# source count -> (columns, rows)
_GRID_TABLE: Final[Mapping[int, Tuple[int, int]]] = {
    1: (1, 1),
    2: (2, 1),
    3: (3, 1),
    4: (2, 2),
    5: (3, 2),
    6: (3, 2),
    7: (4, 2),
    8: (4, 2),
    9: (3, 3),
    10: (5, 2),
    11: (4, 3),
    12: (4, 3),
    13: (4, 4),
    14: (4, 4),
    15: (5, 3),
    16: (4, 4),
    17: (5, 4),
    18: (5, 4),
    19: (5, 4),
    20: (5, 4),
}


def plan_grid(count: int) -> GridPlan:
    """
    Map the number of sources to the columns and rows of the output grid.

    Counts above the fixed table fall back to a square ``ceil(count / 2)`` grid.

    Raises:
        ValueError: If *count* is smaller than 1.
    """

    if count < 1:
        raise ValueError(f"grid needs at least one source, got {count}")
    entry = _GRID_TABLE.get(count)
    if entry is None:
        side = math.ceil(count / 2)
        return GridPlan(columns=side, rows=side)
    columns, rows = entry
    return GridPlan(columns=columns, rows=rows)


def cell_size(descriptors: Sequence[SourceDescriptor]) -> Tuple[int, int]:
    """Return the largest width and height across *descriptors*."""

    if not descriptors:
        raise ValueError("cell size requires at least one source")
    return (
        max(descriptor.width for descriptor in descriptors),
        max(descriptor.height for descriptor in descriptors),
    )


def canvas_size(descriptors: Sequence[SourceDescriptor], plan: GridPlan) -> Tuple[int, int]:
    """Return the ``(width, height)`` of the composite canvas."""

    max_width, max_height = cell_size(descriptors)
    return max_width * plan.columns, max_height * plan.rows


def cell_origins(descriptors: Sequence[SourceDescriptor], plan: GridPlan) -> List[Tuple[int, int]]:
    """
    Walk the placement cursor over *descriptors* and return each source's top-left corner.

    The cursor advances by each source's own width; after ``plan.columns`` sources it
    returns to ``x = 0`` and moves down by the height of the source closing the row.
    """

    origins: List[Tuple[int, int]] = []
    x = 0
    y = 0
    placed_on_row = 0
    for descriptor in descriptors:
        origins.append((x, y))
        x += descriptor.width
        placed_on_row += 1
        if placed_on_row >= plan.columns:
            placed_on_row = 0
            x = 0
            y += descriptor.height
    return origins


__all__ = ["canvas_size", "cell_origins", "cell_size", "plan_grid"]
