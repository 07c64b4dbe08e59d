from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import numpy as np

from src.datatypes import OverlayConfig
from src.camgrid.layout import canvas_size, cell_origins
from src.camgrid.models import GridPlan, SourceDescriptor

from .canvas import blit, new_canvas
from .overlay import draw_overlay

__all__ = ["FrameCompositor"]

logger = logging.getLogger(__name__)


class FrameCompositor:
    """
    Arrange per-source frames on a grid canvas and burn in the timecode text.

    The canvas is allocated once and reused for every tick. Unless
    ``clear_between_ticks`` is set it is never cleared, so a cell whose source has no
    frame this tick keeps whatever was drawn there before.
    """

    def __init__(
        self,
        descriptors: Sequence[SourceDescriptor],
        plan: GridPlan,
        overlay: Optional[OverlayConfig] = None,
        *,
        clear_between_ticks: bool = False,
    ) -> None:
        if not descriptors:
            raise ValueError("compositor requires at least one source")
        self.descriptors = tuple(descriptors)
        self.plan = plan
        self.overlay = overlay if overlay is not None else OverlayConfig()
        self.clear_between_ticks = clear_between_ticks
        self.width, self.height = canvas_size(self.descriptors, plan)
        self.origins = cell_origins(self.descriptors, plan)
        self.canvas = new_canvas(self.width, self.height)

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    def compose(self, frames: Sequence[Optional[Any]], text: Optional[str]) -> np.ndarray:
        """Draw *frames* (one per source, ``None`` for absent) and *text* onto the canvas."""

        if len(frames) != len(self.descriptors):
            raise ValueError(
                f"expected {len(self.descriptors)} frames, got {len(frames)}"
            )
        if self.clear_between_ticks:
            self.canvas.fill(0)
        for frame, (x, y) in zip(frames, self.origins):
            if frame is not None:
                blit(self.canvas, frame, x, y)
        if text and self.overlay.enabled:
            draw_overlay(self.canvas, text, self.overlay)
        return self.canvas
