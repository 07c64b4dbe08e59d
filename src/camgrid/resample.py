"""Nearest-frame resampling of each source onto the common output cadence."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, List, Optional, Sequence

from .errors import FramePullError

if TYPE_CHECKING:
    from .sources import FrameSource

logger = logging.getLogger(__name__)


class FrameRateResampler:
    """
    Decide, once per output tick, whether a source yields a fresh frame or repeats its last one.

    The accumulator gains ``native_rate / output_rate`` every tick and gives back exactly 1
    per pull, so the fractional remainder carries over and the pull schedule stays locked to
    the source cadence for the whole run.
    """

    def __init__(self, source: "FrameSource", output_rate: float, *, label: str = "") -> None:
        if not output_rate > 0:
            raise ValueError(f"output rate must be positive, got {output_rate}")
        self.source = source
        self.output_rate = float(output_rate)
        self.step = float(source.frame_rate) / self.output_rate
        self.label = label or getattr(source, "label", "") or "source"
        self.accumulator = 0.0
        self.held_frame: Optional[Any] = None
        self.pulls = 0

    def _pull(self) -> Optional[Any]:
        self.pulls += 1
        try:
            return self.source.next_frame()
        except FramePullError as exc:
            logger.debug("Frame pull failed for %s: %s", self.label, exc)
            return None
        except Exception as exc:
            logger.warning("Decoder error on %s treated as end of frame: %s", self.label, exc)
            return None

    def tick(self) -> Optional[Any]:
        """Advance one output tick and return the frame to show, or ``None`` when absent."""

        self.accumulator += self.step
        if self.accumulator >= 1:
            self.release()
            self.held_frame = self._pull()
            self.accumulator -= 1
        elif self.held_frame is None:
            self.held_frame = self._pull()
        return self.held_frame

    def release(self) -> None:
        """Drop the held frame."""

        self.held_frame = None


def output_rate_for(sources: Sequence["FrameSource"]) -> float:
    """Return the common output cadence: the fastest native rate among *sources*."""

    if not sources:
        raise ValueError("output rate requires at least one source")
    return max(float(source.frame_rate) for source in sources)


def tick_all(resamplers: Sequence[FrameRateResampler]) -> List[Optional[Any]]:
    """Run one tick on every resampler in list order."""

    return [resampler.tick() for resampler in resamplers]


__all__ = ["FrameRateResampler", "output_rate_for", "tick_all"]
