"""Embedded timecode parsing and the running overlay clock."""
from __future__ import annotations

import datetime as _dt
import logging
import math
import re
from typing import Optional, Sequence

from .errors import TimecodeParseError
from .models import DEFAULT_TIMECODE_FREQUENCY, SourceDescriptor, TimecodeOrigin

logger = logging.getLogger(__name__)

_TIMECODE_SEPARATORS = re.compile(r"[:;]")
_LIMITS = (23, 59, 59)


def parse_timecode(text: str) -> TimecodeOrigin:
    """
    Parse an ``HH:MM:SS:FF`` (or drop-frame ``HH:MM:SS;FF``) string.

    Fewer than four components are accepted; missing trailing components are 0.

    Raises:
        TimecodeParseError: If any component is not a non-negative integer, there are more
            than four components, or the time of day is out of range.
    """

    stripped = text.strip()
    if not stripped:
        raise TimecodeParseError("empty timecode")
    parts = _TIMECODE_SEPARATORS.split(stripped)
    if len(parts) > 4:
        raise TimecodeParseError(f"too many timecode components in {text!r}")
    values = []
    for part in parts:
        part = part.strip()
        if not part.isdigit():
            raise TimecodeParseError(f"non-numeric timecode component {part!r} in {text!r}")
        values.append(int(part))
    for value, limit in zip(values, _LIMITS):
        if value > limit:
            raise TimecodeParseError(f"timecode {text!r} is not a valid time of day")
    values.extend([0] * (4 - len(values)))
    hour, minute, second, subframe = values
    return TimecodeOrigin(hour=hour, minute=minute, second=second, subframe=subframe)


def parse_frequency(text: Optional[str], *, default: float = DEFAULT_TIMECODE_FREQUENCY) -> float:
    """Return the timecode frequency in *text*, or *default* when absent or malformed."""

    if text is None or not str(text).strip():
        return default
    try:
        value = float(str(text).strip())
    except ValueError:
        logger.warning("Ignoring malformed timecode frequency %r; using %s", text, default)
        return default
    if not math.isfinite(value) or value <= 0:
        logger.warning("Ignoring invalid timecode frequency %r; using %s", text, default)
        return default
    return value


def select_reference(descriptors: Sequence[SourceDescriptor]) -> Optional[SourceDescriptor]:
    """Return the first source, in input order, that carries a parsed timecode."""

    return next((descriptor for descriptor in descriptors if descriptor.has_timecode), None)


class TimecodeClock:
    """
    Running overlay clock that counts subframes at ``tick_frequency`` per second.

    The clock is resampled against the output cadence with the same carry-over accumulator
    used for frames, so a 25 Hz timecode shown on a 30 fps output advances 25 subframes per
    30 ticks without jitter.
    """

    def __init__(
        self,
        start: _dt.datetime,
        *,
        tick_frequency: float,
        output_rate: float,
        subframe: int = 0,
        show_subframes: bool = True,
    ) -> None:
        if not tick_frequency > 0:
            raise ValueError(f"tick frequency must be positive, got {tick_frequency}")
        if not output_rate > 0:
            raise ValueError(f"output rate must be positive, got {output_rate}")
        self.current_time = start.replace(microsecond=0)
        self.current_subframe = int(subframe)
        self.subframe_accumulator = 0.0
        self.tick_frequency = float(tick_frequency)
        self.output_rate = float(output_rate)
        self.show_subframes = show_subframes

    @classmethod
    def seeded(
        cls,
        descriptors: Sequence[SourceDescriptor],
        *,
        output_rate: float,
        today: _dt.date | None = None,
        max_synthesized_frequency: float = DEFAULT_TIMECODE_FREQUENCY,
    ) -> "TimecodeClock":
        """
        Seed a clock from the reference source, or synthesize one when no source has a timecode.

        The synthesized clock starts at midnight of *today* with subframe 0 and counts
        ``min(output_rate, max_synthesized_frequency)`` subframes per second.
        """

        if not descriptors:
            raise ValueError("clock seeding requires at least one source")
        day = today or _dt.date.today()
        reference = select_reference(descriptors)
        origin = reference.timecode_origin if reference is not None else None
        if reference is None or origin is None:
            logger.info("No embedded timecode found; overlay shows synthesized time")
            return cls(
                _dt.datetime.combine(day, _dt.time()),
                tick_frequency=min(output_rate, max_synthesized_frequency),
                output_rate=output_rate,
                subframe=0,
                show_subframes=False,
            )
        logger.info(
            "Using timecode %02d:%02d:%02d:%02d @ %s from %s",
            origin.hour,
            origin.minute,
            origin.second,
            origin.subframe,
            reference.timecode_frequency,
            reference.label,
        )
        start = _dt.datetime.combine(day, _dt.time(origin.hour, origin.minute, origin.second))
        return cls(
            start,
            tick_frequency=reference.timecode_frequency,
            output_rate=output_rate,
            subframe=origin.subframe,
            show_subframes=True,
        )

    def render(self) -> str:
        """Return the overlay text for the current state."""

        stamp = self.current_time.strftime("%H:%M:%S")
        if self.show_subframes:
            return f"{stamp}.{self.current_subframe:02d}"
        return stamp

    def advance(self) -> None:
        """Advance by one output tick."""

        self.subframe_accumulator += self.tick_frequency / self.output_rate
        if self.subframe_accumulator >= 1:
            self.current_subframe += 1
            self.subframe_accumulator -= 1
        if self.current_subframe >= self.tick_frequency:
            self.current_subframe = 0
            self.current_time += _dt.timedelta(seconds=1)


__all__ = ["TimecodeClock", "parse_frequency", "parse_timecode", "select_reference"]
