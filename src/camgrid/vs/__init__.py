"""VapourSynth-backed decoding."""

from .env import ClipInitError, configure, source_preference
from .source import (
    VapourSynthFrameSource,
    VSPluginBadBinaryError,
    VSPluginError,
    VSPluginMissingError,
    VSSourceUnavailableError,
    frame_to_array,
)

__all__ = [
    "ClipInitError",
    "VSPluginBadBinaryError",
    "VSPluginError",
    "VSPluginMissingError",
    "VSSourceUnavailableError",
    "VapourSynthFrameSource",
    "configure",
    "frame_to_array",
    "source_preference",
]
