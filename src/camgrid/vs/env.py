"""Locate and configure the VapourSynth runtime used by the vapoursynth decode backend."""
from __future__ import annotations

import importlib
import logging
import os
import sys
from pathlib import Path
from typing import Any, Iterable, List, Sequence

from src.camgrid.errors import CamgridError

logger = logging.getLogger(__name__)

_PATH_ENV_VAR = "CAMGRID_VAPOURSYNTH_PYTHONPATH"
_SOURCE_PLUGINS = ("ffms2", "lsmas")

_search_paths: List[str] = []
_vs_module: Any | None = None
_SOURCE_PREFERENCE = "lsmas"


class ClipInitError(CamgridError):
    """Raised when a camera file cannot be turned into a VapourSynth clip."""


def _register_paths(paths: Iterable[str]) -> None:
    for raw in paths:
        raw = raw.strip()
        if not raw:
            continue
        candidate = Path(raw).expanduser()
        try:
            entry = str(candidate.resolve())
        except (OSError, RuntimeError):
            entry = str(candidate)
        if entry in _search_paths:
            continue
        _search_paths.append(entry)
        if entry not in sys.path:
            sys.path.insert(0, entry)
            logger.debug("Added %s to the VapourSynth import path", entry)


def configure(
    *, search_paths: Sequence[str] | None = None, source_preference: str | None = None
) -> None:
    """
    Apply the ``[sources]`` settings that affect VapourSynth.

    *search_paths* are prepended to ``sys.path`` before the first import so a
    VapourSynth installed for another interpreter can be used. *source_preference*
    names the plugin tried first when opening clips.
    """

    global _SOURCE_PREFERENCE
    if search_paths:
        _register_paths(search_paths)
    if source_preference is not None:
        plugin = source_preference.strip().lower()
        if plugin not in _SOURCE_PLUGINS:
            raise ValueError(
                f"Unknown VapourSynth source plugin {source_preference!r}; "
                f"expected one of {', '.join(_SOURCE_PLUGINS)}"
            )
        _SOURCE_PREFERENCE = plugin


def source_preference() -> str:
    return _SOURCE_PREFERENCE


def _get_vapoursynth_module() -> Any:
    global _vs_module
    if _vs_module is None:
        try:
            _vs_module = importlib.import_module("vapoursynth")
        except ImportError as exc:  # pragma: no cover - depends on the environment
            tried = f" (searched: {', '.join(_search_paths)})" if _search_paths else ""
            raise ClipInitError(
                "VapourSynth is not available in this environment"
                f"{tried}. Install the vapoursynth extra, set "
                "sources.vapoursynth_python_paths, or use sources.backend = \"ffmpeg\"."
            ) from exc
    return _vs_module


_register_paths(os.environ.get(_PATH_ENV_VAR, "").split(os.pathsep))

__all__ = [
    "ClipInitError",
    "configure",
    "source_preference",
]
