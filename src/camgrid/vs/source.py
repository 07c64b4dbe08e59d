"""Source plugin discovery and frame reading through VapourSynth."""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

import numpy as np

from src.camgrid.errors import FramePullError, SourceOpenError

from .env import ClipInitError, _get_vapoursynth_module, source_preference

logger = logging.getLogger(__name__)

_SOURCE_PLUGIN_FUNCS = {"lsmas": "LWLibavSource", "ffms2": "Source"}


_CACHE_SUFFIX = {"lsmas": ".lwi", "ffms2": ".ffindex"}


class VSPluginError(ClipInitError):
    """Base class for VapourSynth plugin discovery failures."""

    def __init__(self, plugin: str, message: str) -> None:
        super().__init__(message)
        self.plugin = plugin


class VSPluginMissingError(VSPluginError):
    """Raised when a required VapourSynth plugin is absent."""


class VSPluginBadBinaryError(VSPluginError):
    """Raised when a plugin binary is malformed or lacks an entry point."""


class VSSourceUnavailableError(ClipInitError):
    """Raised when no usable source plugin is available."""

    def __init__(self, message: str, *, errors: Mapping[str, VSPluginError] | None = None) -> None:
        super().__init__(message)
        self.errors: Mapping[str, VSPluginError] = dict(errors or {})


def _resolve_core(core: Optional[Any]) -> Any:
    if core is not None:
        return core
    vs_module = _get_vapoursynth_module()
    resolved = getattr(vs_module, "core", None)
    if resolved is None:
        raise ClipInitError("VapourSynth core is not available on this interpreter")
    return resolved


def _build_source_order() -> list[str]:
    """Return the source plugins to try, preferred plugin first."""

    preferred = source_preference()
    return [preferred] + [plugin for plugin in _SOURCE_PLUGIN_FUNCS if plugin != preferred]


def _resolve_source_callable(core: Any, plugin: str) -> Callable[..., Any]:
    namespace = getattr(core, plugin, None)
    if namespace is None:
        raise VSPluginMissingError(plugin, f"{plugin} is not loaded on the VapourSynth core")
    func_name = _SOURCE_PLUGIN_FUNCS[plugin]
    source = getattr(namespace, func_name, None)
    if not callable(source):
        raise VSPluginBadBinaryError(plugin, f"{plugin}.{func_name} is missing; the plugin did not load correctly")
    return source


def _cache_path_for(cache_root: Path, base_name: str, plugin: str) -> Path:
    return cache_root / f"{base_name}{_CACHE_SUFFIX[plugin]}"


_ENTRY_POINT_PATTERN = re.compile(r"(vapoursynthplugininit|entry point)", re.IGNORECASE)


def _open_clip_with_sources(core: Any, path: str, cache_root: Path) -> Any:
    """Open *path* with the first source plugin that succeeds, indexing into *cache_root*."""

    order = _build_source_order()
    errors: dict[str, VSPluginError] = {}
    base_name = Path(path).name
    for plugin in order:
        try:
            source = _resolve_source_callable(core, plugin)
        except VSPluginError as exc:
            logger.debug("Skipping %s for %s: %s", plugin, base_name, exc)
            errors[plugin] = exc
            continue
        cache_path = _cache_path_for(cache_root, base_name, plugin)
        if not cache_path.exists():
            logger.info("Indexing %s with %s", base_name, plugin)
        try:
            return source(path, cachefile=str(cache_path))
        except Exception as exc:
            error_type = VSPluginBadBinaryError if _ENTRY_POINT_PATTERN.search(str(exc)) else VSPluginError
            errors[plugin] = error_type(plugin, f"{plugin} could not open {base_name}: {exc}")
            logger.warning("%s", errors[plugin])

    detail = "; ".join(str(err) for err in errors.values())
    raise VSSourceUnavailableError(f"No source plugin could open {base_name} ({detail})", errors=errors)


def _to_rgb24(clip: Any, core: Any) -> Any:
    """Convert *clip* to 8-bit packed-plane RGB unless it already is."""

    vs_module = _get_vapoursynth_module()
    rgb24 = getattr(vs_module, "RGB24", None)
    fmt = getattr(clip, "format", None)
    if rgb24 is None or fmt is None:
        return clip
    if getattr(fmt, "id", None) == int(rgb24):
        return clip
    resize = getattr(getattr(core, "resize", None), "Bicubic", None)
    if not callable(resize):
        raise ClipInitError("resize.Bicubic is unavailable on the VapourSynth core")
    try:
        return resize(clip, format=rgb24, matrix_in_s="709")
    except Exception as exc:
        raise ClipInitError(f"Failed to convert clip to RGB24: {exc}") from exc


def _plane_array(frame: Any, index: int) -> np.ndarray:
    reader = getattr(frame, "get_read_array", None)
    if callable(reader):
        return np.asarray(reader(index))
    return np.asarray(frame[index])


def frame_to_array(frame: Any) -> np.ndarray:
    """Stack the three planes of an RGB24 VapourSynth frame into an ``(h, w, 3)`` array."""

    return np.ascontiguousarray(
        np.dstack([_plane_array(frame, index) for index in range(3)]), dtype=np.uint8
    )


class VapourSynthFrameSource:
    """Sequential RGB frame reader over a VapourSynth clip."""

    def __init__(
        self,
        path: str | Path,
        *,
        core: Optional[Any] = None,
        cache_dir: Optional[str | Path] = None,
        bit_rate: int = 0,
    ) -> None:
        self.path = Path(path)
        self.label = self.path.name
        try:
            resolved_core = _resolve_core(core)
            cache_root = Path(cache_dir) if cache_dir else self.path.parent
            try:
                cache_root.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise ClipInitError(f"Failed to prepare cache directory '{cache_root}': {exc}") from exc
            clip = _open_clip_with_sources(resolved_core, str(self.path), cache_root)
            clip = _to_rgb24(clip, resolved_core)
        except ClipInitError as exc:
            raise SourceOpenError(self.path, str(exc)) from exc
        self._clip: Optional[Any] = clip

        fps_num = int(getattr(clip, "fps_num", 0) or 0)
        fps_den = int(getattr(clip, "fps_den", 0) or 0)
        if fps_num <= 0 or fps_den <= 0:
            raise SourceOpenError(self.path, f"{self.label} has a variable or unknown frame rate")
        self.width = int(clip.width)
        self.height = int(clip.height)
        self.frame_rate = fps_num / fps_den
        self.frame_count = int(clip.num_frames)
        self.bit_rate = int(bit_rate)
        self._position = 0

    def next_frame(self) -> Optional[np.ndarray]:
        """Return the next frame, or ``None`` once every frame has been read."""

        clip = self._clip
        if clip is None or self._position >= self.frame_count:
            return None
        index = self._position
        self._position += 1
        try:
            frame = clip.get_frame(index)
        except Exception as exc:
            raise FramePullError(f"{self.label}: failed to decode frame {index}: {exc}") from exc
        try:
            return frame_to_array(frame)
        except Exception as exc:
            raise FramePullError(f"{self.label}: unreadable frame {index}: {exc}") from exc
        finally:
            close = getattr(frame, "close", None)
            if callable(close):
                close()

    def close(self) -> None:
        self._clip = None

    def __enter__(self) -> "VapourSynthFrameSource":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()


__all__ = [
    "VSPluginBadBinaryError",
    "VSPluginError",
    "VSPluginMissingError",
    "VSSourceUnavailableError",
    "VapourSynthFrameSource",
    "frame_to_array",
]
