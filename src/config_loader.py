"""Configuration loader that parses and validates user-provided TOML."""

from __future__ import annotations

import logging
import math
import tomllib
from dataclasses import fields, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Tuple

from .datatypes import (
    AppConfig,
    CLIConfig,
    CompositorConfig,
    DiscoveryConfig,
    OutputConfig,
    OverlayConfig,
    SourcesConfig,
    TimecodeConfig,
)

logger = logging.getLogger(__name__)

_VALID_SOURCE_PLUGINS = {"lsmas", "ffms2"}
_SECTIONS: Tuple[Tuple[str, type], ...] = (
    ("sources", SourcesConfig),
    ("timecode", TimecodeConfig),
    ("compositor", CompositorConfig),
    ("overlay", OverlayConfig),
    ("output", OutputConfig),
    ("discovery", DiscoveryConfig),
    ("cli", CLIConfig),
)
_COLOR_FIELDS = ("text_color", "background_color")


class ConfigError(ValueError):
    """Raised when the configuration file is malformed or fails validation."""


def _coerce_bool(value: Any, dotted_key: str) -> bool:
    """Return a bool, coercing simple 0/1 representations when necessary."""

    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"0", "1"}:
            return normalized == "1"
        if normalized in {"true", "false"}:
            return normalized == "true"
    raise ConfigError(f"{dotted_key} must be a boolean (use true/false).")


def _coerce_enum(value: Any, dotted_key: str, enum_type: type[Enum]) -> Enum:
    """Return an enum member, coercing string values case-insensitively."""

    if isinstance(value, enum_type):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        for member in enum_type:
            if normalized == str(member.value).lower():
                return member
    raise ConfigError(
        f"{dotted_key} must be one of: {', '.join(str(member.value) for member in enum_type)}"
    )


def _sanitize_section(raw: dict[str, Any], name: str, cls):
    """
    Coerce a raw TOML table into an instance of ``cls`` with cleaned booleans and enums.

    Parameters:
        raw (dict[str, Any]): Raw TOML section data.
        name (str): Section name used when reporting validation errors.
        cls: Dataclass type used to construct the section object.

    Returns:
        Any: Instantiated dataclass populated with values from ``raw``.

    Raises:
        ConfigError: If the section is not a table or contains invalid keys or values.
    """
    if not isinstance(raw, dict):
        raise ConfigError(f"[{name}] must be a table")
    cleaned: Dict[str, Any] = {}
    cls_fields = {field.name: field for field in fields(cls)}
    bool_fields = {name for name, field in cls_fields.items() if field.type is bool}
    enum_fields = {
        field_name: field.type
        for field_name, field in cls_fields.items()
        if isinstance(field.type, type) and issubclass(field.type, Enum)
    }
    nested_fields = {
        name: field.type
        for name, field in cls_fields.items()
        if is_dataclass(field.type)
    }
    for key, value in raw.items():
        if key in bool_fields:
            cleaned[key] = _coerce_bool(value, f"{name}.{key}")
        elif key in enum_fields:
            cleaned[key] = _coerce_enum(value, f"{name}.{key}", enum_fields[key])
        elif key in nested_fields:
            if not isinstance(value, dict):
                raise ConfigError(f"[{name}.{key}] must be a table")
            cleaned[key] = _sanitize_section(value, f"{name}.{key}", nested_fields[key])
        else:
            cleaned[key] = value
    try:
        return cls(**cleaned)
    except TypeError as exc:
        raise ConfigError(f"Invalid keys in [{name}]: {exc}") from exc


def _normalize_float(value: Any, dotted_key: str) -> float:
    """Return ``value`` as a finite float, raising ConfigError otherwise."""

    if isinstance(value, bool):
        raise ConfigError(f"{dotted_key} must be a number")
    try:
        numeric = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{dotted_key} must be a number") from exc
    if not math.isfinite(numeric):
        raise ConfigError(f"{dotted_key} must be a finite number")
    return numeric


def _normalize_positive(value: Any, dotted_key: str) -> float:
    numeric = _normalize_float(value, dotted_key)
    if numeric <= 0:
        raise ConfigError(f"{dotted_key} must be > 0")
    return numeric


def _normalize_color(value: Any, dotted_key: str) -> Tuple[int, int, int]:
    """Return an RGB triple of 0-255 integers."""

    if not isinstance(value, (list, tuple)) or len(value) != 3:
        raise ConfigError(f"{dotted_key} must be a list of three integers")
    channels = []
    for channel in value:
        if isinstance(channel, bool) or not isinstance(channel, int):
            raise ConfigError(f"{dotted_key} must be a list of three integers")
        if channel < 0 or channel > 255:
            raise ConfigError(f"{dotted_key} channels must be between 0 and 255")
        channels.append(channel)
    return (channels[0], channels[1], channels[2])


def _require_int(value: Any, dotted_key: str, *, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{dotted_key} must be an integer")
    if value < minimum:
        raise ConfigError(f"{dotted_key} must be >= {minimum}")
    return value


def _validate(app: AppConfig) -> None:
    """Apply cross-field validation and normalisation in place."""

    sources = app.sources
    plugin = str(sources.source_plugin).strip().lower()
    if plugin not in _VALID_SOURCE_PLUGINS:
        raise ConfigError(
            "sources.source_plugin must be one of: " + ", ".join(sorted(_VALID_SOURCE_PLUGINS))
        )
    sources.source_plugin = plugin
    if not isinstance(sources.vapoursynth_python_paths, list) or not all(
        isinstance(entry, str) for entry in sources.vapoursynth_python_paths
    ):
        raise ConfigError("sources.vapoursynth_python_paths must be a list of strings")
    sources.ffprobe_timeout_seconds = _normalize_positive(
        sources.ffprobe_timeout_seconds, "sources.ffprobe_timeout_seconds"
    )

    app.timecode.default_frequency = _normalize_positive(
        app.timecode.default_frequency, "timecode.default_frequency"
    )
    app.timecode.max_synthesized_frequency = _normalize_positive(
        app.timecode.max_synthesized_frequency, "timecode.max_synthesized_frequency"
    )

    overlay = app.overlay
    overlay.font_size = _require_int(overlay.font_size, "overlay.font_size", minimum=1)
    overlay.margin = _require_int(overlay.margin, "overlay.margin", minimum=0)
    overlay.padding = _require_int(overlay.padding, "overlay.padding", minimum=0)
    for key in _COLOR_FIELDS:
        setattr(overlay, key, _normalize_color(getattr(overlay, key), f"overlay.{key}"))
    if overlay.font_path and not Path(overlay.font_path).expanduser().is_file():
        raise ConfigError(f"overlay.font_path does not exist: {overlay.font_path}")

    for key in ("codec", "pixel_format", "ffmpeg_path", "loglevel"):
        value = getattr(app.output, key)
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(f"output.{key} must be a non-empty string")

    discovery = app.discovery
    if not discovery.marker_glob:
        raise ConfigError("discovery.marker_glob must be set")
    if "{stem}" not in discovery.camera_glob:
        raise ConfigError("discovery.camera_glob must contain the {stem} placeholder")
    if not discovery.output_suffix.startswith("."):
        raise ConfigError("discovery.output_suffix must start with '.'")


def load_config(path: str | Path) -> AppConfig:
    """
    Load and validate an application configuration from a TOML file.

    Reads the file at `path` as UTF-8 TOML (a BOM is accepted), sanitises every known
    section into its dataclass, and validates value ranges.

    Returns:
        AppConfig: The validated and normalized application configuration.

    Raises:
        ConfigError: If the file is not UTF-8, TOML parsing fails, an unknown section or key
            is present, or any validation rule is violated.
    """

    with open(path, "rb") as handle:
        raw_bytes = handle.read()
    if raw_bytes.startswith(b"\xef\xbb\xbf"):
        raw_bytes = raw_bytes[3:]
    try:
        raw = tomllib.loads(raw_bytes.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise ConfigError("Configuration file must be UTF-8 encoded") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse TOML: {exc}") from exc

    known = {name for name, _cls in _SECTIONS}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"Unknown configuration section(s): {', '.join(unknown)}")

    app = AppConfig(
        **{name: _sanitize_section(raw.get(name, {}), name, cls) for name, cls in _SECTIONS}
    )
    _validate(app)
    logger.debug("Loaded configuration from %s", path)
    return app


def load_config_or_default(path: str | Path | None) -> AppConfig:
    """Return the config at *path*, or validated defaults when no path was given."""

    if path is None:
        app = AppConfig()
        _validate(app)
        return app
    return load_config(path)
