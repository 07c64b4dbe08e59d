"""Configuration dataclasses for the grid merge tool."""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple


class SourceBackend(str, Enum):
    """Decoders available for reading camera files."""

    VAPOURSYNTH = "vapoursynth"
    FFMPEG = "ffmpeg"


class OverlayPosition(str, Enum):
    """Placement of the burned-in timecode on the output canvas."""

    TOP_LEFT = "top_left"
    CENTER = "center"


@dataclass
class SourcesConfig:
    """Decoder selection and probe behaviour for input streams."""

    backend: SourceBackend = SourceBackend.VAPOURSYNTH
    source_plugin: str = "lsmas"
    vapoursynth_python_paths: List[str] = field(default_factory=list)
    cache_dir: str = ""
    ffprobe_timeout_seconds: float = 30.0


@dataclass
class TimecodeConfig:
    """Defaults used when seeding the overlay clock."""

    default_frequency: float = 30.0
    max_synthesized_frequency: float = 30.0


@dataclass
class CompositorConfig:
    """Canvas handling between output ticks."""

    clear_between_ticks: bool = False


@dataclass
class OverlayConfig:
    """Timecode overlay appearance."""

    enabled: bool = True
    position: OverlayPosition = OverlayPosition.TOP_LEFT
    font_size: int = 60
    font_path: str = ""
    margin: int = 10
    padding: int = 4
    text_color: Tuple[int, int, int] = (255, 255, 255)
    background_color: Tuple[int, int, int] = (0, 0, 0)


@dataclass
class OutputConfig:
    """Encoder settings handed to the ffmpeg frame sink."""

    codec: str = "libx264"
    pixel_format: str = "yuv420p"
    ffmpeg_path: str = "ffmpeg"
    loglevel: str = "error"


@dataclass
class DiscoveryConfig:
    """How recordings and their camera files are located on disk."""

    marker_glob: str = "*.qtm"
    camera_glob: str = "{stem}_Miqus*.avi"
    output_suffix: str = ".avi"
    recursive: bool = True


@dataclass
class CLIConfig:
    """CLI presentation controls."""

    progress: bool = True


@dataclass
class AppConfig:
    """Aggregated configuration loaded from the user-provided TOML file."""

    sources: SourcesConfig = field(default_factory=SourcesConfig)
    timecode: TimecodeConfig = field(default_factory=TimecodeConfig)
    compositor: CompositorConfig = field(default_factory=CompositorConfig)
    overlay: OverlayConfig = field(default_factory=OverlayConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    cli: CLIConfig = field(default_factory=CLIConfig)
