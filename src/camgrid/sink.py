"""Output frame sinks; the default pipes raw RGB canvases into an ffmpeg encoder."""
from __future__ import annotations

import logging
import subprocess
import tempfile
from dataclasses import dataclass
from fractions import Fraction
from pathlib import Path
from typing import IO, Any, Callable, List, Optional, Protocol

import numpy as np

from src.camgrid import subproc as _subproc
from src.camgrid.errors import SinkError, SinkWriteError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SinkSpec:
    """Geometry, cadence and encoder settings of one output file."""

    width: int
    height: int
    frame_rate: float
    bit_rate: int = 0
    codec: str = "libx264"
    pixel_format: str = "yuv420p"


class FrameSink(Protocol):
    def open(self, spec: SinkSpec) -> None:
        ...

    def write_frame(self, canvas: Any) -> None:
        ...

    def close(self) -> None:
        ...

    def abort(self) -> None:
        ...


SinkFactory = Callable[[Path], FrameSink]


def format_rate(rate: float) -> str:
    """Render *rate* as an exact ffmpeg rational such as ``30000/1001``."""

    fraction = Fraction(rate).limit_denominator(1001)
    if fraction.denominator == 1:
        return str(fraction.numerator)
    return f"{fraction.numerator}/{fraction.denominator}"


def _needs_even_dimensions(spec: SinkSpec) -> bool:
    return "420" in spec.pixel_format and bool(spec.width % 2 or spec.height % 2)


class FFmpegFrameSink:
    """Encode canvases written in order to *output_path* through an ffmpeg pipe."""

    def __init__(self, output_path: str | Path, *, ffmpeg: str = "ffmpeg", loglevel: str = "error") -> None:
        self.output_path = Path(output_path)
        self.ffmpeg = ffmpeg
        self.loglevel = loglevel
        self.spec: Optional[SinkSpec] = None
        self.frames_written = 0
        self._process: Optional[subprocess.Popen[bytes]] = None
        self._stderr: Optional[IO[bytes]] = None

    def build_command(self, spec: SinkSpec) -> List[str]:
        cmd = [
            self.ffmpeg,
            "-hide_banner",
            "-nostats",
            "-loglevel",
            self.loglevel,
            "-y",
            "-f",
            "rawvideo",
            "-pix_fmt",
            "rgb24",
            "-s",
            f"{spec.width}x{spec.height}",
            "-r",
            format_rate(spec.frame_rate),
            "-i",
            "-",
            "-an",
            "-c:v",
            spec.codec,
        ]
        if spec.bit_rate > 0:
            cmd.extend(["-b:v", str(spec.bit_rate)])
        if _needs_even_dimensions(spec):
            cmd.extend(["-vf", "pad=ceil(iw/2)*2:ceil(ih/2)*2"])
        cmd.extend(["-pix_fmt", spec.pixel_format, str(self.output_path)])
        return cmd

    def open(self, spec: SinkSpec) -> None:
        if self._process is not None:
            raise SinkError(f"Sink for {self.output_path.name} is already open")
        cmd = self.build_command(spec)
        # stderr is a file, not a pipe: nothing reads it until the encoder exits.
        stderr = tempfile.TemporaryFile()
        try:
            _subproc.require_tool(self.ffmpeg)
            self._process = _subproc.popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
                stderr=stderr,
            )
        except (_subproc.ToolMissingError, OSError) as exc:
            stderr.close()
            raise SinkError(f"Could not start encoder for {self.output_path.name}: {exc}") from exc
        self._stderr = stderr
        self.spec = spec
        self.frames_written = 0
        logger.debug("Encoder command: %s", " ".join(cmd))

    def write_frame(self, canvas: Any) -> None:
        process = self._process
        spec = self.spec
        if process is None or process.stdin is None or spec is None:
            raise SinkWriteError(f"Sink for {self.output_path.name} is not open", tick=self.frames_written + 1)
        array = np.asarray(canvas, dtype=np.uint8)
        if array.shape != (spec.height, spec.width, 3):
            raise SinkWriteError(
                f"Canvas shape {array.shape} does not match {spec.width}x{spec.height}",
                tick=self.frames_written + 1,
            )
        try:
            process.stdin.write(np.ascontiguousarray(array).tobytes())
        except (BrokenPipeError, OSError, ValueError) as exc:
            raise SinkWriteError(
                f"Encoder for {self.output_path.name} stopped accepting frames: {exc}",
                tick=self.frames_written + 1,
            ) from exc
        self.frames_written += 1

    def _drain_stderr(self) -> str:
        stderr = self._stderr
        self._stderr = None
        if stderr is None:
            return ""
        try:
            stderr.seek(0)
            data = stderr.read() or b""
        except (OSError, ValueError):
            data = b""
        finally:
            stderr.close()
        return data.decode("utf-8", errors="replace").strip()

    def close(self) -> None:
        process = self._process
        self._process = None
        if process is None:
            return
        try:
            if process.stdin is not None:
                process.stdin.close()
        except (BrokenPipeError, OSError):
            pass
        returncode = process.wait()
        message = self._drain_stderr()
        if returncode != 0:
            raise SinkError(
                f"Encoder exited with status {returncode} for {self.output_path.name}: "
                f"{message or 'no output'}"
            )
        logger.info("Finished %s (%d frames)", self.output_path.name, self.frames_written)

    def abort(self) -> None:
        process = self._process
        self._process = None
        if process is not None:
            if process.poll() is None:
                process.kill()
            process.wait()
            if process.stdin is not None:
                try:
                    process.stdin.close()
                except (BrokenPipeError, OSError):
                    pass
        message = self._drain_stderr()
        if message:
            logger.debug("Encoder output for %s: %s", self.output_path.name, message)
        try:
            self.output_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Could not remove partial output %s: %s", self.output_path, exc)


def ffmpeg_sink_factory(*, ffmpeg: str = "ffmpeg", loglevel: str = "error") -> SinkFactory:
    def _factory(path: Path) -> FrameSink:
        return FFmpegFrameSink(path, ffmpeg=ffmpeg, loglevel=loglevel)

    return _factory


__all__ = [
    "FFmpegFrameSink",
    "FrameSink",
    "SinkFactory",
    "SinkSpec",
    "ffmpeg_sink_factory",
    "format_rate",
]
