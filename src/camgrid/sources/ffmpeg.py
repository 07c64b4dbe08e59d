"""Frame source that decodes through an ffmpeg rawvideo pipe."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import IO, Optional

import numpy as np

from src.camgrid import subproc as _subproc
from src.camgrid.errors import FramePullError, SourceOpenError

from .probe import ProbeError, VideoProbe, probe_video

logger = logging.getLogger(__name__)


class FFmpegFrameSource:
    """Decode *path* to RGB24 frames by reading an ffmpeg pipe."""

    def __init__(
        self,
        path: str | Path,
        *,
        ffmpeg: str = "ffmpeg",
        ffprobe: str = "ffprobe",
        probe_timeout: float | None = None,
        probe: VideoProbe | None = None,
    ) -> None:
        self.path = Path(path)
        self.label = self.path.name
        try:
            self.probe = probe or probe_video(self.path, timeout=probe_timeout, ffprobe=ffprobe)
        except ProbeError as exc:
            raise SourceOpenError(self.path, str(exc)) from exc
        self.width = self.probe.width
        self.height = self.probe.height
        self.frame_rate = self.probe.frame_rate
        self.frame_count = self.probe.frame_count
        self.bit_rate = self.probe.bit_rate
        self._frame_bytes = self.width * self.height * 3
        self._exhausted = False
        cmd = [
            ffmpeg,
            "-nostdin",
            "-loglevel",
            "error",
            "-i",
            str(self.path),
            "-map",
            "0:v:0",
            "-an",
            "-f",
            "rawvideo",
            "-pix_fmt",
            "rgb24",
            "-fps_mode",
            "passthrough",
            "-",
        ]
        try:
            _subproc.require_tool(ffmpeg)
            self._process: Optional[subprocess.Popen[bytes]] = _subproc.popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
            )
        except (_subproc.ToolMissingError, OSError) as exc:
            raise SourceOpenError(self.path, f"Could not start ffmpeg for {self.label}: {exc}") from exc

    def next_frame(self) -> Optional[np.ndarray]:
        """Return the next decoded frame, or ``None`` at end of stream."""

        if self._exhausted or self._process is None:
            return None
        stdout: IO[bytes] | None = self._process.stdout
        if stdout is None:
            raise FramePullError(f"{self.label}: decoder pipe is closed")
        try:
            data = stdout.read(self._frame_bytes)
        except (OSError, ValueError) as exc:
            raise FramePullError(f"{self.label}: decoder read failed: {exc}") from exc
        if len(data) < self._frame_bytes:
            self._exhausted = True
            if data:
                logger.debug("%s: discarding truncated trailing frame (%d bytes)", self.label, len(data))
            return None
        return np.frombuffer(data, dtype=np.uint8).reshape(self.height, self.width, 3)

    def close(self) -> None:
        process = self._process
        self._process = None
        if process is None:
            return
        if process.stdout is not None:
            process.stdout.close()
        if process.poll() is None:
            process.kill()
        process.wait()

    def __enter__(self) -> "FFmpegFrameSource":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()


__all__ = ["FFmpegFrameSource"]
