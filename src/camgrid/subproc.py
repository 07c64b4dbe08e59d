"""Thin wrappers around :mod:`subprocess` for the ffmpeg/ffprobe tools."""
from __future__ import annotations

import subprocess
from shutil import which
from typing import Any, Sequence

__all__ = ["ToolMissingError", "popen", "require_tool", "run_checked"]


class ToolMissingError(RuntimeError):
    """Raised when an external executable is not available on PATH."""


def require_tool(name: str) -> str:
    """Return the resolved path of executable *name* or raise :class:`ToolMissingError`."""

    resolved = which(name)
    if resolved is None:
        raise ToolMissingError(f"{name} not found in PATH")
    return resolved


def run_checked(cmd: Sequence[str], **kwargs: Any) -> subprocess.CompletedProcess[Any]:
    """Run *cmd* without a shell and return the completed process."""

    return subprocess.run(list(cmd), shell=False, **kwargs)


def popen(cmd: Sequence[str], **kwargs: Any) -> subprocess.Popen[bytes]:
    """Start *cmd* without a shell."""

    return subprocess.Popen(list(cmd), shell=False, **kwargs)
