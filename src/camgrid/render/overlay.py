from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Tuple

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from src.datatypes import OverlayConfig, OverlayPosition

from .canvas import blit

__all__ = [
    "draw_overlay",
    "load_font",
    "overlay_origin",
    "render_text_block",
]

logger = logging.getLogger(__name__)

_FALLBACK_FONTS = (
    "DejaVuSans.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/TTF/DejaVuSans.ttf",
    "Arial.ttf",
    "Tahoma.ttf",
)


@lru_cache(maxsize=8)
def load_font(size: int, font_path: str = "") -> Any:
    """
    Return a font of *size* points.

    An explicit *font_path* must load; otherwise common sans fonts are tried before
    Pillow's bundled default.
    """

    if font_path:
        return ImageFont.truetype(str(Path(font_path).expanduser()), size)
    for candidate in _FALLBACK_FONTS:
        try:
            return ImageFont.truetype(candidate, size)
        except OSError:
            continue
    logger.debug("No TrueType font found; using Pillow default font at %d pt", size)
    return ImageFont.load_default(size=size)


def render_text_block(
    text: str,
    font: Any,
    *,
    padding: int,
    text_color: Tuple[int, int, int],
    background_color: Tuple[int, int, int],
) -> np.ndarray:
    """Render *text* over a solid rectangle sized to its measured bounding box."""

    left, top, right, bottom = font.getbbox(text)
    width = max(1, right - left + 2 * padding)
    height = max(1, bottom - top + 2 * padding)
    image = Image.new("RGB", (width, height), background_color)
    draw = ImageDraw.Draw(image)
    draw.text((padding - left, padding - top), text, font=font, fill=text_color)
    return np.asarray(image, dtype=np.uint8)


def overlay_origin(
    canvas_size: Tuple[int, int],
    block_size: Tuple[int, int],
    position: OverlayPosition,
    margin: int,
) -> Tuple[int, int]:
    """Return the top-left corner for a text block of *block_size* on the canvas."""

    canvas_w, canvas_h = canvas_size
    block_w, block_h = block_size
    if position is OverlayPosition.CENTER:
        return (canvas_w - block_w) // 2, (canvas_h - block_h) // 2
    return margin, margin


def draw_overlay(canvas: np.ndarray, text: str, cfg: OverlayConfig) -> Tuple[int, int, int, int]:
    """
    Burn *text* into *canvas* according to *cfg*.

    Returns the ``(x, y, width, height)`` of the drawn block.
    """

    font = load_font(cfg.font_size, cfg.font_path)
    block = render_text_block(
        text,
        font,
        padding=cfg.padding,
        text_color=tuple(cfg.text_color),
        background_color=tuple(cfg.background_color),
    )
    block_h, block_w = block.shape[:2]
    canvas_h, canvas_w = canvas.shape[:2]
    x, y = overlay_origin((canvas_w, canvas_h), (block_w, block_h), cfg.position, cfg.margin)
    blit(canvas, block, x, y)
    return x, y, block_w, block_h
