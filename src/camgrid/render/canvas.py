from __future__ import annotations

from typing import Any

import numpy as np

__all__ = ["blit", "new_canvas"]


def new_canvas(width: int, height: int) -> np.ndarray:
    """Allocate a black RGB canvas of ``width`` x ``height`` pixels."""

    if width <= 0 or height <= 0:
        raise ValueError(f"canvas size must be positive, got {width}x{height}")
    return np.zeros((height, width, 3), dtype=np.uint8)


def blit(canvas: np.ndarray, image: Any, x: int, y: int) -> None:
    """Copy *image* onto *canvas* with its top-left corner at ``(x, y)``, clipped to bounds."""

    pixels = np.asarray(image)
    if pixels.ndim == 2:
        pixels = np.repeat(pixels[:, :, None], 3, axis=2)
    canvas_h, canvas_w = canvas.shape[:2]
    image_h, image_w = pixels.shape[:2]
    left = max(0, x)
    top = max(0, y)
    right = min(canvas_w, x + image_w)
    bottom = min(canvas_h, y + image_h)
    if right <= left or bottom <= top:
        return
    canvas[top:bottom, left:right] = pixels[top - y : bottom - y, left - x : right - x, :3]
