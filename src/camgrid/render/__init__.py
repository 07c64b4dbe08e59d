"""Canvas compositing and timecode overlay rendering."""

from .canvas import blit, new_canvas
from .compositor import FrameCompositor
from .overlay import draw_overlay, load_font, overlay_origin, render_text_block

__all__ = [
    "FrameCompositor",
    "blit",
    "draw_overlay",
    "load_font",
    "new_canvas",
    "overlay_origin",
    "render_text_block",
]
