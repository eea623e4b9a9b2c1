from __future__ import annotations

import math
from dataclasses import dataclass

from ..errors import CaptureConfigError
from ..sandbox import Region, Viewport


@dataclass(frozen=True, slots=True)
class CaptureClip:
    x: float
    y: float
    width: int
    height: int

    def box(self) -> tuple[int, int, int, int]:
        left = int(round(self.x))
        top = int(round(self.y))
        return left, top, left + int(self.width), top + int(self.height)


@dataclass(frozen=True, slots=True)
class ClipOptions:
    x_offset: float | None = None
    y_offset: float | None = None
    left: float | None = None
    top: float | None = None
    right: float = 0.0
    bottom: float = 0.0
    width: float | None = None
    height: float | None = None
    round_to_even_width: bool = False
    round_to_even_height: bool = False


def _first_set(*values: float | None) -> float:
    for value in values:
        if value:
            return float(value)
    return 0.0


def compute_clip(viewport: Viewport, options: ClipOptions, region: Region | None = None) -> CaptureClip:
    """Resolve the capture rectangle from the viewport or a named region.

    Offsets shrink the area unless an explicit width/height is given. Raises
    CaptureConfigError for an empty or negative area.
    """

    x = _first_set(options.x_offset, options.left)
    y = _first_set(options.y_offset, options.top)
    right = float(options.right or 0.0)
    bottom = float(options.bottom or 0.0)

    if region is not None:
        width = float(options.width) if options.width else float(region.width) - x - right
        height = float(options.height) if options.height else float(region.height) - y - bottom
        x += float(region.scroll_x) + float(region.left)
        y += float(region.scroll_y) + float(region.top)
    else:
        width = float(options.width) if options.width else float(viewport.width) - x - right
        height = float(options.height) if options.height else float(viewport.height) - y - bottom

    width_i = int(math.ceil(width))
    if options.round_to_even_width and width_i % 2 == 1:
        width_i += 1
    height_i = int(math.ceil(height))
    if options.round_to_even_height and height_i % 2 == 1:
        height_i += 1

    if height_i <= 0:
        raise CaptureConfigError("Capture height is " + ("negative!" if height_i < 0 else "0!"))
    if width_i <= 0:
        raise CaptureConfigError("Capture width is " + ("negative!" if width_i < 0 else "0!"))
    return CaptureClip(x=x, y=y, width=width_i, height=height_i)
