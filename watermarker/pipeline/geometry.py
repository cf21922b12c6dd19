"""Corner geometry shared by color sampling and overlay placement."""

import math
from typing import Any

from ..models import OverlayPlacement, Position, Region

REGION_FRACTION = 0.3
REGION_OFFSET = 0.7


def region_for(position: Any, width: int, height: int) -> Region:
    """
    Sampling rectangle for a corner: the outer 30% of width and height.

    Unknown positions fall back to bottom-right.
    """
    region_w = math.floor(width * REGION_FRACTION)
    region_h = math.floor(height * REGION_FRACTION)
    right = math.floor(width * REGION_OFFSET)
    bottom = math.floor(height * REGION_OFFSET)

    regions = {
        Position.TOP_LEFT: Region(left=0, top=0, width=region_w, height=region_h),
        Position.TOP_RIGHT: Region(left=right, top=0, width=region_w, height=region_h),
        Position.BOTTOM_LEFT: Region(left=0, top=bottom, width=region_w, height=region_h),
        Position.BOTTOM_RIGHT: Region(left=right, top=bottom, width=region_w, height=region_h),
    }
    return regions[Position.parse(position)]


def overlay_expression(position: Any, padding_x: int, padding_y: int) -> OverlayPlacement:
    """Anchor and insets that place the overlay in the requested corner"""
    position = Position.parse(position)
    horizontal = "right" if position in (Position.TOP_RIGHT, Position.BOTTOM_RIGHT) else "left"
    vertical = "bottom" if position in (Position.BOTTOM_LEFT, Position.BOTTOM_RIGHT) else "top"
    return OverlayPlacement(horizontal=horizontal, vertical=vertical, offset_x=padding_x, offset_y=padding_y)
