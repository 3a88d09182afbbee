"""
Overlay drawing: last-price line, price label and a horizontal grid.

draw_overlay() holds no state and is safe to call on every live-candle
mutation. Coordinates are canvas pixels with y growing downward.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol

from config import (
    OVERLAY_FONT_PX,
    OVERLAY_GRID_COLOR,
    OVERLAY_GRID_ROWS,
    OVERLAY_LABEL_PAD_X,
    OVERLAY_LABEL_PAD_Y,
    OVERLAY_LINE_COLOR,
)
from errors import SurfaceUnavailable

LOGGER = logging.getLogger(__name__)


class OverlayCanvas(Protocol):
    width: float
    height: float

    def clear(self) -> None: ...

    def hline(self, y: float, color: str, linewidth: float) -> None: ...

    def text_right(self, x: float, y: float, s: str, color: str, fontsize: float) -> None: ...

    def flush(self) -> None: ...


def format_price(price: float) -> str:
    return f"{price:.5f}"


def grid_rows(height: float, rows: int = OVERLAY_GRID_ROWS) -> list[float]:
    """y of each grid line, rows evenly spaced from the top edge."""
    return [(height / rows) * i + 0.5 for i in range(rows)]


def draw_overlay(
    canvas: Optional[OverlayCanvas],
    price: Optional[float],
    price_to_coordinate: Callable[[float], Optional[float]],
) -> bool:
    """
    Clear and redraw the overlay. Returns True if the price line was drawn.

    Nothing beyond the clear happens when there is no live price or when the
    price can't be mapped (off-scale, surface not ready).
    """
    if canvas is None:
        return False

    canvas.clear()

    if price is None:
        canvas.flush()
        return False

    try:
        y = price_to_coordinate(price)
    except SurfaceUnavailable as e:
        LOGGER.debug("overlay skipped: %s", e)
        y = None

    if y is None:
        canvas.flush()
        return False

    width = float(canvas.width)
    height = float(canvas.height)

    canvas.hline(y + 0.5, OVERLAY_LINE_COLOR, 1.0)
    canvas.text_right(
        width - OVERLAY_LABEL_PAD_X,
        y - OVERLAY_LABEL_PAD_Y,
        format_price(price),
        OVERLAY_LINE_COLOR,
        OVERLAY_FONT_PX,
    )

    for gy in grid_rows(height):
        canvas.hline(gy, OVERLAY_GRID_COLOR, 1.0)

    canvas.flush()
    return True
