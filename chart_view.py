# chart_view.py
from __future__ import annotations

import asyncio
import logging
import re
from typing import Callable, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.collections import LineCollection, PolyCollection
from matplotlib.colors import to_rgba
from matplotlib.lines import Line2D
from matplotlib.transforms import IdentityTransform

from config import BACKGROUND_COLOR, GHOST_QUEUE_LENGTH, TEXT_COLOR, TIMEFRAME_S
from surface import CandleSeries

LOGGER = logging.getLogger(__name__)

_RGBA_RE = re.compile(r"rgba?\(\s*([\d.]+)\s*,\s*([\d.]+)\s*,\s*([\d.]+)\s*(?:,\s*([\d.]+)\s*)?\)")

RGBA = Tuple[float, float, float, float]


def css_color(s: str) -> RGBA:
    """Accept CSS rgb()/rgba() strings on top of anything matplotlib understands."""
    m = _RGBA_RE.fullmatch(s.strip())
    if m is None:
        return to_rgba(s)
    r, g, b = (float(m.group(i)) / 255.0 for i in (1, 2, 3))
    a = float(m.group(4)) if m.group(4) is not None else 1.0
    return (r, g, b, a)


class MplOverlayCanvas:
    """
    Overlay drawn as figure-level artists in display pixels.

    y is measured from the top edge; matplotlib's display origin is bottom-left,
    so every y is flipped against the current height.
    """

    def __init__(self, fig) -> None:
        self.fig = fig
        self._artists: list = []
        self.width = 0.0
        self.height = 0.0
        self.resize()

    def resize(self) -> None:
        # bbox is in device pixels, so the pixel ratio is already applied
        self.width = float(self.fig.bbox.width)
        self.height = float(self.fig.bbox.height)

    def clear(self) -> None:
        for a in self._artists:
            a.remove()
        self._artists.clear()

    def hline(self, y: float, color: str, linewidth: float) -> None:
        yd = self.height - y
        line = Line2D(
            [0.0, self.width],
            [yd, yd],
            transform=IdentityTransform(),
            color=css_color(color),
            linewidth=linewidth,
        )
        self.fig.add_artist(line)
        self._artists.append(line)

    def text_right(self, x: float, y: float, s: str, color: str, fontsize: float) -> None:
        pts = float(fontsize) * 72.0 / float(self.fig.dpi)
        t = self.fig.text(
            x,
            self.height - y,
            s,
            transform=IdentityTransform(),
            ha="right",
            va="baseline",
            color=css_color(color),
            fontsize=pts,
            family="monospace",
        )
        self._artists.append(t)

    def flush(self) -> None:
        self.fig.canvas.draw_idle()

    @property
    def n_artists(self) -> int:
        return len(self._artists)


class _CandleArtists:
    def __init__(self, ax, series: CandleSeries, zorder: float) -> None:
        self.series = series
        opts = series.options
        self.up = css_color(opts.get("upColor", "#2ecc71"))
        self.down = css_color(opts.get("downColor", "#e74c3c"))
        self.wick_up = css_color(opts.get("wickUpColor", opts.get("upColor", "#2ecc71")))
        self.wick_down = css_color(opts.get("wickDownColor", opts.get("downColor", "#e74c3c")))

        self.wicks = LineCollection([], linewidths=1.0, zorder=zorder)
        self.bodies = PolyCollection([], zorder=zorder + 0.1, linewidths=0.0)
        ax.add_collection(self.wicks)
        ax.add_collection(self.bodies)
        self.drawn_version = -1

    def draw(self, half_w: float) -> None:
        bars = self.series.bars
        self.drawn_version = self.series.version
        if not bars:
            self.wicks.set_segments([])
            self.bodies.set_verts([])
            return

        t = np.array([b.time for b in bars], dtype=float)
        o = np.array([b.open for b in bars], dtype=float)
        h = np.array([b.high for b in bars], dtype=float)
        lo = np.array([b.low for b in bars], dtype=float)
        c = np.array([b.close for b in bars], dtype=float)
        rising = c >= o

        segs = np.stack([np.column_stack([t, lo]), np.column_stack([t, h])], axis=1)
        self.wicks.set_segments(list(segs))
        self.wicks.set_color([self.wick_up if r else self.wick_down for r in rising])

        y0 = np.minimum(o, c)
        y1 = np.maximum(o, c)
        verts = np.stack(
            [
                np.column_stack([t - half_w, y0]),
                np.column_stack([t + half_w, y0]),
                np.column_stack([t + half_w, y1]),
                np.column_stack([t - half_w, y1]),
            ],
            axis=1,
        )
        self.bodies.set_verts(list(verts))
        self.bodies.set_facecolor([self.up if r else self.down for r in rising])

    def extent(self) -> Optional[Tuple[float, float, float, float]]:
        bars = self.series.bars
        if not bars:
            return None
        return (
            float(bars[0].time),
            float(bars[-1].time),
            min(b.low for b in bars),
            max(b.high for b in bars),
        )


class ChartView:
    """
    Matplotlib window holding the live and ghost candle series plus the overlay.

    Supplies price_to_coordinate for the live series and redraws the overlay
    through on_overlay_dirty whenever the scale or the window size changes.
    """

    def __init__(
        self,
        live_series: CandleSeries,
        ghost_series: CandleSeries,
        *,
        timeframe: int = TIMEFRAME_S,
        visible_bars: int = 60,
        ghost_lookahead: int = GHOST_QUEUE_LENGTH,
        fig=None,
    ) -> None:
        if fig is None:
            plt.ion()
            fig, ax = plt.subplots(figsize=(11, 5))
        else:
            ax = fig.add_subplot(1, 1, 1)
        self.fig = fig
        self.ax = ax
        self.timeframe = timeframe
        self.visible_bars = visible_bars
        self.ghost_lookahead = ghost_lookahead
        self.on_overlay_dirty: Optional[Callable[[], object]] = None

        fig.patch.set_facecolor(BACKGROUND_COLOR)
        ax.set_facecolor(BACKGROUND_COLOR)
        ax.tick_params(colors=TEXT_COLOR)
        ax.yaxis.tick_right()
        for sp in ax.spines.values():
            sp.set_visible(False)
        ax.grid(False)

        self.live_series = live_series
        self.ghost_series = ghost_series
        self._ghost = _CandleArtists(ax, ghost_series, zorder=2.0)
        self._live = _CandleArtists(ax, live_series, zorder=3.0)

        self.overlay = MplOverlayCanvas(fig)
        live_series.scale = self.price_to_coordinate
        self._cid_resize = fig.canvas.mpl_connect("resize_event", self._on_resize)

    def price_to_coordinate(self, price: float) -> Optional[float]:
        """Canvas y (pixels from the top) for price, or None when off-scale."""
        lo, hi = self.ax.get_ylim()
        if not (min(lo, hi) <= price <= max(lo, hi)):
            return None
        x0 = self.ax.get_xlim()[0]
        _, yd = self.ax.transData.transform((x0, price))
        if not np.isfinite(yd):
            return None
        return self.overlay.height - float(yd)

    def _on_resize(self, _event) -> None:
        self.overlay.resize()
        self._mark_overlay_dirty()

    def _mark_overlay_dirty(self) -> None:
        if self.on_overlay_dirty is not None:
            self.on_overlay_dirty()

    def _autoscale(self) -> bool:
        # the window follows the live candle; ghosts only fill the lookahead
        # slots after it and never move the window on their own
        live = self._live.extent()
        if live is None:
            return False
        tf = self.timeframe
        live_end = live[1]
        x_lo = live_end - self.visible_bars * tf
        x_hi = live_end + self.ghost_lookahead * tf

        visible = [b for b in self.live_series.bars if b.time >= x_lo]
        visible += [b for b in self.ghost_series.bars if live_end < b.time <= x_hi]
        y_lo = min(b.low for b in visible)
        y_hi = max(b.high for b in visible)
        pad = max((y_hi - y_lo) * 0.1, 1e-5)

        new_x = (x_lo - tf, x_hi + tf)
        new_y = (y_lo - pad, y_hi + pad)
        if new_x == tuple(self.ax.get_xlim()) and new_y == tuple(self.ax.get_ylim()):
            return False
        self.ax.set_xlim(*new_x)
        self.ax.set_ylim(*new_y)
        return True

    def refresh(self) -> None:
        """Redraw candles if either series changed since the last refresh."""
        half_w = 0.35 * self.timeframe
        changed = False
        for artists in (self._ghost, self._live):
            if artists.drawn_version != artists.series.version:
                artists.draw(half_w)
                changed = True
        if not changed:
            return
        if self._autoscale():
            self._mark_overlay_dirty()
        self.fig.canvas.draw_idle()

    def close(self) -> None:
        self.fig.canvas.mpl_disconnect(self._cid_resize)
        self.live_series.scale = None
        plt.close(self.fig)


async def chart_view_task(view: ChartView, update_hz: float = 30.0) -> None:
    """
    Matplotlib pump. Uses plt.pause() to process GUI events.
    Runs in the same asyncio thread; returns when the window is closed.
    """
    dt = 1.0 / max(1.0, float(update_hz))

    while True:
        plt.pause(0.001)

        if not plt.fignum_exists(view.fig.number):
            LOGGER.info("chart window closed")
            view.live_series.scale = None
            break

        view.refresh()
        await asyncio.sleep(dt)
