"""
Rendering functions for the left (live bar) and right (ghost / tape) panes.
"""

from __future__ import annotations

from typing import List, Optional

from prompt_toolkit.formatted_text import ANSI

from candles import Bar
from live_candle import LiveCandleController
from state import UiControlState

# --- ANSI color helpers ---
RESET = "\x1b[0m"
FG_GREEN = "\x1b[32m"
FG_RED = "\x1b[31m"
FG_YELLOW = "\x1b[33m"
FG_DIM = "\x1b[2m"


def color_signed(x: float, s: str) -> str:
    """Color a preformatted signed string based on x."""
    if x > 0:
        return f"{FG_GREEN}{s}{RESET}"
    if x < 0:
        return f"{FG_RED}{s}{RESET}"
    return s


def fit_to_height(lines: List[str], height: int) -> ANSI:
    """Pad or truncate rendered text to exactly `height` rows."""
    if len(lines) < height:
        lines = lines + [""] * (height - len(lines))
    else:
        lines = lines[:height]
    return ANSI("\n".join(lines))


def format_bar_row(bar: Optional[Bar], tag: str = "", tag_w: int = 6) -> str:
    """One row: tag, time, OHLC to 5 dp and the body move in pipettes."""
    if bar is None:
        return f"{tag:<{tag_w}}{'-':>10}"
    move = (bar.close - bar.open) * 1e5
    body = color_signed(move, f"{move:+5.1f}")
    return (
        f"{tag:<{tag_w}}{bar.time:>10}  "
        f"{bar.open:0.5f} {bar.high:0.5f} {bar.low:0.5f} {bar.close:0.5f}  {body}"
    )


def bar_header(tag_w: int = 6) -> str:
    return f"{'':<{tag_w}}{'time':>10}  {'open':>7} {'high':>7} {'low':>7} {'close':>7}  {'pip':>5}"


def render_left(ctl: LiveCandleController, height: int) -> ANSI:
    """Render LEFT pane: live candle, last finalized bar and feed counters."""
    st = ctl.state
    s = st.stats
    sch = ctl.scheduler

    lines: List[str] = []
    lines.append(f"LIVE FEED | phase: {st.phase.value}   (d ghosts, q quit)")
    lines.append("-" * 60)
    lines.append(bar_header())
    lines.append(format_bar_row(st.live, "LIVE"))
    lines.append(format_bar_row(st.last_finalized, "FINAL"))
    lines.append("")

    anim = "*" if sch.active else "."
    lines.append(f"animating : {anim}  loops {sch.n_loops}  cancelled {sch.n_cancelled}")
    lines.append(f"samples   : {sch.n_samples}  degenerate {sch.n_degenerate}")
    lines.append("")
    lines.append(f"bars in   : {s.bars_in}   same-bar {s.same_bar_updates}   flips {s.flips}")
    lines.append(f"rejected  : {s.rejected}")
    lines.append(f"overlay   : drawn {s.overlay_draws}  skipped {s.overlay_skips}")
    lines.append(f"ghost gen : {ctl.ghost.regenerations}")
    lines.append("-" * 60)

    lines.append("EVENTS")
    for ev in st.events:
        lines.append(f"{FG_DIM}{ev}{RESET}")

    return fit_to_height(lines, height)


def render_right_top(ctl: LiveCandleController, ui: UiControlState, height: int) -> ANSI:
    """Render RIGHT-TOP pane: ghost queue."""
    ghosts = ctl.ghost.bars
    lines: List[str] = []
    lines.append(f"GHOST QUEUE ({len(ghosts)}/{ctl.ghost.count})")
    lines.append("=" * 20)

    if not ui.ghost_detail:
        if ghosts:
            lines.append(f"t={ghosts[0].time}..{ghosts[-1].time}  tail close {ghosts[-1].close:0.5f}")
        return fit_to_height(lines, height)

    lines.append(bar_header())
    for i, g in enumerate(ghosts):
        lines.append(f"{FG_YELLOW}{format_bar_row(g, f'G{i + 1}')}{RESET}")

    live = ctl.live
    if live is not None and ghosts:
        drift = (ghosts[-1].close - live.close) * 1e5
        lines.append("")
        lines.append(f"tail vs live: {color_signed(drift, f'{drift:+0.1f}')} pip")

    return fit_to_height(lines, height)


def render_right_bottom(ctl: LiveCandleController, height: int) -> ANSI:
    """Render RIGHT-BOTTOM pane: finalized bar tape (newest on top)."""
    lines: List[str] = ["FINALIZED", "=" * 9, bar_header()]
    for bar in ctl.state.finalized_tape:
        lines.append(format_bar_row(bar))
    return fit_to_height(lines, height)
