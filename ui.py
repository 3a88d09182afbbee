"""
Terminal dashboard: live candle and counters on the left, ghost queue above
the finalized tape on the right.

Pane heights follow the feed: the ghost pane holds one row per ghost bar (or a
single summary line in compact mode) and the tape pane holds TAPE_LEN bars.
"""

from __future__ import annotations

import asyncio

from prompt_toolkit.application import Application
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout import HSplit, VSplit, Layout
from prompt_toolkit.layout.containers import Window
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.layout.dimension import Dimension

from config import EVENT_LOG_LEN, LEFT_W, TAPE_LEN
from live_candle import LiveCandleController
from render import render_left, render_right_bottom, render_right_top
from state import UiControlState

# rows render_left prints above the event log
LEFT_HEADER_ROWS = 15


def left_pane_height() -> int:
    return LEFT_HEADER_ROWS + EVENT_LOG_LEN


def ghost_pane_height(ctl: LiveCandleController, ui: UiControlState) -> int:
    """Title and rule, then either the summary line or header + rows + drift line."""
    if not ui.ghost_detail:
        return 3
    return 2 + 1 + ctl.ghost.count + 2


def tape_pane_height() -> int:
    return 3 + TAPE_LEN


def build_keybindings(ctl: LiveCandleController, ui: UiControlState) -> KeyBindings:
    kb = KeyBindings()

    @kb.add("d")
    def _toggle_ghosts(event) -> None:
        ui.ghost_detail = not ui.ghost_detail
        event.app.invalidate()

    @kb.add("q")
    def _quit(event) -> None:
        # stop animating before the screen is torn down
        ctl.dispose()
        event.app.exit()

    return kb


def build_layout(ctl: LiveCandleController, ui: UiControlState) -> Layout:
    left = Window(
        content=FormattedTextControl(lambda: render_left(ctl, height=left_pane_height())),
        width=Dimension.exact(LEFT_W),
        dont_extend_width=True,
        wrap_lines=False,
    )
    ghosts = Window(
        content=FormattedTextControl(lambda: render_right_top(ctl, ui, height=ghost_pane_height(ctl, ui))),
        height=lambda: Dimension.exact(ghost_pane_height(ctl, ui)),
        wrap_lines=False,
    )
    tape = Window(
        content=FormattedTextControl(lambda: render_right_bottom(ctl, height=tape_pane_height())),
        height=Dimension(preferred=tape_pane_height()),
        wrap_lines=False,
    )
    right = HSplit([ghosts, Window(height=Dimension.exact(1), char="="), tape], padding=0)
    return Layout(VSplit([left, Window(width=1, char="│"), right], padding=0))


def build_app(ctl: LiveCandleController, ui: UiControlState, **io) -> Application:
    """Full-screen dashboard. io may carry input=/output= overrides."""
    return Application(
        layout=build_layout(ctl, ui),
        key_bindings=build_keybindings(ctl, ui),
        full_screen=True,
        **io,
    )


async def ui_refresh_loop(app: Application, hz: float) -> None:
    """Invalidate the UI on a fixed cadence; the feed never renders from its own callbacks."""
    period = 1.0 / hz
    while True:
        await asyncio.sleep(period)
        app.invalidate()
