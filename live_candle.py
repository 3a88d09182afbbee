"""
Live candle state machine.

UNINITIALIZED --first bar--> OPEN --same bar / flip--> OPEN ...

- same bar (time == live.time): the live candle is kept and its tick path is
  handed to the animation scheduler.
- flip (time == live.time + timeframe): the outgoing candle is finalized with
  close = incoming.open and upserted exactly once, a flat candle at
  incoming.open becomes live, the ghost queue is regenerated and the overlay
  redrawn.
- anything else is rejected and logged; state is left untouched.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Sequence

from animation import AnimationScheduler, FrameClock
from candles import Bar, flat_bar, update_bar
from config import FeedConfig
from errors import InvalidBarOrdering
from ghost_queue import GhostQueue
from overlay import OverlayCanvas, draw_overlay
from state import FeedPhase, FeedState, push_event
from surface import SeriesSurface

LOGGER = logging.getLogger(__name__)


class Transition(str, Enum):
    FIRST = "first"
    SAME_BAR = "same_bar"
    FLIP = "flip"
    REJECTED = "rejected"


class LiveCandleController:
    def __init__(
        self,
        live_series: SeriesSurface,
        ghost: GhostQueue,
        clock: FrameClock,
        *,
        cfg: Optional[FeedConfig] = None,
        overlay_canvas: Optional[OverlayCanvas] = None,
    ) -> None:
        self.cfg = cfg or FeedConfig()
        self.state = FeedState()
        self.live_series = live_series
        self.ghost = ghost
        self.overlay_canvas = overlay_canvas
        self.scheduler = AnimationScheduler(
            clock,
            self._on_animation_sample,
            tick_duration_ms=self.cfg.tick_duration_ms,
            inter_tick_pause_ms=self.cfg.inter_tick_pause_ms,
        )

    @property
    def live(self) -> Optional[Bar]:
        return self.state.live

    @property
    def phase(self) -> FeedPhase:
        return self.state.phase

    def attach_overlay(self, canvas: Optional[OverlayCanvas]) -> None:
        self.overlay_canvas = canvas
        self.redraw_overlay()

    def ingest(self, bar: Bar, micro_ticks: Optional[Sequence[float]] = None) -> Transition:
        """Apply one incoming bar (and its tick path) to the live candle."""
        st = self.state
        if st.disposed:
            return Transition.REJECTED

        if not bar.is_finite():
            st.stats.rejected += 1
            LOGGER.warning("rejected non-finite bar %s", bar)
            return Transition.REJECTED

        if st.live is None:
            st.stats.bars_in += 1
            self._open_first(bar)
            return Transition.FIRST

        try:
            transition = self._classify(st.live, bar)
        except InvalidBarOrdering as e:
            st.stats.rejected += 1
            LOGGER.warning("rejected bar: %s", e)
            push_event(st, f"REJECT t={bar.time} live={st.live.time}")
            return Transition.REJECTED

        st.stats.bars_in += 1
        if transition is Transition.SAME_BAR:
            st.stats.same_bar_updates += 1
            if micro_ticks:
                self.scheduler.start(st.live, micro_ticks)
            return transition

        self._flip(bar)
        return transition

    def _classify(self, live: Bar, incoming: Bar) -> Transition:
        if incoming.time == live.time:
            return Transition.SAME_BAR
        if incoming.time == live.time + self.cfg.timeframe:
            return Transition.FLIP
        raise InvalidBarOrdering(live.time, incoming.time, self.cfg.timeframe)

    def _open_first(self, bar: Bar) -> None:
        st = self.state
        st.live = bar.copy()
        st.phase = FeedPhase.OPEN
        self.live_series.update(st.live)
        self.ghost.initialize(bar)
        push_event(st, f"OPEN  t={bar.time} @ {bar.open:.5f}")
        LOGGER.info("feed opened at t=%d price=%.5f", bar.time, bar.open)
        self.redraw_overlay()

    def _flip(self, incoming: Bar) -> None:
        st = self.state
        # must happen before the new live candle exists
        self.scheduler.cancel()

        outgoing = st.live
        update_bar(outgoing, incoming.open)
        self.live_series.update(outgoing)
        st.last_finalized = outgoing.copy()
        st.finalized_tape.appendleft(st.last_finalized)

        st.live = flat_bar(incoming.time, incoming.open)
        self.live_series.update(st.live)

        self.ghost.regenerate(incoming)
        st.stats.flips += 1

        LOGGER.debug(
            "flip t=%d -> t=%d final O=%.5f H=%.5f L=%.5f C=%.5f",
            outgoing.time, incoming.time, outgoing.open, outgoing.high, outgoing.low, outgoing.close,
        )
        push_event(st, f"FLIP  t={outgoing.time} C={outgoing.close:.5f}")
        self.redraw_overlay()

    def _on_animation_sample(self, candle: Bar) -> None:
        st = self.state
        if st.disposed or candle is not st.live:
            return
        self.live_series.update(candle)
        self.redraw_overlay()

    def redraw_overlay(self) -> bool:
        """Repaint the overlay for the current live close. Returns True if the price line was drawn."""
        st = self.state
        if st.disposed or self.overlay_canvas is None:
            return False

        price = st.live.close if st.live is not None else None
        drawn = draw_overlay(self.overlay_canvas, price, self.live_series.price_to_coordinate)
        if drawn:
            st.stats.overlay_draws += 1
        else:
            st.stats.overlay_skips += 1
        return drawn

    def dispose(self) -> None:
        """Stop animating and ignore any further input. Synchronous."""
        self.scheduler.cancel()
        self.state.disposed = True

    async def aclose(self) -> None:
        self.state.disposed = True
        await self.scheduler.aclose()
