"""
Realtime driver: a fixed-interval task that manufactures the next synthetic
bar each period and feeds it to the live candle controller.

With updates_per_bar > 1 the driver emits same-bar updates (same time, new
close, with a tick path) before advancing to the next bar.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
import time
from typing import Callable, List, Optional, Tuple

from candles import Bar, bucket_start, flat_bar, generate_micro_ticks, generate_next_ohlc
from config import FeedConfig
from live_candle import LiveCandleController
from surface import SeriesSurface

LOGGER = logging.getLogger(__name__)


class RealtimeDriver:
    def __init__(
        self,
        controller: LiveCandleController,
        live_series: SeriesSurface,
        rng: random.Random,
        *,
        cfg: Optional[FeedConfig] = None,
        now_s: Callable[[], float] = time.time,
    ) -> None:
        self.controller = controller
        self.live_series = live_series
        self.cfg = cfg or controller.cfg
        self._rng = rng
        self._now_s = now_s

        self._last: Optional[Bar] = None
        self._updates_in_bar = 0
        self._task: Optional[asyncio.Task[None]] = None
        self.n_fired = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last(self) -> Optional[Bar]:
        return self._last

    def seed(self) -> Bar:
        """Push the starting bar (one timeframe before now) to the live series."""
        tf = self.cfg.timeframe
        start = bucket_start(self._now_s(), tf) - tf
        last = flat_bar(start, self.cfg.seed_price)
        self.live_series.set_data([last])
        self._last = last
        self._updates_in_bar = 0
        LOGGER.info("seeded t=%d @ %.5f", last.time, last.close)
        return last

    def next_update(self) -> Tuple[Bar, List[float]]:
        """Build the next bar and its tick path."""
        if self._last is None:
            self.seed()
        prev = self._last
        cfg = self.cfg
        gen = dict(timeframe=cfg.timeframe, noise_epsilon=cfg.noise_epsilon, wick_epsilon=cfg.wick_epsilon)

        same_bar = self.controller.live is not None and self._updates_in_bar + 1 < cfg.updates_per_bar
        if same_bar:
            step = generate_next_ohlc(prev, self._rng, **gen)
            nxt = Bar(
                time=prev.time,
                open=prev.open,
                high=max(prev.high, step.high),
                low=min(prev.low, step.low),
                close=step.close,
            )
            # start from the close the live candle is showing; after a flip that is
            # the flat open, not the generated close of the previous update
            ticks = generate_micro_ticks(self.controller.live.close, nxt.close, cfg.micro_tick_count)
            self._updates_in_bar += 1
        else:
            nxt = generate_next_ohlc(prev, self._rng, **gen)
            ticks = generate_micro_ticks(nxt.open, nxt.close, cfg.micro_tick_count)
            self._updates_in_bar = 0

        self._last = nxt
        return nxt, ticks

    def fire(self) -> None:
        """One driver period."""
        bar, ticks = self.next_update()
        self.controller.ingest(bar, ticks)
        self.n_fired += 1

    def start(self) -> asyncio.Task[None]:
        if self._task is not None and not self._task.done():
            return self._task
        if self._last is None:
            self.seed()
        self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    def stop(self) -> None:
        """Cancel the timer and any pending animation. Synchronous."""
        task = self._task
        if task is not None and not task.done():
            task.cancel()
        self.controller.dispose()

    async def aclose(self) -> None:
        self.stop()
        task, self._task = self._task, None
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self.controller.aclose()

    async def _run(self) -> None:
        period = self.cfg.driver_interval_ms / 1000.0
        next_t = time.perf_counter() + period

        while True:
            await asyncio.sleep(max(0.0, next_t - time.perf_counter()))
            try:
                self.fire()
            except Exception:
                # keep the timer alive; the next period starts from fresh state
                LOGGER.exception("driver period failed")

            next_t += period
            now = time.perf_counter()
            if now - next_t > period:
                # fell more than a period behind: resync instead of bursting
                next_t = now + period
