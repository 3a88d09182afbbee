"""
Micro-tick animation scheduler.

Animates the live candle's close through a tick path, one eased move per
tick, sampled once per frame. Only one loop runs at a time: start() cancels
the previous loop before scheduling a new one, and cancel() is synchronous
from the caller's point of view (no sample is written after it returns).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
import time
from typing import Callable, List, Optional, Protocol, Sequence, Set

from candles import Bar, ease_out, update_bar
from config import FRAME_HZ, INTER_TICK_PAUSE_MS, TICK_DURATION_MS
from errors import DegenerateInterpolation

LOGGER = logging.getLogger(__name__)


class FrameClock(Protocol):
    def now_ms(self) -> float: ...

    async def next_frame(self) -> float: ...

    async def sleep_ms(self, ms: float) -> None: ...


class LoopFrameClock:
    """Frame pacing on the running event loop at a fixed rate."""

    def __init__(self, hz: float = FRAME_HZ) -> None:
        self.period_s = 1.0 / max(1.0, float(hz))

    def now_ms(self) -> float:
        return time.perf_counter() * 1000.0

    async def next_frame(self) -> float:
        await asyncio.sleep(self.period_s)
        return self.now_ms()

    async def sleep_ms(self, ms: float) -> None:
        await asyncio.sleep(max(0.0, ms) / 1000.0)


def _checked(value: float, last_valid: float) -> float:
    if not math.isfinite(value):
        raise DegenerateInterpolation(value, last_valid)
    return value


class AnimationScheduler:
    def __init__(
        self,
        clock: FrameClock,
        on_sample: Callable[[Bar], None],
        *,
        tick_duration_ms: float = TICK_DURATION_MS,
        inter_tick_pause_ms: float = INTER_TICK_PAUSE_MS,
    ) -> None:
        self._clock = clock
        self._on_sample = on_sample
        self.tick_duration_ms = float(tick_duration_ms)
        self.inter_tick_pause_ms = float(inter_tick_pause_ms)

        self._task: Optional[asyncio.Task[None]] = None
        self._cancelled: Set[asyncio.Task[None]] = set()
        self._generation = 0

        self.n_loops = 0
        self.n_samples = 0
        self.n_degenerate = 0
        self.n_cancelled = 0

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def task(self) -> Optional[asyncio.Task[None]]:
        return self._task

    def start(self, candle: Bar, ticks: Sequence[float]) -> Optional[asyncio.Task[None]]:
        """Cancel any running loop, then animate candle through ticks. Returns the task handle."""
        self.cancel()
        path: List[float] = list(ticks)
        if not path:
            return None

        self._generation += 1
        gen = self._generation
        self._task = asyncio.get_running_loop().create_task(self._run(candle, path, gen))
        self.n_loops += 1
        return self._task

    def cancel(self) -> None:
        """Cancel the running loop, if any."""
        task, self._task = self._task, None
        # a frame already queued for the old loop sees the new generation and stops writing
        self._generation += 1
        if task is not None and not task.done():
            task.cancel()
            self._cancelled.add(task)
            task.add_done_callback(self._cancelled.discard)
            self.n_cancelled += 1

    async def aclose(self) -> None:
        """Cancel and wait for every cancelled loop to unwind."""
        self.cancel()
        for task in list(self._cancelled):
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _current(self, gen: int) -> bool:
        return gen == self._generation

    async def _run(self, candle: Bar, ticks: List[float], gen: int) -> None:
        duration = self.tick_duration_ms
        last_valid = candle.close if math.isfinite(candle.close) else candle.open
        from_price = last_valid

        for i, target in enumerate(ticks):
            try:
                target = _checked(target, last_valid)
            except DegenerateInterpolation as e:
                self.n_degenerate += 1
                LOGGER.warning("skipping tick %d/%d: %s", i + 1, len(ticks), e)
                continue

            start_ms = await self._clock.next_frame()
            ts = start_ms
            while True:
                if not self._current(gen):
                    return

                elapsed = ts - start_ms
                try:
                    value = _checked(ease_out(from_price, target, elapsed, duration), last_valid)
                except DegenerateInterpolation as e:
                    self.n_degenerate += 1
                    LOGGER.warning("holding close: %s", e)
                    candle.close = last_valid
                else:
                    update_bar(candle, value)
                    last_valid = value
                    self.n_samples += 1
                    self._on_sample(candle)

                if elapsed >= duration:
                    break
                ts = await self._clock.next_frame()

            from_price = last_valid
            if i + 1 < len(ticks) and self.inter_tick_pause_ms > 0.0:
                await self._clock.sleep_ms(self.inter_tick_pause_ms)

        LOGGER.debug("tick path done at %.5f (t=%d)", candle.close, candle.time)
