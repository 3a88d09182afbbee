import asyncio
import os
import random
import sys

import matplotlib

matplotlib.use("Agg")

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from candles import Bar, flat_bar  # noqa: E402
from config import FeedConfig  # noqa: E402
from ghost_queue import GhostQueue  # noqa: E402
from live_candle import LiveCandleController  # noqa: E402
from surface import CandleSeries  # noqa: E402


class ManualFrameClock:
    """Virtual frame clock: every frame advances time by frame_ms and yields once."""

    def __init__(self, frame_ms=16.0):
        self.t = 0.0
        self.frame_ms = frame_ms
        self.frames = 0
        self.sleeps = []

    def now_ms(self):
        return self.t

    async def next_frame(self):
        await asyncio.sleep(0)
        self.t += self.frame_ms
        self.frames += 1
        return self.t

    async def sleep_ms(self, ms):
        self.sleeps.append(ms)
        await asyncio.sleep(0)
        self.t += ms


class RecordingSeries(CandleSeries):
    """CandleSeries that also records every call with a snapshot of the bar."""

    def __init__(self, name="live", y=None):
        super().__init__(name)
        self.calls = []
        if y is not None:
            self.scale = lambda price: y

    def set_data(self, bars):
        self.calls.append(("set_data", [b.copy() for b in bars]))
        super().set_data(bars)

    def update(self, bar):
        self.calls.append(("update", bar.copy()))
        super().update(bar)

    def updates(self):
        return [b for kind, b in self.calls if kind == "update"]


class RecordingCanvas:
    def __init__(self, width=800.0, height=600.0):
        self.width = width
        self.height = height
        self.ops = []

    def clear(self):
        self.ops.append(("clear",))

    def hline(self, y, color, linewidth):
        self.ops.append(("hline", y, color, linewidth))

    def text_right(self, x, y, s, color, fontsize):
        self.ops.append(("text", x, y, s, color, fontsize))

    def flush(self):
        self.ops.append(("flush",))

    def kinds(self):
        return [op[0] for op in self.ops]


@pytest.fixture
def seed_bar():
    return flat_bar(1000, 1.2345)


@pytest.fixture
def clock():
    return ManualFrameClock()


@pytest.fixture
def canvas():
    return RecordingCanvas()


@pytest.fixture
def make_feed(clock):
    """Build (controller, live_series, ghost_series) with recording fakes."""

    def _make(cfg=None, seed=7, y=300.0):
        cfg = cfg or FeedConfig()
        live = RecordingSeries("live", y=y)
        ghost_series = RecordingSeries("ghost")
        ghost = GhostQueue(ghost_series, random.Random(seed), count=cfg.ghost_queue_length, timeframe=cfg.timeframe)
        ctl = LiveCandleController(live, ghost, clock, cfg=cfg)
        return ctl, live, ghost_series

    return _make


async def drain(task):
    """Await an animation task handle, if there is one."""
    if task is not None:
        await task


def bar(time_s, o, h=None, lo=None, c=None):
    c = o if c is None else c
    h = max(o, c) if h is None else h
    lo = min(o, c) if lo is None else lo
    return Bar(time=time_s, open=o, high=h, low=lo, close=c)
