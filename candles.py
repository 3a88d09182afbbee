"""
Synthetic OHLC bars and micro-tick paths.

Bars are generated one from the previous; every generated bar satisfies
high >= max(open, close) and low <= min(open, close).
"""

from __future__ import annotations

import math
import random
from dataclasses import asdict, dataclass
from typing import List

from config import MICRO_TICK_COUNT, NOISE_EPSILON, TIMEFRAME_S, WICK_EPSILON


HALF_PI: float = 0.5 * math.pi


@dataclass(slots=True)
class Bar:
    """One OHLC bar; time is integer seconds at the bar start."""
    time: int
    open: float
    high: float
    low: float
    close: float

    def copy(self) -> "Bar":
        return Bar(self.time, self.open, self.high, self.low, self.close)

    def as_dict(self) -> dict:
        """Wire shape exchanged with the chart surface."""
        return asdict(self)

    def is_ordered(self) -> bool:
        """True if high/low bracket open and close."""
        return self.high >= max(self.open, self.close) and self.low <= min(self.open, self.close)

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.open, self.high, self.low, self.close))


def bucket_start(ts_s: float, timeframe: int) -> int:
    """Return the bar start (seconds) for a timestamp in seconds."""
    return int(ts_s) // timeframe * timeframe


def flat_bar(time_s: int, price: float) -> Bar:
    """Create a bar with OHLC all set to price."""
    return Bar(time=time_s, open=price, high=price, low=price, close=price)


def update_bar(bar: Bar, price: float) -> None:
    """Set close to price and widen high/low to include it."""
    if price > bar.high:
        bar.high = price
    if price < bar.low:
        bar.low = price
    bar.close = price


def generate_next_ohlc(
    prev: Bar,
    rng: random.Random,
    *,
    timeframe: int = TIMEFRAME_S,
    noise_epsilon: float = NOISE_EPSILON,
    wick_epsilon: float = WICK_EPSILON,
) -> Bar:
    """
    Build the next synthetic bar from prev.

    open is prev.close, close is open plus uniform noise in
    [-noise_epsilon/2, noise_epsilon/2], and the wicks extend the body by
    independent uniform fractions of wick_epsilon.
    """
    base = prev.close
    noise = (rng.random() - 0.5) * noise_epsilon
    close = base + noise
    high = max(base, close) + rng.random() * wick_epsilon
    low = min(base, close) - rng.random() * wick_epsilon

    return Bar(time=prev.time + timeframe, open=base, high=high, low=low, close=close)


def generate_micro_ticks(from_price: float, to_price: float, count: int = MICRO_TICK_COUNT) -> List[float]:
    """
    Quarter-sine ease-out path from from_price to to_price.

    Returns count targets; increments shrink toward the end and the last
    element is exactly to_price.
    """
    if count < 1:
        raise ValueError(f"count must be >= 1, got {count}")

    span = to_price - from_price
    lo = min(from_price, to_price)
    hi = max(from_price, to_price)

    ticks: List[float] = []
    for i in range(1, count):
        eased = from_price + span * math.sin((i / count) * HALF_PI)
        # rounding can push a tick a ulp past the endpoints
        ticks.append(min(hi, max(lo, eased)))
    ticks.append(to_price)
    return ticks


def ease_out(from_price: float, target: float, elapsed_ms: float, duration_ms: float) -> float:
    """Quarter-sine interpolation at elapsed_ms into a duration_ms move. Clamped at the target."""
    if duration_ms <= 0.0:
        return target
    t = min(max(elapsed_ms / duration_ms, 0.0), 1.0)
    if t >= 1.0:
        return target
    return from_price + (target - from_price) * math.sin(t * HALF_PI)


def chain_bars(seed: Bar, count: int, rng: random.Random, **gen_kwargs) -> List[Bar]:
    """Chain generate_next_ohlc count times starting after seed."""
    out: List[Bar] = []
    prev = seed
    for _ in range(count):
        nxt = generate_next_ohlc(prev, rng, **gen_kwargs)
        out.append(nxt)
        prev = nxt
    return out

