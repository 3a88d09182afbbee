"""
Chart surface interface and an in-memory candle series.

The feed only talks to a series through set_data / update /
price_to_coordinate. CandleSeries keeps copies of what it is given, so later
mutation of the live candle never leaks into the stored history.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Protocol, Sequence, TYPE_CHECKING

from errors import SurfaceUnavailable

if TYPE_CHECKING:
    from candles import Bar

LOGGER = logging.getLogger(__name__)

PriceScale = Callable[[float], Optional[float]]


class SeriesSurface(Protocol):
    def set_data(self, bars: Sequence["Bar"]) -> None: ...

    def update(self, bar: "Bar") -> None: ...

    def price_to_coordinate(self, price: float) -> Optional[float]: ...


class CandleSeries:
    """
    Ordered bar store with upsert semantics.

    update() replaces the last bar when times match, appends when newer and
    drops (with a warning) anything older than the last bar.
    """

    def __init__(self, name: str, options: Optional[dict] = None, *, maxlen: int = 2000) -> None:
        self.name = name
        self.options = dict(options or {})
        self.maxlen = maxlen
        self.scale: Optional[PriceScale] = None

        self._bars: List["Bar"] = []
        self.n_set_data = 0
        self.n_updates = 0
        self.n_dropped = 0
        self.version = 0

    @property
    def bars(self) -> List["Bar"]:
        return list(self._bars)

    @property
    def last(self) -> Optional["Bar"]:
        return self._bars[-1] if self._bars else None

    def __len__(self) -> int:
        return len(self._bars)

    def set_data(self, bars: Sequence["Bar"]) -> None:
        self._bars = [b.copy() for b in bars][-self.maxlen:]
        self.n_set_data += 1
        self.version += 1

    def update(self, bar: "Bar") -> None:
        last = self.last
        if last is not None and bar.time < last.time:
            self.n_dropped += 1
            LOGGER.warning("%s: dropped update t=%d older than last t=%d", self.name, bar.time, last.time)
            return

        if last is not None and bar.time == last.time:
            self._bars[-1] = bar.copy()
        else:
            self._bars.append(bar.copy())
            if len(self._bars) > self.maxlen:
                del self._bars[: len(self._bars) - self.maxlen]

        self.n_updates += 1
        self.version += 1

    def price_to_coordinate(self, price: float) -> Optional[float]:
        if self.scale is None:
            raise SurfaceUnavailable(f"{self.name}: no price scale attached")
        return self.scale(price)
