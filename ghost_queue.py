"""
Ghost queue: a fixed-length window of speculative future bars.

The queue is regenerated as a whole on every real-bar flip and pushed to the
ghost series with set_data. Regeneration seeds from the queue's own tail
(continuation of prior speculation), not from the newly finalized real bar.
"""

from __future__ import annotations

import logging
import random
from typing import Iterator, Optional, Tuple

from candles import Bar, chain_bars
from config import GHOST_QUEUE_LENGTH, NOISE_EPSILON, TIMEFRAME_S, WICK_EPSILON
from surface import SeriesSurface

LOGGER = logging.getLogger(__name__)


class GhostQueue:
    def __init__(
        self,
        series: Optional[SeriesSurface],
        rng: random.Random,
        *,
        count: int = GHOST_QUEUE_LENGTH,
        timeframe: int = TIMEFRAME_S,
        noise_epsilon: float = NOISE_EPSILON,
        wick_epsilon: float = WICK_EPSILON,
    ) -> None:
        if count < 1:
            raise ValueError(f"ghost queue length must be >= 1, got {count}")
        self._series = series
        self._rng = rng
        self._count = count
        self._gen_kwargs = dict(timeframe=timeframe, noise_epsilon=noise_epsilon, wick_epsilon=wick_epsilon)
        self._bars: Tuple[Bar, ...] = ()
        self.regenerations: int = 0

    @property
    def bars(self) -> Tuple[Bar, ...]:
        return self._bars

    @property
    def count(self) -> int:
        return self._count

    def __len__(self) -> int:
        return len(self._bars)

    def __iter__(self) -> Iterator[Bar]:
        return iter(self._bars)

    def initialize(self, bar: Bar) -> Tuple[Bar, ...]:
        """Build the first queue from the bar that opened the feed."""
        return self._rebuild(bar)

    def regenerate(self, trigger: Bar) -> Tuple[Bar, ...]:
        """Rebuild after a flip. Seeds from the current tail if there is one, else from trigger."""
        seed = self._bars[-1] if self._bars else trigger
        return self._rebuild(seed)

    def _rebuild(self, seed: Bar) -> Tuple[Bar, ...]:
        # built fully before the swap so readers never see a partial queue
        new_bars = tuple(chain_bars(seed.copy(), self._count, self._rng, **self._gen_kwargs))
        self._bars = new_bars
        self.regenerations += 1

        if self._series is not None:
            self._series.set_data(list(new_bars))

        LOGGER.debug(
            "ghost queue rebuilt from t=%d: %d bars, t=%d..%d",
            seed.time, len(new_bars), new_bars[0].time, new_bars[-1].time,
        )
        return new_bars
