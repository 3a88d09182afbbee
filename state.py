"""
Feed state models.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Optional

from candles import Bar
from config import EVENT_LOG_LEN, TAPE_LEN


class FeedPhase(str, Enum):
    UNINITIALIZED = "uninitialized"
    OPEN = "open"


@dataclass(slots=True)
class FeedStats:
    bars_in: int = 0
    same_bar_updates: int = 0
    flips: int = 0
    rejected: int = 0
    overlay_draws: int = 0
    overlay_skips: int = 0


@dataclass(slots=True)
class FeedState:
    """Everything mutable about the feed, owned by LiveCandleController."""
    phase: FeedPhase = FeedPhase.UNINITIALIZED
    live: Optional[Bar] = None
    last_finalized: Optional[Bar] = None
    disposed: bool = False
    stats: FeedStats = field(default_factory=FeedStats)

    # newest first, for the terminal dashboard
    finalized_tape: Deque[Bar] = field(default_factory=lambda: deque(maxlen=TAPE_LEN))
    events: Deque[str] = field(default_factory=lambda: deque(maxlen=EVENT_LOG_LEN))


def push_event(state: FeedState, line: str) -> None:
    state.events.appendleft(line)


@dataclass(slots=True)
class UiControlState:
    ghost_detail: bool = True
