"""
Feed error taxonomy.

Runtime errors (SurfaceUnavailable, InvalidBarOrdering, DegenerateInterpolation)
are raised and caught inside the component that detects them; callers only
ever see a logged skip. ConfigError is raised at startup.
"""

from __future__ import annotations


class FeedError(Exception):
    """Base class for feed errors."""


class ConfigError(FeedError, ValueError):
    """Invalid feed configuration."""


class SurfaceUnavailable(FeedError):
    """Rendering surface or coordinate mapping not ready."""


class InvalidBarOrdering(FeedError):
    """Incoming bar time is neither the live bar's time nor exactly one timeframe later."""

    def __init__(self, live_time: int, incoming_time: int, timeframe: int) -> None:
        super().__init__(
            f"bar time {incoming_time} after live {live_time} (expected {live_time} or {live_time + timeframe})"
        )
        self.live_time = live_time
        self.incoming_time = incoming_time
        self.timeframe = timeframe


class DegenerateInterpolation(FeedError):
    """Tick target or interpolated value is not finite."""

    def __init__(self, value: float, last_valid: float) -> None:
        super().__init__(f"non-finite price {value!r}; holding {last_valid:.5f}")
        self.value = value
        self.last_valid = last_valid
