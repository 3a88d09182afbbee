"""
Configuration constants for the synthetic candle feed.

Module constants are the defaults. FeedConfig collects them and can be
overridden from FEED_* environment variables (a .env file is honoured).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Optional

from dotenv import load_dotenv

from errors import ConfigError


# --- Bars ---
TIMEFRAME_S: int = 1
SEED_PRICE: float = 1.2345

# OHLC generator amplitudes: ~5 pipettes body noise, ~3 pipettes wick
NOISE_EPSILON: float = 0.0005
WICK_EPSILON: float = 0.0003

# --- Micro-ticks / animation ---
MICRO_TICK_COUNT: int = 6
TICK_DURATION_MS: float = 80.0
INTER_TICK_PAUSE_MS: float = 10.0
FRAME_HZ: float = 60.0

# --- Ghost projection ---
GHOST_QUEUE_LENGTH: int = 6

# --- Driver ---
DRIVER_INTERVAL_MS: float = 1000.0
UPDATES_PER_BAR: int = 1

# --- UI ---
UI_HZ: float = 10.0
LEFT_W: int = 64
TAPE_LEN: int = 12
EVENT_LOG_LEN: int = 20
LOG_DIR: str = "logs"

# --- Styling (opaque to the core) ---
BACKGROUND_COLOR: str = "#0e1116"
TEXT_COLOR: str = "#ffffff"

LIVE_SERIES_OPTIONS = {
    "upColor": "#2ecc71",
    "downColor": "#e74c3c",
    "borderVisible": False,
    "wickUpColor": "#2ecc71",
    "wickDownColor": "#e74c3c",
    "priceLineVisible": False,
    "lastValueVisible": False,
}

GHOST_SERIES_OPTIONS = {
    "upColor": "rgba(255,215,0,0.4)",
    "downColor": "rgba(255,215,0,0.4)",
    "borderVisible": False,
    "wickUpColor": "rgba(255,215,0,0.4)",
    "wickDownColor": "rgba(255,215,0,0.4)",
    "priceLineVisible": False,
    "lastValueVisible": False,
}

OVERLAY_LINE_COLOR: str = "#45caff"
OVERLAY_GRID_COLOR: str = "rgba(255,255,255,0.08)"
OVERLAY_FONT_PX: int = 12
OVERLAY_GRID_ROWS: int = 6
OVERLAY_LABEL_PAD_X: float = 8.0
OVERLAY_LABEL_PAD_Y: float = 6.0


ENV_PREFIX = "FEED_"


@dataclass(slots=True)
class FeedConfig:
    """Recognized feed options."""
    timeframe: int = TIMEFRAME_S
    ghost_queue_length: int = GHOST_QUEUE_LENGTH
    micro_tick_count: int = MICRO_TICK_COUNT
    noise_epsilon: float = NOISE_EPSILON
    wick_epsilon: float = WICK_EPSILON
    tick_duration_ms: float = TICK_DURATION_MS
    inter_tick_pause_ms: float = INTER_TICK_PAUSE_MS

    driver_interval_ms: float = DRIVER_INTERVAL_MS
    updates_per_bar: int = UPDATES_PER_BAR
    seed_price: float = SEED_PRICE
    frame_hz: float = FRAME_HZ
    random_seed: Optional[int] = None

    def validate(self) -> "FeedConfig":
        """Raise ConfigError on values the feed can't run with. Returns self."""
        positive_ints = ("timeframe", "ghost_queue_length", "micro_tick_count", "updates_per_bar")
        for name in positive_ints:
            v = getattr(self, name)
            if not isinstance(v, int) or v < 1:
                raise ConfigError(f"{name} must be a positive integer, got {v!r}")

        positive = ("tick_duration_ms", "driver_interval_ms", "frame_hz", "seed_price")
        for name in positive:
            if float(getattr(self, name)) <= 0.0:
                raise ConfigError(f"{name} must be > 0, got {getattr(self, name)!r}")

        non_negative = ("noise_epsilon", "wick_epsilon", "inter_tick_pause_ms")
        for name in non_negative:
            if float(getattr(self, name)) < 0.0:
                raise ConfigError(f"{name} must be >= 0, got {getattr(self, name)!r}")
        return self

    @classmethod
    def from_env(cls, environ: Optional[dict] = None, *, dotenv: bool = True) -> "FeedConfig":
        """
        Build a config from FEED_<FIELD> variables, e.g. FEED_GHOST_QUEUE_LENGTH=8.

        Unset variables keep the module defaults.
        """
        if environ is None:
            if dotenv:
                load_dotenv(override=False)
            environ = dict(os.environ)

        cfg = cls()
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None or str(raw).strip() == "":
                continue
            setattr(cfg, f.name, _coerce(f.name, getattr(cfg, f.name), str(raw).strip()))
        return cfg.validate()


def _coerce(name: str, default, raw: str):
    try:
        if name == "random_seed" or isinstance(default, int):
            return int(raw)
        return float(raw)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{name.upper()}={raw!r} is not a number") from None
