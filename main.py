"""
Main entrypoint: wires the synthetic feed, the chart window and the UI.

- RealtimeDriver manufactures one bar update per period
- LiveCandleController applies it (animate / flip / ghost regeneration)
- optional matplotlib window renders both series and the overlay
- prompt_toolkit dashboard shows live bar, ghosts and counters
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import random
import time
from dataclasses import dataclass
from typing import List, Optional

from animation import FrameClock, LoopFrameClock
from config import GHOST_SERIES_OPTIONS, LIVE_SERIES_OPTIONS, LOG_DIR, UI_HZ, FeedConfig
from driver import RealtimeDriver
from ghost_queue import GhostQueue
from live_candle import LiveCandleController
from state import UiControlState
from surface import CandleSeries

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class Feed:
    cfg: FeedConfig
    live_series: CandleSeries
    ghost_series: CandleSeries
    controller: LiveCandleController
    driver: RealtimeDriver


def build_feed(cfg: FeedConfig, *, clock: Optional[FrameClock] = None) -> Feed:
    """Create series, ghost queue, controller and driver for one feed."""
    seed = cfg.random_seed
    bar_rng = random.Random(seed)
    ghost_rng = random.Random(None if seed is None else seed + 1)

    live_series = CandleSeries("live", LIVE_SERIES_OPTIONS)
    ghost_series = CandleSeries("ghost", GHOST_SERIES_OPTIONS)

    ghost = GhostQueue(
        ghost_series,
        ghost_rng,
        count=cfg.ghost_queue_length,
        timeframe=cfg.timeframe,
        noise_epsilon=cfg.noise_epsilon,
        wick_epsilon=cfg.wick_epsilon,
    )
    controller = LiveCandleController(
        live_series,
        ghost,
        clock or LoopFrameClock(cfg.frame_hz),
        cfg=cfg,
    )
    driver = RealtimeDriver(controller, live_series, bar_rng, cfg=cfg)
    return Feed(cfg, live_series, ghost_series, controller, driver)


def _log_path() -> str:
    """Return the default log path for this run."""
    os.makedirs(LOG_DIR, exist_ok=True)
    ts = time.strftime("%Y%m%d_%H%M%S")
    return os.path.join(LOG_DIR, f"feed_{ts}.log")


def setup_logging(level: str, *, to_file: bool) -> Optional[str]:
    """Configure root logging once. The full-screen UI owns stdout, so it logs to a file."""
    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    if to_file:
        path = _log_path()
        logging.basicConfig(level=level, format=fmt, filename=path, encoding="utf-8")
        return path
    logging.basicConfig(level=level, format=fmt)
    return None


async def run_app(
    cfg: FeedConfig,
    *,
    ui: bool = True,
    plot: bool = False,
    duration_s: Optional[float] = None,
) -> Feed:
    """Create and run the application. Returns the feed after teardown."""
    feed = build_feed(cfg)
    ctl = feed.controller
    tasks: List[asyncio.Task] = []

    view = None
    view_task: Optional[asyncio.Task] = None
    if plot:
        from chart_view import ChartView, chart_view_task

        view = ChartView(feed.live_series, feed.ghost_series, timeframe=cfg.timeframe)
        view.on_overlay_dirty = ctl.redraw_overlay
        ctl.attach_overlay(view.overlay)
        view_task = asyncio.create_task(chart_view_task(view))
        tasks.append(view_task)

    feed.driver.start()
    LOGGER.info("feed started: %s", cfg)

    try:
        if ui:
            from ui import build_app, ui_refresh_loop

            app = build_app(ctl, UiControlState())
            tasks.append(asyncio.create_task(ui_refresh_loop(app, hz=UI_HZ)))
            if duration_s:
                asyncio.get_running_loop().call_later(duration_s, lambda: app.is_running and app.exit())
            await app.run_async()
        elif view_task is not None:
            await asyncio.wait([view_task], timeout=duration_s)
        elif duration_s:
            await asyncio.sleep(duration_s)
        else:
            await asyncio.Event().wait()
    finally:
        # timer and animation go first so nothing draws through a closing window
        feed.driver.stop()
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await feed.driver.aclose()
        if view is not None:
            ctl.attach_overlay(None)
            view.close()

        s = ctl.state.stats
        LOGGER.info(
            "feed stopped: bars=%d flips=%d same_bar=%d rejected=%d samples=%d",
            s.bars_in, s.flips, s.same_bar_updates, s.rejected, ctl.scheduler.n_samples,
        )

    return feed


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Synthetic live candle feed with ghost projection.")
    p.add_argument("--plot", action="store_true", help="Open the matplotlib chart window.")
    p.add_argument("--no-ui", action="store_true", help="Run without the terminal dashboard (logs to stderr).")
    p.add_argument("--duration", type=float, default=None, help="Stop after this many seconds.")
    p.add_argument("--seed", type=int, default=None, help="Random seed for reproducible bars.")
    p.add_argument(
        "--updates-per-bar",
        type=int,
        default=None,
        help="Driver periods per bar; values > 1 add animated same-bar updates before each flip.",
    )
    p.add_argument("--interval-ms", type=float, default=None, help="Driver period in ms (default 1000).")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return p


def config_from_args(args: argparse.Namespace) -> FeedConfig:
    cfg = FeedConfig.from_env()
    if args.seed is not None:
        cfg.random_seed = args.seed
    if args.updates_per_bar is not None:
        cfg.updates_per_bar = args.updates_per_bar
    if args.interval_ms is not None:
        cfg.driver_interval_ms = args.interval_ms
    return cfg.validate()


def main() -> None:
    """Program entrypoint."""
    args = build_arg_parser().parse_args()
    ui = not args.no_ui

    log_path = setup_logging(args.log_level, to_file=ui)
    cfg = config_from_args(args)
    if log_path:
        LOGGER.info("logging to %s", log_path)

    try:
        asyncio.run(run_app(cfg, ui=ui, plot=args.plot, duration_s=args.duration))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
