import pytest
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure

from conftest import bar
from candles import flat_bar
from chart_view import ChartView, MplOverlayCanvas, css_color
from config import GHOST_SERIES_OPTIONS, LIVE_SERIES_OPTIONS, FeedConfig
from main import build_feed
from overlay import draw_overlay
from surface import CandleSeries


def agg_figure(w=8.0, h=5.0, dpi=100):
    fig = Figure(figsize=(w, h), dpi=dpi)
    FigureCanvasAgg(fig)
    return fig


def make_view():
    live = CandleSeries("live", LIVE_SERIES_OPTIONS)
    ghost = CandleSeries("ghost", GHOST_SERIES_OPTIONS)
    view = ChartView(live, ghost, fig=agg_figure())
    return view, live, ghost


def test_css_color():
    assert css_color("rgba(255,255,255,0.08)") == pytest.approx((1.0, 1.0, 1.0, 0.08))
    assert css_color("rgb(255, 0, 0)") == pytest.approx((1.0, 0.0, 0.0, 1.0))
    assert css_color("#45caff")[3] == 1.0


def test_overlay_canvas_size_and_artists():
    fig = agg_figure()
    canvas = MplOverlayCanvas(fig)
    assert (canvas.width, canvas.height) == (800.0, 500.0)

    assert draw_overlay(canvas, 1.5, lambda p: 100.0)
    # price line + 6 grid rows + label
    assert canvas.n_artists == 8

    draw_overlay(canvas, 1.5, lambda p: None)
    assert canvas.n_artists == 0
    assert len(fig.artists) == 0
    assert len(fig.texts) == 0


def test_overlay_line_is_flipped_to_display_coords():
    fig = agg_figure()
    canvas = MplOverlayCanvas(fig)
    canvas.hline(100.0, "#45caff", 1.0)
    (line,) = fig.artists
    assert list(line.get_ydata()) == [400.0, 400.0]


def test_price_to_coordinate_in_and_out_of_scale():
    view, live, ghost = make_view()
    live.set_data([flat_bar(1000, 1.0), bar(1001, 1.0, 1.2, 0.9, 1.1)])
    ghost.set_data([bar(1002, 1.1, 1.15, 1.05, 1.12)])
    view.refresh()

    lo, hi = view.ax.get_ylim()
    y_lo = view.price_to_coordinate(lo + 1e-9)
    y_hi = view.price_to_coordinate(hi - 1e-9)
    assert 0.0 <= y_hi < y_lo <= view.overlay.height
    assert view.price_to_coordinate(hi + 1.0) is None
    assert live.price_to_coordinate(1.1) == view.price_to_coordinate(1.1)


def test_refresh_draws_candles_and_marks_overlay_dirty():
    view, live, ghost = make_view()
    dirty = []
    view.on_overlay_dirty = lambda: dirty.append(1)

    live.set_data([flat_bar(1000, 1.0)])
    live.update(bar(1001, 1.0, 1.3, 0.95, 1.2))
    view.refresh()

    assert len(view._live.wicks.get_segments()) == 2
    assert len(view._live.bodies.get_paths()) == 2
    assert dirty

    n = len(dirty)
    view.refresh()
    assert len(dirty) == n


def test_resize_recomputes_canvas_and_requests_redraw():
    view, _, _ = make_view()
    dirty = []
    view.on_overlay_dirty = lambda: dirty.append(1)

    view.fig.set_size_inches(4.0, 3.0)
    view._on_resize(None)

    assert (view.overlay.width, view.overlay.height) == (400.0, 300.0)
    assert dirty == [1]


def test_close_detaches_scale():
    view, live, _ = make_view()
    view.close()
    assert live.scale is None


def test_window_follows_live_bar_while_ghosts_run_ahead(clock):
    feed = build_feed(FeedConfig(random_seed=3), clock=clock)
    ctl = feed.controller
    view = ChartView(feed.live_series, feed.ghost_series, timeframe=1, visible_bars=20, fig=agg_figure())
    view.on_overlay_dirty = ctl.redraw_overlay
    ctl.attach_overlay(view.overlay)

    for _ in range(30):
        feed.driver.fire()
        view.refresh()

        live = ctl.live
        x_lo, x_hi = view.ax.get_xlim()
        assert x_lo <= live.time <= x_hi
        assert view.price_to_coordinate(live.close) is not None

    # ghosts have drifted far past the window by now
    assert feed.ghost_series.bars[0].time > view.ax.get_xlim()[1]
    assert ctl.redraw_overlay()
    assert view.overlay.n_artists == 8
