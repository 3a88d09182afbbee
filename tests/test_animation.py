import asyncio
import math

import pytest

from conftest import ManualFrameClock
from animation import AnimationScheduler, LoopFrameClock
from candles import flat_bar


def make_scheduler(clock=None, **kw):
    samples = []
    sch = AnimationScheduler(
        clock or ManualFrameClock(),
        lambda c: samples.append(c.close),
        **kw,
    )
    return sch, samples


@pytest.mark.asyncio
async def test_runs_path_to_final_tick():
    candle = flat_bar(10, 1.0)
    sch, samples = make_scheduler()
    task = sch.start(candle, [1.1, 1.2, 1.3])
    await task

    assert candle.close == 1.3
    assert samples[-1] == 1.3
    assert not sch.active


@pytest.mark.asyncio
async def test_samples_follow_quarter_sine_per_frame():
    clock = ManualFrameClock(frame_ms=20.0)
    candle = flat_bar(10, 0.0)
    sch, samples = make_scheduler(clock, tick_duration_ms=80.0, inter_tick_pause_ms=0.0)
    await sch.start(candle, [1.0])

    # first frame is t=0, then 20/40/60/80ms
    expected = [math.sin((t / 80.0) * math.pi / 2) for t in (0, 20, 40, 60)] + [1.0]
    assert samples == pytest.approx(expected)


@pytest.mark.asyncio
async def test_next_tick_starts_from_reached_value_after_pause():
    clock = ManualFrameClock(frame_ms=40.0)
    candle = flat_bar(10, 0.0)
    sch, samples = make_scheduler(clock, tick_duration_ms=80.0, inter_tick_pause_ms=10.0)
    await sch.start(candle, [1.0, 2.0])

    # tick 1: 0, ~0.707, 1.0 ; tick 2 starts at 1.0
    assert samples[:3] == pytest.approx([0.0, math.sin(math.pi / 4), 1.0])
    assert samples[3] == 1.0
    assert samples[-1] == 2.0
    assert clock.sleeps == [10.0]


@pytest.mark.asyncio
async def test_running_high_low_track_samples():
    candle = flat_bar(10, 1.0)
    sch, samples = make_scheduler()
    await sch.start(candle, [1.3, 0.8, 1.1])

    assert candle.high == max(samples + [1.0])
    assert candle.low == min(samples + [1.0])
    assert candle.close == 1.1


@pytest.mark.asyncio
async def test_start_cancels_previous_loop():
    candle = flat_bar(10, 1.0)
    sch, samples = make_scheduler()
    first = sch.start(candle, [5.0, 6.0, 7.0])
    for _ in range(3):
        await asyncio.sleep(0)

    second = sch.start(candle, [1.5])
    await second
    with pytest.raises(asyncio.CancelledError):
        await first

    assert first.cancelled()
    assert candle.close == 1.5
    assert sch.n_cancelled == 1
    assert sch.n_loops == 2


@pytest.mark.asyncio
async def test_cancel_stops_all_writes():
    candle = flat_bar(10, 1.0)
    sch, samples = make_scheduler()
    sch.start(candle, [2.0, 3.0])
    for _ in range(4):
        await asyncio.sleep(0)

    sch.cancel()
    frozen = (candle.close, candle.high, candle.low)
    n = len(samples)
    for _ in range(50):
        await asyncio.sleep(0)

    assert (candle.close, candle.high, candle.low) == frozen
    assert len(samples) == n
    assert not sch.active


@pytest.mark.asyncio
async def test_non_finite_target_is_skipped():
    candle = flat_bar(10, 1.0)
    sch, samples = make_scheduler()
    await sch.start(candle, [1.1, float("nan"), float("inf"), 1.2])

    assert sch.n_degenerate == 2
    assert all(math.isfinite(s) for s in samples)
    assert candle.close == 1.2
    assert math.isfinite(candle.high) and math.isfinite(candle.low)


@pytest.mark.asyncio
async def test_all_ticks_degenerate_leaves_candle_untouched():
    candle = flat_bar(10, 1.0)
    sch, samples = make_scheduler()
    await sch.start(candle, [float("nan")])
    assert samples == []
    assert candle.close == 1.0


@pytest.mark.asyncio
async def test_empty_path_starts_nothing():
    sch, _ = make_scheduler()
    assert sch.start(flat_bar(1, 1.0), []) is None
    assert not sch.active


@pytest.mark.asyncio
async def test_aclose_waits_for_cancelled_loop():
    candle = flat_bar(10, 1.0)
    sch, _ = make_scheduler()
    task = sch.start(candle, [2.0, 3.0])
    await asyncio.sleep(0)
    await sch.aclose()
    assert task.done()


@pytest.mark.asyncio
async def test_loop_frame_clock_paces_frames():
    clock = LoopFrameClock(hz=200.0)
    t0 = clock.now_ms()
    t1 = await clock.next_frame()
    assert t1 - t0 >= 4.0
    await clock.sleep_ms(-5.0)
