from spotdiff.services.engine.countdown import (
    EXPIRED,
    IDLE,
    PAUSED,
    RUNNING,
    CountdownTimer,
    format_time,
)
from spotdiff.services.engine.scheduler import ManualScheduler


def make_timer(duration=5):
    clock = ManualScheduler()
    timeouts = []
    timer = CountdownTimer(clock, duration, on_timeout=lambda: timeouts.append(clock.now()))
    return clock, timer, timeouts


def test_counts_down_one_per_second():
    clock, timer, _ = make_timer(10)
    timer.start(5)
    assert timer.time_left == 5
    clock.advance(1)
    clock.advance(1)
    assert timer.time_left == 3
    assert timer.is_running


def test_timeout_fires_exactly_once():
    clock, timer, timeouts = make_timer()
    timer.start(5)
    clock.advance(5)
    assert timer.time_left == 0
    assert timer.state == EXPIRED
    assert timeouts == [5.0]
    clock.advance(10)
    assert timer.time_left == 0
    assert len(timeouts) == 1
    assert clock.pending() == 0


def test_pause_freezes_until_start_or_reset():
    clock, timer, _ = make_timer(10)
    timer.start()
    clock.advance(3)
    assert timer.time_left == 7
    timer.pause()
    assert timer.state == PAUSED
    clock.advance(5)
    assert timer.time_left == 7
    timer.reset()
    assert timer.time_left == 10
    assert timer.state == IDLE
    clock.advance(3)
    assert timer.time_left == 10


def test_pause_between_ticks_leaves_no_schedule():
    clock, timer, _ = make_timer(10)
    timer.start()
    clock.advance(1.5)
    timer.pause()
    assert clock.pending() == 0


def test_restart_while_running_keeps_a_single_tick():
    clock, timer, _ = make_timer(10)
    timer.start()
    clock.advance(0.5)
    timer.start()
    assert clock.pending() == 1
    # The stale tick at t=1.0 was cancelled; the new one is due at t=1.5
    clock.advance(0.6)
    assert timer.time_left == 10
    clock.advance(0.5)
    assert timer.time_left == 9


def test_start_without_duration_keeps_current_duration():
    clock, timer, _ = make_timer(4)
    timer.start(8)
    clock.advance(2)
    timer.start()
    assert timer.duration == 8
    assert timer.time_left == 8
    assert timer.state == RUNNING


def test_zero_duration_expires_immediately():
    clock, timer, timeouts = make_timer(0)
    timer.start()
    assert timer.state == EXPIRED
    assert len(timeouts) == 1


def test_tick_callback_sees_remaining_time():
    clock = ManualScheduler()
    ticks = []
    timer = CountdownTimer(clock, 3, on_tick=ticks.append)
    timer.start()
    clock.advance(3)
    assert ticks == [2, 1]


def test_format_time():
    assert format_time(125) == '2:05'
    assert format_time(59.9) == '0:59'
    assert format_time(-3) == '0:00'
