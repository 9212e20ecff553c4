from spotdiff.services.engine.scheduler import FrameCoalescer, ManualScheduler


def test_manual_scheduler_runs_calls_in_due_order():
    clock = ManualScheduler()
    fired = []
    clock.call_later(2, lambda: fired.append('b'))
    clock.call_later(1, lambda: fired.append('a'))
    handle = clock.call_later(1.5, lambda: fired.append('cancelled'))
    handle.cancel()
    assert clock.advance(3) == 2
    assert fired == ['a', 'b']
    assert clock.now() == 3


def test_calls_armed_inside_a_callback_fire_in_the_same_advance():
    clock = ManualScheduler()
    fired = []

    def first():
        fired.append(clock.now())
        clock.call_later(1, lambda: fired.append(clock.now()))

    clock.call_later(1, first)
    clock.advance(2)
    assert fired == [1, 2]


def test_frame_coalescer_applies_only_latest_event_per_frame():
    clock = ManualScheduler()
    applied = []
    frames = FrameCoalescer(clock, applied.append, frame_interval=0.016)
    for i in range(10):
        frames.submit(i)
    assert frames.pending
    clock.advance(0.016)
    assert applied == [9]
    assert not frames.pending
    # Bursts in later frames are bounded the same way
    frames.submit('a')
    frames.submit('b')
    clock.advance(0.016)
    frames.submit('c')
    clock.advance(0.016)
    assert applied == [9, 'b', 'c']
    assert frames.applied == 3


def test_frame_coalescer_cancel_drops_pending_event():
    clock = ManualScheduler()
    applied = []
    frames = FrameCoalescer(clock, applied.append, frame_interval=0.016)
    frames.submit(1)
    frames.cancel()
    clock.advance(1)
    assert applied == []
    assert clock.pending() == 0
