import threading

from coffee_pos.services.scheduler import ManualScheduler, ThreadScheduler, TimerGroup


def test_manual_scheduler_runs_in_due_order():
    scheduler = ManualScheduler()
    calls = []
    scheduler.call_later(2, lambda: calls.append('b'))
    scheduler.call_later(1, lambda: calls.append('a'))
    scheduler.advance(1.5)
    assert calls == ['a']
    scheduler.advance(1)
    assert calls == ['a', 'b']
    assert scheduler.now == 2.5
    assert scheduler.pending == 0


def test_manual_repeating_and_cancel():
    scheduler = ManualScheduler()
    ticks = []
    handle = scheduler.call_every(3, lambda: ticks.append(scheduler.now))
    scheduler.advance(10)
    assert ticks == [3, 6, 9]
    handle.cancel()
    scheduler.advance(10)
    assert ticks == [3, 6, 9]
    assert scheduler.pending == 0


def test_timer_group_cancel_all():
    scheduler = ManualScheduler()
    group = TimerGroup(scheduler)
    calls = []
    group.call_later(1, lambda: calls.append('once'))
    group.call_every(1, lambda: calls.append('tick'))
    assert group.active_count == 2

    group.cancel_all()
    scheduler.advance(5)
    assert calls == []
    assert group.active_count == 0


def test_thread_scheduler_fires_and_cancels():
    scheduler = ThreadScheduler()
    fired = threading.Event()
    scheduler.call_later(0.01, fired.set)
    assert fired.wait(2)

    never = threading.Event()
    handle = scheduler.call_later(0.2, never.set)
    handle.cancel()
    assert not never.wait(0.4)


def test_thread_scheduler_repeating_stops_on_cancel():
    scheduler = ThreadScheduler()
    count = []
    enough = threading.Event()

    def tick():
        count.append(1)
        if len(count) >= 2:
            enough.set()

    handle = scheduler.call_every(0.01, tick)
    assert enough.wait(2)
    handle.cancel()
    seen = len(count)
    threading.Event().wait(0.1)
    assert len(count) <= seen + 1
