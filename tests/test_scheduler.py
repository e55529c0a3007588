from __future__ import annotations

import threading

from packages.core.monitor.scheduler import TaskScheduler

from conftest import FakeClock


def test_call_later_runs_in_due_order():
    clock = FakeClock(0.0)
    s = TaskScheduler(clock=clock)
    ran = []
    s.call_later(2.0, lambda: ran.append("b"))
    s.call_later(1.0, lambda: ran.append("a"))
    s.call_later(2.0, lambda: ran.append("c"))

    assert s.run_pending() == 0
    clock.t = 1.0
    assert s.run_pending() == 1
    clock.t = 5.0
    s.run_pending()
    assert ran == ["a", "b", "c"]


def test_cancelled_task_does_not_run():
    clock = FakeClock(0.0)
    s = TaskScheduler(clock=clock)
    ran = []
    task = s.call_later(1.0, lambda: ran.append(1))
    task.cancel()
    clock.t = 2.0
    assert s.run_pending() == 0
    assert ran == []
    assert s.pending() == []


def test_one_shot_marked_done():
    clock = FakeClock(0.0)
    s = TaskScheduler(clock=clock)
    task = s.call_later(0.0, lambda: None)
    assert not task.done
    s.run_pending()
    assert task.done


def test_periodic_task_reschedules_without_catch_up():
    clock = FakeClock(0.0)
    s = TaskScheduler(clock=clock)
    ran = []
    task = s.call_every(3.0, lambda: ran.append(clock.t))

    clock.t = 3.0
    s.run_pending()
    assert ran == [3.0]
    assert task.due == 6.0

    # worker stalled for several intervals: the overdue run plus one queued
    # behind it, not one per missed interval
    clock.t = 20.0
    s.run_pending()
    assert ran == [3.0, 20.0, 20.0]
    assert task.due == 23.0


def test_failing_task_does_not_stop_scheduler(caplog):
    clock = FakeClock(0.0)
    s = TaskScheduler(clock=clock)
    ran = []

    def boom():
        raise RuntimeError("tick exploded")

    s.call_every(1.0, boom, name="boom")
    s.call_later(1.0, lambda: ran.append("after"))
    clock.t = 1.0
    s.run_pending()

    assert ran == ["after"]
    assert "tick exploded" in caplog.text
    assert [t.name for t in s.pending()] == ["boom"]


def test_worker_thread_runs_tasks():
    s = TaskScheduler()
    done = threading.Event()
    s.start()
    try:
        s.call_later(0.01, done.set)
        assert done.wait(2.0)
    finally:
        s.shutdown()
    assert s.pending() == []
