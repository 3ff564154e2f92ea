import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from vrsweep.scheduler import FrameClock, FrameScheduler, wait_for_seconds


def test_clock_rejects_non_positive_dt() -> None:
    clock = FrameClock()
    with pytest.raises(ValueError):
        clock.advance(0.0)
    clock.advance(0.25)
    assert clock.time == 0.25
    assert clock.delta_time == 0.25
    assert clock.frame_count == 1


def test_wait_for_seconds_suspends_in_frame_time() -> None:
    scheduler = FrameScheduler()

    def waiter():
        yield from wait_for_seconds(scheduler.clock, 1.0)
        return scheduler.clock.time

    task = scheduler.start(waiter())
    finished_at = scheduler.run_until_complete(task, dt=0.25)

    assert finished_at >= 1.0
    assert scheduler.clock.frame_count == 5


def test_hooks_run_in_order_before_tasks() -> None:
    scheduler = FrameScheduler()
    calls = []
    scheduler.add_update(lambda clock: calls.append("first"))
    scheduler.add_update(lambda clock: calls.append("second"))

    def task_body():
        calls.append("task")
        yield

    scheduler.start(task_body())
    scheduler.tick(0.1)

    assert calls == ["first", "second", "task"]


def test_remove_update_stops_hook() -> None:
    scheduler = FrameScheduler()
    calls = []

    def hook(clock):
        calls.append(clock.frame_count)

    scheduler.add_update(hook)
    scheduler.tick(0.1)
    scheduler.remove_update(hook)
    scheduler.remove_update(hook)
    scheduler.tick(0.1)

    assert calls == [1]


def test_cancel_runs_cleanup() -> None:
    scheduler = FrameScheduler()
    cleaned = []

    def body():
        try:
            while True:
                yield
        finally:
            cleaned.append(True)

    task = scheduler.start(body())
    scheduler.tick(0.1)
    task.cancel()

    assert cleaned == [True]
    assert task.done and task.cancelled


def test_stop_all_cancels_every_task() -> None:
    scheduler = FrameScheduler()
    cleaned = []

    def body(tag):
        try:
            while True:
                yield
        finally:
            cleaned.append(tag)

    scheduler.start(body("a"))
    scheduler.start(body("b"))
    scheduler.tick(0.1)
    scheduler.stop_all()

    assert sorted(cleaned) == ["a", "b"]
    assert scheduler.tasks == []


def test_task_error_is_reraised_and_reported() -> None:
    scheduler = FrameScheduler()
    reported = []
    scheduler.set_error_callback(lambda task, error: reported.append((task.name, error)))

    def broken():
        yield
        raise RuntimeError("boom")

    task = scheduler.start(broken(), name="broken")
    with pytest.raises(RuntimeError, match="boom"):
        scheduler.run_until_complete(task, dt=0.1)

    assert reported and reported[0][0] == "broken"
    assert scheduler.tasks == []


def test_run_until_complete_times_out() -> None:
    scheduler = FrameScheduler()
    cleaned = []

    def forever():
        try:
            while True:
                yield
        finally:
            cleaned.append(True)

    task = scheduler.start(forever(), name="forever")
    with pytest.raises(TimeoutError):
        scheduler.run_until_complete(task, dt=0.1, max_ticks=3)

    assert task.cancelled
    assert cleaned == [True]
    assert scheduler.tasks == []
