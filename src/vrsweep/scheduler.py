"""
Cooperative frame scheduler.

Models a host render loop on a single thread:
- A frame clock advanced once per rendered frame
- Update hooks called every frame in registration order
- Generator tasks resumed once per frame; each `yield` is a suspension point
- Task teardown closes the generator so its `finally` blocks run

Usage:
    scheduler = FrameScheduler()
    task = scheduler.start(controller.run_sweep(trajectory), name="sweep")
    scheduler.run_until_complete(task, dt=1 / 72)
"""

import logging
from typing import Optional, Callable, Generator, List, Any


logger = logging.getLogger(__name__)

UpdateHook = Callable[["FrameClock"], None]


class FrameClock:
    """Session time as seen by the render loop."""

    def __init__(self, start_time: float = 0.0):
        self.time = float(start_time)
        self.delta_time = 0.0
        self.frame_count = 0

    def advance(self, dt: float) -> None:
        dt = float(dt)
        if not dt > 0.0:
            raise ValueError(f"dt must be > 0, got {dt}")
        self.delta_time = dt
        self.time += dt
        self.frame_count += 1


def wait_for_seconds(clock: FrameClock, seconds: float) -> Generator[None, None, None]:
    """Suspend for `seconds` of frame time."""
    end = clock.time + float(seconds)
    while clock.time < end:
        yield


class Task:
    """A generator driven one step per frame."""

    def __init__(self, generator: Generator[Any, None, Any], name: str = ""):
        self.name = name or getattr(generator, "__name__", "task")
        self._generator = generator
        self.done = False
        self.cancelled = False
        self.result: Any = None
        self.error: Optional[BaseException] = None
        self.steps = 0

    def step(self) -> bool:
        """
        Resume the task until its next yield.

        Returns:
            True if the task is still running afterwards
        """
        if self.done:
            return False

        try:
            next(self._generator)
            self.steps += 1
            return True
        except StopIteration as stop:
            self.done = True
            self.result = stop.value
        except Exception as e:
            self.done = True
            self.error = e
            logger.error("Task %s failed: %s", self.name, e)
        return False

    def cancel(self) -> None:
        """Tear the task down, running any pending cleanup."""
        if self.done:
            return
        self.done = True
        self.cancelled = True
        self._generator.close()


class FrameScheduler:
    """
    Single-threaded tick loop.

    Each tick advances the clock, runs update hooks, then resumes every live
    task exactly once. Tasks started during a tick first run on the next one.
    """

    def __init__(self, clock: Optional[FrameClock] = None):
        self.clock = clock or FrameClock()
        self._updates: List[UpdateHook] = []
        self._tasks: List[Task] = []
        self._error_callback: Optional[Callable[[Task, BaseException], None]] = None

    def set_error_callback(self, callback: Callable[[Task, BaseException], None]) -> None:
        """Set callback for tasks that end with an exception."""
        self._error_callback = callback

    def add_update(self, hook: UpdateHook) -> None:
        self._updates.append(hook)

    def remove_update(self, hook: UpdateHook) -> None:
        if hook in self._updates:
            self._updates.remove(hook)

    def start(self, generator: Generator[Any, None, Any], name: str = "") -> Task:
        task = Task(generator, name=name)
        self._tasks.append(task)
        return task

    @property
    def tasks(self) -> List[Task]:
        return list(self._tasks)

    def tick(self, dt: float) -> None:
        self.clock.advance(dt)

        for hook in list(self._updates):
            hook(self.clock)

        for task in list(self._tasks):
            task.step()
            if task.done:
                self._tasks.remove(task)
                if task.error is not None and self._error_callback:
                    self._error_callback(task, task.error)

    def run_until_complete(
        self,
        task: Task,
        dt: float = 1.0 / 72.0,
        max_ticks: Optional[int] = None
    ) -> Any:
        """
        Tick until `task` finishes.

        Args:
            task: Task previously returned by `start`
            dt: Frame duration in seconds
            max_ticks: Give up after this many ticks (None = no limit)

        Returns:
            The task's return value

        Raises:
            TimeoutError: If `max_ticks` elapse first (the task is cancelled)
            Exception: Whatever the task itself raised
        """
        ticks = 0
        while not task.done:
            if max_ticks is not None and ticks >= max_ticks:
                task.cancel()
                if task in self._tasks:
                    self._tasks.remove(task)
                raise TimeoutError(f"Task {task.name} did not finish within {max_ticks} ticks")
            self.tick(dt)
            ticks += 1

        if task.error is not None:
            raise task.error
        return task.result

    def stop_all(self) -> None:
        """Cancel every running task."""
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
