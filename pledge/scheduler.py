"""Task queues that run pledge reactions after the current synchronous code.

Every pledge hands its deferred work to a Scheduler: a FIFO sink of
zero-argument tasks. The core never runs a reaction inside the call that
registered or settled it; it enqueues instead.

Two implementations are provided:
- MicrotaskQueue: a manually drained, thread-safe queue (the default)
- AsyncioScheduler: forwards tasks to an asyncio event loop
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Protocol

from pledge.errors import UsageError
from pledge.types import Task

logger = logging.getLogger(__name__)


class Scheduler(Protocol):
    def enqueue(self, task: Task) -> None: ...


class MicrotaskQueue:
    """FIFO queue of deferred tasks, drained explicitly by its owner.

    Tasks enqueued while the queue is draining run in the same drain, after
    everything that was already queued.

    Thread Safety:
        - enqueue() may be called from any thread
        - run_once() / run_until_idle() pop one task at a time under the lock
          and run it outside the lock
    """

    def __init__(self) -> None:
        self._tasks: deque[Task] = deque()
        self._lock = threading.Lock()
        self._turns = 0

    @property
    def turns(self) -> int:
        """Number of tasks run so far."""
        return self._turns

    def enqueue(self, task: Task) -> None:
        with self._lock:
            self._tasks.append(task)

    def run_once(self) -> bool:
        """Run the oldest queued task. Returns False when the queue was empty."""
        with self._lock:
            if not self._tasks:
                return False
            task = self._tasks.popleft()
            self._turns += 1
        task()
        return True

    def run_until_idle(self, max_tasks: int | None = None) -> int:
        """Run tasks until the queue is empty or ``max_tasks`` have run.

        Returns:
            The number of tasks run by this call.
        """
        ran = 0
        while max_tasks is None or ran < max_tasks:
            if not self.run_once():
                break
            ran += 1
        if ran:
            logger.debug("microtask queue ran %d task(s)", ran)
        return ran

    def clear(self) -> int:
        """Drop every queued task without running it. Returns how many were dropped."""
        with self._lock:
            dropped = len(self._tasks)
            self._tasks.clear()
        return dropped

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def __repr__(self) -> str:
        return f"MicrotaskQueue(queued={len(self)}, turns={self._turns})"


class AsyncioScheduler:
    """Runs pledge tasks as ``call_soon`` callbacks on an asyncio event loop.

    The loop is taken from the first enqueue when not given explicitly, so the
    scheduler can be created outside of a running loop. Enqueueing from a
    foreign thread goes through ``call_soon_threadsafe``.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            try:
                self._loop = asyncio.get_running_loop()
            except RuntimeError as exc:
                raise UsageError(
                    "AsyncioScheduler has no event loop\n"
                    "Hint: pass loop= explicitly or create the first pledge inside a running loop"
                ) from exc
        return self._loop

    def enqueue(self, task: Task) -> None:
        loop = self.loop
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            loop.call_soon(task)
        else:
            loop.call_soon_threadsafe(task)

    def __repr__(self) -> str:
        return f"AsyncioScheduler(loop={self._loop!r})"


_default_scheduler: Scheduler | None = None
_default_lock = threading.Lock()


def get_default_scheduler() -> Scheduler:
    """Return the process-wide scheduler, creating a MicrotaskQueue on first use."""
    global _default_scheduler
    with _default_lock:
        if _default_scheduler is None:
            _default_scheduler = MicrotaskQueue()
        return _default_scheduler


def set_default_scheduler(scheduler: Scheduler | None) -> Scheduler | None:
    """Install ``scheduler`` as the default and return the previous one.

    Passing None resets to a fresh MicrotaskQueue on next use.
    """
    global _default_scheduler
    if scheduler is not None and not callable(getattr(scheduler, "enqueue", None)):
        raise UsageError(f"scheduler must provide enqueue(task), got {type(scheduler).__name__}")
    with _default_lock:
        previous = _default_scheduler
        _default_scheduler = scheduler
    return previous


@contextmanager
def using_scheduler(scheduler: Scheduler) -> Iterator[Scheduler]:
    """Temporarily make ``scheduler`` the default for newly created pledges."""
    previous = set_default_scheduler(scheduler)
    try:
        yield scheduler
    finally:
        set_default_scheduler(previous)


def run_until_idle(max_tasks: int | None = None) -> int:
    """Drain the default scheduler when it is a MicrotaskQueue."""
    scheduler = get_default_scheduler()
    if not isinstance(scheduler, MicrotaskQueue):
        raise UsageError(
            f"run_until_idle() needs a MicrotaskQueue default scheduler, got {type(scheduler).__name__}\n"
            "Hint: event-loop schedulers are drained by their loop"
        )
    return scheduler.run_until_idle(max_tasks)


__all__ = [
    "AsyncioScheduler",
    "MicrotaskQueue",
    "Scheduler",
    "get_default_scheduler",
    "run_until_idle",
    "set_default_scheduler",
    "using_scheduler",
]
