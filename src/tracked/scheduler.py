"""The scheduler: the one owner of all process-wide reactive state.

Every Registry and Reaction captures the scheduler that is current when it
is created. The scheduler owns the Executor call stack, the Notifier's
notified set, the TransactionController's action flag and pending queue,
the tracking-suspension depth and the write version counter.

Deferred work (the per-registry flush, the notifier's end of cycle) goes
through Scheduler.defer. Inside a running asyncio loop that is
``loop.call_soon``; anywhere else callbacks wait in the scheduler's own queue
until tick() drains it. Pass ``defer=immediately`` for fully synchronous
flushing.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from contextlib import contextmanager
from typing import Callable, Iterator

from tracked._tracking import Executor
from tracked.transaction import TransactionController
from tracked.notifier import Notifier

logger = logging.getLogger("tracked.scheduler")

Callback = Callable[[], None]


def immediately(callback: Callback) -> None:
    """Deferral strategy that runs the callback right away."""
    callback()


class Scheduler:
    """Shared reactive state plus the deferred-callback queue."""

    def __init__(self, defer: Callable[[Callback], None] | None = None) -> None:
        self._defer = defer
        self._callbacks: deque[Callback] = deque()
        self._untracked = 0
        # Bumped on every reported change; reactions remember the last value
        # they observed so stale notifications can be told apart from new ones.
        self.version = 0
        self.executor = Executor(self)
        self.notifier = Notifier(self)
        self.transactions = TransactionController(self)

    @property
    def tracking(self) -> bool:
        """False while dependency tracking is suspended."""
        return self._untracked == 0

    @contextmanager
    def untracked(self) -> Iterator[None]:
        """Suspend dependency tracking for the duration of the block."""
        self._untracked += 1
        try:
            yield
        finally:
            self._untracked -= 1

    def next_version(self) -> int:
        self.version += 1
        return self.version

    def defer(self, callback: Callback) -> None:
        """Run callback after the current synchronous execution completes."""
        if self._defer is not None:
            self._defer(callback)
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._callbacks.append(callback)
        else:
            loop.call_soon(callback)

    def tick(self) -> int:
        """End the current cycle: run queued callbacks until none are left.

        Callbacks queued while draining run in the same call. Returns how
        many callbacks ran. An exception from a callback propagates and the
        remaining callbacks stay queued.
        """
        count = 0
        while self._callbacks:
            callback = self._callbacks.popleft()
            callback()
            count += 1
        if count:
            logger.debug("Drained %d deferred callbacks", count)
        return count

    @property
    def pending(self) -> int:
        """Number of deferred callbacks waiting for tick()."""
        return len(self._callbacks)

    def __repr__(self) -> str:
        return (
            f"Scheduler(version={self.version}, pending={len(self._callbacks)}, "
            f"action={self.transactions.active})"
        )


_current = Scheduler()


def get_scheduler() -> Scheduler:
    return _current


def set_scheduler(scheduler: Scheduler) -> Scheduler:
    """Install scheduler as the current one. Returns the previous scheduler.

    Only objects created afterwards use it; existing registries and
    reactions keep the scheduler they were created with.
    """
    global _current
    previous = _current
    _current = scheduler
    return previous


@contextmanager
def use_scheduler(scheduler: Scheduler | None = None) -> Iterator[Scheduler]:
    """Temporarily install a scheduler (a fresh one by default)."""
    scheduler = scheduler if scheduler is not None else Scheduler()
    previous = set_scheduler(scheduler)
    try:
        yield scheduler
    finally:
        set_scheduler(previous)


def tick() -> int:
    """Drain the current scheduler's deferred callbacks."""
    return _current.tick()
