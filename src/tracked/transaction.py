"""Transaction controller: coalesces writes into one flush per registry.

While a transaction body runs, the action flag is set: registries with new
changes join the pending queue instead of scheduling their own flush, and
reads never trigger a synchronous flush. When the outermost body completes,
the queue is drained in insertion order, derived values left stale inside
the transaction are recomputed, and the notifier starts a new cycle.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Callable, Iterator, TypeVar

if TYPE_CHECKING:
    from tracked.computed import DerivedValue
    from tracked.registry import Registry
    from tracked.scheduler import Scheduler

R = TypeVar("R")


class TransactionController:
    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self.active = False
        self.queue: dict[Registry, None] = {}
        self._computes: dict[DerivedValue, None] = {}

    def enqueue(self, registry: Registry) -> None:
        self.queue[registry] = None

    def defer_compute(self, derived: DerivedValue) -> None:
        """Recompute derived when the transaction ends, unless read sooner."""
        self._computes[derived] = None

    def run(self, work: Callable[[], R]) -> R:
        with self.scope():
            return work()

    @contextmanager
    def scope(self) -> Iterator[None]:
        # Nested transactions leave all batching to the outermost one.
        if self.active:
            yield
            return
        self.active = True
        try:
            yield
        finally:
            self.active = False
            self.drain()

    def drain(self) -> None:
        """Flush every queued registry, then every deferred recompute.

        If a flush raises, whatever is still queued falls back to the
        ordinary deferred path before the error propagates.
        """
        try:
            while self.queue or self._computes:
                while self.queue:
                    registry = next(iter(self.queue))
                    del self.queue[registry]
                    registry.batch()
                while self._computes:
                    derived = next(iter(self._computes))
                    del self._computes[derived]
                    derived.refresh()
        finally:
            queue, self.queue = self.queue, {}
            for registry in queue:
                registry.schedule()
            computes, self._computes = self._computes, {}
            for derived in computes:
                self._scheduler.defer(derived.refresh)
            self._scheduler.notifier.clear()

    @property
    def pending(self) -> int:
        return len(self.queue)
