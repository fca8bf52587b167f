"""Notifier: invokes each reaction's subscriber at most once per cycle.

A reaction reachable from several changed properties, or from several
registries flushed in the same cycle, is notified once. A change that lands
after the reaction already ran this cycle is not dropped: it is carried over
and delivered when the cycle ends.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Hashable, AbstractSet

if TYPE_CHECKING:
    from tracked.reaction import Reaction
    from tracked.scheduler import Scheduler

Changes = AbstractSet[Hashable]


class Notifier:
    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self._notified: set[Reaction] = set()
        self._carried: dict[Reaction, tuple[Changes, int]] = {}
        self._queued = False

    def was_notified(self, reaction: Reaction) -> bool:
        return reaction in self._notified

    def notify(self, reaction: Reaction, changes: Changes, version: int) -> None:
        """Call reaction.subscriber(changes) unless that would be redundant.

        version is the write version of the change that triggered the
        notification; a reaction that already observed it is skipped.
        """
        if reaction.disposed or version <= reaction.seen:
            return
        if reaction in self._notified:
            self._carried[reaction] = (changes, version)
            return
        self._notified.add(reaction)
        reaction.seen = self._scheduler.version
        try:
            reaction.subscriber(changes)
        finally:
            if not self._queued:
                self._queued = True
                self._scheduler.defer(self._end_cycle)

    def clear(self) -> None:
        """Start a new cycle now. Carried notifications are delivered."""
        self._notified.clear()
        carried, self._carried = self._carried, {}
        while carried:
            reaction = next(iter(carried))
            changes, version = carried.pop(reaction)
            try:
                self.notify(reaction, changes, version)
            except BaseException:
                # The rest is delivered when the next cycle ends.
                for other, pending in carried.items():
                    self._carried.setdefault(other, pending)
                raise

    def _end_cycle(self) -> None:
        self._queued = False
        self.clear()
