"""Registry: the bookkeeping attached to every reactive object.

A Registry maps each property to the reactions that read it, collects the
properties changed since the last flush and holds raw change listeners.
The interception layer calls on_read()/on_write() for every attribute
access on the owning object; everything else in tracked goes through the
methods below.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Hashable, Iterable

from tracked.scheduler import Scheduler, get_scheduler

if TYPE_CHECKING:
    from tracked.computed import DerivedValue
    from tracked.reaction import Reaction

Listener = Callable[[Hashable, Any], None]

IDLE = 0
DIRTY = 1


class Registry:
    """Dependency edges, pending changes and listeners of one object."""

    def __init__(
        self,
        owner: str = "",
        ignore: Iterable[Hashable] = (),
        shallow: Iterable[Hashable] = (),
        scheduler: Scheduler | None = None,
    ) -> None:
        self.owner = owner
        self.ignore = frozenset(ignore)
        self.shallow = frozenset(shallow)
        self.scheduler = scheduler if scheduler is not None else get_scheduler()
        self.deps: dict[Hashable, dict[Reaction, None]] = {}
        # insertion-ordered set; adding a listener twice keeps one entry
        self.listeners: dict[Listener, None] = {}
        # property -> DerivedValue backing it, created on first access
        self.derived: dict[Hashable, DerivedValue] = {}
        # property -> write version of its latest unflushed change
        self.changes: dict[Hashable, int] = {}
        # subscribers of the property currently being flushed
        self.current: dict[Reaction, None] | None = None
        self.state = IDLE
        self._queued = False

    # --- Edges ---

    def subscribe(self, prop: Hashable, reaction: Reaction) -> None:
        """Make reaction depend on prop, unless prop is ignored or tracking is off."""
        if prop in self.ignore or not self.scheduler.tracking:
            return
        subscribers = self.deps.get(prop)
        if subscribers is None:
            subscribers = self.deps[prop] = {}
        if reaction not in subscribers:
            subscribers[reaction] = None
            reaction.edges[(self, prop)] = None
        if reaction.read is not None:
            reaction.read.add(self)

    def unsubscribe(self, prop: Hashable, reaction: Reaction) -> None:
        subscribers = self.deps.get(prop)
        if subscribers is not None:
            subscribers.pop(reaction, None)
        reaction.edges.pop((self, prop), None)

    def remove_runnable(self, reaction: Reaction) -> None:
        """Purge reaction from every property of this registry."""
        for prop in list(self.deps):
            self.unsubscribe(prop, reaction)

    def subscribers(self, prop: Hashable) -> list[Reaction]:
        return list(self.deps.get(prop, ()))

    def observed(self, prop: Hashable) -> bool:
        return bool(self.deps.get(prop))

    # --- Listeners ---

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Call listener(prop, value) on every reported write. Returns a remover."""
        self.listeners[listener] = None
        return lambda: self.remove_listener(listener)

    def remove_listener(self, listener: Listener) -> None:
        self.listeners.pop(listener, None)

    # --- Interception capability ---

    def on_read(self, prop: Hashable) -> None:
        """A tracked attribute was read."""
        self.scheduler.executor.report(self, prop)
        # Outside a transaction a read must see flushed state.
        if prop in self.changes and not self.scheduler.transactions.active:
            self.batch()

    def on_write(self, prop: Hashable, value: Any) -> None:
        """A tracked attribute was written (or deleted, with value None)."""
        self.scheduler.executor.report(self, prop, write=True)
        self.report(prop, value)

    # --- Changes ---

    def report(self, prop: Hashable, value: Any) -> None:
        """Record that prop changed to value and schedule a flush."""
        for listener in list(self.listeners):
            listener(prop, value)

        subscribers = self.deps.get(prop)
        if not subscribers:
            return

        self.changes[prop] = self.scheduler.next_version()
        for reaction in list(subscribers):
            if reaction.computed:
                reaction.invalidate()
        self.schedule()

    def schedule(self) -> None:
        """Arrange for batch() to run: at transaction end, or next cycle."""
        self.state = DIRTY
        if self.scheduler.transactions.active:
            self.scheduler.transactions.enqueue(self)
        elif not self._queued:
            self._queued = True
            self.scheduler.defer(self._flush)

    def _flush(self) -> None:
        self._queued = False
        if self.state == DIRTY:
            self.batch()

    def batch(self) -> None:
        """Notify the subscribers of every pending change, once each."""
        if not self.changes:
            self.state = IDLE
            return

        # Notify in subscription order, whatever order the writes came in.
        if len(self.changes) > 1:
            self.changes = {p: self.changes[p] for p in self.deps if p in self.changes}

        snapshot = frozenset(self.changes)
        notifier = self.scheduler.notifier
        second_pass: dict[Hashable, int] = {}
        walking: tuple[Hashable, int] | None = None
        try:
            while self.changes:
                prop = next(iter(self.changes))
                version = self.changes.pop(prop)
                walking = (prop, version)
                self.current = self.deps.get(prop)
                for reaction in list(self.current or ()):
                    if reaction.active:
                        # A derived value mid-recompute read prop before this
                        # change; it needs another pass once it is done.
                        if reaction.computed and version > reaction.seen:
                            second_pass[prop] = version
                        continue
                    notifier.notify(reaction, snapshot, version)
                walking = None
        except BaseException:
            # Undelivered changes go out with the next flush. Reactions
            # already notified have seen this version and are skipped.
            if walking is not None:
                prop, version = walking
                self.changes.setdefault(prop, version)
            self.changes.update(second_pass)
            if self.changes:
                self.schedule()
            raise
        finally:
            self.current = None

        if second_pass:
            self.changes.update(second_pass)
            self.schedule()
        elif not self.changes:
            self.state = IDLE

    def __repr__(self) -> str:
        state = "dirty" if self.state == DIRTY else "idle"
        return f"Registry({self.owner!r}, {len(self.deps)} props, {state})"


def same_value(old: object, new: object) -> bool:
    """Write-time change check: identity, or == for non-reactive values."""
    if old is new:
        return True
    if get_registry(old) is not None or get_registry(new) is not None:
        return False
    return old == new


def get_registry(target: object) -> Registry | None:
    """Return the Registry attached to target, or None if it is not reactive."""
    try:
        registry = object.__getattribute__(target, "_registry")
    except AttributeError:
        return None
    return registry if isinstance(registry, Registry) else None
