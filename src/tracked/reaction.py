"""Reactions: units of work re-run when what they read changes.

Flavors:
- autorun(fn): runs fn immediately, re-runs it when anything it read changes.
- reaction(data_fn, effect_fn): tracks data_fn, calls effect_fn with the new
  value only when data_fn's result changes.
- subscribe(target, callback, keys): calls callback(changes) when any of the
  named properties of target changes, without running anything first.
- listen(target, callback): raw callback(prop, value) for every write.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Hashable, Iterable, TypeVar

from tracked.equal import deep_equal
from tracked.errors import MisuseError
from tracked.registry import Registry, get_registry
from tracked.scheduler import get_scheduler

logger = logging.getLogger("tracked.reaction")

T = TypeVar("T")

Disposer = Callable[[], None]
Subscriber = Callable[[frozenset], None]


class Reaction:
    """A re-runnable unit of work.

    By default the subscriber re-executes run() through the Executor, which
    refreshes the reaction's dependencies. Passing subscriber replaces that
    with a plain callback.
    """

    __slots__ = (
        "scheduler",
        "name",
        "_fn",
        "_subscriber",
        "active",
        "disposed",
        "debug",
        "edges",
        "read",
        "seen",
    )

    computed = False

    def __init__(
        self,
        fn: Callable[..., Any] | None = None,
        subscriber: Subscriber | None = None,
        *,
        name: str | None = None,
        debug: bool = False,
    ) -> None:
        self.scheduler = get_scheduler()
        self.name = name or getattr(fn, "__name__", None) or type(self).__name__
        self._fn = fn
        self._subscriber = subscriber
        self.active = False
        self.disposed = False
        self.debug = debug
        self.edges: dict[tuple[Registry, Hashable], None] = {}
        self.read: set[Registry] | None = None
        self.seen = self.scheduler.version

    def run(self, *args: Any) -> Any:
        if self._fn is None:
            return None
        return self._fn(*args)

    def subscriber(self, changes: frozenset | None = None) -> None:
        if self.debug:
            logger.info("[%s] will re-run. Changes: %s", self.name, sorted(map(str, changes or ())))
        if self._subscriber is not None:
            self._subscriber(changes)
            return
        if not self.disposed:
            self.scheduler.executor.execute(self)

    def dispose(self) -> None:
        """Stop this reaction. Disconnects from all dependencies."""
        self.scheduler.executor.dispose(self)

    def __repr__(self) -> str:
        state = "disposed" if self.disposed else "active"
        return f"{type(self).__name__}({self.name}, {state})"


class DataReaction(Reaction):
    """reaction(data_fn, effect_fn) implementation.

    Tracks data_fn's dependencies. When they change, re-runs data_fn. If the
    result differs structurally from last time, calls effect_fn with it.
    """

    __slots__ = ("_effect_fn", "_last_value", "_initialized")

    def __init__(self, data_fn: Callable[[], T], effect_fn: Callable[[T], None], **kwargs) -> None:
        super().__init__(data_fn, **kwargs)
        self._effect_fn = effect_fn
        self._last_value = None
        self._initialized = False

    def subscriber(self, changes: frozenset | None = None) -> None:
        if self.disposed:
            return
        new_value = self.scheduler.executor.execute(self).result
        with self.scheduler.untracked():
            unchanged = self._initialized and deep_equal(new_value, self._last_value)
        if unchanged:
            return
        self._last_value = new_value
        self._initialized = True
        self._effect_fn(new_value)


def autorun(fn: Callable[[], Any], *, debug: bool = False) -> Reaction:
    """Run fn immediately, then re-run it whenever anything it reads changes.

    Returns the Reaction (call .dispose() to stop).

    Usage:
        counter = Cell(0)
        log = []

        r = autorun(lambda: log.append(counter.get()))
        # log == [0], ran immediately

        counter.set(1)
        tick()
        # log == [0, 1]

        r.dispose()
    """
    r = Reaction(fn, debug=debug)
    r.scheduler.executor.execute(r)
    return r


def reaction(
    data_fn: Callable[[], T],
    effect_fn: Callable[[T], None],
    *,
    fire_immediately: bool = False,
    debug: bool = False,
) -> DataReaction:
    """Track data_fn's reads; call effect_fn when its result changes.

    Unlike autorun, effect_fn only fires when data_fn's *return value*
    changes, not on every dependency notification.

    Usage:
        user = make_observable({"first": "Alice", "last": "Smith"})
        names = []
        r = reaction(lambda: f"{user.first} {user.last}", names.append)

        user.first = "Bob"
        tick()
        # names == ["Bob Smith"]
    """
    r = DataReaction(data_fn, effect_fn, debug=debug)
    if fire_immediately:
        r.subscriber()
    else:
        # Establish dependencies, but suppress the initial effect.
        r._last_value = r.scheduler.executor.execute(r).result
        r._initialized = True
    return r


def _require_registry(target: object) -> Registry:
    registry = get_registry(target)
    if registry is None:
        raise MisuseError(f"{type(target).__name__} object is not observable")
    return registry


def subscribe(target: object, callback: Subscriber, keys: Iterable[Hashable]) -> Disposer:
    """Call callback(changes) when any of keys changes on target.

    Nothing runs up front; the callback receives the set of properties that
    changed in the flush that triggered it. Returns a disposer.
    """
    registry = _require_registry(target)
    name = getattr(callback, "__name__", None)
    r = Reaction(subscriber=callback, name=name)
    for key in keys:
        registry.subscribe(key, r)
    return r.dispose


def listen(target: object, callback: Callable[[Hashable, Any], None]) -> Disposer:
    """Call callback(prop, value) synchronously for every write on target."""
    registry = _require_registry(target)
    return registry.add_listener(callback)


def untracked(work: Callable[[], T]) -> T:
    """Run work without recording any dependency."""
    with get_scheduler().untracked():
        return work()


def dispose(target: Reaction) -> None:
    target.scheduler.executor.dispose(target)
