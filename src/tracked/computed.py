"""Computed values: derived state with automatic dependency tracking.

A DerivedValue is a reaction bound to one property of one Registry. It runs
its getter through the Executor, caches the result and stays subscribed to
whatever the getter read.

- A dependency write marks it stale at once (and everything derived from it),
  so a read never returns an outdated value.
- When its subscriber fires outside a transaction and something observes it,
  it recomputes eagerly; if the result differs structurally from the cache it
  reports itself on its own Registry, cascading to its readers.
- Inside a transaction recomputation waits for the next read or for the end
  of the transaction, whichever comes first.
- A getter that raises leaves the cache untouched; the next read retries.

`computed` turns a method of an Observable subclass into such a property
(plain ``property`` objects are converted automatically). `Computed` is the
standalone form, read with .get().
"""

from __future__ import annotations

import functools
from typing import Any, Callable, Generic, Hashable, TypeVar

from tracked.equal import deep_equal
from tracked.errors import MisuseError
from tracked.reaction import Reaction
from tracked.registry import Registry, get_registry

T = TypeVar("T")

_UNSET = object()


class DerivedValue(Reaction):
    """A cached, lazily recomputed value exposed as a Registry property."""

    __slots__ = ("_registry", "_property", "_setter", "_written", "value", "stale", "first")

    computed = True

    def __init__(
        self,
        registry: Registry,
        prop: Hashable,
        getter: Callable[[], Any],
        setter: Callable[[Any], None] | None = None,
    ) -> None:
        name = f"{registry.owner}.{prop}" if registry.owner else str(prop)
        super().__init__(getter, name=name)
        self._registry = registry
        self._property = prop
        self._setter = setter
        self._written = _UNSET
        self.value = None
        self.stale = False
        self.first = True

    def get(self) -> Any:
        if self.disposed:
            return self.run()
        if self.first:
            self._compute()
            return self.value
        # Nothing observable was read, so nothing can invalidate the cache.
        if not self.edges:
            return self.run()
        if self.stale:
            self._compute()
        return self.value

    def set(self, value: Any) -> None:
        """Write-through to the paired setter; report if the argument changed."""
        if self._setter is None:
            raise AttributeError(f"property {self._property!r} of {self._registry.owner!r} has no setter")
        self._setter(value)
        previous, self._written = self._written, value
        with self.scheduler.untracked():
            same = deep_equal(previous, value)
        if not same:
            self._report(value)

    def invalidate(self) -> None:
        """Mark stale, along with every derived value that reads this one."""
        if self.stale or self.first:
            return
        self.stale = True
        for reaction in self._registry.subscribers(self._property):
            if reaction.computed:
                reaction.invalidate()

    def subscriber(self, changes: frozenset | None = None) -> None:
        self.stale = True
        if self.disposed or self.first:
            return
        transactions = self.scheduler.transactions
        if transactions.active:
            transactions.defer_compute(self)
            return
        # Unobserved values stay stale until someone reads them.
        if self._registry.observed(self._property):
            self._compute()

    def refresh(self) -> None:
        """Recompute now if stale."""
        if self.stale and not self.first and not self.disposed:
            self._compute()

    def _compute(self) -> None:
        first = self.first
        previous = self.value
        value = self.scheduler.executor.execute(self).result
        self.value = value
        self.first = False
        self.stale = False
        if first:
            return
        with self.scheduler.untracked():
            same = deep_equal(previous, value)
        if not same:
            self._report(value)

    def _report(self, value: Any) -> None:
        self._registry.report(self._property, value)
        if not self.scheduler.transactions.active:
            self._registry.batch()

    def __repr__(self) -> str:
        if self.first:
            state = "uncomputed"
        elif self.stale:
            state = "stale"
        else:
            state = f"cached={self.value!r}"
        return f"DerivedValue({self.name}, {state})"


class computed:
    """Descriptor: a cached derived attribute of an Observable subclass.

    Usage:
        class Order(Observable):
            def __init__(self):
                self.price = 10
                self.quantity = 2

            @computed
            def total(self):
                return self.price * self.quantity
    """

    def __init__(
        self,
        fget: Callable[[Any], T],
        fset: Callable[[Any, Any], None] | None = None,
        name: str | None = None,
    ) -> None:
        self.fget = fget
        self.fset = fset
        self.name = name or fget.__name__
        self.__doc__ = fget.__doc__

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def setter(self, fset: Callable[[Any, Any], None]) -> computed:
        return type(self)(self.fget, fset, self.name)

    def derived(self, instance: object) -> DerivedValue:
        """The DerivedValue backing this attribute on instance."""
        registry = get_registry(instance)
        if registry is None:
            raise MisuseError(f"computed {self.name!r} requires an Observable, got {type(instance).__name__}")
        derived = registry.derived.get(self.name)
        if derived is None:
            getter = functools.partial(self.fget, instance)
            setter = functools.partial(self.fset, instance) if self.fset is not None else None
            derived = registry.derived[self.name] = DerivedValue(registry, self.name, getter, setter)
        return derived

    def __get__(self, instance: object, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return self.derived(instance).get()

    def __set__(self, instance: object, value: Any) -> None:
        self.derived(instance).set(value)


class Computed(Generic[T]):
    """A standalone derived value.

    Usage:
        counter = Cell(0)
        doubled = Computed(lambda: counter.get() * 2)

        doubled.get()  # 0
        counter.set(5)
        doubled.get()  # 10
    """

    __slots__ = ("_registry", "_derived")

    def __init__(
        self,
        fn: Callable[[], T],
        setter: Callable[[T], None] | None = None,
        *,
        name: str | None = None,
    ) -> None:
        self._registry = Registry(name or getattr(fn, "__name__", "Computed"))
        self._derived = DerivedValue(self._registry, "value", fn, setter)

    def get(self) -> T:
        """Read the computed value. Recomputes if stale."""
        value = self._derived.get()
        self._registry.on_read("value")
        return value

    def set(self, value: T) -> None:
        self._derived.set(value)

    def dispose(self) -> None:
        """Disconnect from all dependencies. Later reads evaluate uncached."""
        self._derived.dispose()

    def __repr__(self) -> str:
        return f"Computed({self._derived.name}, {self._derived!r})"
