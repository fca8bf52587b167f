"""Observable collections: list, dict and set that track reads and report writes.

A collection stored on an Observable reports to its owner's Registry under
the owner's property name, so ``order.lines.append(x)`` re-runs whatever read
``order.lines``. A collection created on its own gets a private Registry.

- ObservableList and ObservableSet track the collection as a whole.
- ObservableDict tracks each key separately, plus its key set, so reading
  ``d["a"]`` does not re-run when ``d["b"]`` changes.

Nested values are converted by the factory the owner passes in; shallow
collections get no factory and keep their items as-is. Set members are never
converted.
"""

from __future__ import annotations

from collections.abc import MutableMapping, MutableSequence, MutableSet
from typing import Any, Callable, Hashable, Iterable, Iterator, TypeVar

from tracked.registry import Registry, same_value

T = TypeVar("T")
KT = TypeVar("KT")
VT = TypeVar("VT")

Factory = Callable[[Registry, Hashable, Any], Any]

_MISSING = object()


class _Keys:
    """Marker property for a dict's key set."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "<keys>"


KEYS = _Keys()


class _Structure:
    __slots__ = ()

    def _bind(self, registry: Registry | None, key: Hashable | None, factory: Factory | None) -> None:
        if registry is None:
            registry = Registry(type(self).__name__)
        self._registry = registry
        self._key = key if key is not None else "items"
        self._factory = factory

    def _track(self) -> None:
        self._registry.on_read(self._key)

    def _notify(self) -> None:
        self._registry.on_write(self._key, self)

    def _prepare(self, value: Any, prop: Hashable | None = None) -> Any:
        if self._factory is None:
            return value
        return self._factory(self._registry, self._key if prop is None else prop, value)


class ObservableList(_Structure, MutableSequence):
    """An observable list that tracks reads and notifies on mutation.

    Any read operation (iteration, indexing, len) registers a dependency.
    Any mutation (append, extend, __setitem__, etc.) reports a change.
    """

    __slots__ = ("_registry", "_key", "_factory", "_items")

    def __init__(
        self,
        items: Iterable[T] | None = None,
        *,
        registry: Registry | None = None,
        key: Hashable | None = None,
        factory: Factory | None = None,
    ) -> None:
        self._bind(registry, key, factory)
        self._items: list[T] = [self._prepare(item) for item in items] if items is not None else []

    # --- Read operations (track) ---

    def __getitem__(self, index):
        self._track()
        return self._items[index]

    def __len__(self) -> int:
        self._track()
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        self._track()
        return iter(self._items)

    def __contains__(self, item: object) -> bool:
        self._track()
        return item in self._items

    def __bool__(self) -> bool:
        self._track()
        return bool(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ObservableList):
            other = other._items
        if not isinstance(other, list):
            return NotImplemented
        self._track()
        return self._items == other

    __hash__ = None

    # --- Write operations (notify) ---

    def __setitem__(self, index, value) -> None:
        if isinstance(index, slice):
            value = [self._prepare(item) for item in value]
        else:
            value = self._prepare(value)
        self._items[index] = value
        self._notify()

    def __delitem__(self, index) -> None:
        del self._items[index]
        self._notify()

    def insert(self, index: int, item: T) -> None:
        self._items.insert(index, self._prepare(item))
        self._notify()

    def append(self, item: T) -> None:
        self._items.append(self._prepare(item))
        self._notify()

    def extend(self, items: Iterable[T]) -> None:
        self._items.extend(self._prepare(item) for item in items)
        self._notify()

    def pop(self, index: int = -1) -> T:
        result = self._items.pop(index)
        self._notify()
        return result

    def remove(self, item: T) -> None:
        self._items.remove(item)
        self._notify()

    def clear(self) -> None:
        self._items.clear()
        self._notify()

    def sort(self, *, key=None, reverse: bool = False) -> None:
        self._items.sort(key=key, reverse=reverse)
        self._notify()

    def reverse(self) -> None:
        self._items.reverse()
        self._notify()

    def __repr__(self) -> str:
        return f"ObservableList({self._items!r})"


class ObservableDict(_Structure, MutableMapping):
    """An observable dict that tracks each key and notifies on mutation."""

    __slots__ = ("_registry", "_key", "_factory", "_data")

    def __init__(
        self,
        data: dict[KT, VT] | None = None,
        *,
        registry: Registry | None = None,
        key: Hashable | None = None,
        factory: Factory | None = None,
    ) -> None:
        self._bind(registry, key, factory)
        self._data: dict[KT, VT] = {}
        if data is not None:
            self._data = {k: self._prepare(v, self._item(k)) for k, v in data.items()}

    def _item(self, key: KT) -> tuple:
        return (self._key, key)

    @property
    def _keys(self) -> tuple:
        return (self._key, KEYS)

    def _track_item(self, key: KT) -> None:
        self._registry.on_read(self._item(key))

    def _track_keys(self) -> None:
        self._registry.on_read(self._keys)

    def _report(self, prop: tuple, value: Any) -> None:
        self._registry.on_write(prop, value)

    # --- Read operations (track) ---

    def __getitem__(self, key: KT) -> VT:
        self._track_item(key)
        return self._data[key]

    def get(self, key: KT, default: VT | None = None) -> VT | None:
        self._track_item(key)
        return self._data.get(key, default)

    def __contains__(self, key: object) -> bool:
        self._track_item(key)
        return key in self._data

    def __len__(self) -> int:
        self._track_keys()
        return len(self._data)

    def __iter__(self) -> Iterator[KT]:
        self._track_keys()
        return iter(self._data)

    def __bool__(self) -> bool:
        self._track_keys()
        return bool(self._data)

    def keys(self):
        self._track_keys()
        return self._data.keys()

    def values(self):
        self._track_keys()
        for key in self._data:
            self._track_item(key)
        return self._data.values()

    def items(self):
        self._track_keys()
        for key in self._data:
            self._track_item(key)
        return self._data.items()

    # --- Write operations (notify) ---

    def __setitem__(self, key: KT, value: VT) -> None:
        added = key not in self._data
        old = self._data.get(key, _MISSING)
        value = self._prepare(value, self._item(key))
        self._data[key] = value
        if added:
            self._report(self._keys, self)
        if not same_value(old, value):
            self._report(self._item(key), value)

    def __delitem__(self, key: KT) -> None:
        del self._data[key]
        self._report(self._item(key), None)
        self._report(self._keys, self)

    def pop(self, key: KT, *args: Any) -> VT:
        if key not in self._data:
            return self._data.pop(key, *args)
        result = self._data.pop(key)
        self._report(self._item(key), None)
        self._report(self._keys, self)
        return result

    def setdefault(self, key: KT, default: VT | None = None) -> VT:
        if key not in self._data:
            self[key] = default
        return self._data[key]

    def clear(self) -> None:
        if not self._data:
            return
        keys = list(self._data)
        self._data.clear()
        for key in keys:
            self._report(self._item(key), None)
        self._report(self._keys, self)

    def __repr__(self) -> str:
        return f"ObservableDict({self._data!r})"


class ObservableSet(_Structure, MutableSet):
    """An observable set that tracks reads and notifies on mutation."""

    __slots__ = ("_registry", "_key", "_factory", "_members")

    def __init__(
        self,
        members: Iterable[T] | None = None,
        *,
        registry: Registry | None = None,
        key: Hashable | None = None,
        factory: Factory | None = None,
    ) -> None:
        # Members are hashable and never converted, so the factory is unused.
        self._bind(registry, key, None)
        self._members: set[T] = set(members) if members is not None else set()

    # --- Read operations (track) ---

    def __contains__(self, item: object) -> bool:
        self._track()
        return item in self._members

    def __iter__(self) -> Iterator[T]:
        self._track()
        return iter(self._members)

    def __len__(self) -> int:
        self._track()
        return len(self._members)

    def __bool__(self) -> bool:
        self._track()
        return bool(self._members)

    # --- Write operations (notify) ---

    def add(self, item: T) -> None:
        if item not in self._members:
            self._members.add(item)
            self._notify()

    def discard(self, item: T) -> None:
        if item in self._members:
            self._members.discard(item)
            self._notify()

    def update(self, *others: Iterable[T]) -> None:
        size = len(self._members)
        for other in others:
            self._members.update(other)
        if len(self._members) != size:
            self._notify()

    def clear(self) -> None:
        if self._members:
            self._members.clear()
            self._notify()

    def __repr__(self) -> str:
        return f"ObservableSet({self._members!r})"
