"""Observable objects: plain Python objects whose attributes are tracked.

Subclass Observable and use the instance like any other object. Every
attribute read inside a reaction becomes a dependency, and every write is
reported to the object's Registry:

    class Todo(Observable):
        def __init__(self, title):
            self.title = title
            self.done = False

        @property
        def label(self):
            return f"[{'x' if self.done else ' '}] {self.title}"

        def toggle(self):
            self.done = not self.done

- Properties become cached derived values (see tracked.computed).
- Methods run as actions: their writes are flushed once, when they return.
- Lists, dicts and sets assigned to attributes become observable
  collections, and plain namespaces become observable objects, unless the
  attribute is listed in ``shallow`` (collection items left as-is) or
  ``ignore`` (not tracked at all).
- Class-level values are per-instance defaults.

make_observable() does the same for a mapping. Cell is a single observable
value read with .get() and written with .set().
"""

from __future__ import annotations

import inspect
from collections.abc import Mapping
from types import SimpleNamespace
from typing import Any, ClassVar, Collection, Generic, Hashable, Iterable, TypeVar

from tracked.action import action
from tracked.computed import computed
from tracked.errors import MisuseError
from tracked.registry import Registry, get_registry, same_value
from tracked.structures import ObservableDict, ObservableList, ObservableSet

T = TypeVar("T")

_INTERNAL = frozenset({"_registry"})
_SETTINGS = frozenset({"ignore", "shallow"})


def wrap(registry: Registry, key: Hashable, value: Any) -> Any:
    """Convert a value stored under key to its observable counterpart.

    Values that are already observable, and values under ignored keys, are
    returned unchanged.
    """
    if key in registry.ignore or get_registry(value) is not None:
        return value
    factory = None if key in registry.shallow else wrap
    if isinstance(value, list):
        return ObservableList(value, registry=registry, key=key, factory=factory)
    if isinstance(value, dict):
        return ObservableDict(value, registry=registry, key=key, factory=factory)
    if isinstance(value, set):
        return ObservableSet(value, registry=registry, key=key)
    if isinstance(value, SimpleNamespace):
        return make_observable(value)
    return value


def _class_attribute(cls: type, name: str) -> Any:
    """The raw attribute as stored on the class, looked up along the MRO."""
    for klass in cls.__mro__:
        if name in klass.__dict__:
            return klass.__dict__[name]
    return None


def _is_method(attr: Any) -> bool:
    return isinstance(attr, (classmethod, staticmethod)) or inspect.isfunction(attr)


def _is_data_descriptor(attr: Any) -> bool:
    return hasattr(type(attr), "__set__")


class Observable:
    """Base class for objects whose attributes are tracked.

    Set ``ignore`` and ``shallow`` on the subclass to opt attributes out of
    tracking or of nested conversion.
    """

    ignore: ClassVar[Collection[str]] = ()
    shallow: ClassVar[Collection[str]] = ()

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        ignored = set(cls.ignore)
        for name, attr in list(vars(cls).items()):
            if name.startswith("__") or name in ignored or name in _SETTINGS:
                continue
            if isinstance(attr, property):
                if attr.fget is None:
                    continue
                setattr(cls, name, computed(attr.fget, attr.fset, name))
            elif inspect.isfunction(attr):
                setattr(cls, name, action(attr))

    def __new__(cls, *args: Any, **kwargs: Any):
        self = super().__new__(cls)
        registry = Registry(cls.__name__, ignore=cls.ignore, shallow=cls.shallow)
        object.__setattr__(self, "_registry", registry)
        for name, value in _defaults(cls):
            object.__setattr__(self, name, wrap(registry, name, value))
        return self

    def __getattribute__(self, name: str) -> Any:
        value = object.__getattribute__(self, name)
        if name.startswith("__") or name in _INTERNAL:
            return value
        if _is_method(_class_attribute(type(self), name)):
            return value
        # Reported after the lookup, so a derived value computes first.
        object.__getattribute__(self, "_registry").on_read(name)
        return value

    def __setattr__(self, name: str, value: Any) -> None:
        attr = _class_attribute(type(self), name)
        if name.startswith("__") or name in _INTERNAL or _is_data_descriptor(attr):
            object.__setattr__(self, name, value)
            return
        registry = object.__getattribute__(self, "_registry")
        attrs = object.__getattribute__(self, "__dict__")
        if name in attrs and same_value(attrs[name], value):
            return
        value = wrap(registry, name, value)
        object.__setattr__(self, name, value)
        registry.on_write(name, value)

    def __delattr__(self, name: str) -> None:
        object.__delattr__(self, name)
        if name.startswith("__") or name in _INTERNAL:
            return
        object.__getattribute__(self, "_registry").on_write(name, None)


def _defaults(cls: type) -> Iterable[tuple[str, Any]]:
    """Class-level field values, most derived class first."""
    seen: set[str] = set()
    for klass in cls.__mro__:
        if klass is Observable:
            break
        for name, value in vars(klass).items():
            if name in seen or name.startswith("__") or name in _SETTINGS:
                continue
            seen.add(name)
            if _is_method(value) or hasattr(type(value), "__get__"):
                continue
            yield name, value


class ObservableObject(Observable):
    """An Observable built from a mapping, see make_observable()."""

    def __init__(
        self,
        data: Mapping[str, Any] | None = None,
        *,
        ignore: Iterable[str] = (),
        shallow: Iterable[str] = (),
    ) -> None:
        registry = object.__getattribute__(self, "_registry")
        registry.ignore = registry.ignore | frozenset(ignore)
        registry.shallow = registry.shallow | frozenset(shallow)
        for name, value in (data or {}).items():
            setattr(self, name, value)

    def __repr__(self) -> str:
        attrs = object.__getattribute__(self, "__dict__")
        items = ", ".join(f"{k}={v!r}" for k, v in attrs.items() if k not in _INTERNAL)
        return f"ObservableObject({items})"


def make_observable(
    data: Mapping[str, Any] | SimpleNamespace,
    ignore: Iterable[str] = (),
    shallow: Iterable[str] = (),
) -> ObservableObject:
    """Return an observable object with the attributes of data.

    Usage:
        state = make_observable({"a": 1, "b": 1})
        autorun(lambda: print(state.a + state.b))
    """
    if get_registry(data) is not None:
        return data
    if isinstance(data, SimpleNamespace):
        data = vars(data)
    if not isinstance(data, Mapping):
        raise MisuseError(f"make_observable() needs a mapping or namespace, got {type(data).__name__}")
    return ObservableObject(data, ignore=ignore, shallow=shallow)


class Cell(Generic[T]):
    """A single observable value with automatic dependency tracking."""

    __slots__ = ("_registry", "_value")

    def __init__(self, value: T, *, name: str = "Cell") -> None:
        self._registry = Registry(name)
        self._value = value

    def get(self) -> T:
        """Read the value. If inside a reaction, registers the dependency."""
        self._registry.on_read("value")
        return self._value

    def set(self, value: T) -> None:
        """Write a new value; reports only if it differs."""
        if same_value(self._value, value):
            return
        self._value = value
        self._registry.on_write("value", value)

    def __repr__(self) -> str:
        return f"Cell({self._value!r})"
