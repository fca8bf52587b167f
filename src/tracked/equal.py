"""Structural equality used to decide whether a derived value changed.

Values are compared by shape: primitives by ``==`` (NaN equals NaN),
mappings key by key, sequences item by item, sets by membership and
records (objects with a ``__dict__``) attribute by attribute.

There is no cycle detection. Recursion stops at MAX_DEPTH, and anything
deeper than that compares unequal, so a too-deep value is reported as
changed rather than silently kept.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence, Set

MAX_DEPTH = 64

_PRIMITIVES = (str, bytes, bytearray, int, float, complex, bool)

# Attributes that belong to the reactive machinery, not to the record.
_HIDDEN = frozenset({"_registry"})


def deep_equal(a: object, b: object, depth: int = 0) -> bool:
    """Return True if a and b have the same structure and values."""
    if a is b:
        return True
    if a is None or b is None:
        return False
    if depth >= MAX_DEPTH:
        return False

    if isinstance(a, _PRIMITIVES) or isinstance(b, _PRIMITIVES):
        if isinstance(a, float) and isinstance(b, float) and math.isnan(a) and math.isnan(b):
            return True
        return type(a) is type(b) and a == b

    if isinstance(a, Mapping):
        if not isinstance(b, Mapping) or len(a) != len(b):
            return False
        for key in a:
            if key not in b or not deep_equal(a[key], b[key], depth + 1):
                return False
        return True

    if isinstance(a, Set):
        return isinstance(b, Set) and len(a) == len(b) and all(item in b for item in a)

    if isinstance(a, Sequence):
        if not isinstance(b, Sequence) or isinstance(b, Mapping) or len(a) != len(b):
            return False
        return all(deep_equal(x, y, depth + 1) for x, y in zip(a, b))

    fields_a = _fields(a)
    fields_b = _fields(b)
    if fields_a is None or fields_b is None:
        return a == b
    if type(a) is not type(b):
        return False
    return deep_equal(fields_a, fields_b, depth + 1)


def _fields(value: object) -> dict | None:
    try:
        attrs = object.__getattribute__(value, "__dict__")
    except AttributeError:
        return None
    return {k: v for k, v in attrs.items() if k not in _HIDDEN}
