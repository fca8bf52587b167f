"""Actions and transactions: batched state mutations.

Wrapping mutations in an @action, ``transaction(work)`` or
``with transaction():`` defers all flushing until the outermost scope exits.
A reaction that depends on several properties changed together runs once
and never sees a half-applied update.

Coroutine functions decorated with @action are batched per step: each
stretch of synchronous code between two awaits is its own transaction, so
writes made before an await are visible while it is pending.
"""

from __future__ import annotations

import functools
import inspect
from typing import Any, Callable, Coroutine, Generator, ParamSpec, TypeVar

from tracked.scheduler import get_scheduler

P = ParamSpec("P")
R = TypeVar("R")


def action(fn: Callable[P, R]) -> Callable[P, R]:
    """Decorator: batch all observable mutations inside fn.

    Reactions only fire after fn returns, not during.

    Usage:
        @action
        def swap(pair):
            pair.a, pair.b = pair.b, pair.a
            # reactions see both changes at once, not one at a time
    """
    if getattr(fn, "__tracked_action__", False):
        return fn

    if inspect.iscoroutinefunction(fn):

        @functools.wraps(fn)
        async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> Any:
            return await _Batched(fn(*args, **kwargs))

        async_wrapper.__tracked_action__ = True
        return async_wrapper

    @functools.wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        with get_scheduler().transactions.scope():
            return fn(*args, **kwargs)

    wrapper.__tracked_action__ = True
    return wrapper


def transaction(work: Callable[[], R] | None = None):
    """Run work as one transaction and return its result.

    Called without work, returns a context manager instead:

        with transaction():
            order.price = 12
            order.quantity = 3
            # reactions fire here, after both are set
    """
    transactions = get_scheduler().transactions
    if work is None:
        return transactions.scope()
    return transactions.run(work)


class _Batched:
    """Awaitable driving a coroutine one transaction per step."""

    __slots__ = ("_coro",)

    def __init__(self, coro: Coroutine[Any, Any, R]) -> None:
        self._coro = coro

    def __await__(self) -> Generator[Any, Any, Any]:
        coro = self._coro
        value: Any = None
        error: BaseException | None = None
        while True:
            with get_scheduler().transactions.scope():
                try:
                    if error is None:
                        yielded = coro.send(value)
                    else:
                        yielded = coro.throw(error)
                except StopIteration as stop:
                    return stop.value
            try:
                value = yield yielded
                error = None
            except GeneratorExit:
                coro.close()
                raise
            except BaseException as exc:
                value, error = None, exc
