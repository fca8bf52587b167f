"""Textual integration for tracked. Opt-in, requires textual.

- observer(render): decorate a widget's render() so the widget refreshes
  itself whenever tracked state read while rendering changes.
- autorun(app, fn) / reaction(app, data_fn, effect_fn): the core flavors,
  guarded so they do nothing while the app is not running or is paused, and
  tolerant of NoMatches from widget queries.
- pause(app): suspend guarded reactions during widget replacement.

Textual coupling is isolated here; the core stays agnostic of any UI.
"""

import functools
import weakref
from contextlib import contextmanager

from textual.css.query import NoMatches

from tracked.reaction import Reaction, autorun as _autorun, reaction as _reaction

# Keyed by id(app) so several apps work side by side in tests.
_paused_apps: set[int] = set()

# widget -> the reaction tracking its render
_renders: "weakref.WeakKeyDictionary[object, _RenderReaction]" = weakref.WeakKeyDictionary()


@contextmanager
def pause(app):
    """Suspend guarded reactions during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def reaction(app, data_fn, effect_fn, *, fire_immediately=False):
    """reaction() that safely bridges to Textual widgets.

    Skips the effect while the app is unsafe and swallows NoMatches raised
    by widget queries inside it.
    """

    def _guarded(value):
        if not is_safe(app):
            return
        try:
            effect_fn(value)
        except NoMatches:
            pass

    return _reaction(data_fn, _guarded, fire_immediately=fire_immediately)


def autorun(app, fn):
    """autorun() that safely bridges to Textual widgets.

    Skips runs while the app is unsafe and swallows NoMatches raised by
    widget queries inside fn.
    """

    def _guarded():
        if not is_safe(app):
            return
        try:
            fn()
        except NoMatches:
            pass

    return _autorun(_guarded)


class _RenderReaction(Reaction):
    """Tracks one widget's render; a change asks the widget to refresh."""

    __slots__ = ("_widget",)

    def __init__(self, widget, render) -> None:
        super().__init__(render, name=f"{type(widget).__name__}.render")
        self._widget = weakref.ref(widget)

    def subscriber(self, changes=None) -> None:
        widget = self._widget()
        if widget is None:
            self.dispose()
            return
        if is_safe(widget.app):
            widget.refresh()


def observer(render):
    """Decorator for Widget.render: refresh the widget when what it read changes.

    Usage:
        class Counter(Static):
            @observer
            def render(self):
                return f"Count: {state.count}"
    """

    @functools.wraps(render)
    def wrapper(widget):
        r = _renders.get(widget)
        if r is None:
            r = _renders[widget] = _RenderReaction(widget, render)
        return r.scheduler.executor.execute(r, widget).result

    return wrapper


def release(widget) -> None:
    """Stop tracking widget's render, e.g. from on_unmount."""
    r = _renders.pop(widget, None)
    if r is not None:
        r.dispose()
