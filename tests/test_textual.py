"""Tests for tracked.textual: Textual integration layer."""

import pytest
from textual.css.query import NoMatches

from tracked import Cell, tick
from tracked import textual as ttx


class _MockApp:
    """Minimal mock matching the Textual App interface ttx needs."""

    def __init__(self, *, is_running=True):
        self.is_running = is_running


class _MockWidget:
    """Minimal mock of a Widget: an app and a refresh() counter."""

    def __init__(self, app, count):
        self.app = app
        self.count = count
        self.refreshes = 0

    def refresh(self):
        self.refreshes += 1

    @ttx.observer
    def render(self):
        return f"Count: {self.count.get()}"


class TestReaction:
    def test_skips_when_not_running(self):
        app = _MockApp(is_running=False)
        o = Cell(1)
        effects = []
        ttx.reaction(app, lambda: o.get(), lambda v: effects.append(v))
        o.set(2)
        tick()
        assert effects == []

    def test_skips_during_pause(self):
        app = _MockApp()
        o = Cell(1)
        effects = []
        ttx.reaction(app, lambda: o.get(), lambda v: effects.append(v))
        with ttx.pause(app):
            o.set(2)
            tick()
        assert effects == []

    def test_fires_when_safe(self):
        app = _MockApp()
        o = Cell(1)
        effects = []
        ttx.reaction(app, lambda: o.get(), lambda v: effects.append(v))
        o.set(2)
        tick()
        assert effects == [2]

    def test_catches_nomatch(self):
        """NoMatches from widget queries are silently swallowed."""
        app = _MockApp()
        o = Cell(1)

        def _raise_nomatch(v):
            raise NoMatches("StatusFooter")

        # Should not raise
        r = ttx.reaction(app, lambda: o.get(), _raise_nomatch)
        o.set(2)
        tick()
        r.dispose()

    def test_propagates_real_errors(self):
        """Non-NoMatches exceptions propagate normally."""
        app = _MockApp()
        o = Cell(1)

        def _raise_value_error(v):
            raise ValueError("boom")

        ttx.reaction(app, lambda: o.get(), _raise_value_error)
        o.set(2)
        with pytest.raises(ValueError, match="boom"):
            tick()

    def test_dispose_stops_reaction(self):
        app = _MockApp()
        o = Cell(1)
        effects = []
        r = ttx.reaction(app, lambda: o.get(), lambda v: effects.append(v))
        o.set(2)
        tick()
        assert effects == [2]
        r.dispose()
        o.set(3)
        tick()
        assert effects == [2]


class TestAutorun:
    def test_skips_during_pause(self):
        app = _MockApp()
        o = Cell(1)
        log = []

        ttx.autorun(app, lambda: log.append(o.get()))
        # autorun fires immediately on setup
        assert log == [1]

        with ttx.pause(app):
            o.set(2)
            tick()
        # Skipped during pause
        assert log == [1]

    def test_catches_nomatch(self):
        """NoMatches from widget queries are silently swallowed."""
        app = _MockApp()
        o = Cell(1)
        call_count = [0]

        def _fn():
            call_count[0] += 1
            o.get()  # track dependency
            if call_count[0] > 1:
                raise NoMatches("Widget")

        # Initial run succeeds (call_count becomes 1)
        ttx.autorun(app, _fn)
        assert call_count[0] == 1

        # Second run raises NoMatches, silently caught
        o.set(2)
        tick()
        assert call_count[0] == 2

    def test_fires_when_safe(self):
        app = _MockApp()
        o = Cell(1)
        log = []
        ttx.autorun(app, lambda: log.append(o.get()))
        o.set(2)
        tick()
        assert log == [1, 2]


class TestObserver:
    def test_render_returns_value(self):
        w = _MockWidget(_MockApp(), Cell(0))
        assert w.render() == "Count: 0"
        assert w.refreshes == 0

    def test_change_refreshes_widget(self):
        count = Cell(0)
        w = _MockWidget(_MockApp(), count)
        w.render()
        count.set(1)
        tick()
        assert w.refreshes == 1
        assert w.render() == "Count: 1"

    def test_no_refresh_while_paused(self):
        app = _MockApp()
        count = Cell(0)
        w = _MockWidget(app, count)
        w.render()
        with ttx.pause(app):
            count.set(1)
            tick()
        assert w.refreshes == 0

    def test_widgets_are_independent(self):
        app = _MockApp()
        a = _MockWidget(app, Cell(0))
        b = _MockWidget(app, Cell(0))
        a.render()
        b.render()
        a.count.set(1)
        tick()
        assert (a.refreshes, b.refreshes) == (1, 0)

    def test_release_stops_tracking(self):
        count = Cell(0)
        w = _MockWidget(_MockApp(), count)
        w.render()
        ttx.release(w)
        count.set(1)
        tick()
        assert w.refreshes == 0


class TestPause:
    def test_pause_restores_on_exception(self):
        app = _MockApp()
        assert ttx.is_safe(app)

        with pytest.raises(RuntimeError):
            with ttx.pause(app):
                assert not ttx.is_safe(app)
                raise RuntimeError("oops")

        # Restored despite exception
        assert ttx.is_safe(app)

    def test_pause_does_not_mutate_app(self):
        """Pause state lives in the module, not on the app."""
        app = _MockApp()
        attrs_before = set(vars(app))
        with ttx.pause(app):
            attrs_during = set(vars(app))
        attrs_after = set(vars(app))
        assert attrs_before == attrs_during, (
            f"pause() added attributes to app: {attrs_during - attrs_before}"
        )
        assert attrs_before == attrs_after

    def test_multiple_apps_independent(self):
        """Pausing one app does not affect another."""
        app_a = _MockApp()
        app_b = _MockApp()
        with ttx.pause(app_a):
            assert not ttx.is_safe(app_a)
            assert ttx.is_safe(app_b)
