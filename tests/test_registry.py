"""Tests for Registry: edges, listeners, change reporting and batching."""

import pytest

from tracked import Reaction, Registry, get_registry, make_observable, tick
from tracked.registry import DIRTY, IDLE, same_value


def _recorder(name, calls):
    return Reaction(subscriber=lambda changes: calls.append((name, changes)), name=name)


class TestEdges:
    def test_subscribe_records_both_sides(self):
        reg = Registry("Thing")
        r = Reaction(name="r")
        reg.subscribe("a", r)
        assert reg.subscribers("a") == [r]
        assert (reg, "a") in r.edges
        assert reg.observed("a")

    def test_subscribe_ignored_property_is_noop(self):
        reg = Registry("Thing", ignore=["a"])
        r = Reaction(name="r")
        reg.subscribe("a", r)
        assert reg.subscribers("a") == []
        assert not r.edges

    def test_subscribe_while_untracked_is_noop(self, scheduler):
        reg = Registry("Thing")
        r = Reaction(name="r")
        with scheduler.untracked():
            reg.subscribe("a", r)
        assert not reg.observed("a")

    def test_unsubscribe(self):
        reg = Registry("Thing")
        r = Reaction(name="r")
        reg.subscribe("a", r)
        reg.unsubscribe("a", r)
        assert reg.subscribers("a") == []
        assert not r.edges

    def test_remove_runnable_purges_every_property(self):
        reg = Registry("Thing")
        r = Reaction(name="r")
        other = Reaction(name="other")
        reg.subscribe("a", r)
        reg.subscribe("b", r)
        reg.subscribe("b", other)
        reg.remove_runnable(r)
        assert reg.subscribers("a") == []
        assert reg.subscribers("b") == [other]


class TestListeners:
    def test_listener_sees_every_write(self):
        reg = Registry("Thing")
        seen = []
        reg.add_listener(lambda prop, value: seen.append((prop, value)))
        reg.report("a", 1)
        reg.report("b", 2)
        assert seen == [("a", 1), ("b", 2)]

    def test_remover(self):
        reg = Registry("Thing")
        seen = []
        remove = reg.add_listener(lambda prop, value: seen.append(prop))
        remove()
        remove()  # removing twice is harmless
        reg.report("a", 1)
        assert seen == []

    def test_same_listener_added_twice_fires_once(self):
        reg = Registry("Thing")
        seen = []

        def listener(prop, value):
            seen.append(prop)

        reg.add_listener(listener)
        reg.add_listener(listener)
        reg.report("a", 1)
        assert seen == ["a"]


class TestReport:
    def test_unobserved_change_is_not_recorded(self, scheduler):
        reg = Registry("Thing")
        reg.report("a", 1)
        assert reg.changes == {}
        assert reg.state == IDLE
        assert scheduler.pending == 0

    def test_observed_change_schedules_one_flush(self, scheduler):
        reg = Registry("Thing")
        calls = []
        reg.subscribe("a", _recorder("r", calls))
        reg.report("a", 1)
        reg.report("a", 2)
        assert reg.state == DIRTY
        assert list(reg.changes) == ["a"]
        assert scheduler.pending == 1

        tick()
        assert calls == [("r", frozenset({"a"}))]
        assert reg.state == IDLE

    def test_batch_notifies_in_subscription_order(self):
        reg = Registry("Thing")
        calls = []
        reg.subscribe("b", _recorder("first", calls))
        reg.subscribe("a", _recorder("second", calls))
        reg.report("a", 1)
        reg.report("b", 1)
        reg.batch()
        assert [name for name, _ in calls] == ["first", "second"]

    def test_batch_notifies_shared_subscriber_once(self):
        reg = Registry("Thing")
        calls = []
        r = _recorder("r", calls)
        reg.subscribe("a", r)
        reg.subscribe("b", r)
        reg.report("a", 1)
        reg.report("b", 1)
        reg.batch()
        assert calls == [("r", frozenset({"a", "b"}))]

    def test_batch_skips_disposed_reaction(self):
        reg = Registry("Thing")
        calls = []
        r = _recorder("r", calls)
        reg.subscribe("a", r)
        reg.report("a", 1)
        r.dispose()
        reg.batch()
        assert calls == []

    def test_failing_subscriber_does_not_drop_later_ones(self):
        reg = Registry("Thing")
        calls = []

        def boom(changes):
            raise RuntimeError("boom")

        reg.subscribe("a", Reaction(subscriber=boom, name="boom"))
        reg.subscribe("a", _recorder("after", calls))
        reg.report("a", 1)
        with pytest.raises(RuntimeError, match="boom"):
            reg.batch()
        assert reg.state == DIRTY

        tick()
        assert [name for name, _ in calls] == ["after"]
        assert reg.state == IDLE

    def test_read_of_pending_property_flushes(self):
        reg = Registry("Thing")
        calls = []
        reg.subscribe("a", _recorder("r", calls))
        reg.report("a", 1)
        reg.on_read("a")
        assert len(calls) == 1

    def test_repr(self):
        assert repr(Registry("Thing")) == "Registry('Thing', 0 props, idle)"


class TestHelpers:
    def test_get_registry(self):
        state = make_observable({"a": 1})
        assert isinstance(get_registry(state), Registry)
        assert get_registry({"a": 1}) is None
        assert get_registry(None) is None

    def test_same_value(self):
        assert same_value(1, 1)
        assert same_value("x", "x")
        assert not same_value(1, 2)
        assert not same_value([1], [2])

    def test_reactive_values_compare_by_identity(self):
        a = make_observable({"x": 1})
        b = make_observable({"x": 1})
        assert same_value(a, a)
        assert not same_value(a, b)
