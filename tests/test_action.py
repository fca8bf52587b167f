"""Tests for action batching and transactions."""

import asyncio

import pytest

from tracked import Cell, Observable, action, autorun, get_scheduler, make_observable, tick, transaction


class TestAction:
    def test_batches_updates(self):
        a = Cell(0)
        b = Cell(0)
        log = []
        autorun(lambda: log.append((a.get(), b.get())))
        assert log == [(0, 0)]

        @action
        def update_both():
            a.set(1)
            b.set(2)

        update_both()
        # Should see (1, 2) not intermediate (1, 0)
        assert log == [(0, 0), (1, 2)]

    def test_nested_actions(self):
        o = Cell(0)
        log = []
        autorun(lambda: log.append(o.get()))

        @action
        def outer():
            o.set(1)

            @action
            def inner():
                o.set(2)

            inner()
            o.set(3)

        outer()
        # Only fires after outermost action completes
        assert log == [0, 3]

    def test_preserves_return_value(self):
        @action
        def compute():
            return 42

        assert compute() == 42

    def test_idempotent(self):
        def fn():
            pass

        wrapped = action(fn)
        assert action(wrapped) is wrapped
        assert wrapped.__name__ == "fn"

    def test_exception_still_flushes(self):
        o = Cell(0)
        log = []
        autorun(lambda: log.append(o.get()))

        @action
        def broken():
            o.set(1)
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            broken()
        assert log == [0, 1]
        assert not get_scheduler().transactions.active

    def test_reads_inside_action_see_written_values(self):
        o = Cell(0)
        seen = []

        @action
        def bump():
            o.set(o.get() + 1)
            seen.append(o.get())

        bump()
        assert seen == [1]


class TestTransaction:
    def test_context_manager(self):
        a = Cell(0)
        b = Cell(0)
        log = []
        autorun(lambda: log.append(a.get() + b.get()))

        with transaction():
            a.set(10)
            b.set(20)
            assert log == [0]  # not yet

        assert log == [0, 30]

    def test_callable_form_returns_result(self):
        a = Cell(0)
        log = []
        autorun(lambda: log.append(a.get()))

        def work():
            a.set(1)
            a.set(2)
            return "done"

        assert transaction(work) == "done"
        assert log == [0, 2]

    def test_queue_drained_in_order(self, scheduler):
        a = Cell(0, name="a")
        b = Cell(0, name="b")
        order = []
        autorun(lambda: order.append(("a", a.get())))
        autorun(lambda: order.append(("b", b.get())))
        order.clear()

        with transaction():
            b.set(1)
            a.set(1)
            assert scheduler.transactions.pending == 2

        assert order == [("b", 1), ("a", 1)]
        assert scheduler.transactions.pending == 0

    def test_no_deferred_work_left_behind(self, scheduler):
        a = Cell(0)
        autorun(lambda: a.get())
        with transaction():
            a.set(1)
        tick()
        assert scheduler.pending == 0

    def test_failing_flush_keeps_other_updates(self):
        a = make_observable({"x": 1})
        b = make_observable({"y": 1})
        seen = []

        def check():
            if a.x == 2:
                raise ValueError("bad x")

        autorun(check)
        autorun(lambda: seen.append(b.y))

        with pytest.raises(ValueError, match="bad x"):
            with transaction():
                a.x = 2
                b.y = 2

        assert not get_scheduler().transactions.active
        tick()
        assert seen == [1, 2]


class Counter(Observable):
    def __init__(self):
        self.value = 0

    def increment(self):
        self.value += 1
        self.value += 1

    async def bump_twice(self):
        self.value += 1
        await asyncio.sleep(0)
        self.value += 1
        return self.value

    async def fail_after_write(self):
        self.value = 100
        await asyncio.sleep(0)
        raise ValueError("late failure")


class TestMethodsAsActions:
    def test_methods_are_actions(self):
        c = Counter()
        log = []
        autorun(lambda: log.append(c.value))
        c.increment()
        assert log == [0, 2]

    def test_async_action_batches_each_step(self):
        c = Counter()
        log = []
        autorun(lambda: log.append(c.value))
        assert asyncio.run(c.bump_twice()) == 2
        assert log == [0, 1, 2]

    def test_async_action_propagates_errors(self):
        c = Counter()
        log = []
        autorun(lambda: log.append(c.value))
        with pytest.raises(ValueError, match="late failure"):
            asyncio.run(c.fail_after_write())
        assert log == [0, 100]
        assert not get_scheduler().transactions.active
