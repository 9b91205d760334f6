"""Awaiting tasks from tasks: continuation links and completion dispatch."""

import gc
import inspect

import pytest

from cotask import BrokenPromise, Interlock, Signal, spawn, task
from cotask.state import arena


def stack_depth() -> int:
    return len(inspect.stack(0))


class TestAwaitTask:
    def test_await_yields_returned_value(self) -> None:
        @task
        async def inner():
            return 42

        @task
        async def outer():
            return await inner()

        assert outer().result() == 42

    def test_await_reraises_error(self) -> None:
        @task
        async def inner():
            raise ValueError("boom")

        @task
        async def outer():
            await inner()

        with pytest.raises(ValueError, match="boom"):
            outer().result()

    def test_error_can_be_caught_at_await_site(self, signal: Signal) -> None:
        @task
        async def inner():
            await signal.suspend()
            raise KeyError("k")

        @task
        async def outer():
            try:
                await inner()
            except KeyError:
                return "recovered"

        t = outer()
        signal.resume()

        assert t.result() == "recovered"

    def test_awaiting_finished_task_does_not_suspend(self, recording) -> None:
        @task
        async def inner():
            return 1

        @task
        async def outer():
            return await inner() + 1

        t = outer()

        assert t.done
        assert t.result() == 2
        assert recording.snapshot().suspensions == 0

    def test_awaiting_same_finished_task_twice_yields_same_result(self) -> None:
        shared = spawn(lambda: object())

        @task
        async def outer():
            first = await shared
            second = await shared
            return first is second

        assert outer().result() is True
        assert shared.owned

    def test_generator_body_awaits_with_yield(self, signal: Signal) -> None:
        @task
        async def inner():
            await signal.suspend()
            return "in"

        @task
        def outer():
            value = yield inner()
            return value + "-out"

        t = outer()
        signal.resume()

        assert t.result() == "in-out"

    def test_yielding_non_awaitable_raises_type_error_in_body(self) -> None:
        @task
        def outer():
            yield 5

        with pytest.raises(TypeError, match="cannot await int"):
            outer().result()

    def test_awaiting_released_task_raises_broken_promise(self, signal: Signal) -> None:
        @task
        async def slow():
            await signal.suspend()

        detached = slow().no_wait()

        @task
        async def outer():
            await detached

        with pytest.raises(BrokenPromise):
            outer().result()
        signal.resume()
        assert len(arena) == 0

    def test_second_awaiter_of_pending_task_gets_broken_promise(self, signal: Signal) -> None:
        @task
        async def slow():
            await signal.suspend()
            return 1

        shared = slow()

        @task
        async def waiter():
            return await shared

        first = waiter()
        second = waiter()

        assert second.done
        with pytest.raises(BrokenPromise, match="already awaited"):
            second.result()
        signal.resume()
        assert first.result() == 1

    def test_detaching_awaited_task_raises_broken_promise(self, signal: Signal) -> None:
        @task
        async def slow():
            await signal.suspend()
            return 1

        shared = slow()

        @task
        async def waiter():
            return await shared

        w = waiter()

        with pytest.raises(BrokenPromise, match="while another task awaits it"):
            shared.then(print)
        assert shared.owned
        signal.resume()
        assert w.result() == 1


class TestCompletionDispatch:
    def test_nested_chain_resumes_in_one_unwind(self, signal: Signal) -> None:
        events = []
        depths = {}

        @task
        async def c():
            events.append("c start")
            await signal.suspend()
            depths["c"] = stack_depth()
            events.append("c end")
            return "c"

        @task
        async def b():
            value = await c()
            depths["b"] = stack_depth()
            events.append("b resumed")
            return value + "b"

        @task
        async def a():
            value = await b()
            depths["a"] = stack_depth()
            events.append("a resumed")
            return value + "a"

        t = a()
        assert events == ["c start"]

        signal.resume()
        events.append("resume returned")

        assert events == ["c start", "c end", "b resumed", "a resumed", "resume returned"]
        assert depths["c"] == depths["b"] == depths["a"]
        assert t.result() == "cba"

    def test_deep_chain_resumes_without_recursion(self) -> None:
        lock: Interlock[str, int] = Interlock()

        @task
        async def level(n):
            if n == 0:
                return await lock.suspend("leaf")
            return await level(n - 1) + 1

        t = level(100)
        assert not t.done

        lock.resume("leaf", 0)

        assert t.result() == 100

    def test_sibling_awaits_run_in_sequence(self) -> None:
        lock: Interlock[int, str] = Interlock()

        @task
        async def request(req_id):
            return await lock.suspend(req_id)

        @task
        async def session():
            first = await request(1)
            second = await request(2)
            return first + second

        s = session()
        assert lock.pending() == (1,)

        lock.resume(1, "a")
        assert lock.pending() == (2,)

        lock.resume(2, "b")
        assert s.result() == "ab"

    def test_detached_parent_resumes_and_delivers(self, signal: Signal) -> None:
        values = []

        @task
        async def child():
            await signal.suspend()
            return 10

        @task
        async def parent():
            return await child() * 2

        parent().then(values.append)
        gc.collect()

        signal.resume()

        assert values == [20]
        assert len(arena) == 0

    def test_collected_parent_is_never_resumed(self, signal: Signal) -> None:
        events = []

        @task
        async def child():
            await signal.suspend()
            events.append("child done")
            return 1

        @task
        async def parent():
            await child()
            events.append("parent resumed")

        p = parent()
        del p
        gc.collect()

        signal.resume()

        assert events == ["child done"]
