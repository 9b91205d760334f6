"""
The Task handle and the ways to start one.

A Task starts running the moment it is created and keeps running until it
finishes or suspends. The handle owns the task's execution state: it can be
awaited from another task, read with ``result()``, closed, or detached with
``then``/``then_or_catch``/``no_wait`` so the state manages its own lifetime.

Example:
    from cotask import Interlock, task

    replies: Interlock[int, str] = Interlock()

    @task
    async def request(req_id: int) -> str:
        return await replies.suspend(req_id)

    @task
    async def session() -> str:
        first = await request(1)
        second = await request(2)
        return first + second

    s = session()          # runs until request(1) parks on key 1
    replies.resume(1, "a") # request(1) finishes, session resumes, request(2) parks
    replies.resume(2, "b")
    assert s.result() == "ab"
"""

from __future__ import annotations

import logging
import types
from collections.abc import Callable, Generator
from functools import wraps
from typing import Any, Generic, ParamSpec, TypeVar

from cotask.errors import BrokenPromise, UnfinishedPromise
from cotask.result import Result, capture
from cotask.state import ErrorCallback, ExecutionState, ValueCallback, deliver
from cotask.step import Awaiter, drive, is_body

P = ParamSpec("P")
T = TypeVar("T")

logger = logging.getLogger(__name__)


class TaskAwait(Awaiter):
    """Awaiter produced when a body awaits a Task."""

    def __init__(self, task: Task[Any]) -> None:
        self.task = task
        self.child: ExecutionState[Any] | None = None

    def bind(self, state: ExecutionState[Any]) -> Result[Any] | None:
        child = self.task._state
        if child is None:
            raise BrokenPromise(f"awaited task {self.task!r} no longer owns its state")
        if child is state:
            raise BrokenPromise(f"task {state.name} cannot await itself")
        self.child = child
        if child.done:
            return child.result
        child.link_parent(state)
        return None

    def retrieve(self) -> Result[Any]:
        assert self.child is not None and self.child.result is not None
        return self.child.result


class Task(Generic[T]):
    """Exclusive handle over a running or finished task."""

    def __init__(self, state: ExecutionState[T]) -> None:
        self._state: ExecutionState[T] | None = state

    def __repr__(self) -> str:
        state = self._state
        if state is None:
            return "<Task released>"
        if state.result is None:
            status = "pending"
        elif state.result.is_ok():
            status = "done"
        else:
            status = "failed"
        return f"<Task {state.name} #{state.state_id} {status}>"

    def _owned(self) -> ExecutionState[T]:
        if self._state is None:
            raise BrokenPromise("task handle no longer owns its state")
        return self._state

    @property
    def owned(self) -> bool:
        return self._state is not None

    @property
    def done(self) -> bool:
        return self._owned().done

    @property
    def outcome(self) -> Result[T] | None:
        """The stored ``Ok``/``Err``, or ``None`` while the task is running."""

        return self._owned().result

    def result(self) -> T:
        """Return the value, re-raising a stored error.

        Raises:
            UnfinishedPromise: The task has not finished yet.
            BrokenPromise: The handle was detached or closed.
        """

        state = self._owned()
        if state.result is None:
            raise UnfinishedPromise(f"task {state.name} has not finished")
        return state.result.unwrap()

    def as_awaiter(self) -> Awaiter:
        return TaskAwait(self)

    def __await__(self) -> Generator[Any, Any, T]:
        return (yield TaskAwait(self))

    def _release_for_detach(self) -> ExecutionState[T] | None:
        """Return the state if it may be detached now, ``None`` if already finished."""

        state = self._state
        if state is None:
            return None
        if state.done:
            return None
        if state.awaited:
            raise BrokenPromise(f"cannot detach task {state.name} while another task awaits it")
        self._state = None
        return state

    def then(self, on_value: ValueCallback) -> Task[T]:
        """Call ``on_value`` with the task's value.

        On a finished task the callback runs before ``then`` returns and the
        handle keeps its state; a stored error is not passed to ``on_value``
        and stays retrievable with ``result()``. On a running task the handle
        is detached and the callback runs when the task finishes.
        """

        state = self._state
        if state is None:
            return self
        if state.result is not None:
            if state.result.is_ok():
                on_value(state.result.unwrap())
            return self
        detached = self._release_for_detach()
        assert detached is not None
        detached.detach(on_value=on_value)
        return self

    def then_or_catch(self, on_value: ValueCallback, on_error: ErrorCallback) -> Task[T]:
        """Like :meth:`then`, routing a stored or raised error to ``on_error``.

        Exactly one of the callbacks observes the outcome; an exception
        raised by ``on_value`` is passed to ``on_error``.
        """

        state = self._state
        if state is None:
            return self
        if state.result is not None:
            deliver(state, state.result, on_value, on_error)
            return self
        detached = self._release_for_detach()
        assert detached is not None
        detached.detach(on_value=on_value, on_error=on_error)
        return self

    def no_wait(self) -> Task[T]:
        """Let a running task finish unobserved. No-op once it has finished."""

        detached = self._release_for_detach()
        if detached is not None:
            detached.detach()
        return self

    def close(self) -> None:
        """Release a finished task's state.

        Raises:
            UnfinishedPromise: The task is still running. The handle keeps
                ownership and the state is left untouched.
        """

        state = self._state
        if state is None:
            return
        if not state.done:
            raise UnfinishedPromise(f"cannot close task {state.name} before it finishes")
        self._state = None

    def __enter__(self) -> Task[T]:
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        if exc_type is None:
            self.close()
        elif self._state is not None and self._state.done:
            self._state = None

    def __del__(self) -> None:
        state = self._state
        if state is not None and not state.done:
            logger.error("Task %s collected before it finished", state.name)


def _body_name(body: Any) -> str:
    name = getattr(body, "__qualname__", None) or getattr(body, "__name__", None)
    return name or type(body).__name__


def spawn(body: Any, /, *args: Any, **kwargs: Any) -> Task[Any]:
    """Start ``body`` and return the handle of the running task.

    ``body`` may be a coroutine function, a generator function, a plain
    function, or an already created coroutine/generator object (in which case
    no arguments may be given).
    """

    name = _body_name(body)
    if is_body(body):
        if args or kwargs:
            raise TypeError("arguments given for an already created coroutine/generator")
        program = body
    elif callable(body):
        started = capture(body, *args, **kwargs)
        if started.is_ok() and is_body(started.unwrap()):
            program = started.unwrap()
        else:
            state: ExecutionState[Any] = ExecutionState(body=None, name=name)
            state.complete(started)
            return Task(state)
    else:
        raise TypeError(f"cannot start a task from {type(body).__name__}")

    state = ExecutionState(body=program, name=name)
    handle: Task[Any] = Task(state)
    drive(state)
    return handle


class TaskFunction(Generic[P, T]):
    """Callable that starts a new Task of ``func`` each time it is called."""

    def __init__(self, func: Callable[P, Any]) -> None:
        wraps(func)(self)
        self.original_func = func

    def __call__(self, *args: P.args, **kwargs: P.kwargs) -> Task[T]:
        return spawn(self.original_func, *args, **kwargs)

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return types.MethodType(self, instance)

    def __repr__(self) -> str:
        return f"<task function {_body_name(self.original_func)}>"


def task(func: Callable[P, Any]) -> TaskFunction[P, Any]:
    """
    Decorator turning a body function into a function that starts a Task.

    Works with ``async def`` coroutine functions and generator functions:

        @task
        async def fetch(key):
            return await replies.suspend(key)

        @task
        def fetch_gen(key):
            return (yield replies.suspend(key))

    Calling ``fetch(3)`` runs the body up to its first suspension and returns
    the Task handle.
    """

    if not callable(func):
        raise TypeError(f"@task expects a callable, got {type(func).__name__}")
    return TaskFunction(func)


def run(body: Any, /, *args: Any, **kwargs: Any) -> Any:
    """Start ``body`` and return its value; it must finish without suspending
    on anything still pending.

    Raises:
        UnfinishedPromise: The body is still suspended after starting.
    """

    started = spawn(body, *args, **kwargs)
    if not started.done:
        started._state = None
        raise UnfinishedPromise(f"{_body_name(body)} suspended; drive it with spawn() instead")
    return started.result()


__all__ = [
    "Task",
    "TaskAwait",
    "TaskFunction",
    "run",
    "spawn",
    "task",
]
