"""Stepping of task bodies and completion dispatch.

A body is advanced with ``send``/``throw`` until it either finishes or hands
back an awaiter. Awaiters that are already satisfied feed their result straight
back into the body; unsatisfied ones park the body. When a body finishes, the
loop continues with its parent continuation instead of recursing, so resuming
the innermost task of an arbitrarily deep await chain unwinds the whole chain
inside one call.
"""

from __future__ import annotations

from collections.abc import Coroutine, Generator
from typing import TYPE_CHECKING, Any, cast

from cotask.debug import diagnostics
from cotask.errors import BrokenResume
from cotask.result import Err, Ok, Result

if TYPE_CHECKING:
    from cotask.state import Body, ExecutionState


class Awaiter:
    """Something a body can suspend on.

    ``bind`` is called when the body yields the awaiter. It returns the result
    to continue with immediately, or ``None`` after parking the state somewhere
    that will later call :func:`resume`. ``retrieve`` produces the result to
    send into the body once it is resumed.
    """

    def bind(self, state: ExecutionState[Any]) -> Result[Any] | None:
        raise NotImplementedError

    def retrieve(self) -> Result[Any]:
        raise NotImplementedError

    def as_awaiter(self) -> Awaiter:
        return self

    def __await__(self) -> Generator[Any, Any, Any]:
        return (yield self)


def is_body(obj: Any) -> bool:
    return isinstance(obj, (Generator, Coroutine))


def _advance(body: Body[Any], control: Result[Any] | None) -> Any:
    if control is None:
        return body.send(None)
    if isinstance(control, Ok):
        return body.send(control.value)
    return body.throw(cast(Err, control).error)


def _as_awaiter(yielded: Any) -> Awaiter | None:
    convert = getattr(yielded, "as_awaiter", None)
    if convert is None:
        return None
    awaiter = convert()
    return awaiter if isinstance(awaiter, Awaiter) else None


def drive(state: ExecutionState[Any], control: Result[Any] | None = None) -> None:
    """Run ``state`` and every continuation its completion unblocks.

    ``control`` is ``None`` to start a fresh body, otherwise the result to send
    (``Ok``) or throw (``Err``) into the suspended body.
    """

    while True:
        body = state.body
        assert body is not None, f"drive() on finished task {state.name}"
        try:
            yielded = _advance(body, control)
        except StopIteration as e:
            state.complete(Ok(e.value))
        except Exception as e:
            state.complete(Err(e))
        else:
            awaiter = _as_awaiter(yielded)
            if awaiter is None:
                control = Err(
                    TypeError(
                        f"task {state.name} cannot await {type(yielded).__name__}; "
                        "expected a Task, Signal.suspend() or Interlock.suspend(key)"
                    )
                )
                continue
            try:
                control = awaiter.bind(state)
            except Exception as e:
                control = Err(e)
                continue
            if control is not None:
                continue
            state.awaiting = awaiter
            diagnostics.record("suspend", state, type(awaiter).__name__)
            return

        parent = state.take_parent()
        if parent is not None:
            awaiter = parent.awaiting
            assert awaiter is not None, f"parent of {state.name} is not suspended"
            parent.awaiting = None
            diagnostics.record("resume", parent, f"after {state.name}")
            control = awaiter.retrieve()
            state = parent
            continue

        if state.detached:
            state.finish_detached()
        return


def resume(state: ExecutionState[Any]) -> None:
    """Resume a parked ``state`` with whatever its awaiter delivers."""

    awaiter = state.awaiting
    if awaiter is None:
        raise BrokenResume(f"task {state.name} is not suspended")
    state.awaiting = None
    diagnostics.record("resume", state, type(awaiter).__name__)
    drive(state, awaiter.retrieve())


__all__ = ["Awaiter", "drive", "is_body", "resume"]
