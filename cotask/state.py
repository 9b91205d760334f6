"""Per-task execution state and the arena that owns detached states."""

from __future__ import annotations

import itertools
import logging
import weakref
from collections.abc import Callable, Coroutine, Generator, Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar, Union

from cotask.debug import diagnostics
from cotask.errors import BrokenPromise
from cotask.result import Err, Ok, Result

if TYPE_CHECKING:
    from cotask.step import Awaiter

T = TypeVar("T")

Body = Union[Generator[Any, Any, T], Coroutine[Any, Any, T]]
ValueCallback = Callable[[Any], Any]
ErrorCallback = Callable[[Exception], Any]

logger = logging.getLogger(__name__)

_state_id_counter = itertools.count(1)


def _next_state_id() -> int:
    return next(_state_id_counter)


@dataclass(eq=False)
class ExecutionState(Generic[T]):
    """Mutable record behind a single task.

    Attributes:
        body: The generator or coroutine being stepped; ``None`` once finished
            or for bodies that completed at construction.
        name: Qualified name of the body, for logs and reprs.
        result: ``None`` while running, then ``Ok(value)`` or ``Err(error)``.
        awaiting: The awaiter this state is parked on, while suspended.
        on_value: Value callback, set only when detached.
        on_error: Error callback, set only when detached.
        detached: Whether the state owns itself (no handle).
        state_id: Unique identifier, also the arena key.
    """

    body: Body[T] | None
    name: str = "<task>"
    result: Result[T] | None = None
    awaiting: Awaiter | None = field(default=None, repr=False)
    on_value: ValueCallback | None = field(default=None, repr=False)
    on_error: ErrorCallback | None = field(default=None, repr=False)
    detached: bool = False
    state_id: int = field(default_factory=_next_state_id)
    _parent: weakref.ref[ExecutionState[Any]] | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        diagnostics.state_created(self)

    @property
    def done(self) -> bool:
        return self.result is not None

    @property
    def awaited(self) -> bool:
        """Whether a live task is currently linked as this state's continuation."""

        return self._parent is not None and self._parent() is not None

    def complete(self, result: Result[T]) -> None:
        self.result = result
        self.body = None

    def link_parent(self, parent: ExecutionState[Any]) -> None:
        if self.awaited:
            raise BrokenPromise(f"task {self.name} is already awaited by another task")
        self._parent = weakref.ref(parent)

    def take_parent(self) -> ExecutionState[Any] | None:
        """Consume the continuation link. A parent that was collected yields ``None``."""

        ref, self._parent = self._parent, None
        if ref is None:
            return None
        return ref()

    def detach(
        self,
        on_value: ValueCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self.on_value = on_value
        self.on_error = on_error
        self.detached = True
        arena.adopt(self)
        diagnostics.record("detach", self)

    def finish_detached(self) -> None:
        """Deliver the result of a finished detached state and drop it from the arena."""

        assert self.result is not None, "finish_detached on a running state"
        try:
            deliver(self, self.result, self.on_value, self.on_error)
        finally:
            self.on_value = None
            self.on_error = None
            arena.release(self)


def deliver(
    state: ExecutionState[Any],
    result: Result[Any],
    on_value: ValueCallback | None,
    on_error: ErrorCallback | None,
) -> None:
    """Run exactly one of ``on_value``/``on_error`` for ``result``.

    An exception raised by ``on_value`` goes to ``on_error`` when there is one.
    An error with no ``on_error`` is logged and dropped.
    """

    if isinstance(result, Ok):
        if on_value is None:
            return
        if on_error is None:
            on_value(result.value)
            return
        try:
            on_value(result.value)
        except Exception as exc:
            on_error(exc)
        return

    assert isinstance(result, Err)
    if on_error is not None:
        on_error(result.error)
        return
    diagnostics.record("dropped_error", state, repr(result.error))
    logger.warning(
        "Detached task %s failed with no error callback; dropping %r",
        state.name,
        result.error,
        exc_info=result.error,
    )


class Arena:
    """Keeps detached, unfinished states alive until they finish."""

    def __init__(self) -> None:
        self._states: dict[int, ExecutionState[Any]] = {}

    def adopt(self, state: ExecutionState[Any]) -> None:
        self._states[state.state_id] = state

    def release(self, state: ExecutionState[Any]) -> None:
        self._states.pop(state.state_id, None)

    def __contains__(self, state: object) -> bool:
        return isinstance(state, ExecutionState) and state.state_id in self._states

    def __len__(self) -> int:
        return len(self._states)

    def __iter__(self) -> Iterator[ExecutionState[Any]]:
        return iter(tuple(self._states.values()))


arena = Arena()


__all__ = [
    "Arena",
    "Body",
    "ErrorCallback",
    "ExecutionState",
    "ValueCallback",
    "arena",
    "deliver",
]
