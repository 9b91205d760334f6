"""Suspend/resume rendezvous points between tasks and an external driver.

Neither primitive runs anything on its own. A task parks itself with
``suspend``; whoever observes the awaited event (a timer, a socket reactor,
a test) calls ``resume``, which continues the parked task synchronously before
returning.

Both are meant for a single cooperative thread. Calls from several threads need
external locking.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any, Generic, TypeVar

from cotask.errors import BrokenResume
from cotask.result import Err, Ok, Result
from cotask.state import ExecutionState
from cotask.step import Awaiter, resume

K = TypeVar("K")
V = TypeVar("V")


class SignalAwait(Awaiter):
    def __init__(self, signal: Signal) -> None:
        self.signal = signal

    def bind(self, state: ExecutionState[Any]) -> Result[Any] | None:
        self.signal._park(state)
        return None

    def retrieve(self) -> Result[Any]:
        return self.signal._take_delivery()


class Signal:
    """Single-slot rendezvous: one parked waiter, one resumer.

    ``resume()`` with nobody parked raises :class:`BrokenResume`; it is never
    buffered for a later ``suspend()``.
    """

    def __init__(self) -> None:
        self._waiter: ExecutionState[Any] | None = None
        self._delivery: Result[None] = Ok(None)

    @property
    def parked(self) -> bool:
        return self._waiter is not None

    def suspend(self) -> SignalAwait:
        return SignalAwait(self)

    def _park(self, state: ExecutionState[Any]) -> None:
        if self._waiter is not None:
            raise BrokenResume(f"signal already has a parked waiter ({self._waiter.name})")
        self._waiter = state

    def _take_delivery(self) -> Result[None]:
        delivery, self._delivery = self._delivery, Ok(None)
        return delivery

    def _wake(self, delivery: Result[None]) -> None:
        waiter = self._waiter
        if waiter is None:
            raise BrokenResume("signal has no parked waiter")
        self._waiter = None
        self._delivery = delivery
        resume(waiter)

    def resume(self) -> None:
        """Continue the parked waiter; returns once it suspends again or finishes."""

        self._wake(Ok(None))

    def fail(self, error: Exception) -> None:
        """Continue the parked waiter by raising ``error`` at its suspend point."""

        if not isinstance(error, Exception):
            raise TypeError(f"error must be an Exception, got {type(error).__name__}")
        self._wake(Err(error))


class InterlockAwait(Awaiter, Generic[K, V]):
    def __init__(self, interlock: Interlock[K, V], key: K) -> None:
        self.interlock = interlock
        self.key = key

    def bind(self, state: ExecutionState[Any]) -> Result[Any] | None:
        self.interlock._park(self.key, state)
        return None

    def retrieve(self) -> Result[V]:
        delivered = self.interlock._results.pop(self.key, None)
        if delivered is None:
            return Err(BrokenResume(f"no value delivered for key {self.key!r}"))
        return delivered


class Interlock(Generic[K, V]):
    """Keyed rendezvous: many parked waiters, each resumed with its own value.

    A key is single-use per suspend/resume cycle. Iterating yields the keys
    still waiting, in the order they were parked; the iteration works on a
    snapshot so waiters may be resumed (or failed) from inside the loop:

        for key in lock:
            lock.fail(key, TimeoutError(key))
    """

    def __init__(self) -> None:
        self._suspended: dict[K, ExecutionState[Any]] = {}
        self._results: dict[K, Result[V]] = {}

    def __repr__(self) -> str:
        return f"<Interlock pending={list(self._suspended)!r}>"

    def empty(self) -> bool:
        return not self._suspended

    def pending(self) -> tuple[K, ...]:
        return tuple(self._suspended)

    def __iter__(self) -> Iterator[K]:
        return iter(self.pending())

    def __len__(self) -> int:
        return len(self._suspended)

    def __contains__(self, key: object) -> bool:
        return key in self._suspended

    def suspend(self, key: K) -> InterlockAwait[K, V]:
        return InterlockAwait(self, key)

    def _park(self, key: K, state: ExecutionState[Any]) -> None:
        if key in self._suspended:
            raise BrokenResume(f"interlock key {key!r} is already pending")
        self._suspended[key] = state

    def _wake(self, key: K, delivery: Result[V]) -> None:
        try:
            waiter = self._suspended.pop(key)
        except KeyError:
            raise BrokenResume(f"interlock has no waiter for key {key!r}") from None
        if waiter.done:
            return
        self._results[key] = delivery
        resume(waiter)

    def resume(self, key: K, value: V) -> None:
        """Deliver ``value`` to the task parked on ``key`` and continue it.

        Raises:
            BrokenResume: No task is parked on ``key``.
        """

        self._wake(key, Ok(value))

    def fail(self, key: K, error: Exception) -> None:
        """Continue the task parked on ``key`` by raising ``error`` at its suspend point."""

        if not isinstance(error, Exception):
            raise TypeError(f"error must be an Exception, got {type(error).__name__}")
        self._wake(key, Err(error))


__all__ = [
    "Interlock",
    "InterlockAwait",
    "Signal",
    "SignalAwait",
]
