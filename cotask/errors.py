"""Framework-level error types.

Errors raised by task bodies are never wrapped: they are stored in the task's
result slot and re-raised unchanged at the await site. The classes below are
raised only for misuse of the task machinery itself.
"""

from __future__ import annotations


class TaskError(RuntimeError):
    """Base class for violations of the task/handoff protocol."""

    default_message = "task error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message if message is not None else self.default_message)


class BrokenPromise(TaskError):
    """Raised when awaiting a task handle that no longer owns its state.

    Common causes:
    - The handle was detached with ``then``/``then_or_catch``/``no_wait``
    - The handle was already closed
    - Another task is already awaiting the same task
    """

    default_message = "broken promise"


class BrokenResume(TaskError):
    """Raised when a handoff cannot be matched with its waiter.

    ``Interlock.resume`` with a key nobody is waiting on, ``Signal.resume``
    with no parked waiter, or a waiter that finds no delivered value.
    """

    default_message = "broken resume"


class UnfinishedPromise(TaskError):
    """Raised when a task's result is needed before the task has finished."""

    default_message = "unfinished promise"


__all__ = [
    "BrokenPromise",
    "BrokenResume",
    "TaskError",
    "UnfinishedPromise",
]
