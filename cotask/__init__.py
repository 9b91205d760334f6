"""
cotask - cooperative, single-threaded tasks with explicit suspend/resume handoffs.

A Task runs its body immediately, up to the first point where it awaits
something that is not ready yet: another unfinished Task, ``Signal.suspend()``
or ``Interlock.suspend(key)``. An external driver later calls
``Signal.resume()``/``Interlock.resume(key, value)`` and the parked task, plus
every task waiting on it, continues synchronously inside that call.

There is no event loop, no thread pool and no cancellation. Timers, sockets and
other event sources live outside this package and call ``resume``.
"""

from cotask.core import Task, TaskFunction, run, spawn, task
from cotask.debug import Diagnostics, DiagnosticsSnapshot, diagnostics
from cotask.errors import BrokenPromise, BrokenResume, TaskError, UnfinishedPromise
from cotask.handoff import Interlock, Signal
from cotask.result import Err, Ok, Result

__all__ = [
    "BrokenPromise",
    "BrokenResume",
    "Diagnostics",
    "DiagnosticsSnapshot",
    "Err",
    "Interlock",
    "Ok",
    "Result",
    "Signal",
    "Task",
    "TaskError",
    "TaskFunction",
    "UnfinishedPromise",
    "diagnostics",
    "run",
    "spawn",
    "task",
]
