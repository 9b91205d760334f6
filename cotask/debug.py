"""
Optional lifecycle instrumentation for tasks and handoff primitives.

Diagnostics are off by default. When enabled, every execution state, suspension,
resumption and detachment is counted and traced through loguru, which makes
leaked or never-resumed tasks visible while debugging a driver.

Enable with the ``COTASK_DEBUG`` environment variable or programmatically:

    from cotask import diagnostics

    diagnostics.enable()
    run_my_driver()
    print(diagnostics.snapshot())
    diagnostics.disable()
"""

from __future__ import annotations

import os
import threading
import weakref
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from loguru import logger

if TYPE_CHECKING:
    from cotask.state import ExecutionState


def debug_enabled_from_env() -> bool:
    """Whether the ``COTASK_DEBUG`` environment variable asks for diagnostics."""

    return os.environ.get("COTASK_DEBUG", "").lower() in ("1", "true", "yes")


# Environment variable to enable diagnostics at import time
DEBUG_TASKS = debug_enabled_from_env()

trace_logger = logger.bind(component="cotask.diagnostics")


@dataclass(frozen=True)
class DiagnosticsSnapshot:
    """Point-in-time copy of the diagnostics counters.

    Attributes:
        enabled: Whether diagnostics were recording when the snapshot was taken.
        states_created: Execution states created while enabled.
        states_live: Of those, states not yet reclaimed by the garbage collector.
        suspensions: Times a task parked on an unfinished task, signal or interlock.
        resumptions: Times a parked task was resumed.
        detached: Times a handle released its state via then/then_or_catch/no_wait.
        dropped_errors: Errors of detached tasks that had no error callback.
        arena_size: Detached states still running at snapshot time.
    """

    enabled: bool
    states_created: int
    states_live: int
    suspensions: int
    resumptions: int
    detached: int
    dropped_errors: int
    arena_size: int


class Diagnostics:
    """Process-wide counters with an explicit enable/disable lifecycle."""

    def __init__(self, enabled: bool = False) -> None:
        self._lock = threading.Lock()
        self.enabled = enabled
        self._reset_counters()

    def _reset_counters(self) -> None:
        self.states_created = 0
        self.states_live = 0
        self.suspensions = 0
        self.resumptions = 0
        self.detached = 0
        self.dropped_errors = 0

    def enable(self) -> None:
        self.enabled = True
        trace_logger.debug("diagnostics enabled")

    def disable(self) -> None:
        self.enabled = False
        trace_logger.debug("diagnostics disabled")

    def reset(self) -> None:
        """Zero all counters without changing the enabled flag."""

        with self._lock:
            self._reset_counters()

    def snapshot(self) -> DiagnosticsSnapshot:
        from cotask.state import arena

        with self._lock:
            return DiagnosticsSnapshot(
                enabled=self.enabled,
                states_created=self.states_created,
                states_live=self.states_live,
                suspensions=self.suspensions,
                resumptions=self.resumptions,
                detached=self.detached,
                dropped_errors=self.dropped_errors,
                arena_size=len(arena),
            )

    def state_created(self, state: ExecutionState[Any]) -> None:
        if not self.enabled:
            return
        with self._lock:
            self.states_created += 1
            self.states_live += 1
        weakref.finalize(state, self._state_reclaimed, state.state_id)
        trace_logger.debug("state #{} created for {}", state.state_id, state.name)

    def _state_reclaimed(self, state_id: int) -> None:
        with self._lock:
            self.states_live -= 1
        trace_logger.debug("state #{} reclaimed", state_id)

    def record(self, event: str, state: ExecutionState[Any], detail: str = "") -> None:
        """Count a lifecycle ``event`` and trace it.

        Known events: ``suspend``, ``resume``, ``detach``, ``dropped_error``.
        """

        if not self.enabled:
            return
        with self._lock:
            if event == "suspend":
                self.suspensions += 1
            elif event == "resume":
                self.resumptions += 1
            elif event == "detach":
                self.detached += 1
            elif event == "dropped_error":
                self.dropped_errors += 1
        trace_logger.debug("state #{} {} {}", state.state_id, event, detail)


diagnostics = Diagnostics(enabled=DEBUG_TASKS)


__all__ = [
    "DEBUG_TASKS",
    "Diagnostics",
    "DiagnosticsSnapshot",
    "debug_enabled_from_env",
    "diagnostics",
]
