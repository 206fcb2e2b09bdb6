from __future__ import annotations

from enum import Enum


class ExecutionState(str, Enum):
    UNKNOWN = "UNKNOWN"
    RUNNING = "RUNNING"
    DONE = "DONE"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    UPDATED = "UPDATED"
    STOPPED = "STOPPED"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES

    def __str__(self) -> str:
        return self.value


_TERMINAL_STATES = frozenset(
    {
        ExecutionState.DONE,
        ExecutionState.FAILED,
        ExecutionState.CANCELLED,
        ExecutionState.STOPPED,
    }
)
