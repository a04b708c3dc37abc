"""Invocation lifecycle state machine.

Defines valid transitions and enforces them. Invalid transitions
raise ValueError rather than silently proceeding.

State Diagram:

    SPAWNED ──┬──> RUNNING ──┬──> EXITED
              │              │
              │              ├──> KILLED_SOFT_TIMEOUT
              │              │
              │              └──> KILLED_HARD_TIMEOUT
              │
              └──> SPAWN_FAILED

Every state other than SPAWNED and RUNNING is terminal. Reaching a
terminal state is what resolves an invocation, so at most one outcome
is ever produced.
"""
from __future__ import annotations

from .models import ProcessState

VALID_TRANSITIONS: dict[ProcessState, set[ProcessState]] = {
    ProcessState.SPAWNED: {
        ProcessState.RUNNING,
        ProcessState.SPAWN_FAILED,
    },
    ProcessState.RUNNING: {
        ProcessState.EXITED,
        ProcessState.KILLED_SOFT_TIMEOUT,
        ProcessState.KILLED_HARD_TIMEOUT,
    },
    ProcessState.EXITED: set(),
    ProcessState.KILLED_SOFT_TIMEOUT: set(),
    ProcessState.KILLED_HARD_TIMEOUT: set(),
    ProcessState.SPAWN_FAILED: set(),
}


def validate_transition(current: ProcessState, target: ProcessState) -> None:
    """Validate a state transition. Raises ValueError if invalid."""
    allowed = VALID_TRANSITIONS.get(current, set())
    if target not in allowed:
        allowed_str = ", ".join(s.value for s in allowed) or "none (terminal)"
        raise ValueError(
            f"Invalid state transition: {current.value} -> {target.value}. "
            f"Allowed from {current.value}: {allowed_str}"
        )


def is_terminal(state: ProcessState) -> bool:
    """Check if a state is terminal (invocation already resolved)."""
    return not VALID_TRANSITIONS.get(state)


class InvocationLifecycle:
    """Single-invocation state holder with a one-shot resolution guard."""

    def __init__(self) -> None:
        self._state = ProcessState.SPAWNED

    @property
    def state(self) -> ProcessState:
        return self._state

    @property
    def resolved(self) -> bool:
        return is_terminal(self._state)

    def mark_running(self) -> None:
        validate_transition(self._state, ProcessState.RUNNING)
        self._state = ProcessState.RUNNING

    def try_resolve(self, target: ProcessState) -> bool:
        """Move to a terminal state. Returns False if already resolved."""
        if self.resolved:
            return False
        validate_transition(self._state, target)
        self._state = target
        return True
