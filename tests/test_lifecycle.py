"""Tests for the invocation lifecycle state machine."""
from __future__ import annotations

import pytest

from cpmcp.engine.lifecycle import (
    VALID_TRANSITIONS,
    InvocationLifecycle,
    is_terminal,
    validate_transition,
)
from cpmcp.engine.models import ProcessState

TERMINAL = [
    ProcessState.EXITED,
    ProcessState.KILLED_SOFT_TIMEOUT,
    ProcessState.KILLED_HARD_TIMEOUT,
    ProcessState.SPAWN_FAILED,
]


def test_every_state_has_an_entry():
    assert set(VALID_TRANSITIONS) == set(ProcessState)


@pytest.mark.parametrize("state", TERMINAL)
def test_terminal_states_have_no_exits(state):
    assert is_terminal(state)
    for target in ProcessState:
        with pytest.raises(ValueError):
            validate_transition(state, target)


def test_running_cannot_fail_to_spawn():
    with pytest.raises(ValueError, match="running -> spawn_failed"):
        validate_transition(ProcessState.RUNNING, ProcessState.SPAWN_FAILED)


def test_spawned_cannot_time_out():
    with pytest.raises(ValueError):
        validate_transition(ProcessState.SPAWNED, ProcessState.KILLED_HARD_TIMEOUT)


def test_first_resolution_wins():
    lifecycle = InvocationLifecycle()
    lifecycle.mark_running()
    assert not lifecycle.resolved

    assert lifecycle.try_resolve(ProcessState.KILLED_SOFT_TIMEOUT) is True
    assert lifecycle.try_resolve(ProcessState.EXITED) is False
    assert lifecycle.try_resolve(ProcessState.KILLED_HARD_TIMEOUT) is False
    assert lifecycle.state == ProcessState.KILLED_SOFT_TIMEOUT
    assert lifecycle.resolved


def test_spawn_failure_path():
    lifecycle = InvocationLifecycle()
    assert lifecycle.try_resolve(ProcessState.SPAWN_FAILED)
    with pytest.raises(ValueError):
        lifecycle.mark_running()
