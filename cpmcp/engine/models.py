"""Core data models for the execution engine.

All dataclasses, enums, and type aliases. Single source of truth
to avoid circular imports.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Union

from .errors import ValidationError


class ProcessState(str, Enum):
    """Invocation lifecycle states. See lifecycle.py for transition rules."""
    SPAWNED = "spawned"
    RUNNING = "running"
    EXITED = "exited"
    KILLED_SOFT_TIMEOUT = "killed_soft_timeout"
    KILLED_HARD_TIMEOUT = "killed_hard_timeout"
    SPAWN_FAILED = "spawn_failed"


class ErrorKind(str, Enum):
    """Failure categories surfaced by the process supervisor."""
    TIMEOUT = "timeout"
    BINARY_NOT_FOUND = "binary_not_found"
    SPAWN_FAILED = "spawn_failed"
    NON_ZERO_EXIT = "non_zero_exit"


@dataclass(frozen=True)
class ExecutionOptions:
    """Per-invocation policy knobs.

    strict_exit_code: only exit code 0 counts as success. When False,
    any captured output also counts as success.
    soft_timeout_ms: resolve early with partial output after this many
    milliseconds. Ignored unless strictly below the hard timeout.
    """
    strict_exit_code: bool = False
    soft_timeout_ms: int | None = None

    def __post_init__(self) -> None:
        if self.soft_timeout_ms is not None and (
            isinstance(self.soft_timeout_ms, bool)
            or not isinstance(self.soft_timeout_ms, int)
            or self.soft_timeout_ms <= 0
        ):
            raise ValidationError(
                "softTimeoutMs", "softTimeoutMs must be a positive integer"
            )


@dataclass(frozen=True)
class InvocationRequest:
    """Everything the supervisor needs to run the external binary once."""
    executable: str
    args: tuple[str, ...] = ()
    env_override: Mapping[str, str] | None = None
    options: ExecutionOptions = field(default_factory=ExecutionOptions)

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))
        if self.env_override is not None:
            object.__setattr__(
                self, "env_override", MappingProxyType(dict(self.env_override))
            )


@dataclass(frozen=True)
class Success:
    """Process produced a usable result."""
    stdout: str
    stderr: str


@dataclass(frozen=True)
class Failure:
    """Process failed; message is single-line and already scrubbed."""
    kind: ErrorKind
    message: str
    cause: BaseException | None = field(default=None, compare=False)


InvocationOutcome = Union[Success, Failure]


@dataclass
class OutputChunk:
    """A streaming piece of process output.

    The final chunk of a stream has is_result=True.
    """
    text: str = ""
    stream: str = "stdout"
    is_result: bool = False
    is_error: bool = False
