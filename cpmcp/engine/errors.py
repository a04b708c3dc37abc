"""Exception hierarchy for the Copilot MCP engine.

Specific exceptions for each failure mode. Validation errors are raised
before any subprocess exists and are never reclassified as execution
errors.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from .scrubber import TokenScrubber, scrub_tokens

if TYPE_CHECKING:
    from .models import ErrorKind


class CopilotMcpError(Exception):
    """Base exception for all engine errors."""


class ConfigError(CopilotMcpError):
    """Configuration file missing or malformed."""
    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid config file {path}: {reason}")


class ValidationError(CopilotMcpError):
    """Tool input rejected before any process was spawned."""
    def __init__(self, field_name: str, message: str):
        self.field_name = field_name
        self.reason = message
        super().__init__(
            f'Validation failed for tool "{field_name}": {message}'
        )


class CommandExecutionError(CopilotMcpError):
    """The external binary could not produce a usable result."""
    def __init__(
        self,
        command: str,
        message: str,
        cause: BaseException | None = None,
        kind: ErrorKind | None = None,
    ):
        self.command = command
        self.reason = message
        self.cause = cause
        self.kind = kind
        super().__init__(
            f'Command execution failed for "{command}": {message}'
        )


class ToolExecutionError(CopilotMcpError):
    """A tool call failed; message is already user-facing."""
    def __init__(
        self,
        tool_name: str,
        message: str,
        cause: BaseException | None = None,
    ):
        self.tool_name = tool_name
        self.reason = message
        self.cause = cause
        super().__init__(f'Failed to execute tool "{tool_name}": {message}')


def handle_error(
    error: BaseException | object,
    context: str,
    scrubber: TokenScrubber | None = None,
) -> str:
    """Render any failure as a single scrubbed line for the protocol layer."""
    if isinstance(error, ToolExecutionError):
        error = error.reason
    text = f"Error in {context}: {error}"
    if scrubber is not None:
        return scrubber.scrub(text)
    return scrub_tokens(text)
