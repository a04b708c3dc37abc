"""Copilot MCP engine: supervised execution of the GitHub Copilot CLI."""
from .models import (
    ErrorKind,
    ExecutionOptions,
    Failure,
    InvocationOutcome,
    InvocationRequest,
    OutputChunk,
    ProcessState,
    Success,
)
from .config import SupervisorConfig
from .errors import (
    CommandExecutionError,
    ConfigError,
    CopilotMcpError,
    ToolExecutionError,
    ValidationError,
    handle_error,
)
from .scrubber import TokenScrubber, scrub_tokens
from .arguments import build_copilot_args
from .classifier import classify_error
from .extractor import extract_response
from .supervisor import ProcessSupervisor, resolve_exit
from .streaming import stream_command
from .copilot import CopilotTools

__all__ = [
    # Models
    "ErrorKind",
    "ExecutionOptions",
    "Failure",
    "InvocationOutcome",
    "InvocationRequest",
    "OutputChunk",
    "ProcessState",
    "Success",
    # Config
    "SupervisorConfig",
    # Errors
    "CommandExecutionError",
    "ConfigError",
    "CopilotMcpError",
    "ToolExecutionError",
    "ValidationError",
    "handle_error",
    # Execution
    "ProcessSupervisor",
    "resolve_exit",
    "stream_command",
    "TokenScrubber",
    "scrub_tokens",
    "build_copilot_args",
    "classify_error",
    "extract_response",
    # Tools
    "CopilotTools",
]
