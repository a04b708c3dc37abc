"""Tool handlers backed by the copilot CLI.

CopilotTools holds the config and supervisor for one server. The run_*
methods raise (ValidationError for bad input, ToolExecutionError for
everything else); the plain methods wrap them into the
{"content": [...], "is_error": ...} dicts the MCP layer consumes.
"""
from __future__ import annotations

import json
import logging
from importlib.metadata import PackageNotFoundError, version
from typing import Any

from .arguments import build_copilot_args
from .classifier import classify_error
from .config import SupervisorConfig
from .errors import ToolExecutionError, ValidationError, handle_error
from .extractor import extract_response
from .models import ExecutionOptions, InvocationRequest
from .prompts import (
    SUGGEST_TARGET_LABELS,
    build_explain_prompt,
    build_suggest_prompt,
    with_time_budget,
)
from .scrubber import TokenScrubber
from .supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)

SERVER_NAME = "Copilot MCP Server"
MCP_SERVER_NAME = "copilot-cli"
DISTRIBUTION_NAME = "copilot-mcp-server"
PING_TEXT = "Copilot MCP Server is running."


def package_version() -> str:
    try:
        return version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        logger.debug("%s is not installed; reporting 0.0.0", DISTRIBUTION_NAME)
        return "0.0.0"


def _text(text: str) -> dict[str, Any]:
    """Format a successful text response."""
    return {"content": [{"type": "text", "text": text}]}


def _error(text: str) -> dict[str, Any]:
    """Format an error response."""
    return {
        "content": [{"type": "text", "text": f"ERROR: {text}"}],
        "is_error": True,
    }


class CopilotTools:
    """ask / suggest / explain / ping / identity for one server instance."""

    def __init__(
        self,
        config: SupervisorConfig,
        supervisor: ProcessSupervisor | None = None,
        scrubber: TokenScrubber | None = None,
    ) -> None:
        self._config = config
        self._scrubber = scrubber or TokenScrubber(config.token_env_vars)
        self._supervisor = supervisor or ProcessSupervisor(self._scrubber)

    @property
    def config(self) -> SupervisorConfig:
        return self._config

    @property
    def supervisor(self) -> ProcessSupervisor:
        return self._supervisor

    # ── Raising variants ────────────────────────────────────────

    async def run_ask(
        self,
        prompt: str,
        model: str | None = None,
        add_dir: str | None = None,
        soft_timeout_ms: int | None = None,
    ) -> str:
        return await self._run("ask", prompt, model, add_dir, soft_timeout_ms)

    async def run_suggest(
        self,
        prompt: str,
        target: str | None = None,
        model: str | None = None,
        add_dir: str | None = None,
        soft_timeout_ms: int | None = None,
    ) -> str:
        if target and target not in SUGGEST_TARGET_LABELS:
            raise ValidationError(
                "target",
                f"target must be one of: {', '.join(SUGGEST_TARGET_LABELS)}",
            )
        return await self._run(
            "suggest",
            build_suggest_prompt(prompt, target),
            model,
            add_dir,
            soft_timeout_ms,
        )

    async def run_explain(
        self,
        command: str,
        model: str | None = None,
        add_dir: str | None = None,
        soft_timeout_ms: int | None = None,
    ) -> str:
        return await self._run(
            "explain",
            build_explain_prompt(command),
            model,
            add_dir,
            soft_timeout_ms,
        )

    async def _run(
        self,
        tool_name: str,
        prompt: str,
        model: str | None,
        add_dir: str | None,
        soft_timeout_ms: int | None,
    ) -> str:
        # Everything that can reject input runs before the spawn.
        options = ExecutionOptions(
            strict_exit_code=True, soft_timeout_ms=soft_timeout_ms
        )
        args = build_copilot_args(
            with_time_budget(prompt, soft_timeout_ms),
            model,
            add_dir,
            config=self._config,
        )
        request = InvocationRequest(
            self._config.binary_path, tuple(args), options=options
        )

        try:
            result = await self._supervisor.execute(request)
            return extract_response(
                result.stdout, result.stderr, tool_name, self._scrubber
            )
        except ValidationError:
            raise
        except ToolExecutionError as exc:
            raise ToolExecutionError(
                tool_name, classify_error(exc.reason, self._scrubber), exc
            ) from exc
        except Exception as exc:
            logger.warning(
                "%s failed: %s", tool_name, self._scrubber.scrub(str(exc))
            )
            raise ToolExecutionError(
                tool_name, classify_error(exc, self._scrubber), exc
            ) from exc

    # ── MCP-facing handlers ─────────────────────────────────────

    async def ask(
        self,
        prompt: str,
        model: str | None = None,
        add_dir: str | None = None,
        soft_timeout_ms: int | None = None,
    ) -> dict[str, Any]:
        """Ask Copilot a question or give it a task."""
        try:
            return _text(
                await self.run_ask(prompt, model, add_dir, soft_timeout_ms)
            )
        except Exception as exc:
            return _error(handle_error(exc, 'tool "ask"', self._scrubber))

    async def suggest(
        self,
        prompt: str,
        target: str | None = None,
        model: str | None = None,
        add_dir: str | None = None,
        soft_timeout_ms: int | None = None,
    ) -> dict[str, Any]:
        """Ask Copilot for a shell, git or gh command."""
        try:
            return _text(
                await self.run_suggest(
                    prompt, target, model, add_dir, soft_timeout_ms
                )
            )
        except Exception as exc:
            return _error(handle_error(exc, 'tool "suggest"', self._scrubber))

    async def explain(
        self,
        command: str,
        model: str | None = None,
        add_dir: str | None = None,
        soft_timeout_ms: int | None = None,
    ) -> dict[str, Any]:
        """Ask Copilot to explain a command."""
        try:
            return _text(
                await self.run_explain(command, model, add_dir, soft_timeout_ms)
            )
        except Exception as exc:
            return _error(handle_error(exc, 'tool "explain"', self._scrubber))

    async def ping(self) -> dict[str, Any]:
        return _text(PING_TEXT)

    async def identity(self) -> dict[str, Any]:
        return _text(json.dumps(
            {
                "server": SERVER_NAME,
                "version": package_version(),
                "mcp_server_name": MCP_SERVER_NAME,
                "llm": self._config.default_model,
            },
            indent=2,
        ))
