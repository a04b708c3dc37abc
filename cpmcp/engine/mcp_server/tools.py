"""FastMCP tool definitions for the copilot CLI.

Exposed:
    ask, suggest, explain, ping, identity

Wire argument names follow the MCP client convention (camelCase:
addDir, softTimeoutMs) and are mapped onto CopilotTools keywords here.
"""
from __future__ import annotations

from typing import Any, Literal

from mcp.server.fastmcp import FastMCP, Context
from mcp.types import ToolAnnotations


def _extract_text(result: dict[str, Any]) -> str:
    """Convert a CopilotTools response to a plain string.

    If is_error is set, raise ValueError so FastMCP marks it as error.
    """
    text = result["content"][0]["text"]
    if result.get("is_error"):
        raise ValueError(text.removeprefix("ERROR: "))
    return text


def _get_tools(ctx: Context):
    """Get CopilotTools from lifespan context."""
    return ctx.request_context.lifespan_context["copilot_tools"]


def register_tools(mcp: FastMCP) -> None:
    """Register the copilot tools with the FastMCP instance."""

    @mcp.tool(
        name="ask",
        description=(
            "Ask GitHub Copilot a question or give it a task using natural "
            "language. Copilot runs in agent mode with --allow-all-tools "
            "enabled, meaning it can execute shell commands and read files "
            "on your behalf. Use this for open-ended coding questions, code "
            "generation, refactoring guidance, or any task requiring "
            "Copilot's full capabilities."
        ),
    )
    async def ask(
        prompt: str,
        model: str | None = None,
        addDir: str | None = None,
        softTimeoutMs: int | None = None,
        ctx: Context = None,
    ) -> str:
        tools = _get_tools(ctx)
        return _extract_text(await tools.ask(
            prompt, model=model, add_dir=addDir, soft_timeout_ms=softTimeoutMs,
        ))

    @mcp.tool(
        name="suggest",
        description=(
            "Ask GitHub Copilot to suggest a command for a task. Optionally "
            "restrict the suggestion to shell, git or gh (GitHub CLI)."
        ),
    )
    async def suggest(
        prompt: str,
        target: Literal["shell", "git", "gh"] | None = None,
        model: str | None = None,
        addDir: str | None = None,
        softTimeoutMs: int | None = None,
        ctx: Context = None,
    ) -> str:
        tools = _get_tools(ctx)
        return _extract_text(await tools.suggest(
            prompt,
            target=target,
            model=model,
            add_dir=addDir,
            soft_timeout_ms=softTimeoutMs,
        ))

    @mcp.tool(
        name="explain",
        description="Ask GitHub Copilot to explain what a command does.",
    )
    async def explain(
        command: str,
        model: str | None = None,
        addDir: str | None = None,
        softTimeoutMs: int | None = None,
        ctx: Context = None,
    ) -> str:
        tools = _get_tools(ctx)
        return _extract_text(await tools.explain(
            command, model=model, add_dir=addDir, soft_timeout_ms=softTimeoutMs,
        ))

    @mcp.tool(
        name="ping",
        description="Verify that the Copilot MCP server is running and responsive.",
    )
    async def ping(ctx: Context = None) -> str:
        tools = _get_tools(ctx)
        return _extract_text(await tools.ping())

    @mcp.tool(
        name="identity",
        description=(
            "Get server identity: name, version, active LLM model, and MCP "
            "server name."
        ),
        annotations=ToolAnnotations(
            title="Server Identity",
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
    )
    async def identity(ctx: Context = None) -> str:
        tools = _get_tools(ctx)
        return _extract_text(await tools.identity())
