"""Tests for the FastMCP tool surface."""
from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from cpmcp.engine.mcp_server.stdio_server import _parse_args, mcp
from cpmcp.engine.mcp_server.tools import _extract_text, _get_tools


@pytest.mark.asyncio
async def test_all_tools_registered():
    tools = await mcp.list_tools()
    assert {t.name for t in tools} == {"ask", "suggest", "explain", "ping", "identity"}


@pytest.mark.asyncio
async def test_wire_argument_names():
    tools = {t.name: t for t in await mcp.list_tools()}

    ask_props = tools["ask"].inputSchema["properties"]
    assert {"prompt", "model", "addDir", "softTimeoutMs"} <= set(ask_props)
    assert "ctx" not in ask_props
    assert tools["ask"].inputSchema["required"] == ["prompt"]

    assert "target" in tools["suggest"].inputSchema["properties"]
    assert "command" in tools["explain"].inputSchema["required"]


@pytest.mark.asyncio
async def test_identity_is_read_only():
    tools = {t.name: t for t in await mcp.list_tools()}
    annotations = tools["identity"].annotations
    assert annotations.readOnlyHint is True
    assert annotations.idempotentHint is True


def test_server_name():
    assert mcp.name == "copilot-cli"


def test_extract_text_success():
    result = {"content": [{"type": "text", "text": "hello"}]}
    assert _extract_text(result) == "hello"


def test_extract_text_error_raises_value_error():
    result = {
        "content": [{"type": "text", "text": 'ERROR: Error in tool "ask": boom'}],
        "is_error": True,
    }
    with pytest.raises(ValueError, match='^Error in tool "ask": boom$'):
        _extract_text(result)


def test_get_tools_reads_lifespan_context():
    copilot_tools = MagicMock()
    ctx = SimpleNamespace(
        request_context=SimpleNamespace(
            lifespan_context={"copilot_tools": copilot_tools}
        )
    )
    assert _get_tools(ctx) is copilot_tools


@pytest.mark.asyncio
async def test_ask_tool_maps_wire_arguments(monkeypatch):
    copilot_tools = MagicMock()
    copilot_tools.ask = AsyncMock(
        return_value={"content": [{"type": "text", "text": "42"}]}
    )
    monkeypatch.setattr(
        "cpmcp.engine.mcp_server.tools._get_tools", lambda ctx: copilot_tools
    )
    tool = mcp._tool_manager.get_tool("ask")
    text = await tool.fn(
        prompt="q", model="m", addDir="/tmp", softTimeoutMs=1000, ctx=None
    )
    assert text == "42"
    copilot_tools.ask.assert_awaited_once_with(
        "q", model="m", add_dir="/tmp", soft_timeout_ms=1000
    )


def test_parse_args():
    args = _parse_args(["--config", "c.yaml", "--verbose"])
    assert args.config == "c.yaml"
    assert args.verbose is True
    assert _parse_args([]).config is None
