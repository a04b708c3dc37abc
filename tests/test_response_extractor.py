"""Tests for extract_response."""
from __future__ import annotations

import pytest

from cpmcp.engine.errors import ToolExecutionError
from cpmcp.engine.extractor import (
    NO_RESPONSE_TEXT,
    extract_response,
    strip_control_sequences,
)
from cpmcp.engine.scrubber import REDACTED, TokenScrubber


def test_stdout_is_trimmed():
    assert extract_response("  answer\n\n", "", "ask") == "answer"


def test_ansi_sequences_removed():
    colored = "\x1b[1m\x1b[32mgreen bold\x1b[0m text\x1b[2K"
    assert extract_response(colored, "", "ask") == "green bold text"


def test_osc_sequences_removed():
    assert strip_control_sequences("\x1b]0;title\x07body") == "body"


def test_stderr_ignored_when_stdout_present():
    assert extract_response("answer", "some warning", "ask") == "answer"


def test_stderr_only_raises():
    with pytest.raises(ToolExecutionError) as exc_info:
        extract_response("", "model overloaded", "suggest")
    assert exc_info.value.tool_name == "suggest"
    assert exc_info.value.reason == "Copilot error: model overloaded"


def test_stderr_only_is_scrubbed():
    scrubber = TokenScrubber(environ={"GH_TOKEN": "ghp_in_stderr"})
    with pytest.raises(ToolExecutionError) as exc_info:
        extract_response("\x1b[0m  ", "bad ghp_in_stderr", "ask", scrubber)
    assert REDACTED in str(exc_info.value)
    assert "ghp_in_stderr" not in str(exc_info.value)


def test_empty_output_is_not_an_error():
    assert extract_response("", "", "ask") == NO_RESPONSE_TEXT
    assert extract_response("   \n", "", "ask") == NO_RESPONSE_TEXT


def test_red_hello_is_plain_text():
    assert extract_response("\x1b[31mHello\x1b[0m", "", "ask") == "Hello"
