"""Turn captured copilot output into the text returned to the caller."""
from __future__ import annotations

import re

from .errors import ToolExecutionError
from .scrubber import TokenScrubber

NO_RESPONSE_TEXT = "No response from Copilot"

# CSI, OSC and single-character escape sequences (ESC or 8-bit CSI).
_ANSI_ESCAPE_RE = re.compile(
    r"[\u001B\u009B][\[\]()#;?]*"
    r"(?:"
    r"(?:(?:;[-a-zA-Z\d/#&.:=?%@~_]+)*"
    r"|[a-zA-Z\d]+(?:;[-a-zA-Z\d/#&.:=?%@~_]*)*)?\u0007"
    r"|(?:\d{1,4}(?:;\d{0,4})*)?[\dA-PR-TZcf-nq-uy=><~]"
    r")"
)


def strip_control_sequences(text: str) -> str:
    return _ANSI_ESCAPE_RE.sub("", text)


def extract_response(
    stdout: str,
    stderr: str,
    tool_name: str,
    scrubber: TokenScrubber | None = None,
) -> str:
    """stdout is the answer; stderr only matters when stdout is empty.

    Raises ToolExecutionError when only stderr has content. Empty output
    on both streams is not an error.
    """
    scrubber = scrubber or TokenScrubber()
    clean_stdout = strip_control_sequences(stdout).strip()
    if not clean_stdout and stderr:
        raise ToolExecutionError(
            tool_name, f"Copilot error: {scrubber.scrub(stderr)}"
        )
    return clean_stdout or NO_RESPONSE_TEXT
