"""Map raw execution failures to single-line, actionable messages."""
from __future__ import annotations

from .models import Failure
from .scrubber import TokenScrubber

QUOTA_MESSAGE = (
    "Copilot quota exceeded. Your GitHub Copilot quota has been exhausted. "
    "Please wait before retrying."
)
AUTH_MESSAGE = (
    "Copilot authentication failed. Ensure COPILOT_GITHUB_TOKEN, GH_TOKEN, "
    "or GITHUB_TOKEN is set with a valid GitHub token."
)
UNKNOWN_ERROR_MESSAGE = "Unknown error executing copilot"

# First match wins.
_QUOTA_MARKERS = ("quota", "402", "rate limit")
_AUTH_MARKERS = ("auth", "401", "unauthorized", "unauthenticated", "token")
_NOT_FOUND_MARKERS = ("enoent", "not found", "not installed")
_TIMEOUT_MARKERS = ("timed out",)


def _message_of(error: object) -> str | None:
    if isinstance(error, str):
        return error
    if isinstance(error, Failure):
        return error.message
    if isinstance(error, BaseException):
        return str(error)
    return None


def classify_error(error: object, scrubber: TokenScrubber | None = None) -> str:
    """Classify a failure into a user-facing message.

    Not-found and timeout messages are composed by the supervisor and
    already human-readable, so they pass through untouched.
    """
    message = _message_of(error)
    if message is None:
        return UNKNOWN_ERROR_MESSAGE

    lowered = message.lower()
    if any(m in lowered for m in _QUOTA_MARKERS):
        return QUOTA_MESSAGE
    if any(m in lowered for m in _AUTH_MARKERS):
        return AUTH_MESSAGE
    if any(m in lowered for m in _NOT_FOUND_MARKERS):
        return message
    if any(m in lowered for m in _TIMEOUT_MARKERS):
        return message

    scrubber = scrubber or TokenScrubber()
    return scrubber.scrub(message)
