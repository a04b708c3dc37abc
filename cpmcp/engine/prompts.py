"""Prompt templates for the suggest and explain tools."""
from __future__ import annotations

SUGGEST_TARGET_LABELS: dict[str, str] = {
    "shell": "shell",
    "git": "git",
    "gh": "GitHub CLI (gh)",
}


def build_suggest_prompt(prompt: str, target: str | None = None) -> str:
    if not target:
        return f"Suggest a command to accomplish: {prompt}"
    label = SUGGEST_TARGET_LABELS[target]
    return f"Suggest a {label} command to accomplish: {prompt}"


def build_explain_prompt(command: str) -> str:
    return f"Explain what this command does: {command}"


def build_time_budget_prefix(soft_timeout_ms: int) -> str:
    """Tell the assistant how long it has so it can wrap up on its own.

    Minutes are rounded half up, so 90s reads as 2m and 20s as 0m.
    """
    minutes = int(soft_timeout_ms / 60_000 + 0.5)
    return (
        f"[Time budget: {minutes}m. Summarize what you have if running "
        f"long; a complete answer beats exhaustive research.]\n\n"
    )


def with_time_budget(prompt: str, soft_timeout_ms: int | None) -> str:
    if not soft_timeout_ms:
        return prompt
    return build_time_budget_prefix(soft_timeout_ms) + prompt
