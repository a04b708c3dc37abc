"""Argument list construction for the copilot CLI.

Uses array-based argv (no shell on POSIX) for safe argument passing.
Validation fails closed: a bad addDir raises before anything is spawned.
"""
from __future__ import annotations

import os

from .config import SupervisorConfig
from .errors import ValidationError

PROMPT_FLAG = "-p"
MODEL_FLAG = "--model"
ADD_DIR_FLAG = "--add-dir"

# Hardcoded safety flags for every copilot invocation, in this order.
COPILOT_BASE_ARGS: tuple[str, ...] = (
    "--allow-all-tools",
    "--no-ask-user",
    "--silent",
    "--no-color",
    "--no-auto-update",
)


def validate_add_dir(add_dir: str) -> None:
    """Reject null bytes, '..' segments and relative paths."""
    if "\0" in add_dir:
        raise ValidationError("addDir", "addDir contains null bytes")
    if ".." in add_dir.split("/"):
        raise ValidationError(
            "addDir", "addDir must not contain path traversal segments"
        )
    if not os.path.isabs(add_dir):
        raise ValidationError("addDir", "addDir must be an absolute path")


def resolve_model(model: str | None, config: SupervisorConfig) -> str:
    """Explicit model wins, then the configured default."""
    return model or config.default_model


def build_copilot_args(
    prompt: str,
    model: str | None = None,
    add_dir: str | None = None,
    *,
    config: SupervisorConfig,
) -> list[str]:
    """Build the copilot argv (without the binary itself)."""
    args = [PROMPT_FLAG, prompt, *COPILOT_BASE_ARGS]
    args.extend([MODEL_FLAG, resolve_model(model, config)])
    if add_dir:
        validate_add_dir(add_dir)
        args.extend([ADD_DIR_FLAG, add_dir])
    return args
