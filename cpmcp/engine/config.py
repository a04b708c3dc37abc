"""Configuration loaded from environment variables.

All settings have sensible defaults. Environment is read once, at the
server boundary, and the resulting SupervisorConfig is passed to the
supervisor, argument builder and scrubber explicitly.

The hard timeout, kill grace period and capture bound are fixed
constants; they are not read from the environment.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

logger = logging.getLogger(__name__)

# Fixed execution limits.
HARD_TIMEOUT_MS = 60_000
KILL_GRACE_MS = 5_000
MAX_BUFFER_SIZE = 10 * 1024 * 1024

DEFAULT_BINARY = "copilot"
DEFAULT_COPILOT_MODEL = "gpt-4.1"

BINARY_PATH_ENV_VAR = "COPILOT_BINARY_PATH"
COPILOT_DEFAULT_MODEL_ENV_VAR = "COPILOT_DEFAULT_MODEL"

# Secret-bearing variables, in scrub priority order.
TOKEN_ENV_VARS: tuple[str, ...] = (
    "COPILOT_GITHUB_TOKEN",
    "GH_TOKEN",
    "GITHUB_TOKEN",
)


@dataclass
class SupervisorConfig:
    """Execution engine configuration."""

    # External binary: explicit path or a name resolved on PATH
    binary_path: str = DEFAULT_BINARY
    # Used when a tool call does not name a model
    default_model: str = DEFAULT_COPILOT_MODEL
    # Variables whose values are redacted from all observable output
    token_env_vars: tuple[str, ...] = TOKEN_ENV_VARS

    # Logging
    log_level: str = "INFO"
    log_file: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SupervisorConfig:
        """Load configuration from COPILOT_* environment variables."""
        env = os.environ if environ is None else environ

        overrides = {
            k: v for k, v in env.items()
            if k in (
                BINARY_PATH_ENV_VAR,
                COPILOT_DEFAULT_MODEL_ENV_VAR,
                "COPILOT_MCP_LOG_LEVEL",
                "COPILOT_MCP_LOG_FILE",
            ) and v
        }
        if overrides:
            logger.info(
                "SupervisorConfig.from_env: env overrides: %s",
                ", ".join(sorted(overrides)),
            )
        else:
            logger.debug("SupervisorConfig.from_env: no env overrides, using defaults")

        config = cls(
            binary_path=env.get(BINARY_PATH_ENV_VAR) or cls.binary_path,
            default_model=(
                env.get(COPILOT_DEFAULT_MODEL_ENV_VAR) or cls.default_model
            ),
            log_level=env.get("COPILOT_MCP_LOG_LEVEL") or cls.log_level,
            log_file=env.get("COPILOT_MCP_LOG_FILE") or None,
        )
        logger.info(
            "SupervisorConfig.from_env: binary=%s model=%s log_level=%s",
            config.binary_path, config.default_model, config.log_level,
        )
        return config
