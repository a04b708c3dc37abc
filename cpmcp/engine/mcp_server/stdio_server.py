"""Stdio MCP server wrapping the GitHub Copilot CLI.

Stdout carries the MCP protocol, so all logging goes to stderr (and
optionally to a rotating log file).

Usage:
    copilot-mcp-server
    copilot-mcp-server --config ~/.config/copilot-mcp.yaml --verbose
    python -m cpmcp.engine.mcp_server.stdio_server
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler

from mcp.server.fastmcp import FastMCP

from ..config import SupervisorConfig
from ..copilot import CopilotTools
from ..scrubber import TokenScrubber
from ..supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "COPILOT_MCP_CONFIG"
LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

# Parsed CLI args, set in main() before the server starts
_parsed_args: argparse.Namespace | None = None


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI args for the MCP server process."""
    parser = argparse.ArgumentParser(
        prog="copilot-mcp-server",
        description="MCP server exposing the GitHub Copilot CLI",
    )
    parser.add_argument(
        "--config",
        default=None,
        help=f"YAML config file. Also reads {CONFIG_ENV_VAR} env var.",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> SupervisorConfig:
    """--config, else COPILOT_MCP_CONFIG, else environment variables."""
    config_file = args.config or os.getenv(CONFIG_ENV_VAR)
    if config_file:
        from ..yaml_config import load_yaml_config

        logger.info(
            "Config source: %s (from %s)",
            config_file,
            "--config" if args.config else f"{CONFIG_ENV_VAR} env",
        )
        return load_yaml_config(config_file)
    logger.info("No config file specified; using env vars / defaults")
    return SupervisorConfig.from_env()


def configure_logging(config: SupervisorConfig, verbose: bool = False) -> None:
    """Apply the configured level and optional rotating log file."""
    level = logging.DEBUG if verbose else getattr(
        logging, config.log_level.upper(), logging.INFO
    )
    root = logging.getLogger()
    root.setLevel(level)

    if config.log_file:
        handler = RotatingFileHandler(
            config.log_file,
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        logger.info("Logging to %s", config.log_file)


@asynccontextmanager
async def copilot_lifespan(server: FastMCP):
    """Build config, supervisor and tool handlers for the server lifetime.

    Yields context dict accessible via ctx.request_context.lifespan_context
    in tool handlers.
    """
    global _parsed_args
    if _parsed_args is None:
        _parsed_args = _parse_args([])

    # Logging must go to stderr (stdout is the stdio transport)
    logging.basicConfig(
        level=logging.DEBUG if _parsed_args.verbose else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )

    config = load_config(_parsed_args)
    configure_logging(config, _parsed_args.verbose)

    scrubber = TokenScrubber(config.token_env_vars)
    supervisor = ProcessSupervisor(scrubber)
    copilot_tools = CopilotTools(config, supervisor, scrubber)

    logger.info(
        "Copilot MCP server initialized (binary=%s, default_model=%s)",
        config.binary_path,
        config.default_model,
    )

    try:
        yield {
            "config": config,
            "supervisor": supervisor,
            "copilot_tools": copilot_tools,
        }
    finally:
        await supervisor.shutdown()
        logger.info("Copilot MCP server shut down")


# Create the FastMCP instance
mcp = FastMCP(
    name="copilot-cli",
    instructions=(
        "Tools backed by the GitHub Copilot CLI. Use ask for open-ended "
        "questions and tasks, suggest to get a shell, git or gh command, "
        "and explain to understand a command. Pass softTimeoutMs to get "
        "partial output early instead of waiting for the 60s hard timeout."
    ),
    lifespan=copilot_lifespan,
)

from .tools import register_tools  # noqa: E402

register_tools(mcp)


def main() -> None:
    """Entry point for the MCP server."""
    global _parsed_args
    _parsed_args = _parse_args()
    try:
        mcp.run(transport="stdio")
    except Exception:
        logger.exception("Fatal stdio MCP server error (pid=%s)", os.getpid())
        raise


if __name__ == "__main__":
    main()
