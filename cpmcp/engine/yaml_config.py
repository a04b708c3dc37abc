"""YAML configuration loader.

Loads a single YAML file layered over the COPILOT_* env vars.
Values it does not set come from SupervisorConfig.from_env().

Example YAML:
    copilot:
      binary_path: /opt/copilot/bin/copilot
      default_model: claude-sonnet-4-5
      token_env_vars: [COPILOT_GITHUB_TOKEN, GH_TOKEN, GITHUB_TOKEN]
      log_level: DEBUG
      log_file: ~/.copilot-mcp/server.log

Execution limits (hard timeout, kill grace, capture bound) are fixed and
cannot be set here.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping

import yaml

from .config import SupervisorConfig
from .errors import ConfigError

logger = logging.getLogger(__name__)

_KNOWN_KEYS = {
    "binary_path",
    "default_model",
    "token_env_vars",
    "log_level",
    "log_file",
}


def _parse_token_env_vars(path: Path, value: object) -> tuple[str, ...]:
    if isinstance(value, str):
        return tuple(v.strip() for v in value.split(",") if v.strip())
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return tuple(value)
    raise ConfigError(str(path), "copilot.token_env_vars must be a list of names")


def load_yaml_config(
    path: str | Path,
    environ: Mapping[str, str] | None = None,
) -> SupervisorConfig:
    """Load and parse a YAML config file into a SupervisorConfig.

    YAML keys override COPILOT_* environment variables, which override
    dataclass defaults. Unknown keys are logged and ignored.
    """
    path = Path(path).expanduser()
    logger.info(
        "load_yaml_config: loading config from %s (exists=%s)",
        path, path.exists(),
    )
    if not path.is_file():
        raise ConfigError(str(path), "file not found")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(str(path), f"YAML parse error: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(str(path), "top level must be a mapping")

    section = data.get("copilot") or {}
    if not isinstance(section, dict):
        raise ConfigError(str(path), "'copilot' section must be a mapping")

    unknown = sorted(set(section) - _KNOWN_KEYS)
    if unknown:
        logger.warning(
            "load_yaml_config: ignoring unknown keys in %s: %s",
            path, ", ".join(unknown),
        )

    config = SupervisorConfig.from_env(environ)
    if section.get("binary_path"):
        config.binary_path = str(section["binary_path"])
    if section.get("default_model"):
        config.default_model = str(section["default_model"])
    if "token_env_vars" in section:
        config.token_env_vars = _parse_token_env_vars(
            path, section["token_env_vars"]
        )
    if section.get("log_level"):
        config.log_level = str(section["log_level"]).upper()
    if section.get("log_file"):
        config.log_file = str(Path(str(section["log_file"])).expanduser())

    logger.info(
        "load_yaml_config: binary=%s model=%s tokens=%d",
        config.binary_path, config.default_model, len(config.token_env_vars),
    )
    return config
