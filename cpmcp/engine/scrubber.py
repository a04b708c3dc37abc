"""Token scrubbing for anything that leaves the process.

Secret values are looked up at call time so a token exported after
startup is still redacted.
"""
from __future__ import annotations

import os
from typing import Mapping, Sequence

from .config import TOKEN_ENV_VARS

REDACTED = "[REDACTED]"

# Values this short would corrupt ordinary words.
_MIN_SECRET_LENGTH = 5


class TokenScrubber:
    """Replaces every occurrence of configured secret values with [REDACTED]."""

    def __init__(
        self,
        env_vars: Sequence[str] = TOKEN_ENV_VARS,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._env_vars = tuple(env_vars)
        self._environ = environ

    @property
    def env_vars(self) -> tuple[str, ...]:
        return self._env_vars

    def scrub(self, text: str) -> str:
        env = os.environ if self._environ is None else self._environ
        scrubbed = text
        for name in self._env_vars:
            value = env.get(name)
            if value and len(value) >= _MIN_SECRET_LENGTH:
                scrubbed = scrubbed.replace(value, REDACTED)
        return scrubbed

    __call__ = scrub


def scrub_tokens(text: str, environ: Mapping[str, str] | None = None) -> str:
    """Scrub with the default token variables."""
    return TokenScrubber(environ=environ).scrub(text)
