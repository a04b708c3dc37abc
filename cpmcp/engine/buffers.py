"""Bounded capture buffer for one process output stream."""
from __future__ import annotations

import codecs
import logging

from .config import MAX_BUFFER_SIZE

logger = logging.getLogger(__name__)

_MIB = 1024 * 1024


def _size_label(limit: int) -> str:
    if limit >= _MIB and limit % _MIB == 0:
        return f"{limit // _MIB}MB"
    return f"{limit} chars"


class BoundedBuffer:
    """Accumulates decoded text up to a fixed number of characters.

    Once the bound is hit the buffer keeps exactly `limit` characters,
    sets `truncated`, and drops everything after for the rest of the
    invocation. Truncation is reported via a log warning only.
    """

    def __init__(self, name: str, limit: int = MAX_BUFFER_SIZE) -> None:
        self.name = name
        self.limit = limit
        self.truncated = False
        self._parts: list[str] = []
        self._size = 0
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def __len__(self) -> int:
        return self._size

    def decode(self, data: bytes, final: bool = False) -> str:
        return self._decoder.decode(data, final)

    def append(self, text: str) -> None:
        if self.truncated or not text:
            return
        room = self.limit - self._size
        if len(text) > room:
            text = text[:room]
            self.truncated = True
            logger.warning(
                "Warning: %s truncated at %s", self.name, _size_label(self.limit),
            )
        self._parts.append(text)
        self._size += len(text)

    def feed(self, data: bytes) -> str:
        """Decode raw bytes, retain what fits, return the decoded chunk."""
        text = self.decode(data)
        self.append(text)
        return text

    def close(self) -> str:
        """Flush any partial multi-byte sequence at end of stream."""
        text = self.decode(b"", final=True)
        self.append(text)
        return text

    def getvalue(self) -> str:
        if len(self._parts) > 1:
            self._parts = ["".join(self._parts)]
        return self._parts[0] if self._parts else ""
