"""Tests for BoundedBuffer."""
from __future__ import annotations

import logging

from cpmcp.engine.buffers import BoundedBuffer
from cpmcp.engine.config import MAX_BUFFER_SIZE


def test_default_limit_is_ten_mib():
    assert BoundedBuffer("stdout").limit == MAX_BUFFER_SIZE == 10 * 1024 * 1024


def test_accumulates_under_limit():
    buf = BoundedBuffer("stdout", limit=100)
    buf.feed(b"hello ")
    buf.feed(b"world")
    buf.close()
    assert buf.getvalue() == "hello world"
    assert not buf.truncated


def test_truncates_at_exact_limit_and_drops_rest(caplog):
    buf = BoundedBuffer("stdout", limit=10)
    with caplog.at_level(logging.WARNING):
        buf.feed(b"0123456")
        buf.feed(b"789abc")
        buf.feed(b"more data")
    assert buf.getvalue() == "0123456789"
    assert len(buf) == 10
    assert buf.truncated
    warnings = [r for r in caplog.records if "truncated" in r.getMessage()]
    assert len(warnings) == 1
    assert "stdout truncated at 10 chars" in warnings[0].getMessage()


def test_limit_label_in_megabytes(caplog):
    buf = BoundedBuffer("stderr", limit=1024 * 1024)
    with caplog.at_level(logging.WARNING):
        buf.append("x" * (1024 * 1024 + 1))
    assert "stderr truncated at 1MB" in caplog.text


def test_multibyte_split_across_chunks():
    data = "héllo wörld".encode("utf-8")
    buf = BoundedBuffer("stdout", limit=100)
    # Split inside the two-byte "é"
    buf.feed(data[:2])
    buf.feed(data[2:])
    buf.close()
    assert buf.getvalue() == "héllo wörld"


def test_invalid_bytes_are_replaced():
    buf = BoundedBuffer("stdout", limit=100)
    buf.feed(b"ok \xff\xfe end")
    buf.close()
    assert buf.getvalue() == "ok \ufffd\ufffd end"


def test_feed_returns_decoded_chunk_even_after_truncation():
    buf = BoundedBuffer("stdout", limit=3)
    assert buf.feed(b"abcdef") == "abcdef"
    assert buf.feed(b"ghi") == "ghi"
    assert buf.getvalue() == "abc"
