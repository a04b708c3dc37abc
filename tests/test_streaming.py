"""Tests for stream_command."""
from __future__ import annotations

import asyncio
import sys

import pytest

from cpmcp.engine.scrubber import TokenScrubber
from cpmcp.engine import streaming
from cpmcp.engine.streaming import stream_command


async def collect(agen):
    return [chunk async for chunk in agen]


def py_stream(code: str, **kwargs):
    kwargs.setdefault("scrubber", TokenScrubber(environ={}))
    kwargs.setdefault("hard_timeout_ms", 10_000)
    return stream_command(sys.executable, ["-c", code], **kwargs)


@pytest.mark.asyncio
async def test_chunks_then_final_result():
    chunks = await collect(py_stream(
        "import sys, time\n"
        "print('first', flush=True)\n"
        "time.sleep(0.2)\n"
        "print('second', flush=True)\n"
    ))
    progress, final = chunks[:-1], chunks[-1]
    assert all(not c.is_result for c in progress)
    assert "".join(c.text for c in progress if c.stream == "stdout").split() == [
        "first", "second",
    ]
    assert final.is_result and not final.is_error
    assert final.text.split() == ["first", "second"]


@pytest.mark.asyncio
async def test_stderr_used_when_stdout_empty():
    chunks = await collect(py_stream("import sys; sys.stderr.write('answer on stderr')"))
    final = chunks[-1]
    assert final.is_result and not final.is_error
    assert final.text == "answer on stderr"
    assert any(c.stream == "stderr" and not c.is_result for c in chunks)


@pytest.mark.asyncio
async def test_failure_without_output_is_error():
    chunks = await collect(py_stream("import sys; sys.exit(9)"))
    assert len(chunks) == 1
    assert chunks[0].is_result and chunks[0].is_error
    assert chunks[0].text == "Command exited with code 9"


@pytest.mark.asyncio
async def test_failure_with_output_is_result():
    chunks = await collect(py_stream("import sys; print('partial'); sys.exit(1)"))
    assert chunks[-1].is_result and not chunks[-1].is_error
    assert chunks[-1].text.strip() == "partial"


@pytest.mark.asyncio
async def test_hard_timeout_yields_error_chunk():
    chunks = await collect(py_stream(
        "import time; print('working', flush=True); time.sleep(30)",
        hard_timeout_ms=1000,
        kill_grace_ms=200,
    ))
    final = chunks[-1]
    assert final.is_result and final.is_error
    assert final.text == "Command timed out after 1000ms"


@pytest.mark.asyncio
async def test_retained_output_is_bounded():
    chunks = await collect(py_stream(
        "import sys; sys.stdout.write('y' * 5000)", max_buffer_size=100
    ))
    assert chunks[-1].text == "y" * 100
    assert sum(len(c.text) for c in chunks[:-1]) == 5000


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX spawn errors")
@pytest.mark.asyncio
async def test_missing_binary_yields_single_error():
    chunks = await collect(stream_command(
        "/nonexistent/copilot-missing", scrubber=TokenScrubber(environ={})
    ))
    assert len(chunks) == 1
    assert chunks[0].is_error
    assert chunks[0].text.startswith('Binary not found: "/nonexistent/copilot-missing"')


@pytest.mark.asyncio
async def test_early_close_terminates_process(tmp_path):
    marker = tmp_path / "survived"
    agen = py_stream(
        "import time, pathlib\n"
        "print('tick', flush=True)\n"
        "time.sleep(3)\n"
        f"pathlib.Path({str(marker)!r}).write_text('x')\n",
        kill_grace_ms=200,
    )
    first = await agen.__anext__()
    assert first.text.strip() == "tick"
    await agen.aclose()
    await asyncio.sleep(4)
    assert not marker.exists()


@pytest.mark.asyncio
async def test_slow_consumer_blocks_the_writer(tmp_path):
    marker = tmp_path / "wrote-everything"
    agen = py_stream(
        "import sys, pathlib\n"
        "block = 'z' * 65536\n"
        "for _ in range(400):\n"
        "    sys.stdout.write(block)\n"
        "sys.stdout.flush()\n"
        f"pathlib.Path({str(marker)!r}).write_text('x')\n",
        max_buffer_size=1000,
        kill_grace_ms=200,
    )
    first = await agen.__anext__()
    assert first.stream == "stdout"
    await asyncio.sleep(1.5)
    assert not marker.exists()

    await agen.aclose()
    await asyncio.sleep(0.2)
    assert not streaming._pending_tasks
