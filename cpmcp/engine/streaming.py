"""Streaming execution: yield output as the binary produces it.

Same process handling as ProcessSupervisor (bounded capture, process
group kill, hard timeout) but surfaced as an async iterator of
OutputChunk objects instead of a single outcome.
"""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Mapping, Sequence

from .buffers import BoundedBuffer
from .config import HARD_TIMEOUT_MS, KILL_GRACE_MS, MAX_BUFFER_SIZE
from .models import InvocationRequest, OutputChunk
from .scrubber import TokenScrubber
from .supervisor import (
    describe_exit,
    format_args_for_log,
    spawn_failure,
    spawn_process,
    split_returncode,
    terminate_process,
    timeout_message,
)

logger = logging.getLogger(__name__)

_READ_CHUNK = 4096
# Chunks waiting for the consumer. A full queue stops the pipe readers.
_QUEUE_MAXSIZE = 16

# Drain tasks are referenced here until they finish or are cancelled.
_pending_tasks: set[asyncio.Task] = set()


def _track(task: asyncio.Task) -> asyncio.Task:
    _pending_tasks.add(task)
    task.add_done_callback(_pending_tasks.discard)
    return task


async def stream_command(
    file: str,
    args: Sequence[str] = (),
    *,
    env_override: Mapping[str, str] | None = None,
    scrubber: TokenScrubber | None = None,
    hard_timeout_ms: int = HARD_TIMEOUT_MS,
    kill_grace_ms: int = KILL_GRACE_MS,
    max_buffer_size: int = MAX_BUFFER_SIZE,
) -> AsyncIterator[OutputChunk]:
    """Run the binary and yield its output chunk by chunk.

    The last chunk always has is_result=True. Its text is the full
    stdout (or stderr when stdout is empty), or an error message with
    is_error=True when the process timed out, could not be started, or
    failed without output.
    """
    scrubber = scrubber or TokenScrubber()
    request = InvocationRequest(file, tuple(args), env_override)

    logger.info(
        "Executing (streaming): %s %s",
        file, scrubber.scrub(format_args_for_log(request.args)),
    )

    try:
        proc = await spawn_process(request)
    except OSError as exc:
        failure = spawn_failure(request, exc, scrubber)
        yield OutputChunk(text=failure.message, is_result=True, is_error=True)
        return

    buffers = {
        "stdout": BoundedBuffer("stdout", max_buffer_size),
        "stderr": BoundedBuffer("stderr", max_buffer_size),
    }
    queue: asyncio.Queue[OutputChunk | None] = asyncio.Queue(maxsize=_QUEUE_MAXSIZE)

    async def pump(reader: asyncio.StreamReader | None, name: str) -> None:
        if reader is None:
            return
        buffer = buffers[name]
        while True:
            data = await reader.read(_READ_CHUNK)
            if not data:
                break
            text = buffer.feed(data)
            if text:
                await queue.put(OutputChunk(text=text, stream=name))
        tail = buffer.close()
        if tail:
            await queue.put(OutputChunk(text=tail, stream=name))

    async def drain() -> None:
        await asyncio.gather(
            pump(proc.stdout, "stdout"),
            pump(proc.stderr, "stderr"),
        )
        await proc.wait()
        await queue.put(None)

    drain_task = _track(asyncio.create_task(drain(), name=f"copilot-stream-{proc.pid}"))

    loop = asyncio.get_running_loop()
    deadline = loop.time() + hard_timeout_ms / 1000
    finished = False
    try:
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            try:
                chunk = await asyncio.wait_for(queue.get(), timeout=remaining)
            except asyncio.TimeoutError:
                break
            if chunk is None:
                finished = True
                break
            yield chunk

        if not finished:
            logger.warning("Hard timeout after %dms (streaming)", hard_timeout_ms)
            yield OutputChunk(
                text=timeout_message(hard_timeout_ms),
                is_result=True,
                is_error=True,
            )
            return

        code, sig = split_returncode(proc.returncode)
        stdout = buffers["stdout"].getvalue()
        stderr = buffers["stderr"].getvalue()
        if code == 0 or stdout or stderr:
            if code != 0:
                logger.warning(
                    "Command failed but produced output, using output (%s exit %s)",
                    file, describe_exit(code, sig),
                )
            yield OutputChunk(text=stdout or stderr, is_result=True)
        else:
            yield OutputChunk(
                text=f"Command exited with code {describe_exit(code, sig)}",
                is_result=True,
                is_error=True,
            )
    finally:
        if not finished:
            logger.debug("Stream closed before exit; terminating pid=%s", proc.pid)
            terminate_process(proc, kill_grace_ms)
            drain_task.cancel()
