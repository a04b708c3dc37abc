"""Process supervisor for the external copilot CLI.

Spawns one process per invocation, captures both output streams into
bounded buffers, and resolves to exactly one outcome: Success or
Failure. Process failures never raise out of run(); execute() turns a
Failure into CommandExecutionError for callers that prefer exceptions.

TIMEOUT MODEL:
- Hard timeout: always armed (60s). Firing kills the process and
  resolves with Failure(TIMEOUT).
- Soft timeout: armed only when the caller supplies one shorter than
  the hard timeout. Firing kills the process but resolves with
  Success, stdout prefixed with SOFT_TIMEOUT_PREFIX.
- Natural exit: resolves through resolve_exit(). A bare SIGTERM that
  the supervisor did not send is treated as a host-imposed timeout.

Whichever event fires first moves the InvocationLifecycle to a terminal
state; every later event is a no-op. Timer cancellation is best effort,
the lifecycle guard is what guarantees single resolution.

Kill sequence: SIGTERM to the process group, then SIGKILL after the
grace period if it is still alive. Resolution does not wait for the
process to actually die.
"""
from __future__ import annotations

import asyncio
import logging
import os
import re
import signal
import sys
from typing import Sequence

from .buffers import BoundedBuffer
from .config import HARD_TIMEOUT_MS, KILL_GRACE_MS, MAX_BUFFER_SIZE
from .errors import CommandExecutionError
from .lifecycle import InvocationLifecycle
from .models import (
    ErrorKind,
    ExecutionOptions,
    Failure,
    InvocationOutcome,
    InvocationRequest,
    ProcessState,
    Success,
)
from .scrubber import TokenScrubber

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"

SOFT_TIMEOUT_PREFIX = "[Soft timeout - partial output]\n"
INSTALL_URL = "https://github.com/github/gh-copilot"

_READ_CHUNK = 4096
_STDERR_EXCERPT_CHARS = 2000
_DISPLAY_ARG_CHARS = 200

_WINDOWS_SPECIAL_RE = re.compile(r'[\s"&|<>^%]')


def escape_arg_for_windows(arg: str) -> str:
    """Quote one argument for cmd.exe.

    Percent signs are doubled to block variable expansion; arguments with
    whitespace or shell metacharacters are wrapped in double quotes with
    internal quotes doubled.
    """
    escaped = arg.replace("%", "%%")
    if _WINDOWS_SPECIAL_RE.search(arg):
        escaped = '"' + escaped.replace('"', '""') + '"'
    return escaped


def format_args_for_log(args: Sequence[str]) -> str:
    parts = []
    for arg in args:
        if len(arg) > _DISPLAY_ARG_CHARS:
            arg = arg[: _DISPLAY_ARG_CHARS - 3] + "..."
        parts.append(arg)
    return " ".join(parts)


async def spawn_process(request: InvocationRequest) -> asyncio.subprocess.Process:
    """Start the binary with both output streams piped.

    Raises OSError (FileNotFoundError, PermissionError, ...) when the
    binary cannot be started.
    """
    env = None
    if request.env_override:
        env = {**os.environ, **request.env_override}

    if IS_WINDOWS:
        # npm-installed CLIs are .cmd shims; only cmd.exe resolves those
        command_line = " ".join(
            escape_arg_for_windows(a)
            for a in (request.executable, *request.args)
        )
        return await asyncio.create_subprocess_shell(
            command_line,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
        )

    # Argv is passed as a list, no shell involved
    return await asyncio.create_subprocess_exec(
        request.executable,
        *request.args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=env,
        start_new_session=True,
    )


def signal_process(proc: asyncio.subprocess.Process, *, force: bool) -> bool:
    """Send SIGTERM (or SIGKILL when force) to the process group.

    On POSIX the group is signalled even after the leader was reaped,
    since a grandchild may still hold the output pipes open.
    """
    try:
        if hasattr(os, "killpg"):
            os.killpg(proc.pid, signal.SIGKILL if force else signal.SIGTERM)
        elif proc.returncode is not None:
            return False
        elif force:
            proc.kill()
        else:
            proc.terminate()
        return True
    except (ProcessLookupError, PermissionError):
        return False


def terminate_process(
    proc: asyncio.subprocess.Process,
    grace_ms: int = KILL_GRACE_MS,
) -> asyncio.TimerHandle:
    """Start the kill sequence and return the escalation timer."""
    signal_process(proc, force=False)

    def _escalate() -> None:
        if signal_process(proc, force=True):
            logger.warning(
                "Process %s still running %dms after SIGTERM; sent SIGKILL",
                proc.pid, grace_ms,
            )

    return asyncio.get_running_loop().call_later(grace_ms / 1000, _escalate)


def split_returncode(returncode: int | None) -> tuple[int | None, int | None]:
    """asyncio reports death-by-signal N as returncode -N."""
    if returncode is not None and returncode < 0:
        return None, -returncode
    return returncode, None


def describe_exit(code: int | None, sig: int | None) -> str:
    if sig is None:
        return str(code)
    try:
        name = signal.Signals(sig).name
    except ValueError:
        name = str(sig)
    return f"{code} (signal {name})"


def timeout_message(timeout_ms: int) -> str:
    return f"Command timed out after {timeout_ms}ms"


def spawn_failure(
    request: InvocationRequest,
    exc: OSError,
    scrubber: TokenScrubber,
) -> Failure:
    """Classify an OSError raised while starting the binary."""
    file = request.executable
    if isinstance(exc, FileNotFoundError):
        logger.error("Binary not found: %s", scrubber.scrub(file))
        return Failure(
            kind=ErrorKind.BINARY_NOT_FOUND,
            message=scrubber.scrub(
                f'Binary not found: "{file}". '
                f"If using the default copilot binary, install it from: "
                f"{INSTALL_URL}. "
                f"If using COPILOT_BINARY_PATH, verify the path is correct."
            ),
            cause=exc,
        )
    logger.error(
        "Failed to spawn %s: %s: %s",
        scrubber.scrub(file), type(exc).__name__, scrubber.scrub(str(exc)),
    )
    return Failure(
        kind=ErrorKind.SPAWN_FAILED,
        message="Command execution failed",
        cause=exc,
    )


def resolve_exit(
    command: str,
    code: int | None,
    sig: int | None,
    stdout: str,
    stderr: str,
    options: ExecutionOptions,
    *,
    timeout_ms: int = HARD_TIMEOUT_MS,
    self_terminated: bool = False,
    scrubber: TokenScrubber | None = None,
) -> InvocationOutcome:
    """Apply the exit-code policy to a process that exited on its own."""
    scrubber = scrubber or TokenScrubber()

    if code is None and sig == signal.SIGTERM and not self_terminated:
        logger.warning(
            "%s terminated by external SIGTERM; treating as timeout", command
        )
        return Failure(
            kind=ErrorKind.TIMEOUT,
            message=timeout_message(timeout_ms),
            cause=TimeoutError("Timeout"),
        )

    exit_desc = describe_exit(code, sig)

    if options.strict_exit_code:
        if code == 0:
            return Success(stdout=stdout, stderr=stderr)
        excerpt = stderr.strip()[:_STDERR_EXCERPT_CHARS]
        return Failure(
            kind=ErrorKind.NON_ZERO_EXIT,
            message=scrubber.scrub(
                f"Command failed with exit code {exit_desc}: "
                f"{excerpt or 'no error message'}"
            ),
            cause=RuntimeError(scrubber.scrub(stderr) or "Unknown error"),
        )

    if code == 0 or stdout or stderr:
        if code != 0:
            logger.warning(
                "Command failed but produced output, using output (%s exit %s)",
                command, exit_desc,
            )
        return Success(stdout=stdout, stderr=stderr)
    return Failure(
        kind=ErrorKind.NON_ZERO_EXIT,
        message=f"Command failed with exit code {exit_desc}",
        cause=RuntimeError("Unknown error"),
    )


class _Invocation:
    """Mutable state for one in-flight invocation."""

    def __init__(
        self,
        request: InvocationRequest,
        loop: asyncio.AbstractEventLoop,
        max_buffer_size: int,
    ) -> None:
        self.request = request
        self.lifecycle = InvocationLifecycle()
        self.stdout = BoundedBuffer("stdout", max_buffer_size)
        self.stderr = BoundedBuffer("stderr", max_buffer_size)
        self.outcome: asyncio.Future[InvocationOutcome] = loop.create_future()
        self.proc: asyncio.subprocess.Process | None = None
        self.soft_handle: asyncio.TimerHandle | None = None
        self.hard_handle: asyncio.TimerHandle | None = None
        self.kill_handle: asyncio.TimerHandle | None = None
        self.kill_initiated = False

    def cancel_timers(self) -> None:
        for handle in (self.soft_handle, self.hard_handle):
            if handle is not None:
                handle.cancel()

    def resolve(self, state: ProcessState, outcome: InvocationOutcome) -> bool:
        if not self.lifecycle.try_resolve(state):
            return False
        self.cancel_timers()
        if not self.outcome.done():
            self.outcome.set_result(outcome)
        return True


class ProcessSupervisor:
    """Runs the external binary under soft/hard timeouts.

    Concurrent run() calls are independent: each owns its process,
    buffers and timers. The supervisor only shares read-only limits and
    the scrubber between them.
    """

    def __init__(
        self,
        scrubber: TokenScrubber | None = None,
        *,
        hard_timeout_ms: int = HARD_TIMEOUT_MS,
        kill_grace_ms: int = KILL_GRACE_MS,
        max_buffer_size: int = MAX_BUFFER_SIZE,
    ) -> None:
        self._scrubber = scrubber or TokenScrubber()
        self._hard_timeout_ms = hard_timeout_ms
        self._kill_grace_ms = kill_grace_ms
        self._max_buffer_size = max_buffer_size
        # Processes whose pipes are still open, including ones already
        # resolved by a timeout and waiting to die.
        self._live: set[asyncio.subprocess.Process] = set()
        self._watchers: set[asyncio.Task] = set()

    @property
    def hard_timeout_ms(self) -> int:
        return self._hard_timeout_ms

    @property
    def active_count(self) -> int:
        return len(self._live)

    async def run(self, request: InvocationRequest) -> InvocationOutcome:
        """Run the binary once and return its outcome."""
        loop = asyncio.get_running_loop()
        inv = _Invocation(request, loop, self._max_buffer_size)

        logger.info(
            "Executing: %s %s",
            request.executable,
            self._scrubber.scrub(format_args_for_log(request.args)),
        )

        try:
            proc = await spawn_process(request)
        except OSError as exc:
            inv.lifecycle.try_resolve(ProcessState.SPAWN_FAILED)
            return spawn_failure(request, exc, self._scrubber)

        inv.proc = proc
        inv.lifecycle.mark_running()
        self._live.add(proc)
        logger.debug("Spawned %s (pid=%s)", request.executable, proc.pid)

        inv.hard_handle = loop.call_later(
            self._hard_timeout_ms / 1000, self._on_hard_timeout, inv
        )
        soft_ms = request.options.soft_timeout_ms
        if soft_ms is not None and soft_ms < self._hard_timeout_ms:
            inv.soft_handle = loop.call_later(
                soft_ms / 1000, self._on_soft_timeout, inv
            )

        watcher = asyncio.create_task(
            self._watch(inv), name=f"copilot-watch-{proc.pid}"
        )
        self._watchers.add(watcher)
        watcher.add_done_callback(self._watchers.discard)

        try:
            return await inv.outcome
        except asyncio.CancelledError:
            if not inv.lifecycle.resolved:
                logger.warning(
                    "Invocation cancelled by caller; terminating pid=%s", proc.pid
                )
                inv.cancel_timers()
                self._kill(inv)
            raise

    async def execute(self, request: InvocationRequest) -> Success:
        """Like run(), but raise CommandExecutionError on Failure."""
        outcome = await self.run(request)
        if isinstance(outcome, Failure):
            raise CommandExecutionError(
                request.executable,
                outcome.message,
                outcome.cause,
                kind=outcome.kind,
            )
        return outcome

    async def shutdown(self) -> None:
        """Terminate any process that is still alive."""
        procs = list(self._live)
        for proc in procs:
            signal_process(proc, force=False)
        if self._watchers:
            _, pending = await asyncio.wait(
                set(self._watchers), timeout=self._kill_grace_ms / 1000
            )
            if pending:
                for proc in list(self._live):
                    signal_process(proc, force=True)
                await asyncio.gather(*pending, return_exceptions=True)
        if procs:
            logger.info("Supervisor shut down (%d processes stopped)", len(procs))

    # ── Event handlers ──────────────────────────────────────────

    def _on_soft_timeout(self, inv: _Invocation) -> None:
        if inv.lifecycle.resolved:
            return
        partial = inv.stdout.getvalue()
        resolved = inv.resolve(
            ProcessState.KILLED_SOFT_TIMEOUT,
            Success(
                stdout=SOFT_TIMEOUT_PREFIX + partial,
                stderr=inv.stderr.getvalue(),
            ),
        )
        if resolved:
            logger.warning(
                "Soft timeout after %sms; returning partial output (%d chars)",
                inv.request.options.soft_timeout_ms, len(partial),
            )
            self._kill(inv)

    def _on_hard_timeout(self, inv: _Invocation) -> None:
        resolved = inv.resolve(
            ProcessState.KILLED_HARD_TIMEOUT,
            Failure(
                kind=ErrorKind.TIMEOUT,
                message=timeout_message(self._hard_timeout_ms),
                cause=TimeoutError("Timeout"),
            ),
        )
        if resolved:
            logger.warning("Hard timeout after %dms", self._hard_timeout_ms)
            self._kill(inv)

    def _on_exit(self, inv: _Invocation, returncode: int | None) -> None:
        if inv.lifecycle.resolved:
            logger.debug(
                "pid=%s exited after resolution (%s)",
                inv.proc.pid if inv.proc else None, inv.lifecycle.state.value,
            )
            return

        code, sig = split_returncode(returncode)
        stdout = inv.stdout.getvalue()
        stderr = inv.stderr.getvalue()
        if stderr:
            logger.warning("Command stderr: %s", self._scrubber.scrub(stderr))

        outcome = resolve_exit(
            inv.request.executable,
            code,
            sig,
            stdout,
            stderr,
            inv.request.options,
            timeout_ms=self._hard_timeout_ms,
            self_terminated=inv.kill_initiated,
            scrubber=self._scrubber,
        )
        inv.resolve(ProcessState.EXITED, outcome)

    # ── Process plumbing ────────────────────────────────────────

    def _kill(self, inv: _Invocation) -> None:
        inv.kill_initiated = True
        proc = inv.proc
        if proc is None or proc not in self._live:
            return
        inv.kill_handle = terminate_process(proc, self._kill_grace_ms)

    async def _pump(
        self,
        reader: asyncio.StreamReader | None,
        buffer: BoundedBuffer,
    ) -> None:
        if reader is None:
            return
        while True:
            data = await reader.read(_READ_CHUNK)
            if not data:
                break
            buffer.feed(data)
        buffer.close()

    async def _watch(self, inv: _Invocation) -> None:
        """Drain both pipes, reap the process, then report the exit."""
        proc = inv.proc
        assert proc is not None
        try:
            await asyncio.gather(
                self._pump(proc.stdout, inv.stdout),
                self._pump(proc.stderr, inv.stderr),
            )
            returncode = await proc.wait()
        finally:
            self._live.discard(proc)
            if inv.kill_handle is not None:
                inv.kill_handle.cancel()
        self._on_exit(inv, returncode)
