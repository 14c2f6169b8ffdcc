"""
Subprocess execution with timeouts and bounded output.

Every command runs in its own session so a timeout can take down the whole
process group, including anything the shell forked.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from pathlib import Path
from typing import Awaitable, Callable

from toolguard._types import CommandResult

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = 124
KILL_GRACE_PERIOD = 0.5
PIPE_DRAIN_TIMEOUT = 1.0
_CHUNK_SIZE = 64 * 1024


class _Capture:
    """Accumulates up to ``limit`` bytes of a stream and counts the rest."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.data = bytearray()
        self.dropped = 0

    async def drain(self, stream: asyncio.StreamReader) -> None:
        while chunk := await stream.read(_CHUNK_SIZE):
            room = max(self.limit - len(self.data), 0)
            if room:
                self.data += chunk[:room]
            self.dropped += max(len(chunk) - room, 0)

    def text(self) -> str:
        text = self.data.decode("utf-8", errors="replace")
        if self.dropped:
            text += f"\n... (truncated, {self.dropped} more bytes)"
        return text


def _signal_group(proc: asyncio.subprocess.Process, sig: int) -> None:
    try:
        os.killpg(proc.pid, sig)
    except ProcessLookupError:
        pass  # already gone


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    _signal_group(proc, signal.SIGTERM)
    try:
        await asyncio.wait_for(proc.wait(), timeout=KILL_GRACE_PERIOD)
    except asyncio.TimeoutError:
        logger.debug("Process group %d ignored SIGTERM", proc.pid)
    _signal_group(proc, signal.SIGKILL)
    await proc.wait()


async def run_process(
    argv: list[str],
    *,
    cwd: Path | str,
    timeout: float,
    max_output: int = 10_000,
    env: dict[str, str] | None = None,
    on_timeout: Callable[[], Awaitable[object]] | None = None,
) -> CommandResult:
    """
    Run ``argv`` and collect its output.

    Args:
        argv: Program and arguments; no shell is involved unless argv names one.
        cwd: Working directory for the process.
        timeout: Seconds before the process group is terminated.
        max_output: Per-stream byte cap; the excess is read and discarded.
        env: Environment for the child. None inherits the current one.
        on_timeout: Awaited after the process group is killed on timeout,
            for cleanup the group kill cannot reach (a docker container).

    Returns:
        CommandResult. On timeout, ``timed_out`` is set, the exit code is
        124 and the output holds whatever was read before the kill.

    Raises:
        OSError: If the process cannot be spawned.
    """
    proc = await asyncio.create_subprocess_exec(
        *argv,
        cwd=str(cwd),
        env=env,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=True,
    )
    logger.debug("Spawned pid %d: %s", proc.pid, argv[0])

    stdout, stderr = _Capture(max_output), _Capture(max_output)
    pumps = [
        asyncio.create_task(stdout.drain(proc.stdout)),
        asyncio.create_task(stderr.drain(proc.stderr)),
    ]

    timed_out = False
    try:
        try:
            await asyncio.wait_for(proc.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            timed_out = True
            logger.warning("Command timed out after %ss (pid %d)", timeout, proc.pid)
            await _terminate(proc)
            if on_timeout is not None:
                await on_timeout()

        # Background children can hold the pipes open after the shell exits
        _, pending = await asyncio.wait(pumps, timeout=PIPE_DRAIN_TIMEOUT)
        if pending:
            _signal_group(proc, signal.SIGKILL)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
    finally:
        if proc.returncode is None:
            _signal_group(proc, signal.SIGKILL)
            await proc.wait()
        for task in pumps:
            task.cancel()

    return CommandResult(
        stdout=stdout.text(),
        stderr=stderr.text(),
        exit_code=TIMEOUT_EXIT_CODE if timed_out else proc.returncode,
        timed_out=timed_out,
        truncated=bool(stdout.dropped or stderr.dropped),
    )
