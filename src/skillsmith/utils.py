"""Shared utility functions.

Small helpers used across multiple modules: fire-and-forget task creation,
async shell execution, and stat-derived timestamps.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
from asyncio.subprocess import PIPE
from collections.abc import Coroutine
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from skillsmith.logger import logger


def create_background_task(
    coro: Coroutine[Any, Any, Any],
    *,
    name: str | None = None,
) -> asyncio.Task[Any]:
    """Create an asyncio task that logs exceptions instead of swallowing them.

    A drop-in replacement for ``asyncio.create_task`` for fire-and-forget
    work where we don't await the result but still want failures to appear
    in logs.
    """
    task = asyncio.create_task(coro, name=name)
    task.add_done_callback(_log_task_exception)
    return task


def _log_task_exception(task: asyncio.Task[Any]) -> None:
    """Callback attached to background tasks, logs unhandled exceptions."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        # exc_info carries the traceback; logger.exception() won't work here
        # because we're in a done-callback, not an except handler.
        logger.error(
            "Background task failed",
            task_name=task.get_name(),
            exc_info=exc,
        )


@dataclass
class ShellResult:
    """Result of an async shell command execution."""

    returncode: int | None
    stdout: str
    stderr: str
    timed_out: bool = False
    start_error: str | None = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out and self.start_error is None


async def run_shell_command(
    command: str,
    *,
    cwd: str,
    timeout_seconds: float = 600,
) -> ShellResult:
    """Run a shell command asynchronously with timeout and structured result.

    Unlike subprocess.run, this does not block the event loop.
    """
    try:
        process = await asyncio.create_subprocess_shell(
            command,
            cwd=cwd,
            stdout=PIPE,
            stderr=PIPE,
        )
    except OSError as exc:
        return ShellResult(returncode=None, stdout="", stderr="", start_error=str(exc))

    try:
        stdout, stderr = await asyncio.wait_for(
            process.communicate(),
            timeout=timeout_seconds,
        )
    except TimeoutError:
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        with contextlib.suppress(Exception):
            await process.communicate()
        return ShellResult(returncode=None, stdout="", stderr="", timed_out=True)

    return ShellResult(
        returncode=process.returncode,
        stdout=stdout.decode(errors="replace").strip(),
        stderr=stderr.decode(errors="replace").strip(),
    )


def utc_now() -> datetime:
    return datetime.now(UTC)


def iso_from_timestamp(ts: float) -> str:
    """Format a POSIX timestamp (e.g. ``st_mtime``) as UTC isoformat."""
    return datetime.fromtimestamp(ts, tz=UTC).isoformat()


def stat_times(path: Path) -> tuple[datetime | None, datetime | None]:
    """Return ``(created_at, updated_at)`` for *path*, or Nones if it vanished.

    ``created_at`` is ``st_birthtime`` on platforms that record it (macOS,
    BSD, Windows on 3.12+). Linux has no birth time in ``os.stat``, so there
    it is ``st_ctime``: the last inode change, which renames and edits move.
    """
    try:
        st = os.stat(path)
    except OSError:
        return None, None
    birthtime = getattr(st, "st_birthtime", None)
    born = birthtime if birthtime is not None else st.st_ctime
    return (
        datetime.fromtimestamp(born, tz=UTC),
        datetime.fromtimestamp(st.st_mtime, tz=UTC),
    )
