"""Serializing queue for skill mutations.

Every create/rename/edit/delete/restore/purge runs as an ``OperationTask``
through a single ``OperationQueue``. Tasks execute strictly one at a time in
enqueue order, so two mutations can never race on the same directory tree.

asyncio.create_task doesn't run the coroutine synchronously up to the first
await. So we eagerly set ``_processing`` in the synchronous ``enqueue`` caller
and clear it when the drain loop exits.
"""

from __future__ import annotations

import asyncio
import uuid
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from skillsmith.errors import ExecutionError
from skillsmith.logger import logger as _default_logger
from skillsmith.utils import create_background_task, utc_now


class OperationType(StrEnum):
    CREATE = "create"
    RENAME = "rename"
    EDIT = "edit"
    DELETE = "delete"
    RESTORE = "restore"
    PURGE = "purge"


class OperationStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationStatus.COMPLETED, OperationStatus.FAILED)


@dataclass
class OperationTask:
    type: OperationType
    target_skill: str  # Descriptive label, e.g. "old -> new" for renames
    execute: Callable[[], Awaitable[None]]
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: OperationStatus = OperationStatus.PENDING
    created_at: datetime = field(default_factory=utc_now)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: BaseException | None = None
    _settled: asyncio.Event = field(default_factory=asyncio.Event, repr=False, compare=False)

    def _start(self) -> None:
        self.status = OperationStatus.PROCESSING
        self.started_at = utc_now()

    def _complete(self) -> None:
        self.status = OperationStatus.COMPLETED
        self.completed_at = utc_now()
        self._settled.set()

    def _fail(self, error: BaseException) -> None:
        self.status = OperationStatus.FAILED
        self.completed_at = utc_now()
        self.error = error
        self._settled.set()

    @property
    def settled(self) -> bool:
        return self._settled.is_set()

    async def wait(self, timeout: float | None = None) -> None:
        """Block until the task reaches a terminal state.

        Raises the builtin ``TimeoutError`` if *timeout* seconds pass first.
        Only the wait is abandoned; the task itself keeps running.
        """
        await asyncio.wait_for(self._settled.wait(), timeout=timeout)


@dataclass
class QueueStatus:
    """Point-in-time view of the queue; ``tasks`` is a copy, not the live deque."""

    length: int
    processing: bool
    tasks: list[OperationTask]


class OperationQueue:
    """FIFO queue that runs at most one ``OperationTask`` at a time.

    A failing task is marked FAILED and the queue moves on: no retries, no
    reordering, and the drain loop never raises.
    """

    def __init__(self, *, logger: Any = None) -> None:
        self._pending: deque[OperationTask] = deque()
        self._processing = False
        self._log = logger or _default_logger

    def enqueue(self, task: OperationTask) -> None:
        """Append *task* and return without waiting for it to run.

        Starts the drain loop if one isn't already active.
        """
        self._pending.append(task)
        self._log.debug(
            "Operation enqueued",
            task_id=task.id,
            type=str(task.type),
            target=task.target_skill,
            queue_length=len(self._pending),
        )

        if self._processing:
            return

        # Eagerly mark active before scheduling the coroutine
        self._processing = True
        create_background_task(self._drain(), name="skill-operation-queue")

    async def _drain(self) -> None:
        try:
            while self._pending:
                task = self._pending.popleft()
                await self._run_task(task)
        finally:
            self._processing = False

    async def _run_task(self, task: OperationTask) -> None:
        task._start()
        self._log.debug(
            "Operation started", task_id=task.id, type=str(task.type), target=task.target_skill
        )

        try:
            await task.execute()
        except Exception as exc:
            task._fail(exc)
            self._log.error(
                "Operation failed",
                task_id=task.id,
                type=str(task.type),
                target=task.target_skill,
                exc_info=exc,
            )
            return

        task._complete()
        self._log.info(
            "Operation completed", task_id=task.id, type=str(task.type), target=task.target_skill
        )

    def get_queue_status(self) -> QueueStatus:
        return QueueStatus(
            length=len(self._pending),
            processing=self._processing,
            tasks=list(self._pending),
        )

    def clear(self) -> None:
        """Discard every task that hasn't started yet.

        Discarded tasks are settled as FAILED so their waiters return at once.
        A task that is already processing is unaffected.
        """
        discarded = list(self._pending)
        self._pending.clear()
        for task in discarded:
            task._fail(
                ExecutionError(
                    f"Operation discarded before execution: {task.type} - {task.target_skill}"
                )
            )
        self._log.info("Operation queue cleared", discarded=len(discarded))
