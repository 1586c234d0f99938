"""Tests for the serializing operation queue."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from skillsmith.errors import ExecutionError
from skillsmith.operation_queue import (
    OperationQueue,
    OperationStatus,
    OperationTask,
    OperationType,
)


def _task(target: str, fn, op_type: OperationType = OperationType.EDIT) -> OperationTask:
    return OperationTask(type=op_type, target_skill=target, execute=fn)


async def _settle(*tasks: OperationTask, timeout: float = 2.0) -> None:
    for t in tasks:
        await t.wait(timeout)


@pytest.fixture
def queue() -> OperationQueue:
    return OperationQueue()


class TestOrdering:
    async def test_runs_tasks_in_enqueue_order(self, queue: OperationQueue):
        order: list[str] = []

        def make(label: str, delay: float):
            async def body():
                order.append(label)
                await asyncio.sleep(delay)

            return body

        t1 = _task("skill1", make("task1", 0.01), OperationType.CREATE)
        t2 = _task("skill2", make("task2", 0.01), OperationType.EDIT)
        t3 = _task("skill3", make("task3", 0), OperationType.DELETE)
        queue.enqueue(t1)
        queue.enqueue(t2)
        queue.enqueue(t3)

        await _settle(t1, t2, t3)

        assert order == ["task1", "task2", "task3"]

    async def test_fifo_holds_for_many_tasks(self, queue: OperationQueue):
        order: list[int] = []

        def make(i: int):
            async def body():
                # Later tasks finish faster; order must still follow enqueue order
                await asyncio.sleep(0.001 * (20 - i))
                order.append(i)

            return body

        tasks = [_task(f"s{i}", make(i)) for i in range(20)]
        for t in tasks:
            queue.enqueue(t)

        await _settle(*tasks)

        assert order == list(range(20))

    async def test_only_one_task_runs_at_a_time(self, queue: OperationQueue):
        concurrent = 0
        max_concurrent = 0

        async def body():
            nonlocal concurrent, max_concurrent
            concurrent += 1
            max_concurrent = max(max_concurrent, concurrent)
            await asyncio.sleep(0.02)
            concurrent -= 1

        tasks = [_task(f"skill{i}", body) for i in range(3)]

        async def submit(t: OperationTask):
            queue.enqueue(t)
            await t.wait(2.0)

        await asyncio.gather(*(submit(t) for t in tasks))

        assert max_concurrent == 1
        assert concurrent == 0

    async def test_task_enqueued_while_draining_runs_after_current(self, queue: OperationQueue):
        order: list[str] = []
        late = _task("late", lambda: _append(order, "late"))

        async def first():
            order.append("first-start")
            queue.enqueue(late)
            await asyncio.sleep(0.01)
            order.append("first-end")

        t1 = _task("first", first)
        queue.enqueue(t1)
        await _settle(t1, late)

        assert order == ["first-start", "first-end", "late"]


async def _append(order: list[str], label: str) -> None:
    order.append(label)


class TestStatus:
    async def test_status_transitions_to_completed(self, queue: OperationQueue):
        async def body():
            await asyncio.sleep(0.005)

        task = _task("test-skill", body, OperationType.CREATE)
        assert task.status == OperationStatus.PENDING
        assert not task.settled
        assert task.started_at is None

        queue.enqueue(task)
        await task.wait(1.0)

        assert task.settled
        assert task.status == OperationStatus.COMPLETED
        assert task.started_at is not None
        assert task.completed_at is not None
        assert task.completed_at >= task.started_at >= task.created_at
        assert task.error is None

    async def test_processing_status_visible_inside_body(self, queue: OperationQueue):
        seen: list[OperationStatus] = []
        task: OperationTask

        async def body():
            seen.append(task.status)

        task = _task("s", body)
        queue.enqueue(task)
        await task.wait(1.0)

        assert seen == [OperationStatus.PROCESSING]

    async def test_failure_is_recorded_and_queue_continues(self):
        error = RuntimeError("Task failed")

        async def boom():
            raise error

        ran: list[str] = []
        failing = _task("failing-skill", boom, OperationType.DELETE)
        following = _task("next", lambda: _append(ran, "next"))

        log = MagicMock()
        queue = OperationQueue(logger=log)
        queue.enqueue(failing)
        queue.enqueue(following)
        await _settle(failing, following)

        assert failing.status == OperationStatus.FAILED
        assert failing.error is error
        assert failing.completed_at is not None
        assert following.status == OperationStatus.COMPLETED
        assert ran == ["next"]
        log.error.assert_called_once()
        assert log.error.call_args.args == ("Operation failed",)
        assert log.error.call_args.kwargs["target"] == "failing-skill"
        assert not queue.get_queue_status().processing

    def test_terminal_states(self):
        assert OperationStatus.COMPLETED.is_terminal
        assert OperationStatus.FAILED.is_terminal
        assert not OperationStatus.PENDING.is_terminal
        assert not OperationStatus.PROCESSING.is_terminal

    def test_task_ids_are_unique(self):
        async def noop():
            pass

        ids = {_task("s", noop).id for _ in range(50)}
        assert len(ids) == 50


class TestQueueStatus:
    async def test_reports_processing_until_drained(self, queue: OperationQueue):
        status = queue.get_queue_status()
        assert status.length == 0
        assert status.processing is False

        async def body():
            await asyncio.sleep(0.05)

        task = _task("status-skill", body, OperationType.CREATE)
        queue.enqueue(task)

        assert queue.get_queue_status().processing is True

        await task.wait(1.0)
        await asyncio.sleep(0)

        status = queue.get_queue_status()
        assert status.length == 0
        assert status.processing is False

    async def test_snapshot_is_a_copy(self, queue: OperationQueue):
        release = asyncio.Event()

        async def blocker():
            await release.wait()

        async def noop():
            pass

        first = _task("first", blocker)
        second = _task("second", noop)
        queue.enqueue(first)
        queue.enqueue(second)
        await asyncio.sleep(0.01)  # let the drain loop pick up `first`

        snapshot = queue.get_queue_status()
        assert snapshot.length == 1
        assert [t.target_skill for t in snapshot.tasks] == ["second"]

        snapshot.tasks.clear()
        assert queue.get_queue_status().length == 1

        release.set()
        await _settle(first, second)


class TestClear:
    async def test_clear_discards_pending_tasks(self, queue: OperationQueue):
        ran: list[str] = []

        async def slow():
            await asyncio.sleep(0.05)
            ran.append("slow")

        t1 = _task("skill1", slow, OperationType.CREATE)
        t2 = _task("skill2", lambda: _append(ran, "skill2"), OperationType.CREATE)
        queue.enqueue(t1)
        queue.enqueue(t2)

        queue.clear()

        assert queue.get_queue_status().length == 0
        await asyncio.sleep(0.1)
        assert ran == []

    async def test_clear_settles_discarded_tasks_as_failed(self, queue: OperationQueue):
        async def noop():
            pass

        task = _task("s", noop)
        queue.enqueue(task)
        queue.clear()

        await task.wait(0.1)
        assert task.status == OperationStatus.FAILED
        assert isinstance(task.error, ExecutionError)
        assert "discarded" in str(task.error)

    async def test_clear_does_not_affect_running_task(self, queue: OperationQueue):
        release = asyncio.Event()

        async def blocker():
            await release.wait()

        async def noop():
            pass

        running = _task("running", blocker)
        pending = _task("pending", noop)
        queue.enqueue(running)
        queue.enqueue(pending)
        await asyncio.sleep(0.01)
        assert running.status == OperationStatus.PROCESSING

        queue.clear()
        release.set()
        await running.wait(1.0)

        assert running.status == OperationStatus.COMPLETED
        assert pending.status == OperationStatus.FAILED


class TestWait:
    async def test_wait_times_out_without_cancelling_task(self, queue: OperationQueue):
        release = asyncio.Event()

        async def blocker():
            await release.wait()

        task = _task("slow", blocker)
        queue.enqueue(task)

        with pytest.raises(TimeoutError):
            await task.wait(0.02)

        assert task.status == OperationStatus.PROCESSING
        release.set()
        await task.wait(1.0)
        assert task.status == OperationStatus.COMPLETED
