"""Concurrent execution of a task queue with single-consumer reconciliation."""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable
from pathlib import Path

from jobgraph.scheduler.errors import CoordinationError, TaskRunError
from jobgraph.scheduler.models import (
    CompletionMessage,
    EventKind,
    RunEvent,
    RunReport,
    TaskDefinition,
    TaskId,
    TaskOutcome,
    TaskRecord,
)
from jobgraph.scheduler.runner.base import RunRequest, TaskRunner
from jobgraph.scheduler.task_queue import TaskQueue

logger = logging.getLogger(__name__)

_EVENT_KINDS = {
    TaskOutcome.SUCCEEDED: EventKind.SUCCEEDED,
    TaskOutcome.FAILED: EventKind.FAILED,
    TaskOutcome.ERRORED: EventKind.ERRORED,
}


class ExecutionCoordinator:
    """Drives a task queue to completion using one worker thread per task.

    Only the thread calling ``run`` touches the queue. Workers run exactly one
    command each and report back through a shared completion queue.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        task_queue: TaskQueue,
        runner: TaskRunner,
        output_dir: Path,
        max_workers: int | None = None,
        on_event: Callable[[RunEvent], None] | None = None,
        poll_interval_seconds: float = 0.2,
    ) -> None:
        if max_workers is not None and max_workers < 1:
            raise ValueError("max_workers must be >= 1.")
        self._task_queue = task_queue
        self._runner = runner
        self._output_dir = output_dir
        self._max_workers = max_workers
        self._on_event = on_event or (lambda _event: None)
        self._poll_interval = poll_interval_seconds
        self._completions: queue.Queue[CompletionMessage] = queue.Queue()
        self._in_flight: dict[TaskId, threading.Thread] = {}

    def run(self) -> RunReport:
        """Run every reachable task and return the final partition."""

        report = RunReport(output_dir=self._output_dir)
        while True:
            self._dispatch_ready(report)
            if not self._in_flight:
                break
            try:
                message = self._await_completion()
            except CoordinationError as error:
                logger.error("Stopping run: %s", error)
                report.fatal_error = error
                self._abandon_in_flight(report, lost=error.in_flight)
                break
            self._apply(report, message)

        for task in self._task_queue.drain_remaining():
            report.not_started.append(task.id)
            report.records[task.id] = TaskRecord(task_id=task.id, outcome=TaskOutcome.NOT_STARTED)
            self._on_event(RunEvent(kind=EventKind.NOT_STARTED, task_id=task.id))

        logger.info(
            "Run finished: %d succeeded, %d failed, %d not started",
            len(report.succeeded),
            len(report.failed),
            len(report.not_started),
        )
        return report

    def _has_free_slot(self) -> bool:
        return self._max_workers is None or len(self._in_flight) < self._max_workers

    def _dispatch_ready(self, report: RunReport) -> None:
        while self._has_free_slot():
            task = self._task_queue.pop_ready()
            if task is None:
                return
            report.records[task.id] = TaskRecord(
                task_id=task.id,
                outcome=TaskOutcome.NOT_STARTED,
                dispatched_at=time.monotonic(),
            )
            worker = threading.Thread(
                target=self._work,
                args=(task,),
                daemon=True,
                name=f"jobgraph-{task.id}",
            )
            self._in_flight[task.id] = worker
            logger.info("Dispatching %r", task.id)
            self._on_event(RunEvent(kind=EventKind.DISPATCHED, task_id=task.id))
            worker.start()

    def _work(self, task: TaskDefinition) -> None:
        started = time.monotonic()
        try:
            result = self._runner.run(RunRequest(task=task, output_dir=self._output_dir))
        except TaskRunError as error:
            self._report_error(task, started=started, error=error.reason)
            return
        except Exception as exc:  # noqa: BLE001
            logger.exception("Runner failed for %r", task.id)
            self._report_error(task, started=started, error=f"Runner failed for {task.id!r}: {exc}")
            return

        self._completions.put(
            CompletionMessage(
                task_id=task.id,
                outcome=TaskOutcome.SUCCEEDED if result.success else TaskOutcome.FAILED,
                duration_seconds=time.monotonic() - started,
                exit_code=result.exit_code,
            ),
        )

    def _report_error(self, task: TaskDefinition, *, started: float, error: str) -> None:
        self._completions.put(
            CompletionMessage(
                task_id=task.id,
                outcome=TaskOutcome.ERRORED,
                duration_seconds=time.monotonic() - started,
                error=error,
            ),
        )

    def _await_completion(self) -> CompletionMessage:
        while True:
            try:
                return self._completions.get(timeout=self._poll_interval)
            except queue.Empty:
                pass

            lost = tuple(
                task_id for task_id, worker in self._in_flight.items() if not worker.is_alive()
            )
            if not lost:
                continue
            # A finished worker has already put its message, if it sent one.
            try:
                return self._completions.get_nowait()
            except queue.Empty:
                raise CoordinationError(in_flight=lost) from None

    def _apply(self, report: RunReport, message: CompletionMessage) -> None:
        self._in_flight.pop(message.task_id, None)
        record = report.records[message.task_id]
        record.outcome = message.outcome
        record.completed_at = time.monotonic()
        record.duration_seconds = message.duration_seconds
        record.exit_code = message.exit_code
        record.error = message.error

        if message.outcome is TaskOutcome.SUCCEEDED:
            self._task_queue.mark_done(message.task_id)
            report.succeeded.append(message.task_id)
            logger.info("Task %r succeeded in %.2fs", message.task_id, message.duration_seconds)
        else:
            report.failed.append(message.task_id)
            logger.warning(
                "Task %r %s (exit code %s): %s",
                message.task_id,
                message.outcome.value,
                message.exit_code,
                message.error or "non-zero exit",
            )

        self._on_event(
            RunEvent(
                kind=_EVENT_KINDS[message.outcome],
                task_id=message.task_id,
                duration_seconds=message.duration_seconds,
                exit_code=message.exit_code,
                error=message.error,
            ),
        )

    def _abandon_in_flight(self, report: RunReport, *, lost: tuple[TaskId, ...]) -> None:
        now = time.monotonic()
        for task_id in list(self._in_flight):
            error = (
                "worker stopped without reporting a result"
                if task_id in lost
                else "result abandoned after coordination failure"
            )
            record = report.records[task_id]
            record.outcome = TaskOutcome.ERRORED
            record.completed_at = now
            record.error = error
            report.failed.append(task_id)
            self._on_event(RunEvent(kind=EventKind.ERRORED, task_id=task_id, error=error))
        self._in_flight.clear()
