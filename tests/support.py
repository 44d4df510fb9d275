"""Test doubles and builders shared by the test modules."""

from __future__ import annotations

import threading
from collections.abc import Callable

from jobgraph.scheduler.errors import TaskLaunchError
from jobgraph.scheduler.models import TaskDefinition, TaskId
from jobgraph.scheduler.runner import RunRequest, RunResult


def definitions_of(*tasks: TaskDefinition) -> dict[TaskId, TaskDefinition]:
    return {task.id: task for task in tasks}


def task(task_id: str, *needs: str) -> TaskDefinition:
    return TaskDefinition.create(task_id, program="true", needs=needs)


class ScriptedRunner:
    """In-process runner: exit codes and hooks per task id, no subprocesses."""

    def __init__(
        self,
        *,
        exit_codes: dict[str, int] | None = None,
        launch_errors: set[str] | None = None,
        hooks: dict[str, Callable[[], None]] | None = None,
    ) -> None:
        self.exit_codes = exit_codes or {}
        self.launch_errors = launch_errors or set()
        self.hooks = hooks or {}
        self.started: list[TaskId] = []
        self.running = 0
        self.max_running = 0
        self._lock = threading.Lock()

    def run(self, request: RunRequest) -> RunResult:
        task_id = request.task.id
        with self._lock:
            self.started.append(task_id)
            self.running += 1
            self.max_running = max(self.max_running, self.running)
        try:
            if task_id in self.launch_errors:
                raise TaskLaunchError(task_id, f"Command not found for {task_id!r}: missing")
            hook = self.hooks.get(task_id)
            if hook is not None:
                hook()
            return RunResult(exit_code=self.exit_codes.get(task_id, 0))
        finally:
            with self._lock:
                self.running -= 1


