"""Runner interface for executing one task."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from jobgraph.scheduler.models import TaskDefinition


@dataclass(slots=True)
class RunRequest:
    """Inputs required to execute one task."""

    task: TaskDefinition
    output_dir: Path


@dataclass(slots=True)
class RunResult:
    """Exit status and captured output locations of one task."""

    exit_code: int
    stdout_path: Path | None = None
    stderr_path: Path | None = None

    @property
    def success(self) -> bool:
        return self.exit_code == 0


class TaskRunner(Protocol):
    """Protocol implemented by task runners.

    Implementations run the task to completion and raise ``TaskLaunchError`` or
    ``TaskWaitError`` when the command cannot be started or waited on. They
    are called from worker threads, one call per thread.
    """

    def run(self, request: RunRequest) -> RunResult:
        """Run a task and return its exit status."""
