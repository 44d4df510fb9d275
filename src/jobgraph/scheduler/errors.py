"""Error taxonomy for loading, validating and running task graphs."""

from __future__ import annotations

from pathlib import Path

from jobgraph.scheduler.models import TaskId


class JobGraphError(Exception):
    """Base class for every error jobgraph raises on purpose."""


class ConfigurationError(JobGraphError):
    """Definitions or settings could not be loaded; nothing was run."""


class DefinitionFileUnreadableError(ConfigurationError):
    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Could not read task definitions from {path}: {reason}")
        self.path = path
        self.reason = reason


class DefinitionFileMalformedError(ConfigurationError):
    def __init__(self, path: Path | str, reason: str) -> None:
        super().__init__(f"Malformed task definitions in {path}: {reason}")
        self.path = path
        self.reason = reason


class SettingsError(ConfigurationError):
    """Invalid environment or command-line configuration."""


class StructuralError(JobGraphError):
    """The task graph itself is invalid; nothing was run."""


class UnknownReferenceError(StructuralError):
    def __init__(self, *, dependency: TaskId, dependent: TaskId) -> None:
        super().__init__(f"Dependency {dependency!r} of task {dependent!r} is not known")
        self.dependency = dependency
        self.dependent = dependent


class CircularDependencyError(StructuralError):
    def __init__(self, chain: tuple[TaskId, ...]) -> None:
        super().__init__(f"Circular dependency chain: {format_chain(chain)}")
        self.chain = chain


class TaskRunError(JobGraphError):
    """A single task could not be run; fatal only to that task."""

    def __init__(self, task_id: TaskId, reason: str) -> None:
        super().__init__(reason)
        self.task_id = task_id
        self.reason = reason


class TaskLaunchError(TaskRunError):
    pass


class TaskWaitError(TaskRunError):
    pass


class CoordinationError(JobGraphError):
    """Completion reporting broke down while tasks were still in flight."""

    def __init__(self, in_flight: tuple[TaskId, ...]) -> None:
        super().__init__(
            "Worker for "
            + ", ".join(repr(task_id) for task_id in in_flight)
            + " stopped without reporting a result",
        )
        self.in_flight = in_flight


def format_chain(chain: tuple[TaskId, ...]) -> str:
    if not chain:
        return "()"
    return " -> ".join(repr(task_id) for task_id in chain)
