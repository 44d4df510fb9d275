"""Domain models for the dependency-graph scheduler."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, NewType

if TYPE_CHECKING:
    from jobgraph.scheduler.errors import CoordinationError

TaskId = NewType("TaskId", str)


class TaskOutcome(str, Enum):
    """Terminal task states reported at the end of a run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ERRORED = "errored"
    NOT_STARTED = "not_started"


class EventKind(str, Enum):
    """State transitions emitted by the coordinator."""

    DISPATCHED = "dispatched"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ERRORED = "errored"
    NOT_STARTED = "not_started"


@dataclass(frozen=True, slots=True)
class TaskDefinition:
    """Immutable description of one job: what to run and what it needs."""

    id: TaskId
    program: str
    arguments: tuple[str, ...] = ()
    needs: tuple[TaskId, ...] = ()

    def __post_init__(self) -> None:
        # Repeated needs collapse to one edge each, first occurrence wins.
        object.__setattr__(self, "needs", tuple(dict.fromkeys(self.needs)))

    @classmethod
    def create(
        cls,
        task_id: str,
        program: str,
        arguments: list[str] | tuple[str, ...] = (),
        needs: list[str] | tuple[str, ...] = (),
    ) -> TaskDefinition:
        """Build a definition, dropping repeated needs but keeping their order."""

        return cls(
            id=TaskId(task_id),
            program=program,
            arguments=tuple(arguments),
            needs=tuple(TaskId(need) for need in needs),
        )


@dataclass(slots=True)
class CompletionMessage:
    """One-shot message a worker sends when its task is over."""

    task_id: TaskId
    outcome: TaskOutcome
    duration_seconds: float
    exit_code: int | None = None
    error: str | None = None


@dataclass(slots=True)
class RunEvent:
    """Observable state transition for console reporting."""

    kind: EventKind
    task_id: TaskId
    duration_seconds: float | None = None
    exit_code: int | None = None
    error: str | None = None


@dataclass(slots=True)
class TaskRecord:
    """Final per-task entry of a run report."""

    task_id: TaskId
    outcome: TaskOutcome
    dispatched_at: float | None = None
    completed_at: float | None = None
    duration_seconds: float | None = None
    exit_code: int | None = None
    error: str | None = None


@dataclass(slots=True)
class RunReport:
    """Partition of all tasks after a run, plus per-task records."""

    output_dir: Path
    succeeded: list[TaskId] = field(default_factory=list)
    failed: list[TaskId] = field(default_factory=list)
    not_started: list[TaskId] = field(default_factory=list)
    records: dict[TaskId, TaskRecord] = field(default_factory=dict)
    fatal_error: CoordinationError | None = None

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed) + len(self.not_started)

    @property
    def ok(self) -> bool:
        """True when the run ended without a coordination fault."""

        return self.fatal_error is None
