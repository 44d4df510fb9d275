"""Live ready/blocked bookkeeping for a validated task graph."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass

from jobgraph.scheduler.models import TaskDefinition, TaskId

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _BlockedTask:
    task: TaskDefinition
    remaining_needs: set[TaskId]


class TaskQueue:
    """Ready set, blocked set and reverse-dependency index of a task graph.

    The queue trusts its input: ``build_task_queue`` inserts tasks only after
    all of their needs were inserted, so no validation happens here. It is
    owned by a single thread (the coordinator) and is not locked.
    """

    def __init__(self) -> None:
        self._ready: list[TaskDefinition] = []
        self._blocked: dict[TaskId, _BlockedTask] = {}
        self._needed_by: defaultdict[TaskId, list[TaskId]] = defaultdict(list)
        self._drained = False

    def __len__(self) -> int:
        return len(self._ready) + len(self._blocked)

    @property
    def has_ready(self) -> bool:
        return bool(self._ready)

    @property
    def ready_count(self) -> int:
        return len(self._ready)

    @property
    def blocked_count(self) -> int:
        return len(self._blocked)

    def insert(self, task: TaskDefinition) -> None:
        """Register a task as ready, or as blocked on its needs."""

        self._ensure_open()
        if not task.needs:
            self._ready.append(task)
            return

        for need in task.needs:
            self._needed_by[need].append(task.id)
        self._blocked[task.id] = _BlockedTask(task=task, remaining_needs=set(task.needs))

    def pop_ready(self) -> TaskDefinition | None:
        """Remove and return one ready task; ``None`` when nothing is ready."""

        self._ensure_open()
        if not self._ready:
            return None
        return self._ready.pop()

    def mark_done(self, task_id: TaskId) -> None:
        """Unblock tasks that depended on the task that was done."""

        self._ensure_open()
        for dependent in self._needed_by.pop(task_id, ()):
            state = self._blocked[dependent]
            state.remaining_needs.discard(task_id)
            if state.remaining_needs:
                continue
            del self._blocked[dependent]
            self._ready.append(state.task)
            logger.debug("Task %r is ready after %r", dependent, task_id)

    def drain_remaining(self) -> list[TaskDefinition]:
        """Stop processing and return every task that never ran."""

        self._ensure_open()
        self._drained = True
        remaining = [*self._ready, *(state.task for state in self._blocked.values())]
        self._ready = []
        self._blocked = {}
        self._needed_by.clear()
        return remaining

    def _ensure_open(self) -> None:
        if self._drained:
            raise RuntimeError("Task queue was already drained.")
