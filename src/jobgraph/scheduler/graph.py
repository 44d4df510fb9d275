"""Validate task definitions into a dependency-ordered task queue."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from enum import Enum

from jobgraph.scheduler.errors import CircularDependencyError, UnknownReferenceError
from jobgraph.scheduler.models import TaskDefinition, TaskId
from jobgraph.scheduler.task_queue import TaskQueue

logger = logging.getLogger(__name__)


class _Visit(Enum):
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


def build_task_queue(definitions: Mapping[TaskId, TaskDefinition]) -> TaskQueue:
    """Return a queue loaded with every task, or raise a structural error.

    Raises:
        UnknownReferenceError: A task needs an id missing from ``definitions``.
        CircularDependencyError: The ``needs`` edges contain a cycle.
    """

    return _GraphBuilder(definitions).build()


class _GraphBuilder:
    """Topological insertion based on depth-first search with an explicit stack."""

    def __init__(self, definitions: Mapping[TaskId, TaskDefinition]) -> None:
        self._definitions = definitions
        self._states: dict[TaskId, _Visit] = {}
        self._queue = TaskQueue()

    def build(self) -> TaskQueue:
        for task_id in self._definitions:
            if task_id not in self._states:
                self._visit(task_id)
        logger.debug(
            "Built task graph: %d ready, %d blocked",
            self._queue.ready_count,
            self._queue.blocked_count,
        )
        return self._queue

    def _visit(self, root: TaskId) -> None:
        path: list[TaskId] = [root]
        pending: list[Iterator[TaskId]] = [iter(self._definitions[root].needs)]
        self._states[root] = _Visit.IN_PROGRESS

        while path:
            current = path[-1]
            need = next(pending[-1], None)
            if need is None:
                # All needs of `current` are in the queue, so it can go in too.
                path.pop()
                pending.pop()
                self._states[current] = _Visit.FINISHED
                self._queue.insert(self._definitions[current])
                continue

            state = self._states.get(need)
            if state is _Visit.FINISHED:
                continue
            if state is _Visit.IN_PROGRESS:
                start = path.index(need)
                raise CircularDependencyError(chain=(*path[start:], need))

            definition = self._definitions.get(need)
            if definition is None:
                raise UnknownReferenceError(dependency=need, dependent=current)
            self._states[need] = _Visit.IN_PROGRESS
            path.append(need)
            pending.append(iter(definition.needs))


def dependency_waves(definitions: Mapping[TaskId, TaskDefinition]) -> list[list[TaskId]]:
    """Group tasks into waves that could run together if every task succeeds."""

    task_queue = build_task_queue(definitions)
    waves: list[list[TaskId]] = []
    while task_queue.has_ready:
        wave: list[TaskId] = []
        while (task := task_queue.pop_ready()) is not None:
            wave.append(task.id)
        for task_id in wave:
            task_queue.mark_done(task_id)
        waves.append(sorted(wave))
    return waves
