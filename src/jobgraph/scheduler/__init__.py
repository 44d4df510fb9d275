"""Dependency-graph scheduler for local command pipelines.

``build_task_queue`` validates definitions into a ``TaskQueue`` (cycle and
dangling-reference detection), and ``ExecutionCoordinator`` runs that queue
with one worker thread per ready task. Workers never touch the queue; they
report a single completion message each, and the coordinator applies those
messages one at a time.
"""

from jobgraph.scheduler.coordinator import ExecutionCoordinator
from jobgraph.scheduler.graph import build_task_queue
from jobgraph.scheduler.models import RunReport, TaskDefinition, TaskId, TaskOutcome
from jobgraph.scheduler.task_queue import TaskQueue

__all__ = [
    "ExecutionCoordinator",
    "RunReport",
    "TaskDefinition",
    "TaskId",
    "TaskOutcome",
    "TaskQueue",
    "build_task_queue",
]
