"""Task runner implementations."""

from jobgraph.scheduler.runner.base import RunRequest, RunResult, TaskRunner
from jobgraph.scheduler.runner.subprocess_runner import SubprocessRunner, output_paths

__all__ = [
    "RunRequest",
    "RunResult",
    "SubprocessRunner",
    "TaskRunner",
    "output_paths",
]
