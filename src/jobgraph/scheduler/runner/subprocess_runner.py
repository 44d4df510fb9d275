"""Subprocess-based runner that captures output into per-task files."""

from __future__ import annotations

import hashlib
import re
import subprocess
from pathlib import Path
from typing import BinaryIO

from jobgraph.scheduler.errors import TaskLaunchError, TaskWaitError
from jobgraph.scheduler.models import TaskId
from jobgraph.scheduler.runner.base import RunRequest, RunResult

_UNSAFE_STEM_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class SubprocessRunner:
    """Run the task's program and redirect stdout/stderr into the output dir."""

    def run(self, request: RunRequest) -> RunResult:
        task = request.task
        stdout_path, stderr_path = output_paths(request.output_dir, task.id)

        try:
            with (
                stdout_path.open("wb") as stdout_handle,
                stderr_path.open("wb") as stderr_handle,
            ):
                process = _start_process(
                    task_id=task.id,
                    argv=[task.program, *task.arguments],
                    stdout_handle=stdout_handle,
                    stderr_handle=stderr_handle,
                )
                try:
                    exit_code = process.wait()
                except OSError as error:
                    raise TaskWaitError(
                        task.id,
                        f"Failed to wait for {task.id!r}: {error}",
                    ) from error
        except OSError as error:
            raise TaskLaunchError(
                task.id,
                f"Failed to create output files for {task.id!r}: {error}",
            ) from error

        return RunResult(
            exit_code=exit_code,
            stdout_path=stdout_path,
            stderr_path=stderr_path,
        )


def output_paths(output_dir: Path, task_id: TaskId) -> tuple[Path, Path]:
    """Return the ``(stdout, stderr)`` capture files for a task."""

    stem = _output_stem(task_id)
    return output_dir / f"{stem}.stdout", output_dir / f"{stem}.stderr"


def _output_stem(task_id: TaskId) -> str:
    stem = _UNSAFE_STEM_CHARS.sub("_", task_id)
    if stem == task_id and stem not in {"", ".", ".."}:
        return stem
    digest = hashlib.sha256(task_id.encode("utf-8")).hexdigest()[:8]
    return f"{stem}-{digest}"


def _start_process(
    *,
    task_id: TaskId,
    argv: list[str],
    stdout_handle: BinaryIO,
    stderr_handle: BinaryIO,
) -> subprocess.Popen[bytes]:
    try:
        return subprocess.Popen(  # noqa: S603
            argv,
            stdin=subprocess.DEVNULL,
            stdout=stdout_handle,
            stderr=stderr_handle,
        )
    except FileNotFoundError as error:
        raise TaskLaunchError(task_id, f"Command not found for {task_id!r}: {argv[0]}") from error
    except OSError as error:
        raise TaskLaunchError(task_id, f"Failed to spawn {task_id!r}: {error}") from error
    except ValueError as error:
        # Popen rejects arguments it cannot pass to exec, such as embedded NUL bytes.
        raise TaskLaunchError(task_id, f"Invalid command for {task_id!r}: {error}") from error
