"""CLI controller for jobgraph commands."""

from __future__ import annotations

import json
import logging
import queue
import tempfile
import threading
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from jobgraph.config import Settings
from jobgraph.definitions import load_definitions
from jobgraph.reporting import format_event, format_summary
from jobgraph.scheduler.coordinator import ExecutionCoordinator
from jobgraph.scheduler.errors import SettingsError
from jobgraph.scheduler.graph import build_task_queue, dependency_waves
from jobgraph.scheduler.models import RunReport
from jobgraph.scheduler.runner import SubprocessRunner, TaskRunner

logger = logging.getLogger(__name__)

_SENTINEL = object()


@dataclass(slots=True)
class RunCommand:
    """Input for the run CLI command."""

    definition_path: Path | None = None
    max_workers: int | None = None
    output_dir: Path | None = None


@dataclass(slots=True)
class PlanCommand:
    """Input for the plan CLI command."""

    definition_path: Path | None = None
    output_format: str = "text"


class JobGraphCliController:
    """CLI controller for planning and running task graphs."""

    def __init__(self, runner: TaskRunner | None = None) -> None:
        self._runner = runner or SubprocessRunner()
        self.last_report: RunReport | None = None

    def run(self, command: RunCommand) -> Iterator[str]:
        """Execute the task graph, yielding one line per state transition.

        Configuration and structural errors are raised before any task runs.
        A coordination failure is raised after the partial results were
        yielded.
        """

        settings = Settings.from_env(
            definition_path=command.definition_path,
            max_workers=command.max_workers,
        )
        settings.validate()
        definitions = load_definitions(settings.definition_path)
        task_queue = build_task_queue(definitions)
        yield f"Generated plan for {len(definitions)} tasks"

        output_dir = _prepare_output_dir(command.output_dir, settings.output_root)
        yield f"Logging output to {output_dir}"

        progress_q: queue.Queue[str | object] = queue.Queue()
        report_holder: list[RunReport] = []
        error_holder: list[Exception] = []

        coordinator = ExecutionCoordinator(
            task_queue=task_queue,
            runner=self._runner,
            output_dir=output_dir,
            max_workers=settings.max_workers,
            on_event=lambda event: progress_q.put(format_event(event)),
            poll_interval_seconds=settings.poll_interval_seconds,
        )

        def _run() -> None:
            try:
                report_holder.append(coordinator.run())
            except Exception as exc:  # noqa: BLE001
                error_holder.append(exc)
            finally:
                progress_q.put(_SENTINEL)

        coordinator_thread = threading.Thread(
            target=_run,
            daemon=True,
            name="jobgraph-coordinator",
        )
        coordinator_thread.start()

        try:
            while True:
                item = progress_q.get()
                if item is _SENTINEL:
                    break
                yield str(item)
        finally:
            # Started tasks always run to completion, even if nobody reads the lines.
            coordinator_thread.join()

        if error_holder:
            raise error_holder[0]

        report = report_holder[0]
        self.last_report = report
        yield format_summary(report)
        if report.fatal_error is not None:
            raise report.fatal_error

    def plan(self, command: PlanCommand) -> Iterator[str]:
        """Validate the task graph and show which tasks can run together."""

        settings = Settings.from_env(definition_path=command.definition_path)
        definitions = load_definitions(settings.definition_path)
        waves = dependency_waves(definitions)

        if command.output_format == "json":
            yield json.dumps(
                {
                    "tasks": len(definitions),
                    "waves": waves,
                    "needs": {
                        task_id: list(definition.needs)
                        for task_id, definition in definitions.items()
                    },
                },
                indent=2,
            )
            return

        yield f"Generated plan for {len(definitions)} tasks in {len(waves)} waves"
        for number, wave in enumerate(waves, start=1):
            yield f"  Wave {number}: {', '.join(wave)}"


def _prepare_output_dir(output_dir: Path | None, output_root: Path | None) -> Path:
    try:
        if output_dir is not None:
            output_dir.mkdir(parents=True, exist_ok=True)
            return output_dir
        if output_root is not None:
            output_root.mkdir(parents=True, exist_ok=True)
        path = Path(tempfile.mkdtemp(prefix="jobgraph-", dir=output_root))
    except OSError as error:
        raise SettingsError(f"Failed to create output directory: {error}") from error
    logger.debug("Created output directory %s", path)
    return path
