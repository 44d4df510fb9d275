from __future__ import annotations

import sys
import threading
from pathlib import Path

import allure
import pytest
from support import ScriptedRunner, definitions_of, task

from jobgraph.scheduler.coordinator import ExecutionCoordinator
from jobgraph.scheduler.errors import CoordinationError
from jobgraph.scheduler.graph import build_task_queue
from jobgraph.scheduler.models import (
    EventKind,
    RunEvent,
    RunReport,
    TaskDefinition,
    TaskId,
    TaskOutcome,
)
from jobgraph.scheduler.runner import SubprocessRunner

pytestmark = [
    allure.epic("Scheduler"),
    allure.feature("Execution Coordinator"),
]


def _pipeline():
    return definitions_of(
        task("build"),
        task("lint"),
        task("test", "build"),
        task("ship", "test", "lint"),
    )


def _run(
    definitions,
    runner: ScriptedRunner,
    tmp_path: Path,
    *,
    max_workers: int | None = None,
    events: list[RunEvent] | None = None,
) -> RunReport:
    coordinator = ExecutionCoordinator(
        task_queue=build_task_queue(definitions),
        runner=runner,
        output_dir=tmp_path,
        max_workers=max_workers,
        on_event=events.append if events is not None else None,
        poll_interval_seconds=0.01,
    )
    return coordinator.run()


def _assert_partition(report: RunReport, expected_total: int) -> None:
    succeeded, failed, not_started = (
        set(report.succeeded),
        set(report.failed),
        set(report.not_started),
    )
    assert not succeeded & failed
    assert not succeeded & not_started
    assert not failed & not_started
    assert report.total == expected_total
    assert len(succeeded | failed | not_started) == expected_total
    assert set(report.records) == succeeded | failed | not_started


def _assert_ran_after(report: RunReport, task_id: str, *needs: str) -> None:
    dispatched_at = report.records[task_id].dispatched_at
    assert dispatched_at is not None
    for need in needs:
        completed_at = report.records[need].completed_at
        assert completed_at is not None
        assert dispatched_at >= completed_at


def test_pipeline_runs_every_task_in_dependency_order(tmp_path: Path) -> None:
    runner = ScriptedRunner()

    report = _run(_pipeline(), runner, tmp_path)

    assert sorted(report.succeeded) == ["build", "lint", "ship", "test"]
    assert report.failed == []
    assert report.not_started == []
    assert report.ok
    _assert_partition(report, 4)
    _assert_ran_after(report, "test", "build")
    _assert_ran_after(report, "ship", "test", "lint")
    assert report.succeeded[-1] == "ship"
    assert all(record.duration_seconds is not None for record in report.records.values())


def test_failed_task_leaves_dependents_not_started(tmp_path: Path) -> None:
    runner = ScriptedRunner(exit_codes={"test": 1})

    report = _run(_pipeline(), runner, tmp_path)

    assert sorted(report.succeeded) == ["build", "lint"]
    assert report.failed == ["test"]
    assert report.not_started == ["ship"]
    assert report.records["test"].outcome is TaskOutcome.FAILED
    assert report.records["test"].exit_code == 1
    assert report.records["ship"].dispatched_at is None
    assert "ship" not in runner.started
    _assert_partition(report, 4)


def test_independent_tasks_run_concurrently(tmp_path: Path) -> None:
    lint_started = threading.Event()
    overlap: list[bool] = []

    runner = ScriptedRunner(
        hooks={
            "build": lambda: overlap.append(lint_started.wait(timeout=5)),
            "lint": lint_started.set,
        },
    )

    report = _run(_pipeline(), runner, tmp_path)

    assert overlap == [True]
    assert len(report.succeeded) == 4


def test_max_workers_bounds_concurrency(tmp_path: Path) -> None:
    definitions = definitions_of(*(task(f"job-{index}") for index in range(6)))
    runner = ScriptedRunner()

    report = _run(definitions, runner, tmp_path, max_workers=1)

    assert runner.max_running == 1
    assert len(report.succeeded) == 6


def test_max_workers_must_be_positive(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="max_workers"):
        ExecutionCoordinator(
            task_queue=build_task_queue({}),
            runner=ScriptedRunner(),
            output_dir=tmp_path,
            max_workers=0,
        )


def test_diamond_dependent_waits_for_both_branches(tmp_path: Path) -> None:
    definitions = definitions_of(task("B"), task("C"), task("D", "B", "C"))

    report = _run(definitions, ScriptedRunner(), tmp_path)

    _assert_ran_after(report, "D", "B", "C")
    assert report.succeeded[-1] == "D"


def test_diamond_with_failed_branch_never_starts_dependent(tmp_path: Path) -> None:
    definitions = definitions_of(task("B"), task("C"), task("D", "B", "C"))
    runner = ScriptedRunner(exit_codes={"B": 2})

    report = _run(definitions, runner, tmp_path)

    assert report.failed == ["B"]
    assert report.succeeded == ["C"]
    assert report.not_started == ["D"]
    _assert_partition(report, 3)


def test_launch_error_is_reported_as_errored_task(tmp_path: Path) -> None:
    runner = ScriptedRunner(launch_errors={"build"})

    report = _run(_pipeline(), runner, tmp_path)

    record = report.records["build"]
    assert record.outcome is TaskOutcome.ERRORED
    assert record.exit_code is None
    assert "Command not found" in (record.error or "")
    assert report.failed == ["build"]
    assert report.succeeded == ["lint"]
    assert sorted(report.not_started) == ["ship", "test"]
    assert report.ok
    _assert_partition(report, 4)


def test_events_cover_every_transition(tmp_path: Path) -> None:
    events: list[RunEvent] = []
    runner = ScriptedRunner(exit_codes={"test": 1})

    _run(_pipeline(), runner, tmp_path, events=events)

    by_task: dict[str, list[EventKind]] = {}
    for event in events:
        by_task.setdefault(event.task_id, []).append(event.kind)
    assert by_task == {
        "build": [EventKind.DISPATCHED, EventKind.SUCCEEDED],
        "lint": [EventKind.DISPATCHED, EventKind.SUCCEEDED],
        "test": [EventKind.DISPATCHED, EventKind.FAILED],
        "ship": [EventKind.NOT_STARTED],
    }


def test_unexpected_runner_exception_only_fails_that_task(tmp_path: Path) -> None:
    def _explode() -> None:
        raise RuntimeError("runner crashed")

    runner = ScriptedRunner(hooks={"build": _explode})

    report = _run(_pipeline(), runner, tmp_path)

    assert report.ok
    assert report.fatal_error is None
    assert report.failed == ["build"]
    assert report.records["build"].outcome is TaskOutcome.ERRORED
    assert "runner crashed" in (report.records["build"].error or "")
    assert report.succeeded == ["lint"]
    assert sorted(report.not_started) == ["ship", "test"]
    _assert_partition(report, 4)


def test_unlaunchable_program_does_not_stop_healthy_tasks(tmp_path: Path) -> None:
    definitions = {
        TaskId("bad"): TaskDefinition.create("bad", program="tr\x00ue"),
        TaskId("good"): TaskDefinition.create(
            "good",
            program=sys.executable,
            arguments=["-c", "print('ok')"],
        ),
    }

    report = ExecutionCoordinator(
        task_queue=build_task_queue(definitions),
        runner=SubprocessRunner(),
        output_dir=tmp_path,
        poll_interval_seconds=0.01,
    ).run()

    assert report.ok
    assert report.succeeded == ["good"]
    assert report.failed == ["bad"]
    assert report.records["bad"].outcome is TaskOutcome.ERRORED
    assert "Invalid command" in (report.records["bad"].error or "")
    _assert_partition(report, 2)


def test_worker_dying_without_result_stops_the_run(tmp_path: Path) -> None:
    def _explode() -> None:
        # SystemExit ends the worker thread without a completion message.
        raise SystemExit(1)

    definitions = definitions_of(task("boom"), task("after", "boom"), task("other"))
    runner = ScriptedRunner(hooks={"boom": _explode})

    report = _run(definitions, runner, tmp_path)

    assert isinstance(report.fatal_error, CoordinationError)
    assert "boom" in report.fatal_error.in_flight
    assert not report.ok
    assert "boom" in report.failed
    assert report.records["boom"].outcome is TaskOutcome.ERRORED
    assert report.not_started == ["after"]
    _assert_partition(report, 3)


def test_empty_graph_finishes_immediately(tmp_path: Path) -> None:
    report = _run({}, ScriptedRunner(), tmp_path)

    assert report.total == 0
    assert report.ok
