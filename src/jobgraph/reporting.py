"""Console lines for run events and summaries."""

from __future__ import annotations

import click

from jobgraph.scheduler.models import EventKind, RunEvent, RunReport


def format_event(event: RunEvent) -> str:
    """Render one state transition as a single console line."""

    if event.kind is EventKind.DISPATCHED:
        return f"{click.style('Running', fg='blue', bold=True)} {event.task_id}"
    if event.kind is EventKind.SUCCEEDED:
        return (
            f"{click.style('Finished', fg='green', bold=True)} {event.task_id}"
            f" (took {_seconds(event.duration_seconds)})"
        )
    if event.kind is EventKind.FAILED:
        return (
            f"{click.style('Failed', fg='red', bold=True)} {event.task_id}"
            f" (exit code {event.exit_code}, took {_seconds(event.duration_seconds)})"
        )
    if event.kind is EventKind.ERRORED:
        return f"{click.style('Errored', fg='red', bold=True)} {event.task_id}: {event.error}"
    return f"{click.style('Not running', fg='red', bold=True)} {event.task_id}"


def format_summary(report: RunReport) -> str:
    return (
        f"{len(report.succeeded)} successful, {len(report.failed)} failed, "
        f"{len(report.not_started)} not started"
    )


def _seconds(value: float | None) -> str:
    if value is None:
        return "-"
    return f"{value:.2f}s"
