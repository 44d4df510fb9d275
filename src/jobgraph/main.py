"""CLI entrypoint for jobgraph."""

import logging
from collections.abc import Iterable
from pathlib import Path

import rich_click as click

from jobgraph import __version__
from jobgraph.config import LOG_LEVELS
from jobgraph.controllers import JobGraphCliController, PlanCommand, RunCommand
from jobgraph.scheduler.errors import JobGraphError

click.rich_click.USE_MARKDOWN = True
CONTROLLER = JobGraphCliController()


@click.group()
@click.version_option(version=__version__, prog_name="jobgraph")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    envvar="JOBGRAPH_LOG_LEVEL",
    help="Diagnostic log level (written to stderr).",
)
def jobgraph(log_level: str) -> None:
    """Run inter-dependent jobs in dependency order."""

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@jobgraph.command("run")
@click.argument(
    "definition_path",
    required=False,
    type=click.Path(dir_okay=False, path_type=Path),
)
@click.option(
    "--max-workers",
    type=click.IntRange(min=1),
    default=None,
    help="Run at most this many tasks at once (default: no limit).",
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for captured task output (default: a fresh temp directory).",
)
def run(definition_path: Path | None, max_workers: int | None, output_dir: Path | None) -> None:
    """Run every task of DEFINITION_PATH (default `jobgraph.toml`).

    Failed tasks are reported but do not change the exit code; tasks that
    depend on them are reported as not started.
    """

    _emit_lines(
        CONTROLLER.run(
            RunCommand(
                definition_path=definition_path,
                max_workers=max_workers,
                output_dir=output_dir,
            ),
        ),
    )


@jobgraph.command("plan")
@click.argument(
    "definition_path",
    required=False,
    type=click.Path(dir_okay=False, path_type=Path),
)
@click.option(
    "--output-format",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default="text",
    show_default=True,
    help="Output format.",
)
def plan(definition_path: Path | None, output_format: str) -> None:
    """Validate DEFINITION_PATH and show which tasks can run together."""

    _emit_lines(
        CONTROLLER.plan(
            PlanCommand(
                definition_path=definition_path,
                output_format=output_format.lower(),
            ),
        ),
    )


def _emit_lines(lines: Iterable[str]) -> None:
    try:
        for line in lines:
            click.echo(line)
    except JobGraphError as error:
        raise click.ClickException(str(error)) from error


if __name__ == "__main__":  # pragma: no cover
    jobgraph()
