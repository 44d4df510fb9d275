"""Load task definitions from a TOML definition file."""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from jobgraph.scheduler.errors import (
    DefinitionFileMalformedError,
    DefinitionFileUnreadableError,
)
from jobgraph.scheduler.models import TaskDefinition, TaskId

DEFAULT_DEFINITION_FILE = Path("jobgraph.toml")


def load_definitions(path: Path) -> dict[TaskId, TaskDefinition]:
    """Read ``path`` and return task definitions keyed by id, in file order."""

    try:
        raw_text = path.read_text("utf-8")
    except (OSError, UnicodeDecodeError) as error:
        raise DefinitionFileUnreadableError(path, str(error)) from error

    try:
        payload = tomllib.loads(raw_text)
    except tomllib.TOMLDecodeError as error:
        # Duplicate task tables are reported by the parser as well.
        raise DefinitionFileMalformedError(path, str(error)) from error

    return parse_definitions(payload, source=path)


def parse_definitions(
    payload: Mapping[str, Any],
    *,
    source: Path | str = "<memory>",
) -> dict[TaskId, TaskDefinition]:
    """Validate an already-decoded definition document."""

    tasks = payload.get("tasks")
    if tasks is None:
        raise DefinitionFileMalformedError(source, "missing [tasks] table")
    if not isinstance(tasks, Mapping):
        raise DefinitionFileMalformedError(source, "'tasks' must be a table")

    definitions: dict[TaskId, TaskDefinition] = {}
    for name, raw_task in tasks.items():
        if not isinstance(raw_task, Mapping):
            raise DefinitionFileMalformedError(source, f"tasks.{name} must be a table")
        definitions[TaskId(name)] = TaskDefinition.create(
            name,
            program=_required_str(raw_task, "program", source=source, task=name),
            arguments=_str_list(raw_task, "arguments", source=source, task=name),
            needs=_str_list(raw_task, "needs", source=source, task=name),
        )
    return definitions


def _required_str(raw: Mapping[str, Any], key: str, *, source: Path | str, task: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value.strip():
        raise DefinitionFileMalformedError(source, f"tasks.{task}.{key} must be a non-empty string")
    return value


def _str_list(raw: Mapping[str, Any], key: str, *, source: Path | str, task: str) -> list[str]:
    value = raw.get(key, [])
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise DefinitionFileMalformedError(source, f"tasks.{task}.{key} must be a list of strings")
    return value
