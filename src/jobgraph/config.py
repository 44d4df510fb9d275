"""Runtime configuration for jobgraph runs."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from jobgraph.definitions import DEFAULT_DEFINITION_FILE
from jobgraph.scheduler.errors import SettingsError

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass(slots=True)
class Settings:
    """Application settings; command-line options take precedence over env."""

    definition_path: Path = DEFAULT_DEFINITION_FILE
    max_workers: int | None = None
    output_root: Path | None = None
    poll_interval_seconds: float = 0.2

    @classmethod
    def from_env(
        cls,
        definition_path: Path | None = None,
        max_workers: int | None = None,
    ) -> Settings:
        """Load settings from environment with defaults for local runs."""

        output_root = os.getenv("JOBGRAPH_OUTPUT_ROOT", "").strip()
        return cls(
            definition_path=definition_path
            or Path(os.getenv("JOBGRAPH_FILE", str(DEFAULT_DEFINITION_FILE))),
            max_workers=max_workers
            if max_workers is not None
            else _env_optional_int("JOBGRAPH_MAX_WORKERS"),
            output_root=Path(output_root) if output_root else None,
            poll_interval_seconds=_env_float("JOBGRAPH_POLL_INTERVAL_SECONDS", 0.2),
        )

    def validate(self) -> None:
        """Raise ``SettingsError`` if a value cannot be used for a run."""

        if self.max_workers is not None and self.max_workers < 1:
            raise SettingsError("JOBGRAPH_MAX_WORKERS must be a positive integer.")
        if self.poll_interval_seconds <= 0:
            raise SettingsError("JOBGRAPH_POLL_INTERVAL_SECONDS must be > 0.")


def _env_optional_int(name: str) -> int | None:
    value = os.getenv(name, "").strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError as error:
        raise SettingsError(f"Invalid integer value for {name}: {value!r}") from error


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError as error:
        raise SettingsError(f"Invalid number for {name}: {value!r}") from error
