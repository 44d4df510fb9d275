"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest


@pytest.fixture()
def write_definitions(tmp_path: Path) -> Callable[..., Path]:
    """Write a definition file into ``tmp_path`` and return its path."""

    def _write(content: str, name: str = "jobgraph.toml") -> Path:
        path = tmp_path / name
        path.write_text(content, "utf-8")
        return path

    return _write
