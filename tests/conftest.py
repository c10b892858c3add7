"""Global pytest fixtures for trialkit.

Most collection and runner tests work on small throwaway test projects. The
`write_tree` fixture lays such a project out under ``tmp_path`` and
`run_tree` collects and runs it in-process.
"""

from __future__ import annotations

import sys
import textwrap
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from trialkit.collection import Collection
from trialkit.config import RunConfig
from trialkit.runner import RunResult, run_tests

# pylint: disable=redefined-outer-name

WriteTree = Callable[[dict[str, str]], Path]


@pytest.fixture
def write_tree(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> WriteTree:
    """Return a function writing ``{relative path: source}`` files under tmp_path.

    Sources are dedented, so they can be written inline as triple-quoted
    strings. ``sys.path`` is restored after the test because collection puts
    test directories on it.
    """
    monkeypatch.setattr(sys, "path", list(sys.path))

    def _write(files: dict[str, str]) -> Path:
        for rel, source in files.items():
            path = tmp_path / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(source), encoding="utf-8")
        return tmp_path

    return _write


@pytest.fixture
def run_tree(
    write_tree: WriteTree,
) -> Callable[..., tuple[Collection, RunResult]]:
    """Return a function that writes a test project, then collects and runs it.

    Keyword arguments are passed on to `RunConfig`.
    """

    def _run(files: dict[str, str], **options: Any) -> tuple[Collection, RunResult]:
        root = write_tree(files)
        return run_tests(RunConfig(paths=(root,), **options))

    return _run

