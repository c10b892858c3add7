"""Fixtures for end-to-end tests of the `trialkit` command line.

Every test runs inside an isolated filesystem where a small test project can
be written with `project`.
"""

import sys
import textwrap
from pathlib import Path

import pytest
from click.testing import CliRunner

# pylint: disable=redefined-outer-name


@pytest.fixture
def runner():
    """Return a Click CliRunner for invoking CLI commands in tests."""
    return CliRunner()


@pytest.fixture
def fs(runner, monkeypatch):
    """Run the test inside an isolated working directory.

    ``sys.path`` is restored afterwards, since collection adds test
    directories to it.
    """
    monkeypatch.setattr(sys, "path", list(sys.path))
    with runner.isolated_filesystem():
        yield


@pytest.fixture
def project(fs):
    """Return a function writing ``{relative path: source}`` into the cwd."""

    def _write(files: dict[str, str]) -> None:
        for rel, source in files.items():
            path = Path(rel)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(source), encoding="utf-8")

    return _write
