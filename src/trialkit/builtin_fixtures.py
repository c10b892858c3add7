"""Fixtures available to every test without declaring them."""

import shutil
import tempfile
from collections.abc import Iterator
from pathlib import Path

from .fixtures import FixtureRegistry, fixture
from .patching import Patcher


@fixture
def tmp_path() -> Iterator[Path]:
    """A fresh temporary directory, removed after the test."""
    path = Path(tempfile.mkdtemp(prefix="trialkit-"))
    yield path
    shutil.rmtree(path, ignore_errors=True)


@fixture
def patcher() -> Iterator[Patcher]:
    """A `Patcher` whose changes are undone after the test."""
    p = Patcher()
    yield p
    p.undo()


def builtin_registry() -> FixtureRegistry:
    """Return a registry holding the builtin fixtures."""
    return FixtureRegistry.from_namespace(globals(), label="builtins")
