"""Configuration utilities for trialkit.

This module centralizes constants and environment lookups for test runs.
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path

from trialkit.errors import UsageError

DEFAULT_PATTERNS = ("test_*.py", "*_test.py")
CONFTEST_NAME = "conftest.py"
TEST_PREFIX = "test"
CLASS_PREFIX = "Test"

PATTERNS_ENV = "TRIALKIT_PATTERNS"  # pragma: no mutate
FAIL_FAST_ENV = "TRIALKIT_FAIL_FAST"  # pragma: no mutate


class EmptyPatternListError(UsageError):
    """Raised when TRIALKIT_PATTERNS is set but contains no patterns."""

    def __init__(self, raw: str) -> None:
        super().__init__(f"{PATTERNS_ENV} is set but contains no patterns: {raw!r}")
        self.raw = raw


class PathNotFoundError(UsageError):
    """Raised when a path given to a run does not exist."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"file or directory not found: {path}")
        self.path = path


def split_patterns(raw: str) -> tuple[str, ...]:
    """Split a comma/space separated list of glob patterns."""
    return tuple(p for p in re.split(r"[,\s]+", raw) if p)


def get_patterns() -> tuple[str, ...]:
    """Get the test file patterns from the environment.

    Returns:
        The patterns in `TRIALKIT_PATTERNS`, or `DEFAULT_PATTERNS` when unset.

    Raises:
        EmptyPatternListError: If the variable is set but holds no pattern.
    """
    if (raw := os.environ.get(PATTERNS_ENV)) is None:
        return DEFAULT_PATTERNS
    if not (patterns := split_patterns(raw)):
        raise EmptyPatternListError(raw)
    return patterns


def get_fail_fast() -> bool:
    """Return True when `TRIALKIT_FAIL_FAST` is set to a non-empty value."""
    return bool(os.environ.get(FAIL_FAST_ENV))


@dataclass(frozen=True)
class RunConfig:
    """Options for one test run.

    Attributes:
        paths: Files or directories to collect from.
        patterns: Glob patterns selecting test files inside directories.
        keyword: Substring filter on node ids; a leading ``not `` inverts it.
        marker: Mark name filter; a leading ``not `` inverts it.
        fail_fast: Stop after the first failure or error.
        verbose: Report one line per test case instead of progress letters.
    """

    paths: tuple[Path, ...] = (Path("."),)
    patterns: tuple[str, ...] = DEFAULT_PATTERNS
    keyword: str | None = None
    marker: str | None = None
    fail_fast: bool = False
    verbose: bool = False

    @property
    def rootdir(self) -> Path:
        """Common ancestor directory of all paths; node ids are relative to it."""
        dirs = [p.resolve() if p.is_dir() else p.resolve().parent for p in self.paths]
        return Path(os.path.commonpath(dirs))

    def check_paths(self) -> None:
        """Raise `PathNotFoundError` for the first missing path."""
        for path in self.paths:
            if not path.exists():
                raise PathNotFoundError(path)
