"""Test outcome exceptions and the helpers that raise them.

A test body signals its outcome by raising. Anything derived from
`AssertionError` counts as a failure, `Skipped` as a skip and `XFailed` as an
expected failure. Any other exception raised by the test body is also a
failure; exceptions raised by fixture code are reported as errors.
"""

from typing import NoReturn


class TestFailure(AssertionError):
    """Raised when a test fails through a trialkit helper."""

    __test__ = False  # not a test class, despite the name

    def __init__(self, msg: str = "") -> None:
        super().__init__(msg)
        self.msg = msg


class DidNotRaise(TestFailure):
    """Raised when an exception-expectation scope exits without an exception."""

    def __init__(self, expected: type[BaseException] | tuple[type[BaseException], ...]) -> None:
        if isinstance(expected, tuple):
            names = ", ".join(exc.__name__ for exc in expected)
            super().__init__(f"DID NOT RAISE any of ({names})")
        else:
            super().__init__(f"DID NOT RAISE {expected.__name__}")
        self.expected = expected


class Skipped(Exception):
    """Raised to skip the current test."""

    def __init__(self, reason: str = "") -> None:
        super().__init__(reason)
        self.reason = reason


class XFailed(Exception):
    """Raised to mark the current test as an expected failure."""

    def __init__(self, reason: str = "") -> None:
        super().__init__(reason)
        self.reason = reason


def fail(msg: str = "") -> NoReturn:
    """Fail the current test with ``msg``."""
    raise TestFailure(msg)


def skip(reason: str = "") -> NoReturn:
    """Skip the current test with ``reason``."""
    raise Skipped(reason)


def xfail(reason: str = "") -> NoReturn:
    """Mark the current test as an expected failure and stop running it."""
    raise XFailed(reason)
