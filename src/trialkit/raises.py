"""Exception-expectation scopes.

`raises` returns a context manager whose block must raise the expected
exception. The exception is suppressed and recorded on the yielded
`ExceptionInfo`; if the block completes normally the enclosing test fails.

Examples:
    ```py
    with raises(ZeroDivisionError):
        1 / 0

    with raises(ValueError, match=r"invalid literal") as excinfo:
        int("x")
    assert excinfo.type is ValueError
    ```
"""

import contextlib
import re
from types import TracebackType
from typing import Generic, TypeVar

from .outcomes import DidNotRaise, TestFailure

E = TypeVar("E", bound=BaseException)

ExpectedException = type[BaseException] | tuple[type[BaseException], ...]


class ExceptionInfo(Generic[E]):
    """Details of the exception caught by a `raises` scope.

    The attributes are only available once the scope has exited with the
    expected exception.
    """

    def __init__(self) -> None:
        self._value: E | None = None
        self._tb: TracebackType | None = None

    def _fill(self, value: E, tb: TracebackType | None) -> None:
        self._value = value
        self._tb = tb

    def _require(self) -> E:
        if self._value is None:
            raise RuntimeError(
                "ExceptionInfo is only available after the raises() block has exited"
            )
        return self._value

    @property
    def value(self) -> E:
        """The exception instance."""
        return self._require()

    @property
    def type(self) -> type[E]:
        """The exception class."""
        return type(self._require())

    @property
    def tb(self) -> TracebackType | None:
        """The exception traceback."""
        self._require()
        return self._tb

    @property
    def typename(self) -> str:
        """The exception class name."""
        return self.type.__name__

    def errisinstance(self, exc: ExpectedException) -> bool:
        """Return True if the exception is an instance of ``exc``."""
        return isinstance(self.value, exc)

    def match(self, pattern: str | re.Pattern[str]) -> bool:
        """Check that the string form of the exception matches ``pattern``.

        Uses `re.search`, so the pattern may match anywhere in the message.

        Raises:
            TestFailure: If the pattern does not match.
        """
        message = str(self.value)
        if not re.search(pattern, message):
            shown = pattern.pattern if isinstance(pattern, re.Pattern) else pattern
            raise TestFailure(
                f"Regex pattern did not match.\n"
                f"  Regex: {shown!r}\n"
                f"  Input: {message!r}"
            )
        return True

    def __repr__(self) -> str:
        if self._value is None:
            return "<ExceptionInfo for raises contextmanager>"
        return f"<ExceptionInfo {self._value!r} tblen={self._tb_len()}>"

    def _tb_len(self) -> int:
        count, tb = 0, self._tb
        while tb is not None:
            count += 1
            tb = tb.tb_next
        return count


class RaisesContext(Generic[E]):
    """Context manager backing `raises`."""

    def __init__(
        self, expected: ExpectedException, match: str | re.Pattern[str] | None
    ) -> None:
        self.expected = expected
        self.match = match
        self.excinfo: ExceptionInfo[E] = ExceptionInfo()

    def __enter__(self) -> ExceptionInfo[E]:
        return self.excinfo

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool:
        if exc_type is None or exc_val is None:
            raise DidNotRaise(self.expected)
        if not issubclass(exc_type, self.expected):
            return False  # unrelated exceptions propagate unchanged
        # pylint: disable-next=protected-access
        self.excinfo._fill(exc_val, exc_tb)  # type: ignore[arg-type]
        if self.match is not None:
            self.excinfo.match(self.match)
        return True


def _validate_expected(expected: object) -> None:
    types_ = expected if isinstance(expected, tuple) else (expected,)
    if not types_:
        raise TypeError("raises() requires at least one exception type")
    for exc in types_:
        if not (isinstance(exc, type) and issubclass(exc, BaseException)):
            raise TypeError(
                f"expected exception must be a BaseException type, not {exc!r}"
            )


def raises(
    expected_exception: type[E] | tuple[type[E], ...],
    *,
    match: str | re.Pattern[str] | None = None,
) -> RaisesContext[E]:
    """Assert that the managed block raises ``expected_exception``.

    Args:
        expected_exception: Exception class, or tuple of classes, the block must
            raise. Subclasses are accepted.
        match: Optional regex searched in ``str(exception)``.

    Returns:
        RaisesContext: Enter it with ``with``; it yields an `ExceptionInfo`.

    Raises:
        TypeError: If ``expected_exception`` is not an exception type.
        DidNotRaise: At scope exit, if nothing was raised.
        TestFailure: At scope exit, if ``match`` does not match.
    """
    _validate_expected(expected_exception)
    return RaisesContext(expected_exception, match)


def does_not_raise() -> contextlib.nullcontext[None]:
    """Return a scope that expects no exception.

    Useful in parametrized tables mixing raising and non-raising rows.
    """
    return contextlib.nullcontext()
