"""Assertion helpers with readable failure messages.

Plain ``assert`` statements stay the primary way to write checks. The helpers
here add explanations that a bare ``assert`` cannot give without assertion
rewriting: unified diffs for long strings and containers, and tolerant
comparison of floating point values via `approx`.

Examples:
    ```py
    check_equal(parse("a,b"), ["a", "b"])
    assert 0.1 + 0.2 == approx(0.3)
    assert {"x": 1.0000001} == approx({"x": 1.0})
    ```
"""

import difflib
import math
import pprint
from collections.abc import Mapping, Sequence
from numbers import Number
from typing import Any

from .outcomes import fail

DEFAULT_REL_TOLERANCE = 1e-6
DEFAULT_ABS_TOLERANCE = 1e-12


def _diff(actual: Any, expected: Any) -> str:
    """Return a unified diff of the pretty-printed values, or an empty string."""
    if isinstance(actual, str) and isinstance(expected, str):
        if "\n" not in actual and "\n" not in expected:
            return ""
        left, right = actual.splitlines(), expected.splitlines()
    elif isinstance(actual, (list, tuple, dict)) and isinstance(
        expected, (list, tuple, dict)
    ):
        left = pprint.pformat(actual, width=60).splitlines()
        right = pprint.pformat(expected, width=60).splitlines()
    else:
        return ""
    lines = difflib.unified_diff(
        right, left, fromfile="expected", tofile="actual", lineterm=""
    )
    return "\n".join(lines)


def check(condition: Any, msg: str | None = None) -> None:
    """Fail the current test when ``condition`` is falsy.

    Args:
        condition: Any value; its truthiness decides the outcome.
        msg: Failure message. Defaults to ``"check failed"``.
    """
    if not condition:
        fail(msg if msg is not None else "check failed")


def check_equal(actual: Any, expected: Any, msg: str | None = None) -> None:
    """Fail the current test when ``actual != expected``.

    The failure message shows both reprs. For multi-line strings and for
    lists, tuples and dicts a unified diff is appended.

    Args:
        actual: The value produced by the code under test.
        expected: The value the test expects.
        msg: Optional prefix for the failure message.
    """
    if actual == expected:
        return
    parts = [msg] if msg else []
    parts.append(f"{actual!r} != {expected!r}")
    if diff := _diff(actual, expected):
        parts.append(diff)
    fail("\n".join(parts))


def check_in(member: Any, container: Any) -> None:
    """Fail the current test when ``member`` is not in ``container``."""
    if member not in container:
        fail(f"{member!r} not found in {container!r}")


def check_is_instance(obj: Any, cls: type | tuple[type, ...]) -> None:
    """Fail the current test when ``obj`` is not an instance of ``cls``."""
    if not isinstance(obj, cls):
        expected = (
            " or ".join(c.__name__ for c in cls)
            if isinstance(cls, tuple)
            else cls.__name__
        )
        fail(f"{obj!r} is {type(obj).__name__}, expected {expected}")


# ============================================================================
#                           Approximate comparison
# ============================================================================


def _is_number(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, (bool, complex))


class ApproxScalar:
    """Compare a single number within a tolerance."""

    def __init__(self, expected: Any, rel: float, abs_: float) -> None:
        self.expected = expected
        self.rel = rel
        self.abs = abs_

    @property
    def tolerance(self) -> float:
        """Absolute tolerance allowed around the expected value."""
        return max(self.rel * abs(self.expected), self.abs)

    def __eq__(self, actual: object) -> bool:
        if not _is_number(actual):
            return False
        expected = float(self.expected)
        value = float(actual)  # type: ignore[arg-type]
        if math.isnan(expected) or math.isnan(value):
            return False
        if value == expected:
            return True
        if math.isinf(expected) or math.isinf(value):
            return False
        return abs(value - expected) <= self.tolerance

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        if math.isinf(float(self.expected)) or math.isnan(float(self.expected)):
            return str(self.expected)
        return f"{self.expected} ± {self.tolerance:.1e}"


class Approx:
    """Tolerant equality for numbers, sequences of numbers and mappings of numbers.

    Built by `approx`; compare it with ``==`` against the actual value.
    """

    def __init__(self, expected: Any, rel: float, abs_: float) -> None:
        self.expected = expected
        self.rel = rel
        self.abs = abs_
        self._approx = self._build(expected)

    def _build(self, expected: Any) -> Any:
        if _is_number(expected):
            return ApproxScalar(expected, self.rel, self.abs)
        if isinstance(expected, Mapping):
            return {k: self._build(v) for k, v in expected.items()}
        if isinstance(expected, Sequence) and not isinstance(expected, (str, bytes)):
            return [self._build(v) for v in expected]
        raise TypeError(
            f"cannot make approximate comparisons to {type(expected).__name__}: "
            f"{expected!r}"
        )

    def __eq__(self, actual: object) -> bool:
        return self._compare(self._approx, actual)

    def _compare(self, approx_value: Any, actual: Any) -> bool:
        if isinstance(approx_value, ApproxScalar):
            return approx_value == actual
        if isinstance(approx_value, dict):
            if not isinstance(actual, Mapping) or set(actual) != set(approx_value):
                return False
            return all(self._compare(v, actual[k]) for k, v in approx_value.items())
        if not isinstance(actual, Sequence) or isinstance(actual, (str, bytes)):
            return False
        if len(actual) != len(approx_value):
            return False
        return all(self._compare(a, b) for a, b in zip(approx_value, actual))

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"approx({self._render(self._approx)})"

    def _render(self, value: Any) -> str:
        if isinstance(value, dict):
            inner = ", ".join(f"{k!r}: {self._render(v)}" for k, v in value.items())
            return "{" + inner + "}"
        if isinstance(value, list):
            return "[" + ", ".join(self._render(v) for v in value) + "]"
        return repr(value)


def approx(  # pylint: disable=redefined-builtin
    expected: Any, rel: float | None = None, abs: float | None = None
) -> Approx:
    """Wrap ``expected`` so it compares equal to values within a tolerance.

    A number ``x`` matches when ``|x - expected| <= max(rel * |expected|, abs)``.
    When neither tolerance is given both defaults apply. When only one is given
    the other is ignored (treated as zero). ``NaN`` never matches.

    Args:
        expected: A number, a sequence of numbers or a mapping of numbers.
            Containers are compared element-wise and must match in length/keys.
        rel: Relative tolerance. Defaults to ``1e-6``.
        abs: Absolute tolerance. Defaults to ``1e-12``.

    Returns:
        Approx: An object to compare against with ``==``.

    Raises:
        ValueError: If a tolerance is negative or NaN.
        TypeError: If ``expected`` contains non-numeric values.
    """
    if rel is None and abs is None:
        rel, abs = DEFAULT_REL_TOLERANCE, DEFAULT_ABS_TOLERANCE
    elif rel is None:
        rel = 0.0
    elif abs is None:
        abs = 0.0
    for label, tol in (("relative", rel), ("absolute", abs)):
        if math.isnan(tol) or tol < 0:
            raise ValueError(f"{label} tolerance can't be negative or NaN: {tol}")
    return Approx(expected, rel, abs)
