"""Unit tests for :mod:`trialkit.raises`."""

import re

import pytest

from trialkit.outcomes import DidNotRaise, TestFailure
from trialkit.raises import does_not_raise, raises


def test_expected_exception_is_suppressed_and_recorded():
    with raises(ZeroDivisionError) as excinfo:
        _ = 1 / 0
    assert excinfo.type is ZeroDivisionError
    assert isinstance(excinfo.value, ZeroDivisionError)
    assert excinfo.typename == "ZeroDivisionError"
    assert excinfo.tb is not None
    assert excinfo.errisinstance(ArithmeticError)


def test_subclasses_are_accepted():
    with raises(LookupError) as excinfo:
        _ = {}["missing"]
    assert excinfo.type is KeyError


def test_tuple_of_exception_types():
    with raises((KeyError, IndexError)) as excinfo:
        _ = [][0]
    assert excinfo.type is IndexError


def test_did_not_raise():
    with pytest.raises(DidNotRaise) as excinfo:
        with raises(ValueError):
            pass
    assert str(excinfo.value) == "DID NOT RAISE ValueError"
    assert excinfo.value.expected is ValueError
    assert isinstance(excinfo.value, AssertionError)


def test_did_not_raise_names_every_expected_type():
    message = "DID NOT RAISE any of (KeyError, IndexError)"
    with pytest.raises(DidNotRaise, match=re.escape(message)):
        with raises((KeyError, IndexError)):
            pass


def test_unrelated_exception_propagates_unchanged():
    error = TypeError("wrong type")
    with pytest.raises(TypeError) as excinfo:
        with raises(ValueError):
            raise error
    assert excinfo.value is error


def test_match_searches_the_message():
    with raises(ValueError, match=r"invalid literal") as excinfo:
        int("x")
    assert excinfo.match(r"base 10")
    assert excinfo.match(re.compile(r"'x'"))


def test_match_mismatch_fails():
    with pytest.raises(TestFailure) as excinfo:
        with raises(ValueError, match=r"^nope$"):
            raise ValueError("actual message")
    message = str(excinfo.value)
    assert message.startswith("Regex pattern did not match.")
    assert "Regex: '^nope$'" in message
    assert "Input: 'actual message'" in message


def test_excinfo_is_unavailable_inside_the_block():
    with raises(KeyError) as excinfo:
        with pytest.raises(RuntimeError, match="only available after"):
            _ = excinfo.value
        raise KeyError("k")
    assert excinfo.value.args == ("k",)


def test_excinfo_repr():
    scope = raises(KeyError)
    assert repr(scope.excinfo) == "<ExceptionInfo for raises contextmanager>"
    with scope as excinfo:
        raise KeyError("k")
    assert repr(excinfo).startswith("<ExceptionInfo KeyError('k') tblen=")


@pytest.mark.parametrize("bad", [42, "ValueError", str, (), (ValueError, int)])
def test_expected_must_be_exception_types(bad):
    with pytest.raises(TypeError):
        raises(bad)


@pytest.mark.parametrize(
    ("value", "expectation"),
    [
        (2, does_not_raise()),
        (0, raises(ZeroDivisionError)),
    ],
)
def test_does_not_raise_mixes_with_raises(value, expectation):
    with expectation:
        _ = 1 / value
