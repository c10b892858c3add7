"""Unit tests for :mod:`trialkit.errors`."""

import pytest

from trialkit.errors import (
    CollectionError,
    FixtureCycleError,
    FixtureDefinitionError,
    FixtureError,
    FixtureLookupError,
    ParametrizeError,
    ScopeMismatchError,
    TrialkitError,
    UsageError,
)


@pytest.mark.parametrize(
    "exc_type",
    [
        UsageError,
        CollectionError,
        FixtureError,
        FixtureLookupError,
        FixtureCycleError,
        ScopeMismatchError,
        FixtureDefinitionError,
        ParametrizeError,
    ],
)
def test_every_error_derives_from_trialkit_error(exc_type):
    assert issubclass(exc_type, TrialkitError)


def test_collection_error():
    e = CollectionError("tests/test_a.py", "ImportError: no module named nope")
    assert str(e) == "Error collecting tests/test_a.py: ImportError: no module named nope"
    assert e.path == "tests/test_a.py"
    assert e.reason == "ImportError: no module named nope"


def test_fixture_lookup_error_lists_sorted_names():
    e = FixtureLookupError("db", {"tmp_path", "request", "cache"}, "test_a.py::test_x")
    assert isinstance(e, LookupError)
    assert e.available == ["cache", "request", "tmp_path"]
    assert str(e) == (
        "fixture 'db' not found (requested by test_a.py::test_x).\n"
        "available fixtures: cache, request, tmp_path"
    )


def test_fixture_lookup_error_without_fixtures():
    e = FixtureLookupError("db", [], "t")
    assert str(e).endswith("available fixtures: <none>")


def test_fixture_cycle_error():
    e = FixtureCycleError(("a", "b", "a"))
    assert str(e) == "recursive dependency involving fixture: a -> b -> a"
    assert e.chain == ("a", "b", "a")


def test_scope_mismatch_error():
    e = ScopeMismatchError("db", "function", "engine", "module")
    assert str(e) == (
        "module-scoped fixture 'engine' cannot use function-scoped fixture 'db'"
    )


def test_fixture_definition_error():
    e = FixtureDefinitionError("db", "did not yield a value")
    assert str(e) == "fixture 'db' did not yield a value"


def test_parametrize_error_is_a_value_error():
    assert issubclass(ParametrizeError, ValueError)
