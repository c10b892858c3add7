"""Unit tests for `trialkit.entrypoints.cli.helpers.log_level_parser`.

The ``-L NAME=LEVEL`` option quiets loggers of the code under test; values
arrive either as repeated flags or as one comma/space separated string from
``TRIALKIT_LOGGER_LEVELS``.
"""

import logging
import types

import click
import pytest

from trialkit.entrypoints.cli.helpers.log_level_parser import (
    DEFAULT_LIB_LEVELS,
    parse_log_level,
)

CTX = types.SimpleNamespace()  # unused by the callback


def test_no_values_gives_the_defaults():
    assert parse_log_level(CTX, None, ()) == {
        "asyncio": logging.WARNING,
        "urllib3": logging.WARNING,
    }


def test_defaults_are_not_mutated():
    parse_log_level(CTX, None, ("asyncio=DEBUG",))
    assert DEFAULT_LIB_LEVELS["asyncio"] == logging.WARNING


def test_later_values_win():
    out = parse_log_level(CTX, None, ("myapp=INFO", "myapp.db=ERROR", "myapp=WARNING"))
    assert out["myapp"] == logging.WARNING
    assert out["myapp.db"] == logging.ERROR


@pytest.mark.parametrize(
    "value",
    [
        "myapp=info,  urllib3=ERROR asyncio=debug",
        ("myapp=info, urllib3=ERROR", "asyncio=debug"),
    ],
    ids=["env-string", "repeated-flags"],
)
def test_separators_and_case(value):
    out = parse_log_level(CTX, None, value)
    assert out == {
        "myapp": logging.INFO,
        "urllib3": logging.ERROR,
        "asyncio": logging.DEBUG,
    }


@pytest.mark.parametrize(
    ("item", "message"),
    [
        ("myapp", "Expected NAME=LEVEL, got 'myapp'"),
        ("=INFO", "Expected NAME=LEVEL, got '=INFO'"),
        ("myapp=LOUD", "Invalid log level: LOUD"),
    ],
)
def test_malformed_items(item, message):
    with pytest.raises(click.BadParameter) as excinfo:
        parse_log_level(CTX, None, (item,))
    assert message in excinfo.value.format_message()
