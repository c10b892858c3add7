"""Unit tests for :mod:`trialkit.patching`."""

import inspect
import json
import os
from types import SimpleNamespace

import pytest

from trialkit.mocks import Mock
from trialkit.patching import Patcher, patch, resolve_target

# pylint: disable=redefined-outer-name

ENV_NAME = "TRIALKIT_TEST_PATCHING_VAR"


class Clock:
    """Patch target with a static and a plain method."""

    @staticmethod
    def now():
        return "real now"

    def tick(self):
        return "real tick"


class WallClock(Clock):
    """Subclass inheriting every attribute from `Clock`."""


@pytest.fixture
def target() -> SimpleNamespace:
    return SimpleNamespace(value=1)


# ============================================================================
#                               resolve_target
# ============================================================================


def test_resolve_target_imports_the_longest_module_prefix():
    owner, attr = resolve_target("os.path.join")
    assert owner is os.path
    assert attr == "join"


def test_resolve_target_walks_attributes_after_the_module():
    owner, attr = resolve_target(f"{__name__}.Clock.now")
    assert owner is Clock
    assert attr == "now"


def test_resolve_target_needs_a_dotted_path():
    with pytest.raises(ValueError, match="absolute import path"):
        resolve_target("json")


def test_resolve_target_unknown_module():
    with pytest.raises(ImportError):
        resolve_target("trialkit_no_such_module.attr")


# ============================================================================
#                               Patcher
# ============================================================================


def test_setattr_and_undo(target):
    p = Patcher()
    p.setattr(target, "value", 2)
    p.setattr(target, "value", 3)
    assert target.value == 3
    p.undo()
    assert target.value == 1


def test_setattr_missing_attribute(target):
    p = Patcher()
    with pytest.raises(AttributeError):
        p.setattr(target, "missing", 1)
    p.setattr(target, "missing", 1, raising=False)
    assert target.missing == 1
    p.undo()
    assert not hasattr(target, "missing")


def test_setattr_requires_a_value(target):
    with pytest.raises(TypeError, match="requires a value"):
        Patcher().setattr(target, "value")


def test_setattr_with_dotted_path():
    def fake_dumps(obj):
        return "patched"

    with Patcher() as p:
        p.setattr("json.dumps", fake_dumps)
        assert json.dumps({}) == "patched"
    assert json.dumps({}) == "{}"


def test_setattr_with_dotted_path_takes_two_arguments():
    with pytest.raises(TypeError, match="setattr\\(dotted_path, value\\)"):
        Patcher().setattr("json.dumps", "x", "y")


def test_setattr_on_class_restores_staticmethod():
    with Patcher() as p:
        p.setattr(Clock, "now", staticmethod(lambda: "fake now"))
        assert Clock.now() == "fake now"
    assert isinstance(Clock.__dict__["now"], staticmethod)
    assert Clock().now() == "real now"


def test_setattr_on_subclass_patches_an_inherited_method():
    with Patcher() as p:
        p.setattr(WallClock, "tick", lambda self: "fake tick")
        assert WallClock().tick() == "fake tick"
        assert Clock().tick() == "real tick"
    assert "tick" not in WallClock.__dict__
    assert WallClock().tick() == "real tick"


def test_delattr_and_undo():
    with Patcher() as p:
        p.delattr(Clock, "tick")
        assert not hasattr(Clock, "tick")
        p.delattr(Clock, "tick", raising=False)
        with pytest.raises(AttributeError):
            p.delattr(Clock, "tick")
    assert Clock().tick() == "real tick"


def test_setitem_and_delitem():
    data = {"a": 1}
    with Patcher() as p:
        p.setitem(data, "a", 2)
        p.setitem(data, "b", 3)
        assert data == {"a": 2, "b": 3}
        p.delitem(data, "a")
        assert data == {"b": 3}
        p.delitem(data, "zzz", raising=False)
        with pytest.raises(KeyError):
            p.delitem(data, "zzz")
    assert data == {"a": 1}


def test_setenv_and_delenv():
    os.environ.pop(ENV_NAME, None)
    with Patcher() as p:
        p.setenv(ENV_NAME, 5)
        assert os.environ[ENV_NAME] == "5"
        p.setenv(ENV_NAME, "front", prepend=os.pathsep)
        assert os.environ[ENV_NAME] == f"front{os.pathsep}5"
        p.delenv(ENV_NAME)
        assert ENV_NAME not in os.environ
        p.delenv(ENV_NAME, raising=False)
    assert ENV_NAME not in os.environ


def test_undo_is_idempotent(target):
    p = Patcher()
    p.setattr(target, "value", 9)
    p.undo()
    p.undo()
    assert target.value == 1


def test_context_manager_undoes_on_error(target):
    with pytest.raises(RuntimeError):
        with Patcher() as p:
            p.setattr(target, "value", 2)
            raise RuntimeError
    assert target.value == 1


# ============================================================================
#                                   patch
# ============================================================================


def test_patch_installs_a_configured_mock(target):
    with patch(target, "value", return_value=5) as m:
        assert isinstance(target.value, Mock)
        assert target.value() == 5
    m.assert_called_once_with()
    assert target.value == 1


def test_patch_with_new_value(target):
    with patch(target, "value", new=42) as new:
        assert new == 42
        assert target.value == 42
    assert target.value == 1


def test_patch_dotted_path():
    with patch(f"{__name__}.Clock.now", return_value="mocked"):
        assert Clock.now() == "mocked"
    assert Clock.now() == "real now"


def test_patch_on_subclass_restores_the_inherited_attribute():
    with patch(WallClock, "now", return_value="mocked") as m:
        assert WallClock.now() == "mocked"
        assert Clock.now() == "real now"
    m.assert_called_once_with()
    assert "now" not in WallClock.__dict__
    assert WallClock.now() == "real now"


def test_patch_restores_after_error(target):
    with pytest.raises(KeyError):
        with patch(target, "value"):
            raise KeyError
    assert target.value == 1


def test_patch_rejects_mock_options_with_new(target):
    with pytest.raises(TypeError, match="together with 'new'"):
        with patch(target, "value", new=1, return_value=2):
            pass


def test_patch_as_decorator_appends_the_mock(target):
    @patch(target, "value", return_value="m")
    def use(x, mocked):
        return x, mocked, target.value()

    x, mocked, result = use(1)
    assert (x, result) == (1, "m")
    mocked.assert_called_once_with()
    assert target.value == 1
    assert list(inspect.signature(use).parameters) == ["x"]


def test_patch_as_decorator_with_new_keeps_signature(target):
    @patch(target, "value", new=7)
    def use(x):
        return x + target.value

    assert use(1) == 8
    assert list(inspect.signature(use).parameters) == ["x"]


def test_patch_decorator_is_reentrant(target):
    @patch(target, "value", new=2)
    def outer():
        return inner()

    @patch(target, "value", new=3)
    def inner():
        return target.value

    assert outer() == 3
    assert target.value == 1


def test_patch_decorator_fills_the_mock_by_name():
    target = SimpleNamespace(value=1, other=2)

    @patch(target, "other")
    @patch(target, "value")
    def use(x, other_mock, value_mock):
        return x, other_mock, value_mock

    x, other_mock, value_mock = use(x=2)
    assert x == 2
    assert isinstance(other_mock, Mock)
    assert isinstance(value_mock, Mock)
    assert other_mock is not value_mock
    assert list(inspect.signature(use).parameters) == ["x"]
    assert (target.value, target.other) == (1, 2)
