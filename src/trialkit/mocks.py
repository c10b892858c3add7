"""Mock objects: stand-ins that fabricate attributes and record calls.

A `Mock` creates a child mock for any attribute that is read, returns a mock
(or a configured value) when called, and records every call so that tests can
assert on how a collaborator was used.

Examples:
    ```py
    mailer = Mock()
    notify(mailer, "hi")
    mailer.send.assert_called_once_with("hi", urgent=False)

    repo = Mock(spec=Repository, **{"get.return_value": user})
    fetch = Mock(side_effect=[1, 2, ConnectionError()])
    ```
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Any

from .outcomes import TestFailure

# pylint: disable=protected-access


class _Sentinel:
    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:
        return self._name

    def __reduce__(self) -> str:
        return self._name  # keep identity on pickle


DEFAULT = _Sentinel("DEFAULT")
_DELETED = _Sentinel("_DELETED")


class _AnyType:
    """Compares equal to everything; use inside expected calls."""

    def __eq__(self, other: object) -> bool:
        return True

    def __ne__(self, other: object) -> bool:
        return False

    __hash__ = object.__hash__

    def __repr__(self) -> str:
        return "<ANY>"


ANY = _AnyType()


# ============================================================================
#                               Calls
# ============================================================================


class Call:
    """A recorded (or expected) call: optional dotted name, args and kwargs.

    ``name`` is empty for a call on the mock itself and holds the attribute
    path (``"send"``, ``"client.get"``) for calls recorded on an ancestor's
    ``mock_calls``. Calls made through return values carry ``()`` in the path:
    ``factory().build(1)`` is recorded on ``factory`` as ``"().build"`` and
    expected as ``call().build(1)``.
    """

    __slots__ = ("name", "args", "kwargs")

    def __init__(
        self, args: Iterable[Any] = (), kwargs: dict[str, Any] | None = None, name: str = ""
    ) -> None:
        self.name = name
        self.args = tuple(args)
        self.kwargs = dict(kwargs or {})

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Call):
            return (
                self.name == other.name
                and self.args == other.args
                and self.kwargs == other.kwargs
            )
        if isinstance(other, tuple) and len(other) == 2:
            return self.name == "" and (self.args, self.kwargs) == (
                tuple(other[0]),
                dict(other[1]),
            )
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        parts = [repr(a) for a in self.args]
        parts += [f"{k}={v!r}" for k, v in self.kwargs.items()]
        if not self.name or self.name.startswith("()"):
            prefix = f"call{self.name}"
        else:
            prefix = f"call.{self.name}"
        return f"{prefix}({', '.join(parts)})"

    def __call__(self, *args: Any, **kwargs: Any) -> Call:
        return Call(args, kwargs, f"{self.name}()")

    def __getattr__(self, attr: str) -> _CallFactory:
        if attr.startswith("_") or attr in Call.__slots__:
            raise AttributeError(attr)
        return _CallFactory(f"{self.name}().{attr}")


class _CallFactory:
    """Builds expected calls: ``call(1, x=2)`` or ``call.method.sub(3)``."""

    def __init__(self, name: str = "") -> None:
        self._name = name

    def __call__(self, *args: Any, **kwargs: Any) -> Call:
        return Call(args, kwargs, self._name)

    def __getattr__(self, attr: str) -> _CallFactory:
        if attr.startswith("__"):
            raise AttributeError(attr)
        return _CallFactory(f"{self._name}.{attr}" if self._name else attr)


call = _CallFactory()


# ============================================================================
#                               Mock
# ============================================================================


def _is_exception(obj: Any) -> bool:
    return isinstance(obj, BaseException) or (
        isinstance(obj, type) and issubclass(obj, BaseException)
    )


def _spec_names(spec: Any) -> frozenset[str] | None:
    if spec is None:
        return None
    if isinstance(spec, (list, tuple, set, frozenset)) and all(
        isinstance(s, str) for s in spec
    ):
        return frozenset(spec)
    return frozenset(dir(spec))


def _spec_class(spec: Any) -> type | None:
    if spec is None or isinstance(spec, (list, tuple, set, frozenset)):
        return None
    return spec if isinstance(spec, type) else type(spec)


class Mock:
    """A configurable stand-in object.

    Args:
        spec: Restricts available attributes to those of a class or object,
            or to an explicit list of names. With a class or object,
            ``isinstance(mock, SpecClass)`` holds.
        return_value: Value returned when the mock is called. Defaults to a
            child mock, created on first call and reused afterwards.
        side_effect: Applied on each call before ``return_value``. An exception
            (class or instance) is raised; an iterable yields the next value per
            call (exceptions in it are raised); a callable is called with the
            same arguments and its result returned unless it is `DEFAULT`.
        name: Name used in repr and failure messages.
        **attrs: Attributes to configure; dotted names reach child mocks,
            e.g. ``**{"method.return_value": 3}``.
    """

    def __init__(
        self,
        spec: Any = None,
        *,
        return_value: Any = DEFAULT,
        side_effect: Any = None,
        name: str | None = None,
        **attrs: Any,
    ) -> None:
        d = self.__dict__
        d["_mock_name"] = name
        d["_mock_parent"] = None
        d["_mock_attr"] = ""
        d["_mock_children"] = {}
        d["_mock_spec"] = _spec_names(spec)
        d["_mock_spec_class"] = _spec_class(spec)
        d["_mock_return_value"] = return_value
        d["_mock_side_effect"] = None
        d["call_args_list"] = []
        d["mock_calls"] = []
        self.side_effect = side_effect
        self.configure_mock(**attrs)

    # --- identity -----------------------------------------------------------

    @property  # type: ignore[misc]
    def __class__(self) -> type:  # type: ignore[override]
        spec_class = self.__dict__.get("_mock_spec_class")
        return spec_class if spec_class is not None else type(self)

    def _full_name(self) -> str:
        parent = self._mock_parent
        if parent is None:
            return self._mock_name or "mock"
        if self._mock_attr == "()":
            return f"{parent._full_name()}()"
        return f"{parent._full_name()}.{self._mock_attr}"

    def __repr__(self) -> str:
        return f"<Mock name={self._full_name()!r} id='{id(self)}'>"

    def _adopt(self, child: Any, attr: str) -> None:
        if isinstance(child, Mock) and child._mock_parent is None and child._mock_name is None:
            child.__dict__["_mock_parent"] = self
            child.__dict__["_mock_attr"] = attr

    # --- attributes ---------------------------------------------------------

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_mock_") or (name.startswith("__") and name.endswith("__")):
            raise AttributeError(name)
        children = self.__dict__["_mock_children"]
        if name in children:
            value = children[name]
            if value is _DELETED:
                raise AttributeError(name)
            return value
        spec = self.__dict__["_mock_spec"]
        if spec is not None and name not in spec:
            raise AttributeError(f"Mock object has no attribute {name!r}")
        child = Mock()
        self._adopt(child, name)
        children[name] = child
        return child

    def __setattr__(self, name: str, value: Any) -> None:
        if name in ("return_value", "side_effect") or name.startswith("_mock_"):
            object.__setattr__(self, name, value)
            return
        self._adopt(value, name)
        self.__dict__["_mock_children"][name] = value

    def __delattr__(self, name: str) -> None:
        children = self.__dict__["_mock_children"]
        if children.get(name) is _DELETED:
            raise AttributeError(name)
        children[name] = _DELETED

    def __dir__(self) -> list[str]:
        extra = [k for k, v in self._mock_children.items() if v is not _DELETED]
        return sorted(set(super().__dir__()) | set(extra))

    def configure_mock(self, **attrs: Any) -> None:
        """Set attributes, following dotted names into child mocks."""
        for key, value in sorted(attrs.items(), key=lambda kv: kv[0].count(".")):
            *path, last = key.split(".")
            target = self
            for part in path:
                target = getattr(target, part)
            setattr(target, last, value)

    # --- call configuration -------------------------------------------------

    @property
    def return_value(self) -> Any:
        """Value returned by calls; a child mock unless configured."""
        value = self._mock_return_value
        if value is DEFAULT:
            value = Mock()
            self._adopt(value, "()")
            self.__dict__["_mock_return_value"] = value
        return value

    @return_value.setter
    def return_value(self, value: Any) -> None:
        self._adopt(value, "()")
        self.__dict__["_mock_return_value"] = value

    @property
    def side_effect(self) -> Any:
        """Exception, iterator or callable applied on each call."""
        return self._mock_side_effect

    @side_effect.setter
    def side_effect(self, value: Any) -> None:
        if value is not None and not _is_exception(value) and not callable(value):
            value = iter(value)
        self.__dict__["_mock_side_effect"] = value

    # --- calling ------------------------------------------------------------

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        self._record(args, kwargs)
        effect = self._mock_side_effect
        if effect is not None:
            if _is_exception(effect):
                raise effect
            if isinstance(effect, Iterator):
                result = next(effect)
                if _is_exception(result):
                    raise result
                return result
            result = effect(*args, **kwargs)
            if result is not DEFAULT:
                return result
        return self.return_value

    def _record(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        self.call_args_list.append(Call(args, kwargs))
        self.mock_calls.append(Call(args, kwargs))
        path, node = "", self
        while (parent := node._mock_parent) is not None:
            attr = node._mock_attr
            if attr == "()":
                path = f"(){'.' + path if path else ''}"
            elif path.startswith("()"):
                path = attr + path
            else:
                path = f"{attr}.{path}" if path else attr
            parent.mock_calls.append(Call(args, kwargs, path))
            node = parent

    @property
    def called(self) -> bool:
        """True once the mock has been called."""
        return bool(self.call_args_list)

    @property
    def call_count(self) -> int:
        """Number of times the mock has been called."""
        return len(self.call_args_list)

    @property
    def call_args(self) -> Call | None:
        """The most recent call, or None."""
        return self.call_args_list[-1] if self.call_args_list else None

    def reset_mock(self) -> None:
        """Forget recorded calls here and in every child mock.

        Configured return values and side effects are kept.
        """
        self.call_args_list.clear()
        self.mock_calls.clear()
        for child in self._mock_children.values():
            if isinstance(child, Mock) and child._mock_parent is self:
                child.reset_mock()
        return_value = self._mock_return_value
        if isinstance(return_value, Mock) and return_value._mock_parent is self:
            return_value.reset_mock()

    # --- assertions ---------------------------------------------------------

    def _calls_text(self) -> str:
        return f"Calls: {self.call_args_list!r}."

    def assert_called(self) -> None:
        """Fail unless the mock was called at least once."""
        if not self.called:
            raise TestFailure(f"Expected '{self._full_name()}' to have been called.")

    def assert_called_once(self) -> None:
        """Fail unless the mock was called exactly once."""
        if self.call_count != 1:
            raise TestFailure(
                f"Expected '{self._full_name()}' to have been called once. "
                f"Called {self.call_count} times.\n{self._calls_text()}"
            )

    def assert_not_called(self) -> None:
        """Fail if the mock was called."""
        if self.called:
            raise TestFailure(
                f"Expected '{self._full_name()}' to not have been called. "
                f"Called {self.call_count} times.\n{self._calls_text()}"
            )

    def assert_called_with(self, *args: Any, **kwargs: Any) -> None:
        """Fail unless the most recent call used exactly these arguments."""
        expected = Call(args, kwargs)
        if self.call_args is None:
            raise TestFailure(
                f"expected call not found.\nExpected: {expected!r}\n  Actual: not called."
            )
        if self.call_args != expected:
            raise TestFailure(
                f"expected call not found.\nExpected: {expected!r}\n"
                f"  Actual: {self.call_args!r}"
            )

    def assert_called_once_with(self, *args: Any, **kwargs: Any) -> None:
        """Fail unless the mock was called exactly once, with these arguments."""
        self.assert_called_once()
        self.assert_called_with(*args, **kwargs)

    def assert_any_call(self, *args: Any, **kwargs: Any) -> None:
        """Fail unless some recorded call used exactly these arguments."""
        expected = Call(args, kwargs)
        if expected not in self.call_args_list:
            raise TestFailure(
                f"{expected!r} call not found.\n{self._calls_text()}"
            )

    def assert_has_calls(self, calls: Iterable[Call], any_order: bool = False) -> None:
        """Fail unless ``calls`` appear in `mock_calls`.

        Without ``any_order`` the calls must appear consecutively and in order;
        with it, each expected call must match a distinct recorded call.
        """
        expected = list(calls)
        actual = list(self.mock_calls)
        if any_order:
            remaining = list(actual)
            missing = []
            for c in expected:
                if c in remaining:
                    remaining.remove(c)
                else:
                    missing.append(c)
            if missing:
                raise TestFailure(
                    f"{missing!r} not all found in call list.\nActual: {actual!r}"
                )
            return
        size = len(expected)
        for start in range(len(actual) - size + 1):
            if actual[start : start + size] == expected:
                return
        raise TestFailure(f"Calls not found.\nExpected: {expected!r}\n  Actual: {actual!r}")
