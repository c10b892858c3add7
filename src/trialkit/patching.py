"""Temporary replacement of attributes, items and environment variables.

`Patcher` records every change it makes and reverts them all on `Patcher.undo`.
`patch` is a one-shot convenience that replaces a single attribute (with a new
`Mock` by default) for the duration of a ``with`` block or a decorated function.

Examples:
    ```py
    with patch(time, "time", return_value=0.0):
        assert stamp() == "1970-01-01"

    def test_offline(patcher):
        patcher.setattr("myapp.net.fetch", lambda url: b"")
        patcher.setenv("MYAPP_OFFLINE", "1")
    ```
"""

from __future__ import annotations

import functools
import importlib
import inspect
import logging
import os
from collections.abc import Callable, MutableMapping
from types import TracebackType
from typing import Any

from .mocks import DEFAULT, Mock

logger = logging.getLogger(__name__)

_NOTSET = object()


def resolve_target(dotted: str) -> tuple[Any, str]:
    """Split ``"package.module.attr"`` into the owning object and attribute name.

    The longest importable module prefix is imported; remaining components are
    resolved with ``getattr``.

    Raises:
        ValueError: If ``dotted`` has no dot.
        ImportError: If no prefix of ``dotted`` can be imported.
        AttributeError: If an intermediate attribute does not exist.
    """
    if "." not in dotted:
        raise ValueError(f"must be an absolute import path, got {dotted!r}")
    *owner_parts, attr = dotted.split(".")
    for cut in range(len(owner_parts), 0, -1):
        module_name = ".".join(owner_parts[:cut])
        try:
            obj = importlib.import_module(module_name)
        except ImportError:
            continue
        for part in owner_parts[cut:]:
            obj = getattr(obj, part)
        return obj, attr
    raise ImportError(f"cannot import any module from {dotted!r}")


class Patcher:
    """Make reversible changes to objects, mappings and ``os.environ``.

    Changes are undone newest first by `undo`, or on leaving a ``with`` block.
    """

    def __init__(self) -> None:
        self._undo: list[Callable[[], None]] = []

    def __enter__(self) -> Patcher:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.undo()

    def setattr(
        self,
        target: Any,
        name: Any = _NOTSET,
        value: Any = _NOTSET,
        raising: bool = True,
    ) -> None:
        """Set ``target.name`` to ``value``.

        ``target`` may also be a dotted import path, in which case the second
        argument is the value: ``setattr("os.getcwd", lambda: "/")``.

        Raises:
            AttributeError: If the attribute does not exist and ``raising``.
        """
        if isinstance(target, str):
            if value is not _NOTSET:
                raise TypeError("use setattr(dotted_path, value) with a string target")
            value = name
            target, name = resolve_target(target)
        elif value is _NOTSET:
            raise TypeError("setattr() requires a value")

        if not hasattr(target, name) and raising:
            raise AttributeError(f"{target!r} has no attribute {name!r}")
        if inspect.isclass(target):
            # own __dict__ keeps staticmethod/classmethod wrappers; an inherited
            # attribute is restored by deleting the override
            old = target.__dict__.get(name, _NOTSET)
        else:
            old = getattr(target, name, _NOTSET)
        self._undo.append(functools.partial(self._restore_attr, target, name, old))
        setattr(target, name, value)

    def delattr(self, target: Any, name: Any = _NOTSET, raising: bool = True) -> None:
        """Delete ``target.name`` (or the dotted path ``target``)."""
        if isinstance(target, str) and name is _NOTSET:
            target, name = resolve_target(target)
        if not hasattr(target, name):
            if raising:
                raise AttributeError(name)
            return
        old = (
            target.__dict__.get(name, _NOTSET)
            if inspect.isclass(target)
            else getattr(target, name)
        )
        self._undo.append(functools.partial(self._restore_attr, target, name, old))
        delattr(target, name)

    @staticmethod
    def _restore_attr(target: Any, name: str, old: Any) -> None:
        if old is _NOTSET:
            delattr(target, name)
        else:
            setattr(target, name, old)

    def setitem(self, mapping: MutableMapping[Any, Any], key: Any, value: Any) -> None:
        """Set ``mapping[key] = value``."""
        old = mapping.get(key, _NOTSET)
        self._undo.append(functools.partial(self._restore_item, mapping, key, old))
        mapping[key] = value

    def delitem(
        self, mapping: MutableMapping[Any, Any], key: Any, raising: bool = True
    ) -> None:
        """Delete ``mapping[key]``.

        Raises:
            KeyError: If the key is missing and ``raising``.
        """
        if key not in mapping:
            if raising:
                raise KeyError(key)
            return
        self._undo.append(functools.partial(self._restore_item, mapping, key, mapping[key]))
        del mapping[key]

    @staticmethod
    def _restore_item(mapping: MutableMapping[Any, Any], key: Any, old: Any) -> None:
        if old is _NOTSET:
            mapping.pop(key, None)
        else:
            mapping[key] = old

    def setenv(self, name: str, value: Any, prepend: str | None = None) -> None:
        """Set environment variable ``name``.

        With ``prepend`` (a separator such as ``os.pathsep``) the value is put
        in front of the existing one.
        """
        value = str(value)
        if prepend and name in os.environ:
            value = value + prepend + os.environ[name]
        self.setitem(os.environ, name, value)

    def delenv(self, name: str, raising: bool = True) -> None:
        """Delete environment variable ``name``."""
        self.delitem(os.environ, name, raising=raising)

    def undo(self) -> None:
        """Revert every recorded change, newest first."""
        if self._undo:
            logger.debug("Undoing %d patch(es)", len(self._undo))
        while self._undo:
            self._undo.pop()()


class _Patch:
    """Context manager and decorator returned by `patch`."""

    def __init__(
        self, target: Any, attribute: str | None, new: Any, mock_kwargs: dict[str, Any]
    ) -> None:
        self.target = target
        self.attribute = attribute
        self.new = new
        self.mock_kwargs = mock_kwargs
        self._patchers: list[Patcher] = []

    def __enter__(self) -> Any:
        if self.new is not DEFAULT and self.mock_kwargs:
            raise TypeError("can't pass mock options together with 'new'")
        value = Mock(**self.mock_kwargs) if self.new is DEFAULT else self.new
        patcher = Patcher()
        if self.attribute is None:
            patcher.setattr(self.target, value)
        else:
            patcher.setattr(self.target, self.attribute, value)
        self._patchers.append(patcher)
        return value

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self._patchers.pop().undo()

    def __call__(self, func: Callable[..., Any]) -> Callable[..., Any]:
        params = list(inspect.signature(func).parameters.values())
        # the created mock fills the last parameter
        mock_param = params[-1].name if self.new is DEFAULT and params else None

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with self as value:
                if mock_param is not None:
                    kwargs[mock_param] = value
                return func(*args, **kwargs)

        if mock_param is not None:
            wrapper.__signature__ = inspect.Signature(params[:-1])  # type: ignore[attr-defined]
        return wrapper


def patch(
    target: Any, attribute: str | None = None, new: Any = DEFAULT, **mock_kwargs: Any
) -> _Patch:
    """Replace an attribute for the duration of a block or decorated function.

    Args:
        target: Object owning the attribute, or a dotted import path of the
            attribute itself (then ``attribute`` is omitted).
        attribute: Attribute name on ``target``.
        new: Replacement value. Defaults to a fresh `Mock` built with
            ``mock_kwargs``, which is returned by ``with`` or passed to the
            decorated function as its last parameter. That parameter is
            hidden from the function signature, so fixture injection skips it.
        **mock_kwargs: Passed to `Mock` when ``new`` is not given.

    Returns:
        A context manager / decorator. The original value is restored on exit,
        including when the block raises.
    """
    return _Patch(target, attribute, new, mock_kwargs)
