"""Test marks: metadata attached to test functions, classes and parameter rows.

``mark.<name>`` builds a decorator for any mark name. The names ``skip``,
``skipif`` and ``xfail`` are understood by the runner; other marks are plain
metadata usable for selection (``trialkit run -m slow``).

Examples:
    ```py
    @mark.skipif(sys.platform == "win32", reason="posix only")
    def test_permissions(): ...

    @mark.xfail(raises=NotImplementedError, strict=True)
    def test_later(): ...
    ```
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any

MARKS_ATTR = "_trialkit_marks"


@dataclass(frozen=True)
class Mark:
    """A named mark with the arguments it was created with."""

    name: str
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict, hash=False)


class MarkDecorator:
    """Decorator applying a `Mark` to a function or class.

    Calling it with anything other than a single function/class returns a new
    decorator carrying those arguments, so both ``@mark.slow`` and
    ``@mark.skip(reason="...")`` work.
    """

    def __init__(self, mark: Mark) -> None:
        self.mark = mark

    @property
    def name(self) -> str:
        """The mark name."""
        return self.mark.name

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        if len(args) == 1 and not kwargs and _is_markable(args[0]):
            target = args[0]
            store_mark(target, self.mark)
            return target
        return MarkDecorator(
            Mark(
                self.mark.name,
                self.mark.args + args,
                {**self.mark.kwargs, **kwargs},
            )
        )

    def __repr__(self) -> str:
        return f"<MarkDecorator {self.mark!r}>"


def _is_markable(obj: Any) -> bool:
    return inspect.isfunction(obj) or inspect.isclass(obj)


class MarkGenerator:
    """Factory for `MarkDecorator` objects via attribute access."""

    def __getattr__(self, name: str) -> MarkDecorator:
        if name.startswith("_"):
            raise AttributeError(name)
        return MarkDecorator(Mark(name))


mark = MarkGenerator()


def store_mark(obj: Any, new_mark: Mark) -> None:
    """Attach ``new_mark`` to ``obj``.

    Marks are stored on the object's own ``__dict__`` so a subclass does not
    mutate the marks of its base class.
    """
    marks = list(obj.__dict__.get(MARKS_ATTR, ()))
    marks.append(new_mark)
    setattr(obj, MARKS_ATTR, marks)


def get_marks(obj: Any) -> list[Mark]:
    """Return the marks attached to ``obj``, in application order."""
    return list(getattr(obj, MARKS_ATTR, ()))


def normalize_marks(marks: Any) -> tuple[Mark, ...]:
    """Convert a mark, decorator or collection of them into a tuple of marks."""
    if isinstance(marks, (Mark, MarkDecorator)):
        marks = (marks,)
    result = []
    for item in marks:
        if isinstance(item, MarkDecorator):
            result.append(item.mark)
        elif isinstance(item, Mark):
            result.append(item)
        else:
            raise TypeError(f"got {item!r} instead of a Mark")
    return tuple(result)


# ============================================================================
#                           Runner-side evaluation
# ============================================================================


def evaluate_skip(marks: tuple[Mark, ...] | list[Mark]) -> str | None:
    """Return the skip reason if any ``skip``/``skipif`` mark applies, else None."""
    for m in marks:
        if m.name == "skip":
            return m.kwargs.get("reason", m.args[0] if m.args else "unconditional skip")
        if m.name == "skipif":
            conditions = m.args or (m.kwargs.get("condition", True),)
            if any(conditions):
                return m.kwargs.get("reason", "condition met")
    return None


def evaluate_xfail(marks: tuple[Mark, ...] | list[Mark]) -> Mark | None:
    """Return the first ``xfail`` mark whose condition holds, else None."""
    for m in marks:
        if m.name != "xfail":
            continue
        condition = m.args[0] if m.args and not isinstance(m.args[0], str) else True
        if m.kwargs.get("condition", condition):
            return m
    return None


def xfail_reason(m: Mark) -> str:
    """Return the reason given to an ``xfail`` mark."""
    if "reason" in m.kwargs:
        return m.kwargs["reason"]
    for arg in m.args:
        if isinstance(arg, str):
            return arg
    return ""
