"""Declarative test tables.

`parametrize` attaches a table of argument values to a test function; the
collector expands it into one test case per row. Stacked decorators multiply:
every row of one table is combined with every row of the others.

Examples:
    ```py
    @parametrize("a, b, expected", [(1, 2, 3), (2, 2, 4), param(0, 0, 0, id="zero")])
    def test_add(a, b, expected):
        assert add(a, b) == expected
    ```
"""

from __future__ import annotations

import enum
import itertools
import logging
from collections import Counter
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from .errors import ParametrizeError
from .marks import Mark, normalize_marks

logger = logging.getLogger(__name__)

PARAMETRIZE_ATTR = "_trialkit_parametrize"

IdFunction = Callable[[Any], str | None]


@dataclass(frozen=True)
class ParameterSet:
    """One explicit row of a parametrize table."""

    values: tuple[Any, ...]
    id: str | None = None
    marks: tuple[Mark, ...] = ()


def param(  # pylint: disable=redefined-builtin
    *values: Any, id: str | None = None, marks: Any = ()
) -> ParameterSet:
    """Build a parametrize row with an explicit id and/or marks.

    Args:
        *values: The row's values, one per argument name.
        id: Id used in the test case name instead of the generated one.
        marks: A mark (or marks) applied only to this row, e.g. ``mark.xfail``.
    """
    if id is not None and not isinstance(id, str):
        raise TypeError(f"expected id to be a string, got {type(id).__name__}: {id!r}")
    return ParameterSet(values, id, normalize_marks(marks))


@dataclass(frozen=True)
class Parametrization:
    """A validated parametrize table, with one id per row."""

    argnames: tuple[str, ...]
    rows: tuple[ParameterSet, ...]
    ids: tuple[str, ...]


@dataclass(frozen=True)
class CaseSpec:
    """One expanded combination of parametrize rows."""

    params: dict[str, Any] = field(default_factory=dict)
    id: str | None = None
    marks: tuple[Mark, ...] = ()


def _parse_argnames(argnames: str | Sequence[str]) -> tuple[str, ...]:
    if isinstance(argnames, str):
        names = tuple(name.strip() for name in argnames.split(",") if name.strip())
    else:
        names = tuple(argnames)
    if not names:
        raise ParametrizeError("parametrize requires at least one argument name")
    if len(set(names)) != len(names):
        raise ParametrizeError(f"duplicate argument names in {names!r}")
    return names


def _to_row(argnames: tuple[str, ...], value: Any) -> ParameterSet:
    row = value if isinstance(value, ParameterSet) else None
    if row is None:
        if len(argnames) == 1:
            values = (value,)
        else:
            try:
                values = tuple(value)
            except TypeError as e:
                raise ParametrizeError(
                    f"expected a sequence of {len(argnames)} values, got {value!r}"
                ) from e
        row = ParameterSet(values)
    if len(row.values) != len(argnames):
        raise ParametrizeError(
            f"wrong number of values: expected {len(argnames)} for "
            f"{', '.join(argnames)}, got {len(row.values)} in {row.values!r}"
        )
    return row


def idval(value: Any, argname: str, index: int) -> str:
    """Return the default id for one parameter value.

    Strings, numbers, booleans and None render as themselves, enum members as
    ``Class.MEMBER``, classes and functions by name. Anything else becomes the
    argument name followed by the row index.
    """
    if isinstance(value, enum.Enum):
        return str(value)
    if value is None or isinstance(value, (str, int, float, complex, bool)):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("ascii", "backslashreplace")
    if isinstance(value, type) or callable(value) and hasattr(value, "__name__"):
        return value.__name__
    return f"{argname}{index}"


def _row_id(
    row: ParameterSet,
    argnames: tuple[str, ...],
    index: int,
    ids: Sequence[str | None] | IdFunction | None,
) -> str:
    if row.id is not None:
        return row.id
    if ids is not None and not callable(ids) and ids[index] is not None:
        return str(ids[index])
    parts = []
    for name, value in zip(argnames, row.values):
        custom = ids(value) if callable(ids) else None
        parts.append(str(custom) if custom is not None else idval(value, name, index))
    return "-".join(parts)


def parametrize(
    argnames: str | Sequence[str],
    argvalues: Iterable[Any],
    *,
    ids: Sequence[str | None] | IdFunction | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Run the decorated test once per row of ``argvalues``.

    Args:
        argnames: Comma-separated string (``"a, b"``) or sequence of names.
        argvalues: Rows. Each row is a tuple of values (a bare value when there
            is a single name) or a `ParameterSet` built with `param`.
        ids: Either one id per row (``None`` entries fall back to generated
            ids) or a callable returning an id for each value.

    Returns:
        The decorator, which records the table on the test function.

    Raises:
        ParametrizeError: If names are missing or duplicated, a row has the
            wrong number of values, or ``ids`` has the wrong length.
    """
    names = _parse_argnames(argnames)
    rows = tuple(_to_row(names, value) for value in argvalues)
    if ids is not None and not callable(ids):
        ids = list(ids)
        if len(ids) != len(rows):
            raise ParametrizeError(
                f"{len(ids)} ids given for {len(rows)} parameter sets of {names!r}"
            )
    if rows:
        row_ids = tuple(_row_id(row, names, i, ids) for i, row in enumerate(rows))
    else:
        reason = f"got empty parameter set {list(names)!r}"
        skip_mark = Mark("skip", (), {"reason": reason})
        rows = (ParameterSet((None,) * len(names), marks=(skip_mark,)),)
        row_ids = ("NOTSET",)
    table = Parametrization(names, rows, row_ids)

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        tables = list(func.__dict__.get(PARAMETRIZE_ATTR, ()))
        taken = {name for t in tables for name in t.argnames}
        if dup := taken.intersection(names):
            raise ParametrizeError(
                f"{func.__name__}: duplicate parametrization of {sorted(dup)!r}"
            )
        tables.append(table)
        setattr(func, PARAMETRIZE_ATTR, tables)
        return func

    return decorator


def get_parametrizations(func: Callable[..., Any]) -> list[Parametrization]:
    """Return the parametrize tables attached to ``func``, in application order."""
    return list(getattr(func, PARAMETRIZE_ATTR, ()))


def dedupe_ids(ids: list[str]) -> list[str]:
    """Make ids unique by suffixing duplicates with a running index.

    Suffixed ids never collide with ids that were already unique.
    """
    counts = Counter(ids)
    taken = {id_ for id_ in ids if counts[id_] == 1}
    seen: Counter[str] = Counter()
    result = []
    for id_ in ids:
        if counts[id_] > 1:
            while (candidate := f"{id_}{seen[id_]}") in taken:
                seen[id_] += 1
            seen[id_] += 1
            taken.add(candidate)
            result.append(candidate)
        else:
            result.append(id_)
    return result


def expand(func: Callable[..., Any]) -> list[CaseSpec]:
    """Expand the parametrize tables of ``func`` into case specs.

    Returns a single empty spec when ``func`` is not parametrized. The outermost
    decorator's rows vary fastest; ids are joined in application order.
    """
    tables = get_parametrizations(func)
    if not tables:
        return [CaseSpec()]
    specs = []
    for combo in itertools.product(*(list(zip(t.rows, t.ids)) for t in tables)):
        params: dict[str, Any] = {}
        marks: list[Mark] = []
        for table, (row, _) in zip(tables, combo):
            params.update(zip(table.argnames, row.values))
            marks.extend(row.marks)
        specs.append(CaseSpec(params, "-".join(i for _, i in combo), tuple(marks)))
    ids = dedupe_ids([spec.id or "" for spec in specs])
    logger.debug("Expanded %s into %d cases", func.__qualname__, len(specs))
    return [
        CaseSpec(spec.params, id_, spec.marks) for spec, id_ in zip(specs, ids)
    ]
