"""Fixtures: named setup routines injected into tests by parameter name.

A test declares what it needs by naming parameters; each name is looked up in
a layered `FixtureRegistry` (test module → conftest files → builtins) and the
fixture function is called, recursively resolving its own parameters the same
way. Values are cached per scope instance:

* ``function``: once per test case (the default);
* ``module``: once per test module;
* ``session``: once per run.

Generator fixtures yield their value once; code after the ``yield`` runs as
teardown when the owning scope finishes, in reverse setup order.

Examples:
    ```py
    @fixture
    def db():
        conn = connect()
        yield conn
        conn.close()

    @fixture(scope="module", params=["sqlite", "postgres"])
    def backend(request):
        return make_backend(request.param)
    ```
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, overload

from .errors import (
    FixtureCycleError,
    FixtureDefinitionError,
    FixtureLookupError,
    ScopeMismatchError,
    UsageError,
)
from .parametrize import idval

if TYPE_CHECKING:
    from .collection import TestCase

logger = logging.getLogger(__name__)

# pylint: disable=too-many-arguments

Scope = Literal["function", "module", "session"]
SCOPES: tuple[Scope, ...] = ("session", "module", "function")  # widest first
FIXTURE_ATTR = "_trialkit_fixture"
REQUEST_NAME = "request"


def _scope_rank(scope: str) -> int:
    return SCOPES.index(scope)  # type: ignore[arg-type]


def injectable_argnames(
    func: Callable[..., Any], skip_first: bool = False
) -> tuple[str, ...]:
    """Return the names of parameters without defaults (those to be injected)."""
    params = list(inspect.signature(func).parameters.values())
    if skip_first and params:
        params = params[1:]
    return tuple(
        p.name
        for p in params
        if p.default is inspect.Parameter.empty
        and p.kind
        in (inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY)
    )


@dataclass(frozen=True)
class FixtureDef:
    """Definition of a fixture, as declared with `fixture`."""

    name: str
    func: Callable[..., Any]
    scope: Scope = "function"
    autouse: bool = False
    params: tuple[Any, ...] | None = None
    ids: Sequence[str] | Callable[[Any], str | None] | None = None
    argnames: tuple[str, ...] = field(default=())

    def param_id(self, index: int) -> str:
        """Return the id of the ``index``-th param value."""
        assert self.params is not None
        value = self.params[index]
        if callable(self.ids):
            if (custom := self.ids(value)) is not None:
                return str(custom)
        elif self.ids is not None and self.ids[index] is not None:
            return str(self.ids[index])
        return idval(value, self.name, index)


@overload
def fixture(func: Callable[..., Any]) -> Callable[..., Any]: ...
@overload
def fixture(
    func: None = None,
    *,
    scope: Scope = "function",
    autouse: bool = False,
    name: str | None = None,
    params: Iterable[Any] | None = None,
    ids: Iterable[str] | Callable[[Any], str | None] | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]: ...
def fixture(
    func: Callable[..., Any] | None = None,
    *,
    scope: Scope = "function",
    autouse: bool = False,
    name: str | None = None,
    params: Iterable[Any] | None = None,
    ids: Iterable[str] | Callable[[Any], str | None] | None = None,
) -> Any:
    """Declare a fixture function.

    Usable bare (``@fixture``) or with options (``@fixture(scope="module")``).

    Args:
        func: The fixture function when used bare.
        scope: One of ``"function"``, ``"module"`` or ``"session"``.
        autouse: Set the fixture up for every test that can see it.
        name: Name to register under instead of the function name.
        params: Values the fixture is parametrized over; every test using it
            runs once per value, readable as ``request.param``.
        ids: Ids for ``params`` (iterable or callable).

    Raises:
        UsageError: If ``scope`` is unknown or ``ids`` does not match ``params``.
    """
    if scope not in SCOPES:
        raise UsageError(f"unknown fixture scope {scope!r}; expected one of {SCOPES}")
    params_tuple = tuple(params) if params is not None else None
    if ids is not None and not callable(ids):
        ids = list(ids)
        if params_tuple is not None and len(ids) != len(params_tuple):
            raise UsageError(f"{len(ids)} ids given for {len(params_tuple)} params")

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        defn = FixtureDef(
            name=name or fn.__name__,
            func=fn,
            scope=scope,
            autouse=autouse,
            params=params_tuple,
            ids=ids,
            argnames=injectable_argnames(fn),
        )
        setattr(fn, FIXTURE_ATTR, defn)
        return fn

    if func is not None:
        return decorator(func)
    return decorator


def get_fixture_def(obj: Any) -> FixtureDef | None:
    """Return the `FixtureDef` attached to ``obj``, if it is a fixture."""
    defn = getattr(obj, FIXTURE_ATTR, None)
    return defn if isinstance(defn, FixtureDef) else None


class FixtureRegistry:
    """Name → `FixtureDef` mapping with fallback to a parent registry.

    Args:
        parent: Registry consulted for names not defined here.
        label: Human-readable origin (a path or ``"builtins"``) used in logs.
    """

    def __init__(self, parent: FixtureRegistry | None = None, label: str = "") -> None:
        self.parent = parent
        self.label = label
        self._defs: dict[str, FixtureDef] = {}

    @classmethod
    def from_namespace(
        cls,
        namespace: dict[str, Any],
        parent: FixtureRegistry | None = None,
        label: str = "",
    ) -> FixtureRegistry:
        """Build a registry from the fixtures found in a module namespace."""
        registry = cls(parent, label)
        for value in namespace.values():
            if (defn := get_fixture_def(value)) is not None:
                registry.register(defn)
        return registry

    def register(self, defn: FixtureDef) -> None:
        """Add ``defn``; a later definition of the same name replaces the earlier."""
        self._defs[defn.name] = defn

    def lookup(self, name: str) -> FixtureDef | None:
        """Return the closest definition of ``name``, or None."""
        registry: FixtureRegistry | None = self
        while registry is not None:
            if name in registry._defs:  # pylint: disable=protected-access
                return registry._defs[name]  # pylint: disable=protected-access
            registry = registry.parent
        return None

    def names(self) -> set[str]:
        """All fixture names visible from this registry."""
        names = set(self._defs)
        if self.parent is not None:
            names |= self.parent.names()
        return names

    def autouse_names(self) -> list[str]:
        """Visible autouse fixture names, outermost registry first."""
        inherited = self.parent.autouse_names() if self.parent is not None else []
        own = [n for n, d in self._defs.items() if d.autouse and n not in inherited]
        # a closer non-autouse definition hides an inherited autouse one
        inherited = [n for n in inherited if (d := self.lookup(n)) and d.autouse]
        return inherited + own

    def __repr__(self) -> str:
        return f"<FixtureRegistry {self.label!r} {sorted(self._defs)}>"


def fixture_closure(
    registry: FixtureRegistry, argnames: Iterable[str], provided: Iterable[str] = ()
) -> list[str]:
    """Return every fixture name a test transitively depends on.

    Autouse fixtures come first, then the test's own arguments, then their
    dependencies, each name once. Names in ``provided`` (parametrized
    arguments) are not looked up. Unknown names are kept so that setup can
    report them.
    """
    provided = set(provided)
    order: list[str] = []
    queue = list(registry.autouse_names()) + list(argnames)
    while queue:
        name = queue.pop(0)
        if name in order or name in provided:
            continue
        order.append(name)
        if (defn := registry.lookup(name)) is not None:
            queue.extend(defn.argnames)
    return order


# ============================================================================
#                           Setup and teardown
# ============================================================================


@dataclass
class _ScopeState:
    """Cached values and pending finalizers of one scope instance."""

    key: str
    values: dict[tuple[str, int | None], Any] = field(default_factory=dict)
    finalizers: list[Callable[[], None]] = field(default_factory=list)


class FixtureRequest:
    """Handle passed to fixtures (and tests) that declare a ``request`` parameter."""

    def __init__(
        self,
        manager: FixtureManager,
        case: TestCase,
        defn: FixtureDef | None,
        chain: tuple[str, ...],
    ) -> None:
        self._manager = manager
        self._case = case
        self._defn = defn
        self._chain = chain

    @property
    def fixturename(self) -> str | None:
        """Name of the requesting fixture, or None when requested by a test."""
        return self._defn.name if self._defn is not None else None

    @property
    def scope(self) -> Scope:
        """Scope of the requesting fixture (``"function"`` for tests)."""
        return self._defn.scope if self._defn is not None else "function"

    @property
    def node(self) -> TestCase:
        """The test case being set up."""
        return self._case

    @property
    def param(self) -> Any:
        """Current value of a parametrized fixture.

        Raises:
            AttributeError: If the requesting fixture is not parametrized.
        """
        if self._defn is None or self._defn.name not in self._case.fixture_params:
            raise AttributeError(f"{self.fixturename or 'test'} is not parametrized")
        return self._case.fixture_params[self._defn.name][1]

    def getfixturevalue(self, name: str) -> Any:
        """Resolve fixture ``name`` dynamically."""
        return self._manager.get(name, self._case, self._chain, self.scope)

    def addfinalizer(self, finalizer: Callable[[], None]) -> None:
        """Run ``finalizer`` when the requesting scope finishes."""
        self._manager.add_finalizer(self.scope, finalizer)

    def __repr__(self) -> str:
        return f"<FixtureRequest for {self.fixturename or self._case.nodeid!r}>"


def _finish_generator(defn: FixtureDef, gen: Iterator[Any]) -> None:
    try:
        next(gen)
    except StopIteration:
        return
    raise FixtureDefinitionError(defn.name, "yielded more than once")


class FixtureManager:
    """Creates, caches and tears down fixture values for test cases.

    The runner calls `enter_module` before each case, `setup` to obtain the
    test's keyword arguments and `finish` to tear scopes down.
    """

    def __init__(self) -> None:
        self._states: dict[str, _ScopeState] = {
            "session": _ScopeState("session"),
            "module": _ScopeState(""),
            "function": _ScopeState(""),
        }

    @property
    def current_module(self) -> str:
        """Key of the active module scope (empty before the first case)."""
        return self._states["module"].key

    def enter_module(self, key: str) -> None:
        """Start a new module scope. The previous one must be finished already."""
        self._states["module"] = _ScopeState(key)

    def setup(self, case: TestCase) -> dict[str, Any]:
        """Set up every fixture ``case`` needs and return its keyword arguments.

        Raises:
            FixtureLookupError: If a requested name is not a known fixture.
            FixtureCycleError: If fixtures depend on each other recursively.
            ScopeMismatchError: If a fixture requests a narrower-scoped one.
            Exception: Whatever a fixture function raises.
        """
        self._states["function"] = _ScopeState(case.nodeid)
        for name in case.registry.autouse_names():
            if name not in case.params:
                self.get(name, case, (), "function")
        return {name: self.get(name, case, (), "function") for name in case.argnames}

    def get(
        self, name: str, case: TestCase, chain: tuple[str, ...], requester_scope: str
    ) -> Any:
        """Return the value of ``name`` for ``case``, creating it if needed."""
        if name in case.params:
            return case.params[name]
        if name == REQUEST_NAME:
            return FixtureRequest(self, case, None, chain)
        if name in chain:
            raise FixtureCycleError(chain + (name,))
        defn = case.registry.lookup(name)
        if defn is None:
            raise FixtureLookupError(
                name,
                case.registry.names() | {REQUEST_NAME},
                chain[-1] if chain else case.nodeid,
            )
        if _scope_rank(defn.scope) > _scope_rank(requester_scope):
            raise ScopeMismatchError(
                name, defn.scope, chain[-1] if chain else case.nodeid, requester_scope
            )

        if defn.params is not None and name not in case.fixture_params:
            raise FixtureDefinitionError(
                name, "is parametrized and cannot be requested dynamically"
            )
        index = case.fixture_params[name][0] if defn.params is not None else None
        state = self._states[defn.scope]
        cache_key = (name, index)
        if cache_key in state.values:
            return state.values[cache_key]

        sub_chain = chain + (name,)
        kwargs = {}
        for argname in defn.argnames:
            if argname == REQUEST_NAME:
                kwargs[argname] = FixtureRequest(self, case, defn, sub_chain)
            else:
                kwargs[argname] = self.get(argname, case, sub_chain, defn.scope)

        logger.debug("Setting up %s-scoped fixture %s", defn.scope, name)
        if inspect.isgeneratorfunction(defn.func):
            gen = defn.func(**kwargs)
            try:
                value = next(gen)
            except StopIteration as e:
                raise FixtureDefinitionError(name, "did not yield a value") from e
            state.finalizers.append(lambda: _finish_generator(defn, gen))
        else:
            value = defn.func(**kwargs)
        state.values[cache_key] = value
        return value

    def add_finalizer(self, scope: str, finalizer: Callable[[], None]) -> None:
        """Register ``finalizer`` on the active instance of ``scope``."""
        self._states[scope].finalizers.append(finalizer)

    def finish(self, scope: Scope) -> None:
        """Tear down the active instance of ``scope``.

        Every finalizer runs, newest first, even if an earlier one fails; the
        first exception is re-raised afterwards.
        """
        state = self._states[scope]
        if state.finalizers or state.values:
            logger.debug("Tearing down %s scope %s", scope, state.key or "<none>")
        first_error: BaseException | None = None
        while state.finalizers:
            finalizer = state.finalizers.pop()
            try:
                finalizer()
            except KeyboardInterrupt:
                raise
            except BaseException as e:  # pylint: disable=broad-exception-caught
                logger.debug("Finalizer in %s scope raised %r", scope, e)
                if first_error is None:
                    first_error = e
        state.values.clear()
        if first_error is not None:
            raise first_error
