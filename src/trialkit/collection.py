"""Test discovery.

Discovery follows the usual conventions:

* files matching the configured patterns (``test_*.py`` / ``*_test.py``) under
  the given directories, plus any file named explicitly;
* module-level functions whose name starts with ``test``;
* classes whose name starts with ``Test`` and which define no ``__init__``,
  and their ``test*`` methods (each case runs on a fresh instance);
* ``conftest.py`` files in the test file's directory and its parents (up to
  the run's root directory) contribute fixtures to every module below them.

Objects with ``__test__ = False`` are never collected. Each collected function
is expanded into one `TestCase` per combination of parametrize rows and
parametrized fixture values.
"""

from __future__ import annotations

import fnmatch
import importlib.util
import inspect
import itertools
import logging
import re
import sys
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any

from .builtin_fixtures import builtin_registry
from .config import CLASS_PREFIX, CONFTEST_NAME, TEST_PREFIX, RunConfig
from .errors import CollectionError
from .fixtures import (
    FixtureRegistry,
    fixture_closure,
    get_fixture_def,
    injectable_argnames,
)
from .marks import Mark, get_marks
from .parametrize import expand, get_parametrizations

logger = logging.getLogger(__name__)

MODULE_NAME_PREFIX = "trialkit_collected_"
SKIPPED_DIRS = {"__pycache__", "node_modules", "venv"}


@dataclass(eq=False)
class TestCase:  # pylint: disable=too-many-instance-attributes
    """One runnable test: a function plus the arguments chosen for this run."""

    __test__ = False  # not a test class, despite the name

    nodeid: str
    path: Path
    name: str
    func: Callable[..., Any]
    registry: FixtureRegistry
    argnames: tuple[str, ...] = ()
    cls: type | None = None
    params: dict[str, Any] = field(default_factory=dict)
    fixture_params: dict[str, tuple[int, Any]] = field(default_factory=dict)
    marks: tuple[Mark, ...] = ()

    @property
    def module_key(self) -> str:
        """Node id of the module the case belongs to."""
        return self.nodeid.split("::", 1)[0]

    @property
    def mark_names(self) -> set[str]:
        """Names of all marks carried by the case."""
        return {m.name for m in self.marks}

    def __repr__(self) -> str:
        return f"<TestCase {self.nodeid}>"


@dataclass
class Collection:
    """Result of collecting tests: runnable cases plus per-file errors."""

    cases: list[TestCase] = field(default_factory=list)
    errors: list[CollectionError] = field(default_factory=list)
    deselected: int = 0


def _module_name(path: Path) -> str:
    return MODULE_NAME_PREFIX + re.sub(r"\W", "_", str(path.with_suffix("")))


def _wants_collection(obj: Any) -> bool:
    return bool(getattr(obj, "__test__", True))


def _matches(expr: str | None, test: Callable[[str], bool]) -> bool:
    if not expr:
        return True
    expr = expr.strip()
    if expr.startswith("not "):
        return not test(expr[4:].strip())
    return test(expr)


class Collector:
    """Find test files, import them and build `TestCase` objects.

    Args:
        config: Paths, patterns and selection options for the run.
        base_registry: Outermost fixture registry; defaults to the builtins.
    """

    def __init__(
        self, config: RunConfig, base_registry: FixtureRegistry | None = None
    ) -> None:
        self.config = config
        self.rootdir = config.rootdir
        self._base = base_registry if base_registry is not None else builtin_registry()
        self._conftests: dict[Path, FixtureRegistry] = {}

    # --- files --------------------------------------------------------------

    def _is_test_file(self, path: Path) -> bool:
        return any(fnmatch.fnmatch(path.name, p) for p in self.config.patterns)

    def iter_files(self) -> Iterator[Path]:
        """Yield test files in a stable order, each once."""
        seen: set[Path] = set()
        for given in self.config.paths:
            given = given.resolve()
            if given.is_file():
                candidates = [given]
            else:
                candidates = [
                    p
                    for p in sorted(given.rglob("*.py"))
                    if self._is_test_file(p)
                    and not any(
                        part.startswith(".") or part in SKIPPED_DIRS
                        for part in p.relative_to(given).parts[:-1]
                    )
                ]
            for path in candidates:
                if path not in seen:
                    seen.add(path)
                    yield path

    def relpath(self, path: Path) -> str:
        """Path of ``path`` relative to the root directory, in posix form."""
        try:
            return path.relative_to(self.rootdir).as_posix()
        except ValueError:
            return path.as_posix()

    def import_file(self, path: Path) -> ModuleType:
        """Import ``path`` under a unique module name.

        The file's directory is put on ``sys.path`` so that test modules can
        import their sibling helpers.

        Raises:
            CollectionError: If importing the file raises.
        """
        name = _module_name(path)
        if name in sys.modules:
            return sys.modules[name]
        if str(path.parent) not in sys.path:
            sys.path.insert(0, str(path.parent))
        spec = importlib.util.spec_from_file_location(name, path)
        if spec is None or spec.loader is None:
            raise CollectionError(self.relpath(path), "not an importable python file")
        module = importlib.util.module_from_spec(spec)
        sys.modules[name] = module
        try:
            spec.loader.exec_module(module)
        except KeyboardInterrupt:
            raise
        except BaseException as e:  # pylint: disable=broad-exception-caught
            del sys.modules[name]
            logger.debug("Import of %s failed", path, exc_info=True)
            raise CollectionError(self.relpath(path), f"{type(e).__name__}: {e}") from e
        logger.debug("Imported %s as %s", path, name)
        return module

    def registry_for(self, directory: Path) -> FixtureRegistry:
        """Return the fixture registry of ``directory`` built from conftest files."""
        try:
            rel_parts = directory.relative_to(self.rootdir).parts
            dirs = [self.rootdir] + [
                self.rootdir.joinpath(*rel_parts[: i + 1]) for i in range(len(rel_parts))
            ]
        except ValueError:
            dirs = [directory]
        registry = self._base
        for d in dirs:
            conftest = d / CONFTEST_NAME
            if not conftest.is_file():
                continue
            if conftest not in self._conftests:
                module = self.import_file(conftest)
                self._conftests[conftest] = FixtureRegistry.from_namespace(
                    vars(module), registry, label=self.relpath(conftest)
                )
            registry = self._conftests[conftest]
        return registry

    # --- cases --------------------------------------------------------------

    def collect(self) -> Collection:
        """Collect every case selected by the configuration.

        Raises:
            PathNotFoundError: If a configured path does not exist.
        """
        self.config.check_paths()
        collection = Collection()
        for path in self.iter_files():
            try:
                module = self.import_file(path)
                registry = FixtureRegistry.from_namespace(
                    vars(module), self.registry_for(path.parent), label=self.relpath(path)
                )
                collection.cases.extend(self.collect_module(path, module, registry))
            except CollectionError as e:
                logger.warning("%s", e)
                collection.errors.append(e)

        selected = [c for c in collection.cases if self._selected(c)]
        collection.deselected = len(collection.cases) - len(selected)
        collection.cases = selected
        logger.info(
            "Collected %d case(s), %d deselected, %d error(s)",
            len(selected),
            collection.deselected,
            len(collection.errors),
        )
        return collection

    def _selected(self, case: TestCase) -> bool:
        return _matches(self.config.keyword, lambda s: s in case.nodeid) and _matches(
            self.config.marker, lambda s: s in case.mark_names
        )

    def collect_module(
        self, path: Path, module: ModuleType, registry: FixtureRegistry
    ) -> list[TestCase]:
        """Build the cases defined by ``module``."""
        cases: list[TestCase] = []
        for name, obj in list(vars(module).items()):
            if not _wants_collection(obj):
                continue
            if (
                inspect.isfunction(obj)
                and name.startswith(TEST_PREFIX)
                and get_fixture_def(obj) is None
            ):
                cases.extend(self._cases_for(path, registry, obj, None))
            elif inspect.isclass(obj) and name.startswith(CLASS_PREFIX):
                cases.extend(self._collect_class(path, registry, obj))
        return cases

    def _collect_class(
        self, path: Path, registry: FixtureRegistry, cls: type
    ) -> list[TestCase]:
        if cls.__init__ is not object.__init__:  # type: ignore[misc]
            logger.warning(
                "%s: cannot collect test class %s because it has an __init__ constructor",
                self.relpath(path),
                cls.__name__,
            )
            return []
        members: dict[str, Any] = {}
        for klass in reversed(cls.__mro__):
            members.update(vars(klass))
        cases: list[TestCase] = []
        for name, member in members.items():
            if not name.startswith(TEST_PREFIX):
                continue
            if isinstance(member, staticmethod):
                func, bound = member.__func__, False
            elif inspect.isfunction(member):
                func, bound = member, True
            else:
                continue
            if _wants_collection(func) and get_fixture_def(func) is None:
                cases.extend(self._cases_for(path, registry, func, cls, bound))
        return cases

    # pylint: disable-next=too-many-arguments,too-many-positional-arguments,too-many-locals
    def _cases_for(
        self,
        path: Path,
        registry: FixtureRegistry,
        func: Callable[..., Any],
        cls: type | None,
        bound: bool = False,
    ) -> list[TestCase]:
        rel = self.relpath(path)
        base_id = f"{rel}::{cls.__name__}::{func.__name__}" if cls else f"{rel}::{func.__name__}"
        argnames = injectable_argnames(func, skip_first=bound)
        for table in get_parametrizations(func):
            if unused := [n for n in table.argnames if n not in argnames]:
                raise CollectionError(
                    rel, f"{base_id}: function uses no argument {', '.join(unused)!r}"
                )
        base_marks = tuple(get_marks(cls)) if cls is not None else ()
        base_marks += tuple(get_marks(func))

        cases = []
        for spec in expand(func):
            closure = fixture_closure(registry, argnames, provided=spec.params)
            param_defs = [
                d for n in closure if (d := registry.lookup(n)) and d.params is not None
            ]
            marks = base_marks + spec.marks
            if any(not d.params for d in param_defs):
                reason = "got empty parameter set for a parametrized fixture"
                marks += (Mark("skip", (), {"reason": reason}),)
                param_defs = [d for d in param_defs if d.params]
            for combo in itertools.product(*(range(len(d.params or ())) for d in param_defs)):
                fixture_params = {
                    d.name: (i, d.params[i])  # type: ignore[index]
                    for d, i in zip(param_defs, combo)
                }
                ids = [spec.id] if spec.id else []
                ids += [d.param_id(i) for d, i in zip(param_defs, combo)]
                suffix = f"[{'-'.join(ids)}]" if ids else ""
                cases.append(
                    TestCase(
                        nodeid=base_id + suffix,
                        path=path,
                        name=func.__name__,
                        func=func,
                        registry=registry,
                        argnames=argnames,
                        cls=cls,
                        params=dict(spec.params),
                        fixture_params=fixture_params,
                        marks=marks,
                    )
                )
        return cases
