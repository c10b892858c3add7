"""Execution of collected test cases.

Each case goes through three phases:

1. **setup**: skip marks are evaluated, then fixtures are set up. An
   exception here (other than a skip) makes the case an ``error``.
2. **call**: the test function runs. ``AssertionError`` and any other
   exception make it ``failed``; `Skipped` and `XFailed` map to their outcomes.
3. **teardown**: function-scoped finalizers run. A failure here turns an
   otherwise passing case into an ``error``.

`KeyboardInterrupt` is the only exception that stops the run. Everything else
raised by a test or fixture, `SystemExit` included, is reported on the case.

``xfail`` marks then reinterpret the outcome: a failure becomes ``xfailed``
and a pass becomes ``xpassed`` (or ``failed`` when the mark is strict).
Module-scoped fixtures are finished when the run moves to another module;
session-scoped ones when the run ends.
"""

from __future__ import annotations

import enum
import logging
import time
import traceback
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field

from .collection import Collection, Collector, TestCase
from .config import RunConfig
from .errors import CollectionError
from .fixtures import FixtureManager, Scope
from .marks import Mark, evaluate_skip, evaluate_xfail, xfail_reason
from .outcomes import Skipped, XFailed

logger = logging.getLogger(__name__)


class Outcome(enum.StrEnum):
    """Result of running one test case."""

    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"
    SKIPPED = "skipped"
    XFAILED = "xfailed"
    XPASSED = "xpassed"

    @property
    def letter(self) -> str:
        """Single-character progress marker."""
        return {
            Outcome.PASSED: ".",
            Outcome.FAILED: "F",
            Outcome.ERROR: "E",
            Outcome.SKIPPED: "s",
            Outcome.XFAILED: "x",
            Outcome.XPASSED: "X",
        }[self]

    @property
    def is_problem(self) -> bool:
        """True for outcomes that make the run fail."""
        return self in (Outcome.FAILED, Outcome.ERROR)


class ExitCode(enum.IntEnum):
    """Process exit codes of a run."""

    OK = 0
    TESTS_FAILED = 1
    INTERRUPTED = 2
    INTERNAL_ERROR = 3
    USAGE_ERROR = 4
    NO_TESTS_COLLECTED = 5


@dataclass(frozen=True)
class CaseReport:
    """Outcome of one test case (or of a scope teardown)."""

    nodeid: str
    outcome: Outcome
    duration: float = 0.0
    longrepr: str = ""
    when: str = "call"


@dataclass
class RunResult:
    """Aggregated result of a run."""

    reports: list[CaseReport] = field(default_factory=list)
    collection_errors: list[CollectionError] = field(default_factory=list)
    deselected: int = 0
    duration: float = 0.0
    interrupted: bool = False

    def counts(self) -> Counter[Outcome]:
        """Number of reports per outcome."""
        return Counter(r.outcome for r in self.reports)

    @property
    def failures(self) -> list[CaseReport]:
        """Reports with a failed or error outcome."""
        return [r for r in self.reports if r.outcome.is_problem]

    @property
    def exit_code(self) -> ExitCode:
        """Exit code summarizing the run."""
        if self.interrupted or self.collection_errors:
            return ExitCode.INTERRUPTED
        if self.failures:
            return ExitCode.TESTS_FAILED
        if not self.reports:
            return ExitCode.NO_TESTS_COLLECTED
        return ExitCode.OK


def format_exception(exc: BaseException) -> str:
    """Format ``exc`` with its traceback, omitting the runner's own frame."""
    tb = exc.__traceback__.tb_next if exc.__traceback__ is not None else None
    return "".join(traceback.format_exception(type(exc), exc, tb)).rstrip()


class Runner:
    """Run test cases with fixture management.

    Args:
        fixture_manager: Manager used to set up and tear down fixtures.
        fail_fast: Stop after the first failed or error case.
        on_report: Called with every report as soon as it is produced.
    """

    def __init__(
        self,
        fixture_manager: FixtureManager | None = None,
        *,
        fail_fast: bool = False,
        on_report: Callable[[CaseReport], None] | None = None,
    ) -> None:
        self.fixtures = (
            fixture_manager if fixture_manager is not None else FixtureManager()
        )
        self.fail_fast = fail_fast
        self._on_report = on_report

    def _emit(self, result: RunResult, report: CaseReport) -> None:
        result.reports.append(report)
        if self._on_report is not None:
            self._on_report(report)

    def _finish_scope(self, result: RunResult, scope: Scope, nodeid: str) -> None:
        start = time.perf_counter()
        try:
            self.fixtures.finish(scope)
        except KeyboardInterrupt:
            raise
        except BaseException as e:  # pylint: disable=broad-exception-caught
            logger.error("Error tearing down %s scope of %s", scope, nodeid)
            self._emit(
                result,
                CaseReport(
                    f"{nodeid}::<{scope} teardown>",
                    Outcome.ERROR,
                    time.perf_counter() - start,
                    format_exception(e),
                    when="teardown",
                ),
            )

    def run(self, collection: Collection) -> RunResult:
        """Run every case of ``collection``.

        Nothing runs when the collection has errors; the result then reports
        them and exits with `ExitCode.INTERRUPTED`.
        """
        result = RunResult(
            collection_errors=list(collection.errors), deselected=collection.deselected
        )
        if collection.errors:
            logger.error("%d error(s) during collection", len(collection.errors))
            return result
        start = time.perf_counter()
        try:
            for case in collection.cases:
                if case.module_key != self.fixtures.current_module:
                    if self.fixtures.current_module:
                        self._finish_scope(
                            result, "module", self.fixtures.current_module
                        )
                    self.fixtures.enter_module(case.module_key)
                report = self.run_case(case)
                self._emit(result, report)
                if self.fail_fast and report.outcome.is_problem:
                    logger.info("Stopping after first failure: %s", case.nodeid)
                    break
        except KeyboardInterrupt:
            logger.warning("Run interrupted")
            result.interrupted = True
        finally:
            if result.interrupted:
                self._finish_scope(result, "function", "<interrupted>")
            if self.fixtures.current_module:
                self._finish_scope(result, "module", self.fixtures.current_module)
            self._finish_scope(result, "session", "<session>")
        result.duration = time.perf_counter() - start
        return result

    def run_case(self, case: TestCase) -> CaseReport:
        """Run one case through setup, call and teardown."""
        start = time.perf_counter()
        logger.debug("Running %s", case.nodeid)

        def report(outcome: Outcome, longrepr: str = "", when: str = "call") -> CaseReport:
            duration = time.perf_counter() - start
            return CaseReport(case.nodeid, outcome, duration, longrepr, when)

        if (reason := evaluate_skip(case.marks)) is not None:
            return report(Outcome.SKIPPED, reason, "setup")

        outcome, longrepr, when, raised = Outcome.PASSED, "", "call", None
        try:
            kwargs = self.fixtures.setup(case)
        except Skipped as e:
            outcome, longrepr, when = Outcome.SKIPPED, e.reason, "setup"
        except XFailed as e:
            outcome, longrepr, when = Outcome.XFAILED, e.reason, "setup"
        except KeyboardInterrupt:
            raise
        except BaseException as e:  # pylint: disable=broad-exception-caught
            outcome, longrepr, when = Outcome.ERROR, format_exception(e), "setup"
        else:
            outcome, longrepr, raised = self._call(case, kwargs)

        try:
            self.fixtures.finish("function")
        except KeyboardInterrupt:
            raise
        except BaseException as e:  # pylint: disable=broad-exception-caught
            if outcome is Outcome.PASSED:
                outcome, longrepr, when = Outcome.ERROR, format_exception(e), "teardown"

        if when == "call" and (xmark := evaluate_xfail(case.marks)) is not None:
            outcome, longrepr = self._apply_xfail(xmark, outcome, longrepr, raised)

        logger.debug("%s %s", case.nodeid, outcome.value)
        return report(outcome, longrepr, when)

    @staticmethod
    def _call(
        case: TestCase, kwargs: dict[str, object]
    ) -> tuple[Outcome, str, BaseException | None]:
        try:
            if case.cls is not None:
                func = getattr(case.cls(), case.func.__name__)
            else:
                func = case.func
            func(**kwargs)
        except Skipped as e:
            return Outcome.SKIPPED, e.reason, None
        except XFailed as e:
            return Outcome.XFAILED, e.reason, None
        except KeyboardInterrupt:
            raise
        except BaseException as e:  # pylint: disable=broad-exception-caught
            return Outcome.FAILED, format_exception(e), e
        return Outcome.PASSED, "", None

    @staticmethod
    def _apply_xfail(
        xmark: Mark, outcome: Outcome, longrepr: str, raised: BaseException | None
    ) -> tuple[Outcome, str]:
        reason = xfail_reason(xmark)
        if outcome is Outcome.FAILED:
            expected = xmark.kwargs.get("raises")
            if expected is not None and not isinstance(raised, expected):
                return Outcome.FAILED, longrepr
            return Outcome.XFAILED, reason
        if outcome is Outcome.PASSED:
            if xmark.kwargs.get("strict", False):
                return Outcome.FAILED, f"[XPASS(strict)] {reason}".rstrip()
            return Outcome.XPASSED, reason
        return outcome, longrepr


def run_tests(
    config: RunConfig, on_report: Callable[[CaseReport], None] | None = None
) -> tuple[Collection, RunResult]:
    """Collect and run tests according to ``config``.

    Raises:
        UsageError: If the configuration is invalid (e.g. a missing path).
    """
    collection = Collector(config).collect()
    runner = Runner(fail_fast=config.fail_fast, on_report=on_report)
    return collection, runner.run(collection)
