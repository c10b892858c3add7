"""trialkit run: collect and execute tests.

Behavior
- Collects test files under the given paths (default: the current directory)
  using the configured patterns, then runs every selected case.
- The report goes to **stdout**; human-oriented notices and log output go to
  **stderr**.
- Exits with the run's exit code (0 ok, 1 failures, 2 interrupted or
  collection errors, 4 usage error, 5 no tests collected).

Environment
- ``TRIALKIT_PATTERNS``: comma/space separated test file globs.
- ``TRIALKIT_FAIL_FAST``: any non-empty value behaves like ``-x``.

Examples
    $ trialkit run
    $ trialkit run tests/unit -k parser -x
    $ trialkit run tests -m "not slow" --verbose-cases
"""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console
from rich.text import Text

from trialkit import config
from trialkit.collection import Collection, Collector
from trialkit.errors import UsageError
from trialkit.reporting import ConsoleReporter
from trialkit.runner import ExitCode, Runner

from .helpers import error, success, warn


def _build_config(  # pylint: disable=too-many-arguments,too-many-positional-arguments
    paths: tuple[Path, ...],
    keyword: str | None,
    marker: str | None,
    fail_fast: bool,
    patterns: tuple[str, ...],
    verbose_cases: bool,
) -> config.RunConfig:
    run_config = config.RunConfig(
        paths=paths or (Path("."),),
        patterns=(
            config.split_patterns(",".join(patterns)) if patterns else config.get_patterns()
        ),
        keyword=keyword,
        marker=marker,
        fail_fast=fail_fast or config.get_fail_fast(),
        verbose=verbose_cases,
    )
    run_config.check_paths()
    return run_config


def _collect_only(console: Console, collection: Collection) -> ExitCode:
    for case in collection.cases:
        console.print(Text(case.nodeid), highlight=False, soft_wrap=True)
    for e in collection.errors:
        error(str(e))
    if collection.errors:
        return ExitCode.INTERRUPTED
    if not collection.cases:
        warn("No tests collected.")
        return ExitCode.NO_TESTS_COLLECTED
    success(f"Collected {len(collection.cases)} test case(s).")
    return ExitCode.OK


@click.command()
@click.argument("paths", nargs=-1, type=click.Path(path_type=Path))
@click.option(
    "-k",
    "keyword",
    metavar="EXPR",
    help="Only run cases whose node id contains EXPR ('not EXPR' inverts).",
)
@click.option(
    "-m",
    "marker",
    metavar="MARK",
    help="Only run cases carrying MARK ('not MARK' inverts).",
)
@click.option(
    "-x",
    "--exitfirst",
    "fail_fast",
    is_flag=True,
    default=False,
    help="Stop after the first failure or error (also TRIALKIT_FAIL_FAST).",
)
@click.option(
    "--pattern",
    "patterns",
    multiple=True,
    help=(
        "Glob selecting test files in directories. Repeatable. "
        f"Defaults to TRIALKIT_PATTERNS or {', '.join(config.DEFAULT_PATTERNS)}."
    ),
)
@click.option(
    "--verbose-cases",
    is_flag=True,
    default=False,
    help="Print one line per test case instead of progress letters.",
)
@click.option(
    "--collect-only",
    is_flag=True,
    default=False,
    help="Only list the collected node ids; do not run them.",
)
@click.pass_context
def run(  # pylint: disable=too-many-arguments,too-many-positional-arguments
    ctx: click.Context,
    paths: tuple[Path, ...],
    keyword: str | None,
    marker: str | None,
    fail_fast: bool,
    patterns: tuple[str, ...],
    verbose_cases: bool,
    collect_only: bool,
) -> None:
    """Collect and run tests."""
    try:
        run_config = _build_config(
            paths, keyword, marker, fail_fast, patterns, verbose_cases
        )
    except UsageError as e:
        error(str(e))
        ctx.exit(ExitCode.USAGE_ERROR)

    console = Console(color_system=None if ctx.color is False else "auto")
    collection = Collector(run_config).collect()
    if collect_only:
        ctx.exit(_collect_only(console, collection))

    reporter = ConsoleReporter(console, verbose=run_config.verbose)
    reporter.start(collection)
    runner = Runner(fail_fast=run_config.fail_fast, on_report=reporter.case_finished)
    result = runner.run(collection)
    reporter.summary(result)
    if result.exit_code is ExitCode.NO_TESTS_COLLECTED:
        warn("No tests collected.")
    ctx.exit(result.exit_code)
