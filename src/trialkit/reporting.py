"""Console reporting of test runs with Rich.

`ConsoleReporter` prints progress while cases run (one outcome letter per
case, grouped by file, or one line per case in verbose mode) and a summary
afterwards: collection errors, failure details and a colored counts line such
as ``3 passed, 1 failed in 0.12s``.
"""

from __future__ import annotations

from rich.console import Console
from rich.rule import Rule
from rich.text import Text

from .collection import Collection
from .runner import CaseReport, Outcome, RunResult

OUTCOME_STYLES = {
    Outcome.PASSED: "green",
    Outcome.FAILED: "red",
    Outcome.ERROR: "red",
    Outcome.SKIPPED: "yellow",
    Outcome.XFAILED: "yellow",
    Outcome.XPASSED: "yellow",
}

# order of the counts in the summary line
SUMMARY_ORDER = (
    Outcome.PASSED,
    Outcome.FAILED,
    Outcome.SKIPPED,
    Outcome.XFAILED,
    Outcome.XPASSED,
    Outcome.ERROR,
)


def summary_line(result: RunResult) -> Text:
    """Build the final ``N passed, M failed in Xs`` line."""
    counts = result.counts()
    parts = [
        (f"{counts[o]} {o.value}", OUTCOME_STYLES[o])
        for o in SUMMARY_ORDER
        if counts[o]
    ]
    if result.collection_errors:
        n = len(result.collection_errors)
        parts.append((f"{n} error{'s' if n > 1 else ''} during collection", "red"))
    if result.deselected:
        parts.append((f"{result.deselected} deselected", "yellow"))

    if result.failures or result.collection_errors or result.interrupted:
        style = "red"
    elif counts[Outcome.PASSED]:
        style = "green"
    else:
        style = "yellow"

    text = Text()
    if not parts:
        text.append("no tests ran", style=style)
    for i, (label, part_style) in enumerate(parts):
        if i:
            text.append(", ", style=style)
        text.append(label, style=f"bold {part_style}")
    text.append(f" in {result.duration:.2f}s", style=style)
    if result.interrupted:
        text.append(" (interrupted)", style="bold red")
    return text


class ConsoleReporter:
    """Render progress and summaries of a run to a Rich console.

    Args:
        console: Destination console (stdout by default).
        verbose: Print one line per case instead of progress letters.
    """

    def __init__(self, console: Console | None = None, verbose: bool = False) -> None:
        self.console = console if console is not None else Console()
        self.verbose = verbose
        self._current_file: str | None = None

    def start(self, collection: Collection) -> None:
        """Print the header of a run."""
        n = len(collection.cases)
        header = f"collected {n} item{'s' if n != 1 else ''}"
        if collection.deselected:
            header += f" / {collection.deselected} deselected"
        self.console.print(Text(header, style="bold"), highlight=False)

    def case_finished(self, report: CaseReport) -> None:
        """Print progress for one report; pass as ``on_report`` to the runner."""
        style = OUTCOME_STYLES[report.outcome]
        if self.verbose:
            line = Text(report.nodeid + " ")
            line.append(report.outcome.value.upper(), style=style)
            self.console.print(line, highlight=False, soft_wrap=True)
            return
        path = report.nodeid.split("::", 1)[0]
        if path != self._current_file:
            if self._current_file is not None:
                self.console.print()
            self.console.print(Text(path + " "), end="", highlight=False, soft_wrap=True)
            self._current_file = path
        self.console.print(Text(report.outcome.letter, style=style), end="")

    def summary(self, result: RunResult) -> None:
        """Print collection errors, failure details and the counts line."""
        if self._current_file is not None:
            self.console.print()
            self._current_file = None

        if result.collection_errors:
            self.console.print(Rule(Text("ERRORS", style="bold red")))
            for error in result.collection_errors:
                self.console.print(Rule(Text(f"ERROR collecting {error.path}", style="red")))
                self.console.print(Text(error.reason), highlight=False, soft_wrap=True)

        if failures := result.failures:
            self.console.print(Rule(Text("FAILURES", style="bold red")))
            for report in failures:
                title = report.nodeid
                if report.outcome is Outcome.ERROR:
                    title = f"ERROR at {report.when} of {report.nodeid}"
                self.console.print(Rule(Text(title, style="red")))
                self.console.print(Text(report.longrepr), highlight=False, soft_wrap=True)

        skipped = [r for r in result.reports if r.outcome is Outcome.SKIPPED]
        if skipped and self.verbose:
            self.console.print(Rule(Text("short test summary info", style="bold")))
            for report in skipped:
                self.console.print(
                    Text(f"SKIPPED {report.nodeid}: {report.longrepr}", style="yellow"),
                    highlight=False,
                    soft_wrap=True,
                )

        self.console.print(Rule(summary_line(result)))
