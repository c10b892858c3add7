"""Console and flight-recorder logging for `trialkit run`.

Reports go to stdout, so every handler here writes to stderr or to a file.
Log records raised by the code under test pass through the same handlers and
are tagged with the top-level package that emitted them.
"""

from __future__ import annotations

import logging
import os
import platform
import sys
from importlib.metadata import version
from logging.handlers import MemoryHandler
from pathlib import Path
from typing import TYPE_CHECKING, Literal, TypeAlias

from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from logging import Logger

# pylint: disable=too-few-public-methods

PROJECT_PREFIX = "trialkit"


class ThirdPartyPrefixFilter(logging.Filter):
    """Tag records from outside trialkit with their top-level package.

    A record from `myapp.db.session` gets `record.prefix = "[myapp]"`, so a
    log line from the code under test is easy to tell apart from the
    runner's own. Nothing is dropped.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Set `record.prefix` and keep the record."""
        if not record.name.startswith(PROJECT_PREFIX):
            record.prefix = f"[{record.name.split('.')[0]}]"
        else:
            record.prefix = ""
        return True


def config_console_handler(
    level: int = logging.INFO, debug_mode: bool = False, color: bool = True
) -> RichHandler:
    """Build the stderr RichHandler installed on the root logger.

    Args:
        level: Console threshold, normally chosen with `-v`/`-q`.
        debug_mode: Force DEBUG and show logger names, times and source
            paths instead of the package prefix.
        color: Mirrors the `--color/--no-color` option.

    Returns:
        RichHandler: The handler, not yet attached.
    """

    # keep consistent with click-extra's --color / --no-color option
    ColorSystem: TypeAlias = Literal["auto", "standard", "256", "truecolor", "windows"]
    color_system: ColorSystem | None = "auto" if color else None

    console = Console(color_system=color_system, stderr=True)

    if debug_mode:
        level = logging.DEBUG

    handler = RichHandler(
        level=level,
        console=console,
        rich_tracebacks=True,
        show_time=False,
        show_path=debug_mode,
        enable_link_path=debug_mode,
    )

    fmt = (
        "%(prefix)s %(message)s"
        if not debug_mode
        else "%(asctime)s %(name)s: %(message)s"
    )
    handler.setFormatter(logging.Formatter(fmt=fmt))

    if not debug_mode:
        handler.addFilter(ThirdPartyPrefixFilter())

    return handler


def config_flight_recorder(
    path: Path,
    capacity: int = 2000,
    flush_level: int = logging.WARNING,
    flush_on_close: bool = False,
) -> MemoryHandler:
    """Keep the latest DEBUG records of a run in memory.

    The buffer is written to `path` once a record at `flush_level` arrives,
    so a run that only logs at INFO leaves no file behind. `--force-flush`
    maps to `flush_on_close`.

    Args:
        path: Log file, opened lazily on first write.
        capacity: Records held before the buffer is written anyway.
        flush_level: Level that triggers a write.
        flush_on_close: Write the buffer when the handler closes.

    Returns:
        MemoryHandler: Handler whose target is the file handler.
    """
    file_handler = logging.FileHandler(path, mode="w", encoding="utf-8", delay=True)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(
            "[%(asctime)s] [%(process)d:%(threadName)s] "
            "%(levelname)s %(name)s:%(lineno)d: %(message)s"
        )
    )

    return MemoryHandler(
        capacity=capacity,
        flushLevel=flush_level,
        target=file_handler,
        flushOnClose=flush_on_close,
    )


def log_startup(  # pylint: disable=too-many-arguments
    logger: Logger,
    *,
    app_version: str,
    level: int,
    handlers: list[logging.Handler],
    log_path: Path | None,
    flight_recorder: bool,
    flight_capacity: int | None,
    force_flush_fr: bool,
    logger_levels: dict[str, int],
) -> None:
    """Log the logging setup of this run.

    One INFO line names the trialkit version, the console level and whether
    the flight recorder is on. The rest is DEBUG and usually only lands in
    the flight-recorder file: interpreter, platform, the click and rich
    versions, handlers and `--logger-level` overrides.
    """
    logger.info(
        "trialkit %s: console=%s, flight-recorder=%s",
        app_version,
        logging.getLevelName(level),
        "ON" if flight_recorder else "OFF",
    )

    logger.debug("Python: %s", sys.version.split()[0])
    logger.debug("Platform: %s %s", platform.system(), platform.release())
    logger.debug("PID: %s", os.getpid())
    logger.debug("CWD: %s", Path.cwd())
    logger.debug("Click: %s", version("click"))
    logger.debug("Rich: %s", version("rich"))
    logger.debug("Handlers: %s", [type(h).__name__ for h in handlers])
    if flight_recorder:
        logger.debug(
            "Flight recorder: path=%s, capacity=%s, flush_on_close=%s",
            str(log_path) if log_path else "<none>",
            flight_capacity,
            force_flush_fr,
        )
    if logger_levels:
        logger.debug(
            "Per-logger overrides: %s",
            {name: logging.getLevelName(lvl) for name, lvl in logger_levels.items()},
        )
    else:
        logger.debug("Per-logger overrides: <none>")  # pragma: no cover.
