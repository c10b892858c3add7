"""CLI helpers for trialkit.

Utilities used by the command-line interface: parsing of ``NAME=LEVEL``
logger options and message emitters that write to stderr with emoji→ASCII
fallbacks.
"""

from .log_level_parser import parse_log_level
from .messages import error, success, warn

__all__ = ["parse_log_level", "warn", "success", "error"]
