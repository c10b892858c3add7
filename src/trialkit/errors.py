"""Framework-level error definitions.

These errors describe problems with how tests, fixtures or runs are set up.
They are distinct from test *outcomes* (failure, skip, expected failure), which
live in `trialkit.outcomes`.
"""

from collections.abc import Iterable

# ============================================================================
#                           General errors
# ============================================================================


class TrialkitError(Exception):
    """Base class for trialkit framework errors."""


class UsageError(TrialkitError):
    """Raised when trialkit is invoked or configured incorrectly."""


class CollectionError(TrialkitError):
    """Raised when a test file cannot be imported or inspected."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Error collecting {path}: {reason}")
        self.path = path
        self.reason = reason


# ============================================================================
#                           Fixture errors
# ============================================================================


class FixtureError(TrialkitError):
    """Base class for fixture resolution errors."""


class FixtureLookupError(FixtureError, LookupError):
    """Raised when a requested fixture name is not defined."""

    def __init__(self, name: str, available: Iterable[str], requested_by: str) -> None:
        available = sorted(available)
        super().__init__(
            f"fixture '{name}' not found (requested by {requested_by}).\n"
            f"available fixtures: {', '.join(available) or '<none>'}"
        )
        self.name = name
        self.available = available
        self.requested_by = requested_by


class FixtureCycleError(FixtureError):
    """Raised when fixtures depend on each other recursively."""

    def __init__(self, chain: tuple[str, ...]) -> None:
        super().__init__(f"recursive dependency involving fixture: {' -> '.join(chain)}")
        self.chain = chain


class ScopeMismatchError(FixtureError):
    """Raised when a fixture requests another fixture with a narrower scope."""

    def __init__(
        self, name: str, scope: str, requested_by: str, requester_scope: str
    ) -> None:
        super().__init__(
            f"{requester_scope}-scoped fixture '{requested_by}' cannot use "
            f"{scope}-scoped fixture '{name}'"
        )
        self.name = name
        self.scope = scope
        self.requested_by = requested_by
        self.requester_scope = requester_scope


class FixtureDefinitionError(FixtureError):
    """Raised when a fixture function is not a valid fixture."""

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"fixture '{name}' {reason}")
        self.name = name
        self.reason = reason


# ============================================================================
#                           Parametrization errors
# ============================================================================


class ParametrizeError(TrialkitError, ValueError):
    """Raised when a parametrize declaration is malformed."""
