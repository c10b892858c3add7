"""trialkit

A small test-support toolkit: plain assertions with readable failures,
exception-expectation scopes, fixtures injected by parameter name,
parametrized test tables, marks, mocks, and a runner that discovers and
executes tests by convention.
"""

from .assertions import approx, check, check_equal, check_in, check_is_instance
from .fixtures import FixtureRequest, fixture
from .marks import mark
from .mocks import ANY, DEFAULT, Mock, call
from .outcomes import fail, skip, xfail
from .parametrize import param, parametrize
from .patching import Patcher, patch
from .raises import does_not_raise, raises

__all__ = [
    "__version__",
    "ANY",
    "DEFAULT",
    "FixtureRequest",
    "Mock",
    "Patcher",
    "approx",
    "call",
    "check",
    "check_equal",
    "check_in",
    "check_is_instance",
    "does_not_raise",
    "fail",
    "fixture",
    "mark",
    "param",
    "parametrize",
    "patch",
    "raises",
    "skip",
    "xfail",
]
__version__ = "0.1.0"
