"""Allow ``python -m trialkit``."""

from trialkit.entrypoints.cli.main import trialkit

if __name__ == "__main__":
    trialkit()  # pylint: disable=no-value-for-parameter
