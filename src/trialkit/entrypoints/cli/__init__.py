"""The ``trialkit`` command-line interface."""
