"""Entrypoints (inbound adapters) for trialkit.

Expose the toolkit to the outside world: currently the ``trialkit`` command
line. Parse and validate inputs, call the collector and runner, and present
results.
"""
