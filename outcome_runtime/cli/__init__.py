"""Command line interface."""

from outcome_runtime.cli.main import cli, main

__all__ = ["cli", "main"]
