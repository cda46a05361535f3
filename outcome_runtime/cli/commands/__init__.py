"""CLI commands package for the outcome runtime."""

from outcome_runtime.cli.commands.portfolio import portfolio_command
from outcome_runtime.cli.commands.significance import significance_command

__all__ = [
    "portfolio_command",
    "significance_command",
]
