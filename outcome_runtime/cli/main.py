"""Main CLI entry point for the outcome runtime."""

import logging
import sys
from pathlib import Path

import click
import yaml

from outcome_runtime._version import __version__
from outcome_runtime.cli.commands.portfolio import portfolio_command
from outcome_runtime.cli.commands.significance import significance_command
from outcome_runtime.core.logging import (
    configure_logging_from_settings,
    correlation_context,
)
from outcome_runtime.core.settings import (
    OutcomeRuntimeSettings,
    generate_example_config,
    get_settings,
)

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 2


@click.group(invoke_without_command=True)
@click.option(
    "--config",
    "-c",
    "config_file",
    type=click.Path(exists=True, path_type=Path),
    help="Path to outcome.config.yaml configuration file",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output",
)
@click.version_option(version=__version__, prog_name="outcome-runtime")
@click.pass_context
def cli(ctx: click.Context, config_file: Path | None, verbose: bool) -> None:
    """Outcome runtime - experiment decision and safety control plane.

    Evaluates experiments with an always-valid sequential test and selects
    which candidate hypotheses to run.

    Examples:

      # Evaluate a measurement file
      outcome-runtime significance checkout.yaml

      # Pick at most two non-conflicting experiments
      outcome-runtime portfolio candidates.yaml --max-concurrent=2

      # Print an example configuration file
      outcome-runtime config
    """
    try:
        settings = get_settings(config_file=config_file)
    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(EXIT_ERROR)

    configure_logging_from_settings(
        settings.logging, level=logging.DEBUG if verbose else None
    )
    ctx.with_resource(correlation_context())
    ctx.obj = settings

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command(name="config")
@click.option(
    "--output",
    "-o",
    "output_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the example configuration to this file",
)
@click.option(
    "--show",
    is_flag=True,
    help="Show the effective configuration instead of the example",
)
@click.pass_obj
def config_command(
    settings: OutcomeRuntimeSettings, output_path: Path | None, show: bool
) -> None:
    """Print an example or the effective configuration.

    Examples:

      outcome-runtime config > outcome.config.yaml

      outcome-runtime config --show
    """
    if show:
        click.echo(
            yaml.safe_dump(settings.model_dump(mode="json"), sort_keys=False),
            nl=False,
        )
        return

    example = generate_example_config(output_path)
    if output_path:
        click.echo(f"Example configuration written to {output_path}")
    else:
        click.echo(example, nl=False)


cli.add_command(significance_command)
cli.add_command(portfolio_command)


def main() -> None:
    """Main entry point for the CLI."""
    cli(auto_envvar_prefix="OUTCOME")


if __name__ == "__main__":
    main()
