"""CLI command for evaluating the sequential test on a measurement file."""

import json
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from outcome_runtime.cli.documents import SignificanceDocument, parse_document
from outcome_runtime.core.exceptions import OutcomeRuntimeError
from outcome_runtime.core.logging import get_logger
from outcome_runtime.core.settings import OutcomeRuntimeSettings
from outcome_runtime.statistics import (
    SignificanceResult,
    evaluate_significance,
    relative_lift,
    significance_threshold,
)

logger = get_logger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILURE = 1  # kill threshold exceeded
EXIT_ERROR = 2


def _format_flag(value: bool, bad: bool = False) -> str:
    if not value:
        return "[dim]no[/dim]"
    return "[bold red]YES[/bold red]" if bad else "[green]yes[/green]"


def _output_console(
    result: SignificanceResult,
    threshold: float,
    lift_text: str | None,
    console: Console,
) -> None:
    table = Table(title="Sequential Test", show_header=True, header_style="bold cyan")
    table.add_column("Field", style="green", no_wrap=True)
    table.add_column("Value", justify="right")

    table.add_row("Control samples", str(result.sample_size_control))
    table.add_row("Treatment samples", str(result.sample_size_treatment))
    if result.reason:
        table.add_row("Reason", f"[yellow]{result.reason}[/yellow]")
    if result.estimated_delta is not None:
        table.add_row("Delta", f"{result.estimated_delta:.4f}")
    if result.confidence_interval is not None:
        lower, upper = result.confidence_interval
        table.add_row("Interval", f"[{lower:.4f}, {upper:.4f}]")
    if lift_text is not None:
        table.add_row("Relative lift", lift_text)
    if result.test_statistic is not None:
        table.add_row("Statistic", f"{result.test_statistic:.4g}")
    table.add_row("Threshold", f"{threshold:.4g}")
    table.add_row("Significant", _format_flag(result.significant))
    table.add_row("Meets success", _format_flag(result.meets_success_threshold))
    table.add_row(
        "Exceeds kill", _format_flag(result.exceeds_kill_threshold, bad=True)
    )
    console.print(table)


@click.command(name="significance")
@click.argument("file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--output",
    "-o",
    type=click.Choice(["console", "json"]),
    default="console",
    help="Output format",
)
@click.pass_obj
def significance_command(
    settings: OutcomeRuntimeSettings, file: Path, output: str
) -> None:
    """Evaluate the always-valid sequential test for a measurement file.

    FILE is YAML or JSON with a `plan` and either `measurements`
    (records with value and variant) or `control`/`treatment` value lists.

    Examples:

      outcome-runtime significance checkout.yaml

      outcome-runtime significance checkout.yaml --output=json

    Exit Codes:

      0 - Evaluated, kill threshold not exceeded
      1 - Kill threshold exceeded
      2 - Error occurred
    """
    console = Console()

    try:
        document = parse_document(file, SignificanceDocument)
        result = evaluate_significance(
            document.measurements,
            document.plan,
            ci_z_score=settings.statistics.ci_z_score,
            default_mixture_variance=settings.statistics.default_mixture_variance,
        )
        threshold = significance_threshold(document.plan.confidence_required)
        control, treatment = document.values()
        lift = relative_lift(control, treatment) if result.reason is None else None
    except (OutcomeRuntimeError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_ERROR)

    logger.debug(
        "significance_evaluated",
        file=str(file),
        significant=result.significant,
        exceeds_kill_threshold=result.exceeds_kill_threshold,
        reason=result.reason,
    )

    if output == "json":
        payload = result.model_dump(mode="json")
        payload["threshold"] = threshold
        if lift is not None:
            payload["relative_lift"] = lift.model_dump(mode="json")
        click.echo(json.dumps(payload, indent=2))
    else:
        lift_text = None
        if lift is not None:
            lift_text = (
                f"{lift.point_estimate:+.2%} "
                f"[{lift.lower:+.2%}, {lift.upper:+.2%}]"
            )
        _output_console(result, threshold, lift_text, console)

    sys.exit(EXIT_FAILURE if result.exceeds_kill_threshold else EXIT_SUCCESS)
