"""CLI command for scoring candidates and selecting a portfolio."""

import json
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from outcome_runtime.cli.documents import PortfolioDocument, parse_document
from outcome_runtime.core.exceptions import OutcomeRuntimeError
from outcome_runtime.core.logging import get_logger
from outcome_runtime.core.settings import OutcomeRuntimeSettings
from outcome_runtime.portfolio import (
    ScoredCandidate,
    score_candidates,
    select_portfolio,
)

logger = get_logger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 2


def _create_portfolio_table(title: str = "Candidates") -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Title", style="green")
    table.add_column("Score", style="yellow", justify="right")
    table.add_column("Risk", style="magenta")
    table.add_column("Effort (h)", justify="right")
    table.add_column("Files", style="dim")
    table.add_column("Selected")
    return table


@click.command(name="portfolio")
@click.argument("file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--max-concurrent",
    "-n",
    type=click.IntRange(min=0),
    default=None,
    help="Maximum experiments to select (default from settings)",
)
@click.option(
    "--output",
    "-o",
    type=click.Choice(["console", "json"]),
    default="console",
    help="Output format",
)
@click.pass_obj
def portfolio_command(
    settings: OutcomeRuntimeSettings,
    file: Path,
    max_concurrent: int | None,
    output: str,
) -> None:
    """Score candidate hypotheses and select a non-conflicting portfolio.

    FILE is YAML or JSON with a `candidates` list.

    Examples:

      outcome-runtime portfolio candidates.yaml --max-concurrent=2

    Exit Codes:

      0 - Success
      2 - Error occurred
    """
    console = Console()
    limit = (
        max_concurrent
        if max_concurrent is not None
        else settings.portfolio.max_concurrent
    )

    try:
        document = parse_document(file, PortfolioDocument)
        scored = score_candidates(document.candidates)
        selected = select_portfolio(scored, limit)
    except (OutcomeRuntimeError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_ERROR)

    logger.debug(
        "portfolio_selected",
        file=str(file),
        candidates=len(scored),
        selected=[c.title for c in selected],
        max_concurrent=limit,
    )

    if output == "json":
        click.echo(
            json.dumps(
                {
                    "max_concurrent": limit,
                    "selected": [c.model_dump(mode="json") for c in selected],
                    "candidates": [c.model_dump(mode="json") for c in scored],
                },
                indent=2,
            )
        )
    else:
        _output_console(scored, selected, limit, console)

    sys.exit(EXIT_SUCCESS)


def _output_console(
    scored: list[ScoredCandidate],
    selected: list[ScoredCandidate],
    limit: int,
    console: Console,
) -> None:
    table = _create_portfolio_table(
        f"Candidates ({len(selected)} of max {limit} selected)"
    )
    chosen = {id(c) for c in selected}
    ranked = sorted(scored, key=lambda c: c.score, reverse=True)
    for rank, candidate in enumerate(ranked, start=1):
        table.add_row(
            str(rank),
            candidate.title or "-",
            f"{candidate.score:.4f}",
            candidate.risk_level.value,
            f"{candidate.effort_hours:g}",
            ", ".join(candidate.affected_files) or "-",
            "[green]yes[/green]" if id(candidate) in chosen else "[dim]no[/dim]",
        )
    console.print(table)
