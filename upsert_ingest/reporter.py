from __future__ import annotations

from typing import List, Sequence, Tuple

from rich import box
from rich.console import Console
from rich.table import Table

from upsert_ingest.processor import ProcessOutcome
from upsert_ingest.security.authenticator import ValidationProblem


def print_outcomes(outcomes: Sequence[Tuple[str, ProcessOutcome]], console: Console | None = None) -> None:
    """
    Render per-payload ingest outcomes as a rich table, failures last.
    """
    console = console or Console()

    if not outcomes:
        console.print("[yellow]No payloads processed.[/yellow]")
        return

    failed = sum(1 for _, outcome in outcomes if not outcome.succeeded)
    table = Table(
        title="Upsert Ingest Results",
        box=box.ROUNDED,
        caption=f"{len(outcomes) - failed} succeeded, {failed} failed",
    )
    table.add_column("Payload", style="cyan", no_wrap=True)
    table.add_column("Route", justify="center")
    table.add_column("Records", justify="right", style="magenta")
    table.add_column("Statements", justify="right", style="magenta")
    table.add_column("Duration (s)", justify="right", style="green")
    table.add_column("Error", style="red")

    ordered: List[Tuple[str, ProcessOutcome]] = sorted(
        outcomes, key=lambda item: (not item[1].succeeded, item[0])
    )
    for name, outcome in ordered:
        route = "[green]success[/green]" if outcome.succeeded else "[red]failure[/red]"
        table.add_row(
            name,
            route,
            f"{outcome.records:,}",
            f"{outcome.statements:,}",
            f"{outcome.duration_seconds:.3f}",
            str(outcome.error) if outcome.error else "",
        )

    console.print(table)


def print_problems(problems: Sequence[ValidationProblem], console: Console | None = None) -> None:
    """Render validation problems; prints a confirmation when there are none."""
    console = console or Console()
    if not problems:
        console.print("[green]Configuration is valid.[/green]")
        return

    table = Table(title="Validation Problems", box=box.ROUNDED)
    table.add_column("Subject", style="cyan", no_wrap=True)
    table.add_column("Input", style="magenta")
    table.add_column("Explanation", style="red")
    for problem in problems:
        table.add_row(problem.subject, problem.input or "", problem.explanation)
    console.print(table)
