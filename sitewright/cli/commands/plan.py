"""Plan command: show how a page would be chunked and routed."""

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from sitewright.cli.callbacks import validate_input_file
from sitewright.cli.shared import load_website
from sitewright.config import get_settings
from sitewright.exceptions import SitewrightError
from sitewright.utils.logging import get_logger, setup_logging

console = Console()
log = get_logger(__name__)


def plan(
    input_file: Annotated[
        Path,
        typer.Argument(
            help="HTML page or JSON submission bundle.",
            callback=validate_input_file,
            resolve_path=True,
        ),
    ],
    css: Annotated[
        Path | None,
        typer.Option("--css", help="Stylesheet for the page.", exists=True, dir_okay=False),
    ] = None,
    js: Annotated[
        Path | None,
        typer.Option("--js", help="Script for the page.", exists=True, dir_okay=False),
    ] = None,
    max_chunk_tokens: Annotated[
        int | None,
        typer.Option("--max-chunk-tokens", min=1, help="Per-chunk token ceiling."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose output."),
    ] = False,
) -> None:
    """Chunk and route a page without calling any model.

    Examples:
        sitewright plan page.html
        sitewright plan page.html --css site.css --max-chunk-tokens 8000
    """
    from sitewright.core.pipeline import RedesignPipeline

    setup_logging(level="DEBUG" if verbose else "WARNING")

    settings = get_settings()
    if max_chunk_tokens is not None:
        settings = settings.model_copy(
            update={
                "routing": settings.routing.model_copy(
                    update={"max_chunk_tokens": max_chunk_tokens}
                )
            }
        )

    try:
        website = load_website(input_file, css, js)
        redesign_plan = RedesignPipeline(settings=settings).plan(website)
    except SitewrightError as e:
        log.error("Planning failed", error=str(e))
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    table = Table(title="Chunk Plan")
    table.add_column("Chunk", style="bold")
    table.add_column("Section")
    table.add_column("Priority")
    table.add_column("Images", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Tier")
    table.add_column("Model")
    table.add_column("Wait", justify="right")

    chunks_by_id = {chunk.id: chunk for chunk in redesign_plan.chunks}
    for chunk_id, selection in redesign_plan.routing.items():
        chunk = chunks_by_id[chunk_id]
        tier_style = "magenta" if selection.tier == "high" else "cyan"
        table.add_row(
            chunk_id,
            chunk.type,
            chunk.priority,
            str(len(chunk.images)),
            f"{chunk.estimated_tokens:,}",
            f"[{tier_style}]{selection.tier}[/{tier_style}]",
            selection.model,
            f"{selection.wait_time:.0f}s" if selection.wait_time else "-",
        )
    console.print(table)

    analysis = redesign_plan.image_analysis
    metrics = redesign_plan.metrics
    console.print()
    console.print(
        f"  [bold]Mode:[/bold] {'chunked' if redesign_plan.chunked else 'single request'}"
    )
    console.print(
        f"  [bold]Images:[/bold] {analysis.count} "
        f"(critical {len(analysis.critical_images)}, product {len(analysis.product_images)}, "
        f"hero {len(analysis.hero_images)}, decorative {len(analysis.decorative_images)})"
    )
    console.print(
        f"  [bold]Tokens:[/bold] high {metrics.high_tokens:,}, "
        f"efficient {metrics.efficient_tokens:,} (budget {metrics.total_budget:,})"
    )
    console.print(f"  [bold]Estimated time:[/bold] {redesign_plan.estimated_seconds}s")
    console.print(f"  [bold]Estimated cost:[/bold] ${redesign_plan.cost.total:.4f}")

    if redesign_plan.feasibility.feasible:
        console.print("\n[bold green]Plan is feasible within the configured budgets.[/bold green]")
        return

    console.print("\n[bold yellow]Feasibility issues:[/bold yellow]")
    for issue in redesign_plan.feasibility.issues:
        console.print(f"  - {issue}")
    for recommendation in redesign_plan.feasibility.recommendations:
        console.print(f"  [dim]> {recommendation}[/dim]")
    suggested = redesign_plan.suggested_strategy
    console.print(
        f"\n  [bold]Suggested strategy:[/bold] {suggested.name} "
        f"(high {suggested.high_budget:,}, efficient {suggested.efficient_budget:,})"
    )
