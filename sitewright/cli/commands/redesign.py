"""Redesign command: run the full pipeline and write the result."""

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from sitewright.cli.callbacks import (
    validate_design_style,
    validate_input_file,
    validate_output_dir,
)
from sitewright.cli.shared import load_request
from sitewright.config import get_settings
from sitewright.exceptions import SitewrightError
from sitewright.models import RedesignResponse
from sitewright.utils.logging import get_logger, setup_task_logging

if TYPE_CHECKING:
    from sitewright.config.settings import SitewrightSettings
    from sitewright.core.pipeline import PipelineResult
    from sitewright.models import RedesignRequest

console = Console()
log = get_logger(__name__)


def redesign(
    input_file: Annotated[
        Path,
        typer.Argument(
            help="HTML page or JSON submission bundle.",
            callback=validate_input_file,
            resolve_path=True,
        ),
    ],
    instructions: Annotated[
        str | None,
        typer.Option(
            "--instructions",
            "-i",
            help="What the redesign should achieve (required unless the bundle carries it).",
        ),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Output directory for the redesigned site.",
            callback=validate_output_dir,
            file_okay=False,
            resolve_path=True,
        ),
    ] = None,
    style: Annotated[
        str | None,
        typer.Option(
            "--style",
            help="Design style preset: modern, minimal, creative or corporate.",
            callback=validate_design_style,
        ),
    ] = None,
    audience: Annotated[
        str | None,
        typer.Option("--audience", help="Target audience."),
    ] = None,
    color: Annotated[
        str | None,
        typer.Option("--color", help="Primary colour (#rrggbb or a colour name)."),
    ] = None,
    css: Annotated[
        Path | None,
        typer.Option("--css", help="Stylesheet for the page.", exists=True, dir_okay=False),
    ] = None,
    js: Annotated[
        Path | None,
        typer.Option("--js", help="Script for the page.", exists=True, dir_okay=False),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose output."),
    ] = False,
) -> None:
    """Redesign a website with an LLM, keeping every image.

    Examples:
        sitewright redesign page.html -i "Make it feel premium"
        sitewright redesign bundle.json -o ./out --style minimal
    """
    settings = get_settings()

    task_id, log_path = setup_task_logging(
        log_dir=settings.log_dir,
        prefix="redesign",
        verbose=verbose,
    )
    if verbose:
        log.info("Logs will be saved to", log_file=str(log_path))

    config_dump = settings.model_dump()
    if config_dump.get("openai", {}).get("api_key"):
        config_dump["openai"]["api_key"] = "***"
    log.info("Task Configuration", task_id=task_id, config=config_dump)

    try:
        request = load_request(
            input_file,
            instructions,
            css_file=css,
            js_file=js,
            design_style=style,
            target_audience=audience,
            primary_color=color,
        )
    except SitewrightError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    output_dir = output or Path(settings.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    log.info("Starting redesign", input_file=str(input_file), output_dir=str(output_dir))

    try:
        result = _execute_redesign(request, settings)
    except KeyboardInterrupt:
        log.warning("Task Interrupted by KeyboardInterrupt", input_file=str(input_file))
        console.print("\n[yellow]Interrupted. Exiting...[/yellow]")
        raise typer.Exit(130) from None
    except Exception as e:
        log.error("Redesign failed", error=str(e), exc_info=True)
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    written = write_output(result.response, output_dir)
    log.info(
        "Task Completed Successfully",
        output_dir=str(output_dir),
        stats=result.stats.to_dict(),
    )

    console.print("[bold green]Redesign completed![/bold green]")
    for path in written:
        console.print(f"  Output: {path}")
    console.print()
    console.print(result.stats.format_summary())
    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")


def _execute_redesign(
    request: "RedesignRequest", settings: "SitewrightSettings"
) -> "PipelineResult":
    """Run the pipeline behind a progress bar."""
    from sitewright.core.pipeline import RedesignPipeline
    from sitewright.core.streaming import StreamingProgress

    pipeline = RedesignPipeline(settings=settings)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("({task.completed}/{task.total})"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Redesigning...", total=None)

        def on_progress(update: StreamingProgress) -> None:
            progress.update(
                task,
                description=update.current_action,
                total=update.total_chunks,
                completed=update.completed_chunks + update.failed_chunks,
            )

        return asyncio.run(pipeline.run(request, on_progress=on_progress))


def write_output(response: RedesignResponse, output_dir: Path) -> list[Path]:
    """Write the redesigned site as separate files."""
    files = {
        "index.html": response.html,
        "styles.css": response.css,
        "script.js": response.javascript,
        "NOTES.md": _format_notes(response),
    }
    written = []
    for name, content in files.items():
        path = output_dir / name
        path.write_text(content, encoding="utf-8")
        written.append(path)
    return written


def _format_notes(response: RedesignResponse) -> str:
    lines = ["# Redesign Notes", "", "## Design Rationale", "", response.design_rationale, ""]
    if response.improvements:
        lines.extend(["## Improvements", ""])
        lines.extend(f"- {item}" for item in response.improvements)
        lines.append("")
    return "\n".join(lines)
