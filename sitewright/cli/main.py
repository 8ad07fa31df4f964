"""Main CLI application using Typer."""

from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console

from sitewright import __version__
from sitewright.cli.commands.plan import plan
from sitewright.cli.commands.redesign import redesign

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="sitewright",
    help="Rate-limit aware website redesign with LLMs that never drops an image.",
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)

console = Console()

app.command(name="plan", help="Show how a page would be chunked and routed.")(plan)
app.command(name="redesign", help="Redesign a website.")(redesign)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]Sitewright[/bold blue] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Sitewright - website redesign under provider token quotas.

    Large or image-heavy pages are split into sections, routed to a
    high-capability or cost-efficient model tier and processed one at a
    time within each tier's per-minute token budget.
    """
    pass


if __name__ == "__main__":
    app()
