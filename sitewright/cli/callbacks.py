"""CLI callback functions."""

from pathlib import Path

import typer

from sitewright.config.constants import DESIGN_STYLES

INPUT_SUFFIXES = (".html", ".htm", ".json")


def validate_output_dir(value: Path | None) -> Path | None:
    """Validate output directory."""
    if value is None:
        return None

    if value.exists() and not value.is_dir():
        raise typer.BadParameter(f"Output path exists but is not a directory: {value}")

    return value


def validate_input_file(value: Path) -> Path:
    """Validate input file exists and is a page or a submission bundle."""
    if not value.exists():
        raise typer.BadParameter(f"File not found: {value}")

    if not value.is_file():
        raise typer.BadParameter(f"Path is not a file: {value}")

    if value.suffix.lower() not in INPUT_SUFFIXES:
        raise typer.BadParameter(
            f"Unsupported input '{value.suffix}'. Expected one of: {', '.join(INPUT_SUFFIXES)}"
        )

    return value


def validate_design_style(value: str | None) -> str | None:
    """Validate design style option."""
    if value is not None and value not in DESIGN_STYLES:
        raise typer.BadParameter(
            f"Invalid design style '{value}'. Options: {', '.join(DESIGN_STYLES)}"
        )

    return value
