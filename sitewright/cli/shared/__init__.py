"""Shared CLI utilities for plan and redesign commands."""

from sitewright.cli.shared.submission import load_request, load_website

__all__ = ["load_request", "load_website"]
