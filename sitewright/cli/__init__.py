"""Command-line interface for Sitewright."""
