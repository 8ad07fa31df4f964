"""Sitewright - image-preserving, rate-limited website redesign with LLMs."""

__version__ = "0.1.0"
