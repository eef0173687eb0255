"""Command-line interface for earwise."""

from .main import app, main

__all__ = ["app", "main"]
