"""timespine command-line interface (Typer + rich)."""

from timespine.cli.app import app

__all__ = ["app"]
