"""Command-line interface for focusgroup."""

from focusgroup.cli.main import app

__all__ = ["app", "main"]


def main() -> None:
    """Entry point for the CLI."""
    app()
