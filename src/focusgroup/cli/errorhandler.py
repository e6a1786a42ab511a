"""CLI error handling utilities."""

from collections.abc import Generator
from contextlib import contextmanager

import typer
from pydantic import ValidationError
from rich.markup import escape

from focusgroup.config.exceptions import ApiKeyNotFoundError, ConfigError
from focusgroup.llm.exceptions import FatalRequestError, LLMError
from focusgroup.logging_setup import console
from focusgroup.orchestration.exceptions import RunFatalError


@contextmanager
def handle_cli_errors(*, debug: bool = False) -> Generator[None, None, None]:
    """Context manager to handle CLI errors gracefully.

    Args:
        debug: If True, re-raise with the full traceback. If False, print a
            user-friendly error and exit with status 1.

    """
    try:
        yield
    except (KeyboardInterrupt, SystemExit, typer.Exit):
        raise
    except ApiKeyNotFoundError as e:
        if debug:
            raise
        console.print(f"[bold red]🔑 API Key Missing:[/bold red] {escape(str(e))}")
        console.print(
            "Please set the [bold]GOOGLE_API_KEY[/bold] environment variable.\n"
            "You can get one at [cyan]https://aistudio.google.com/app/apikey[/cyan]"
        )
        raise typer.Exit(1) from e
    except (ConfigError, ValidationError) as e:
        if debug:
            raise
        console.print(f"[bold red]⚙️ Configuration Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1) from e
    except RunFatalError as e:
        if debug:
            raise
        console.print(f"[bold red]🚨 Simulation Failed:[/bold red] {escape(str(e))}")
        console.print(f"[dim]{len(e.logs)} log entries and {len(e.consumer_states)} persona states were recorded.[/dim]")
        raise typer.Exit(1) from e
    except FatalRequestError as e:
        if debug:
            raise
        console.print(f"[bold red]🚫 Request Rejected:[/bold red] {escape(str(e))}")
        raise typer.Exit(1) from e
    except LLMError as e:
        if debug:
            raise
        console.print(f"[bold red]🤖 Generation Failed:[/bold red] {escape(str(e))}")
        raise typer.Exit(1) from e
    except Exception as e:
        if debug:
            console.print_exception(show_locals=False)
            raise typer.Exit(1) from e

        console.print(f"[bold red]💥 An unexpected error occurred:[/bold red] {escape(str(e))}")
        console.print("[dim]Run with [bold]--debug[/bold] for more details.[/dim]")
        raise typer.Exit(1) from e
