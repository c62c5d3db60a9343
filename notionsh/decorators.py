"""Decorators for notionsh CLI commands."""

import functools
import logging
from typing import Any, Callable

import httpx
import typer
from rich.console import Console
from rich.markup import escape

from notionsh.config import ConfigError
from notionsh.notion.gateway import NotionAPIError
from notionsh.vfs import PathError, VFSError

logger = logging.getLogger(__name__)
console = Console(stderr=True)


def handle_cli_errors(func: Callable) -> Callable:
    """
    Decorator to handle errors raised by CLI commands.

    Centralizes the mapping from errors to exit codes:
    - ConfigError: Missing API key or bad settings
    - PathError / VFSError: Bad path, read-only target, write conflict
    - NotionAPIError / httpx.HTTPError: The API refused or could not be reached
    - ValueError: Bad command line
    - KeyboardInterrupt: exit code 130
    - General exceptions: Unexpected errors, logged with a traceback
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> Any:
        try:
            return func(*args, **kwargs)
        except ConfigError as e:
            console.print(f"[bold red]Configuration error:[/bold red] {escape(str(e))}")
            raise typer.Exit(code=2)
        except (PathError, VFSError) as e:
            console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
            raise typer.Exit(code=1)
        except NotionAPIError as e:
            console.print(f"[bold red]Notion API error:[/bold red] {escape(e.message)} ({e.code})")
            raise typer.Exit(code=1)
        except httpx.HTTPError as e:
            console.print(f"[bold red]Network error:[/bold red] {escape(str(e))}")
            raise typer.Exit(code=1)
        except ValueError as e:
            console.print(f"[bold red]Error:[/bold red] Invalid input: {escape(str(e))}")
            raise typer.Exit(code=1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Operation cancelled by user[/yellow]")
            raise typer.Exit(code=130)
        except typer.Exit:
            raise
        except Exception as e:
            logger.error(f"Unexpected error in {func.__name__}: {e}", exc_info=True)
            console.print(f"[bold red]Unexpected error:[/bold red] {escape(str(e))}")
            raise typer.Exit(code=1)

    return wrapper
