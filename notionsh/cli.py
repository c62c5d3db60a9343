import asyncio
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from .config import (
    AppConfig,
    ConfigError,
    ensure_config_exists,
    get_config_path,
    load_config,
    save_config,
)
from .decorators import handle_cli_errors
from .notion import NotionGateway
from .repl import ShellSession
from .vfs import NotionVFS

# Initialize Rich Console
console = Console()

# Configure logging to use Rich's RichHandler
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, console=Console(stderr=True))],
)
logger = logging.getLogger(__name__)

app = typer.Typer(help="Browse and edit a Notion workspace as a virtual filesystem.")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose mode"),
):
    """
    notionsh - a shell over your Notion pages.

    Every page is a directory with an index.md holding its content as
    Markdown; databases show up as read-only [db:<id>] placeholders.
    """
    ctx.obj = {"verbose": verbose}
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def _load(ctx: typer.Context) -> AppConfig:
    config = load_config()
    verbose = bool(ctx.obj and ctx.obj.get("verbose"))
    if not verbose:
        level = logging.getLevelName(config.logging.level.upper())
        if not isinstance(level, int):
            raise ConfigError(f"Unknown log level: {config.logging.level}")
        logging.getLogger().setLevel(level)
    return config


def _gateway(config: AppConfig) -> NotionGateway:
    return NotionGateway(
        config.require_api_key(),
        base_url=config.notion.base_url,
        notion_version=config.notion.notion_version,
        timeout=config.notion.timeout,
        max_retries=config.notion.max_retries,
        retry_base_delay=config.notion.retry_base_delay,
    )


def _vfs(config: AppConfig, gateway: NotionGateway) -> NotionVFS:
    return NotionVFS(
        gateway,
        cache_ttl_seconds=config.cache.ttl_seconds,
        root_page_id=config.notion.root_page_id,
    )


async def _run_shell(config: AppConfig) -> None:
    history_path = config.history_path()
    history_path.parent.mkdir(parents=True, exist_ok=True)

    async with _gateway(config) as gateway:
        session = ShellSession(
            _vfs(config, gateway),
            history_file=history_path,
            home=config.shell.home,
        )
        await session.run()


async def _run_command(config: AppConfig, command_line: str) -> None:
    async with _gateway(config) as gateway:
        session = ShellSession(_vfs(config, gateway), home=config.shell.home)
        await session.run_one_command(command_line)


@app.command()
@handle_cli_errors
def shell(ctx: typer.Context):
    """
    Launch the interactive shell.

    Commands:
        cd, pwd, ls, stat   - Navigate the page tree
        cat, grep           - Read and search page content
        touch, mkdir        - Create pages
        edit, vim           - Line editor (:wq saves, :q! discards)
        refresh             - Rebuild the index
        help                - Show help

    Example:
        NOTION_API_KEY=secret_... notionsh shell
    """
    config = _load(ctx)
    asyncio.run(_run_shell(config))


@app.command("exec")
@handle_cli_errors
def exec_command(
    ctx: typer.Context,
    command_line: str = typer.Argument(..., help='Shell command to run, e.g. "ls -l /pages"'),
):
    """
    Run a single shell command and exit.

    Example:
        notionsh exec "grep -r -i todo /pages"
    """
    config = _load(ctx)
    asyncio.run(_run_command(config, command_line))


@app.command()
@handle_cli_errors
def config(
    show: bool = typer.Option(False, "--show", help="Show current configuration"),
    init: bool = typer.Option(False, "--init", help="Initialize config file with defaults"),
    set_api_key: Optional[str] = typer.Option(None, "--set-api-key", help="Set the Notion integration token"),
    set_root_page: Optional[str] = typer.Option(None, "--set-root-page", help="Mount only the subtree under this page id"),
    set_ttl: Optional[int] = typer.Option(None, "--set-ttl", help="Set the index/content cache TTL in seconds"),
):
    """
    View or edit notionsh configuration.

    Configuration is stored at ~/.config/notionsh/config.json (or ~/.notionsh/config.json).
    Environment variables (NOTION_API_KEY, NOTION_ROOT_PAGE_ID,
    CACHE_TTL_SECONDS, LOG_LEVEL) override it.

    Examples:
        notionsh config --show
        notionsh config --set-api-key secret_xxx --set-ttl 120
    """
    if init:
        config_path = ensure_config_exists()
        console.print(f"[green]Configuration initialized at {config_path}[/green]")
        return

    has_settings = any([set_api_key is not None, set_root_page is not None, set_ttl is not None])

    if show or not has_settings:
        current = load_config()
        config_path = get_config_path()

        console.print("\n[bold]notionsh Configuration[/bold]")
        console.print(f"[dim]Location: {config_path}[/dim]\n")

        console.print("[bold cyan]Notion:[/bold cyan]")
        if current.notion.api_key:
            key = current.notion.api_key
            console.print(f"  API Key:     {key[:4]}...{key[-4:]}")
        else:
            console.print("  API Key:     [dim]not set[/dim]")
        console.print(f"  Root Page:   {current.notion.root_page_id or '[dim]whole workspace[/dim]'}")
        console.print(f"  API URL:     {current.notion.base_url}")
        console.print(f"  Version:     {current.notion.notion_version}")
        console.print(f"  Max Retries: {current.notion.max_retries}")

        console.print("\n[bold cyan]Cache:[/bold cyan]")
        console.print(f"  TTL:         {current.cache.ttl_seconds}s")

        console.print("\n[bold cyan]Shell:[/bold cyan]")
        console.print(f"  Home:        {current.shell.home}")
        console.print(f"  History:     {current.history_path()}")
        console.print(f"  Log Level:   {current.logging.level}")
        return

    if set_ttl is not None and set_ttl <= 0:
        raise ConfigError("TTL must be a positive number of seconds")

    # Edit the file itself so environment overrides are not persisted
    config_path = get_config_path()
    stored = load_config(environ={})

    console.print("[blue]Updating configuration:[/blue]")
    if set_api_key is not None:
        stored.notion.api_key = set_api_key
        console.print("  • API key: ****")
    if set_root_page is not None:
        stored.notion.root_page_id = set_root_page or None
        console.print(f"  • Root page: {set_root_page or 'whole workspace'}")
    if set_ttl is not None:
        stored.cache.ttl_seconds = set_ttl
        console.print(f"  • Cache TTL: {set_ttl}s")

    save_config(stored, config_path)
    console.print(f"[green]Saved to {config_path}[/green]")


if __name__ == "__main__":
    app()
