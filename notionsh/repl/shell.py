"""Interactive shell over the Notion VFS."""

import asyncio
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, List, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.history import FileHistory, InMemoryHistory
from prompt_toolkit.styles import Style
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from notionsh.repl.edit import HELP_LINE, EditSession
from notionsh.repl.parser import parse_command_line
from notionsh.vfs import DirectoryNode, Node, NotADirectoryError, NotFoundError, NotionVFS, PlaceholderNode
from notionsh.vfs.resolver import HOME, PathError

logger = logging.getLogger(__name__)

# Syncs slower than this are logged at info level
SLOW_SYNC_SECONDS = 0.75

COMMAND_HELP = [
    ("help", "Show this help"),
    ("pwd", "Print current directory"),
    ("ls [-l] [path]", "List files/pages"),
    ("cd <path>", "Change directory"),
    ("cat <file|dir>", "Print Markdown content"),
    ("stat <path>", "Show node metadata"),
    ("grep [-r] [-i] <pat> [path]", "Search in Markdown files"),
    ("touch <path>", "Create a new page"),
    ("mkdir <path>", "Create a new page directory"),
    ("edit <file|dir>", "Open mini editor"),
    ("vim <file|dir>", "Alias to edit"),
    ("refresh", "Rebuild Notion index"),
    ("exit", "Exit session"),
]


def format_time(value: Optional[str]) -> str:
    """ISO timestamp as "YYYY-MM-DD HH:MM" (UTC), or "-"."""
    if not value:
        return "-"
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return "-"
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.strftime("%Y-%m-%d %H:%M")


def mode_for(node: Node) -> str:
    if isinstance(node, DirectoryNode):
        return "drwxr-xr-x"
    if isinstance(node, PlaceholderNode):
        return "-r--r--r--"
    return "-rw-r--r--"


def display_name(node: Node) -> str:
    return f"{node.name}/" if isinstance(node, DirectoryNode) else node.name


class PathCompleter(Completer):
    """Tab completion for VFS paths."""

    def __init__(self, shell: "ShellSession"):
        self.shell = shell

    def get_completions(self, document, complete_event):
        """Get path completion candidates."""
        text = document.text_before_cursor
        words = text.split()

        # Only complete arguments, never the command itself
        if len(words) > 1 and not text.endswith(" "):
            partial = words[-1]
        elif words and text.endswith(" "):
            partial = ""
        else:
            return

        for candidate in self.shell.vfs.complete_path(partial, self.shell.cwd):
            yield Completion(candidate, start_position=-len(partial))


class ShellSession:
    """One user's shell over the shared VFS.

    Provides a Linux-like shell interface with commands:
    - cd, pwd, ls, stat: Navigate the page tree
    - cat, grep: Read and search page content
    - touch, mkdir: Create pages
    - edit, vim: Line editor with :wq / :q! directives
    - refresh: Force a rebuild of the index
    - help, exit, quit, logout

    Output goes to a rich Console bound to ``stream``, so the session can
    run over any text stream, not only the local terminal.
    """

    def __init__(
        self,
        vfs: NotionVFS,
        stream: Optional[IO[str]] = None,
        width: Optional[int] = None,
        history_file: Optional[Path] = None,
        home: str = HOME,
    ):
        """Initialize the shell session.

        Args:
            vfs: Shared VFS
            stream: Output stream (stdout if None)
            width: Console width (auto-detected if None)
            history_file: Prompt history file for interactive mode
            home: Starting directory
        """
        self.vfs = vfs
        self.console = Console(file=stream, width=width, highlight=False, emoji=False, soft_wrap=True)
        self.cwd = home
        self.home = home
        self.running = True
        self.editor = EditSession(vfs)
        self.history_file = history_file
        self._warmup: Optional[asyncio.Future] = None

        self.commands = {
            "help": self.cmd_help,
            "pwd": self.cmd_pwd,
            "ls": self.cmd_ls,
            "cd": self.cmd_cd,
            "cat": self.cmd_cat,
            "stat": self.cmd_stat,
            "grep": self.cmd_grep,
            "touch": self.cmd_touch,
            "mkdir": self.cmd_mkdir,
            "edit": self.cmd_edit,
            "vim": self.cmd_edit,
            "refresh": self.cmd_refresh,
            "exit": self.cmd_exit,
            "quit": self.cmd_exit,
            "logout": self.cmd_exit,
        }

    # Output helpers

    def write_line(self, text: str = "") -> None:
        self.console.print(text, markup=False)

    def write_error(self, message: str) -> None:
        self.console.print(f"[red]error:[/red] {escape(message)}")

    def get_prompt(self) -> str:
        """Prompt like "notion:/pages/home$ ", or "edit> " while editing."""
        if self.editor.active:
            return "edit> "
        return f"notion:{self.cwd}$ "

    # Session lifecycle

    def start(self) -> None:
        """Print the banner and start warming the index in the background."""
        self.write_line("Notion SSH Virtual Manager")
        self.write_line('Type "help" for commands.')
        if not self.vfs.is_indexed():
            self.write_line("Index warm-up started in background. First data command may take longer.")
        self._warmup = self.vfs.schedule_refresh()

    async def handle_line(self, line: str) -> None:
        """Run one line of input; errors are reported, never raised."""
        try:
            if self.editor.active:
                for output in await self.editor.handle_line(line):
                    self.write_line(output)
            else:
                await self.dispatch(line)
        except (PathError, ValueError) as e:
            self.write_error(str(e))
        except Exception as e:
            logger.debug(f"Command failed: {line!r}", exc_info=True)
            self.write_error(str(e))

    async def run_one_command(self, line: str) -> None:
        """Run a single command and let errors propagate (non-interactive use)."""
        await self.dispatch(line)

    async def dispatch(self, line: str) -> None:
        parsed = parse_command_line(line)
        command = parsed.command.lower()
        if not command:
            return

        handler = self.commands.get(command)
        if handler is None:
            raise ValueError(f"Unknown command: {command}")
        await handler(parsed.args)

    async def ensure_indexed(self, force: bool = False) -> None:
        """Make sure the index is usable before a data command.

        Blocks only on the first warm-up or an explicit forced refresh;
        otherwise a stale tree is served while a background refresh runs.
        """
        if not force and self.vfs.is_indexed():
            self.vfs.schedule_refresh()
            return

        self.write_line("(syncing Notion index...)")
        started = time.monotonic()
        await self.vfs.refresh(force=force)
        elapsed = time.monotonic() - started
        self.write_line(f"(Notion index ready in {elapsed * 1000:.0f}ms)")

        if elapsed > SLOW_SYNC_SECONDS:
            logger.info(f"Notion index sync completed in {elapsed * 1000:.0f}ms (force={force})")

    # Command implementations

    async def cmd_help(self, args: List[str]) -> None:
        """Show available commands.

        Usage: help
        """
        self.write_line("Available commands:")
        for usage, description in COMMAND_HELP:
            self.write_line(f"  {usage:<29}{description}")

    async def cmd_pwd(self, args: List[str]) -> None:
        """Print working directory.

        Usage: pwd
        """
        self.write_line(self.cwd)

    async def cmd_ls(self, args: List[str]) -> None:
        """List directory contents.

        Usage: ls [-l] [path]
        """
        await self.ensure_indexed()

        long_format = False
        target = self.cwd
        for arg in args:
            if arg.startswith("-"):
                long_format = long_format or "l" in arg
                continue
            target = arg

        nodes = self.vfs.list(target, self.cwd)
        if long_format:
            self._print_long_listing(nodes)
        elif nodes:
            self.write_line("  ".join(display_name(node) for node in nodes))

    def _print_long_listing(self, nodes: List[Node]) -> None:
        table = Table(box=None, show_header=False, pad_edge=False, padding=(0, 2))
        table.add_column("Mode", no_wrap=True)
        table.add_column("Owner", no_wrap=True)
        table.add_column("Edited", no_wrap=True)
        table.add_column("Size", justify="right", no_wrap=True)
        table.add_column("Name", no_wrap=True)

        for node in nodes:
            owner = (node.meta.owner or "-")[:24].ljust(24)
            size_hint = len(node.children) if isinstance(node, DirectoryNode) else 0
            table.add_row(
                mode_for(node),
                escape(owner),
                format_time(node.meta.last_edited_time),
                str(size_hint).rjust(6),
                escape(display_name(node)),
            )

        self.console.print(table)

    async def cmd_cd(self, args: List[str]) -> None:
        """Change directory.

        Usage: cd [path]   (no path goes home)
        """
        await self.ensure_indexed()

        target = args[0] if args else self.home
        node = self.vfs.stat(target, self.cwd)
        if node is None:
            raise NotFoundError(f"No such path: {self.vfs.resolve(target, self.cwd)}")
        if not isinstance(node, DirectoryNode):
            raise NotADirectoryError(f"Not a directory: {node.path}")
        self.cwd = node.path

    async def cmd_cat(self, args: List[str]) -> None:
        """Print a page as Markdown.

        Usage: cat <file|dir>
        """
        await self.ensure_indexed()

        if not args:
            raise ValueError("Usage: cat <file|dir>")
        content = await self.vfs.read_file(args[0], self.cwd)
        if content:
            self.write_line(content)

    async def cmd_stat(self, args: List[str]) -> None:
        """Show metadata for a node.

        Usage: stat <path>
        """
        await self.ensure_indexed()

        target = args[0] if args else "."
        node = self.vfs.stat(target, self.cwd)
        if node is None:
            raise NotFoundError(f"No such path: {self.vfs.resolve(target, self.cwd)}")

        info = node.get_info()
        table = Table(box=box.SIMPLE, show_header=False)
        table.add_column("Field", style="cyan", no_wrap=True)
        table.add_column("Value")
        for key, value in info.items():
            if value is None:
                value = "-"
            table.add_row(key, escape(str(value)))
        self.console.print(table)

    async def cmd_grep(self, args: List[str]) -> None:
        """Search page content.

        Usage: grep [-r] [-i] <pattern> [path]
        Options:
            -r: Recursive search
            -i: Case insensitive
        """
        await self.ensure_indexed()

        recursive = False
        ignore_case = False
        positional = []
        for arg in args:
            if arg == "-r":
                recursive = True
            elif arg == "-i":
                ignore_case = True
            else:
                positional.append(arg)

        if not positional:
            raise ValueError("Usage: grep [-r] [-i] <pattern> [path]")

        pattern = positional[0]
        target = positional[1] if len(positional) > 1 else self.cwd
        matches = await self.vfs.grep(pattern, target, self.cwd, recursive, ignore_case)

        for match in matches:
            self.write_line(f"{match.path}:{match.line_number}:{match.line}")
        if not matches:
            self.write_line("(no matches)")

    async def cmd_touch(self, args: List[str]) -> None:
        """Create a new page.

        Usage: touch <path>
        """
        await self.ensure_indexed()

        if not args:
            raise ValueError("Usage: touch <path>")
        created = await self.vfs.touch(args[0], self.cwd)
        self.write_line(f"created {created}")

    async def cmd_mkdir(self, args: List[str]) -> None:
        """Create a new page directory.

        Usage: mkdir <path>
        """
        await self.ensure_indexed()

        if not args:
            raise ValueError("Usage: mkdir <path>")
        created = await self.vfs.mkdir(args[0], self.cwd)
        self.write_line(f"created {created}")

    async def cmd_edit(self, args: List[str]) -> None:
        """Open the line editor on a page (created if missing).

        Usage: edit <file|dir>
        """
        await self.ensure_indexed()

        if not args:
            raise ValueError("Usage: edit <file|dir>")
        buffer = await self.editor.begin(args[0], self.cwd)

        self.write_line(f"-- EDIT MODE: {buffer.target_path} --")
        self.write_line(HELP_LINE)
        for line in self.editor.render():
            self.write_line(line)

    async def cmd_refresh(self, args: List[str]) -> None:
        """Rebuild the index now.

        Usage: refresh
        """
        await self.ensure_indexed(force=True)
        self.write_line("index refreshed")

    async def cmd_exit(self, args: List[str]) -> None:
        """Exit the shell.

        Usage: exit
        """
        self.running = False

    # Interactive mode

    def _prompt_session(self) -> PromptSession:
        history = FileHistory(str(self.history_file)) if self.history_file else InMemoryHistory()
        return PromptSession(
            history=history,
            completer=PathCompleter(self),
            style=Style.from_dict({"prompt": "ansicyan bold"}),
        )

    async def run(self) -> None:
        """Run the interactive loop until exit or EOF."""
        session = self._prompt_session()
        self.start()

        while self.running:
            try:
                line = await session.prompt_async(self.get_prompt())
            except KeyboardInterrupt:
                self.write_line("Use 'exit' or 'quit' to exit the shell.")
                continue
            except EOFError:
                break

            await self.handle_line(line)
