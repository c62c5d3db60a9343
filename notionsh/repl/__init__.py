"""Shell front end for the Notion VFS."""

from notionsh.repl.edit import EditBuffer, EditSession, EditSessionError, EditState
from notionsh.repl.parser import ParsedCommand, parse_command_line, tokenize
from notionsh.repl.shell import ShellSession

__all__ = [
    "ShellSession",
    "EditSession",
    "EditBuffer",
    "EditState",
    "EditSessionError",
    "ParsedCommand",
    "parse_command_line",
    "tokenize",
]
