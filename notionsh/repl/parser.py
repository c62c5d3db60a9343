"""Command line tokenization for the shell."""

import shlex
from dataclasses import dataclass, field
from typing import List


@dataclass
class ParsedCommand:
    """A command name with its arguments."""
    command: str
    args: List[str] = field(default_factory=list)


def tokenize(line: str) -> List[str]:
    """Split a command line into words.

    Supports single/double quotes and backslash escapes.

    Raises:
        ValueError: Unbalanced quotes
    """
    return shlex.split(line)


def parse_command_line(line: str) -> ParsedCommand:
    """Parse a command line into a ParsedCommand (empty command for blank input)."""
    tokens = tokenize(line.strip())
    if not tokens:
        return ParsedCommand(command="")
    return ParsedCommand(command=tokens[0], args=tokens[1:])
