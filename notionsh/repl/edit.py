"""Line-buffer editor behind the shell's `edit` command.

States::

    IDLE --begin--> EDITING --commit--> COMMITTING --> IDLE
                       |
                       +--cancel--> CANCELLED --> IDLE

A commit leaves edit mode whether or not the write succeeds; after a
conflict the buffer is gone and the page has to be re-opened.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from notionsh.vfs import NotFoundError, NotionVFS

logger = logging.getLogger(__name__)

HELP_LINE = (
    "Commands: :wq save+quit, :q! quit, :p print, :clear, "
    ":set <n> <text>, :del <n>, :append <text>"
)

_SET = re.compile(r"^:set\s+(\d+)(?:\s(.*))?$")
_DEL = re.compile(r"^:del\s+(\d+)$")


class EditState(Enum):
    IDLE = "idle"
    EDITING = "editing"
    COMMITTING = "committing"
    CANCELLED = "cancelled"


class EditSessionError(Exception):
    """Directive not valid in the current state, or bad line number."""
    pass


@dataclass
class EditBuffer:
    """In-memory lines of the page being edited."""
    target_path: str
    lines: List[str] = field(default_factory=list)
    base_version: Optional[str] = None

    def text(self) -> str:
        return "\n".join(self.lines)


class EditSession:
    """Per-connection edit state machine.

    Attributes:
        state: Current EditState
        buffer: The open buffer while EDITING, else None
    """

    def __init__(self, vfs: NotionVFS):
        self.vfs = vfs
        self.state = EditState.IDLE
        self.buffer: Optional[EditBuffer] = None

    @property
    def active(self) -> bool:
        return self.state is EditState.EDITING

    def _require_editing(self) -> EditBuffer:
        if self.state is not EditState.EDITING or self.buffer is None:
            raise EditSessionError("Not in edit mode")
        return self.buffer

    def _check_line(self, number: int) -> int:
        buffer = self._require_editing()
        if number < 1 or number > len(buffer.lines):
            raise EditSessionError(f"Line out of range: {number}")
        return number - 1

    async def begin(self, path: str, cwd: str = "/") -> EditBuffer:
        """Open ``path`` for editing, creating the page if it does not exist.

        Args:
            path: Page file or directory
            cwd: Current working directory

        Returns:
            The new buffer
        """
        if self.state is not EditState.IDLE:
            raise EditSessionError("Already editing; :wq or :q! first")

        try:
            content = await self.vfs.read_file(path, cwd)
            target = self.vfs.resolve(path, cwd)
        except NotFoundError:
            target = await self.vfs.touch(path, cwd)
            content = await self.vfs.read_file(target)

        # Nothing awaited since the read, so this is the version we loaded
        base_version = self.vfs.observed_version(target)
        self.buffer = EditBuffer(
            target_path=target,
            lines=content.split("\n") if content else [],
            base_version=base_version,
        )
        self.state = EditState.EDITING
        logger.debug(f"Editing {target} (base version {base_version})")
        return self.buffer

    def replace_line(self, number: int, text: str) -> None:
        index = self._check_line(number)
        self.buffer.lines[index] = text

    def delete_line(self, number: int) -> None:
        index = self._check_line(number)
        del self.buffer.lines[index]

    def append_line(self, text: str) -> None:
        self._require_editing().lines.append(text)

    def clear(self) -> None:
        self._require_editing().lines = []

    def render(self) -> List[str]:
        """Numbered listing of the buffer."""
        buffer = self._require_editing()
        if not buffer.lines:
            return ["(empty buffer)"]
        return [f"{number:>4}  {line}" for number, line in enumerate(buffer.lines, start=1)]

    def cancel(self) -> None:
        """Discard the buffer without writing."""
        self._require_editing()
        self.state = EditState.CANCELLED
        self._reset()

    async def commit(self) -> str:
        """Write the buffer back and leave edit mode.

        Returns:
            Path that was written

        Raises:
            WriteConflictError: The page changed remotely (edit mode is left anyway)
        """
        buffer = self._require_editing()
        self.state = EditState.COMMITTING
        try:
            await self.vfs.write_file(buffer.target_path, buffer.text(), expected_version=buffer.base_version)
        finally:
            self._reset()
        return buffer.target_path

    def _reset(self) -> None:
        self.buffer = None
        self.state = EditState.IDLE

    async def handle_line(self, line: str) -> List[str]:
        """Apply one line typed in edit mode.

        Returns:
            Lines to show the user
        """
        self._require_editing()
        directive = line.strip()

        if directive == ":q!":
            self.cancel()
            return ["edit cancelled"]

        if directive == ":wq":
            path = await self.commit()
            return [f"saved {path}"]

        if directive == ":p":
            return self.render()

        if directive == ":clear":
            self.clear()
            return ["buffer cleared"]

        # Text arguments come from the unstripped line so they may be blank
        command = line.lstrip()

        if command.startswith(":set "):
            match = _SET.match(command)
            if not match:
                raise EditSessionError("Usage: :set <line> <text>")
            self.replace_line(int(match.group(1)), match.group(2) or "")
            return []

        if directive.startswith(":del "):
            match = _DEL.match(directive)
            if not match:
                raise EditSessionError("Usage: :del <line>")
            self.delete_line(int(match.group(1)))
            return []

        if command.startswith(":append "):
            self.append_line(command[len(":append "):])
            return []

        self.append_line(line)
        return []
