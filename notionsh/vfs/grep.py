"""grep implementation for the Notion VFS."""

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, List

from notionsh.notion.gateway import NotionAPIError
from notionsh.vfs.base import DirectoryNode, FileNode
from notionsh.vfs.resolver import NotFoundError, normalize_path

if TYPE_CHECKING:
    from notionsh.vfs.notion_vfs import NotionVFS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GrepMatch:
    """One matching line."""
    path: str
    line_number: int
    line: str


def compile_pattern(pattern: str, ignore_case: bool = False) -> "re.Pattern[str]":
    """Compile ``pattern`` as a regex, falling back to a literal match if it is invalid."""
    flags = re.IGNORECASE if ignore_case else 0
    try:
        return re.compile(pattern, flags)
    except re.error:
        return re.compile(re.escape(pattern), flags)


class GrepMatcher:
    """Unix-like grep functionality for the VFS."""

    def __init__(self, vfs: "NotionVFS"):
        """Initialize grep matcher.

        Args:
            vfs: VFS instance
        """
        self.vfs = vfs

    async def grep(
        self,
        pattern: str,
        path: str,
        cwd: str = "/",
        recursive: bool = False,
        ignore_case: bool = False,
    ) -> List[GrepMatch]:
        """Search for pattern in page files.

        Args:
            pattern: Regex pattern (invalid regexes match literally)
            path: File or directory to search
            cwd: Current working directory
            recursive: Search directories recursively
            ignore_case: Case-insensitive matching

        Returns:
            Matches in path order, then line order

        Raises:
            NotFoundError: Path does not exist
        """
        regex = compile_pattern(pattern, ignore_case)

        target = self.vfs.stat(path, cwd)
        if target is None:
            raise NotFoundError(f"Path does not exist: {normalize_path(path, cwd)}")

        if isinstance(target, FileNode):
            files = [target]
        elif isinstance(target, DirectoryNode):
            files = self._collect_files(target, recursive)
        else:
            files = []

        results: List[GrepMatch] = []
        for file_node in files:
            results.extend(await self._search_file(file_node, regex))
        return results

    def _collect_files(self, dir_node: DirectoryNode, recursive: bool) -> List[FileNode]:
        files: List[FileNode] = []
        for child in self.vfs.list(dir_node.path):
            if isinstance(child, FileNode):
                files.append(child)
            elif recursive and isinstance(child, DirectoryNode):
                files.extend(self._collect_files(child, recursive))
        return files

    async def _search_file(self, file_node: FileNode, regex: "re.Pattern[str]") -> List[GrepMatch]:
        try:
            content = await self.vfs.read_file(file_node.path)
        except NotionAPIError as e:
            # Skip unreadable pages
            logger.warning(f"grep: skipping {file_node.path}: {e}")
            return []

        return [
            GrepMatch(file_node.path, line_number, line)
            for line_number, line in enumerate(content.split("\n"), start=1)
            if regex.search(line)
        ]
