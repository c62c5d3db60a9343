"""Path resolution for the Virtual File System.

Handles path parsing and navigation (cd, ls semantics).
"""

import posixpath
from typing import List, Mapping, Optional

from notionsh.vfs.base import DirectoryNode, Node

HOME = "/pages"


def normalize_path(path: str, cwd: str = "/", home: str = HOME) -> str:
    """Normalize a path to absolute form.

    Handles:
    - Absolute paths: /pages/home/index.md
    - Relative paths: ../other, ./notes
    - Special: ., .., ~ (home = /pages), repeated slashes
    - `..` never climbs above /

    Args:
        path: Path to normalize (absolute or relative)
        cwd: Current working directory
        home: Directory `~` expands to

    Returns:
        Normalized absolute path without a trailing slash
    """
    if not path:
        path = "."

    if path == "~" or path.startswith("~/"):
        path = home + path[1:]

    base = path if path.startswith("/") else f"{cwd}/{path}"

    parts: List[str] = []
    for part in base.split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            if parts:
                parts.pop()
            continue
        parts.append(part)

    return "/" + "/".join(parts)


def parent_path_of(path: str) -> str:
    """Parent directory of an absolute, normalized path."""
    if path == "/":
        return "/"
    return posixpath.dirname(path) or "/"


class PathResolver:
    """Resolves paths against one snapshot of the namespace.

    The resolver never mutates the entries; a refresh swaps in a new
    snapshot and a new resolver with it.
    """

    def __init__(self, entries: Mapping[str, Node]):
        """Initialize path resolver.

        Args:
            entries: Map of absolute path to node
        """
        self.entries = entries

    def resolve(self, path: str, cwd: str = "/") -> Optional[Node]:
        """Resolve a path to a node.

        Args:
            path: Path to resolve (absolute or relative)
            cwd: Current working directory

        Returns:
            Resolved node or None if path doesn't exist
        """
        return self.entries.get(normalize_path(path, cwd))

    def resolve_directory(self, path: str, cwd: str = "/") -> DirectoryNode:
        """Resolve a path that must be a directory.

        Raises:
            NotFoundError: Path does not exist
            NotADirectoryError: Path is a file or placeholder
        """
        resolved = normalize_path(path, cwd)
        node = self.entries.get(resolved)
        if node is None:
            raise NotFoundError(f"Path does not exist: {resolved}")
        if not isinstance(node, DirectoryNode):
            raise NotADirectoryError(f"Not a directory: {resolved}")
        return node

    def complete_path(self, partial: str, cwd: str = "/") -> List[str]:
        """Get completion candidates for a partial path.

        Used for tab completion.

        Args:
            partial: Partial path to complete
            cwd: Current working directory

        Returns:
            List of completion candidates, directories with a trailing slash
        """
        if "/" in partial:
            dir_part, file_part = partial.rsplit("/", 1)
            if partial.startswith("/") and not dir_part:
                dir_part = "/"
        else:
            dir_part = ""
            file_part = partial

        dir_node = self.entries.get(normalize_path(dir_part or ".", cwd))
        if not isinstance(dir_node, DirectoryNode):
            return []

        candidates = []
        for child_path in sorted(dir_node.children):
            child = self.entries.get(child_path)
            if child is None or not child.name.startswith(file_part):
                continue

            if dir_part == "/":
                candidate = f"/{child.name}"
            elif dir_part:
                candidate = f"{dir_part}/{child.name}"
            else:
                candidate = child.name

            if isinstance(child, DirectoryNode):
                candidate += "/"
            candidates.append(candidate)

        return candidates


class PathError(Exception):
    """Error resolving a path."""
    pass


class NotADirectoryError(PathError):
    """Attempted to list or cd into a non-directory."""
    pass


class NotFoundError(PathError):
    """Path does not exist."""
    pass


class ReadOnlyError(PathError):
    """Attempted to write to a read-only node."""
    pass
