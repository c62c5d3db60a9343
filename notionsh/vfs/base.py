"""Base classes for the Virtual File System.

The VFS maps the Notion page tree to a filesystem-like structure
that can be navigated with shell commands (cd, ls, cat, etc.).

Architecture:
    - Node: Base class for all VFS nodes
    - DirectoryNode: One per page (and the fixed / and /pages directories)
    - FileNode: The editable index.md inside each page directory
    - PlaceholderNode: Read-only stand-in for a database
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Set


class NodeType(Enum):
    """Type of VFS node."""
    DIRECTORY = "directory"
    FILE = "file"
    PLACEHOLDER = "placeholder"


@dataclass
class NodeMeta:
    """Remote metadata carried by a node."""
    page_id: Optional[str] = None
    database_id: Optional[str] = None
    owner: Optional[str] = None
    created_time: Optional[str] = None
    last_edited_time: Optional[str] = None


class Node(ABC):
    """Base class for all VFS nodes.

    Nodes live in a flat path -> node map; the tree shape is given by
    ``parent_path`` on every node and ``children`` on directories.

    Attributes:
        name: The name of this node (e.g., "index.md", "notes")
        path: Absolute, normalized path
        parent_path: Path of the containing directory ("/" for the root)
        node_type: Type of node
        meta: Remote metadata
    """

    def __init__(
        self,
        name: str,
        path: str,
        parent_path: str,
        node_type: NodeType,
        meta: Optional[NodeMeta] = None,
    ):
        """Initialize a VFS node.

        Args:
            name: Name of this node
            path: Absolute path of this node
            parent_path: Absolute path of the parent directory
            node_type: Type of node
            meta: Remote metadata (empty for synthetic directories)
        """
        self.name = name
        self.path = path
        self.parent_path = parent_path
        self.node_type = node_type
        self.meta = meta or NodeMeta()

    @property
    def backing_id(self) -> Optional[str]:
        """Id of the remote record behind this node, if any."""
        return self.meta.page_id or self.meta.database_id

    def is_writable(self) -> bool:
        """Check if this node accepts writes."""
        return False

    @abstractmethod
    def get_info(self) -> Dict[str, Any]:
        """Get metadata about this node for display.

        Returns:
            Dict with keys like: type, name, path, owner, modified
        """
        pass

    def _base_info(self) -> Dict[str, Any]:
        return {
            "type": self.node_type.value,
            "name": self.name,
            "path": self.path,
            "owner": self.meta.owner,
            "created": self.meta.created_time,
            "modified": self.meta.last_edited_time,
            "id": self.backing_id,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', path='{self.path}')"


class DirectoryNode(Node):
    """A directory node that can contain children.

    Directory nodes can be navigated into with `cd` and their
    children can be listed with `ls`. Page directories carry the page id
    in ``meta`` so new pages can be created beneath them.
    """

    def __init__(self, name: str, path: str, parent_path: str, meta: Optional[NodeMeta] = None):
        super().__init__(name, path, parent_path, NodeType.DIRECTORY, meta)
        self.children: Set[str] = set()

    def get_info(self) -> Dict[str, Any]:
        info = self._base_info()
        info["children_count"] = len(self.children)
        return info


class FileNode(Node):
    """The Markdown content file of a page.

    File nodes can be read with `cat` and written through the
    conflict-aware write path.
    """

    def __init__(self, name: str, path: str, parent_path: str, meta: NodeMeta):
        super().__init__(name, path, parent_path, NodeType.FILE, meta)

    def is_writable(self) -> bool:
        return True

    def get_info(self) -> Dict[str, Any]:
        info = self._base_info()
        info["writable"] = True
        return info


class PlaceholderNode(Node):
    """Read-only node representing a database, never mounted as a directory."""

    def __init__(self, name: str, path: str, parent_path: str, meta: NodeMeta):
        super().__init__(name, path, parent_path, NodeType.PLACEHOLDER, meta)

    def describe(self) -> str:
        """Text shown when the placeholder is read."""
        return (
            "# Database Placeholder\n\n"
            f"[db:{self.meta.database_id}]\n\n"
            "Database mounting is not supported."
        )

    def get_info(self) -> Dict[str, Any]:
        info = self._base_info()
        info["writable"] = False
        return info
