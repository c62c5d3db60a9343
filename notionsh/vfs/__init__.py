"""Virtual File System over a Notion workspace.

The VFS provides a filesystem-like interface for browsing and editing
Notion pages. Every page becomes a directory holding an ``index.md`` with
the page's content; child pages become subdirectories, databases become
read-only placeholders.

Architecture:

    ```
    /                           # Root
    └── pages/                  # All mounted pages
        ├── home/               # Page "Home" (DirectoryNode)
        │   ├── index.md        # Its content as Markdown (FileNode)
        │   ├── notes/          # Child page "Notes"
        │   │   ├── index.md
        │   │   └── [db:1a2b3c4d]   # Database placeholder (PlaceholderNode)
        │   ├── draft/          # Two pages titled "Draft":
        │   └── draft-9f8e7d6c/ #   second one gets an id fingerprint
        └── tasks/
            └── index.md
    ```

Node Types:

    - Node: Base class for all VFS entries
    - DirectoryNode: Page directories plus / and /pages
    - FileNode: index.md content files (readable and writable)
    - PlaceholderNode: Databases (read-only)

Path Resolution:

    normalize_path / PathResolver handle navigation:
    - Absolute paths: /pages/home/index.md
    - Relative paths: ../other, ./notes
    - Special: ., .., ~ (home = /pages)
    - Tab completion support

Usage Example:

    ```python
    from notionsh.notion import NotionGateway
    from notionsh.vfs import NotionVFS

    async with NotionGateway(api_key) as gateway:
        vfs = NotionVFS(gateway, cache_ttl_seconds=60)
        await vfs.refresh(force=True)

        for node in vfs.list("/pages/home"):
            print(node.name, node.get_info())

        print(await vfs.read_file("/pages/home/index.md"))
    ```
"""

from notionsh.vfs.base import (
    Node,
    NodeMeta,
    DirectoryNode,
    FileNode,
    PlaceholderNode,
    NodeType,
)
from notionsh.vfs.resolver import (
    PathResolver,
    PathError,
    NotADirectoryError,
    NotFoundError,
    ReadOnlyError,
    normalize_path,
)
from notionsh.vfs.builder import NamespaceTree, NamespaceInvariantError, build_namespace
from notionsh.vfs.grep import GrepMatch
from notionsh.vfs.notion_vfs import NotionVFS, VFSError, NotIndexedError, WriteConflictError

__all__ = [
    # Main entry point
    "NotionVFS",
    # Core classes
    "Node",
    "NodeMeta",
    "DirectoryNode",
    "FileNode",
    "PlaceholderNode",
    "NodeType",
    "NamespaceTree",
    "build_namespace",
    "GrepMatch",
    # Path resolution
    "PathResolver",
    "normalize_path",
    # Errors
    "PathError",
    "NotADirectoryError",
    "NotFoundError",
    "ReadOnlyError",
    "VFSError",
    "NotIndexedError",
    "WriteConflictError",
    "NamespaceInvariantError",
]
