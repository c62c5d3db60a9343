"""Namespace construction.

Turns one listing of remote records into a complete, immutable-by-
convention path tree::

    /
    └── pages/
        └── home/               # one directory per page
            ├── index.md        # the page's content
            ├── notes/
            │   ├── index.md
            │   └── [db:1a2b3c4d]   # database placeholder
            └── tasks/
                └── index.md

Trees are never patched: a refresh builds a fresh one and swaps it in.
"""

import posixpath
from typing import Dict, List, Optional, Set

from slugify import slugify

from notionsh.notion.models import (
    ParentType,
    RecordKind,
    RecordListing,
    RemoteRecord,
    compact_id,
    fingerprint,
    scope_records,
)
from notionsh.vfs.base import DirectoryNode, FileNode, Node, NodeMeta, PlaceholderNode

ROOT = "/"
PAGES_DIR = "/pages"
INDEX_FILE = "index.md"
PLACEHOLDER_PREFIX = "db"


class NamespaceInvariantError(Exception):
    """The tree under construction is inconsistent (a bug, never user input)."""
    pass


def slug_from_title(title: str) -> str:
    """Normalized directory name for a page title."""
    slug = slugify(title or "")
    return slug or "untitled"


def placeholder_name(record_id: str) -> str:
    """Base name of a database placeholder."""
    return f"[{PLACEHOLDER_PREFIX}:{fingerprint(record_id)}]"


def unique_name(base: str, used: Set[str], record_id: str) -> str:
    """Pick a name not yet used among siblings and claim it.

    Tries ``base``, then ``base-<fingerprint>``, then
    ``base-<fingerprint>-2``, ``-3``, ... until a free name is found.

    Args:
        base: Preferred name
        used: Names already taken in the directory (updated in place)
        record_id: Id the fingerprint is derived from

    Returns:
        The claimed name
    """
    if base not in used:
        used.add(base)
        return base

    with_id = f"{base}-{fingerprint(record_id)}"
    candidate = with_id
    suffix = 2
    while candidate in used:
        candidate = f"{with_id}-{suffix}"
        suffix += 1

    used.add(candidate)
    return candidate


def _title_key(record: RemoteRecord):
    return (record.title.casefold(), record.title)


def _meta_for(record: RemoteRecord, **ids) -> NodeMeta:
    return NodeMeta(
        owner=record.owner,
        created_time=record.created_time,
        last_edited_time=record.last_edited_time,
        **ids,
    )


class NamespaceTree:
    """One consistent snapshot of the virtual filesystem.

    Attributes:
        entries: Absolute path -> node
        dir_by_page_id: Compact page id -> page directory path
        records: Compact page id -> record the snapshot was built from
    """

    def __init__(self):
        self.entries: Dict[str, Node] = {}
        self.dir_by_page_id: Dict[str, str] = {}
        self.records: Dict[str, RemoteRecord] = {}
        self._used_names: Dict[str, Set[str]] = {}

        root = DirectoryNode("/", ROOT, ROOT)
        self.entries[ROOT] = root
        self.add_dir(PAGES_DIR, "pages", ROOT, NodeMeta())

    def _parent_dir(self, parent_path: str) -> DirectoryNode:
        parent = self.entries.get(parent_path)
        if not isinstance(parent, DirectoryNode):
            raise NamespaceInvariantError(f"Parent directory missing for {parent_path}")
        return parent

    def _attach(self, node: Node) -> Node:
        parent = self._parent_dir(node.parent_path)
        if node.path in self.entries:
            raise NamespaceInvariantError(f"Duplicate path {node.path}")
        self.entries[node.path] = node
        parent.children.add(node.path)
        return node

    def used_names(self, dir_path: str) -> Set[str]:
        """Names claimed so far inside ``dir_path``."""
        return self._used_names.setdefault(dir_path, {INDEX_FILE})

    def add_dir(self, path: str, name: str, parent_path: str, meta: NodeMeta) -> DirectoryNode:
        return self._attach(DirectoryNode(name, path, parent_path, meta))

    def add_file(self, path: str, parent_path: str, meta: NodeMeta) -> FileNode:
        return self._attach(FileNode(INDEX_FILE, path, parent_path, meta))

    def add_placeholder(self, path: str, name: str, parent_path: str, meta: NodeMeta) -> PlaceholderNode:
        return self._attach(PlaceholderNode(name, path, parent_path, meta))

    def page_dir(self, page_id: str) -> Optional[str]:
        """Directory path of a page, if it is mounted."""
        return self.dir_by_page_id.get(compact_id(page_id))

    def check_invariants(self) -> None:
        """Verify parent/child consistency of the whole tree.

        Raises:
            NamespaceInvariantError: On orphans or dangling children
        """
        for path, node in self.entries.items():
            if path != ROOT:
                parent = self.entries.get(node.parent_path)
                if not isinstance(parent, DirectoryNode) or path not in parent.children:
                    raise NamespaceInvariantError(f"Orphaned node {path}")
            if isinstance(node, DirectoryNode):
                for child in node.children:
                    child_node = self.entries.get(child)
                    if child_node is None or child_node.parent_path != path:
                        raise NamespaceInvariantError(f"Dangling child {child} in {path}")

    def __len__(self) -> int:
        return len(self.entries)


def _add_page(tree: NamespaceTree, page: RemoteRecord, parent_path: str,
              children_by_parent: Dict[str, List[RemoteRecord]]) -> None:
    """Mount ``page`` under ``parent_path`` and recurse into its children (pre-order)."""
    name = unique_name(slug_from_title(page.title), tree.used_names(parent_path), page.id)
    dir_path = posixpath.join(parent_path, name)

    tree.add_dir(dir_path, name, parent_path, _meta_for(page, page_id=page.id))
    tree.dir_by_page_id[compact_id(page.id)] = dir_path
    tree.add_file(posixpath.join(dir_path, INDEX_FILE), dir_path, _meta_for(page, page_id=page.id))

    for child in sorted(children_by_parent.get(compact_id(page.id), []), key=_title_key):
        _add_page(tree, child, dir_path, children_by_parent)


def build_namespace(listing: RecordListing, root_page_id: Optional[str] = None) -> NamespaceTree:
    """Build the namespace tree for one listing.

    Args:
        listing: Pages and collections from one listing pass
        root_page_id: Optional scope root; only its subtree is mounted

    Returns:
        A fully built, consistent NamespaceTree

    Raises:
        NamespaceInvariantError: The tree came out inconsistent
    """
    scoped = scope_records(listing.pages + listing.collections, root_page_id)
    pages = [record for record in scoped if record.kind is RecordKind.PAGE]
    collections = [record for record in scoped if record.kind is RecordKind.COLLECTION]

    tree = NamespaceTree()

    # Rows of a database are not part of the page tree
    eligible = [page for page in pages if page.parent.type is not ParentType.COLLECTION]
    for page in eligible:
        tree.records[compact_id(page.id)] = page
    known = set(tree.records)

    children_by_parent: Dict[str, List[RemoteRecord]] = {}
    roots: List[RemoteRecord] = []
    for page in eligible:
        parent_id = page.parent_page_id
        if parent_id and compact_id(parent_id) in known:
            children_by_parent.setdefault(compact_id(parent_id), []).append(page)
        else:
            roots.append(page)

    for root in sorted(roots, key=_title_key):
        _add_page(tree, root, PAGES_DIR, children_by_parent)

    for collection in sorted(collections, key=_title_key):
        parent_path = PAGES_DIR
        parent_id = collection.parent_page_id
        if parent_id:
            parent_path = tree.page_dir(parent_id) or PAGES_DIR

        name = unique_name(placeholder_name(collection.id), tree.used_names(parent_path), collection.id)
        tree.add_placeholder(
            posixpath.join(parent_path, name),
            name,
            parent_path,
            _meta_for(collection, database_id=collection.id),
        )

    tree.check_invariants()
    return tree
