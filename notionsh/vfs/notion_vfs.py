"""NotionVFS - the process-wide namespace over a Notion workspace.

Lifecycle:
    - Uninitialized at startup: every path operation raises NotIndexedError
    - Populated by the first successful refresh
    - Replaced wholesale by each later refresh (single-flight: concurrent
      callers share one in-flight rebuild)

Reads serve the current tree while a rebuild runs; the new tree becomes
visible in one assignment once it is complete. Page content is cached by
record id and survives rebuilds unless the page changed remotely.

Writes are optimistic: before replacing a page, its remote last-edited
time is compared with the one observed locally, and a mismatch raises
WriteConflictError instead of overwriting the remote edit.
"""

import asyncio
import logging
import posixpath
import re
import time
from typing import Callable, List, Optional

from notionsh.notion.markdown import blocks_to_markdown, count_unsupported_markers, markdown_to_blocks
from notionsh.notion.models import RecordListing, RecordMetadata, RemoteRecord
from notionsh.vfs.base import DirectoryNode, FileNode, Node, PlaceholderNode
from notionsh.vfs.builder import (
    INDEX_FILE,
    PAGES_DIR,
    NamespaceInvariantError,
    NamespaceTree,
    build_namespace,
)
from notionsh.vfs.cache import ContentCache
from notionsh.vfs.grep import GrepMatch, GrepMatcher
from notionsh.vfs.resolver import (
    NotFoundError,
    PathResolver,
    ReadOnlyError,
    normalize_path,
    parent_path_of,
)

logger = logging.getLogger(__name__)


class VFSError(Exception):
    """Base error for namespace operations."""
    pass


class NotIndexedError(VFSError):
    """No refresh has completed yet, so no path can resolve."""
    pass


class WriteConflictError(VFSError):
    """The page changed remotely since it was last observed locally."""

    def __init__(self, path: str, remote_version: str, local_version: str):
        super().__init__(
            f"Conflict detected for {path}. Remote page changed since last sync "
            f"(remote: {remote_version}, local: {local_version}). Run refresh and merge manually."
        )
        self.path = path
        self.remote_version = remote_version
        self.local_version = local_version


def title_from_basename(name: str, strip_suffix: bool = False) -> str:
    """Derive a page title from a path component ("my_notes.md" -> "my notes")."""
    if strip_suffix and name.endswith(".md"):
        name = name[:-3]
    return re.sub(r"[-_]+", " ", name).strip() or "Untitled"


def _sort_key(node: Node):
    return (0 if isinstance(node, DirectoryNode) else 1, node.name)


class NotionVFS:
    """Virtual File System for a Notion workspace.

    This is the main entry point shared by all shell sessions.

    Usage:
        >>> vfs = NotionVFS(gateway, cache_ttl_seconds=60)
        >>> await vfs.refresh(force=True)
        >>> vfs.list("/pages")
        >>> await vfs.read_file("/pages/home/index.md")
    """

    def __init__(
        self,
        gateway,
        cache_ttl_seconds: float = 60,
        root_page_id: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the VFS.

        Args:
            gateway: NotionGateway (or anything with the same coroutines)
            cache_ttl_seconds: TTL for both the tree and cached page content
            root_page_id: Mount only the subtree under this page
            clock: Monotonic clock (injectable for tests)
        """
        self.gateway = gateway
        self.ttl = cache_ttl_seconds
        self.root_page_id = root_page_id or None
        self.clock = clock
        self.cache = ContentCache(cache_ttl_seconds, clock)
        self.grep_matcher = GrepMatcher(self)
        self.rebuild_count = 0

        self._tree: Optional[NamespaceTree] = None
        self._resolver: Optional[PathResolver] = None
        self._listing: Optional[RecordListing] = None
        self._refresh_task: Optional[asyncio.Future] = None
        self._last_refresh_at = 0.0

    # Lifecycle

    def is_indexed(self) -> bool:
        """True once at least one rebuild has completed."""
        return self._tree is not None

    def is_refreshing(self) -> bool:
        """True while a rebuild is in flight."""
        return self._refresh_task is not None

    def is_stale(self) -> bool:
        """True if a non-forced refresh would rebuild."""
        return not self.is_indexed() or self.clock() - self._last_refresh_at >= self.ttl

    @property
    def tree(self) -> NamespaceTree:
        """The current tree.

        Raises:
            NotIndexedError: No rebuild has completed yet
        """
        if self._tree is None:
            raise NotIndexedError("Namespace is not indexed yet; run refresh first")
        return self._tree

    async def refresh(self, force: bool = False) -> None:
        """Rebuild the namespace from a fresh listing.

        If a rebuild is already running, wait for that one instead of
        starting another. Without ``force``, a refresh within the TTL of
        the last successful one does nothing.

        Args:
            force: Rebuild even if the current tree is fresh

        Raises:
            NotionAPIError: The listing failed (previous tree kept)
            NamespaceInvariantError: The new tree was inconsistent (previous tree kept)
        """
        if self._refresh_task is not None:
            await asyncio.shield(self._refresh_task)
            return

        if not force and not self.is_stale():
            return

        task = asyncio.ensure_future(self._rebuild())
        self._refresh_task = task
        task.add_done_callback(self._refresh_finished)
        await asyncio.shield(task)

    def schedule_refresh(self) -> Optional[asyncio.Future]:
        """Start a non-forced refresh in the background if the tree is stale.

        Returns:
            The background task, or None if nothing was started
        """
        if self.is_refreshing() or not self.is_stale():
            return None

        task = asyncio.ensure_future(self.refresh(force=False))
        task.add_done_callback(_retrieve_background_failure)
        return task

    def _refresh_finished(self, task: asyncio.Future) -> None:
        if self._refresh_task is task:
            self._refresh_task = None

    async def _rebuild(self) -> None:
        started = time.monotonic()
        logger.debug("Rebuilding namespace")
        try:
            listing = await self.gateway.list_records(self.root_page_id)
            tree = build_namespace(listing, self.root_page_id)
        except NamespaceInvariantError as e:
            logger.error(f"Namespace rebuild aborted, keeping last good tree: {e}")
            raise
        except Exception as e:
            logger.error(f"Namespace refresh failed: {e}")
            raise

        self._install(tree, listing)
        logger.info(
            f"Namespace rebuilt: {len(listing.pages)} pages, {len(listing.collections)} databases "
            f"in {(time.monotonic() - started) * 1000:.0f}ms"
        )

    def _install(self, tree: NamespaceTree, listing: RecordListing) -> None:
        self.cache.prune_versions({key: record.last_edited_time for key, record in tree.records.items()})
        self._tree = tree
        self._resolver = PathResolver(tree.entries)
        self._listing = listing
        self._last_refresh_at = self.clock()
        self.rebuild_count += 1

    # Read operations

    def resolve(self, path: str, cwd: str = "/") -> str:
        """Normalize ``path`` against ``cwd``."""
        return normalize_path(path, cwd)

    def stat(self, path: str, cwd: str = "/") -> Optional[Node]:
        """Node at ``path`` or None."""
        return self.tree.entries.get(normalize_path(path, cwd))

    def list(self, path: str = ".", cwd: str = "/") -> List[Node]:
        """List a directory, directories first, then by name.

        Raises:
            NotFoundError: Path does not exist
            NotADirectoryError: Path is not a directory
        """
        tree = self.tree
        directory = self._resolver.resolve_directory(path, cwd)
        children = [tree.entries[child] for child in directory.children if child in tree.entries]
        return sorted(children, key=_sort_key)

    def complete_path(self, partial: str, cwd: str = "/") -> List[str]:
        """Tab completion candidates (empty until indexed)."""
        if self._resolver is None:
            return []
        return self._resolver.complete_path(partial, cwd)

    def _page_file(self, path: str, cwd: str = "/") -> FileNode:
        """Resolve ``path`` to a page file; a page directory stands for its index.md."""
        tree = self.tree
        resolved = normalize_path(path, cwd)
        node = tree.entries.get(resolved)

        if isinstance(node, FileNode):
            return node

        if isinstance(node, DirectoryNode):
            index = tree.entries.get(posixpath.join(node.path, INDEX_FILE))
            if isinstance(index, FileNode):
                return index

        if isinstance(node, PlaceholderNode):
            raise ReadOnlyError(f"Read-only database placeholder: {node.path}")

        raise NotFoundError(f"File does not exist: {resolved}")

    async def read_file(self, path: str, cwd: str = "/") -> str:
        """Read a page as Markdown, from the cache when possible.

        Args:
            path: Page file, page directory, or placeholder
            cwd: Current working directory

        Returns:
            Markdown content (a description for placeholders)
        """
        node = self.stat(path, cwd)
        if isinstance(node, PlaceholderNode):
            return node.describe()

        file_node = self._page_file(path, cwd)
        page_id = file_node.meta.page_id

        entry = self.cache.get(page_id)
        if entry is not None:
            logger.debug(f"Cache hit for {file_node.path}")
            return entry.content

        logger.debug(f"Cache miss for {file_node.path}")
        # Stamp taken before the content, so it is never newer than what was read
        metadata = await self.gateway.get_metadata(page_id)
        blocks = await self.gateway.read_content(page_id)
        content = blocks_to_markdown(blocks)
        self._observe(page_id, metadata)
        self.cache.put(page_id, content, metadata.last_edited_time)
        return content

    def observed_version(self, path: str, cwd: str = "/") -> Optional[str]:
        """Remote last-edited time the local view of ``path`` corresponds to."""
        file_node = self._page_file(path, cwd)
        entry = self.cache.peek(file_node.meta.page_id)
        if entry is not None:
            return entry.observed_version
        return file_node.meta.last_edited_time

    async def grep(
        self,
        pattern: str,
        path: str,
        cwd: str = "/",
        recursive: bool = False,
        ignore_case: bool = False,
    ) -> List[GrepMatch]:
        """Search page content; see GrepMatcher.grep."""
        return await self.grep_matcher.grep(pattern, path, cwd, recursive, ignore_case)

    # Write operations

    async def write_file(
        self,
        path: str,
        content: str,
        cwd: str = "/",
        expected_version: Optional[str] = None,
    ) -> None:
        """Replace a page's content, refusing to overwrite concurrent remote edits.

        Args:
            path: Page file or page directory
            content: New Markdown content
            cwd: Current working directory
            expected_version: Version the caller based its edit on
                (defaults to the current local observation)

        Raises:
            ReadOnlyError: Path is a database placeholder
            NotFoundError: Path does not exist
            WriteConflictError: The page changed remotely
        """
        node = self.stat(path, cwd)
        if isinstance(node, PlaceholderNode):
            raise ReadOnlyError(f"Cannot write to database placeholder: {node.path}")

        file_node = self._page_file(path, cwd)
        page_id = file_node.meta.page_id
        local_version = expected_version if expected_version is not None else self.observed_version(file_node.path)

        remote = await self.gateway.get_metadata(page_id)
        if local_version and remote.last_edited_time and remote.last_edited_time != local_version:
            logger.warning(f"Write conflict on {file_node.path}: remote {remote.last_edited_time}, local {local_version}")
            raise WriteConflictError(file_node.path, remote.last_edited_time, local_version)

        unsupported = count_unsupported_markers(content)
        if unsupported:
            logger.warning(f"{file_node.path}: {unsupported} unsupported block(s) will be written back as plain text")

        await self.gateway.replace_content(page_id, markdown_to_blocks(content))

        updated = await self.gateway.get_metadata(page_id)
        self._observe(page_id, updated)
        self.cache.put(page_id, content, updated.last_edited_time)

    def _observe(self, page_id: str, metadata: RecordMetadata) -> None:
        """Record post-write metadata on the page's nodes in the current tree."""
        tree = self.tree
        dir_path = tree.page_dir(page_id)
        if dir_path is None:
            return
        for path in (dir_path, posixpath.join(dir_path, INDEX_FILE)):
            node = tree.entries.get(path)
            if node is not None:
                node.meta.last_edited_time = metadata.last_edited_time
                node.meta.owner = metadata.owner

    async def touch(self, path: str, cwd: str = "/") -> str:
        """Create a page for ``path`` and return its index.md path."""
        return await self._create(path, cwd, as_file=True)

    async def mkdir(self, path: str, cwd: str = "/") -> str:
        """Create a page for ``path`` and return its directory path."""
        return await self._create(path, cwd, as_file=False)

    async def _create(self, path: str, cwd: str, as_file: bool) -> str:
        tree = self.tree
        resolved = normalize_path(path, cwd)
        if resolved in tree.entries:
            return resolved

        parent_path = parent_path_of(resolved)
        parent = tree.entries.get(parent_path)
        if not isinstance(parent, DirectoryNode):
            raise NotFoundError(f"Parent directory not found: {parent_path}")

        parent_page_id = parent.meta.page_id
        if parent_page_id is None:
            if parent_path != PAGES_DIR:
                raise ReadOnlyError(f"Cannot create pages in {parent_path}")
            if self.root_page_id:
                raise ReadOnlyError("Cannot create top-level pages outside the mounted root page")

        title = title_from_basename(posixpath.basename(resolved), strip_suffix=as_file)
        record = await self.gateway.create_record(title, parent_page_id)
        logger.info(f"Created page '{title}' ({record.id}) under {parent_path}")

        await self.refresh(force=True)
        dir_path = self.tree.page_dir(record.id)
        if dir_path is None:
            # Search results lag behind page creation
            dir_path = self._adopt(record)

        return posixpath.join(dir_path, INDEX_FILE) if as_file else dir_path

    def _adopt(self, record: RemoteRecord) -> str:
        """Rebuild the tree from the last listing plus a just-created record."""
        listing = RecordListing(
            pages=[*self._listing.pages, record],
            collections=list(self._listing.collections),
        )
        tree = build_namespace(listing, self.root_page_id)
        self._install(tree, listing)

        dir_path = tree.page_dir(record.id)
        if dir_path is None:
            raise VFSError(f"Created page {record.id} is outside the mounted tree")
        return dir_path


def _retrieve_background_failure(task: asyncio.Future) -> None:
    # _rebuild has already logged the failure
    if not task.cancelled():
        task.exception()
