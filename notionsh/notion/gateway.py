"""
Notion API gateway.

Thin async client over the Notion REST API. It owns pagination and the
retry/backoff policy; everything above it works with RemoteRecord
objects and raw block trees.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from .models import (
    ParentRef,
    RecordKind,
    RecordListing,
    RecordMetadata,
    RemoteRecord,
    fingerprint,
    scope_records,
)

logger = logging.getLogger(__name__)

NOTION_API_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"
PAGE_SIZE = 100
APPEND_BATCH_SIZE = 100

# Blocks that are records of their own: never recursed into on read, never archived on replace
NESTED_RECORD_TYPES = {"child_page", "child_database"}

RETRYABLE_CODES = {"rate_limited", "service_unavailable", "conflict_error"}
RETRYABLE_STATUSES = {409, 429, 503}


class NotionAPIError(Exception):
    """Error response from the Notion API."""

    def __init__(self, status: int, code: str, message: str):
        super().__init__(f"Notion API error {status} ({code}): {message}")
        self.status = status
        self.code = code
        self.message = message

    @property
    def retryable(self) -> bool:
        """True for rate limits, transient unavailability and transport-level conflicts."""
        return self.code in RETRYABLE_CODES or self.status in RETRYABLE_STATUSES


def _plain(rich_text: Optional[List[Dict[str, Any]]]) -> str:
    return "".join((item or {}).get("plain_text", "") for item in (rich_text or []))


def title_from_page(page: Dict[str, Any]) -> str:
    """Extract the title property of a page."""
    properties = page.get("properties")
    if isinstance(properties, dict):
        for prop in properties.values():
            if isinstance(prop, dict) and prop.get("type") == "title":
                text = _plain(prop.get("title"))
                if text.strip():
                    return text
    return f"untitled-{fingerprint(page['id'])}"


def title_from_collection(collection: Dict[str, Any]) -> str:
    """Extract a display title for a database."""
    text = _plain(collection.get("title"))
    if text.strip():
        return text

    name = collection.get("name")
    if isinstance(name, str) and name.strip():
        return name

    text = _plain(collection.get("description"))
    if text.strip():
        return text
    return f"database-{fingerprint(collection['id'])}"


def owner_from_record(record: Dict[str, Any]) -> str:
    """Best human-readable identity of the last editor."""
    user = record.get("last_edited_by")
    if not user:
        return "-"
    if user.get("type") == "person":
        return (user.get("person") or {}).get("email") or user.get("name") or user.get("id") or "-"
    return user.get("name") or user.get("id") or "-"


def to_record(raw: Dict[str, Any]) -> RemoteRecord:
    """Map a raw page or database object to a RemoteRecord."""
    is_page = raw.get("object") == "page"
    return RemoteRecord(
        id=raw["id"],
        kind=RecordKind.PAGE if is_page else RecordKind.COLLECTION,
        title=title_from_page(raw) if is_page else title_from_collection(raw),
        parent=ParentRef.from_api(raw.get("parent")),
        created_time=raw.get("created_time"),
        last_edited_time=raw.get("last_edited_time"),
        owner=owner_from_record(raw),
    )


class NotionGateway:
    """Async gateway to the Notion API.

    Usage:
        >>> async with NotionGateway(api_key) as gateway:
        ...     listing = await gateway.list_records()
        ...     blocks = await gateway.read_content(listing.pages[0].id)
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = NOTION_API_URL,
        notion_version: str = NOTION_VERSION,
        timeout: float = 30.0,
        max_retries: int = 5,
        retry_base_delay: float = 0.25,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the gateway.

        Args:
            api_key: Notion integration token
            base_url: API root
            notion_version: Value of the Notion-Version header
            timeout: Per-request timeout in seconds
            max_retries: Maximum attempts per call for retryable errors
            retry_base_delay: Delay before the second attempt, doubled each time
            transport: Optional httpx transport (tests use httpx.MockTransport)
            sleep: Coroutine used to wait between attempts
        """
        self.max_retries = max(1, max_retries)
        self.retry_base_delay = retry_base_delay
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Notion-Version": notion_version,
                "Content-Type": "application/json",
            },
        )

    async def __aenter__(self) -> "NotionGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    # Transport helpers

    async def _send(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        response = await self._client.request(method, url, **kwargs)
        if response.is_success:
            return response.json()

        try:
            body = response.json()
        except ValueError:
            body = {}
        raise NotionAPIError(
            response.status_code,
            body.get("code", "http_error"),
            body.get("message", response.reason_phrase),
        )

    async def _request(self, op_name: str, method: str, url: str, **kwargs) -> Dict[str, Any]:
        """Send a request, retrying retryable errors with exponential backoff.

        Args:
            op_name: Name used in log messages
            method: HTTP method
            url: Path relative to the API root
            **kwargs: Passed through to httpx

        Returns:
            Decoded JSON body

        Raises:
            NotionAPIError: Non-retryable error, or retries exhausted
        """
        for attempt in range(1, self.max_retries + 1):
            try:
                return await self._send(method, url, **kwargs)
            except NotionAPIError as e:
                if not e.retryable or attempt >= self.max_retries:
                    raise
                delay = self.retry_base_delay * 2 ** (attempt - 1)
                logger.warning(
                    f"Retrying {op_name} after {delay:.2f}s "
                    f"(attempt {attempt}/{self.max_retries}, {e.code})"
                )
                await self._sleep(delay)

        raise RuntimeError(f"Notion operation failed: {op_name}")

    async def _paginate(self, op_name: str, method: str, url: str, body: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Collect all results of a cursor-paginated endpoint."""
        results: List[Dict[str, Any]] = []
        cursor: Optional[str] = None

        while True:
            if method == "GET":
                params = {"page_size": PAGE_SIZE}
                if cursor:
                    params["start_cursor"] = cursor
                page = await self._request(op_name, method, url, params=params)
            else:
                payload = dict(body or {}, page_size=PAGE_SIZE)
                if cursor:
                    payload["start_cursor"] = cursor
                page = await self._request(op_name, method, url, json=payload)

            results.extend(page.get("results", []))
            cursor = page.get("next_cursor") if page.get("has_more") else None
            if not cursor:
                return results

    # Records

    async def _search_all(self, object_type: str) -> List[Dict[str, Any]]:
        return await self._paginate(
            f"search:{object_type}",
            "POST",
            "/search",
            {"filter": {"property": "object", "value": object_type}},
        )

    async def list_records(self, scope_root_id: Optional[str] = None) -> RecordListing:
        """List every page and database visible to the integration.

        Args:
            scope_root_id: Optional page id; only its subtree is returned

        Returns:
            RecordListing with pages and collections
        """
        raw_pages, raw_collections = await asyncio.gather(
            self._search_all("page"),
            self._search_all("database"),
        )
        records = [to_record(raw) for raw in raw_pages + raw_collections]
        records = scope_records(records, scope_root_id)

        listing = RecordListing(
            pages=[r for r in records if r.kind is RecordKind.PAGE],
            collections=[r for r in records if r.kind is RecordKind.COLLECTION],
        )
        logger.debug(f"Listed {len(listing.pages)} pages and {len(listing.collections)} databases")
        return listing

    async def get_metadata(self, record_id: str) -> RecordMetadata:
        """Fetch last-edited time and owner of a page without its content."""
        page = await self._request("pages.retrieve", "GET", f"/pages/{record_id}")
        return RecordMetadata(
            last_edited_time=page.get("last_edited_time"),
            owner=owner_from_record(page),
        )

    async def create_record(self, title: str, parent_id: Optional[str] = None) -> RemoteRecord:
        """Create a page under ``parent_id`` (or at workspace level)."""
        if parent_id:
            parent = {"type": "page_id", "page_id": parent_id}
        else:
            parent = {"type": "workspace", "workspace": True}

        page = await self._request("pages.create", "POST", "/pages", json={
            "parent": parent,
            "properties": {
                "title": {"title": [{"type": "text", "text": {"content": title}}]},
            },
        })
        return to_record(page)

    # Content

    async def _list_children(self, block_id: str) -> List[Dict[str, Any]]:
        return await self._paginate("blocks.children.list", "GET", f"/blocks/{block_id}/children")

    async def read_content(self, record_id: str) -> List[Dict[str, Any]]:
        """Fetch the full block tree of a page, nested children included."""
        blocks = await self._list_children(record_id)
        for block in blocks:
            if block.get("has_children") and block.get("type") not in NESTED_RECORD_TYPES:
                block["children"] = await self.read_content(block["id"])
        return blocks

    async def replace_content(self, record_id: str, blocks: List[Dict[str, Any]]) -> None:
        """Replace a page's content: archive existing blocks, then append ``blocks`` in order.

        Child page and database blocks are left in place; archiving them
        would delete the subpages themselves.
        """
        existing = [
            block for block in await self._list_children(record_id)
            if block.get("type") not in NESTED_RECORD_TYPES
        ]
        for block in existing:
            await self._request("blocks.archive", "PATCH", f"/blocks/{block['id']}", json={"archived": True})

        for start in range(0, len(blocks), APPEND_BATCH_SIZE):
            batch = blocks[start:start + APPEND_BATCH_SIZE]
            await self._request(
                "blocks.children.append",
                "PATCH",
                f"/blocks/{record_id}/children",
                json={"children": batch},
            )
        logger.info(f"Replaced content of {record_id}: {len(existing)} archived, {len(blocks)} appended")
