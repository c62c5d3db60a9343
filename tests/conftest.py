"""Shared fixtures: an in-memory stand-in for the Notion gateway."""

import asyncio
import copy
import io
import itertools
from dataclasses import replace
from collections import Counter
from typing import Dict, List, Optional

import pytest

from notionsh.notion import NotionAPIError
from notionsh.notion.models import (
    ParentRef,
    ParentType,
    RecordKind,
    RecordListing,
    RecordMetadata,
    RemoteRecord,
    compact_id,
    scope_records,
)
from notionsh.repl import ShellSession
from notionsh.vfs import NotionVFS

HOME_ID = "11111111-1111-1111-1111-111111111111"
NOTES_ID = "22222222-2222-2222-2222-222222222222"
TASKS_ID = "33333333-3333-3333-3333-333333333333"
DB1_ID = "44444444-4444-4444-4444-444444444444"

T0 = "2024-01-01T00:00:00.000Z"


def make_page(record_id: str, title: str, parent_id: Optional[str] = None,
              edited: str = T0, owner: str = "alice@example.com",
              parent_type: ParentType = ParentType.PAGE) -> RemoteRecord:
    parent = ParentRef(parent_type, parent_id) if parent_id else ParentRef(ParentType.WORKSPACE)
    return RemoteRecord(
        id=record_id,
        kind=RecordKind.PAGE,
        title=title,
        parent=parent,
        created_time=T0,
        last_edited_time=edited,
        owner=owner,
    )


def make_collection(record_id: str, title: str, parent_id: Optional[str] = None) -> RemoteRecord:
    parent = ParentRef(ParentType.PAGE, parent_id) if parent_id else ParentRef(ParentType.WORKSPACE)
    return RemoteRecord(
        id=record_id,
        kind=RecordKind.COLLECTION,
        title=title,
        parent=parent,
        created_time=T0,
        last_edited_time=T0,
    )


_block_ids = itertools.count(1)


def text_block(block_type: str, text: str, **payload) -> Dict:
    """A block as the API returns it (rich text carries plain_text)."""
    return {
        "object": "block",
        "id": f"block-{next(_block_ids)}",
        "type": block_type,
        "has_children": False,
        block_type: {"rich_text": [{"type": "text", "plain_text": text}], **payload},
    }


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGateway:
    """In-memory gateway with the same coroutines as NotionGateway.

    Attributes:
        calls: Counter of calls per method
        list_gate: If set, list_records waits on it (to hold a rebuild open)
        hide_created: Created pages are not listed (search lag)
        fail_reads: Record ids whose read_content raises
    """

    def __init__(self, pages: List[RemoteRecord], collections: List[RemoteRecord],
                 contents: Optional[Dict[str, List[Dict]]] = None):
        self.pages = list(pages)
        self.collections = list(collections)
        self.contents = {compact_id(k): v for k, v in (contents or {}).items()}
        self.calls = Counter()
        self.list_gate: Optional[asyncio.Event] = None
        self.hide_created = False
        self.fail_reads = set()
        self.list_error: Optional[Exception] = None
        self.written: Dict[str, List[Dict]] = {}
        self.hidden: List[RemoteRecord] = []
        self._versions = itertools.count(1)
        self._created = itertools.count(1)

    def _index(self, record_id: str) -> int:
        for i, page in enumerate(self.pages):
            if compact_id(page.id) == compact_id(record_id):
                return i
        raise KeyError(record_id)

    def record(self, record_id: str) -> RemoteRecord:
        for page in self.pages + self.hidden:
            if compact_id(page.id) == compact_id(record_id):
                return page
        raise KeyError(record_id)

    def bump(self, record_id: str, owner: str = "bob@example.com") -> str:
        """Simulate an edit made elsewhere; returns the new version."""
        version = f"2024-01-02T00:{next(self._versions):02d}:00.000Z"
        i = self._index(record_id)
        self.pages[i] = replace(self.pages[i], last_edited_time=version, owner=owner)
        return version

    async def list_records(self, scope_root_id: Optional[str] = None) -> RecordListing:
        self.calls["list_records"] += 1
        if self.list_gate is not None:
            await self.list_gate.wait()
        if self.list_error is not None:
            raise self.list_error
        records = scope_records(self.pages + self.collections, scope_root_id)
        return RecordListing(
            pages=[r for r in records if r.kind is RecordKind.PAGE],
            collections=[r for r in records if r.kind is RecordKind.COLLECTION],
        )

    async def read_content(self, record_id: str) -> List[Dict]:
        self.calls["read_content"] += 1
        if compact_id(record_id) in self.fail_reads:
            raise NotionAPIError(404, "object_not_found", "Could not find block")
        return copy.deepcopy(self.contents.get(compact_id(record_id), []))

    async def get_metadata(self, record_id: str) -> RecordMetadata:
        self.calls["get_metadata"] += 1
        record = self.record(record_id)
        return RecordMetadata(last_edited_time=record.last_edited_time, owner=record.owner)

    async def replace_content(self, record_id: str, blocks: List[Dict]) -> None:
        self.calls["replace_content"] += 1
        self.contents[compact_id(record_id)] = copy.deepcopy(blocks)
        self.written[compact_id(record_id)] = blocks
        self.bump(record_id, owner="me@example.com")

    async def create_record(self, title: str, parent_id: Optional[str] = None) -> RemoteRecord:
        self.calls["create_record"] += 1
        n = next(self._created)
        record = make_page(f"aaaaaaa{n}-0000-0000-0000-00000000000{n}", title, parent_id)
        if self.hide_created:
            self.hidden.append(record)
        else:
            self.pages.append(record)
        return record


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gateway():
    """Workspace: Home with Notes and Tasks below it, DB1 inside Notes."""
    pages = [
        make_page(HOME_ID, "Home"),
        make_page(NOTES_ID, "Notes", HOME_ID),
        make_page(TASKS_ID, "Tasks", HOME_ID),
    ]
    collections = [make_collection(DB1_ID, "DB1", NOTES_ID)]
    contents = {
        HOME_ID: [text_block("heading_1", "Home"), text_block("paragraph", "Welcome home")],
        NOTES_ID: [text_block("bulleted_list_item", "remember the milk")],
        TASKS_ID: [text_block("to_do", "write tests", checked=False), text_block("paragraph", "Milk run later")],
    }
    return FakeGateway(pages, collections, contents)


@pytest.fixture
def vfs(gateway, clock):
    return NotionVFS(gateway, cache_ttl_seconds=60, clock=clock)


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def shell(vfs, output):
    return ShellSession(vfs, stream=output, width=200)
