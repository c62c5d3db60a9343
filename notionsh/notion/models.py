"""Data model for records fetched from Notion.

A RemoteRecord is an immutable snapshot of one page or collection
(database). The whole set is re-listed on every refresh, so nothing here
is ever patched in place.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Set


class RecordKind(Enum):
    """Kind of remote record."""
    PAGE = "page"
    COLLECTION = "collection"


class ParentType(Enum):
    """What a record hangs off of."""
    PAGE = "page"
    WORKSPACE = "workspace"
    COLLECTION = "collection"


@dataclass(frozen=True)
class ParentRef:
    """Reference to a record's parent.

    Attributes:
        type: Parent type
        id: Parent record id (None for the workspace root)
    """
    type: ParentType
    id: Optional[str] = None

    @classmethod
    def from_api(cls, parent: Optional[dict]) -> "ParentRef":
        """Build a ParentRef from a Notion ``parent`` object.

        Args:
            parent: Raw parent dict, e.g. ``{"type": "page_id", "page_id": "..."}``

        Returns:
            ParentRef (block parents and unknown shapes map to the workspace)
        """
        if not parent:
            return cls(ParentType.WORKSPACE)

        parent_type = parent.get("type")
        if parent_type == "page_id":
            return cls(ParentType.PAGE, parent.get("page_id"))
        if parent_type in ("database_id", "data_source_id"):
            return cls(ParentType.COLLECTION, parent.get(parent_type))
        return cls(ParentType.WORKSPACE)


@dataclass(frozen=True)
class RemoteRecord:
    """One remote content object (page or collection)."""
    id: str
    kind: RecordKind
    title: str
    parent: ParentRef = field(default_factory=lambda: ParentRef(ParentType.WORKSPACE))
    created_time: Optional[str] = None
    last_edited_time: Optional[str] = None
    owner: str = "-"

    @property
    def parent_page_id(self) -> Optional[str]:
        """Id of the parent page, if the parent is a page."""
        if self.parent.type is ParentType.PAGE:
            return self.parent.id
        return None


@dataclass(frozen=True)
class RecordMetadata:
    """Lightweight metadata used by the write conflict check."""
    last_edited_time: Optional[str]
    owner: str = "-"


@dataclass
class RecordListing:
    """Result of one full listing pass."""
    pages: List[RemoteRecord] = field(default_factory=list)
    collections: List[RemoteRecord] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.pages) + len(self.collections)


def compact_id(record_id: str) -> str:
    """Normalize an id for comparison (Notion ids appear with and without dashes)."""
    return record_id.replace("-", "").lower()


def fingerprint(record_id: str) -> str:
    """Short deterministic fingerprint of a record id."""
    return compact_id(record_id)[:8]


def scope_records(records: Iterable[RemoteRecord], root_id: Optional[str]) -> List[RemoteRecord]:
    """Restrict records to the subtree reachable from ``root_id``.

    Expands to a fixed point: any record whose parent page is already
    included gets included, until nothing changes. The root itself is
    part of the result.

    Args:
        records: Records to filter
        root_id: Scope root id, or None for no filtering

    Returns:
        Records inside the scope, in input order
    """
    records = list(records)
    if not root_id:
        return records

    included: Set[str] = {compact_id(root_id)}
    changed = True
    while changed:
        changed = False
        for record in records:
            key = compact_id(record.id)
            if key in included:
                continue
            parent_id = record.parent_page_id
            if parent_id and compact_id(parent_id) in included:
                included.add(key)
                changed = True

    return [record for record in records if compact_id(record.id) in included]
