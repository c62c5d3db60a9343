"""Notion access layer: records, the API gateway and the Markdown codec."""

from notionsh.notion.models import (
    RecordKind,
    ParentType,
    ParentRef,
    RemoteRecord,
    RecordMetadata,
    RecordListing,
    fingerprint,
    scope_records,
)
from notionsh.notion.gateway import NotionGateway, NotionAPIError
from notionsh.notion.markdown import blocks_to_markdown, markdown_to_blocks

__all__ = [
    "NotionGateway",
    "NotionAPIError",
    "RecordKind",
    "ParentType",
    "ParentRef",
    "RemoteRecord",
    "RecordMetadata",
    "RecordListing",
    "fingerprint",
    "scope_records",
    "blocks_to_markdown",
    "markdown_to_blocks",
]
