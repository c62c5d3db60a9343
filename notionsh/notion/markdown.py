"""Conversion between Notion block trees and Markdown text.

Decoding (blocks -> Markdown) covers every block type: types without a
Markdown rendering become an ``<!-- unsupported:... -->`` marker so no
block disappears from view. Encoding (Markdown -> blocks) recognizes
headings 1-3, bullets, numbered items, checklists, quotes, fenced code
and dividers; everything else becomes a paragraph. Unsupported markers
are not turned back into their original blocks: they are encoded as
plain paragraphs. Child page (``[[title]]``) and database (``[db:id]``)
lines produce no block, since those blocks stay on the page when its
content is replaced.
"""

import re
from typing import Any, Dict, List, Optional

INDENT = "  "
RICH_TEXT_LIMIT = 2000
PLAIN_LANGUAGE = "plain text"
DEFAULT_CALLOUT_ICON = "\U0001F4AC"

UNSUPPORTED_MARKER = re.compile(r"^<!-- unsupported:(\S+) id:(\S+) -->$")

# Item text is optional so empty headings and list items keep their kind
_HEADING = re.compile(r"^(#{1,3})(?:\s+(.*))?$")
_TODO = re.compile(r"^-\s\[( |x|X)\](?:\s+(.*))?$")
_BULLET = re.compile(r"^-(?:\s+(.*))?$")
_NUMBERED = re.compile(r"^\d+\.(?:\s+(.*))?$")
_QUOTE = re.compile(r"^>\s?(.*)$")
_FENCE = re.compile(r"^```(.*)$")
_DIVIDER = re.compile(r"^---+$")
# Child pages and databases are separate records, kept as-is on write
_RECORD_REF = re.compile(r"^(\[\[.+\]\]|\[db:[^\]]+\])$")

_BOUNDARIES = (_HEADING, _TODO, _BULLET, _NUMBERED, _QUOTE, _FENCE, _DIVIDER, _RECORD_REF)


def rich_text_to_plain(rich_text: Optional[List[Dict[str, Any]]]) -> str:
    """Flatten a Notion rich_text array to plain text."""
    if not isinstance(rich_text, list):
        return ""

    parts = []
    for chunk in rich_text:
        chunk = chunk or {}
        if "plain_text" in chunk:
            parts.append(chunk["plain_text"] or "")
        else:
            # Blocks we built ourselves only carry text.content
            parts.append((chunk.get("text") or {}).get("content", ""))
    return "".join(parts)


def text_content(content: str) -> List[Dict[str, Any]]:
    """Build a rich_text array, split into segments Notion accepts."""
    if not content:
        return [{"type": "text", "text": {"content": ""}}]

    return [
        {"type": "text", "text": {"content": content[i:i + RICH_TEXT_LIMIT]}}
        for i in range(0, len(content), RICH_TEXT_LIMIT)
    ]


def _callout_icon(icon: Optional[Dict[str, Any]]) -> str:
    if not isinstance(icon, dict):
        return DEFAULT_CALLOUT_ICON
    if icon.get("type") == "emoji" and icon.get("emoji"):
        return icon["emoji"]
    if icon.get("type") == "custom_emoji":
        name = (icon.get("custom_emoji") or {}).get("name")
        if name:
            return f":{name}:"
    return DEFAULT_CALLOUT_ICON


def _payload(block: Dict[str, Any]) -> Dict[str, Any]:
    return block.get(block.get("type", ""), None) or {}


def _children(block: Dict[str, Any]) -> List[Dict[str, Any]]:
    children = block.get("children")
    return children if isinstance(children, list) else []


def _indented_children(block: Dict[str, Any]) -> List[str]:
    lines: List[str] = []
    for child in _children(block):
        for line in render_block(child):
            lines.append(f"{INDENT}{line}" if line else line)
    return lines


def _quoted(lines: List[str]) -> List[str]:
    return [f"> {line}" if line else ">" for line in lines]


def _quoted_children(block: Dict[str, Any]) -> List[str]:
    lines: List[str] = []
    for child in _children(block):
        lines.extend(render_block(child))
    return _quoted(lines)


def render_block(block: Dict[str, Any]) -> List[str]:
    """Render one block (and its children) as Markdown lines.

    Lines are produced at nesting depth zero; callers indent children.

    Args:
        block: Notion block dict, optionally carrying ``children``

    Returns:
        List of Markdown lines
    """
    block_type = block.get("type")
    payload = _payload(block)
    text = rich_text_to_plain(payload.get("rich_text"))

    if block_type == "paragraph":
        return [text, *_indented_children(block)]

    if block_type in ("heading_1", "heading_2", "heading_3"):
        level = int(block_type[-1])
        return [f"{'#' * level} {text}"]

    if block_type == "bulleted_list_item":
        return [f"- {text}", *_indented_children(block)]

    if block_type == "numbered_list_item":
        return [f"1. {text}", *_indented_children(block)]

    if block_type == "to_do":
        checked = "x" if payload.get("checked") else " "
        return [f"- [{checked}] {text}", *_indented_children(block)]

    if block_type == "quote":
        return [*_quoted(text.split("\n")), *_quoted_children(block)]

    if block_type == "callout":
        icon = _callout_icon(payload.get("icon"))
        first = f"> {icon} {text}" if text else f"> {icon}"
        return [first, *_quoted_children(block)]

    if block_type == "code":
        language = payload.get("language") or ""
        if language == PLAIN_LANGUAGE:
            language = ""
        return [f"```{language}", text, "```"]

    if block_type == "divider":
        return ["---"]

    if block_type == "child_database":
        return [f"[db:{block.get('id')}]"]

    if block_type == "child_page":
        return [f"[[{payload.get('title') or 'child-page'}]]"]

    return [f"<!-- unsupported:{block_type} id:{block.get('id')} -->"]


def blocks_to_markdown(blocks: List[Dict[str, Any]]) -> str:
    """Render a block tree as Markdown.

    Each top-level block becomes one section; sections are separated by
    a blank line and trailing whitespace is trimmed.
    """
    sections = []
    for block in blocks:
        section = "\n".join(render_block(block)).rstrip()
        if section:
            sections.append(section)
    return "\n\n".join(sections).rstrip()


def is_block_boundary(line: str) -> bool:
    """True if ``line`` starts a construct that ends a paragraph run."""
    return any(pattern.match(line) for pattern in _BOUNDARIES)


def _block(block_type: str, **payload: Any) -> Dict[str, Any]:
    return {"object": "block", "type": block_type, block_type: payload}


def markdown_to_blocks(markdown: str) -> List[Dict[str, Any]]:
    """Parse Markdown into a flat list of Notion blocks.

    Single left-to-right scan. Fenced code and runs of quote lines are
    consumed greedily; runs of other non-blank lines that do not start a
    known construct become one paragraph. Child page and database
    reference lines are skipped.

    Args:
        markdown: Markdown text

    Returns:
        List of block dicts ready for ``blocks.children.append``
    """
    lines = markdown.replace("\r\n", "\n").split("\n")
    blocks: List[Dict[str, Any]] = []
    i = 0

    while i < len(lines):
        line = lines[i].rstrip()
        stripped = line.strip()

        if not stripped:
            i += 1
            continue

        fence = _FENCE.match(stripped)
        if fence:
            language = fence.group(1).strip() or PLAIN_LANGUAGE
            i += 1
            code_lines = []
            while i < len(lines) and not lines[i].strip().startswith("```"):
                code_lines.append(lines[i])
                i += 1
            # Skip the closing fence (an unterminated fence runs to EOF)
            if i < len(lines):
                i += 1
            blocks.append(_block("code", language=language, rich_text=text_content("\n".join(code_lines))))
            continue

        heading = _HEADING.match(stripped)
        if heading:
            block_type = f"heading_{len(heading.group(1))}"
            blocks.append(_block(block_type, rich_text=text_content(heading.group(2) or "")))
            i += 1
            continue

        todo = _TODO.match(stripped)
        if todo:
            blocks.append(_block(
                "to_do",
                checked=todo.group(1).lower() == "x",
                rich_text=text_content(todo.group(2) or ""),
            ))
            i += 1
            continue

        bullet = _BULLET.match(stripped)
        if bullet:
            blocks.append(_block("bulleted_list_item", rich_text=text_content(bullet.group(1) or "")))
            i += 1
            continue

        numbered = _NUMBERED.match(stripped)
        if numbered:
            blocks.append(_block("numbered_list_item", rich_text=text_content(numbered.group(1) or "")))
            i += 1
            continue

        quote = _QUOTE.match(stripped)
        if quote:
            quote_lines = [quote.group(1)]
            i += 1
            while i < len(lines):
                next_quote = _QUOTE.match(lines[i].strip())
                if not next_quote:
                    break
                quote_lines.append(next_quote.group(1))
                i += 1
            blocks.append(_block("quote", rich_text=text_content("\n".join(quote_lines))))
            continue

        if _DIVIDER.match(stripped):
            blocks.append(_block("divider"))
            i += 1
            continue

        if _RECORD_REF.match(stripped):
            i += 1
            continue

        paragraph_lines = [line]
        i += 1
        while i < len(lines):
            next_line = lines[i].rstrip()
            if not next_line.strip() or is_block_boundary(next_line.strip()):
                break
            paragraph_lines.append(next_line)
            i += 1
        blocks.append(_block("paragraph", rich_text=text_content("\n".join(paragraph_lines))))

    return blocks


def count_unsupported_markers(markdown: str) -> int:
    """Count unsupported-block markers in Markdown about to be written."""
    return sum(1 for line in markdown.split("\n") if UNSUPPORTED_MARKER.match(line.strip()))
