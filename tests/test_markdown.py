"""
Tests for the Markdown <-> Notion block conversion.

Tests focus on:
- Rendering of every supported block type (and the unsupported marker)
- Nesting: indented list children, quoted callout/quote children
- Encoding line rules: headings, lists, checklists, quotes, fences, dividers
- Paragraph runs and block boundaries
- Stability of decode(encode(...)) on canonical text
"""

import pytest

from notionsh.notion.markdown import (
    RICH_TEXT_LIMIT,
    blocks_to_markdown,
    count_unsupported_markers,
    is_block_boundary,
    markdown_to_blocks,
    rich_text_to_plain,
    text_content,
)

from conftest import text_block


def types_of(blocks):
    return [block["type"] for block in blocks]


def text_of(block):
    return rich_text_to_plain(block[block["type"]]["rich_text"])


class TestDecode:
    """Block tree -> Markdown."""

    def test_headings(self):
        """Given heading blocks, each level gets its own number of hashes."""
        blocks = [
            text_block("heading_1", "One"),
            text_block("heading_2", "Two"),
            text_block("heading_3", "Three"),
        ]
        assert blocks_to_markdown(blocks) == "# One\n\n## Two\n\n### Three"

    def test_list_items_and_checklists(self):
        blocks = [
            text_block("bulleted_list_item", "apple"),
            text_block("numbered_list_item", "first"),
            text_block("to_do", "open", checked=False),
            text_block("to_do", "done", checked=True),
        ]
        assert blocks_to_markdown(blocks) == "- apple\n\n1. first\n\n- [ ] open\n\n- [x] done"

    def test_nested_children_indented_two_spaces_per_level(self):
        """Given a bullet with a child which has a child, each level indents by two spaces."""
        grandchild = text_block("bulleted_list_item", "leaf")
        child = text_block("bulleted_list_item", "branch")
        child["children"] = [grandchild]
        parent = text_block("bulleted_list_item", "root")
        parent["children"] = [child]

        assert blocks_to_markdown([parent]) == "- root\n  - branch\n    - leaf"

    def test_quote_children_are_re_prefixed(self):
        quote = text_block("quote", "first line\nsecond line")
        quote["children"] = [text_block("paragraph", "nested")]

        assert blocks_to_markdown([quote]) == "> first line\n> second line\n> nested"

    def test_callout_carries_icon(self):
        callout = text_block("callout", "Heads up", icon={"type": "emoji", "emoji": "!"})
        assert blocks_to_markdown([callout]) == "> ! Heads up"

    def test_code_block_keeps_language(self):
        code = text_block("code", "print('hi')", language="python")
        assert blocks_to_markdown([code]) == "```python\nprint('hi')\n```"

    def test_plain_text_code_block_has_bare_fence(self):
        code = text_block("code", "raw", language="plain text")
        assert blocks_to_markdown([code]) == "```\nraw\n```"

    def test_divider_and_references(self):
        blocks = [
            {"object": "block", "id": "d1", "type": "divider", "divider": {}},
            {"object": "block", "id": "p1", "type": "child_page", "child_page": {"title": "Sub"}},
            {"object": "block", "id": "db-1", "type": "child_database", "child_database": {"title": "T"}},
        ]
        assert blocks_to_markdown(blocks) == "---\n\n[[Sub]]\n\n[db:db-1]"

    def test_unsupported_block_is_never_dropped(self):
        """Given a block type with no Markdown form, a marker names its type and id."""
        blocks = [{"object": "block", "id": "abc", "type": "embed", "embed": {"url": "https://x"}}]
        assert blocks_to_markdown(blocks) == "<!-- unsupported:embed id:abc -->"

    def test_trailing_whitespace_trimmed(self):
        blocks = [text_block("paragraph", "text   "), text_block("paragraph", "")]
        assert blocks_to_markdown(blocks) == "text"

    def test_rich_text_without_plain_text(self):
        """Blocks built by the encoder only carry text.content."""
        assert rich_text_to_plain([{"type": "text", "text": {"content": "hi"}}]) == "hi"
        assert rich_text_to_plain(None) == ""


class TestEncode:
    """Markdown -> block list."""

    def test_heading_bullet_paragraph(self):
        """Given "# Title, - item, hello", three blocks come out in order."""
        blocks = markdown_to_blocks("# Title\n\n- item\n\nhello")

        assert types_of(blocks) == ["heading_1", "bulleted_list_item", "paragraph"]
        assert [text_of(b) for b in blocks] == ["Title", "item", "hello"]

    def test_checklist_before_bullet(self):
        blocks = markdown_to_blocks("- [ ] todo\n- [x] done\n- plain")

        assert types_of(blocks) == ["to_do", "to_do", "bulleted_list_item"]
        assert blocks[0]["to_do"]["checked"] is False
        assert blocks[1]["to_do"]["checked"] is True

    def test_numbered_items(self):
        blocks = markdown_to_blocks("1. one\n2. two")
        assert types_of(blocks) == ["numbered_list_item", "numbered_list_item"]
        assert text_of(blocks[1]) == "two"

    def test_fence_consumed_greedily(self):
        """Given a fence containing Markdown-looking lines, they stay code."""
        blocks = markdown_to_blocks("```python\n# not a heading\n- not a bullet\n```\nafter")

        assert types_of(blocks) == ["code", "paragraph"]
        assert blocks[0]["code"]["language"] == "python"
        assert text_of(blocks[0]) == "# not a heading\n- not a bullet"

    def test_bare_fence_is_plain_text(self):
        blocks = markdown_to_blocks("```\nx\n```")
        assert blocks[0]["code"]["language"] == "plain text"

    def test_unterminated_fence_runs_to_end(self):
        blocks = markdown_to_blocks("```\nline 1\nline 2")
        assert types_of(blocks) == ["code"]
        assert text_of(blocks[0]) == "line 1\nline 2"

    def test_consecutive_quote_lines_form_one_block(self):
        blocks = markdown_to_blocks("> a\n> b\nc")

        assert types_of(blocks) == ["quote", "paragraph"]
        assert text_of(blocks[0]) == "a\nb"

    def test_divider(self):
        assert types_of(markdown_to_blocks("above\n\n---\n\nbelow")) == ["paragraph", "divider", "paragraph"]

    def test_paragraph_run_ends_at_boundary(self):
        """Given plain lines followed by a heading, the plain lines form one paragraph."""
        blocks = markdown_to_blocks("line one\nline two\n## Next")

        assert types_of(blocks) == ["paragraph", "heading_2"]
        assert text_of(blocks[0]) == "line one\nline two"

    def test_crlf_normalized(self):
        blocks = markdown_to_blocks("# A\r\n\r\nb\r\n")
        assert [text_of(b) for b in blocks] == ["A", "b"]

    def test_unsupported_marker_becomes_paragraph(self):
        blocks = markdown_to_blocks("<!-- unsupported:embed id:abc -->")
        assert types_of(blocks) == ["paragraph"]
        assert text_of(blocks[0]) == "<!-- unsupported:embed id:abc -->"

    def test_record_references_produce_no_blocks(self):
        """Child page and database lines are left to the blocks already on the page."""
        blocks = markdown_to_blocks("intro\n[[Sub page]]\n[db:1234]\noutro")
        assert [text_of(b) for b in blocks] == ["intro", "outro"]

    def test_empty_text(self):
        assert markdown_to_blocks("") == []
        assert markdown_to_blocks("\n\n  \n") == []

    def test_long_text_split_into_segments(self):
        segments = text_content("x" * (RICH_TEXT_LIMIT * 2 + 5))
        assert [len(s["text"]["content"]) for s in segments] == [RICH_TEXT_LIMIT, RICH_TEXT_LIMIT, 5]


class TestRoundTrip:
    """decode(encode(text)) for the supported subset."""

    @pytest.mark.parametrize("text", [
        "# Title\n\n## Sub\n\n### Small",
        "- a\n\n- b\n\n1. one\n\n- [ ] open\n\n- [x] done",
        "> quoted\n> twice",
        "```js\nconst x = 1;\n```",
        "intro line\nsecond line\n\n---\n\nafter",
    ])
    def test_canonical_text_survives(self, text):
        assert blocks_to_markdown(markdown_to_blocks(text)) == text

    def test_empty_items_keep_their_block_type(self):
        """Given blank checklist, list and heading blocks, a save keeps each block's type."""
        blocks = [
            text_block("to_do", "", checked=False),
            text_block("to_do", "", checked=True),
            text_block("bulleted_list_item", ""),
            text_block("numbered_list_item", ""),
            text_block("heading_2", ""),
        ]
        markdown = blocks_to_markdown(blocks)
        assert markdown == "- [ ]\n\n- [x]\n\n-\n\n1.\n\n##"

        encoded = markdown_to_blocks(markdown)
        assert types_of(encoded) == [
            "to_do", "to_do", "bulleted_list_item", "numbered_list_item", "heading_2",
        ]
        assert [rich_text_to_plain(b[b["type"]]["rich_text"]) for b in encoded] == [""] * 5
        assert [b["to_do"]["checked"] for b in encoded[:2]] == [False, True]

    @pytest.mark.parametrize("line", ["--", "#tag", "1.5 million", "-x"])
    def test_marker_without_space_is_paragraph(self, line):
        assert types_of(markdown_to_blocks(line)) == ["paragraph"]

    def test_decode_encode_is_idempotent(self):
        """Given sloppy input, a second round trip changes nothing."""
        messy = "#  Title\n- a\n- b\ntext\n>q1\n>q2\n```\ncode\n```\n----"
        once = blocks_to_markdown(markdown_to_blocks(messy))
        twice = blocks_to_markdown(markdown_to_blocks(once))
        assert once == twice


class TestHelpers:

    @pytest.mark.parametrize("line,expected", [
        ("# h", True),
        ("- [ ] t", True),
        ("- b", True),
        ("3. n", True),
        ("> q", True),
        ("```", True),
        ("---", True),
        ("plain", False),
        ("#nospace", False),
    ])
    def test_is_block_boundary(self, line, expected):
        assert is_block_boundary(line) is expected

    def test_count_unsupported_markers(self):
        text = "a\n<!-- unsupported:embed id:1 -->\n  <!-- unsupported:pdf id:2 -->\nb"
        assert count_unsupported_markers(text) == 2
