"""Tests for record models and scope filtering."""

from notionsh.notion.models import (
    ParentRef,
    ParentType,
    RecordListing,
    compact_id,
    fingerprint,
    scope_records,
)

from conftest import DB1_ID, HOME_ID, NOTES_ID, TASKS_ID, make_collection, make_page


class TestParentRef:

    def test_page_parent(self):
        ref = ParentRef.from_api({"type": "page_id", "page_id": "p1"})
        assert ref == ParentRef(ParentType.PAGE, "p1")

    def test_database_parent(self):
        ref = ParentRef.from_api({"type": "database_id", "database_id": "d1"})
        assert ref == ParentRef(ParentType.COLLECTION, "d1")

    def test_workspace_and_block_parents(self):
        assert ParentRef.from_api({"type": "workspace", "workspace": True}).type is ParentType.WORKSPACE
        assert ParentRef.from_api({"type": "block_id", "block_id": "b1"}).type is ParentType.WORKSPACE
        assert ParentRef.from_api(None).type is ParentType.WORKSPACE


class TestIds:

    def test_compact_id_ignores_dashes_and_case(self):
        assert compact_id("ABCD-ef01") == "abcdef01"

    def test_fingerprint_is_first_eight(self):
        assert fingerprint(NOTES_ID) == "22222222"


class TestScopeRecords:

    def records(self):
        return [
            make_page(HOME_ID, "Home"),
            make_page(NOTES_ID, "Notes", HOME_ID),
            make_page(TASKS_ID, "Tasks"),
            make_collection(DB1_ID, "DB1", NOTES_ID),
        ]

    def test_no_root_keeps_everything(self):
        assert len(scope_records(self.records(), None)) == 4

    def test_subtree_of_root(self):
        """Given a root, only it and its transitive descendants remain."""
        scoped = scope_records(self.records(), HOME_ID)
        assert [r.id for r in scoped] == [HOME_ID, NOTES_ID, DB1_ID]

    def test_root_id_without_dashes(self):
        scoped = scope_records(self.records(), compact_id(NOTES_ID))
        assert [r.id for r in scoped] == [NOTES_ID, DB1_ID]

    def test_descendant_listed_before_parent(self):
        """Given a child listed before its parent, the fixed point still includes it."""
        records = list(reversed(self.records()))
        scoped = scope_records(records, HOME_ID)
        assert {r.id for r in scoped} == {HOME_ID, NOTES_ID, DB1_ID}

    def test_listing_len(self):
        listing = RecordListing(pages=self.records()[:3], collections=self.records()[3:])
        assert len(listing) == 4
