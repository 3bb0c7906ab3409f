"""Tests for the issue/fix/application stores."""

import json

import pytest

from remediation_agent.errors import InvalidStateError, NotFoundError, PatchIOError
from remediation_agent.models import (
    Fix,
    FixStatus,
    Issue,
    IssueKind,
    PatchApplication,
    Severity,
)
from remediation_agent.tools.storage import InMemoryStore, JsonFileStore


def make_issue(**overrides):
    data = dict(
        kind=IssueKind.NULL_REFERENCE,
        severity=Severity.MEDIUM,
        title="Non-null assertion operator",
        description="Force unwrap of foo may cause runtime error if null",
        file="src/read.ts",
        line=2,
        column=10,
        code="return foo!.bar;",
        rule_id="ts-non-null-assertion",
        details={"variable": "foo"},
    )
    data.update(overrides)
    return Issue(**data)


def make_fix(issue_id="issue-1", **overrides):
    data = dict(
        issue_id=issue_id,
        title="Fix: Non-null assertion operator",
        description="Use optional chaining",
        confidence=90,
        file="src/read.ts",
        line=2,
        start_line=2,
        original_code="  return foo!.bar;",
        suggested_code="  return foo?.bar;",
    )
    data.update(overrides)
    return Fix(**data)


class TestInMemoryStore:
    """Tests for the in-memory store."""

    def test_save_and_get_round_trip(self):
        """Given a saved issue, get should return an equal copy."""
        # Given
        store = InMemoryStore().open()
        issue = make_issue()

        # When
        store.save(issue, "/proj")
        loaded = store.get_issue(issue.id)

        # Then
        assert loaded == issue
        assert loaded.details is not issue.details

    def test_returned_records_do_not_alias_store(self):
        """Given a fetched fix whose nested data is mutated, the stored copy should not change."""
        # Given
        store = InMemoryStore().open()
        fix = make_fix()
        store.save(fix)

        # When
        loaded = store.get_fix(fix.id)
        loaded.impact.tests_affected.append("read.test.ts")

        # Then
        assert store.get_fix(fix.id).impact.tests_affected == []

    def test_issue_details_stay_immutable(self):
        """Given a fetched issue whose nested details are mutated, the stored issue should not change."""
        # Given
        store = InMemoryStore().open()
        issue = store.save(make_issue(details={"lines": [1]}))

        # When
        store.get_issue(issue.id).details["lines"].append(2)

        # Then
        assert store.get_issue(issue.id).details == {"lines": [1]}
        assert store.list("issue")[0].details == {"lines": [1]}

    def test_missing_record_raises_not_found(self):
        """Given an unknown id, should raise NotFoundError, which is also a KeyError."""
        store = InMemoryStore().open()
        with pytest.raises(NotFoundError):
            store.get("nope")
        with pytest.raises(KeyError):
            store.get_fix("nope")

    def test_wrong_kind_raises_not_found(self):
        """Given an issue id, get_fix should raise NotFoundError."""
        # Given
        store = InMemoryStore().open()
        issue = store.save(make_issue())

        # When/Then
        with pytest.raises(NotFoundError):
            store.get_fix(issue.id)

    def test_issues_and_applications_are_immutable(self):
        """Given issue and application records, update should be refused."""
        # Given
        store = InMemoryStore().open()
        issue = store.save(make_issue())
        application = store.save(PatchApplication(fix_id="f", success=True))

        # When/Then
        with pytest.raises(InvalidStateError):
            store.update(issue.id, {"line": 3})
        with pytest.raises(InvalidStateError):
            store.update(application.id, {"success": False})

    def test_update_fix(self):
        """Given a saved fix, update should patch fields and return the new record."""
        # Given
        store = InMemoryStore().open()
        fix = store.save(make_fix())

        # When
        updated = store.update(fix.id, {"status": FixStatus.CONFIRMED})

        # Then
        assert updated.status == FixStatus.CONFIRMED
        assert store.get_fix(fix.id).status == FixStatus.CONFIRMED

    def test_list_filters_by_project_and_status(self):
        """Given fixes across projects and statuses, list should filter both."""
        # Given
        store = InMemoryStore().open()
        store.save(make_fix(), "/a")
        store.save(make_fix(status=FixStatus.CONFIRMED), "/a")
        store.save(make_fix(), "/b")

        # When/Then
        assert len(store.list("fix", "/a")) == 2
        assert len(store.pending_fixes("/a")) == 1
        assert len(store.confirmed_fixes()) == 1
        assert store.stats("/a")["total_fixes"] == 2

    def test_unknown_kind_raises(self):
        """Given an unknown record kind, list should raise ValueError."""
        with pytest.raises(ValueError):
            InMemoryStore().open().list("comment")

    def test_orphaned_fixes_and_clear_project(self):
        """Given a fix whose issue is gone, should report it; clearing removes everything."""
        # Given
        store = InMemoryStore().open()
        issue = store.save(make_issue(), "/a")
        kept = store.save(make_fix(issue_id=issue.id), "/a")
        orphan = store.save(make_fix(issue_id="deleted"), "/a")

        # When
        orphans = store.orphaned_fixes("/a")
        removed = store.clear_project("/a")

        # Then
        assert [f.id for f in orphans] == [orphan.id]
        assert kept.id not in [f.id for f in orphans]
        assert removed == 3
        assert store.list(project_path="/a") == []


class TestJsonFileStore:
    """Tests for the JSON file store."""

    def test_records_survive_reopen(self, tmp_path):
        """Given records saved in one store, a new store on the same root should see them."""
        # Given
        with JsonFileStore(str(tmp_path)) as store:
            issue = store.save(make_issue(), "/proj")
            fix = store.save(make_fix(issue_id=issue.id), "/proj")
            store.update(fix.id, {"status": FixStatus.CONFIRMED})

        # When
        reopened = JsonFileStore(str(tmp_path)).open()

        # Then
        assert reopened.get_issue(issue.id) == issue
        assert reopened.get_fix(fix.id).status == FixStatus.CONFIRMED
        assert len(reopened.list("fix", "/proj")) == 1

    def test_writes_plain_json(self, tmp_path):
        """Given a saved fix, the fixes file should be readable JSON with enum values."""
        # Given
        store = JsonFileStore(str(tmp_path)).open()
        fix = store.save(make_fix())

        # When
        payload = json.loads((tmp_path / "fixes.json").read_text())

        # Then
        record = payload["records"][0]["data"]
        assert record["id"] == fix.id
        assert record["status"] == "pending"
        assert not list(tmp_path.glob(".tmp-*"))

    def test_corrupt_file_raises_io_error(self, tmp_path):
        """Given a corrupt store file, open should raise PatchIOError."""
        # Given
        (tmp_path / "issues.json").write_text("{not json")

        # When/Then
        with pytest.raises(PatchIOError):
            JsonFileStore(str(tmp_path)).open()
