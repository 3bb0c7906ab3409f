"""Tests for batch apply planning, execution and end-to-end runs.

Following the testing philosophy:
- Client-perspective behavior verification
- Given-When-Then structure
- Minimal mocking (real files under tmp_path)
"""

import asyncio

import pytest

from remediation_agent.config import RemediationConfig
from remediation_agent.fixing import ApplyResult, FixLifecycle, PatchApplier, suggest_fixes
from remediation_agent.models import ConfirmAction, Fix, FixStatus, LocateStrategy, Platform
from remediation_agent.orchestrator import (
    ApplyPlanner,
    PatchExecutor,
    RemediationOrchestrator,
    apply_fixes,
    summarize,
)
from remediation_agent.scanner import scan_project_sync
from remediation_agent.tools.storage import InMemoryStore


NON_NULL = (
    "export function read(foo?: { bar: number }) {\n"
    "  return foo!.bar;\n"
    "}\n"
)

ANY_TYPE = "export let cache: any = null;\n"

FLUTTER_STATE = (
    "class _S extends State<W> {\n"
    "  StreamSubscription<int>? _sub;\n"
    "  final _c = TextEditingController();\n"
    "\n"
    "  @override\n"
    "  Widget build(BuildContext context) {\n"
    "    return Text('x');\n"
    "  }\n"
    "}\n"
)


def make_fix(file, start_line, original="x", suggested="y", project_path=None):
    return Fix(
        issue_id="issue",
        title="Fix: test",
        description="test",
        confidence=90,
        file=file,
        line=start_line,
        start_line=start_line,
        original_code=original,
        suggested_code=suggested,
        project_path=project_path,
    )


class TestApplyPlanner:
    """Tests for apply ordering."""

    def test_same_file_applied_bottom_up(self, tmp_path):
        """Given two fixes in one file, should apply the lower one first."""
        # Given
        top = make_fix("a.ts", 2, project_path=str(tmp_path))
        bottom = make_fix("a.ts", 5, project_path=str(tmp_path))

        # When
        plan = ApplyPlanner().plan([top, bottom])

        # Then
        assert plan.order == [bottom.id, top.id]
        assert len(plan.file_groups) == 1
        assert plan.overlapping == []

    def test_files_grouped_and_sorted(self, tmp_path):
        """Given fixes across files, should group per file in path order."""
        # Given
        b = make_fix("b.ts", 1, project_path=str(tmp_path))
        a = make_fix("a.ts", 1, project_path=str(tmp_path))

        # When
        plan = ApplyPlanner().plan([b, a])

        # Then
        assert plan.order == [a.id, b.id]
        assert plan.total_fixes == 2

    def test_parallel_groups_never_touch_a_file_twice(self, tmp_path):
        """Given two files with two and one fixes, waves should hold one fix per file."""
        # Given
        a1 = make_fix("a.ts", 1, project_path=str(tmp_path))
        a2 = make_fix("a.ts", 9, project_path=str(tmp_path))
        b1 = make_fix("b.ts", 3, project_path=str(tmp_path))

        # When
        waves = ApplyPlanner().plan([a1, a2, b1]).parallel_groups

        # Then
        assert waves == [[a2.id, b1.id], [a1.id]]

    def test_overlapping_regions_reported(self, tmp_path):
        """Given fixes whose regions overlap, should report the pair."""
        # Given
        first = make_fix("a.ts", 3, original="l3\nl4\nl5", project_path=str(tmp_path))
        second = make_fix("a.ts", 4, project_path=str(tmp_path))
        far = make_fix("a.ts", 20, project_path=str(tmp_path))

        # When
        pairs = ApplyPlanner().overlapping_pairs([first, second, far])

        # Then
        assert pairs == [(first.id, second.id)]


def confirmed_project(tmp_path):
    """A project with one fix per file for two files, all confirmed."""
    (tmp_path / "read.ts").write_text(NON_NULL)
    (tmp_path / "cache.ts").write_text(ANY_TYPE)
    store = InMemoryStore().open()
    scan = scan_project_sync(str(tmp_path), Platform.WEB)
    summary = suggest_fixes(scan.issues, Platform.WEB, project_path=str(tmp_path), store=store)
    lifecycle = FixLifecycle(store)
    for fix in summary.suggestions:
        lifecycle.confirm(fix.id, ConfirmAction.APPROVE)
    return store, [f.id for f in summary.suggestions]


class TestPatchExecutor:
    """Tests for batch execution."""

    def test_applies_all_files(self, tmp_path):
        """Given confirmed fixes in two files, should apply both."""
        # Given
        store, fix_ids = confirmed_project(tmp_path)

        # When
        outcome = apply_fixes(store, fix_ids)

        # Then
        assert outcome["summary"]["successful"] == len(fix_ids) == 2
        assert "foo?.bar" in (tmp_path / "read.ts").read_text()
        assert "cache: unknown" in (tmp_path / "cache.ts").read_text()

    def test_failure_becomes_result_not_exception(self, tmp_path):
        """Given a pending fix in the batch, should report it failed and still apply the rest."""
        # Given
        store, fix_ids = confirmed_project(tmp_path)
        pending = store.save(make_fix("read.ts", 2, "  return foo!.bar;", "  return foo?.bar;",
                                      str(tmp_path)))

        # When
        outcome = apply_fixes(store, [pending.id] + fix_ids)

        # Then
        failed = [r for r in outcome["results"] if not r.success]
        assert [r.fix_id for r in failed] == [pending.id]
        assert "not confirmed" in failed[0].error
        assert outcome["summary"]["successful"] == 2

    def test_stop_on_error_skips_later_fixes_in_file(self, tmp_path):
        """Given stop-on-error, fixes after a failure in the same file should be skipped."""
        # Given
        (tmp_path / "a.ts").write_text("a\nb\nc\nd\ne\n")
        store = InMemoryStore().open()
        lifecycle = FixLifecycle(store)
        bottom = store.save(make_fix("a.ts", 5, "e", "E(", str(tmp_path)))
        top = store.save(make_fix("a.ts", 1, "a", "A", str(tmp_path)))
        for fix in (bottom, top):
            lifecycle.confirm(fix.id, ConfirmAction.APPROVE)

        # When
        outcome = apply_fixes(store, [top.id, bottom.id], stop_on_error=True)

        # Then
        results = {r.fix_id: r for r in outcome["results"]}
        assert not results[bottom.id].success
        assert results[top.id].skipped
        assert outcome["summary"] == {
            "total": 2, "successful": 0, "failed": 1, "skipped": 1, "manual": 0,
        }
        assert (tmp_path / "a.ts").read_text() == "a\nb\nc\nd\ne\n"

    def test_dry_run_writes_nothing(self, tmp_path):
        """Given dry_run, should return diffs and leave files and statuses alone."""
        # Given
        store, fix_ids = confirmed_project(tmp_path)

        # When
        outcome = apply_fixes(store, fix_ids, dry_run=True)

        # Then
        assert all(r.dry_run and r.diff for r in outcome["results"])
        assert (tmp_path / "read.ts").read_text() == NON_NULL
        assert all(store.get_fix(i).status == FixStatus.CONFIRMED for i in fix_ids)

    def test_apply_all_confirmed(self, tmp_path):
        """Given a project with confirmed fixes, should apply exactly those."""
        # Given
        store, fix_ids = confirmed_project(tmp_path)
        executor = PatchExecutor(PatchApplier(store))

        # When
        outcome = asyncio.run(executor.apply_all_confirmed(str(tmp_path)))

        # Then
        assert sorted(r.fix_id for r in outcome["results"]) == sorted(fix_ids)
        assert store.confirmed_fixes(str(tmp_path)) == []

    def test_summarize_counts_manual(self):
        """Given results with a manual strategy, should count them as manual successes."""
        results = [
            ApplyResult("a", True, LocateStrategy.EXACT),
            ApplyResult("b", True, LocateStrategy.MANUAL),
            ApplyResult("c", False, error="boom"),
        ]
        assert summarize(results) == {
            "total": 3, "successful": 2, "failed": 1, "skipped": 0, "manual": 1,
        }


class TestRemediationOrchestrator:
    """Tests for end-to-end runs."""

    def test_batch_mode_leaves_fixes_pending(self, tmp_path):
        """Given batch mode, should store pending fixes and apply nothing."""
        # Given
        (tmp_path / "read.ts").write_text(NON_NULL)
        orchestrator = RemediationOrchestrator()

        # When
        run = asyncio.run(orchestrator.run(str(tmp_path), Platform.WEB, confirm_mode="batch"))

        # Then
        assert run.fixes
        assert all(f.status == FixStatus.PENDING for f in run.fixes)
        assert run.applications == []
        assert (tmp_path / "read.ts").read_text() == NON_NULL
        assert run.summary["confirmation"]["pending"] == len(run.fixes)

    def test_auto_mode_applies_high_confidence_only(self, tmp_path):
        """Given auto mode with threshold 85, should apply the 90% fix and leave the 50% one."""
        # Given
        (tmp_path / "read.ts").write_text(NON_NULL)
        (tmp_path / "cache.ts").write_text(ANY_TYPE)
        config = RemediationConfig(auto_confirm_threshold=85, store_root=str(tmp_path / "store"))
        orchestrator = RemediationOrchestrator(config=config)

        # When
        run = asyncio.run(orchestrator.run(str(tmp_path), Platform.WEB, confirm_mode="auto"))

        # Then
        statuses = {f.template_id: f.status for f in run.fixes}
        assert statuses["ts-optional-chaining"] == FixStatus.APPLIED
        assert statuses["ts-any-to-unknown"] == FixStatus.PENDING
        assert "foo?.bar" in (tmp_path / "read.ts").read_text()
        assert (tmp_path / "cache.ts").read_text() == ANY_TYPE
        assert run.summary["apply"]["successful"] == 1

    def test_interactive_mode_uses_callback(self, tmp_path):
        """Given an interactive callback that rejects everything, should apply nothing."""
        # Given
        (tmp_path / "read.ts").write_text(NON_NULL)
        orchestrator = RemediationOrchestrator()

        # When
        run = asyncio.run(orchestrator.run(
            str(tmp_path), Platform.WEB,
            confirm_mode="interactive",
            confirm_callback=lambda fix: ConfirmAction.REJECT,
        ))

        # Then
        assert all(f.status == FixStatus.REJECTED for f in run.fixes)
        assert run.summary["confirmation"]["rejected"] == len(run.fixes)
        assert (tmp_path / "read.ts").read_text() == NON_NULL

    def test_interactive_mode_requires_callback(self, tmp_path):
        """Given interactive mode without a callback, should raise ValueError."""
        with pytest.raises(ValueError):
            asyncio.run(RemediationOrchestrator().run(
                str(tmp_path), Platform.WEB, confirm_mode="interactive"
            ))

    def test_rollback_all_restores_files(self, tmp_path):
        """Given an auto run that applied fixes, rollback_all should restore the originals."""
        # Given
        (tmp_path / "read.ts").write_text(NON_NULL)
        orchestrator = RemediationOrchestrator(config=RemediationConfig(auto_confirm_threshold=85))
        asyncio.run(orchestrator.run(str(tmp_path), Platform.WEB, confirm_mode="auto"))

        # When
        rolled_back = orchestrator.rollback_all(str(tmp_path))

        # Then
        assert len(rolled_back) == 1
        assert (tmp_path / "read.ts").read_text() == NON_NULL

    def test_two_cleanups_in_one_flutter_class_share_one_dispose(self, tmp_path):
        """Given two undisposed resources in one State class, should add both to a single dispose()."""
        # Given
        (tmp_path / "screen.dart").write_text(FLUTTER_STATE)
        config = RemediationConfig(auto_confirm_threshold=50)
        orchestrator = RemediationOrchestrator(config=config)

        # When
        run = asyncio.run(orchestrator.run(str(tmp_path), Platform.FLUTTER, confirm_mode="auto"))

        # Then
        cleanups = [f for f in run.fixes if f.template_id == "flutter-dispose-cleanup"]
        assert len(cleanups) == 2
        assert all(f.status == FixStatus.APPLIED for f in cleanups)
        content = (tmp_path / "screen.dart").read_text()
        assert content.count("void dispose()") == 1
        dispose_body = content[content.index("void dispose()"):]
        assert "_sub?.cancel();" in dispose_body
        assert "_c.dispose();" in dispose_body
        assert dispose_body.index("_c.dispose();") < dispose_body.index("super.dispose();")
        assert dispose_body.index("_sub?.cancel();") < dispose_body.index("super.dispose();")
        assert "    return Text('x');\n  }\n" in content
        assert content.index("Widget build") < content.index("void dispose()")
