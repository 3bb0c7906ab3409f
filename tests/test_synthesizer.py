"""Tests for fix synthesis from detected issues."""

from remediation_agent.fixing import FixSynthesizer, suggest_fixes
from remediation_agent.fixing.synthesizer import analyze_impact, narrow
from remediation_agent.fixing.templates import Rewrite
from remediation_agent.models import FixStatus, Issue, IssueKind, Platform, Severity
from remediation_agent.scanner.rules import get_rule
from remediation_agent.tools.storage import InMemoryStore


EFFECT_LEAK = (
    "import { useEffect } from 'react';\n"
    "\n"
    "export function Feed({ api }) {\n"
    "  useEffect(() => { const s = api.subscribe(); }, []);\n"
    "  return null;\n"
    "}\n"
)

NON_NULL = (
    "export function read(foo?: { bar: number }) {\n"
    "  return foo!.bar;\n"
    "}\n"
)

THEN_UPDATE = (
    "import { useEffect, useRef, useState } from 'react';\n"
    "\n"
    "export function Profile() {\n"
    "  const [data, setData] = useState(null);\n"
    "  useEffect(() => {\n"
    "    const load = async () => {\n"
    "      const res = await fetch('/me');\n"
    "      res.json().then(data => setData(data));\n"
    "    };\n"
    "    load();\n"
    "  }, []);\n"
    "  return data;\n"
    "}\n"
)

STATEMENT_UPDATE = (
    "import { useEffect, useRef, useState } from 'react';\n"
    "export function Profile() {\n"
    "  const isMountedRef = useRef(true);\n"
    "  const [data, setData] = useState(null);\n"
    "  useEffect(() => {\n"
    "    async function load() {\n"
    "      const json = await fetch('/me').then(r => r.json());\n"
    "      setData(json);\n"
    "    }\n"
    "    load();\n"
    "  }, []);\n"
    "  return data;\n"
    "}\n"
)


def detect_one(tmp_path, name, content, rule_id, platform=None):
    path = tmp_path / name
    path.write_text(content)
    issues = get_rule(rule_id).detect(content, str(path), platform)
    assert len(issues) == 1
    return issues[0]


class TestNarrow:
    """Tests for shrinking a rewrite to its changed lines."""

    def test_keeps_only_changed_lines(self):
        """Given a window rewrite changing one line, should keep just that line."""
        # Given
        rewrite = Rewrite(3, "a\nb\nc\nd", "a\nB\nc\nd")

        # When
        narrowed = narrow(rewrite)

        # Then
        assert (narrowed.start_line, narrowed.original, narrowed.suggested) == (4, "b", "B")

    def test_pure_insertion_keeps_an_anchor_line(self):
        """Given an inserted line, should keep one original line as the anchor."""
        # Given
        rewrite = Rewrite(1, "a\nb", "a\nnew\nb")

        # When
        narrowed = narrow(rewrite)

        # Then
        assert narrowed.original.split("\n")[0] in ("a", "b")
        assert narrowed.original != ""
        assert "new" in narrowed.suggested

    def test_lone_brace_anchor_widens_to_code(self):
        """Given an insertion before a class's closing brace, should not anchor on a bare brace."""
        # Given
        rewrite = Rewrite(
            5,
            "    return x;\n  }\n}",
            "    return x;\n  }\n\n  void dispose() {\n  }\n}",
        )

        # When
        narrowed = narrow(rewrite)

        # Then
        assert narrowed.start_line == 5
        assert narrowed.original == "    return x;\n  }\n}"

    def test_anchor_must_be_unique_in_file(self):
        """Given a kept line that occurs twice in the file, should widen until it is unique."""
        # Given
        rewrite = Rewrite(2, "foo();\nbar();", "foo();\nbar(1);")
        lines = ["x", "foo();", "bar();", "bar();"]

        # When
        narrowed = narrow(rewrite, lines)

        # Then
        assert (narrowed.start_line, narrowed.original) == (2, "foo();\nbar();")
        assert narrow(rewrite).original == "bar();"


class TestFixSynthesizer:
    """Tests for single-issue synthesis."""

    def test_effect_subscription_gets_cleanup(self, tmp_path):
        """Given a leaking effect, should add an unsubscribe cleanup on the effect line."""
        # Given
        issue = detect_one(tmp_path, "Feed.tsx", EFFECT_LEAK, "react-effect-cleanup",
                           Platform.REACT_NATIVE)

        # When
        fix = FixSynthesizer().synthesize(issue)

        # Then
        assert fix is not None
        assert fix.status == FixStatus.PENDING
        assert fix.issue_id == issue.id
        assert fix.start_line == 4
        assert fix.original_code == "  useEffect(() => { const s = api.subscribe(); }, []);"
        assert "return () => s.unsubscribe();" in fix.suggested_code
        assert fix.confidence == 85
        assert fix.template_id == "react-effect-cleanup"
        assert "+" in fix.diff and "-" in fix.diff

    def test_non_null_assertion_becomes_optional_chaining(self, tmp_path):
        """Given `foo!.bar`, should suggest `foo?.bar` with high confidence."""
        # Given
        issue = detect_one(tmp_path, "read.ts", NON_NULL, "ts-non-null-assertion", Platform.WEB)

        # When
        fix = FixSynthesizer().synthesize(issue)

        # Then
        assert fix.original_code == "  return foo!.bar;"
        assert fix.suggested_code == "  return foo?.bar;"
        assert fix.confidence == 90
        assert fix.confidence_band == "high"
        assert fix.line == 2
        assert fix.start_line == 2

    def test_null_reference_alternatives(self, tmp_path):
        """Given a TS null reference, should offer a nullish-coalescing alternative with a tradeoff."""
        # Given
        issue = detect_one(tmp_path, "read.ts", NON_NULL, "ts-non-null-assertion", Platform.WEB)

        # When
        fix = FixSynthesizer().synthesize(issue)

        # Then
        assert fix.alternatives
        alt = fix.alternatives[0]
        assert "??" in alt.suggested_code
        assert alt.tradeoffs

    def test_kotlin_safe_call(self, tmp_path):
        """Given `user!!.name`, should suggest a safe call."""
        # Given
        issue = detect_one(tmp_path, "User.kt", "val n = user!!.name\n",
                           "kotlin-not-null-assertion")

        # When
        fix = FixSynthesizer().synthesize(issue)

        # Then
        assert fix.suggested_code == "val n = user?.name"
        assert fix.template_id == "kotlin-safe-call"

    def test_swift_force_unwrap(self, tmp_path):
        """Given `user!.name`, should suggest optional chaining."""
        # Given
        issue = detect_one(tmp_path, "User.swift", "let name = user!.name\n", "swift-force-unwrap")

        # When
        fix = FixSynthesizer().synthesize(issue)

        # Then
        assert fix.suggested_code == "let name = user?.name"
        assert fix.confidence == 85

    def test_any_to_unknown(self, tmp_path):
        """Given `: any`, should suggest `: unknown` with medium confidence."""
        # Given
        issue = detect_one(tmp_path, "a.ts", "let x: any = 1;\n", "ts-any-type", Platform.WEB)

        # When
        fix = FixSynthesizer().synthesize(issue)

        # Then
        assert fix.suggested_code == "let x: unknown = 1;"
        assert fix.confidence_band == "medium"
        assert fix.impact.breaking_change is True

    def test_uses_captured_snippet_when_file_missing(self):
        """Given an issue whose file is gone, should fall back to the detected snippet."""
        # Given
        issue = Issue(
            kind=IssueKind.NULL_REFERENCE,
            severity=Severity.MEDIUM,
            title="Non-null assertion operator",
            description="Force unwrap",
            file="missing/read.ts",
            line=2,
            column=8,
            code="return foo!.bar;",
            rule_id="ts-non-null-assertion",
            platform=Platform.WEB,
        )

        # When
        fix = FixSynthesizer().synthesize(issue)

        # Then
        assert fix is not None
        assert fix.suggested_code == "return foo?.bar;"

    def test_no_template_returns_none(self):
        """Given an issue kind without templates, should return None."""
        # Given
        issue = Issue(
            kind=IssueKind.INFINITE_LOOP,
            severity=Severity.LOW,
            title="Possible infinite loop",
            description="Loop without exit",
            file="a.ts",
            line=1,
            code="while (true) {",
            platform=Platform.WEB,
        )

        # When/Then
        assert FixSynthesizer().synthesize(issue) is None

    def test_relative_paths_resolved_against_project(self, tmp_path):
        """Given a relative issue path and a project root, should read the file from the project."""
        # Given
        (tmp_path / "read.ts").write_text(NON_NULL)
        issue = get_rule("ts-non-null-assertion").detect(NON_NULL, "read.ts", Platform.WEB)[0]

        # When
        fix = FixSynthesizer(project_path=str(tmp_path)).synthesize(issue)

        # Then
        assert fix.file == "read.ts"
        assert fix.project_path == str(tmp_path)
        assert fix.suggested_code == "  return foo?.bar;"


class TestMountGuards:
    """Tests for guarding state updates that run after an await."""

    def test_arrow_body_update_guarded_and_ref_declared(self, tmp_path):
        """Given an update inside a .then arrow, should guard the call and declare the ref."""
        # Given
        issue = detect_one(tmp_path, "Profile.tsx", THEN_UPDATE, "react-async-state-update",
                           Platform.WEB)

        # When
        fix = FixSynthesizer().synthesize(issue)

        # Then
        assert fix.template_id == "react-mount-guard"
        assert fix.start_line == 4
        assert fix.suggested_code.startswith("  const isMountedRef = useRef(true);\n  useEffect(() => {")
        assert "    return () => { isMountedRef.current = false; };" in fix.suggested_code
        assert fix.suggested_code.endswith(
            "      res.json().then(data => isMountedRef.current && setData(data));"
        )
        assert "if (!isMountedRef" not in fix.suggested_code

    def test_statement_update_reuses_existing_ref(self, tmp_path):
        """Given a component that already declares the ref, should only guard the update."""
        # Given
        issue = detect_one(tmp_path, "Profile.tsx", STATEMENT_UPDATE, "react-async-state-update",
                           Platform.WEB)

        # When
        fix = FixSynthesizer().synthesize(issue)

        # Then
        assert fix.start_line == 8
        assert fix.original_code == "      setData(json);"
        assert fix.suggested_code == "      if (isMountedRef.current) setData(json);"

    def test_flutter_guard_not_placed_inside_expression(self, tmp_path):
        """Given a setState inside an arrow callback, should not insert an early return there."""
        # Given
        content = (
            "class _S extends State<W> {\n"
            "  Future<void> refresh() async {\n"
            "    await load();\n"
            "    items.forEach((i) => setState(() { n = i; }));\n"
            "  }\n"
            "}\n"
        )
        issue = detect_one(tmp_path, "list.dart", content, "flutter-setstate-after-await",
                           Platform.FLUTTER)

        # When
        fix = FixSynthesizer().synthesize(issue)

        # Then
        assert fix is None

    def test_flutter_guard_on_own_line(self, tmp_path):
        """Given a setState statement after an await, should add the mounted check above it."""
        # Given
        content = (
            "class _S extends State<W> {\n"
            "  Future<void> refresh() async {\n"
            "    await load();\n"
            "    setState(() { n = 1; });\n"
            "  }\n"
            "}\n"
        )
        issue = detect_one(tmp_path, "list.dart", content, "flutter-setstate-after-await",
                           Platform.FLUTTER)

        # When
        fix = FixSynthesizer().synthesize(issue)

        # Then
        assert fix.suggested_code == "    if (!mounted) return;\n    setState(() { n = 1; });"


class TestClassTemplates:
    """Tests for capture-list, weak-delegate and class cleanup templates."""

    def test_weak_self_capture_adds_guard(self, tmp_path):
        """Given a multi-line closure capturing self, should add [weak self] and a guard let."""
        # Given
        content = (
            "class Loader {\n"
            "    func load() {\n"
            "        api.fetch(completion: { data in\n"
            "            self.items = data\n"
            "        })\n"
            "    }\n"
            "}\n"
        )
        issue = detect_one(tmp_path, "Loader.swift", content, "ios-closure-strong-self")

        # When
        fix = FixSynthesizer().synthesize(issue)

        # Then
        assert fix.template_id == "ios-weak-self-capture"
        assert fix.start_line == 3
        assert fix.suggested_code == (
            "        api.fetch(completion: { [weak self] data in\n"
            "            guard let self = self else { return }"
        )
        assert any("unowned" in a.suggested_code for a in fix.alternatives)

    def test_weak_delegate_becomes_optional(self, tmp_path):
        """Given a strong non-optional delegate, should make it weak and optional."""
        # Given
        content = "class Loader {\n    var delegate: LoaderDelegate\n}\n"
        issue = detect_one(tmp_path, "Loader.swift", content, "ios-strong-delegate")

        # When
        fix = FixSynthesizer().synthesize(issue)

        # Then
        assert fix.original_code == "    var delegate: LoaderDelegate"
        assert fix.suggested_code == "    weak var delegate: LoaderDelegate?"

    def test_class_cleanup_adds_new_teardown_method(self, tmp_path):
        """Given a Kotlin activity without onDestroy, should add one before the class's closing brace."""
        # Given
        content = (
            "class MainActivity : Activity() {\n"
            "    override fun onResume() {\n"
            "        super.onResume()\n"
            "        registerReceiver(receiver, filter)\n"
            "    }\n"
            "}\n"
        )
        issue = detect_one(tmp_path, "MainActivity.kt", content, "android-receiver-unregister")

        # When
        fix = FixSynthesizer().synthesize(issue)

        # Then
        assert fix.template_id == "android-ondestroy-cleanup"
        assert fix.start_line == 4
        assert fix.original_code == "        registerReceiver(receiver, filter)\n    }\n}"
        assert fix.suggested_code == (
            "        registerReceiver(receiver, filter)\n"
            "    }\n"
            "\n"
            "    override fun onDestroy() {\n"
            "        super.onDestroy()\n"
            "        unregisterReceiver(receiver)\n"
            "    }\n"
            "}"
        )

    def test_class_cleanup_extends_existing_teardown(self, tmp_path):
        """Given a Java activity with onDestroy, should add the removal after its super call."""
        # Given
        content = (
            "public class MainActivity extends Activity {\n"
            "    private final Handler handler = new Handler();\n"
            "\n"
            "    @Override\n"
            "    protected void onCreate(Bundle b) {\n"
            "        super.onCreate(b);\n"
            "        handler.postDelayed(task, 1000);\n"
            "    }\n"
            "\n"
            "    @Override\n"
            "    protected void onDestroy() {\n"
            "        super.onDestroy();\n"
            "    }\n"
            "}\n"
        )
        issue = detect_one(tmp_path, "MainActivity.java", content, "android-handler-callbacks")

        # When
        fix = FixSynthesizer().synthesize(issue)

        # Then
        assert fix.start_line == 12
        assert fix.original_code == "        super.onDestroy();\n    }"
        assert fix.suggested_code == (
            "        super.onDestroy();\n"
            "        handler.removeCallbacksAndMessages(null);\n"
            "    }"
        )


class TestImpact:
    """Tests for impact estimation."""

    def test_risk_follows_severity_and_finds_sibling_tests(self, tmp_path):
        """Given a high-severity issue with a sibling test file, should report medium risk and the test."""
        # Given
        (tmp_path / "Feed.tsx").write_text(EFFECT_LEAK)
        (tmp_path / "Feed.test.tsx").write_text("test('feed', () => {});\n")
        (tmp_path / "Other.test.tsx").write_text("")
        issue = get_rule("react-effect-cleanup").detect(
            EFFECT_LEAK, str(tmp_path / "Feed.tsx"), Platform.WEB
        )[0]

        # When
        impact = analyze_impact(issue, issue.file)

        # Then
        assert impact.risk_level == "medium"
        assert impact.tests_affected == [str(tmp_path / "Feed.test.tsx")]
        assert impact.breaking_change is False


class TestSuggestFixes:
    """Tests for batch suggestion."""

    def test_groups_by_confidence_and_saves_pending(self, tmp_path):
        """Given several issues, should summarize by band and store pending fixes."""
        # Given
        content = NON_NULL + "let x: any = 1;\n"
        path = tmp_path / "read.ts"
        path.write_text(content)
        issues = (
            get_rule("ts-non-null-assertion").detect(content, str(path), Platform.WEB)
            + get_rule("ts-any-type").detect(content, str(path), Platform.WEB)
        )
        store = InMemoryStore().open()

        # When
        summary = suggest_fixes(issues, Platform.WEB, project_path=str(tmp_path), store=store)

        # Then
        assert summary.total == 2
        assert summary.by_confidence == {"high": 1, "medium": 1, "low": 0}
        assert summary.by_severity == {"medium": 1, "low": 1}
        assert len(store.pending_fixes(str(tmp_path))) == 2

    def test_respects_max_suggestions(self, tmp_path):
        """Given more issues than the limit, should stop at the limit."""
        # Given
        content = "let a: any = 1;\nlet b: any = 2;\nlet c: any = 3;\n"
        path = tmp_path / "a.ts"
        path.write_text(content)
        issues = get_rule("ts-any-type").detect(content, str(path), Platform.WEB)

        # When
        summary = suggest_fixes(issues, Platform.WEB, max_suggestions=2)

        # Then
        assert summary.total == 2

    def test_saves_unsaved_issues_before_their_fixes(self, tmp_path):
        """Given issues that were never stored, should store them so no fix is orphaned."""
        # Given
        path = tmp_path / "read.ts"
        path.write_text(NON_NULL)
        issues = get_rule("ts-non-null-assertion").detect(NON_NULL, str(path), Platform.WEB)
        store = InMemoryStore().open()

        # When
        summary = suggest_fixes(issues, Platform.WEB, project_path=str(tmp_path), store=store)

        # Then
        fix = summary.suggestions[0]
        assert store.get_issue(fix.issue_id) == issues[0]
        assert store.orphaned_fixes(str(tmp_path)) == []
        assert len(store.list("issue", str(tmp_path))) == 1
