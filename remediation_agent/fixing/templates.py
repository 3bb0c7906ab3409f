"""Fix templates keyed by (issue kind, platform).

Each template receives a TemplateContext (the issue plus the current file
lines and the synthesis window) and returns a Rewrite: the region of the
file it replaces and the replacement text. Returning None means the
template does not apply to this occurrence.
"""

import os
import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..models import Issue, IssueKind, Platform
from ..scanner.rules.leaks import EFFECT_PATTERN
from ..scanner.text_index import TextMask, enclosing_block, find_matching_brace, LineIndex

JS_PLATFORMS = (Platform.REACT_NATIVE, Platform.WEB)

# Swift closure parameter list ending in `in`, e.g. `{ result in`
CLOSURE_PARAMS = re.compile(r"[ \t]*(?:\([^)\n]*\)|[\w \t,]+?)[ \t]+in\b")


@dataclass
class Rewrite:
    """A replacement of consecutive file lines."""
    start_line: int          # 1-based first line of `original`
    original: str
    suggested: str
    confidence: Optional[int] = None  # Overrides the template's default


@dataclass
class TemplateContext:
    """What a template sees: the issue, the file lines and the window bounds."""
    issue: Issue
    platform: Platform
    lines: List[str]
    window_start: int        # 0-based, inclusive
    window_end: int          # 0-based, exclusive
    issue_index: int         # 0-based index of the issue line within `lines`
    from_disk: bool = True

    @property
    def window_lines(self) -> List[str]:
        return self.lines[self.window_start:self.window_end]

    @property
    def window(self) -> str:
        return "\n".join(self.window_lines)

    @property
    def issue_line(self) -> str:
        return self.lines[self.issue_index] if 0 <= self.issue_index < len(self.lines) else ""

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    @property
    def extension(self) -> str:
        return os.path.splitext(self.issue.file)[1].lower()

    def line_number(self, index: int) -> int:
        """1-based file line number for an index into `lines`."""
        return self.issue.line - self.issue_index + index

    def rewrite(self, start: int, end: int, new_lines: List[str],
                confidence: Optional[int] = None) -> Rewrite:
        """Replace lines[start:end] with new_lines."""
        return Rewrite(
            start_line=self.line_number(start),
            original="\n".join(self.lines[start:end]),
            suggested="\n".join(new_lines),
            confidence=confidence,
        )

    def rewrite_issue_line(self, new_lines: Iterable[str],
                           confidence: Optional[int] = None) -> Rewrite:
        """Replace the issue line inside the synthesis window."""
        if not self.window_start <= self.issue_index < self.window_end:
            raise IndexError("issue line outside the synthesis window")
        rel = self.issue_index - self.window_start
        window = self.window_lines
        updated = window[:rel] + list(new_lines) + window[rel + 1:]
        return self.rewrite(self.window_start, self.window_end, updated, confidence)


Builder = Callable[[TemplateContext], Optional[Rewrite]]


@dataclass
class FixTemplate:
    template_id: str
    confidence: int
    build: Builder
    rule_ids: Tuple[str, ...] = ()  # Empty: any rule of the kind

    def applies_to(self, issue: Issue) -> bool:
        return not self.rule_ids or issue.rule_id in self.rule_ids


TEMPLATES: Dict[Tuple[IssueKind, Platform], List[FixTemplate]] = {}


def template(template_id: str, kind: IssueKind, platforms: Iterable[Platform],
             confidence: int, rules: Tuple[str, ...] = ()):
    """Register a builder function for (kind, platform) keys."""

    def decorator(fn: Builder) -> Builder:
        entry = FixTemplate(template_id, confidence, fn, rules)
        for platform in platforms:
            TEMPLATES.setdefault((kind, platform), []).append(entry)
        return fn

    return decorator


def templates_for(issue: Issue, platform: Platform) -> List[FixTemplate]:
    return [t for t in TEMPLATES.get((issue.kind, platform), []) if t.applies_to(issue)]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def indent_of(line: str) -> str:
    return line[:len(line) - len(line.lstrip())]


def match_near(line: str, pattern: str, column: Optional[int]) -> Optional[re.Match]:
    """Match `pattern` at the issue column, else its first occurrence on the line."""
    regex = re.compile(pattern)
    if column:
        m = regex.match(line, column - 1)
        if m:
            return m
    return regex.search(line)


def _splice(text: str, start: int, end: int, replacement: str) -> str:
    return text[:start] + replacement + text[end:]


CLEANUP_METHODS = {
    "swift": r"\bdeinit\s*\{",
    "kotlin": r"\bfun\s+onDestroy\s*\(\s*\)\s*\{",
    "java": r"\bvoid\s+onDestroy\s*\(\s*\)\s*\{",
    "dart": r"\bvoid\s+dispose\s*\(\s*\)\s*\{",
}

SUPER_CALLS = {
    "kotlin": "super.onDestroy()",
    "java": "super.onDestroy();",
    "dart": "super.dispose();",
}

INDENT_UNIT = {"swift": "    ", "kotlin": "    ", "java": "    ", "dart": "  "}


def language_of(ctx: TemplateContext) -> str:
    if ctx.platform == Platform.IOS:
        return "swift"
    if ctx.platform == Platform.FLUTTER:
        return "dart"
    if ctx.platform == Platform.ANDROID:
        return "java" if ctx.extension == ".java" else "kotlin"
    return "javascript"


def _new_cleanup_method(language: str, indent: str, statements: List[str]) -> List[str]:
    unit = INDENT_UNIT[language]
    body = [f"{indent}{unit}{s}" for s in statements]
    if language == "swift":
        return [f"{indent}deinit {{"] + body + [f"{indent}}}"]
    if language == "kotlin":
        return ([f"{indent}override fun onDestroy() {{", f"{indent}{unit}super.onDestroy()"]
                + body + [f"{indent}}}"])
    if language == "java":
        return ([f"{indent}@Override", f"{indent}protected void onDestroy() {{",
                 f"{indent}{unit}super.onDestroy();"] + body + [f"{indent}}}"])
    return ([f"{indent}@override", f"{indent}void dispose() {{"] + body
            + [f"{indent}{unit}super.dispose();", f"{indent}}}"])


def add_class_cleanup(ctx: TemplateContext, statements: List[str],
                      confidence: Optional[int] = None) -> Optional[Rewrite]:
    """
    Add cleanup statements to the enclosing class's teardown method.

    Statements go into an existing deinit/onDestroy/dispose when the class
    has one, otherwise a new method is added before the class's closing
    brace. The rewrite covers the insertion point plus two lines of
    leading context.
    """
    language = language_of(ctx)
    if language not in CLEANUP_METHODS or not ctx.from_disk:
        return None
    text = ctx.text
    mask = TextMask(text)
    code = mask.code_only()
    index = LineIndex(text)

    # Walk outwards to the enclosing type declaration
    offset = index.line_start(ctx.issue_index + 1)
    class_open = class_close = -1
    while True:
        open_pos, close_pos = enclosing_block(code, offset)
        if open_pos == 0 and close_pos == len(code):
            return None
        header_start = code.rfind("\n", 0, open_pos) + 1
        header = code[header_start:open_pos]
        if re.search(r"\b(?:class|struct|extension|object)\b", header):
            class_open, class_close = open_pos, close_pos
            break
        offset = open_pos
    if class_close >= len(code):
        return None

    unit = INDENT_UNIT[language]
    existing = re.compile(CLEANUP_METHODS[language]).search(code, class_open, class_close)
    if existing:
        method_line = index.line_of(existing.end() - 1) - 1
        method_close = find_matching_brace(code, existing.end() - 1)
        if method_close == -1:
            return None
        close_line = index.line_of(method_close) - 1
        indent = indent_of(ctx.lines[method_line]) + unit
        insert_at = method_line + 1
        super_call = SUPER_CALLS.get(language)
        if language == "dart" and super_call:
            for k in range(method_line + 1, close_line + 1):
                if super_call in ctx.lines[k]:
                    insert_at = k
                    break
        elif super_call:
            for k in range(method_line + 1, close_line):
                if super_call in ctx.lines[k]:
                    insert_at = k + 1
                    break
        new_lines = [f"{indent}{s}" for s in statements]
    else:
        close_line = index.line_of(class_close) - 1
        if ctx.lines[close_line].strip() != "}":
            return None
        indent = indent_of(ctx.lines[close_line]) + unit
        insert_at = close_line
        new_lines = [""] + _new_cleanup_method(language, indent, statements)

    start = max(0, insert_at - 2)
    end = min(len(ctx.lines), insert_at + 1)
    replacement = ctx.lines[start:insert_at] + new_lines + ctx.lines[insert_at:end]
    return ctx.rewrite(start, end, replacement, confidence)


# ---------------------------------------------------------------------------
# Leaks: React Native / Web
# ---------------------------------------------------------------------------

EFFECT_CONFIDENCE = {
    "Subscription": 85,
    "Interval": 80,
    "Timeout": 80,
    "WebSocket": 80,
    "EventListener": 70,
}

_STATEMENT_START = r"(?:(?<=[{;])|^)(\s*)"


def _declare(body: str, call: str, default_name: str) -> Tuple[Optional[str], str]:
    """Find the variable holding `call`'s result, declaring one if the call is a bare statement."""
    m = re.search(rf"\b(?:const|let|var)\s+(\w+)\s*=\s*(?:[\w$.]*\.)?{call}\s*\(", body)
    if m:
        return m.group(1), body
    m = re.search(_STATEMENT_START + rf"((?:[\w$][\w$.]*\.)?{call}\s*\()", body, re.MULTILINE)
    if not m:
        return None, body
    return default_name, _splice(body, m.start(2), m.start(2), f"const {default_name} = ")


def _cleanup_expression(object_type: str, body: str) -> Tuple[Optional[str], str]:
    if object_type == "Subscription":
        name, body = _declare(body, "subscribe", "subscription")
        return (f"{name}.unsubscribe()" if name else None), body
    if object_type == "Interval":
        name, body = _declare(body, "setInterval", "intervalId")
        return (f"clearInterval({name})" if name else None), body
    if object_type == "Timeout":
        name, body = _declare(body, "setTimeout", "timeoutId")
        return (f"clearTimeout({name})" if name else None), body
    if object_type == "WebSocket":
        m = re.search(r"\b(?:const|let|var)\s+(\w+)\s*=\s*new\s+WebSocket\s*\(", body)
        return (f"{m.group(1)}.close()" if m else None), body
    if object_type == "EventListener":
        m = re.search(
            r"([\w$][\w$.]*)\.addEventListener\(\s*(['\"`][^'\"`]+['\"`])\s*,\s*([\w$.]+)\s*[,)]",
            body,
        )
        if not m:
            return None, body
        return f"{m.group(1)}.removeEventListener({m.group(2)}, {m.group(3)})", body
    return None, body


@template("react-effect-cleanup", IssueKind.LEAK, JS_PLATFORMS, 85, rules=("react-effect-cleanup",))
def effect_cleanup(ctx: TemplateContext) -> Optional[Rewrite]:
    text = ctx.text
    index = LineIndex(text)
    mask = TextMask(text)
    line_start = index.line_start(ctx.issue_index + 1)
    m = re.compile(EFFECT_PATTERN).search(mask.code_only(), line_start)
    if not m or index.line_of(m.start()) != ctx.issue_index + 1:
        return None
    open_pos = m.end() - 1
    close = find_matching_brace(text, open_pos, mask)
    if close == -1:
        return None

    object_type = ctx.issue.object_type or "Subscription"
    body = text[open_pos + 1:close]
    expr, new_body = _cleanup_expression(object_type, body)
    if expr is None:
        return None

    close_index = index.line_of(close) - 1
    closing_indent = text[index.line_start(close_index + 1):close]
    if "\n" in body and not closing_indent.strip():
        # Multi-line effect: the cleanup becomes the last statement
        body_lines = [l for l in body.split("\n")[1:] if l.strip()]
        inner = indent_of(body_lines[0]) if body_lines else closing_indent + "  "
        prefix = new_body[:len(new_body) - len(closing_indent)]
        new_body = prefix + f"{inner}return () => {expr};\n" + closing_indent
    else:
        new_body = new_body.rstrip() + f" return () => {expr}; "

    added = new_body.count("\n") - body.count("\n")
    start = ctx.window_start
    end = max(ctx.window_end, close_index + 1)
    new_text = text[:open_pos + 1] + new_body + text[close:]
    return ctx.rewrite(start, end, new_text.split("\n")[start:end + added],
                       EFFECT_CONFIDENCE.get(object_type))


# ---------------------------------------------------------------------------
# Leaks: iOS, Android, Flutter
# ---------------------------------------------------------------------------

@template("ios-deinit-cleanup", IssueKind.LEAK, (Platform.IOS,), 65,
          rules=("ios-notification-observer", "ios-timer-invalidate"))
def ios_deinit_cleanup(ctx: TemplateContext) -> Optional[Rewrite]:
    if ctx.issue.rule_id == "ios-notification-observer":
        return add_class_cleanup(ctx, ["NotificationCenter.default.removeObserver(self)"])
    m = re.search(r"(?:self\.)?(\w+)\s*=\s*Timer\.scheduledTimer", ctx.text)
    if not m:
        return None
    return add_class_cleanup(ctx, [f"{m.group(1)}?.invalidate()"])


@template("android-ondestroy-cleanup", IssueKind.LEAK, (Platform.ANDROID,), 60,
          rules=("android-receiver-unregister", "android-handler-callbacks"))
def android_ondestroy_cleanup(ctx: TemplateContext) -> Optional[Rewrite]:
    semicolon = ";" if language_of(ctx) == "java" else ""
    if ctx.issue.rule_id == "android-receiver-unregister":
        m = re.search(r"\bregisterReceiver\s*\(\s*([\w.]+)", ctx.text)
        if not m:
            return None
        return add_class_cleanup(ctx, [f"unregisterReceiver({m.group(1)}){semicolon}"])
    m = re.search(r"([\w.]+)\.postDelayed\s*\(", ctx.text)
    if not m:
        return None
    return add_class_cleanup(ctx, [f"{m.group(1)}.removeCallbacksAndMessages(null){semicolon}"])


@template("flutter-dispose-cleanup", IssueKind.UNCLOSED_RESOURCE, (Platform.FLUTTER,), 70)
def flutter_dispose_cleanup(ctx: TemplateContext) -> Optional[Rewrite]:
    object_type = ctx.issue.object_type or ""
    text = ctx.text
    if object_type == "StreamSubscription":
        m = re.search(r"\bStreamSubscription(?:<[^>]*>)?(\??)\s+(\w+)", text)
        if not m:
            return None
        op = "?." if m.group(1) else "."
        return add_class_cleanup(ctx, [f"{m.group(2)}{op}cancel();"])
    m = (re.search(rf"\b{object_type}(\??)\s+(\w+)\s*[;=]", text)
         or re.search(rf"\b(?:final|var|late)\s+()(\w+)\s*=\s*{object_type}\s*\(", text))
    if not object_type or not m:
        return None
    op = "?." if m.group(1) else "."
    return add_class_cleanup(ctx, [f"{m.group(2)}{op}dispose();"])


# ---------------------------------------------------------------------------
# Retain cycles (iOS)
# ---------------------------------------------------------------------------

@template("ios-weak-self-capture", IssueKind.RETAIN_CYCLE, (Platform.IOS,), 80,
          rules=("ios-closure-strong-self",))
def weak_self_capture(ctx: TemplateContext) -> Optional[Rewrite]:
    if not ctx.from_disk:
        return None
    text = ctx.text
    index = LineIndex(text)
    line_start = index.line_start(ctx.issue_index + 1)
    column = (ctx.issue.column or 1) - 1
    open_pos = line_start + column
    if text[open_pos:open_pos + 1] != "{":
        open_pos = text.find("{", line_start, line_start + len(ctx.issue_line))
        if open_pos == -1:
            return None
    close = find_matching_brace(text, open_pos, TextMask(text))
    if close == -1:
        return None

    first, last = ctx.issue_index, index.line_of(close) - 1
    region = "\n".join(ctx.lines[first:last + 1])
    rel_open = open_pos - line_start
    rel_close = close - line_start
    after = region[rel_open + 1:rel_close]
    has_params = CLOSURE_PARAMS.match(after)
    capture = " [weak self]" if has_params else " [weak self] in"

    if first == last:
        body = re.sub(r"\bself\.", "self?.", after)
        new_region = region[:rel_open + 1] + capture + body + region[rel_close:]
        return ctx.rewrite(first, last + 1, new_region.split("\n"))

    new_lines = list(ctx.lines[first:last + 1])
    new_lines[0] = region[:rel_open + 1] + capture + region[rel_open + 1:].split("\n")[0]
    body_lines = [l for l in new_lines[1:] if l.strip()]
    inner = indent_of(body_lines[0]) if body_lines else indent_of(new_lines[0]) + "    "
    new_lines.insert(1, f"{inner}guard let self = self else {{ return }}")
    return ctx.rewrite(first, last + 1, new_lines)


@template("ios-weak-delegate", IssueKind.RETAIN_CYCLE, (Platform.IOS,), 90,
          rules=("ios-strong-delegate",))
def weak_delegate(ctx: TemplateContext) -> Optional[Rewrite]:
    line = ctx.issue_line
    m = re.search(r"\bvar(\s+\w+\s*:\s*)([\w.]+)(\??)", line)
    if not m:
        return None
    new = line[:m.start()] + f"weak var{m.group(1)}{m.group(2)}?" + line[m.end():]
    return ctx.rewrite_issue_line([new])


# ---------------------------------------------------------------------------
# Race conditions and state (React Native / Web, Flutter)
# ---------------------------------------------------------------------------

def _at_statement_start(line: str, column: int) -> bool:
    before = line[:column].rstrip()
    return not before or before.endswith(("{", ";"))


def _guard_before_call(ctx: TemplateContext, guard: str) -> Optional[Rewrite]:
    line = ctx.issue_line
    column = (ctx.issue.column or 1) - 1
    if not line[:column].strip():
        return ctx.rewrite_issue_line([f"{indent_of(line)}{guard}", line])
    if _at_statement_start(line, column):
        return ctx.rewrite_issue_line([line[:column] + f"{guard} " + line[column:]])
    # An early return cannot sit inside an expression such as an arrow body
    return None


MOUNT_REF = "isMountedRef"
MOUNT_REF_DECLARATION = [
    f"const {MOUNT_REF} = useRef(true);",
    "useEffect(() => {",
    f"  return () => {{ {MOUNT_REF}.current = false; }};",
    "}, []);",
]
COMPONENT_HEADER = re.compile(r"\bfunction\s+[A-Z]\w*|\b(?:const|let|var)\s+[A-Z]\w*\s*(?::[^=]+)?=")


def _component_open(ctx: TemplateContext) -> Optional[int]:
    """0-based line holding the opening brace of the component around the issue."""
    code = TextMask(ctx.text).code_only()
    index = LineIndex(ctx.text)
    offset = index.line_start(ctx.issue_index + 1) + (ctx.issue.column or 1) - 1
    while True:
        open_pos, close_pos = enclosing_block(code, offset)
        if open_pos == 0 and close_pos == len(code):
            return None
        header_start = code.rfind("\n", 0, open_pos) + 1
        if COMPONENT_HEADER.search(code[header_start:open_pos]):
            return index.line_of(open_pos) - 1
        offset = open_pos


@template("react-mount-guard", IssueKind.RACE_CONDITION, JS_PLATFORMS, 60,
          rules=("react-async-state-update",))
def mount_guard(ctx: TemplateContext) -> Optional[Rewrite]:
    """
    Guard an async state update with a mounted ref.

    The update call itself is guarded, so it works both as a statement and
    inside an expression such as `.then(data => setData(data))`. When the
    component does not declare the ref yet, the declaration and its unmount
    cleanup are added at the top of the component body.
    """
    line = ctx.issue_line
    column = (ctx.issue.column or 1) - 1
    if line[column:].startswith("this."):
        return None
    if _at_statement_start(line, column):
        guarded = line[:column] + f"if ({MOUNT_REF}.current) " + line[column:]
    else:
        guarded = line[:column] + f"{MOUNT_REF}.current && " + line[column:]

    if re.search(rf"\b{MOUNT_REF}\s*=\s*(?:React\.)?useRef\b", ctx.text):
        return ctx.rewrite_issue_line([guarded])
    if not ctx.from_disk:
        return None
    open_line = _component_open(ctx)
    if open_line is None or open_line >= ctx.issue_index:
        return None
    body = ctx.lines[open_line + 1:ctx.issue_index]
    first = (body or [guarded])[0]
    indent = indent_of(first) if first.strip() else indent_of(ctx.lines[open_line]) + "  "
    declaration = [f"{indent}{l}" for l in MOUNT_REF_DECLARATION] + [""]
    # Without a useRef import in the file the reviewer has to add one
    confidence = None if re.search(r"\buseRef\b", ctx.text) else 50
    return ctx.rewrite(open_line + 1, ctx.issue_index + 1,
                       declaration + body + [guarded], confidence)


@template("react-merge-setstate", IssueKind.RACE_CONDITION, JS_PLATFORMS, 70,
          rules=("react-consecutive-setstate",))
def merge_set_state(ctx: TemplateContext) -> Optional[Rewrite]:
    pattern = r"setState\s*\(\s*\{([^{}]+)\}\s*\)\s*;\s*setState\s*\(\s*\{([^{}]+)\}\s*\)"

    def merged(m: re.Match) -> str:
        first = m.group(1).strip().rstrip(",")
        second = m.group(2).strip().rstrip(",")
        return f"setState({{ {first}, {second} }})"

    window = ctx.window
    suggested = re.sub(pattern, merged, window, count=1)
    if suggested == window:
        return None
    return ctx.rewrite(ctx.window_start, ctx.window_end, suggested.split("\n"))


@template("flutter-mounted-guard", IssueKind.STATE_INCONSISTENCY, (Platform.FLUTTER,), 75,
          rules=("flutter-setstate-after-await",))
def flutter_mounted_guard(ctx: TemplateContext) -> Optional[Rewrite]:
    return _guard_before_call(ctx, "if (!mounted) return;")


@template("react-prop-sync-effect", IssueKind.STATE_INCONSISTENCY, JS_PLATFORMS, 60,
          rules=("react-derived-state",))
def prop_sync_effect(ctx: TemplateContext) -> Optional[Rewrite]:
    line = ctx.issue_line
    m = re.search(
        r"\[\s*(\w+)\s*,\s*(\w+)\s*\]\s*=\s*(?:React\.)?useState\s*\(\s*props\.(\w+)\s*\)", line
    )
    if not m:
        return None
    setter, prop = m.group(2), m.group(3)
    indent = indent_of(line)
    return ctx.rewrite_issue_line([
        line,
        f"{indent}useEffect(() => {{",
        f"{indent}  {setter}(props.{prop});",
        f"{indent}}}, [props.{prop}]);",
    ])


# ---------------------------------------------------------------------------
# Null safety
# ---------------------------------------------------------------------------

def _safe_call(ctx: TemplateContext, pattern: str, confidence: Optional[int] = None) -> Optional[Rewrite]:
    """Turn the forced access at the issue column into `?.`."""
    line = ctx.issue_line
    m = match_near(line, pattern, ctx.issue.column)
    if not m:
        return None
    new = line[:m.end(1)] + "?." + line[m.end():]
    return ctx.rewrite_issue_line([new], confidence)


@template("ts-optional-chaining", IssueKind.NULL_REFERENCE, JS_PLATFORMS, 90,
          rules=("ts-non-null-assertion",))
def ts_optional_chaining(ctx: TemplateContext) -> Optional[Rewrite]:
    return _safe_call(ctx, r"\b(\w+)!\.")


@template("swift-optional-chaining", IssueKind.NULL_REFERENCE, (Platform.IOS,), 85,
          rules=("swift-force-unwrap",))
def swift_optional_chaining(ctx: TemplateContext) -> Optional[Rewrite]:
    if ctx.issue.details.get("context") == "Implicitly unwrapped declaration":
        return None
    return _safe_call(ctx, r"\b(\w+)!\.")


@template("swift-guard-let", IssueKind.NULL_REFERENCE, (Platform.IOS,), 55,
          rules=("swift-force-unwrap",))
def swift_guard_let(ctx: TemplateContext) -> Optional[Rewrite]:
    if ctx.issue.details.get("context") == "Implicitly unwrapped declaration":
        return None
    line = ctx.issue_line
    m = match_near(line, r"\b(\w+)!(?!=)", ctx.issue.column)
    if not m or m.group(1) in ("try", "as"):
        return None
    name = m.group(1)
    new = line[:m.end(1)] + line[m.end():]
    return ctx.rewrite_issue_line([
        f"{indent_of(line)}guard let {name} = {name} else {{ return }}",
        new,
    ])


@template("kotlin-safe-call", IssueKind.NULL_REFERENCE, (Platform.ANDROID,), 85,
          rules=("kotlin-not-null-assertion",))
def kotlin_safe_call(ctx: TemplateContext) -> Optional[Rewrite]:
    return _safe_call(ctx, r"\b(\w+)!!\.")


@template("kotlin-elvis-return", IssueKind.NULL_REFERENCE, (Platform.ANDROID,), 50,
          rules=("kotlin-not-null-assertion",))
def kotlin_elvis_return(ctx: TemplateContext) -> Optional[Rewrite]:
    line = ctx.issue_line
    m = match_near(line, r"\b(\w+)!!", ctx.issue.column)
    if not m:
        return None
    new = line[:m.start()] + f"({m.group(1)} ?: return)" + line[m.end():]
    return ctx.rewrite_issue_line([new])


# ---------------------------------------------------------------------------
# Loose typing
# ---------------------------------------------------------------------------

@template("ts-any-to-unknown", IssueKind.TYPE_MISMATCH, JS_PLATFORMS, 50, rules=("ts-any-type",))
def any_to_unknown(ctx: TemplateContext) -> Optional[Rewrite]:
    line = ctx.issue_line
    m = match_near(line, r":(\s*)any\b", ctx.issue.column)
    if not m:
        return None
    new = line[:m.start()] + f":{m.group(1)}unknown" + line[m.end():]
    return ctx.rewrite_issue_line([new])
