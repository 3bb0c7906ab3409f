"""Resource and subscription leak rules."""

import re
from typing import List, Optional, Tuple

from ...models.issue import Issue, IssueKind, Platform, RuleCategory, Severity
from ..text_index import find_matching_brace, block_after
from .base import JS_PLATFORMS, Rule, SourceText, register

EFFECT_PATTERN = r"\buseEffect\s*\(\s*(?:async\s*)?(?:\(\s*\)\s*=>|function\s*\(\s*\))\s*\{"

# Checked in order; the first hit names the leaked object
EFFECT_RESOURCES = (
    ("EventListener", r"\baddEventListener\s*\("),
    ("Subscription", r"\bsubscribe\s*\("),
    ("Interval", r"\bsetInterval\s*\("),
    ("Timeout", r"\bsetTimeout\s*\("),
    ("WebSocket", r"\bnew\s+WebSocket\s*\("),
)


def effect_blocks(source: SourceText) -> List[Tuple[int, int, int]]:
    """Return (call_start, body_open, body_close) for each useEffect callback."""
    blocks = []
    for m in source.finditer(EFFECT_PATTERN):
        open_pos = m.end() - 1
        close = find_matching_brace(source.code, open_pos)
        blocks.append((m.start(), open_pos, len(source.code) if close == -1 else close))
    return blocks


def has_cleanup_return(code: str, open_pos: int, close_pos: int) -> bool:
    """True when the block returns something at its own nesting level."""
    for m in re.finditer(r"\breturn\b\s*(.?)", code[open_pos + 1:close_pos]):
        pos = open_pos + 1 + m.start()
        depth = code.count("{", open_pos + 1, pos) - code.count("}", open_pos + 1, pos)
        if depth == 0 and m.group(1) not in (";", "}", ""):
            return True
    return False


def _inside(blocks: List[Tuple[int, int, int]], offset: int) -> bool:
    return any(open_pos < offset < close for _, open_pos, close in blocks)


class _PresenceRule(Rule):
    """Reports the first acquisition when no matching release appears in the file."""

    acquire: str = ""
    release: str = ""
    requires: Tuple[str, ...] = ()

    def check(self, source: SourceText, platform: Optional[Platform] = None) -> List[Issue]:
        if any(not source.contains(r) for r in self.requires):
            return []
        if source.search(self.release):
            return []
        m = source.search(self.acquire)
        if not m:
            return []
        return [self.issue_at(source, m.start(), platform)]


# ---------------------------------------------------------------------------
# iOS
# ---------------------------------------------------------------------------

@register
class NotificationObserverRule(_PresenceRule):
    rule_id = "ios-notification-observer"
    platforms = (Platform.IOS,)
    category = RuleCategory.LEAK
    kind = IssueKind.LEAK
    severity = Severity.HIGH
    title = "NotificationCenter observer not removed"
    description = "NotificationCenter observer is added but never removed, causing a memory leak"
    suggestion = "Add removeObserver in deinit or appropriate cleanup method"
    object_type = "NotificationCenter"
    acquire = r"NotificationCenter\.default\.addObserver\b"
    release = r"\bremoveObserver\b"


@register
class TimerInvalidateRule(_PresenceRule):
    rule_id = "ios-timer-invalidate"
    platforms = (Platform.IOS,)
    category = RuleCategory.LEAK
    kind = IssueKind.LEAK
    severity = Severity.HIGH
    title = "Timer not invalidated"
    description = "Timer is scheduled but never invalidated, causing a memory leak"
    suggestion = "Call timer.invalidate() in deinit or when timer is no longer needed"
    object_type = "Timer"
    acquire = r"\bTimer\.scheduledTimer\b"
    release = r"\binvalidate\s*\("


# ---------------------------------------------------------------------------
# Android
# ---------------------------------------------------------------------------

@register
class BroadcastReceiverRule(_PresenceRule):
    rule_id = "android-receiver-unregister"
    platforms = (Platform.ANDROID,)
    category = RuleCategory.LEAK
    kind = IssueKind.LEAK
    severity = Severity.HIGH
    title = "BroadcastReceiver not unregistered"
    description = "BroadcastReceiver is registered but never unregistered"
    suggestion = "Call unregisterReceiver in onPause or onDestroy"
    object_type = "BroadcastReceiver"
    acquire = r"\bregisterReceiver\s*\("
    release = r"\bunregisterReceiver\s*\("


@register
class HandlerCallbacksRule(_PresenceRule):
    rule_id = "android-handler-callbacks"
    platforms = (Platform.ANDROID,)
    category = RuleCategory.LEAK
    kind = IssueKind.LEAK
    severity = Severity.MEDIUM
    title = "Handler callbacks not removed"
    description = "Handler postDelayed is used but callbacks are not removed"
    suggestion = "Call handler.removeCallbacksAndMessages(null) in onDestroy"
    object_type = "Handler"
    requires = ("Handler",)
    acquire = r"\.postDelayed\s*\("
    release = r"\bremoveCallbacks(?:AndMessages)?\s*\("


@register
class StaticContextRule(Rule):
    rule_id = "android-static-context"
    platforms = (Platform.ANDROID,)
    category = RuleCategory.LEAK
    kind = IssueKind.LEAK
    severity = Severity.CRITICAL
    title = "Static Context reference"
    description = "Context or Activity stored in static field causes memory leak"
    suggestion = "Use applicationContext instead of activity context, or avoid static references"
    object_type = "Context"

    _CONTEXT = r"\b(?:Context|Activity|\w+Activity)\b"
    _JAVA_STATIC = r"\bstatic\s+(?:final\s+)?(?:Context|Activity|\w+Activity)\s+\w+\s*[;=]"

    def check(self, source: SourceText, platform: Optional[Platform] = None) -> List[Issue]:
        issues = []
        for m in source.finditer(r"\bcompanion\s+object\b"):
            open_pos, close = block_after(source.code, m.end())
            if open_pos == -1:
                continue
            body = source.code[open_pos:close]
            if not re.search(self._CONTEXT, body):
                continue
            issues.append(self._emit(source, m.start(), body, platform))
        for m in source.finditer(self._JAVA_STATIC):
            issues.append(self._emit(source, m.start(), source.code, platform))
        return issues

    def _emit(self, source: SourceText, offset: int, scope: str,
              platform: Optional[Platform]) -> Issue:
        if "WeakReference" in scope or "applicationContext" in scope:
            return self.issue_at(
                source, offset, platform,
                severity=Severity.LOW,
                description="Context held statically, but through a weak or application reference",
                mitigation="weak_or_application_context",
            )
        return self.issue_at(source, offset, platform)


# ---------------------------------------------------------------------------
# React Native / Web
# ---------------------------------------------------------------------------

@register
class UseEffectCleanupRule(Rule):
    rule_id = "react-effect-cleanup"
    platforms = JS_PLATFORMS
    category = RuleCategory.LEAK
    kind = IssueKind.LEAK
    severity = Severity.HIGH

    def check(self, source: SourceText, platform: Optional[Platform] = None) -> List[Issue]:
        issues = []
        for start, open_pos, close in effect_blocks(source):
            body = source.code[open_pos + 1:close]
            object_type = next(
                (name for name, pattern in EFFECT_RESOURCES if re.search(pattern, body)),
                None,
            )
            if object_type is None:
                continue
            if has_cleanup_return(source.code, open_pos, close):
                continue
            issues.append(self.issue_at(
                source, start, platform,
                title=f"useEffect missing cleanup for {object_type}",
                description=f"useEffect creates {object_type} but does not clean it up",
                suggestion=f"Add return function to clean up {object_type}",
                object_type=object_type,
            ))
        return issues


class _OutsideEffectRule(_PresenceRule):
    """Presence rule that ignores acquisitions inside useEffect callbacks."""

    def check(self, source: SourceText, platform: Optional[Platform] = None) -> List[Issue]:
        if source.search(self.release):
            return []
        blocks = effect_blocks(source)
        for m in source.finditer(self.acquire):
            if not _inside(blocks, m.start()):
                return [self.issue_at(source, m.start(), platform)]
        return []


@register
class EventListenerRule(_OutsideEffectRule):
    rule_id = "react-event-listener"
    platforms = JS_PLATFORMS
    category = RuleCategory.LEAK
    kind = IssueKind.LEAK
    severity = Severity.HIGH
    title = "Event listener not removed"
    description = "Event listener is added but never removed"
    suggestion = "Add removeEventListener in cleanup function"
    object_type = "EventListener"
    acquire = r"\baddEventListener\s*\("
    release = r"\bremoveEventListener\s*\("


@register
class IntervalRule(_OutsideEffectRule):
    rule_id = "react-interval"
    platforms = JS_PLATFORMS
    category = RuleCategory.LEAK
    kind = IssueKind.LEAK
    severity = Severity.HIGH
    title = "Interval not cleared"
    description = "setInterval is used but interval is never cleared"
    suggestion = "Store interval ID and call clearInterval in cleanup"
    object_type = "Interval"
    acquire = r"\bsetInterval\s*\("
    release = r"\bclearInterval\s*\("


# ---------------------------------------------------------------------------
# Flutter
# ---------------------------------------------------------------------------

@register
class StreamSubscriptionRule(_PresenceRule):
    rule_id = "flutter-stream-subscription"
    platforms = (Platform.FLUTTER,)
    category = RuleCategory.LEAK
    kind = IssueKind.UNCLOSED_RESOURCE
    severity = Severity.HIGH
    title = "StreamSubscription not cancelled"
    description = "StreamSubscription is created but never cancelled"
    suggestion = "Call subscription.cancel() in dispose method"
    object_type = "StreamSubscription"
    acquire = r"\bStreamSubscription\b"
    release = r"\.cancel\s*\(\s*\)"


@register
class AnimationControllerRule(_PresenceRule):
    rule_id = "flutter-animation-controller"
    platforms = (Platform.FLUTTER,)
    category = RuleCategory.LEAK
    kind = IssueKind.UNCLOSED_RESOURCE
    severity = Severity.HIGH
    title = "AnimationController not disposed"
    description = "AnimationController is created but never disposed"
    suggestion = "Call controller.dispose() in dispose method"
    object_type = "AnimationController"
    acquire = r"\bAnimationController\b"
    release = r"\bdispose\s*\(\s*\)"


@register
class TextEditingControllerRule(_PresenceRule):
    rule_id = "flutter-text-controller"
    platforms = (Platform.FLUTTER,)
    category = RuleCategory.LEAK
    kind = IssueKind.UNCLOSED_RESOURCE
    severity = Severity.MEDIUM
    title = "TextEditingController not disposed"
    description = "TextEditingController should be disposed when no longer needed"
    suggestion = "Call controller.dispose() in dispose method"
    object_type = "TextEditingController"
    acquire = r"\bTextEditingController\s*\(\s*\)"
    release = r"\.dispose\s*\(\s*\)"
