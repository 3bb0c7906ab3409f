#!/usr/bin/env python3
"""
Remediation Agent - Main Entry Point

Scans mobile and web application sources for defect patterns, suggests
template-based fixes, and applies confirmed fixes with backup and rollback.

Usage:
    remediation-agent scan ./app --platform react-native
    remediation-agent suggest ./app --platform react-native
    remediation-agent confirm <fix-id> --action approve
    remediation-agent apply --all ./app
    remediation-agent rollback <fix-id>
"""

import argparse
import asyncio
import json
import logging
import os
import sys

from .config import RemediationConfig, ScanConfig
from .errors import RemediationError
from .fixing import FixLifecycle, PatchApplier, suggest_fixes
from .models import ConfirmAction, FixStatus, Platform
from .orchestrator import RemediationOrchestrator, apply_all_confirmed, apply_fixes
from .scanner import scan_project_sync
from .tools import JsonFileStore
from .utils import format_metrics_report, setup_logging, get_logger

PLATFORM_CHOICES = [p.value for p in Platform]


def _setup(args) -> logging.Logger:
    level = logging.DEBUG if args.debug else logging.INFO
    # JSON goes to stdout, so logs move to stderr
    stream = sys.stderr if getattr(args, "json", False) else None
    setup_logging(level=level, stream=stream)
    return get_logger()


def _open_store(args, config: RemediationConfig) -> JsonFileStore:
    root = args.store_root or config.store_root
    return JsonFileStore(root).open()


def _scan_config(args) -> ScanConfig:
    config = ScanConfig.from_env()
    config.platform = args.platform
    if getattr(args, "depth", None):
        config.analysis_depth = args.depth
    if getattr(args, "categories", None):
        config.categories = args.categories.split(",")
    if getattr(args, "progress", False):
        config.show_progress = True
    return config


def cmd_scan(args):
    """Handle 'scan' subcommand."""
    logger = _setup(args)
    config = RemediationConfig.from_env()
    project = os.path.abspath(args.path)

    try:
        store = None if args.no_store else _open_store(args, config)
        result = scan_project_sync(
            project, Platform(args.platform), config=_scan_config(args), store=store
        )
    except Exception as e:
        logger.exception(f"Scan failed: {e}")
        sys.exit(1)

    if args.json:
        print(json.dumps({
            "summary": result.summary,
            "issues": [i.to_dict() for i in result.issues],
            "recommendations": result.recommendations,
        }, indent=2))
    else:
        print(format_metrics_report(result.metrics))
        for issue in result.issues:
            print(f"  [{issue.severity.value}] {issue.location} {issue.title} ({issue.id[:8]})")
        if result.recommendations:
            print("\nRecommendations:")
            for rec in result.recommendations:
                print(f"  - {rec}")
    sys.exit(1 if args.fail_on_blocking and result.metrics.blocking_count else 0)


def cmd_suggest(args):
    """Handle 'suggest' subcommand."""
    logger = _setup(args)
    config = RemediationConfig.from_env()
    project = os.path.abspath(args.path)

    try:
        store = _open_store(args, config)
        issues = store.list("issue", project)
        if not issues or args.rescan:
            issues = scan_project_sync(
                project, Platform(args.platform), config=_scan_config(args), store=store
            ).issues
        issues.sort(key=lambda i: -i.severity.rank)
        summary = suggest_fixes(
            issues, Platform(args.platform), args.max_suggestions or config.max_suggestions,
            project, store, config,
        )
    except Exception as e:
        logger.exception(f"Suggest failed: {e}")
        sys.exit(1)

    print(f"\n=== {summary.total} fix suggestions ===")
    print(f"By confidence: {summary.by_confidence}")
    print(f"By severity: {summary.by_severity}")
    for fix in summary.suggestions:
        if args.verbose:
            print()
            print(fix.confirmation_prompt())
        else:
            print(f"  {fix.id[:8]} [{fix.confidence}%] {fix.file}:{fix.line} {fix.title}")
    sys.exit(0)


def _resolve_ids(store, ids):
    """Expand id prefixes (as printed by the CLI) to full fix ids."""
    fixes = store.list("fix")
    resolved = []
    for prefix in ids:
        matches = [f.id for f in fixes if f.id.startswith(prefix)]
        if len(matches) != 1:
            raise ValueError(f"Fix id '{prefix}' matches {len(matches)} fixes")
        resolved.append(matches[0])
    return resolved


def cmd_confirm(args):
    """Handle 'confirm' subcommand."""
    logger = _setup(args)
    config = RemediationConfig.from_env()

    try:
        store = _open_store(args, config)
        lifecycle = FixLifecycle(store)
        if args.all:
            fix_ids = [f.id for f in store.pending_fixes(os.path.abspath(args.all))]
        else:
            fix_ids = _resolve_ids(store, args.fix_ids)

        if args.action == "modify":
            if len(fix_ids) != 1 or not args.code_file:
                logger.error("modify needs exactly one fix id and --code-file")
                sys.exit(1)
            with open(args.code_file, "r", encoding="utf-8") as f:
                modified_code = f.read()
            lifecycle.confirm(fix_ids[0], ConfirmAction.MODIFY, modified_code, args.reason)
            print(f"Fix {fix_ids[0][:8]} confirmed with modifications")
            sys.exit(0)

        result = lifecycle.confirm_batch(fix_ids, ConfirmAction(args.action), args.reason)
    except RemediationError as e:
        logger.error(f"Confirm failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Confirm failed: {e}")
        sys.exit(1)

    print(f"{args.action}: {len(result['confirmed'])} fixes")
    for error in result["errors"]:
        print(f"  {error['fix_id'][:8]}: {error['error']}")
    sys.exit(1 if result["errors"] else 0)


def cmd_apply(args):
    """Handle 'apply' subcommand."""
    logger = _setup(args)
    config = RemediationConfig.from_env()
    config.backup = not args.no_backup
    config.validate = not args.no_validate
    config.stop_on_error = args.stop_on_error
    if args.no_manual:
        config.allow_manual_fallback = False

    try:
        store = _open_store(args, config)
        if args.all:
            outcome = apply_all_confirmed(store, os.path.abspath(args.all), config, args.dry_run)
        else:
            outcome = apply_fixes(store, _resolve_ids(store, args.fix_ids), config,
                                  dry_run=args.dry_run)
    except Exception as e:
        logger.exception(f"Apply failed: {e}")
        sys.exit(1)

    for result in outcome["results"]:
        if result.dry_run:
            print(result.diff)
        elif result.success:
            print(f"  applied {result.fix_id[:8]} ({result.strategy.value})")
        elif result.skipped:
            print(f"  skipped {result.fix_id[:8]}")
        else:
            print(f"  failed  {result.fix_id[:8]}: {result.error}")
    print(f"\nSummary: {outcome['summary']}")
    sys.exit(1 if outcome["summary"]["failed"] else 0)


def cmd_rollback(args):
    """Handle 'rollback' subcommand."""
    logger = _setup(args)
    config = RemediationConfig.from_env()

    try:
        store = _open_store(args, config)
        applier = PatchApplier(store, config)
        for fix_id in _resolve_ids(store, args.fix_ids):
            applier.rollback(fix_id)
            print(f"Rolled back {fix_id[:8]}")
    except Exception as e:
        logger.exception(f"Rollback failed: {e}")
        sys.exit(1)
    sys.exit(0)


def cmd_status(args):
    """Handle 'status' subcommand."""
    logger = _setup(args)
    config = RemediationConfig.from_env()
    project = os.path.abspath(args.project) if args.project else None

    try:
        store = _open_store(args, config)
        stats = store.stats(project)
        fixes = store.list("fix", project)
    except Exception as e:
        logger.exception(f"Status failed: {e}")
        sys.exit(1)

    print("\n=== Remediation Status ===")
    for key, value in stats.items():
        print(f"{key}: {value}")
    if args.verbose:
        for status in FixStatus:
            matching = [f for f in fixes if f.status == status]
            if matching:
                print(f"\n{status.value}:")
                for fix in matching:
                    print(f"  {fix.id[:8]} {fix.file}:{fix.line} {fix.title}")
    sys.exit(0)


def cmd_run(args):
    """Handle 'run' subcommand."""
    logger = _setup(args)
    config = RemediationConfig.from_env()
    config.confirm_mode = args.mode
    if args.threshold is not None:
        config.auto_confirm_threshold = args.threshold

    try:
        store = _open_store(args, config)
        orchestrator = RemediationOrchestrator(store, _scan_config(args), config)
        run = asyncio.run(orchestrator.run(
            os.path.abspath(args.path), Platform(args.platform), dry_run=args.dry_run
        ))
    except Exception as e:
        logger.exception(f"Run failed: {e}")
        sys.exit(1)

    print("\n=== Remediation Run ===")
    print(f"Issues: {len(run.issues)}")
    print(f"Fixes suggested: {len(run.fixes)}")
    print(f"Confirmation: {run.summary['confirmation']}")
    print(f"Apply: {run.summary['apply']}")
    if args.dry_run:
        for result in run.applications:
            print(result.diff)
    sys.exit(1 if run.summary["apply"]["failed"] else 0)


def _add_common(parser, store: bool = True):
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    if store:
        parser.add_argument(
            "--store-root",
            type=str,
            help="Store directory (default: REMEDIATION_STORE_ROOT or ~/.remediation-agent)"
        )


def _add_scan_options(parser):
    parser.add_argument("path", help="Project root")
    parser.add_argument(
        "--platform",
        required=True,
        choices=PLATFORM_CHOICES,
        help="Target platform"
    )
    parser.add_argument(
        "--depth",
        choices=["basic", "deep"],
        help="Analysis depth; deep enables heuristic rules"
    )
    parser.add_argument(
        "--categories",
        type=str,
        help="Comma-separated rule categories (default: all)"
    )
    parser.add_argument("--progress", action="store_true", help="Show a progress bar")


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Pattern detection and guided remediation for app source trees"
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # scan command
    scan_parser = subparsers.add_parser("scan", help="Scan a project for defect patterns")
    _add_scan_options(scan_parser)
    scan_parser.add_argument("--json", action="store_true", help="Print JSON output")
    scan_parser.add_argument("--no-store", action="store_true", help="Don't persist issues")
    scan_parser.add_argument(
        "--fail-on-blocking",
        action="store_true",
        help="Exit non-zero when critical or high issues are found"
    )
    _add_common(scan_parser)

    # suggest command
    suggest_parser = subparsers.add_parser("suggest", help="Suggest fixes for detected issues")
    _add_scan_options(suggest_parser)
    suggest_parser.add_argument("--max-suggestions", type=int, help="Maximum fixes to suggest")
    suggest_parser.add_argument("--rescan", action="store_true", help="Scan even if issues are stored")
    suggest_parser.add_argument("--verbose", action="store_true", help="Show full review prompts")
    _add_common(suggest_parser)

    # confirm command
    confirm_parser = subparsers.add_parser("confirm", help="Approve, reject or modify fixes")
    confirm_parser.add_argument("fix_ids", nargs="*", help="Fix ids (prefixes accepted)")
    confirm_parser.add_argument(
        "--action",
        default="approve",
        choices=[a.value for a in ConfirmAction],
        help="Decision (default: approve)"
    )
    confirm_parser.add_argument("--all", metavar="PROJECT", help="Apply to all pending fixes of a project")
    confirm_parser.add_argument("--code-file", help="Replacement code for --action modify")
    confirm_parser.add_argument("--reason", help="Reason recorded with the decision")
    _add_common(confirm_parser)

    # apply command
    apply_parser = subparsers.add_parser("apply", help="Apply confirmed fixes")
    apply_parser.add_argument("fix_ids", nargs="*", help="Fix ids (prefixes accepted)")
    apply_parser.add_argument("--all", metavar="PROJECT", help="Apply all confirmed fixes of a project")
    apply_parser.add_argument("--dry-run", action="store_true", help="Show diffs without writing")
    apply_parser.add_argument("--no-backup", action="store_true", help="Don't back up files")
    apply_parser.add_argument("--no-validate", action="store_true", help="Skip the syntax check")
    apply_parser.add_argument("--no-manual", action="store_true", help="Fail instead of adding manual fix blocks")
    apply_parser.add_argument("--stop-on-error", action="store_true", help="Stop at the first failure")
    _add_common(apply_parser)

    # rollback command
    rollback_parser = subparsers.add_parser("rollback", help="Restore files from backups")
    rollback_parser.add_argument("fix_ids", nargs="+", help="Fix ids (prefixes accepted)")
    _add_common(rollback_parser)

    # status command
    status_parser = subparsers.add_parser("status", help="Show store statistics")
    status_parser.add_argument("--project", help="Limit to one project")
    status_parser.add_argument("--verbose", action="store_true", help="List fixes by status")
    _add_common(status_parser)

    # run command
    run_parser = subparsers.add_parser("run", help="Scan, suggest, confirm and apply in one go")
    _add_scan_options(run_parser)
    run_parser.add_argument(
        "--mode",
        default="auto",
        choices=["auto", "batch"],
        help="Confirmation mode (default: auto)"
    )
    run_parser.add_argument("--threshold", type=int, help="Auto-confirm confidence threshold")
    run_parser.add_argument("--dry-run", action="store_true", help="Show diffs without writing")
    _add_common(run_parser)

    args = parser.parse_args()

    commands = {
        "scan": cmd_scan,
        "suggest": cmd_suggest,
        "confirm": cmd_confirm,
        "apply": cmd_apply,
        "rollback": cmd_rollback,
        "status": cmd_status,
        "run": cmd_run,
    }
    handler = commands.get(args.command)
    if handler is None:
        # No subcommand - show help
        parser.print_help()
        sys.exit(0)
    handler(args)


if __name__ == "__main__":
    main()
