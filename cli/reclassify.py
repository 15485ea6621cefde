#!/usr/bin/env python3

import argparse
import sqlite3
import sys
from typing import Dict, List

from llm.factory import get_llm_provider
from models.reclassification import (
    CONSERVATIVE,
    MODES,
    BatchProgress,
    ChangeProposal,
    ReclassificationMetadata,
)
from reclassification import (
    ReclassificationConfigError,
    get_scoped_expenses,
    run_reclassification,
)
from logger import get_logger

logger = get_logger()


def parse_selection(answer: str, count: int) -> List[int]:
    """Turn 'all', 'none' or '1,3,5-7' into zero-based indexes.

    Raises:
        ValueError: On numbers out of range or unreadable input.
    """
    answer = answer.strip().lower()
    if answer in ("", "all", "a", "y", "yes"):
        return list(range(count))
    if answer in ("none", "n", "no"):
        return []

    selected = set()
    for part in answer.split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            start, end = (int(x) for x in part.split("-", 1))
            numbers = range(start, end + 1)
        else:
            numbers = [int(part)]
        for n in numbers:
            if n < 1 or n > count:
                raise ValueError(f"No proposal numbered {n}")
            selected.add(n - 1)
    return sorted(selected)


def resolve_subcategory_parents(
    names: List[str], changes: List[ChangeProposal]
) -> Dict[str, str]:
    """Map each proposed subcategory name to the category of a change that uses it.

    Names no approved change uses are left out.
    """
    parents = {}
    for name in names:
        for change in changes:
            if change.new_subcategory == name:
                parents[name] = change.new_category
                break
    return parents


def _print_progress(progress: BatchProgress) -> None:
    if progress.retrying:
        logger.info(f"  Batch {progress.current}/{progress.total}: retrying with fallback model...")
    else:
        logger.info(f"  Batch {progress.current}/{progress.total}...")


def cmd_run(args, services):
    """Run AI reclassification, review proposals and apply the approved ones."""
    config = services.config
    settings = config.reclassification_settings()
    model = args.model or config.llm_model

    try:
        scoped = get_scoped_expenses(services.expenses.find_all(), args.scope)
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)

    logger.info(f"Reclassifying {len(scoped)} expense(s) (scope: {args.scope}, mode: {args.mode})")

    try:
        result = run_reclassification(
            scoped,
            args.mode,
            model,
            settings,
            get_llm_provider(config),
            on_progress=_print_progress,
            subcategories=services.subcategories.find_all(),
        )
    except ReclassificationConfigError as e:
        logger.error(str(e))
        sys.exit(1)

    if result.skipped_batches:
        logger.warning(f"{result.skipped_batches} batch(es) failed on both models and were skipped")

    if not result.changes:
        logger.info("No changes suggested. Your ledger looks good!")
        return

    by_id = {e.id: e for e in scoped}
    logger.info("\nProposed changes:")
    logger.info("=" * 80)
    for n, change in enumerate(result.changes, start=1):
        expense = by_id[change.transaction_id]
        old = f"{expense.category}{' / ' + expense.subcategory if expense.subcategory else ''}"
        new = f"{change.new_category}{' / ' + change.new_subcategory if change.new_subcategory else ''}"
        logger.info(f"{n:>3}. {expense.date.isoformat()}  {expense.details}")
        logger.info(f"     {old} -> {new}  ({round(change.confidence * 100)}%)")
        if change.new_description:
            logger.info(f"     details: '{expense.details}' -> '{change.new_description}'")

    if args.yes:
        approved = list(result.changes)
    else:
        answer = input("\nApply which changes? [all/none/1,3,5-7] (default all): ")
        try:
            approved = [result.changes[i] for i in parse_selection(answer, len(result.changes))]
        except ValueError as e:
            logger.error(f"Invalid selection: {e}")
            sys.exit(1)

    if not approved:
        logger.info("No changes applied.")
        return

    # Accepted names are only persisted once the changes are saved
    existing = services.subcategories.find_all()
    accepted = []
    parents = resolve_subcategory_parents(result.new_subcategories, approved)
    for name, parent in parents.items():
        if name in existing.get(parent, []):
            continue
        if not args.yes:
            confirm = input(f"Add new subcategory '{name}' under {parent}? (yes/no): ")
            if confirm.strip().lower() != "yes":
                continue
        accepted.append((parent, name))

    metadata = ReclassificationMetadata(
        mode=args.mode,
        scope=str(args.scope),
        subcategories_created=len(accepted),
    )

    try:
        applied = services.reclassifications.apply(approved, metadata)
    except sqlite3.Error as e:
        logger.error(f"Failed to save changes: {e}")
        sys.exit(1)

    logger.info(f"✓ Updated {applied.updated_count} expense(s)")

    for parent, name in accepted:
        services.subcategories.approve(parent, name)

    if args.yes:
        return

    window = settings.undo_window_seconds
    answer = input(f"Type 'undo' within {window:g}s to revert, or press Enter to keep: ")
    if answer.strip().lower() != "undo":
        return
    if applied.snapshot.is_expired(window):
        logger.info("Undo window expired; changes kept.")
        return

    try:
        restored = services.reclassifications.undo(applied.snapshot)
    except sqlite3.Error as e:
        logger.error(f"Failed to undo changes: {e}")
        sys.exit(1)
    logger.info(f"✓ Restored {restored} expense(s)")


def cmd_history(args, services):
    """Show the reclassification audit log."""
    events = services.audit.find_all()
    if not events:
        logger.info("No audit events.")
        return

    for event in events[: args.limit]:
        details = ", ".join(f"{k}={v}" for k, v in event.metadata.items())
        logger.info(f"{event.timestamp}  {event.type}  {details}")


def setup_parser(subparsers):
    """Setup reclassify subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "reclassify",
        help="AI reclassification of past expenses",
        description="Re-categorize historical expenses with the AI classifier",
    )

    reclassify_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available reclassify commands",
        dest="subcommand",
        required=True,
    )

    run_parser = reclassify_subparsers.add_parser(
        "run",
        help="Propose and apply new categories",
        epilog="""
Examples:
  # Review the last 30 days, only existing subcategories
  python -m cli reclassify run --scope 30

  # Whole ledger, allow new subcategories, apply everything
  python -m cli reclassify run --scope all --mode deep --yes
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    run_parser.add_argument(
        "--scope",
        default="30",
        help="'all' or number of days back from today (default: 30)",
    )
    run_parser.add_argument("--mode", choices=MODES, default=CONSERVATIVE)
    run_parser.add_argument("--model", help="Model override (default from config)")
    run_parser.add_argument(
        "--yes",
        action="store_true",
        help="Apply all proposals and new subcategories without prompting",
    )
    run_parser.set_defaults(func=cmd_run)

    history_parser = reclassify_subparsers.add_parser("history", help="Show audit log")
    history_parser.add_argument("--limit", type=int, default=20)
    history_parser.set_defaults(func=cmd_history)
