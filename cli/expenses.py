#!/usr/bin/env python3

import sys
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path

from config import DEFAULT_MODEL
from extraction import ExtractionError, extract_expense
from ingestion import export, ingest
from llm.factory import get_llm_provider
from models.category import CATEGORIES
from models.expense import Expense
from reclassification import get_scoped_expenses
from tools.reports import filter_expenses, summarize_month, total_amount
from logger import get_logger

logger = get_logger()


def _format_expense(e: Expense) -> str:
    sub = f" / {e.subcategory}" if e.subcategory else ""
    return (
        f"{e.date.isoformat()}  {float(e.amount):>10.2f}  "
        f"{e.category}{sub}  {e.details}  [{e.id[:8]}]"
    )


def cmd_list(args, services):
    """List expenses, optionally limited to a scope and filtered."""
    expenses = services.expenses.find_all()
    try:
        expenses = get_scoped_expenses(expenses, args.scope)
        on_date = date.fromisoformat(args.date) if args.date else None
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)

    expenses = filter_expenses(
        expenses, search=args.search, category=args.category, on_date=on_date
    )

    if not expenses:
        logger.info("No expenses found.")
        return

    for e in expenses:
        logger.info(_format_expense(e))
    logger.info(f"\nTotal expenses: {len(expenses)}")
    logger.info(f"Total amount: {float(total_amount(expenses)):.2f}")


def cmd_update(args, services):
    """Update fields of a single expense."""
    updates = {}

    if args.amount is not None:
        try:
            amount = Decimal(args.amount)
        except InvalidOperation:
            logger.error(f"Invalid amount: {args.amount}")
            sys.exit(1)
        if amount < 0:
            logger.error("Amount must not be negative.")
            sys.exit(1)
        updates["amount"] = amount

    if args.date is not None:
        try:
            updates["date"] = date.fromisoformat(args.date)
        except ValueError:
            logger.error("Date must be in YYYY-MM-DD format.")
            sys.exit(1)

    for name in ("category", "subcategory", "details", "paid_by"):
        value = getattr(args, name)
        if value is not None:
            updates[name] = value

    if not updates:
        logger.error("Nothing to update. Pass at least one field option.")
        sys.exit(1)

    try:
        expense = services.expenses.update(args.expense_id, **updates)
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)

    logger.info("✓ Expense updated")
    logger.info(f"  {_format_expense(expense)}")


def cmd_summary(args, services):
    """Show this month's spending overview."""
    try:
        today = date.fromisoformat(args.date) if args.date else date.today()
    except ValueError:
        logger.error("Date must be in YYYY-MM-DD format.")
        sys.exit(1)

    summary = summarize_month(services.expenses.find_all(), today)

    logger.info(f"\nSummary for {summary.month.strftime('%B %Y')}")
    logger.info("=" * 80)
    logger.info(f"This month:  {float(summary.total):.2f} ({summary.count} expense(s))")
    if summary.month_change_pct is None:
        logger.info("vs last month: n/a")
    else:
        logger.info(
            f"vs last month: {summary.month_change_pct:+.1f}% "
            f"(last month {float(summary.last_month_total):.2f})"
        )
    if summary.top_category:
        category, amount = summary.top_category
        logger.info(f"Top category: {category} ({float(amount):.2f})")
    logger.info(f"This week:   {float(summary.week_total):.2f}")
    if summary.week_change_pct is not None:
        logger.info(f"vs last week: {summary.week_change_pct:+.1f}%")


def cmd_add(args, services):
    """Add a single expense."""
    try:
        amount = Decimal(args.amount)
    except InvalidOperation:
        logger.error(f"Invalid amount: {args.amount}")
        sys.exit(1)
    if amount < 0:
        logger.error("Amount must not be negative.")
        sys.exit(1)

    try:
        expense_date = date.fromisoformat(args.date) if args.date else date.today()
    except ValueError:
        logger.error("Date must be in YYYY-MM-DD format.")
        sys.exit(1)

    expense = services.expenses.create(
        Expense.create(
            date=expense_date,
            amount=amount,
            category=args.category,
            details=args.details,
            subcategory=args.subcategory,
            paid_by=args.paid_by,
        )
    )
    logger.info("✓ Expense added")
    logger.info(f"  {_format_expense(expense)}")


def cmd_extract(args, services):
    """Extract an expense from free text with the AI model."""
    config = services.config
    try:
        extracted = extract_expense(
            args.text,
            get_llm_provider(config),
            model=args.model or config.llm_model or DEFAULT_MODEL,
            api_key=config.llm_api_key,
            timeout=config.timeout_seconds,
        )
    except ExtractionError as e:
        logger.error(f"Extraction failed: {e}")
        sys.exit(1)

    logger.info(
        f"Extracted: {extracted.date.isoformat()}  {float(extracted.amount):.2f}  "
        f"{extracted.category}  {extracted.details}  (paid by {extracted.paid_by})"
    )

    if args.save:
        expense = services.expenses.create(extracted.to_expense(args.text))
        logger.info(f"✓ Saved expense {expense.id}")


def cmd_delete(args, services):
    """Delete one or more expenses by ID."""
    removed = services.expenses.bulk_delete(args.expense_ids)
    if removed == 0:
        logger.error("No matching expenses found.")
        sys.exit(1)
    logger.info(f"✓ Deleted {removed} expense(s)")


def cmd_import(args, services):
    """Import expenses from a CSV file."""
    csv_path = Path(args.csv_file)
    if not csv_path.exists():
        logger.error(f"File not found: {args.csv_file}")
        sys.exit(1)

    with open(csv_path, "r", newline="") as f:
        expenses = ingest(f)

    if not expenses:
        logger.info("No expenses to import.")
        return

    count = services.expenses.bulk_create(expenses)
    logger.info(f"✓ Imported {count} expense(s)")


def cmd_export(args, services):
    """Export all expenses to CSV."""
    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", newline="") as f:
        count = export(services.expenses.find_all(), f)

    logger.info(f"✓ Exported {count} expense(s) to {output_path}")


def cmd_clear(args, services):
    """Delete every expense."""
    confirm = input("This will delete ALL expenses. Continue? (yes/no): ").strip().lower()
    if confirm != "yes":
        logger.info("Cancelled.")
        return
    services.expenses.clear()
    logger.info("✓ All expenses deleted")


def setup_parser(subparsers):
    """Setup expenses subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "expenses",
        help="Manage expenses",
        description="Add, import, export and list expenses",
    )

    expenses_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available expense commands",
        dest="subcommand",
        required=True,
    )

    list_parser = expenses_subparsers.add_parser("list", help="List expenses")
    list_parser.add_argument(
        "--scope",
        default="all",
        help="'all' or number of days back from today (default: all)",
    )
    list_parser.add_argument("--search", help="Text to match in details, category or payer")
    list_parser.add_argument("--category", choices=CATEGORIES)
    list_parser.add_argument("--date", help="Only expenses on this date (YYYY-MM-DD)")
    list_parser.set_defaults(func=cmd_list)

    update_parser = expenses_subparsers.add_parser(
        "update",
        help="Update an expense",
        epilog="Example: python -m cli expenses update <id> --category Food --subcategory Delivery",
    )
    update_parser.add_argument("expense_id", help="Expense ID")
    update_parser.add_argument("--amount")
    update_parser.add_argument("--date", help="YYYY-MM-DD")
    update_parser.add_argument("--category", choices=CATEGORIES)
    update_parser.add_argument("--subcategory")
    update_parser.add_argument("--details")
    update_parser.add_argument("--paid-by", dest="paid_by")
    update_parser.set_defaults(func=cmd_update)

    summary_parser = expenses_subparsers.add_parser(
        "summary", help="Monthly and weekly spending overview"
    )
    summary_parser.add_argument("--date", help="Reference date (default: today)")
    summary_parser.set_defaults(func=cmd_summary)

    add_parser = expenses_subparsers.add_parser("add", help="Add an expense")
    add_parser.add_argument("amount", help="Amount, e.g. 12.50")
    add_parser.add_argument("details", help="Short description")
    add_parser.add_argument("--category", choices=CATEGORIES, default="Other")
    add_parser.add_argument("--subcategory")
    add_parser.add_argument("--date", help="YYYY-MM-DD (default: today)")
    add_parser.add_argument("--paid-by", dest="paid_by", default="Me")
    add_parser.set_defaults(func=cmd_add)

    extract_parser = expenses_subparsers.add_parser(
        "extract",
        help="Create an expense from free text using AI",
        epilog='Example: python -m cli expenses extract "spent 250 on lunch yesterday" --save',
    )
    extract_parser.add_argument("text", help="Natural-language description")
    extract_parser.add_argument("--model", help="Model override")
    extract_parser.add_argument(
        "--save", action="store_true", help="Save the extracted expense"
    )
    extract_parser.set_defaults(func=cmd_extract)

    delete_parser = expenses_subparsers.add_parser("delete", help="Delete expenses")
    delete_parser.add_argument("expense_ids", nargs="+", help="Expense ID(s)")
    delete_parser.set_defaults(func=cmd_delete)

    import_parser = expenses_subparsers.add_parser("import", help="Import a CSV file")
    import_parser.add_argument("csv_file", help="Path to CSV file")
    import_parser.set_defaults(func=cmd_import)

    export_parser = expenses_subparsers.add_parser("export", help="Export to CSV")
    export_parser.add_argument("--output", required=True, help="Output CSV file path")
    export_parser.set_defaults(func=cmd_export)

    clear_parser = expenses_subparsers.add_parser("clear", help="Delete all expenses")
    clear_parser.set_defaults(func=cmd_clear)
