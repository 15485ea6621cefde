import csv
import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional, TextIO

from dateutil import parser as date_parser

from models.expense import DEFAULT_PAID_BY, Expense

logger = logging.getLogger(__name__)

# Accepted header spellings, first match wins
_AMOUNT_COLUMNS = ["Total cost", "total cost", "Amount", "amount", "Cost", "cost", "Total", "total"]
_DATE_COLUMNS = ["Date", "date", "DATE"]
_DETAILS_COLUMNS = ["Expense", "expense", "Description", "description", "Details", "details", "Note", "note"]
_CATEGORY_COLUMNS = ["Category", "category"]
_SUBCATEGORY_COLUMNS = ["Subcategory", "subcategory"]
_PAID_BY_COLUMNS = ["PaidBy", "Paid By", "paid_by", "paidBy"]

EXPORT_HEADER = [
    "Date",
    "Amount",
    "Category",
    "Subcategory",
    "Details",
    "Original Prompt",
    "PaidBy",
]


def _first(row: Dict[str, str], columns: List[str]) -> Optional[str]:
    for column in columns:
        value = row.get(column)
        if value is not None:
            return value.strip()
    return None


def _parse_date(value: Optional[str], today: date) -> date:
    if not value:
        return today
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return date_parser.parse(value).date()
    except (ValueError, OverflowError):
        logger.warning(f"Unreadable date '{value}', using {today.isoformat()}")
        return today


def row_to_expense(row: Dict[str, str], today: Optional[date] = None) -> Optional[Expense]:
    """Convert one CSV row to an Expense, or None if it has no positive amount."""
    today = today or date.today()

    amount_str = (_first(row, _AMOUNT_COLUMNS) or "0").replace(",", "")
    try:
        amount = Decimal(amount_str or "0")
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount <= 0:
        return None

    return Expense.create(
        date=_parse_date(_first(row, _DATE_COLUMNS), today),
        amount=amount,
        category=_first(row, _CATEGORY_COLUMNS) or "Other",
        details=_first(row, _DETAILS_COLUMNS) or "",
        subcategory=_first(row, _SUBCATEGORY_COLUMNS) or None,
        paid_by=_first(row, _PAID_BY_COLUMNS) or DEFAULT_PAID_BY,
    )


def ingest(source: TextIO, today: Optional[date] = None) -> List[Expense]:
    """
    Ingest expenses from a CSV file with a header row.

    Header names are matched loosely (e.g. "Total cost", "Amount" or "Cost"
    for the amount). Rows without a positive amount are skipped.
    """
    expenses = []
    reader = csv.DictReader(source)

    if not reader.fieldnames:
        logger.error("Empty CSV file")
        return expenses

    line_num = 1
    for row in reader:
        line_num += 1
        expense = row_to_expense(row, today)
        if expense is None:
            logger.warning(f"Skipping line {line_num} without a positive amount")
            continue
        expenses.append(expense)

    logger.info(f"Parsed {len(expenses)} expense(s) from {line_num - 1} row(s)")
    return expenses


def export(expenses: Iterable[Expense], dest: TextIO) -> int:
    """Write expenses as CSV. Returns the number of rows written."""
    writer = csv.writer(dest)
    writer.writerow(EXPORT_HEADER)

    count = 0
    for e in expenses:
        writer.writerow(
            [
                e.date.isoformat(),
                float(e.amount),
                e.category,
                e.subcategory or "",
                e.details,
                e.original_prompt or "",
                e.paid_by,
            ]
        )
        count += 1
    return count
