"""Expense analysis tools."""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from models.expense import Expense


@dataclass
class MonthlySummary:
    """Spending overview for the month containing a reference date.

    Attributes:
        month: First day of the month summarized.
        total: Sum of this month's amounts.
        count: Number of expenses this month.
        last_month_total: Sum of the previous month's amounts.
        month_change_pct: Change versus last month, None when last month is empty.
        top_category: (category, total) with the largest spend this month, if any.
        week_total: Spend from this week's Monday up to the reference date.
        last_week_total: Spend over the same weekdays of the previous week.
        week_change_pct: Change versus last week, None when last week is empty.
    """

    month: date
    total: Decimal
    count: int
    last_month_total: Decimal
    month_change_pct: Optional[float]
    top_category: Optional[Tuple[str, Decimal]]
    week_total: Decimal
    last_week_total: Decimal
    week_change_pct: Optional[float]


def filter_expenses(
    expenses: List[Expense],
    search: Optional[str] = None,
    category: Optional[str] = None,
    on_date: Optional[date] = None,
) -> List[Expense]:
    """Filter expenses the way the history view does.

    Args:
        expenses: Expenses to filter (order is kept).
        search: Case-insensitive text matched against details, category and payer.
        category: Exact category name.
        on_date: Exact expense date.

    Returns:
        Matching expenses.
    """
    result = expenses

    if search:
        q = search.lower()
        result = [
            e
            for e in result
            if q in (e.details or "").lower()
            or q in (e.category or "").lower()
            or q in (e.paid_by or "").lower()
        ]
    if category:
        result = [e for e in result if e.category == category]
    if on_date:
        result = [e for e in result if e.date == on_date]

    return list(result)


def total_amount(expenses: List[Expense]) -> Decimal:
    return sum((e.amount for e in expenses), Decimal("0"))


def _change_pct(current: Decimal, previous: Decimal) -> Optional[float]:
    if previous <= 0:
        return None
    return float((current - previous) / previous * 100)


def _month_start(d: date) -> date:
    return d.replace(day=1)


def summarize_month(expenses: List[Expense], today: Optional[date] = None) -> MonthlySummary:
    """Summarize this month against last month, and this week against last week.

    Args:
        expenses: Full ledger.
        today: Reference date (defaults to date.today()).
    """
    today = today or date.today()
    month = _month_start(today)
    last_month = _month_start(month - timedelta(days=1))

    monthly = [e for e in expenses if _month_start(e.date) == month]
    last_monthly = [e for e in expenses if _month_start(e.date) == last_month]

    by_category: Dict[str, Decimal] = {}
    for e in monthly:
        by_category[e.category] = by_category.get(e.category, Decimal("0")) + e.amount
    # Ties go to the category seen first
    top_category = max(by_category.items(), key=lambda item: item[1]) if by_category else None

    monday = today - timedelta(days=today.weekday())
    last_monday = monday - timedelta(days=7)
    last_week_same_day = today - timedelta(days=7)

    week_total = total_amount([e for e in expenses if monday <= e.date <= today])
    last_week_total = total_amount(
        [e for e in expenses if last_monday <= e.date <= last_week_same_day]
    )

    total = total_amount(monthly)
    last_month_total = total_amount(last_monthly)

    return MonthlySummary(
        month=month,
        total=total,
        count=len(monthly),
        last_month_total=last_month_total,
        month_change_pct=_change_pct(total, last_month_total),
        top_category=top_category,
        week_total=week_total,
        last_week_total=last_week_total,
        week_change_pct=_change_pct(week_total, last_week_total),
    )
