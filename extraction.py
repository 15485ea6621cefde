"""Single-expense extraction from natural-language text.

One request, one object back: no batching and no fallback model.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from pydantic import ValidationError

from llm.errors import ClassifierError
from llm.providers.base import LLMProvider
from llm.schemas import ExtractionResponse, parse_json_object
from models.category import CATEGORIES
from models.expense import DEFAULT_PAID_BY, Expense
from logger import get_logger

logger = get_logger()


class ExtractionError(Exception):
    """Extraction failed; status_code says whose fault (400 input, 500 service)."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class ExtractedExpense:
    date: date
    amount: Decimal
    category: str
    details: str
    paid_by: str = DEFAULT_PAID_BY

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "amount": float(self.amount),
            "category": self.category,
            "details": self.details,
            "paidBy": self.paid_by,
        }

    def to_expense(self, original_prompt: str) -> Expense:
        return Expense.create(
            date=self.date,
            amount=self.amount,
            category=self.category,
            details=self.details,
            paid_by=self.paid_by,
            original_prompt=original_prompt,
        )


def _parse_amount(value) -> Optional[Decimal]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        amount = Decimal(str(value).replace(",", "").strip())
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def extract_expense(
    text: str,
    provider: LLMProvider,
    *,
    model: str,
    api_key: Optional[str],
    timeout: float = 15.0,
    today: Optional[date] = None,
) -> ExtractedExpense:
    """Turn free text like "spent 25 on lunch" into an expense.

    Unknown categories become "Other"; a missing or invalid date becomes today.

    Raises:
        ExtractionError: 400 for blank text or no positive amount, 500 for
            missing credentials, a failed call or unreadable output.
    """
    if not text or not text.strip():
        raise ExtractionError("text is required", 400)
    if not api_key:
        raise ExtractionError("Gemini API key is not set", 500)

    today = today or date.today()

    try:
        raw = provider.extract_expense(
            text.strip(), today, model=model, api_key=api_key, timeout=timeout
        )
        parsed = ExtractionResponse.model_validate(parse_json_object(raw))
    except ClassifierError as e:
        logger.error(f"Extraction call failed: {e}")
        raise ExtractionError(str(e), 500) from e
    except (ValueError, ValidationError) as e:
        logger.error(f"Unreadable extraction response: {e}")
        raise ExtractionError(
            "AI returned an unreadable response. Please try again.", 500
        ) from e

    amount = _parse_amount(parsed.amount)
    if amount is None or amount <= 0:
        raise ExtractionError(
            'Could not extract a valid amount. Please be more specific (e.g. "spent $25").',
            400,
        )

    try:
        expense_date = date.fromisoformat(parsed.date) if parsed.date else today
    except ValueError:
        expense_date = today

    category = parsed.category if parsed.category in CATEGORIES else "Other"

    return ExtractedExpense(
        date=expense_date,
        amount=amount,
        category=category,
        details=(parsed.details or text).strip(),
        paid_by=parsed.paidBy or DEFAULT_PAID_BY,
    )
