"""Helper utilities for tests."""

import json
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from llm.errors import ClassifierError
from llm.providers.base import LLMProvider
from models.expense import Expense


def make_expense(
    expense_id: str,
    expense_date: str,
    details: str = "Coffee",
    category: str = "Other",
    amount: str = "10.00",
    subcategory: Optional[str] = None,
    original_prompt: Optional[str] = None,
) -> Expense:
    """Build an expense with a fixed ID and creation timestamp."""
    return Expense(
        id=expense_id,
        date=date.fromisoformat(expense_date),
        amount=Decimal(amount),
        category=category,
        details=details,
        subcategory=subcategory,
        created_at="2025-01-01T09:00:00",
        original_prompt=original_prompt,
    )


def batch_response(changes: List[Dict], new_subcategories: Optional[List[str]] = None) -> str:
    """Render a classifier response body for one batch."""
    return json.dumps({"changes": changes, "new_subcategories": new_subcategories or []})


def change(transaction_id: str, category: str, confidence: float = 0.9, **extra) -> Dict:
    return {
        "transaction_id": transaction_id,
        "new_category": category,
        "new_subcategory": extra.get("subcategory"),
        "new_description": extra.get("description"),
        "confidence": confidence,
    }


class FakeProvider(LLMProvider):
    """Provider that returns scripted responses in call order.

    Each scripted item is either response text or an exception to raise.
    """

    def __init__(self, responses=None, fallbacks=None):
        super().__init__()
        self.responses = list(responses or [])
        self.fallbacks = (
            fallbacks if fallbacks is not None else {"primary": "backup"}
        )
        self.calls = []

    def fallback_model(self, model):
        return self.fallbacks.get(model)

    def generate(self, prompt, *, model, api_key, timeout):
        self.calls.append({"model": model, "prompt": prompt, "api_key": api_key, "timeout": timeout})
        if not self.responses:
            raise ClassifierError("no scripted response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response
