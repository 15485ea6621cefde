from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
import uuid

DEFAULT_PAID_BY = "Me"


@dataclass
class Expense:
    id: str  # uuid4, never changes after creation
    date: date
    amount: Decimal  # never negative
    category: str
    details: str
    subcategory: Optional[str] = None
    paid_by: str = DEFAULT_PAID_BY
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())
    original_prompt: Optional[str] = None  # natural-language input, never overwritten

    @classmethod
    def create(
        cls,
        date: date,
        amount: Decimal,
        category: str,
        details: str,
        subcategory: Optional[str] = None,
        paid_by: str = DEFAULT_PAID_BY,
        original_prompt: Optional[str] = None,
    ) -> "Expense":
        """Create an Expense with a fresh ID and creation timestamp."""
        return cls(
            id=str(uuid.uuid4()),
            date=date,
            amount=amount,
            category=category,
            details=details,
            subcategory=subcategory,
            paid_by=paid_by,
            original_prompt=original_prompt,
        )

    def to_dict(self) -> dict:
        """Convert expense to dictionary for storage."""
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "amount": float(self.amount),
            "category": self.category,
            "subcategory": self.subcategory,
            "details": self.details,
            "paid_by": self.paid_by,
            "created_at": self.created_at,
            "original_prompt": self.original_prompt,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Expense":
        """Build an expense from its stored dictionary form."""
        return cls(
            id=data["id"],
            date=date.fromisoformat(data["date"]),
            amount=Decimal(str(data.get("amount", 0))),
            category=data.get("category") or "Other",
            details=data.get("details") or "",
            subcategory=data.get("subcategory"),
            paid_by=data.get("paid_by") or DEFAULT_PAID_BY,
            created_at=data.get("created_at") or "",
            original_prompt=data.get("original_prompt"),
        )
