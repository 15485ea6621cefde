"""Expense service for ledger operations."""

from typing import Iterable, List, Optional

from models.expense import Expense
from services.store import EXPENSES_KEY

# Fields that no update may change
_IMMUTABLE_FIELDS = {"id", "created_at", "original_prompt"}

_UPDATABLE_FIELDS = {
    "date",
    "amount",
    "category",
    "subcategory",
    "details",
    "paid_by",
}


class ExpenseService:
    """Service for managing expenses.

    The ledger is stored as one list, newest entries first, and every
    mutation rewrites the whole list.
    """

    def __init__(self, store):
        """Initialize the expense service.

        Args:
            store: KeyValueStore holding the ledger.
        """
        self.store = store

    def find_all(self) -> List[Expense]:
        """Get every expense in stored order."""
        return [Expense.from_dict(row) for row in self.store.load(EXPENSES_KEY, [])]

    def find(self, expense_id: str) -> Optional[Expense]:
        """Get a single expense by ID.

        Returns:
            Expense object if found, None otherwise.
        """
        for expense in self.find_all():
            if expense.id == expense_id:
                return expense
        return None

    def save_all(self, expenses: List[Expense]) -> None:
        """Replace the whole ledger in a single write."""
        self.store.persist(EXPENSES_KEY, [e.to_dict() for e in expenses])

    def create(self, expense: Expense) -> Expense:
        """Add an expense to the front of the ledger."""
        expenses = self.find_all()
        expenses.insert(0, expense)
        self.save_all(expenses)
        return expense

    def update(self, expense_id: str, **updates) -> Expense:
        """Update fields of a single expense.

        id, created_at and original_prompt are silently ignored if passed.

        Raises:
            ValueError: If the expense is not found or a field is unknown.
        """
        safe_updates = {
            k: v for k, v in updates.items() if k not in _IMMUTABLE_FIELDS
        }
        invalid_fields = set(safe_updates) - _UPDATABLE_FIELDS
        if invalid_fields:
            raise ValueError(f"Unsupported field names: {invalid_fields}")

        expenses = self.find_all()
        for expense in expenses:
            if expense.id == expense_id:
                for name, value in safe_updates.items():
                    setattr(expense, name, value)
                self.save_all(expenses)
                return expense

        raise ValueError(f"Expense with ID {expense_id} not found")

    def delete(self, expense_id: str) -> bool:
        """Delete an expense by ID.

        Returns:
            True if the expense was deleted, False if not found.
        """
        return self.bulk_delete([expense_id]) > 0

    def bulk_delete(self, expense_ids: Iterable[str]) -> int:
        """Delete several expenses at once.

        Returns:
            Number of expenses removed.
        """
        ids = set(expense_ids)
        expenses = self.find_all()
        remaining = [e for e in expenses if e.id not in ids]
        removed = len(expenses) - len(remaining)
        if removed:
            self.save_all(remaining)
        return removed

    def bulk_create(self, incoming: List[Expense]) -> int:
        """Prepend imported expenses to the ledger.

        Returns:
            Number of expenses added.
        """
        if not incoming:
            return 0
        self.save_all(list(incoming) + self.find_all())
        return len(incoming)

    def clear(self) -> None:
        self.save_all([])
