"""Apply and undo reviewed reclassification change-sets."""

import copy
import sqlite3
from typing import List

from models.audit import RECLASSIFICATION_APPLIED, RECLASSIFICATION_UNDONE
from models.reclassification import (
    ApplyResult,
    ChangeProposal,
    ReclassificationMetadata,
    UndoSnapshot,
)
from logger import get_logger

logger = get_logger()


class SnapshotConsumedError(Exception):
    """Raised when an undo snapshot is used more than once."""


class ReclassificationService:
    """Commits approved changes to the ledger and reverts them from a snapshot."""

    def __init__(self, expenses, audit):
        """Initialize the reclassification service.

        Args:
            expenses: ExpenseService owning the ledger.
            audit: AuditService receiving apply/undo events.
        """
        self.expenses = expenses
        self.audit = audit

    def apply(
        self,
        approved_changes: List[ChangeProposal],
        metadata: ReclassificationMetadata,
    ) -> ApplyResult:
        """Apply user-approved changes in a single ledger write.

        Category and subcategory are overwritten; details only when the
        change carries a new description. Every other field is left alone.

        Args:
            approved_changes: Proposals the user kept after review.
            metadata: Run details recorded in the audit log.

        Returns:
            ApplyResult with the pre-image snapshot and number of expenses changed.

        Raises:
            sqlite3.Error: If persisting the ledger fails. The ledger is unchanged
                in that case. Audit log failures are logged and do not raise.
        """
        expenses = self.expenses.find_all()
        change_map = {c.transaction_id: c for c in approved_changes}

        snapshot_records = [copy.deepcopy(e) for e in expenses if e.id in change_map]

        for expense in expenses:
            change = change_map.get(expense.id)
            if change is None:
                continue
            expense.category = change.new_category
            expense.subcategory = change.new_subcategory
            if change.new_description:
                expense.details = change.new_description

        missing = len(change_map) - len(snapshot_records)
        if missing:
            logger.warning(f"{missing} approved change(s) reference unknown expenses")

        self.expenses.save_all(expenses)

        # The ledger is committed; from here on the caller must get its snapshot back
        result = ApplyResult(
            snapshot=UndoSnapshot(snapshot_records),
            updated_count=len(snapshot_records),
        )
        logger.info(f"Applied reclassification to {len(snapshot_records)} expense(s)")

        self._record(
            RECLASSIFICATION_APPLIED,
            mode=metadata.mode,
            scope=metadata.scope,
            changed_count=len(snapshot_records),
            subcategories_created=metadata.subcategories_created,
        )

        return result

    def undo(self, snapshot: UndoSnapshot) -> int:
        """Restore every expense in the snapshot to its pre-apply state.

        Expenses not in the snapshot are left as they are. Edits made to
        snapshot expenses after apply are overwritten.

        Args:
            snapshot: Token returned by apply().

        Returns:
            Number of expenses restored.

        Raises:
            SnapshotConsumedError: If the snapshot was already used.
            sqlite3.Error: If persisting fails; the snapshot stays usable.
        """
        if snapshot.consumed:
            raise SnapshotConsumedError("Undo snapshot has already been used")

        snapshot_map = {e.id: copy.deepcopy(e) for e in snapshot.records}
        restored = [snapshot_map.get(e.id, e) for e in self.expenses.find_all()]

        self.expenses.save_all(restored)
        snapshot.consumed = True

        logger.info(f"Reverted reclassification of {len(snapshot)} expense(s)")
        self._record(RECLASSIFICATION_UNDONE, restored_count=len(snapshot))

        return len(snapshot)

    def _record(self, event_type: str, **metadata) -> None:
        """Write an audit event after the ledger write has committed.

        A failed audit write is logged, not raised: the ledger change already
        happened and must stay reversible.
        """
        try:
            self.audit.add_event(event_type, **metadata)
        except sqlite3.Error as e:
            logger.error(f"Failed to record audit event '{event_type}': {e}")
