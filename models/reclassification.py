"""Models for AI-assisted batch reclassification runs."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from models.expense import Expense

CONSERVATIVE = "conservative"
DEEP = "deep"
MODES = (CONSERVATIVE, DEEP)


@dataclass
class ChangeProposal:
    """A classifier-proposed change to a single expense."""

    transaction_id: str
    new_category: str
    confidence: float
    new_subcategory: Optional[str] = None
    new_description: Optional[str] = None  # only when materially different


@dataclass
class MerchantCount:
    merchant: str
    count: int


@dataclass
class BatchProgress:
    """Progress event emitted before each batch and on fallback."""

    current: int  # 1-based
    total: int
    retrying: bool = False


class BatchState(Enum):
    """States a batch moves through during a run."""

    ATTEMPTING_PRIMARY = "attempting_primary"
    ATTEMPTING_FALLBACK = "attempting_fallback"
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"


@dataclass
class BatchOutcome:
    """Result of processing one batch.

    Attributes:
        index: 1-based batch number.
        state: Final state (SUCCEEDED or SKIPPED).
        model: Model that produced the accepted response, if any.
        changes: Validated (unfiltered) proposals from this batch.
        new_subcategories: Subcategory names proposed in this batch.
        errors: One message per failed attempt, in order.
    """

    index: int
    state: BatchState
    model: Optional[str] = None
    changes: List[ChangeProposal] = field(default_factory=list)
    new_subcategories: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def used_fallback(self) -> bool:
        return len(self.errors) > 0 and self.state == BatchState.SUCCEEDED


@dataclass
class ReclassificationResult:
    """Aggregated, filtered output of a run, held in memory until review."""

    changes: List[ChangeProposal]
    new_subcategories: List[str]
    outcomes: List[BatchOutcome] = field(default_factory=list)

    @property
    def skipped_batches(self) -> int:
        return sum(1 for o in self.outcomes if o.state == BatchState.SKIPPED)


@dataclass
class ReclassificationMetadata:
    mode: str = CONSERVATIVE
    scope: str = "unknown"
    subcategories_created: int = 0


class UndoSnapshot:
    """Pre-image of every expense touched by an apply, usable for one undo.

    The snapshot is a capability token: ReclassificationService.undo
    consumes it and refuses to consume it twice. Expiry is left to the
    caller; is_expired() compares against the issue time.
    """

    def __init__(self, records: List[Expense], issued_at: Optional[float] = None):
        self.records = records
        self.issued_at = time.monotonic() if issued_at is None else issued_at
        self.consumed = False

    def __len__(self) -> int:
        return len(self.records)

    def is_expired(self, window_seconds: float, now: Optional[float] = None) -> bool:
        now = time.monotonic() if now is None else now
        return now - self.issued_at > window_seconds


@dataclass
class ApplyResult:
    snapshot: UndoSnapshot
    updated_count: int
