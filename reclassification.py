"""AI-assisted batch reclassification of the expense ledger.

A run takes the in-scope expenses, splits them into date windows, asks the
classifier for better categories one window at a time, and returns the
proposals that pass validation and the quality gates. Nothing is written
here; the caller reviews the result and hands approved changes to
ReclassificationService.apply.

Each batch is tried on the requested model, then once on the provider's
fallback model. A batch that fails both is skipped and the run continues.
"""

import time
from collections import Counter
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional, Union

from config import ReclassificationSettings
from llm.errors import ClassifierError
from llm.providers.base import LLMProvider
from models.category import CATEGORIES, DEFAULT_SUBCATEGORIES
from models.expense import Expense
from models.reclassification import (
    CONSERVATIVE,
    MODES,
    BatchOutcome,
    BatchProgress,
    BatchState,
    ChangeProposal,
    MerchantCount,
    ReclassificationResult,
)
from logger import get_logger

logger = get_logger()

MERCHANT_LIMIT = 20

Scope = Union[str, int]
ProgressCallback = Callable[[BatchProgress], None]


class ReclassificationConfigError(Exception):
    """A run cannot start: missing credentials, empty scope or bad mode."""


def parse_scope(scope: Scope) -> Optional[int]:
    """Turn a scope descriptor into a number of days (None for all time).

    Accepts "all", an integer, a numeric string, or shorthand like "30d".

    Raises:
        ValueError: If the scope cannot be understood.
    """
    if isinstance(scope, bool):
        raise ValueError(f"Invalid scope: {scope!r}")
    if isinstance(scope, int):
        if scope < 0:
            raise ValueError(f"Scope must not be negative: {scope}")
        return scope

    text = str(scope).strip().lower()
    if text == "all":
        return None
    if text.endswith("d"):
        text = text[:-1]
    if not text.isdigit():
        raise ValueError(f"Invalid scope: {scope!r}")
    return int(text)


def get_scoped_expenses(
    expenses: List[Expense], scope: Scope, today: Optional[date] = None
) -> List[Expense]:
    """Select the expenses a run should consider.

    Args:
        expenses: Full ledger.
        scope: "all", or a number of days back from today.
        today: Reference date (defaults to date.today()).

    Returns:
        The input list itself for "all"; otherwise the expenses dated on or
        after today minus N days, in their original order.
    """
    days = parse_scope(scope)
    if days is None:
        return expenses

    cutoff = (today or date.today()) - timedelta(days=days)
    return [e for e in expenses if e.date >= cutoff]


def chunk_by_days(expenses: List[Expense], days: int = 10) -> List[List[Expense]]:
    """Split expenses into chronological windows no wider than `days`.

    Each batch is anchored at its first (earliest) expense; an expense
    joins the batch while it is at most `days` days after the anchor.
    """
    if not expenses:
        return []

    ordered = sorted(expenses, key=lambda e: e.date)

    batches: List[List[Expense]] = []
    current: List[Expense] = []
    anchor: Optional[date] = None

    for expense in ordered:
        if anchor is not None and (expense.date - anchor).days <= days:
            current.append(expense)
            continue
        if current:
            batches.append(current)
        anchor = expense.date
        current = [expense]

    batches.append(current)
    return batches


def build_merchant_frequency(
    expenses: List[Expense], limit: int = MERCHANT_LIMIT
) -> List[MerchantCount]:
    """Count normalized descriptions across the whole scope.

    Ties keep the order in which descriptions were first seen.
    """
    counts = Counter(
        key for key in ((e.details or "").strip().lower() for e in expenses) if key
    )
    return [MerchantCount(merchant=m, count=c) for m, c in counts.most_common(limit)]


def build_batch_payload(batch: List[Expense]) -> List[Dict]:
    """Reduce expenses to the fields the classifier may see.

    original_prompt and paid_by are never sent.
    """
    return [
        {
            "id": e.id,
            "date": e.date.isoformat(),
            "amount": float(e.amount),
            "category": e.category,
            "subcategory": e.subcategory,
            "details": e.details,
        }
        for e in batch
    ]


def process_batch(
    index: int,
    total: int,
    payload: List[Dict],
    *,
    provider: LLMProvider,
    model: str,
    settings: ReclassificationSettings,
    subcategories: Dict[str, List[str]],
    merchant_frequency: List[MerchantCount],
    mode: str,
    on_progress: Optional[ProgressCallback] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> BatchOutcome:
    """Run one batch through ATTEMPTING_PRIMARY -> ATTEMPTING_FALLBACK -> SKIPPED.

    Returns:
        BatchOutcome in state SUCCEEDED or SKIPPED. Never raises for
        classifier or validation failures.
    """
    outcome = BatchOutcome(index=index, state=BatchState.ATTEMPTING_PRIMARY)
    attempt_model = model

    while outcome.state in (BatchState.ATTEMPTING_PRIMARY, BatchState.ATTEMPTING_FALLBACK):
        try:
            result = provider.reclassify_batch(
                payload,
                subcategories,
                merchant_frequency,
                mode,
                model=attempt_model,
                api_key=settings.api_key,
                timeout=settings.timeout_seconds,
                threshold=settings.confidence_threshold,
            )
            error = result.error
        except ClassifierError as e:
            result = None
            error = str(e)

        if result is not None and result.ok:
            outcome.state = BatchState.SUCCEEDED
            outcome.model = attempt_model
            outcome.changes = [
                ChangeProposal(
                    transaction_id=c.transaction_id,
                    new_category=c.new_category,
                    confidence=c.confidence,
                    new_subcategory=c.new_subcategory,
                    new_description=c.new_description,
                )
                for c in result.response.changes
            ]
            outcome.new_subcategories = list(result.response.new_subcategories)
            break

        outcome.errors.append(f"{attempt_model}: {error}")
        logger.warning(f"Batch {index}/{total} failed on {attempt_model}: {error}")

        fallback = provider.fallback_model(model)
        if outcome.state == BatchState.ATTEMPTING_PRIMARY and fallback:
            if on_progress:
                on_progress(BatchProgress(current=index, total=total, retrying=True))
            sleep(settings.retry_delay_seconds)
            outcome.state = BatchState.ATTEMPTING_FALLBACK
            attempt_model = fallback
        else:
            outcome.state = BatchState.SKIPPED

    if outcome.state == BatchState.SKIPPED:
        logger.warning(f"Batch {index}/{total} skipped after {len(outcome.errors)} failed attempt(s)")

    return outcome


def filter_changes(
    changes: List[ChangeProposal],
    known_ids: set,
    threshold: float = 0.75,
) -> List[ChangeProposal]:
    """Keep proposals that clear the confidence gate, name a known
    category and point at an expense from this run."""
    kept = [
        c
        for c in changes
        if c.confidence >= threshold
        and c.new_category in CATEGORIES
        and c.transaction_id in known_ids
    ]
    dropped = len(changes) - len(kept)
    if dropped:
        logger.debug(f"Filtered out {dropped} low-confidence or invalid proposal(s)")
    return kept


def run_reclassification(
    expenses: List[Expense],
    mode: str,
    model: str,
    settings: ReclassificationSettings,
    provider: LLMProvider,
    on_progress: Optional[ProgressCallback] = None,
    subcategories: Optional[Dict[str, List[str]]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ReclassificationResult:
    """Reclassify a set of expenses in sequential, date-windowed batches.

    Args:
        expenses: In-scope expenses (see get_scoped_expenses).
        mode: "conservative" or "deep".
        model: Primary model name.
        settings: API key and timing/threshold settings.
        provider: Classifier provider.
        on_progress: Called with BatchProgress before each batch and once
                     more (retrying=True) when a batch falls back.
        subcategories: Allowed subcategories per category (defaults to
                       the built-in map).
        sleep: Pause function, injectable for tests.

    Returns:
        ReclassificationResult with filtered changes, proposed
        subcategory names and per-batch outcomes.

    Raises:
        ReclassificationConfigError: Before any network call, when the API
            key is missing, the scope is empty or the mode is unknown.
    """
    if not settings.api_key:
        raise ReclassificationConfigError(
            "Gemini API key is not set (set GEMINI_API_KEY or [llm] api_key)"
        )
    if not expenses:
        raise ReclassificationConfigError("No expenses in scope")
    if mode not in MODES:
        raise ReclassificationConfigError(f"Unknown mode: {mode}")

    subcategories = subcategories if subcategories is not None else DEFAULT_SUBCATEGORIES

    # Computed once so every batch sees the same merchant context
    merchant_frequency = build_merchant_frequency(expenses)

    batches = chunk_by_days(expenses, settings.batch_days)
    total = len(batches)

    logger.info(
        f"Reclassifying {len(expenses)} expense(s) in {total} batch(es) "
        f"(mode: {mode}, model: {model})"
    )

    outcomes: List[BatchOutcome] = []
    for i, batch in enumerate(batches, start=1):
        if i > 1:
            sleep(settings.batch_delay_seconds)

        if on_progress:
            on_progress(BatchProgress(current=i, total=total, retrying=False))

        outcomes.append(
            process_batch(
                i,
                total,
                build_batch_payload(batch),
                provider=provider,
                model=model,
                settings=settings,
                subcategories=subcategories,
                merchant_frequency=merchant_frequency,
                mode=mode,
                on_progress=on_progress,
                sleep=sleep,
            )
        )

    all_changes = [c for o in outcomes for c in o.changes]
    changes = filter_changes(
        all_changes, {e.id for e in expenses}, settings.confidence_threshold
    )

    new_subcategories: List[str] = []
    for name in (n for o in outcomes for n in o.new_subcategories):
        if name not in new_subcategories:
            new_subcategories.append(name)
    if mode == CONSERVATIVE and new_subcategories:
        logger.warning(
            f"Ignoring {len(new_subcategories)} new subcategory proposal(s) in conservative mode"
        )
        new_subcategories = []

    result = ReclassificationResult(
        changes=changes, new_subcategories=new_subcategories, outcomes=outcomes
    )
    logger.info(
        f"Reclassification finished: {len(changes)} proposal(s), "
        f"{result.skipped_batches} skipped batch(es)"
    )
    return result
