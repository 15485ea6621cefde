"""Tests for the batch reclassification engine."""

import pytest
from datetime import date

from config import ReclassificationSettings
from llm.errors import BatchTimeoutError, ClassifierError
from models.reclassification import BatchProgress, BatchState, ChangeProposal
from reclassification import (
    ReclassificationConfigError,
    build_batch_payload,
    build_merchant_frequency,
    chunk_by_days,
    filter_changes,
    get_scoped_expenses,
    parse_scope,
    process_batch,
    run_reclassification,
)
from tests.helpers import FakeProvider, batch_response, change, make_expense


def _merchant_section(prompt):
    return prompt.split("Common merchants (by frequency):")[1].split("Expenses to review:")[0]


class TestParseScope:
    """Tests for parse_scope."""

    def test_all(self):
        assert parse_scope("all") is None
        assert parse_scope("ALL") is None

    def test_integer_and_strings(self):
        assert parse_scope(30) == 30
        assert parse_scope("90") == 90
        assert parse_scope("30d") == 30

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_scope("last month")
        with pytest.raises(ValueError):
            parse_scope(-5)
        with pytest.raises(ValueError):
            parse_scope(True)


class TestGetScopedExpenses:
    """Tests for get_scoped_expenses."""

    def test_last_n_days_includes_cutoff_date(self):
        expenses = [
            make_expense("a", "2025-03-31"),
            make_expense("b", "2025-02-28"),
            make_expense("c", "2025-03-01"),
        ]

        scoped = get_scoped_expenses(expenses, 30, today=date(2025, 3, 31))

        assert [e.id for e in scoped] == ["a", "c"]

    def test_all_returns_input_unchanged(self):
        expenses = [
            make_expense("a", "2020-01-01"),
            make_expense("b", "2025-03-01"),
        ]

        scoped = get_scoped_expenses(expenses, "all")

        assert scoped is expenses
        assert [e.id for e in scoped] == ["a", "b"]

    def test_zero_days_keeps_only_today(self):
        expenses = [make_expense("a", "2025-03-31"), make_expense("b", "2025-03-30")]

        scoped = get_scoped_expenses(expenses, 0, today=date(2025, 3, 31))

        assert [e.id for e in scoped] == ["a"]


class TestChunkByDays:
    """Tests for chunk_by_days."""

    def test_empty_input(self):
        assert chunk_by_days([]) == []

    def test_window_is_inclusive_and_anchored_at_first_date(self):
        expenses = [
            make_expense("d", "2025-02-01"),
            make_expense("a", "2025-01-01"),
            make_expense("c", "2025-01-12"),
            make_expense("b", "2025-01-11"),
            make_expense("a2", "2025-01-05"),
        ]

        batches = chunk_by_days(expenses, 10)

        assert [[e.id for e in b] for b in batches] == [
            ["a", "a2", "b"],
            ["c"],
            ["d"],
        ]

    def test_every_expense_in_exactly_one_sorted_batch(self):
        dates = [
            "2025-01-03", "2025-01-29", "2025-01-01", "2025-02-14", "2025-01-15",
            "2025-01-14", "2025-03-01", "2025-02-20", "2025-01-03", "2025-01-25",
        ]
        expenses = [make_expense(f"e{i}", d) for i, d in enumerate(dates)]

        batches = chunk_by_days(expenses, 7)

        ids = [e.id for b in batches for e in b]
        assert sorted(ids) == sorted(e.id for e in expenses)
        assert len(ids) == len(set(ids))

        for batch in batches:
            assert batch
            assert [e.date for e in batch] == sorted(e.date for e in batch)
            assert (batch[-1].date - batch[0].date).days <= 7

        for previous, following in zip(batches, batches[1:]):
            assert (following[0].date - previous[0].date).days > 7
            assert previous[-1].date <= following[0].date

    def test_same_date_keeps_input_order(self):
        expenses = [
            make_expense("first", "2025-01-01"),
            make_expense("second", "2025-01-01"),
        ]

        batches = chunk_by_days(expenses)

        assert [e.id for e in batches[0]] == ["first", "second"]


class TestBuildMerchantFrequency:
    """Tests for build_merchant_frequency."""

    def test_normalizes_and_counts(self):
        expenses = [
            make_expense("1", "2025-01-01", details=" Uber "),
            make_expense("2", "2025-01-02", details="uber"),
            make_expense("3", "2025-01-03", details="UBER"),
            make_expense("4", "2025-01-04", details="Swiggy"),
            make_expense("5", "2025-01-05", details="   "),
        ]

        frequency = build_merchant_frequency(expenses)

        assert [(m.merchant, m.count) for m in frequency] == [("uber", 3), ("swiggy", 1)]

    def test_truncates_to_top_twenty(self):
        expenses = [
            make_expense(f"{i}-{n}", "2025-01-01", details=f"shop {i}")
            for i in range(25)
            for n in range(25 - i)
        ]

        frequency = build_merchant_frequency(expenses)

        assert len(frequency) == 20
        assert frequency[0].merchant == "shop 0"
        assert frequency[0].count == 25
        assert frequency[-1].merchant == "shop 19"


class TestBuildBatchPayload:
    """Tests for build_batch_payload."""

    def test_only_classifier_fields_are_sent(self):
        expense = make_expense(
            "abc",
            "2025-01-05",
            details="Dinner",
            category="Food",
            amount="450.50",
            original_prompt="spent 450.50 on dinner",
        )

        payload = build_batch_payload([expense])

        assert payload == [
            {
                "id": "abc",
                "date": "2025-01-05",
                "amount": 450.5,
                "category": "Food",
                "subcategory": None,
                "details": "Dinner",
            }
        ]


class TestFilterChanges:
    """Tests for filter_changes."""

    def test_confidence_gate(self):
        changes = [
            ChangeProposal("a", "Food", 0.5),
            ChangeProposal("b", "Food", 0.75),
            ChangeProposal("c", "Food", 0.9),
        ]

        kept = filter_changes(changes, {"a", "b", "c"}, 0.75)

        assert [c.transaction_id for c in kept] == ["b", "c"]

    def test_unknown_category_dropped_even_at_full_confidence(self):
        changes = [ChangeProposal("a", "Bogus", 1.0), ChangeProposal("b", "Health", 1.0)]

        kept = filter_changes(changes, {"a", "b"})

        assert [c.transaction_id for c in kept] == ["b"]

    def test_unknown_transaction_dropped(self):
        kept = filter_changes([ChangeProposal("ghost", "Food", 0.95)], {"a"})

        assert kept == []


class TestProcessBatch:
    """Tests for the per-batch attempt/fallback/skip state machine."""

    def _run(self, provider, settings, sleeps, progress, model="primary"):
        return process_batch(
            1,
            1,
            [{"id": "a"}],
            provider=provider,
            model=model,
            settings=settings,
            subcategories={},
            merchant_frequency=[],
            mode="conservative",
            on_progress=progress.append,
            sleep=sleeps.append,
        )

    def test_primary_success(self, settings):
        provider = FakeProvider([batch_response([change("a", "Food")])])
        sleeps, progress = [], []

        outcome = self._run(provider, settings, sleeps, progress)

        assert outcome.state == BatchState.SUCCEEDED
        assert outcome.model == "primary"
        assert outcome.errors == []
        assert outcome.used_fallback is False
        assert sleeps == []
        assert progress == []

    def test_timeout_then_fallback_success(self, settings):
        provider = FakeProvider(
            [BatchTimeoutError("timed out"), batch_response([change("a", "Food")])]
        )
        sleeps, progress = [], []

        outcome = self._run(provider, settings, sleeps, progress)

        assert outcome.state == BatchState.SUCCEEDED
        assert outcome.model == "backup"
        assert outcome.used_fallback is True
        assert [c["model"] for c in provider.calls] == ["primary", "backup"]
        assert sleeps == [1.0]
        assert progress == [BatchProgress(current=1, total=1, retrying=True)]

    def test_malformed_json_counts_as_failure(self, settings):
        provider = FakeProvider(["not json", batch_response([])])
        outcome = self._run(provider, settings, [], [])

        assert outcome.state == BatchState.SUCCEEDED
        assert "malformed JSON" in outcome.errors[0]

    def test_both_models_fail(self, settings):
        provider = FakeProvider([ClassifierError("quota"), ClassifierError("quota")])

        outcome = self._run(provider, settings, [], [])

        assert outcome.state == BatchState.SKIPPED
        assert outcome.changes == []
        assert len(outcome.errors) == 2
        assert len(provider.calls) == 2

    def test_no_fallback_configured_skips_after_one_attempt(self, settings):
        provider = FakeProvider([ClassifierError("down")], fallbacks={})
        sleeps, progress = [], []

        outcome = self._run(provider, settings, sleeps, progress)

        assert outcome.state == BatchState.SKIPPED
        assert len(provider.calls) == 1
        assert sleeps == []
        assert progress == []


class TestRunReclassification:
    """Tests for run_reclassification."""

    def _run(self, expenses, provider, settings, mode="conservative", progress=None, sleeps=None):
        return run_reclassification(
            expenses,
            mode,
            "primary",
            settings,
            provider,
            on_progress=progress.append if progress is not None else None,
            sleep=sleeps.append if sleeps is not None else (lambda _: None),
        )

    def test_missing_api_key_rejected_before_network(self):
        provider = FakeProvider()

        with pytest.raises(ReclassificationConfigError, match="API key"):
            self._run([make_expense("a", "2025-01-01")], provider, ReclassificationSettings(api_key=None))

        assert provider.calls == []

    def test_empty_scope_rejected_before_network(self, settings):
        provider = FakeProvider()

        with pytest.raises(ReclassificationConfigError, match="No expenses in scope"):
            self._run([], provider, settings)

        assert provider.calls == []

    def test_unknown_mode_rejected(self, settings):
        provider = FakeProvider()

        with pytest.raises(ReclassificationConfigError, match="Unknown mode"):
            self._run([make_expense("a", "2025-01-01")], provider, settings, mode="aggressive")

        assert provider.calls == []

    def test_filters_confidence_and_category(self, settings):
        expenses = [make_expense(i, "2025-01-01") for i in ("a", "b", "c", "d")]
        provider = FakeProvider(
            [
                batch_response(
                    [
                        change("a", "Food", 0.5),
                        change("b", "Food", 0.75),
                        change("c", "Transport", 0.9),
                        change("d", "Bogus", 1.0),
                    ]
                )
            ]
        )

        result = self._run(expenses, provider, settings)

        assert [c.transaction_id for c in result.changes] == ["b", "c"]

    def test_fallback_keeps_batch_changes_and_reports_retry_once(self, settings):
        expenses = [make_expense("a", "2025-01-01"), make_expense("b", "2025-03-01")]
        provider = FakeProvider(
            [
                batch_response([change("a", "Food")]),
                ClassifierError("503 overloaded"),
                batch_response([change("b", "Health")]),
            ]
        )
        progress, sleeps = [], []

        result = self._run(expenses, provider, settings, progress=progress, sleeps=sleeps)

        assert [c.transaction_id for c in result.changes] == ["a", "b"]
        assert progress == [
            BatchProgress(1, 2, False),
            BatchProgress(2, 2, False),
            BatchProgress(2, 2, True),
        ]
        assert sleeps == [1.5, 1.0]
        assert [c["model"] for c in provider.calls] == ["primary", "primary", "backup"]

    def test_batch_failing_on_both_models_does_not_abort_run(self, settings):
        expenses = [
            make_expense("a", "2025-01-01"),
            make_expense("b", "2025-02-01"),
            make_expense("c", "2025-03-01"),
        ]
        provider = FakeProvider(
            [
                batch_response([change("a", "Food")]),
                BatchTimeoutError("timed out"),
                "```json\n{\"broken\": \n```",
                batch_response([change("c", "Shopping")]),
            ]
        )

        result = self._run(expenses, provider, settings)

        assert [c.transaction_id for c in result.changes] == ["a", "c"]
        assert [o.state for o in result.outcomes] == [
            BatchState.SUCCEEDED,
            BatchState.SKIPPED,
            BatchState.SUCCEEDED,
        ]
        assert result.skipped_batches == 1

    def test_no_pause_before_first_batch(self, settings):
        expenses = [make_expense("a", "2025-01-01"), make_expense("b", "2025-01-20")]
        provider = FakeProvider([batch_response([]), batch_response([])])
        sleeps = []

        self._run(expenses, provider, settings, sleeps=sleeps)

        assert sleeps == [1.5]

    def test_merchant_context_is_shared_across_batches(self, settings):
        expenses = [
            make_expense("a", "2025-01-01", details="Uber"),
            make_expense("b", "2025-03-01", details="Swiggy"),
            make_expense("c", "2025-03-02", details="Swiggy"),
        ]
        provider = FakeProvider([batch_response([]), batch_response([])])

        self._run(expenses, provider, settings)

        first, second = (_merchant_section(c["prompt"]) for c in provider.calls)
        assert first == second
        assert '"swiggy" (2x)' in first
        assert '"uber" (1x)' in first

    def test_prompt_never_contains_private_fields(self, settings):
        expense = make_expense("a", "2025-01-01", original_prompt="paid my landlord secretly")
        expense.paid_by = "Partner"
        provider = FakeProvider([batch_response([])])

        self._run([expense], provider, settings)

        prompt = provider.calls[0]["prompt"]
        assert "landlord" not in prompt
        assert "Partner" not in prompt
        assert "paid_by" not in prompt

    def test_credentials_and_timeout_passed_to_provider(self, settings):
        provider = FakeProvider([batch_response([])])

        self._run([make_expense("a", "2025-01-01")], provider, settings)

        assert provider.calls[0]["api_key"] == "test-key"
        assert provider.calls[0]["timeout"] == 15.0

    def test_conservative_mode_ignores_new_subcategories(self, settings):
        provider = FakeProvider([batch_response([], ["Late Night"])])

        result = self._run([make_expense("a", "2025-01-01")], provider, settings)

        assert result.new_subcategories == []

    def test_deep_mode_collects_new_subcategories_once(self, settings):
        expenses = [make_expense("a", "2025-01-01"), make_expense("b", "2025-02-01")]
        provider = FakeProvider(
            [
                batch_response([], ["Late Night", "Pets"]),
                batch_response([], ["Pets"]),
            ]
        )

        result = self._run(expenses, provider, settings, mode="deep")

        assert result.new_subcategories == ["Late Night", "Pets"]
        assert "DEEP" in provider.calls[0]["prompt"]
