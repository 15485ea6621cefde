import pytest
from datetime import date
from decimal import Decimal

from tools.reports import filter_expenses, summarize_month, total_amount
from tests.helpers import make_expense


@pytest.fixture
def expenses():
    shared = make_expense("e3", "2025-03-10", details="Groceries", category="Food", amount="80.00")
    shared.paid_by = "Asha"
    return [
        make_expense("e1", "2025-03-12", details="Uber to airport", category="Transport",
                     amount="45.50"),
        make_expense("e2", "2025-03-11", details="Netflix", category="Entertainment",
                     amount="15.00"),
        shared,
    ]


class TestFilterExpenses:
    """Tests for filter_expenses."""

    def test_no_filters_returns_everything(self, expenses):
        assert filter_expenses(expenses) == expenses

    def test_search_is_case_insensitive_over_details(self, expenses):
        assert [e.id for e in filter_expenses(expenses, search="UBER")] == ["e1"]

    def test_search_matches_category_and_payer(self, expenses):
        """Test that search also looks at category and paid_by."""
        assert [e.id for e in filter_expenses(expenses, search="entertain")] == ["e2"]
        assert [e.id for e in filter_expenses(expenses, search="asha")] == ["e3"]

    def test_category_and_date(self, expenses):
        assert [e.id for e in filter_expenses(expenses, category="Food")] == ["e3"]
        assert [e.id for e in filter_expenses(expenses, on_date=date(2025, 3, 11))] == ["e2"]

    def test_filters_combine(self, expenses):
        result = filter_expenses(expenses, search="uber", category="Food")

        assert result == []


class TestTotalAmount:
    """Tests for total_amount."""

    def test_sums_amounts(self, expenses):
        assert total_amount(expenses) == Decimal("140.50")

    def test_empty(self):
        assert total_amount([]) == Decimal("0")


class TestSummarizeMonth:
    """Tests for summarize_month."""

    @pytest.fixture
    def ledger(self):
        return [
            make_expense("apr", "2025-04-01", category="Food", amount="500.00"),
            make_expense("m1", "2025-03-12", category="Transport", amount="50.00"),
            make_expense("m2", "2025-03-10", category="Food", amount="100.00"),
            make_expense("m3", "2025-03-06", category="Other", amount="20.00"),
            make_expense("m4", "2025-03-03", category="Food", amount="30.00"),
            make_expense("f1", "2025-02-10", category="Other", amount="160.00"),
        ]

    def test_month_against_last_month(self, ledger):
        """Test this month's total, count and change against last month."""
        summary = summarize_month(ledger, today=date(2025, 3, 12))

        assert summary.month == date(2025, 3, 1)
        assert summary.total == Decimal("200.00")
        assert summary.count == 4
        assert summary.last_month_total == Decimal("160.00")
        assert summary.month_change_pct == pytest.approx(25.0)

    def test_top_category(self, ledger):
        summary = summarize_month(ledger, today=date(2025, 3, 12))

        assert summary.top_category == ("Food", Decimal("130.00"))

    def test_week_to_date_against_same_days_last_week(self, ledger):
        """Test that Monday to today is compared with the same weekdays a week earlier."""
        summary = summarize_month(ledger, today=date(2025, 3, 12))

        assert summary.week_total == Decimal("150.00")
        assert summary.last_week_total == Decimal("30.00")
        assert summary.week_change_pct == pytest.approx(400.0)

    def test_empty_last_month_has_no_change(self):
        summary = summarize_month(
            [make_expense("m1", "2025-03-02", amount="10.00")], today=date(2025, 3, 12)
        )

        assert summary.month_change_pct is None
        assert summary.week_change_pct is None

    def test_january_compares_with_december(self):
        ledger = [
            make_expense("j1", "2025-01-05", amount="90.00"),
            make_expense("d1", "2024-12-20", amount="120.00"),
        ]

        summary = summarize_month(ledger, today=date(2025, 1, 15))

        assert summary.last_month_total == Decimal("120.00")
        assert summary.month_change_pct == pytest.approx(-25.0)

    def test_empty_ledger(self):
        summary = summarize_month([], today=date(2025, 3, 12))

        assert summary.total == Decimal("0")
        assert summary.count == 0
        assert summary.top_category is None
