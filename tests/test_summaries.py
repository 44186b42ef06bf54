"""Tests for the dashboard aggregation functions."""

import pytest
from decimal import Decimal
from uuid import uuid4

from sitebooks.aggregation import compute_summaries
from sitebooks.models.records import BankAccount, Credit, Expense, PaymentMethod, Site


def cash(model, amount, site_id=None, bank_account_id=None):
    return model(
        amount=Decimal(amount),
        payment_method=PaymentMethod.CASH,
        site_id=site_id,
        bank_account_id=bank_account_id,
    )


def bank(model, amount, bank_account_id, site_id=None):
    return model(
        amount=Decimal(amount),
        payment_method=PaymentMethod.BANK_TRANSFER,
        site_id=site_id,
        bank_account_id=bank_account_id,
    )


@pytest.fixture
def site1():
    return Site(id=uuid4(), site_name="Site1")


@pytest.fixture
def site2():
    return Site(id=uuid4(), site_name="Site2")


@pytest.fixture
def bank_a():
    return BankAccount(id=uuid4(), account_name="Bank-A", balance=Decimal("1000"))


@pytest.fixture
def bank_b():
    return BankAccount(id=uuid4(), account_name="Bank-B", balance=Decimal("500"))


class TestSiteSummary:
    """Site-wise table."""

    def test_site_scenario(self, site1, site2):
        """Test credits [1000, 500] and expenses [300] on one site, nothing on another."""
        credits = [cash(Credit, "1000", site1.id), cash(Credit, "500", site1.id)]
        expenses = [cash(Expense, "300", site1.id)]

        summary = compute_summaries([site1, site2], expenses, credits, [])

        first, second = summary.site_summaries
        assert first.site_name == "Site1"
        assert (first.received, first.expense, first.balance) == (
            Decimal("1500"), Decimal("300"), Decimal("1200"),
        )
        assert second.site_name == "Site2"
        assert (second.received, second.expense, second.balance) == (0, 0, 0)

    def test_rows_follow_input_order(self, site1, site2):
        """Test site rows keep the order the sites came in."""
        summary = compute_summaries([site2, site1], [], [], [])
        assert [s.site_name for s in summary.site_summaries] == ["Site2", "Site1"]

    def test_records_without_site_are_not_attributed(self, site1):
        """Test site-less postings don't land on any site."""
        expenses = [cash(Expense, "50"), cash(Expense, "20", site1.id)]
        summary = compute_summaries([site1], expenses, [], [])
        assert summary.site_summaries[0].expense == Decimal("20")

    def test_site_expense_sum_matches_attributed_total(self, site1, site2, bank_a):
        """Test the site column sums to the total of site-attributed expenses."""
        expenses = [
            cash(Expense, "10.10", site1.id),
            bank(Expense, "20.20", bank_a.id, site2.id),
            cash(Expense, "30.30", site1.id),
            cash(Expense, "99.99"),
        ]
        summary = compute_summaries([site1, site2], expenses, [], [bank_a])
        attributed = sum(e.amount for e in expenses if e.site_id is not None)
        assert sum(s.expense for s in summary.site_summaries) == attributed
        assert summary.site_totals.expense == attributed

    def test_many_small_amounts_do_not_drift(self, site1):
        """Test ten thousand 0.10 credits sum to exactly 1000."""
        credits = [cash(Credit, "0.10", site1.id) for _ in range(10_000)]
        summary = compute_summaries([site1], [], credits, [])
        assert summary.site_summaries[0].received == Decimal("1000.00")


class TestAccountSummary:
    """Account-wise table."""

    def test_cash_row_comes_first(self, bank_a, bank_b):
        """Test the synthetic cash row leads, then one row per bank."""
        summary = compute_summaries([], [], [], [bank_a, bank_b])
        names = [a.account_name for a in summary.account_summaries]
        assert names == ["Cash", "Bank-A", "Bank-B"]
        assert summary.account_summaries[0].is_cash

    def test_cash_label_is_configurable(self):
        """Test the cash row label can be changed."""
        summary = compute_summaries([], [], [], [], cash_label="Petty Cash")
        assert summary.account_summaries[0].account_name == "Petty Cash"

    def test_cash_ignores_bank_reference(self, bank_a):
        """Test a cash record carrying a bank id still counts as cash only."""
        expenses = [cash(Expense, "75", bank_account_id=bank_a.id)]
        summary = compute_summaries([], expenses, [], [bank_a])
        cash_row, bank_row = summary.account_summaries
        assert cash_row.expense == Decimal("75")
        assert bank_row.expense == Decimal("0")

    def test_bank_rows_match_on_account(self, bank_a, bank_b):
        """Test bank transfers are summed per referenced account."""
        expenses = [bank(Expense, "100", bank_a.id), bank(Expense, "40", bank_b.id)]
        credits = [bank(Credit, "500", bank_a.id), cash(Credit, "60")]
        summary = compute_summaries([], expenses, credits, [bank_a, bank_b])

        cash_row, a_row, b_row = summary.account_summaries
        assert (cash_row.credit, cash_row.expense) == (Decimal("60"), Decimal("0"))
        assert (a_row.credit, a_row.expense, a_row.balance) == (
            Decimal("500"), Decimal("100"), Decimal("400"),
        )
        assert (b_row.credit, b_row.expense, b_row.balance) == (
            Decimal("0"), Decimal("40"), Decimal("-40"),
        )

    def test_conservation(self, site1, bank_a, bank_b):
        """Test every credit and expense lands in exactly one account row."""
        expenses = [
            cash(Expense, "12.34", site1.id),
            bank(Expense, "56.78", bank_a.id),
            bank(Expense, "9.10", bank_b.id, site1.id),
        ]
        credits = [
            cash(Credit, "1000"),
            bank(Credit, "250.25", bank_b.id),
        ]
        summary = compute_summaries([site1], expenses, credits, [bank_a, bank_b])

        rows = summary.account_summaries
        assert sum(r.credit for r in rows) + sum(r.expense for r in rows) == (
            sum(c.amount for c in credits) + sum(e.amount for e in expenses)
        )

    def test_account_totals(self, bank_a):
        """Test the TOTAL row sums the columns and recomputes balance."""
        expenses = [cash(Expense, "30"), bank(Expense, "20", bank_a.id)]
        credits = [cash(Credit, "100"), bank(Credit, "5", bank_a.id)]
        summary = compute_summaries([], expenses, credits, [bank_a])

        totals = summary.account_totals
        assert totals.credit == Decimal("105")
        assert totals.expense == Decimal("50")
        assert totals.balance == Decimal("55")
        assert totals.balance == sum(r.balance for r in summary.account_summaries)


class TestEmptyInputs:
    """Edge cases with no records."""

    def test_everything_empty(self):
        """Test no data still yields the cash row and zero totals."""
        summary = compute_summaries([], [], [], [])
        assert summary.site_summaries == []
        assert len(summary.account_summaries) == 1
        assert summary.site_totals.balance == Decimal("0")
        assert summary.account_totals.balance == Decimal("0")

    def test_rows_emitted_without_records(self, site1, bank_a):
        """Test sites and accounts without records are not suppressed."""
        summary = compute_summaries([site1], [], [], [bank_a])
        assert len(summary.site_summaries) == 1
        assert len(summary.account_summaries) == 2
        assert all(r.credit == 0 and r.expense == 0 for r in summary.account_summaries)

    def test_inputs_are_not_modified(self, site1):
        """Test the function is pure."""
        credits = [cash(Credit, "1", site1.id)]
        before = [c.model_dump() for c in credits]
        compute_summaries([site1], [], credits, [])
        assert [c.model_dump() for c in credits] == before
