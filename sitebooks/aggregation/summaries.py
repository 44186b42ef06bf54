"""
Dashboard Aggregation

Reduces the flat expense and credit records into the two dashboard tables:

SITE-WISE: one row per site, in the order the sites were given.
    received = sum of credits attributed to the site
    expense  = sum of expenses attributed to the site
    balance  = received - expense

ACCOUNT-WISE: a synthetic "Cash" row first, then one row per bank account.
    Cash collects every cash record, whatever bank reference it carries.
    A bank row collects bank_transfer records that reference that account.

Sites and accounts without records still get a row, with zeros.
Everything is summed as Decimal so many small postings don't drift.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Callable, Iterable, Optional, Sequence
from uuid import UUID

from sitebooks.models.records import (
    ZERO,
    BankAccount,
    Credit,
    Expense,
    LedgerRecord,
    PaymentMethod,
    Site,
)
from sitebooks.models.summaries import (
    AccountSummary,
    AccountTotals,
    DashboardSummary,
    SiteSummary,
    SiteTotals,
)


DEFAULT_CASH_LABEL = "Cash"


def _sum_by(
    records: Iterable[LedgerRecord],
    key: Callable[[LedgerRecord], Optional[UUID]],
) -> dict[UUID, Decimal]:
    """Sum amounts per key; records whose key is None are skipped."""
    totals: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
    for record in records:
        group = key(record)
        if group is not None:
            totals[group] += record.amount
    return totals


def _bank_key(record: LedgerRecord) -> Optional[UUID]:
    if record.payment_method != PaymentMethod.BANK_TRANSFER:
        return None
    return record.bank_account_id


def _cash_total(records: Iterable[LedgerRecord]) -> Decimal:
    return sum(
        (r.amount for r in records if r.payment_method == PaymentMethod.CASH),
        ZERO,
    )


def summarize_sites(
    sites: Sequence[Site],
    expenses: Sequence[Expense],
    credits: Sequence[Credit],
) -> list[SiteSummary]:
    """Site-wise table, one row per site in input order."""
    spent = _sum_by(expenses, lambda r: r.site_id)
    received = _sum_by(credits, lambda r: r.site_id)

    rows = []
    for site in sites:
        rows.append(SiteSummary(
            site_id=site.id,
            site_name=site.site_name,
            received=received.get(site.id, ZERO),
            expense=spent.get(site.id, ZERO),
        ))
    return rows


def summarize_accounts(
    expenses: Sequence[Expense],
    credits: Sequence[Credit],
    bank_accounts: Sequence[BankAccount],
    cash_label: str = DEFAULT_CASH_LABEL,
) -> list[AccountSummary]:
    """Account-wise table: the cash row, then one row per bank account."""
    rows = [AccountSummary(
        account_id=None,
        account_name=cash_label,
        credit=_cash_total(credits),
        expense=_cash_total(expenses),
    )]

    spent = _sum_by(expenses, _bank_key)
    received = _sum_by(credits, _bank_key)
    for account in bank_accounts:
        rows.append(AccountSummary(
            account_id=account.id,
            account_name=account.account_name,
            credit=received.get(account.id, ZERO),
            expense=spent.get(account.id, ZERO),
        ))
    return rows


def site_totals(rows: Sequence[SiteSummary]) -> SiteTotals:
    return SiteTotals(
        received=sum((r.received for r in rows), ZERO),
        expense=sum((r.expense for r in rows), ZERO),
    )


def account_totals(rows: Sequence[AccountSummary]) -> AccountTotals:
    return AccountTotals(
        credit=sum((r.credit for r in rows), ZERO),
        expense=sum((r.expense for r in rows), ZERO),
    )


def compute_summaries(
    sites: Sequence[Site],
    expenses: Sequence[Expense],
    credits: Sequence[Credit],
    bank_accounts: Sequence[BankAccount],
    cash_label: str = DEFAULT_CASH_LABEL,
) -> DashboardSummary:
    """
    Build both dashboard tables and their TOTAL rows.

    Pure function: no I/O, inputs are not modified.
    """
    site_rows = summarize_sites(sites, expenses, credits)
    account_rows = summarize_accounts(expenses, credits, bank_accounts, cash_label)
    return DashboardSummary(
        site_summaries=site_rows,
        account_summaries=account_rows,
        site_totals=site_totals(site_rows),
        account_totals=account_totals(account_rows),
    )
