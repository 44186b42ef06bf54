"""
Dashboard Summary Models

Results of reducing the flat expense/credit records into the two dashboard
tables. Row balances are derived for display and are not stored fields.
"""

import datetime as dt
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from sitebooks.models.records import ZERO


class SiteSummary(BaseModel):
    """Money received and spent on one site."""

    site_id: UUID
    site_name: str
    received: Decimal = ZERO
    expense: Decimal = ZERO

    @property
    def balance(self) -> Decimal:
        return self.received - self.expense


class AccountSummary(BaseModel):
    """
    Credits and expenses that went through one account.

    account_id is None for the synthetic cash row.
    """

    account_id: Optional[UUID] = None
    account_name: str
    credit: Decimal = ZERO
    expense: Decimal = ZERO

    @property
    def is_cash(self) -> bool:
        return self.account_id is None

    @property
    def balance(self) -> Decimal:
        return self.credit - self.expense


class SiteTotals(BaseModel):
    """TOTAL row of the site-wise table."""

    received: Decimal = ZERO
    expense: Decimal = ZERO

    @property
    def balance(self) -> Decimal:
        # Recomputed from the column totals, not summed from row balances
        return self.received - self.expense


class AccountTotals(BaseModel):
    """TOTAL row of the account-wise table."""

    credit: Decimal = ZERO
    expense: Decimal = ZERO

    @property
    def balance(self) -> Decimal:
        return self.credit - self.expense


class DashboardSummary(BaseModel):
    """Both dashboard tables, computed together from one consistent fetch."""

    site_summaries: list[SiteSummary] = Field(default_factory=list)
    account_summaries: list[AccountSummary] = Field(default_factory=list)
    site_totals: SiteTotals = Field(default_factory=SiteTotals)
    account_totals: AccountTotals = Field(default_factory=AccountTotals)
    generated_at: dt.datetime = Field(default_factory=dt.datetime.utcnow)
