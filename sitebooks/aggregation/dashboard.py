"""
Dashboard Aggregator

Fetches the four record sets and hands them to compute_summaries.

GUARANTEE: summaries are computed from all four sources or not at all.
If any fetch fails (or returns a row we can't parse), the refresh raises
AggregationError and the previous summary stays as it was.
"""

from typing import Optional, Type, TypeVar

import structlog

from sitebooks.aggregation.summaries import DEFAULT_CASH_LABEL, compute_summaries
from sitebooks.models.records import BankAccount, Credit, Expense, Site, StoredRecord
from sitebooks.models.summaries import DashboardSummary
from sitebooks.services.storage import (
    BANK_ACCOUNTS,
    CREDITS,
    EXPENSES,
    SITES,
    StorageError,
    TableStoreInterface,
)


logger = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT", bound=StoredRecord)


class AggregationError(Exception):
    """One of the dashboard sources could not be loaded."""

    def __init__(self, source: str, cause: Exception):
        self.source = source
        self.cause = cause
        super().__init__(f"Could not load {source}: {cause}")


class DashboardAggregator:
    """
    Loads sites, expenses, credits and bank accounts and summarizes them.

    Keeps the last successful summary in `latest`.
    """

    def __init__(
        self,
        store: TableStoreInterface,
        cash_label: str = DEFAULT_CASH_LABEL,
    ):
        self._store = store
        self._cash_label = cash_label
        self._latest: Optional[DashboardSummary] = None

    @property
    def latest(self) -> Optional[DashboardSummary]:
        """The last summary that was computed successfully, if any."""
        return self._latest

    async def _fetch(self, table: str, model: Type[RecordT]) -> list[RecordT]:
        try:
            rows = await self._store.select(table)
            return [model.from_row(row) for row in rows]
        except (StorageError, ValueError) as e:
            logger.warning("dashboard_source_failed", source=table, error=str(e))
            raise AggregationError(table, e) from e

    async def refresh(self) -> DashboardSummary:
        """
        Re-fetch every source and recompute both tables.

        Sources are fetched one after another; the first failure aborts.

        Raises:
            AggregationError: If any source fails to load
        """
        sites = await self._fetch(SITES, Site)
        expenses = await self._fetch(EXPENSES, Expense)
        credits = await self._fetch(CREDITS, Credit)
        bank_accounts = await self._fetch(BANK_ACCOUNTS, BankAccount)

        summary = compute_summaries(
            sites,
            expenses,
            credits,
            bank_accounts,
            cash_label=self._cash_label,
        )
        self._latest = summary
        return summary
