"""
Abstract Storage Interface

DESIGN DECISION: The backing store is a remote tabular service that exposes
row-level select / insert / update / delete. We define an abstract interface
for it so that:
1. Google Sheets can be swapped for a real database later
2. In-memory storage can be used for testing and local development
3. Aggregation and ledger logic stay decoupled from the backend

The interface is intentionally simple - we're not building a full ORM.
Rows are plain dicts in JSON form (ids, amounts and dates as strings);
the models in sitebooks.models parse and produce them.

Balance updates rely on update(..., expected=...), a compare-and-swap:
the write only happens if the row still holds the expected values. This is
how concurrent transfers against the same account avoid lost updates.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional
from uuid import UUID

from sitebooks.models.audit import AuditEvent


# Logical table names
SITES = "sites"
EXPENSES = "expenses"
CREDITS = "credits"
BANK_ACCOUNTS = "bank_accounts"
FUND_TRANSFERS = "fund_transfers"
PROFILES = "profiles"

TABLES = (SITES, EXPENSES, CREDITS, BANK_ACCOUNTS, FUND_TRANSFERS, PROFILES)


class TableStoreInterface(ABC):
    """
    Abstract interface for the row-based backing store.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods. Every row has a string "id" column.
    """

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[dict]:
        """
        Read rows from a table.

        Args:
            table: Logical table name
            filters: Column equality filters (values compared as strings)
            order_by: Column to sort by; insertion order if None
            descending: Reverse the sort

        Returns:
            Matching rows as dicts

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def get(self, table: str, row_id: UUID) -> Optional[dict]:
        """
        Read one row by id.

        Returns:
            The row if found, None otherwise
        """
        pass

    @abstractmethod
    async def insert(self, table: str, row: dict) -> dict:
        """
        Insert a row.

        Returns:
            The stored row

        Raises:
            DuplicateError: If a row with the same id exists
            PermissionDeniedError: If the store refuses the write
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update(
        self,
        table: str,
        row_id: UUID,
        changes: dict,
        expected: Optional[dict] = None,
    ) -> dict:
        """
        Update columns of one row.

        Args:
            table: Logical table name
            row_id: Row to update
            changes: Column values to write
            expected: If given, the current row must hold exactly these
                      column values or nothing is written

        Returns:
            The row after the update

        Raises:
            NotFoundError: If the row doesn't exist
            ConflictError: If expected values don't match
            PermissionDeniedError: If the store refuses the write
        """
        pass

    @abstractmethod
    async def delete(self, table: str, row_id: UUID) -> bool:
        """
        Delete a row by id.

        Returns:
            True if a row was deleted, False if it didn't exist

        Raises:
            PermissionDeniedError: If the store refuses the delete
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one transfer submission).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


def normalize_value(value: Any) -> str:
    """Compare and store cell values the way a sheet holds them: as strings."""
    if value is None:
        return ""
    return str(value)


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConflictError(StorageError):
    """Row changed since it was read; compare-and-swap refused the write."""
    pass


class PermissionDeniedError(StorageError):
    """The store's authorization layer refused the operation."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
