"""
Shared fixtures.

No real API calls in tests: everything runs against the in-memory store,
optionally wrapped to fail specific calls.
"""

from dataclasses import dataclass
from typing import Callable, Optional
from uuid import UUID, uuid4

import pytest

from sitebooks.audit import AuditLogger
from sitebooks.models.records import UserContext, UserRole
from sitebooks.services.storage import (
    BANK_ACCOUNTS,
    PROFILES,
    SITES,
    InMemoryAuditStorage,
    InMemoryTableStore,
    StorageError,
)
from sitebooks.transfers import TransferLedgerManager


@dataclass
class FailureRule:
    op: str
    table: str
    error: Exception
    when: Optional[Callable[[dict], bool]] = None
    remaining: int = 1


class FlakyStore(InMemoryTableStore):
    """In-memory store that raises on chosen calls and records every call."""

    def __init__(self, tables=None):
        super().__init__(tables)
        self.rules: list[FailureRule] = []
        self.calls: list[tuple[str, str]] = []

    def fail(self, op, table, error=None, when=None, times=1):
        self.rules.append(FailureRule(
            op=op,
            table=table,
            error=error or StorageError(f"{op} on {table} failed"),
            when=when,
            remaining=times,
        ))

    @property
    def writes(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if call[0] in ("insert", "update", "delete")]

    def _check(self, op: str, table: str, **kwargs) -> None:
        self.calls.append((op, table))
        for rule in self.rules:
            if rule.remaining <= 0 or rule.op != op or rule.table != table:
                continue
            if rule.when is not None and not rule.when(kwargs):
                continue
            rule.remaining -= 1
            raise rule.error

    async def select(self, table, filters=None, order_by=None, descending=False):
        self._check("select", table)
        return await super().select(table, filters, order_by, descending)

    async def get(self, table, row_id):
        self._check("get", table, row_id=str(row_id))
        return await super().get(table, row_id)

    async def insert(self, table, row):
        self._check("insert", table, row=row)
        return await super().insert(table, row)

    async def update(self, table, row_id, changes, expected=None):
        self._check("update", table, row_id=str(row_id), changes=changes)
        return await super().update(table, row_id, changes, expected)

    async def delete(self, table, row_id):
        self._check("delete", table, row_id=str(row_id))
        return await super().delete(table, row_id)


@pytest.fixture
def bank_a_id() -> UUID:
    return uuid4()


@pytest.fixture
def bank_b_id() -> UUID:
    return uuid4()


@pytest.fixture
def admin_id() -> UUID:
    return uuid4()


@pytest.fixture
def admin(admin_id) -> UserContext:
    return UserContext(user_id=admin_id, role=UserRole.ADMIN)


@pytest.fixture
def staff() -> UserContext:
    return UserContext(user_id=uuid4(), role=UserRole.USER)


@pytest.fixture
def store(bank_a_id, bank_b_id, admin_id) -> FlakyStore:
    """Bank-A holds 1000, Bank-B holds 500."""
    return FlakyStore({
        BANK_ACCOUNTS: [
            {"id": str(bank_a_id), "account_name": "Bank-A", "balance": "1000.00"},
            {"id": str(bank_b_id), "account_name": "Bank-B", "balance": "500.00"},
        ],
        SITES: [],
        PROFILES: [
            {"id": str(admin_id), "role": "admin"},
        ],
    })


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def ledger(store, audit_logger) -> TransferLedgerManager:
    return TransferLedgerManager(store, audit_logger=audit_logger)
