"""
Data Models Package

This package contains all Pydantic models used in Site Books.
All data flowing through the system must conform to these schemas.
"""

from sitebooks.models.records import (
    Amount,
    BankAccount,
    Credit,
    Expense,
    LedgerRecord,
    PaymentMethod,
    PositiveAmount,
    Site,
    StoredRecord,
    UserContext,
    UserRole,
)
from sitebooks.models.ledger import (
    AccountSnapshot,
    FundTransfer,
    TransferRequest,
    TransferView,
)
from sitebooks.models.summaries import (
    AccountSummary,
    AccountTotals,
    DashboardSummary,
    SiteSummary,
    SiteTotals,
)
from sitebooks.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record models
    "Amount",
    "BankAccount",
    "Credit",
    "Expense",
    "LedgerRecord",
    "PaymentMethod",
    "PositiveAmount",
    "Site",
    "StoredRecord",
    "UserContext",
    "UserRole",
    # Ledger models
    "AccountSnapshot",
    "FundTransfer",
    "TransferRequest",
    "TransferView",
    # Summary models
    "AccountSummary",
    "AccountTotals",
    "DashboardSummary",
    "SiteSummary",
    "SiteTotals",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
