"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the production backend; the in-memory backend serves tests
and local development.
"""

from sitebooks.services.storage.interface import (
    BANK_ACCOUNTS,
    CREDITS,
    EXPENSES,
    FUND_TRANSFERS,
    PROFILES,
    SITES,
    TABLES,
    AuditStorageInterface,
    ConflictError,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    TableStoreInterface,
)
from sitebooks.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryTableStore,
)
from sitebooks.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTableStore,
)

__all__ = [
    # Tables
    "BANK_ACCOUNTS",
    "CREDITS",
    "EXPENSES",
    "FUND_TRANSFERS",
    "PROFILES",
    "SITES",
    "TABLES",
    # Interfaces
    "AuditStorageInterface",
    "TableStoreInterface",
    # Exceptions
    "ConflictError",
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "PermissionDeniedError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryTableStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTableStore",
]
