"""Services package."""

from sitebooks.services.session import SessionService
from sitebooks.services.storage import (
    AuditStorageInterface,
    ConflictError,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTableStore,
    InMemoryAuditStorage,
    InMemoryTableStore,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    TableStoreInterface,
)

__all__ = [
    # Session
    "SessionService",
    # Storage services
    "AuditStorageInterface",
    "ConflictError",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTableStore",
    "InMemoryAuditStorage",
    "InMemoryTableStore",
    "NotFoundError",
    "PermissionDeniedError",
    "StorageError",
    "TableStoreInterface",
]
