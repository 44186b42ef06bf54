"""Fund transfer ledger package."""

from sitebooks.transfers.ledger import (
    AccountNotFoundError,
    ConsistencyError,
    TransferError,
    TransferLedgerManager,
    TransferNotFoundError,
    TransferValidationError,
)

__all__ = [
    "AccountNotFoundError",
    "ConsistencyError",
    "TransferError",
    "TransferLedgerManager",
    "TransferNotFoundError",
    "TransferValidationError",
]
