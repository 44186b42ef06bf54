"""
Fund Transfer Ledger

DESIGN DECISION: A transfer touches three rows - the ledger entry and two
bank-account balances - and the store has no multi-row transactions. We run
each create/delete as a saga:

CREATE:  insert ledger row -> debit source -> credit destination
DELETE:  credit source -> debit destination -> remove ledger row

Each completed step registers its inverse. If a later step fails, the
inverses run newest-first and the original error is re-raised. If an
inverse fails too, ConsistencyError is raised naming every step that
could not be undone. Nothing is swallowed.

Balance writes are compare-and-swap: the balance is read, the new value
computed, and the write only lands if the row still holds what was read.

Two more guarantees:
- Invalid requests (same account on both sides, non-positive amount)
  are rejected before any store call.
- A transfer is removed only after its balance effect has been reversed.
  If the reversal fails, the ledger row stays.

Role checks are NOT done here; the store's authorization layer refuses
what the user may not do and that refusal surfaces as PermissionDeniedError.
"""

import datetime as dt
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

import structlog
from pydantic import ValidationError

from sitebooks.audit import AuditLogger, create_correlation_id
from sitebooks.models.ledger import AccountSnapshot, FundTransfer, TransferRequest, TransferView
from sitebooks.models.records import BankAccount, UserContext
from sitebooks.services.storage import (
    BANK_ACCOUNTS,
    FUND_TRANSFERS,
    StorageError,
    TableStoreInterface,
)


logger = structlog.get_logger(__name__)


class TransferError(Exception):
    """Base exception for ledger operations."""
    pass


class TransferValidationError(TransferError, ValueError):
    """The request was rejected before touching the store."""

    def __init__(self, message: str, issues: Optional[list[str]] = None):
        self.issues = issues or [message]
        super().__init__(message)


class TransferNotFoundError(TransferError):
    """No active transfer with this id."""

    def __init__(self, transfer_id: UUID):
        self.transfer_id = transfer_id
        super().__init__(f"Fund transfer not found: {transfer_id}")


class AccountNotFoundError(TransferError):
    """A transfer references a bank account that doesn't exist."""

    def __init__(self, account_id: UUID):
        self.account_id = account_id
        super().__init__(f"Bank account not found: {account_id}")


class ConsistencyError(TransferError):
    """
    A step failed and at least one compensating write failed as well.

    The ledger and balances may disagree until someone repairs them by hand;
    failed_steps says exactly what was left applied.
    """

    def __init__(self, transfer_id: UUID, original: Exception, failed_steps: list[str]):
        self.transfer_id = transfer_id
        self.original = original
        self.failed_steps = failed_steps
        super().__init__(
            f"Transfer {transfer_id} left inconsistent after '{original}': "
            f"could not {', '.join(failed_steps)}"
        )


def _naive_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(dt.timezone.utc).replace(tzinfo=None)


def _describe_validation_error(error: ValidationError) -> list[str]:
    issues = []
    for item in error.errors():
        message = item["msg"].removeprefix("Value error, ")
        field = ".".join(str(part) for part in item["loc"])
        issues.append(f"{field}: {message}" if field else message)
    return issues


class _Compensations:
    """Inverse writes for the steps of one saga, undone newest-first."""

    def __init__(
        self,
        transfer_id: UUID,
        audit_logger: Optional[AuditLogger],
        correlation_id: UUID,
    ):
        self._transfer_id = transfer_id
        self._audit_logger = audit_logger
        self._correlation_id = correlation_id
        self._steps: list[tuple[str, Callable[[], Awaitable[Any]]]] = []

    def push(self, step: str, undo: Callable[[], Awaitable[Any]]) -> None:
        self._steps.append((step, undo))

    async def unwind(self, original: Exception) -> None:
        """
        Run every registered inverse.

        Raises:
            ConsistencyError: If any inverse fails
        """
        failed = []
        for step, undo in reversed(self._steps):
            try:
                await undo()
            except Exception as e:
                failed.append(step)
                logger.error(
                    "compensation_failed",
                    transfer_id=str(self._transfer_id),
                    step=step,
                    error=str(e),
                )
                if self._audit_logger:
                    await self._audit_logger.log_compensation_failed(
                        transfer_id=self._transfer_id,
                        step=step,
                        error_message=str(e),
                        correlation_id=self._correlation_id,
                    )
                continue

            if self._audit_logger:
                await self._audit_logger.log_compensation_applied(
                    transfer_id=self._transfer_id,
                    step=step,
                    correlation_id=self._correlation_id,
                )
        self._steps.clear()

        if failed:
            raise ConsistencyError(self._transfer_id, original, failed) from original


class TransferLedgerManager:
    """
    Creates, lists and deletes fund transfers.

    Issues one store call at a time; each public method runs to completion
    (success or failure) before returning.
    """

    def __init__(
        self,
        store: TableStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    @staticmethod
    def build_request(**fields: Any) -> TransferRequest:
        """
        Validate raw form input into a TransferRequest.

        Raises:
            TransferValidationError: With one issue per bad field
        """
        try:
            return TransferRequest(**fields)
        except ValidationError as e:
            issues = _describe_validation_error(e)
            raise TransferValidationError("; ".join(issues), issues) from e

    # -------------------------------------------------------------------------
    # Balance writes
    # -------------------------------------------------------------------------

    async def _adjust_balance(
        self,
        account_id: UUID,
        delta: Decimal,
        correlation_id: Optional[UUID],
    ) -> Decimal:
        """Add delta to an account's stored balance (compare-and-swap)."""
        row = await self._store.get(BANK_ACCOUNTS, account_id)
        if row is None:
            raise AccountNotFoundError(account_id)
        account = BankAccount.from_row(row)
        new_balance = account.balance + delta

        await self._store.update(
            BANK_ACCOUNTS,
            account_id,
            {"balance": str(new_balance)},
            expected={"balance": row.get("balance")},
        )

        if self._audit_logger:
            await self._audit_logger.log_balance_adjusted(
                account_id=account_id,
                delta=str(delta),
                new_balance=str(new_balance),
                correlation_id=correlation_id,
            )
        return new_balance

    async def _remove_row(self, transfer_id: UUID) -> None:
        # Already gone counts as removed
        await self._store.delete(FUND_TRANSFERS, transfer_id)

    async def _require_account(self, account_id: UUID) -> None:
        if await self._store.get(BANK_ACCOUNTS, account_id) is None:
            raise AccountNotFoundError(account_id)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def create_transfer(
        self,
        request: TransferRequest,
        context: Optional[UserContext],
        correlation_id: Optional[UUID] = None,
    ) -> FundTransfer:
        """
        Record a transfer and move its amount between the two balances.

        Raises:
            TransferValidationError: No user, or same account on both sides
            AccountNotFoundError: An account doesn't exist (nothing written)
            StorageError: A write failed and was fully compensated
            ConsistencyError: A write failed and compensation failed too
        """
        if context is None:
            raise TransferValidationError("Not authenticated")
        if request.from_account_id == request.to_account_id:
            raise TransferValidationError("Source and destination accounts must be different")

        correlation_id = correlation_id or create_correlation_id()

        await self._require_account(request.from_account_id)
        await self._require_account(request.to_account_id)

        transfer = FundTransfer.from_request(request, created_by=context.user_id)
        saga = _Compensations(transfer.id, self._audit_logger, correlation_id)

        try:
            await self._store.insert(FUND_TRANSFERS, transfer.to_row())
            saga.push(
                "remove ledger row",
                lambda: self._remove_row(transfer.id),
            )

            await self._adjust_balance(transfer.from_account_id, -transfer.amount, correlation_id)
            saga.push(
                "restore source balance",
                lambda: self._adjust_balance(transfer.from_account_id, transfer.amount, correlation_id),
            )

            await self._adjust_balance(transfer.to_account_id, transfer.amount, correlation_id)
        except Exception as e:
            logger.warning("transfer_create_failed", transfer_id=str(transfer.id), error=str(e))
            await saga.unwind(e)
            raise

        logger.info(
            "transfer_created",
            transfer_id=str(transfer.id),
            amount=str(transfer.amount),
        )
        if self._audit_logger:
            await self._audit_logger.log_transfer_created(
                transfer_id=transfer.id,
                from_account_id=transfer.from_account_id,
                to_account_id=transfer.to_account_id,
                amount=str(transfer.amount),
                created_by=transfer.created_by,
                correlation_id=correlation_id,
            )
        return transfer

    async def delete_transfer(
        self,
        transfer_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> FundTransfer:
        """
        Reverse a transfer's balance effect, then remove its ledger row.

        Deleting an already-deleted transfer raises TransferNotFoundError
        and changes no balance.

        Raises:
            TransferNotFoundError: No such active transfer
            StorageError: A write failed (incl. permission denied) and was
                          fully compensated; the transfer is still active
            ConsistencyError: A write failed and compensation failed too
        """
        correlation_id = correlation_id or create_correlation_id()

        row = await self._store.get(FUND_TRANSFERS, transfer_id)
        if row is None:
            raise TransferNotFoundError(transfer_id)
        try:
            transfer = FundTransfer.from_row(row)
        except ValueError as e:
            raise StorageError(f"Malformed fund transfer row {transfer_id}: {e}") from e

        saga = _Compensations(transfer.id, self._audit_logger, correlation_id)

        try:
            await self._adjust_balance(transfer.from_account_id, transfer.amount, correlation_id)
            saga.push(
                "debit source again",
                lambda: self._adjust_balance(transfer.from_account_id, -transfer.amount, correlation_id),
            )

            await self._adjust_balance(transfer.to_account_id, -transfer.amount, correlation_id)
            saga.push(
                "credit destination again",
                lambda: self._adjust_balance(transfer.to_account_id, transfer.amount, correlation_id),
            )

            if not await self._store.delete(FUND_TRANSFERS, transfer.id):
                # Removed by someone else while we were reversing
                raise TransferNotFoundError(transfer.id)
        except Exception as e:
            logger.warning("transfer_delete_failed", transfer_id=str(transfer.id), error=str(e))
            await saga.unwind(e)
            raise

        logger.info("transfer_deleted", transfer_id=str(transfer.id), amount=str(transfer.amount))
        if self._audit_logger:
            await self._audit_logger.log_transfer_deleted(
                transfer_id=transfer.id,
                amount=str(transfer.amount),
                correlation_id=correlation_id,
            )
        return transfer

    async def list_bank_accounts(self) -> list[BankAccount]:
        """Bank accounts ordered by name, as offered in the transfer form."""
        rows = await self._store.select(BANK_ACCOUNTS)
        try:
            accounts = [BankAccount.from_row(row) for row in rows]
        except ValueError as e:
            raise StorageError(f"Malformed bank account row: {e}") from e
        accounts.sort(key=lambda a: a.account_name.lower())
        return accounts

    async def list_transfers(self) -> list[TransferView]:
        """
        All active transfers with snapshots of their accounts.

        Newest date first; same-date transfers newest-created first.
        """
        transfer_rows = await self._store.select(FUND_TRANSFERS)
        accounts = {account.id: account for account in await self.list_bank_accounts()}
        try:
            transfers = [FundTransfer.from_row(row) for row in transfer_rows]
        except ValueError as e:
            raise StorageError(f"Malformed fund transfer row: {e}") from e

        transfers.sort(
            key=lambda t: (t.date, _naive_utc(t.created_at), str(t.id)),
            reverse=True,
        )

        def snapshot(account_id: UUID) -> Optional[AccountSnapshot]:
            account = accounts.get(account_id)
            if account is None:
                return None
            return AccountSnapshot(
                id=account.id,
                account_name=account.account_name,
                balance=account.balance,
            )

        return [
            TransferView(
                transfer=t,
                from_account=snapshot(t.from_account_id),
                to_account=snapshot(t.to_account_id),
            )
            for t in transfers
        ]
