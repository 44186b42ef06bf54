"""
Main Orchestrator for Site Books

This module ties the components together and defines the user-facing flows:
1. Dashboard (fetch four sources -> summarize -> show or report failure)
2. Transfers (validate -> record/delete -> re-fetch the history)

DESIGN DECISION: The orchestrator enforces the boundaries:
- A mutation finishes (success or failure) before the listing is re-fetched
- Every failure becomes a distinct, user-visible ActionResult
- Only administrators are offered deletion
- Every step is audited

Nothing here retries automatically; the user decides whether to try again.
"""

import datetime as dt
from typing import Any, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from sitebooks.aggregation import AggregationError, DashboardAggregator
from sitebooks.audit import AuditLogger, configure_logging, create_correlation_id
from sitebooks.config import get_settings
from sitebooks.models.ledger import FundTransfer, TransferView
from sitebooks.models.records import BankAccount, UserContext
from sitebooks.models.summaries import DashboardSummary
from sitebooks.services import SessionService
from sitebooks.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTableStore,
    InMemoryAuditStorage,
    InMemoryTableStore,
    PermissionDeniedError,
    StorageError,
)
from sitebooks.transfers import (
    ConsistencyError,
    TransferError,
    TransferLedgerManager,
    TransferNotFoundError,
    TransferValidationError,
)


logger = structlog.get_logger(__name__)


class ActionResult(BaseModel):
    """
    Outcome of one user action, ready to be shown as a notification.

    success is False for every kind of failure; error_kind tells them apart
    (validation, permission, not_found, store, consistency).
    """

    success: bool
    title: str
    message: str
    error_kind: Optional[str] = None
    issues: list[str] = Field(default_factory=list)
    transfer: Optional[FundTransfer] = None

    # State re-fetched after the action
    transfers: list[TransferView] = Field(default_factory=list)
    bank_accounts: list[BankAccount] = Field(default_factory=list)
    listing_error: Optional[str] = None


def _failure(error: Exception) -> ActionResult:
    """Map an exception from the ledger or store onto a user-facing result."""
    if isinstance(error, TransferValidationError):
        return ActionResult(
            success=False,
            title="Invalid Transfer",
            message=str(error),
            error_kind="validation",
            issues=error.issues,
        )
    if isinstance(error, PermissionDeniedError):
        return ActionResult(
            success=False,
            title="Permission Denied",
            message="You don't have permission to do this.",
            error_kind="permission",
            issues=[str(error)],
        )
    if isinstance(error, TransferNotFoundError):
        return ActionResult(
            success=False,
            title="Not Found",
            message="This transfer no longer exists.",
            error_kind="not_found",
        )
    if isinstance(error, ConsistencyError):
        return ActionResult(
            success=False,
            title="Balances Need Attention",
            message=(
                "The operation failed part way and could not be fully undone. "
                "Please check the account balances before continuing."
            ),
            error_kind="consistency",
            issues=[str(error)],
        )
    return ActionResult(
        success=False,
        title="Error",
        message=str(error),
        error_kind="store",
    )


class DashboardFlow:
    """
    Orchestrates the dashboard load.

    On failure the last good summary (if any) is returned untouched,
    alongside an error message.
    """

    def __init__(
        self,
        aggregator: DashboardAggregator,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._aggregator = aggregator
        self._audit_logger = audit_logger

    async def load(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Optional[DashboardSummary], bool, str]:
        """
        Refresh the dashboard.

        Returns:
            (summary, ok, message)

        If ok is False, summary is the previous successful one (or None).
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            summary = await self._aggregator.refresh()
        except AggregationError as e:
            if self._audit_logger:
                await self._audit_logger.log_dashboard_failed(
                    source=e.source,
                    error_message=str(e.cause),
                    correlation_id=correlation_id,
                )
            return self._aggregator.latest, False, f"Error fetching dashboard data: {e}"

        if self._audit_logger:
            await self._audit_logger.log_dashboard_refreshed(
                site_count=len(summary.site_summaries),
                account_count=len(summary.account_summaries),
                correlation_id=correlation_id,
            )
        return summary, True, "Dashboard up to date"


class TransferFlow:
    """
    Orchestrates the fund transfer page.

    Flow:
    1. Load → accounts for the form, transfer history
    2. Submit → validate locally, then record through the ledger
    3. Delete → admins only, reverse balances, remove the row
    4. After 2 or 3 → re-fetch the history
    """

    def __init__(
        self,
        ledger: TransferLedgerManager,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._ledger = ledger
        self._audit_logger = audit_logger

    async def _audit_failure(self, error: Exception, correlation_id: Optional[UUID]) -> None:
        if not self._audit_logger:
            return
        if isinstance(error, ConsistencyError):
            await self._audit_logger.log_error(
                error_type="consistency",
                error_message=str(error),
                details={
                    "transfer_id": str(error.transfer_id),
                    "failed_steps": error.failed_steps,
                },
                correlation_id=correlation_id,
            )
        elif isinstance(error, StorageError):
            await self._audit_logger.log_external_service_error(
                service="table_store",
                error_message=str(error),
                correlation_id=correlation_id,
            )

    async def _with_listing(
        self,
        result: ActionResult,
        correlation_id: Optional[UUID] = None,
    ) -> ActionResult:
        try:
            result.bank_accounts = await self._ledger.list_bank_accounts()
            result.transfers = await self._ledger.list_transfers()
        except StorageError as e:
            logger.warning("transfer_listing_failed", error=str(e))
            await self._audit_failure(e, correlation_id)
            result.listing_error = str(e)
        return result

    async def load(self, correlation_id: Optional[UUID] = None) -> ActionResult:
        """Fetch bank accounts and the transfer history."""
        try:
            bank_accounts = await self._ledger.list_bank_accounts()
            transfers = await self._ledger.list_transfers()
        except StorageError as e:
            await self._audit_failure(e, correlation_id)
            return _failure(e)
        return ActionResult(
            success=True,
            title="Loaded",
            message=f"{len(transfers)} transfers",
            transfers=transfers,
            bank_accounts=bank_accounts,
        )

    async def submit_transfer(
        self,
        context: Optional[UserContext],
        from_account_id: Any,
        to_account_id: Any,
        amount: Any,
        date: Optional[dt.date] = None,
        description: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ActionResult:
        """
        Record a fund transfer from form input.

        Validation failures return before any store call.
        """
        correlation_id = correlation_id or create_correlation_id()

        fields: dict[str, Any] = {
            "from_account_id": from_account_id,
            "to_account_id": to_account_id,
            "amount": amount,
            "description": description,
        }
        if date is not None:
            fields["date"] = date

        try:
            request = self._ledger.build_request(**fields)
            if context is None:
                raise TransferValidationError("Not authenticated")
        except TransferValidationError as e:
            if self._audit_logger:
                await self._audit_logger.log_transfer_rejected(
                    reason=str(e),
                    correlation_id=correlation_id,
                )
            return _failure(e)

        try:
            transfer = await self._ledger.create_transfer(request, context, correlation_id)
        except (StorageError, TransferError) as e:
            if self._audit_logger:
                await self._audit_logger.log_transfer_failed(
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            if isinstance(e, ConsistencyError):
                await self._audit_failure(e, correlation_id)
            return await self._with_listing(_failure(e), correlation_id)

        result = ActionResult(
            success=True,
            title="Success",
            message="Fund transfer recorded successfully",
            transfer=transfer,
        )
        return await self._with_listing(result, correlation_id)

    async def delete_transfer(
        self,
        context: Optional[UserContext],
        transfer_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> ActionResult:
        """
        Delete a transfer and revert the account balances.

        Only administrators are offered this action.
        """
        correlation_id = correlation_id or create_correlation_id()

        if context is None or not context.can_delete_transfers:
            if self._audit_logger and context is not None:
                await self._audit_logger.log_transfer_delete_denied(
                    transfer_id=transfer_id,
                    user_id=context.user_id,
                    correlation_id=correlation_id,
                )
            return ActionResult(
                success=False,
                title="Permission Denied",
                message="Only administrators can delete fund transfers.",
                error_kind="permission",
            )

        try:
            transfer = await self._ledger.delete_transfer(transfer_id, correlation_id)
        except (StorageError, TransferError) as e:
            if self._audit_logger:
                await self._audit_logger.log_transfer_delete_failed(
                    transfer_id=transfer_id,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            if isinstance(e, ConsistencyError):
                await self._audit_failure(e, correlation_id)
            return await self._with_listing(_failure(e), correlation_id)

        result = ActionResult(
            success=True,
            title="Success",
            message="Fund transfer deleted successfully",
            transfer=transfer,
        )
        return await self._with_listing(result, correlation_id)


def create_app_components(
    use_storage: bool = True,
) -> tuple[DashboardFlow, TransferFlow, SessionService, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use the configured storage backend.
                    Set to False to run entirely in memory.

    Returns:
        (dashboard_flow, transfer_flow, session_service, sheets_client)
    """
    app_settings = get_settings().app
    configure_logging(app_settings.effective_log_level)

    sheets_client = None
    if use_storage and app_settings.storage_backend == "google_sheets":
        sheets_client = GoogleSheetsClient()
        store = GoogleSheetsTableStore(sheets_client)
        audit_storage = GoogleSheetsAuditStorage(sheets_client)
    else:
        store = InMemoryTableStore()
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)

    dashboard_flow = DashboardFlow(
        aggregator=DashboardAggregator(store, cash_label=app_settings.cash_account_label),
        audit_logger=audit_logger,
    )
    transfer_flow = TransferFlow(
        ledger=TransferLedgerManager(store, audit_logger=audit_logger),
        audit_logger=audit_logger,
    )
    session_service = SessionService(store)

    logger.info(
        "components_created",
        storage_backend="google_sheets" if sheets_client else "memory",
        environment=app_settings.app_environment,
    )
    return dashboard_flow, transfer_flow, session_service, sheets_client
