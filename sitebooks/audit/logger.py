"""
Audit Logger

DESIGN DECISION: Every balance-affecting action in the system is logged.
This provides:
1. Complete traceability of transfers and their reversals
2. Evidence of every compensation attempt after a partial failure
3. Debugging capability

The audit logger:
- Is async to match the storage layer
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from sitebooks.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from sitebooks.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog's JSON lines to stderr at the given level."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and office visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("sitebooks.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transfer_created(
        self,
        transfer_id: UUID,
        from_account_id: UUID,
        to_account_id: UUID,
        amount: str,
        created_by: UUID,
        correlation_id: UUID,
    ) -> None:
        """Log a recorded transfer."""
        event = AuditEventBuilder.transfer_created(
            transfer_id=transfer_id,
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            amount=amount,
            created_by=created_by,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transfer_rejected(
        self,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        """Log a transfer refused by validation."""
        event = AuditEventBuilder.transfer_rejected(
            reason=reason,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transfer_failed(
        self,
        error_message: str,
        correlation_id: UUID,
        transfer_id: Optional[UUID] = None,
    ) -> None:
        """Log a transfer the store did not accept."""
        event = AuditEventBuilder.transfer_failed(
            error_message=error_message,
            correlation_id=correlation_id,
            transfer_id=transfer_id,
        )
        await self.log(event)

    async def log_transfer_deleted(
        self,
        transfer_id: UUID,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        """Log a deleted transfer."""
        event = AuditEventBuilder.transfer_deleted(
            transfer_id=transfer_id,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transfer_delete_failed(
        self,
        transfer_id: UUID,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a failed delete."""
        event = AuditEventBuilder.transfer_delete_failed(
            transfer_id=transfer_id,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transfer_delete_denied(
        self,
        transfer_id: UUID,
        user_id: UUID,
        correlation_id: UUID,
    ) -> None:
        """Log a delete attempt by a non-admin."""
        event = AuditEventBuilder.transfer_delete_denied(
            transfer_id=transfer_id,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_balance_adjusted(
        self,
        account_id: UUID,
        delta: str,
        new_balance: str,
        correlation_id: Optional[UUID],
    ) -> None:
        """Log one balance write."""
        event = AuditEventBuilder.balance_adjusted(
            account_id=account_id,
            delta=delta,
            new_balance=new_balance,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_compensation_applied(
        self,
        transfer_id: UUID,
        step: str,
        correlation_id: Optional[UUID],
    ) -> None:
        """Log a successful inverse write."""
        event = AuditEventBuilder.compensation_applied(
            transfer_id=transfer_id,
            step=step,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_compensation_failed(
        self,
        transfer_id: UUID,
        step: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> None:
        """Log an inverse write that did not go through."""
        event = AuditEventBuilder.compensation_failed(
            transfer_id=transfer_id,
            step=step,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_dashboard_refreshed(
        self,
        site_count: int,
        account_count: int,
        correlation_id: UUID,
    ) -> None:
        """Log a computed dashboard."""
        event = AuditEventBuilder.dashboard_refreshed(
            site_count=site_count,
            account_count=account_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_dashboard_failed(
        self,
        source: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log an aborted dashboard refresh."""
        event = AuditEventBuilder.dashboard_failed(
            source=source,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., submitting a transfer).
    Pass it through all subsequent operations.
    """
    return uuid4()
