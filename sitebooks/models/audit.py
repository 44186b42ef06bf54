"""
Audit Models for Site Books

Every balance-affecting action in the system is logged for audit purposes.
This provides:
1. Complete traceability of every transfer and its reversal
2. A record of compensations when a multi-step write fails half way
3. Debugging information when the store misbehaves

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Fund transfers
    TRANSFER_CREATED = "transfer_created"
    TRANSFER_REJECTED = "transfer_rejected"
    TRANSFER_FAILED = "transfer_failed"
    TRANSFER_DELETED = "transfer_deleted"
    TRANSFER_DELETE_FAILED = "transfer_delete_failed"
    TRANSFER_DELETE_DENIED = "transfer_delete_denied"

    # Balance bookkeeping
    BALANCE_ADJUSTED = "balance_adjusted"
    COMPENSATION_APPLIED = "compensation_applied"
    COMPENSATION_FAILED = "compensation_failed"

    # Dashboard
    DASHBOARD_REFRESHED = "dashboard_refreshed"
    DASHBOARD_FAILED = "dashboard_failed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transfer', 'bank_account', 'dashboard')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all writes of one transfer)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Columns follow AUDIT_COLUMNS.
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]

    @classmethod
    def from_sheets_row(cls, row: list) -> 'AuditEvent':
        """Inverse of to_sheets_row. Missing trailing cells read as empty."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return cls(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transfer_created(transfer, correlation_id)
        event = AuditEventBuilder.compensation_failed(transfer_id, "restore source", error, correlation_id)
    """

    @staticmethod
    def transfer_created(
        transfer_id: UUID,
        from_account_id: UUID,
        to_account_id: UUID,
        amount: str,
        created_by: UUID,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_CREATED,
            entity_type="transfer",
            entity_id=transfer_id,
            correlation_id=correlation_id,
            description=f"Fund transfer recorded: ₹{amount}",
            details={
                "from_account_id": str(from_account_id),
                "to_account_id": str(to_account_id),
                "amount": amount,
                "created_by": str(created_by),
            },
            is_user_action=True,
        )

    @staticmethod
    def transfer_rejected(
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transfer",
            correlation_id=correlation_id,
            description="Fund transfer rejected by validation",
            details={"reason": reason},
            is_user_action=True,
        )

    @staticmethod
    def transfer_failed(
        error_message: str,
        correlation_id: UUID,
        transfer_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="transfer",
            entity_id=transfer_id,
            correlation_id=correlation_id,
            description="Fund transfer could not be recorded",
            error_message=error_message,
        )

    @staticmethod
    def transfer_deleted(
        transfer_id: UUID,
        amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_DELETED,
            entity_type="transfer",
            entity_id=transfer_id,
            correlation_id=correlation_id,
            description=f"Fund transfer deleted and balances reverted: ₹{amount}",
            details={"amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def transfer_delete_failed(
        transfer_id: UUID,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_DELETE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="transfer",
            entity_id=transfer_id,
            correlation_id=correlation_id,
            description="Fund transfer could not be deleted",
            error_message=error_message,
        )

    @staticmethod
    def transfer_delete_denied(
        transfer_id: UUID,
        user_id: UUID,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_DELETE_DENIED,
            severity=AuditSeverity.WARNING,
            entity_type="transfer",
            entity_id=transfer_id,
            correlation_id=correlation_id,
            description="Non-admin user attempted to delete a fund transfer",
            details={"user_id": str(user_id)},
            is_user_action=True,
        )

    @staticmethod
    def balance_adjusted(
        account_id: UUID,
        delta: str,
        new_balance: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_ADJUSTED,
            severity=AuditSeverity.DEBUG,
            entity_type="bank_account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Balance adjusted by {delta}",
            details={"delta": delta, "new_balance": new_balance},
        )

    @staticmethod
    def compensation_applied(
        transfer_id: UUID,
        step: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMPENSATION_APPLIED,
            severity=AuditSeverity.WARNING,
            entity_type="transfer",
            entity_id=transfer_id,
            correlation_id=correlation_id,
            description=f"Compensated: {step}",
            details={"step": step},
        )

    @staticmethod
    def compensation_failed(
        transfer_id: UUID,
        step: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMPENSATION_FAILED,
            severity=AuditSeverity.CRITICAL,
            entity_type="transfer",
            entity_id=transfer_id,
            correlation_id=correlation_id,
            description=f"Compensation failed: {step}",
            error_message=error_message,
            details={"step": step},
        )

    @staticmethod
    def dashboard_refreshed(
        site_count: int,
        account_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DASHBOARD_REFRESHED,
            entity_type="dashboard",
            correlation_id=correlation_id,
            description=f"Dashboard computed for {site_count} sites and {account_count} accounts",
            details={
                "site_count": site_count,
                "account_count": account_count,
            },
        )

    @staticmethod
    def dashboard_failed(
        source: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DASHBOARD_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="dashboard",
            correlation_id=correlation_id,
            description=f"Dashboard not computed: failed to load {source}",
            error_message=error_message,
            details={"source": source},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
