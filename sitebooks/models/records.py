"""
Core Record Models for Site Books

These models define the schemas of the rows this system reads from the
table store: sites, bank accounts, expenses and credits, plus the acting
user's profile.

DESIGN DECISION: Every currency amount is a Decimal with at most two
decimal places. Floats coming back from a store are converted through
their string form so 0.1 stays 0.1. Values with more precision are
rejected, never rounded.
"""

import datetime as dt
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Optional
from uuid import UUID

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    model_validator,
)


CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def _to_decimal(value: Any) -> Any:
    # Binary floats are routed through str to keep the literal digits
    if isinstance(value, float):
        return Decimal(str(value))
    return value


def _to_cents(value: Decimal) -> Decimal:
    if not value.is_finite():
        raise ValueError("Amount must be a finite number")
    try:
        cents = value.quantize(CENT)
    except InvalidOperation:
        # More digits than the decimal context can hold at cent precision
        raise ValueError("Amount is out of range")
    if cents != value:
        raise ValueError("Amounts are limited to two decimal places")
    return cents


Amount = Annotated[Decimal, BeforeValidator(_to_decimal), AfterValidator(_to_cents)]
PositiveAmount = Annotated[Amount, Field(gt=0)]


# =============================================================================
# ENUMS
# =============================================================================

class PaymentMethod(str, Enum):
    """How an expense or credit was paid."""
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"


class UserRole(str, Enum):
    """
    Roles stored on user profiles.

    Only administrators may delete fund transfers.
    """
    ADMIN = "admin"
    USER = "user"


# =============================================================================
# STORED RECORDS
# =============================================================================

class StoredRecord(BaseModel):
    """Base for rows read from and written to the table store."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    @classmethod
    def from_row(cls, row: dict):
        return cls.model_validate(row)

    def to_row(self) -> dict:
        """JSON-mode dict: ids, decimals and dates become strings."""
        return self.model_dump(mode="json")


class Site(StoredRecord):
    """A construction project/location."""

    id: UUID
    site_name: str = Field(..., min_length=1, max_length=200)


class BankAccount(StoredRecord):
    """
    A bank account with its stored running balance.

    The balance is a cached aggregate. Within this system it only
    changes through fund-transfer create/delete.
    """

    id: UUID
    account_name: str = Field(..., min_length=1, max_length=200)
    balance: Amount = Field(default=ZERO)


class LedgerRecord(StoredRecord):
    """
    Common shape of expenses and credits.

    Cash postings may carry no site. Bank transfers must name
    the bank account they went through.
    """

    id: Optional[UUID] = None
    site_id: Optional[UUID] = None
    amount: PositiveAmount
    payment_method: PaymentMethod
    bank_account_id: Optional[UUID] = None
    date: Optional[dt.date] = None
    description: Optional[str] = Field(default=None, max_length=1000)

    @model_validator(mode='after')
    def validate_bank_reference(self) -> 'LedgerRecord':
        if self.payment_method == PaymentMethod.BANK_TRANSFER and self.bank_account_id is None:
            raise ValueError("Bank transfers must reference a bank account")
        return self


class Expense(LedgerRecord):
    """An outgoing payment."""


class Credit(LedgerRecord):
    """An incoming payment."""


# =============================================================================
# SESSION
# =============================================================================

class UserContext(BaseModel):
    """
    The acting user, passed explicitly into operations that need it.

    Used to stamp created_by on transfers and to gate admin-only actions.
    """

    user_id: UUID
    role: Optional[UserRole] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def can_delete_transfers(self) -> bool:
        return self.is_admin
