"""
Fund Transfer Models

A fund transfer moves money between two bank accounts. The ledger row and
the two account balances must always agree:

    create:  source -= amount, destination += amount
    delete:  source += amount, destination -= amount

Transfers are never edited. A wrong transfer is deleted (which reverses its
balance effect) and recorded again.
"""

import datetime as dt
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from sitebooks.models.records import Amount, PositiveAmount, StoredRecord


class TransferRequest(BaseModel):
    """
    What the user submits to record a transfer.

    Validated entirely client-side before anything touches the store.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    from_account_id: UUID
    to_account_id: UUID
    amount: PositiveAmount
    date: dt.date = Field(default_factory=dt.date.today)
    description: Optional[str] = Field(default=None, max_length=1000)

    @field_validator('description')
    @classmethod
    def blank_description_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @model_validator(mode='after')
    def validate_distinct_accounts(self) -> 'TransferRequest':
        if self.from_account_id == self.to_account_id:
            raise ValueError("Source and destination accounts must be different")
        return self


class FundTransfer(StoredRecord):
    """A ledger row in the fund_transfers table."""

    # The id is generated before the insert and doubles as the
    # idempotency key: re-inserting the same transfer is a DuplicateError.
    id: UUID = Field(default_factory=uuid4)
    from_account_id: UUID
    to_account_id: UUID
    amount: PositiveAmount
    date: dt.date
    description: Optional[str] = None
    created_by: UUID
    created_at: dt.datetime = Field(default_factory=dt.datetime.utcnow)

    @model_validator(mode='after')
    def validate_distinct_accounts(self) -> 'FundTransfer':
        if self.from_account_id == self.to_account_id:
            raise ValueError("Source and destination accounts must be different")
        return self

    @classmethod
    def from_request(cls, request: TransferRequest, created_by: UUID) -> 'FundTransfer':
        return cls(
            from_account_id=request.from_account_id,
            to_account_id=request.to_account_id,
            amount=request.amount,
            date=request.date,
            description=request.description,
            created_by=created_by,
        )


class AccountSnapshot(BaseModel):
    """Name and balance of an account as of the last listing."""

    id: UUID
    account_name: str
    balance: Amount


class TransferView(BaseModel):
    """A transfer joined with its two accounts, for the transfer history."""

    transfer: FundTransfer
    from_account: Optional[AccountSnapshot] = None
    to_account: Optional[AccountSnapshot] = None

    @property
    def from_account_name(self) -> str:
        return self.from_account.account_name if self.from_account else ""

    @property
    def to_account_name(self) -> str:
        return self.to_account.account_name if self.to_account else ""
