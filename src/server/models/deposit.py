"""Pydantic models for cash deposit endpoints."""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from src.tracker.models import Deposit, DepositType, present_money


class DepositCreate(BaseModel):
    """Request schema for recording a deposit or withdrawal.

    Attributes:
        amount: Positive cash amount
        deposit_date: Date of the movement (not in the future)
        deposit_type: "DEPOSIT" or "WITHDRAWAL"
        notes: Free text
    """

    amount: Decimal = Field(..., description="Cash amount (positive)")
    deposit_date: date = Field(..., description="Date (YYYY-MM-DD)")
    deposit_type: str = Field(default="DEPOSIT", description="DEPOSIT or WITHDRAWAL")
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("deposit_type")
    @classmethod
    def validate_deposit_type(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in [t.value for t in DepositType]:
            raise ValueError('deposit_type must be "DEPOSIT" or "WITHDRAWAL"')
        return v

    def to_deposit(self) -> Deposit:
        """Build the domain record (runs the domain validation)."""
        return Deposit(
            amount=self.amount,
            deposit_date=self.deposit_date,
            deposit_type=DepositType(self.deposit_type),
            notes=self.notes,
        )

    model_config = {
        "json_schema_extra": {
            "example": {
                "amount": 10000.0,
                "deposit_date": "2026-01-02",
                "deposit_type": "DEPOSIT",
            }
        }
    }


class DepositResponse(BaseModel):
    """A recorded deposit or withdrawal."""

    id: str
    amount: float
    deposit_type: str = Field(..., alias="depositType")
    deposit_date: date = Field(..., alias="depositDate")
    notes: Optional[str] = None

    model_config = {"populate_by_name": True}

    @classmethod
    def from_deposit(cls, deposit: Deposit) -> "DepositResponse":
        return cls(
            id=deposit.id,
            amount=present_money(deposit.amount),
            deposit_type=deposit.deposit_type.value,
            deposit_date=deposit.deposit_date,
            notes=deposit.notes,
        )
