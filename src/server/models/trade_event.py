"""Pydantic models for trade event and position endpoints.

Requests use snake_case fields. Responses are serialized with camelCase
aliases and money as cents-rounded numbers.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from src.tracker.models import Position, TradeEvent, present_money
from src.tracker.pnl import premium_pl as net_premium
from src.tracker.rolls import RollResult
from src.tracker.state import EventType


class TradeEventCreate(BaseModel):
    """Request schema for appending a trade event.

    Omitting ``position_id`` opens a new position, which requires a
    SELL_TO_OPEN_PUT. ``event_id`` makes resubmission idempotent.

    Attributes:
        ticker: Stock ticker (1-5 letters)
        event_type: EventType value
        strike: Strike, or share price for ASSIGNMENT / CALLED_AWAY
        contracts: Number of contracts (100 shares each)
        occurred_at: Trade date (not in the future)
        premium_per_contract: Option price per share; required for option legs
        expiration_date: Option expiration
        notes: Free text
        event_id: Client-generated id for idempotent retries
        position_id: Existing position to append to
        expected_version: Version the client last read
    """

    ticker: str = Field(..., description="Stock ticker")
    event_type: str = Field(..., description="Event type, e.g. SELL_TO_OPEN_PUT")
    strike: Decimal = Field(..., description="Strike or share price")
    contracts: int = Field(..., description="Number of contracts")
    occurred_at: date = Field(..., description="Trade date (YYYY-MM-DD)")
    premium_per_contract: Decimal = Field(
        default=Decimal("0"), description="Option premium per share"
    )
    expiration_date: Optional[date] = Field(default=None, description="Option expiration")
    notes: Optional[str] = Field(default=None, max_length=500)
    event_id: Optional[str] = Field(default=None, max_length=64)
    position_id: Optional[str] = Field(default=None)
    expected_version: Optional[int] = Field(default=None, ge=0)

    @field_validator("event_type")
    @classmethod
    def validate_event_type(cls, v: str) -> str:
        """Accept any case; reject unknown event types."""
        v = v.strip().upper()
        valid = [t.value for t in EventType]
        if v not in valid:
            raise ValueError(f"event_type must be one of: {', '.join(valid)}")
        return v

    def to_event(self) -> TradeEvent:
        """Build the domain event (runs the domain validation)."""
        kwargs = {}
        if self.event_id:
            kwargs["id"] = self.event_id
        return TradeEvent(
            ticker=self.ticker,
            event_type=EventType(self.event_type),
            strike=self.strike,
            contracts=self.contracts,
            occurred_at=self.occurred_at,
            premium_per_contract=self.premium_per_contract,
            expiration_date=self.expiration_date,
            notes=self.notes,
            **kwargs,
        )

    model_config = {
        "json_schema_extra": {
            "example": {
                "ticker": "AAPL",
                "event_type": "SELL_TO_OPEN_PUT",
                "strike": 150.0,
                "contracts": 1,
                "occurred_at": "2026-01-05",
                "premium_per_contract": 2.0,
                "expiration_date": "2026-01-16",
            }
        }
    }


class TradeEventResponse(BaseModel):
    """A recorded trade event."""

    id: str
    position_id: Optional[str] = Field(default=None, alias="positionId")
    ticker: str
    event_type: str = Field(..., alias="eventType")
    strike: float
    contracts: int
    premium_per_contract: float = Field(..., alias="premiumPerContract")
    cash_flow: float = Field(..., alias="cashFlow")
    occurred_at: date = Field(..., alias="occurredAt")
    expiration_date: Optional[date] = Field(default=None, alias="expirationDate")
    notes: Optional[str] = None

    model_config = {"populate_by_name": True}

    @classmethod
    def from_event(cls, event: TradeEvent) -> "TradeEventResponse":
        return cls(
            id=event.id,
            position_id=event.position_id,
            ticker=event.ticker,
            event_type=event.event_type.value,
            strike=present_money(event.strike),
            contracts=event.contracts,
            premium_per_contract=float(event.premium_per_contract),
            cash_flow=present_money(event.cash_flow),
            occurred_at=event.occurred_at,
            expiration_date=event.expiration_date,
            notes=event.notes,
        )


class PositionResponse(BaseModel):
    """Position snapshot, optionally with its events."""

    id: str
    ticker: str
    status: str
    version: int
    shares_held: int = Field(..., alias="sharesHeld")
    cost_basis_per_share: Optional[float] = Field(default=None, alias="costBasisPerShare")
    premium_collected: float = Field(..., alias="premiumCollected")
    premium_pl: float = Field(..., alias="premiumPL")
    realized_pl: float = Field(..., alias="realizedPL")
    open_contracts: int = Field(..., alias="openContracts")
    call_expirations: int = Field(default=0, alias="callExpirations")
    opened_at: date = Field(..., alias="openedAt")
    last_event_at: date = Field(..., alias="lastEventAt")
    closed_at: Optional[date] = Field(default=None, alias="closedAt")
    events: Optional[list[TradeEventResponse]] = None

    model_config = {"populate_by_name": True}

    @classmethod
    def from_position(cls, position: Position, include_events: bool = False) -> "PositionResponse":
        return cls(
            id=position.id,
            ticker=position.ticker,
            status=position.reporting_status.value,
            version=position.version,
            shares_held=position.shares_held,
            cost_basis_per_share=present_money(position.cost_basis_per_share),
            premium_collected=present_money(position.premium_collected),
            premium_pl=present_money(net_premium(position.events)),
            realized_pl=present_money(position.realized_pl),
            open_contracts=position.open_contracts,
            call_expirations=position.call_expirations,
            opened_at=position.opened_at,
            last_event_at=position.last_event_at,
            closed_at=position.closed_at,
            events=(
                [TradeEventResponse.from_event(e) for e in position.events]
                if include_events else None
            ),
        )


class PositionListResponse(BaseModel):
    """List of positions."""

    positions: list[PositionResponse]
    total: int


class RollCreate(BaseModel):
    """Request schema for rolling a position's open put or call.

    Attributes:
        new_strike: Strike of the new leg
        new_expiration_date: Expiration of the new leg
        close_premium: Price per share paid to buy back the open leg
        open_premium: Price per share received for the new leg
        occurred_at: Trade date of both legs (default today)
        expected_version: Version the client last read
        notes: Free text
    """

    new_strike: Decimal = Field(..., description="Strike of the new leg")
    new_expiration_date: date = Field(..., description="Expiration of the new leg")
    close_premium: Decimal = Field(..., description="Buyback price per share")
    open_premium: Decimal = Field(..., description="New leg price per share")
    occurred_at: Optional[date] = Field(default=None, description="Trade date")
    expected_version: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = Field(default=None, max_length=500)

    model_config = {
        "json_schema_extra": {
            "example": {
                "new_strike": 155.0,
                "new_expiration_date": "2026-02-20",
                "close_premium": 1.0,
                "open_premium": 1.8,
                "expected_version": 3,
            }
        }
    }


class RollResponse(BaseModel):
    """Result of a roll: the position holding the new leg and the net credit."""

    position: PositionResponse
    rolled_from: Optional[PositionResponse] = Field(default=None, alias="rolledFrom")
    close_event_id: str = Field(..., alias="closeEventId")
    open_event_id: str = Field(..., alias="openEventId")
    net_premium: float = Field(..., alias="netPremium")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_result(cls, result: RollResult) -> "RollResponse":
        return cls(
            position=PositionResponse.from_position(result.position, include_events=True),
            rolled_from=(
                PositionResponse.from_position(result.rolled_from)
                if result.rolled_from is not None else None
            ),
            close_event_id=result.close_event.id,
            open_event_id=result.open_event.id,
            net_premium=present_money(result.net_premium),
        )
