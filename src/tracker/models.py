"""Data models for wheel positions, trade events and cash deposits.

Money is carried as ``Decimal`` end to end. Values are only rounded to
cents by ``round_money`` when they leave the core for presentation.
"""

import math
import re
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Union

from .exceptions import ValidationError
from .state import HOLDING_STATES, OPEN_STATES, TERMINAL_STATES, EventType, PositionStatus

SHARES_PER_CONTRACT = 100
ZERO = Decimal("0")
CENT = Decimal("0.01")

_TICKER_RE = re.compile(r"^[A-Z]{1,5}$")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number, field_name: str = "value") -> Decimal:
    """
    Convert a number to Decimal without binary float artifacts.

    Floats go through ``str`` so that 1.2 becomes Decimal("1.2") rather than
    Decimal(1.1999999999999999555910790149937...).

    Raises:
        ValidationError: If the value is not a finite number.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number", field=field_name)
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise ValidationError(f"{field_name} must be finite", field=field_name)
        result = Decimal(str(value))
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise ValidationError(f"{field_name} must be a number", field=field_name) from e
    if not result.is_finite():
        raise ValidationError(f"{field_name} must be finite", field=field_name)
    return result


def round_money(value: Optional[Decimal]) -> Optional[Decimal]:
    """Round to cents, half up. None passes through (unavailable values)."""
    if value is None:
        return None
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def normalize_ticker(ticker: str) -> str:
    """Uppercase and validate a ticker symbol."""
    if not ticker or not isinstance(ticker, str):
        raise ValidationError("Ticker is required", field="ticker")
    normalized = ticker.strip().upper()
    if not _TICKER_RE.match(normalized):
        raise ValidationError(
            "Ticker must be 1-5 letters", field="ticker"
        )
    return normalized


def _check_not_future(value: date, field_name: str) -> None:
    if value > date.today():
        raise ValidationError(f"{field_name} cannot be in the future", field=field_name)


@dataclass(frozen=True)
class TradeEvent:
    """
    Immutable record of one trade event against a position.

    ``premium_per_contract`` is the quoted option price per share; the cash
    flow of a leg is ``premium_per_contract * contracts * 100``. For
    ASSIGNMENT and CALLED_AWAY the ``strike`` is the share price of the
    purchase or sale.
    """

    ticker: str
    event_type: EventType
    strike: Decimal
    contracts: int
    occurred_at: date
    premium_per_contract: Decimal = ZERO
    position_id: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    expiration_date: Optional[date] = None
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        """Normalize and validate fields."""
        object.__setattr__(self, "ticker", normalize_ticker(self.ticker))

        if not isinstance(self.event_type, EventType):
            try:
                object.__setattr__(self, "event_type", EventType(self.event_type))
            except ValueError as e:
                valid = [t.value for t in EventType]
                raise ValidationError(
                    f"Invalid event type '{self.event_type}'. Valid: {valid}",
                    field="event_type",
                ) from e

        strike = to_decimal(self.strike, "strike")
        if strike <= 0:
            raise ValidationError("strike must be positive", field="strike")
        object.__setattr__(self, "strike", strike)

        premium = to_decimal(self.premium_per_contract, "premium_per_contract")
        if premium < 0:
            raise ValidationError(
                "premium_per_contract cannot be negative", field="premium_per_contract"
            )
        if self.event_type.is_option_leg and premium == 0:
            raise ValidationError(
                f"premium_per_contract must be positive for {self.event_type.value}",
                field="premium_per_contract",
            )
        if not self.event_type.is_option_leg and premium != 0:
            raise ValidationError(
                f"{self.event_type.value} carries no premium",
                field="premium_per_contract",
            )
        object.__setattr__(self, "premium_per_contract", premium)

        if isinstance(self.contracts, bool) or not isinstance(self.contracts, int):
            raise ValidationError("contracts must be a whole number", field="contracts")
        if self.contracts <= 0:
            raise ValidationError("contracts must be at least 1", field="contracts")

        if isinstance(self.occurred_at, datetime):
            object.__setattr__(self, "occurred_at", self.occurred_at.date())
        _check_not_future(self.occurred_at, "occurred_at")

        if (
            self.expiration_date is not None
            and self.event_type in (EventType.SELL_TO_OPEN_PUT, EventType.SELL_TO_OPEN_CALL)
            and self.expiration_date <= self.occurred_at
        ):
            raise ValidationError(
                "expiration_date must be after occurred_at", field="expiration_date"
            )

    @property
    def cash_flow(self) -> Decimal:
        """Signed premium cash flow: received for sells, paid for buybacks."""
        amount = self.premium_per_contract * self.contracts * SHARES_PER_CONTRACT
        if self.event_type in (EventType.BUY_TO_CLOSE_PUT, EventType.BUY_TO_CLOSE_CALL):
            return -amount
        if self.event_type.is_option_leg:
            return amount
        return ZERO

    @property
    def shares_equivalent(self) -> int:
        """Number of shares represented by this event."""
        return self.contracts * SHARES_PER_CONTRACT

    def same_payload(self, other: "TradeEvent") -> bool:
        """True if two events describe the same trade (ignoring position id)."""
        return (
            self.ticker == other.ticker
            and self.event_type == other.event_type
            and self.strike == other.strike
            and self.contracts == other.contracts
            and self.occurred_at == other.occurred_at
            and self.premium_per_contract == other.premium_per_contract
        )


@dataclass(frozen=True)
class Position:
    """
    Snapshot of one wheel cycle on one ticker, derived by folding events.

    ``version`` counts the events applied so far and is what optimistic
    concurrency checks compare against. ``premium_collected`` is the gross
    credit from sell-to-open legs, so it only grows while the position is
    open; buybacks show up in premium P&L instead.
    """

    id: str
    ticker: str
    status: PositionStatus
    opened_at: date
    last_event_at: date
    version: int = 0
    shares_held: int = 0
    cost_basis_per_share: Optional[Decimal] = None
    premium_collected: Decimal = ZERO
    realized_pl: Decimal = ZERO
    open_contracts: int = 0
    sale_price_per_share: Optional[Decimal] = None
    call_expirations: int = 0
    closed_at: Optional[date] = None
    events: tuple[TradeEvent, ...] = ()

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    @property
    def holds_shares(self) -> bool:
        """True while assignment shares are held."""
        return self.status in HOLDING_STATES

    @property
    def was_assigned(self) -> bool:
        return any(e.event_type == EventType.ASSIGNMENT for e in self.events)

    @property
    def reporting_status(self) -> PositionStatus:
        """
        Status for display.

        A position whose most recent event was a covered call expiring
        worthless reports CALL_EXPIRED while it rests in ASSIGNED.
        """
        if (
            self.status == PositionStatus.ASSIGNED
            and self.events
            and self.events[-1].event_type == EventType.EXPIRED_WORTHLESS
        ):
            return PositionStatus.CALL_EXPIRED
        return self.status


class DepositType(Enum):
    """Direction of a cash movement."""

    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"


@dataclass(frozen=True)
class Deposit:
    """Cash deposit or withdrawal. Independent of positions."""

    amount: Decimal
    deposit_date: date
    deposit_type: DepositType = DepositType.DEPOSIT
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate amount and date."""
        amount = to_decimal(self.amount, "amount")
        if amount <= 0:
            raise ValidationError("amount must be positive", field="amount")
        object.__setattr__(self, "amount", amount)

        if not isinstance(self.deposit_type, DepositType):
            try:
                object.__setattr__(self, "deposit_type", DepositType(self.deposit_type))
            except ValueError as e:
                raise ValidationError(
                    f"Invalid deposit type '{self.deposit_type}'", field="deposit_type"
                ) from e

        if isinstance(self.deposit_date, datetime):
            object.__setattr__(self, "deposit_date", self.deposit_date.date())
        _check_not_future(self.deposit_date, "deposit_date")

    @property
    def signed_amount(self) -> Decimal:
        """Positive for deposits, negative for withdrawals."""
        if self.deposit_type == DepositType.WITHDRAWAL:
            return -self.amount
        return self.amount


@dataclass(frozen=True)
class PriceQuote:
    """Price for a ticker at a point in time."""

    ticker: str
    price: Decimal
    as_of: datetime
    stale: bool = False
    source: str = "unknown"

    def as_stale(self) -> "PriceQuote":
        """Copy of this quote flagged stale."""
        return PriceQuote(
            ticker=self.ticker,
            price=self.price,
            as_of=self.as_of,
            stale=True,
            source=self.source,
        )


def present_money(value: Optional[Decimal]) -> Optional[float]:
    """Cents-rounded float for JSON output. None stays None."""
    rounded = round_money(value)
    return float(rounded) if rounded is not None else None
