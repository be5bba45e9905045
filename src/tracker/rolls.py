"""
Rolling an open option leg to a new strike and/or expiration.

A roll is a buyback of the open leg followed by a new sell-to-open, and
both legs are recorded together or not at all.

Covered calls roll inside their position: CALL_OPEN goes to ASSIGNED on
the buyback and back to CALL_OPEN on the new call. A put buyback ends the
wheel cycle, so a put roll closes the current position and opens a new
one on the same ticker.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from .exceptions import TransitionError, ValidationError
from .lifecycle import apply_event, open_position
from .models import Number, Position, TradeEvent, to_decimal
from .state import OPENING_LEGS, EventType, PositionStatus

logger = logging.getLogger(__name__)

# Open status -> (closing leg, opening leg)
ROLL_LEGS: dict[PositionStatus, tuple[EventType, EventType]] = {
    PositionStatus.PUT_OPEN: (EventType.BUY_TO_CLOSE_PUT, EventType.SELL_TO_OPEN_PUT),
    PositionStatus.CALL_OPEN: (EventType.BUY_TO_CLOSE_CALL, EventType.SELL_TO_OPEN_CALL),
}


@dataclass(frozen=True)
class RollResult:
    """
    Outcome of a roll.

    Attributes:
        position: Position holding the new leg
        close_event: Buyback of the old leg
        open_event: Sale of the new leg
        rolled_from: The closed position for a put roll, None for a call roll
    """

    position: Position
    close_event: TradeEvent
    open_event: TradeEvent
    rolled_from: Optional[Position] = None

    @property
    def net_premium(self) -> Decimal:
        """Credit (positive) or debit (negative) of the roll."""
        return self.open_event.cash_flow + self.close_event.cash_flow

    @property
    def touched(self) -> list[Position]:
        """Positions whose snapshots the roll changed."""
        if self.rolled_from is None:
            return [self.position]
        return [self.rolled_from, self.position]


def current_leg(position: Position) -> TradeEvent:
    """The sell-to-open event of the position's open option leg."""
    if position.status not in ROLL_LEGS:
        raise TransitionError(
            f"Position {position.id} is {position.reporting_status.value}; "
            f"only an open put or call can be rolled"
        )
    for event in reversed(position.events):
        if event.event_type in OPENING_LEGS:
            return event
    raise TransitionError(f"Position {position.id} has no open option leg")


def build_roll_events(
    position: Position,
    new_strike: Number,
    new_expiration: date,
    close_premium: Number,
    open_premium: Number,
    occurred_at: Optional[date] = None,
    notes: Optional[str] = None,
) -> tuple[TradeEvent, TradeEvent]:
    """
    Build the buyback and new sale for rolling a position's open leg.

    Both legs carry the open contract count. The buyback uses the strike
    and expiration of the leg being closed.

    Args:
        position: Position with an open put or call
        new_strike: Strike of the new leg
        new_expiration: Expiration of the new leg
        close_premium: Price per share paid to buy back the open leg
        open_premium: Price per share received for the new leg
        occurred_at: Trade date of both legs (default today)
        notes: Free text stored on both legs

    Returns:
        (close_event, open_event)

    Raises:
        TransitionError: If the position has no open option leg
        ValidationError: If a price, strike or date is invalid, or the
            roll changes neither strike nor expiration
    """
    leg = current_leg(position)
    close_type, open_type = ROLL_LEGS[position.status]
    occurred_at = occurred_at or date.today()

    new_strike = to_decimal(new_strike, "new_strike")
    if new_strike == leg.strike and new_expiration == leg.expiration_date:
        raise ValidationError(
            "A roll must change the strike or the expiration", field="new_expiration"
        )

    close_event = TradeEvent(
        ticker=position.ticker,
        event_type=close_type,
        strike=leg.strike,
        contracts=position.open_contracts,
        occurred_at=occurred_at,
        premium_per_contract=to_decimal(close_premium, "close_premium"),
        position_id=position.id,
        expiration_date=leg.expiration_date,
        notes=f"Roll close: {notes}" if notes else "Closed as part of roll",
    )
    open_event = TradeEvent(
        ticker=position.ticker,
        event_type=open_type,
        strike=new_strike,
        contracts=position.open_contracts,
        occurred_at=occurred_at,
        premium_per_contract=to_decimal(open_premium, "open_premium"),
        expiration_date=new_expiration,
        notes=f"Roll open: {notes}" if notes else "Opened as part of roll",
    )
    return close_event, open_event


def roll_position(
    position: Position,
    close_event: TradeEvent,
    open_event: TradeEvent,
    new_position_id: str,
) -> RollResult:
    """
    Apply both legs of a roll without touching any store.

    Args:
        position: Current snapshot, PUT_OPEN or CALL_OPEN
        close_event: Buyback of the open leg
        open_event: Sale of the new leg
        new_position_id: Id for the new position of a put roll

    Returns:
        RollResult

    Raises:
        TransitionError: If the legs do not match the position's open leg
    """
    current_leg(position)
    close_type, open_type = ROLL_LEGS[position.status]
    if close_event.event_type != close_type or open_event.event_type != open_type:
        raise TransitionError(
            f"Rolling from {position.status.value} takes {close_type.value} then "
            f"{open_type.value}, got {close_event.event_type.value} then "
            f"{open_event.event_type.value}"
        )
    if open_event.occurred_at < close_event.occurred_at:
        raise TransitionError("The new leg cannot predate the buyback")

    closed = apply_event(position, close_event)

    if position.status == PositionStatus.CALL_OPEN:
        rolled = apply_event(closed, open_event)
        result = RollResult(
            position=rolled,
            close_event=rolled.events[-2],
            open_event=rolled.events[-1],
        )
    else:
        reopened = open_position(open_event, new_position_id)
        result = RollResult(
            position=reopened,
            close_event=closed.events[-1],
            open_event=reopened.events[-1],
            rolled_from=closed,
        )

    logger.debug(
        f"Rolled {position.ticker} {position.status.value} for net "
        f"{result.net_premium} into position {result.position.id}"
    )
    return result
