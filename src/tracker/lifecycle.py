"""
Position lifecycle: fold trade events into Position snapshots.

Every function here is pure. ``apply_event`` returns a new Position and
leaves its input untouched, so a rejected event leaves the caller's
snapshot exactly as it was. Persistence belongs to the ledger stores.
"""

import logging
from dataclasses import replace
from typing import Iterable, Optional

from .exceptions import TransitionError
from .models import SHARES_PER_CONTRACT, ZERO, Position, TradeEvent
from .state import (
    OPENING_EVENT,
    OPENING_LEGS,
    TERMINAL_STATES,
    EventType,
    PositionStatus,
    get_next_status,
)

logger = logging.getLogger(__name__)


def open_position(event: TradeEvent, position_id: str) -> Position:
    """
    Start a new wheel cycle from a sell-to-open put.

    Args:
        event: The opening SELL_TO_OPEN_PUT event
        position_id: Identifier for the new position

    Returns:
        Position in PUT_OPEN with the event applied

    Raises:
        TransitionError: If the event is not a SELL_TO_OPEN_PUT
    """
    if event.event_type != OPENING_EVENT:
        raise TransitionError(
            f"A position can only be opened by {OPENING_EVENT.value}, "
            f"got {event.event_type.value}"
        )
    if event.position_id is not None and event.position_id != position_id:
        raise TransitionError(
            f"Event belongs to position {event.position_id}, not {position_id}"
        )

    event = replace(event, position_id=position_id)
    return Position(
        id=position_id,
        ticker=event.ticker,
        status=PositionStatus.PUT_OPEN,
        opened_at=event.occurred_at,
        last_event_at=event.occurred_at,
        version=1,
        premium_collected=event.cash_flow,
        open_contracts=event.contracts,
        events=(event,),
    )


def apply_event(position: Position, event: TradeEvent) -> Position:
    """
    Apply one event to a position.

    Args:
        position: Current position snapshot
        event: Event to apply

    Returns:
        New Position snapshot with version incremented

    Raises:
        TransitionError: If the event is for another ticker or position,
            predates the last recorded event, carries a contract count
            that does not match the open lot, or is not in the
            transition table.
    """
    if event.ticker != position.ticker:
        raise TransitionError(
            f"Event ticker {event.ticker} does not match position ticker {position.ticker}"
        )
    if event.position_id is not None and event.position_id != position.id:
        raise TransitionError(
            f"Event belongs to position {event.position_id}, not {position.id}"
        )
    if event.occurred_at < position.last_event_at:
        raise TransitionError(
            f"Event dated {event.occurred_at.isoformat()} precedes the last recorded "
            f"event on {position.last_event_at.isoformat()}"
        )
    if position.status in TERMINAL_STATES:
        raise TransitionError(
            f"Position {position.id} is {position.status.value} (terminal); "
            f"cannot apply {event.event_type.value}"
        )
    if event.contracts != position.open_contracts:
        raise TransitionError(
            f"Event has {event.contracts} contract(s) but position {position.id} "
            f"has {position.open_contracts} open"
        )

    next_status = get_next_status(position.status, event.event_type)
    event = replace(event, position_id=position.id)

    changes: dict = {
        "status": next_status,
        "version": position.version + 1,
        "last_event_at": event.occurred_at,
        "events": position.events + (event,),
    }

    # Gross credits only; buybacks reduce premium P&L, never premium collected.
    if event.event_type in OPENING_LEGS:
        changes["premium_collected"] = position.premium_collected + event.cash_flow

    if event.event_type == EventType.ASSIGNMENT:
        changes["shares_held"] = event.contracts * SHARES_PER_CONTRACT
        changes["cost_basis_per_share"] = event.strike
    elif event.event_type == EventType.CALLED_AWAY:
        shares = position.shares_held
        basis = position.cost_basis_per_share or ZERO
        changes["realized_pl"] = position.realized_pl + (event.strike - basis) * shares
        changes["sale_price_per_share"] = event.strike
        changes["shares_held"] = 0
    elif (
        event.event_type == EventType.EXPIRED_WORTHLESS
        and position.status == PositionStatus.CALL_OPEN
    ):
        changes["call_expirations"] = position.call_expirations + 1

    if next_status in TERMINAL_STATES:
        changes["closed_at"] = event.occurred_at
        if next_status != PositionStatus.CALLED_AWAY:
            changes["shares_held"] = 0

    new_position = replace(position, **changes)
    logger.debug(
        f"Position {position.id} {position.status.value} -> {next_status.value} "
        f"on {event.event_type.value}"
    )
    return new_position


def fold_events(
    events: Iterable[TradeEvent], position_id: Optional[str] = None
) -> Position:
    """
    Derive a position by folding its events in timestamp order.

    Events on the same date keep their submission order.

    Args:
        events: Events belonging to one position
        position_id: Id to give the position (defaults to the first
            event's position_id)

    Returns:
        Position reached after all events

    Raises:
        TransitionError: On the first event that violates the lifecycle,
            or when no events are given
    """
    ordered = sorted(events, key=lambda e: e.occurred_at)
    if not ordered:
        raise TransitionError("Cannot derive a position from zero events")

    first = ordered[0]
    pid = position_id or first.position_id
    if pid is None:
        raise TransitionError("Position id is required to fold events")

    position = open_position(first, pid)
    for event in ordered[1:]:
        position = apply_event(position, event)
    return position


def replay_status(events: Iterable[TradeEvent]) -> PositionStatus:
    """Final status reached by folding events (position id not needed)."""
    events = list(events)
    pid = next((e.position_id for e in events if e.position_id), "replay")
    return fold_events(events, position_id=pid).status
