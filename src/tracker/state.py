"""State machine enums and transition table for wheel positions."""

from enum import Enum

from .exceptions import TransitionError


class PositionStatus(Enum):
    """
    Lifecycle states of one wheel cycle on one ticker.

    A cycle opens with a cash-secured put and either ends there (expired,
    bought back) or moves into share ownership, where covered calls are
    sold until the shares are called away.
    """

    PUT_OPEN = "PUT_OPEN"  # Sold put, awaiting outcome
    ASSIGNED = "ASSIGNED"  # Holding shares, no call sold
    CALL_OPEN = "CALL_OPEN"  # Holding shares, covered call sold
    CALLED_AWAY = "CALLED_AWAY"  # Shares sold at call strike
    PUT_EXPIRED = "PUT_EXPIRED"  # Put expired OTM - KEEP PREMIUM
    CALL_EXPIRED = "CALL_EXPIRED"  # Reporting marker only, folds into ASSIGNED
    CLOSED = "CLOSED"  # Put bought back


class EventType(Enum):
    """Trade events recorded against a position."""

    SELL_TO_OPEN_PUT = "SELL_TO_OPEN_PUT"
    BUY_TO_CLOSE_PUT = "BUY_TO_CLOSE_PUT"
    SELL_TO_OPEN_CALL = "SELL_TO_OPEN_CALL"
    BUY_TO_CLOSE_CALL = "BUY_TO_CLOSE_CALL"
    ASSIGNMENT = "ASSIGNMENT"
    CALLED_AWAY = "CALLED_AWAY"
    EXPIRED_WORTHLESS = "EXPIRED_WORTHLESS"

    @property
    def is_option_leg(self) -> bool:
        """True for events that carry a premium cash flow."""
        return self in OPENING_LEGS or self in CLOSING_LEGS


OPENING_LEGS = frozenset({EventType.SELL_TO_OPEN_PUT, EventType.SELL_TO_OPEN_CALL})
CLOSING_LEGS = frozenset({EventType.BUY_TO_CLOSE_PUT, EventType.BUY_TO_CLOSE_CALL})

TERMINAL_STATES = frozenset(
    {PositionStatus.CALLED_AWAY, PositionStatus.PUT_EXPIRED, PositionStatus.CLOSED}
)
HOLDING_STATES = frozenset({PositionStatus.ASSIGNED, PositionStatus.CALL_OPEN})
OPEN_STATES = frozenset(
    {PositionStatus.PUT_OPEN, PositionStatus.ASSIGNED, PositionStatus.CALL_OPEN}
)

# A covered call expiring worthless leaves the shares in place, so the
# position goes straight back to ASSIGNED rather than resting in CALL_EXPIRED.
VALID_TRANSITIONS: dict[PositionStatus, dict[EventType, PositionStatus]] = {
    PositionStatus.PUT_OPEN: {
        EventType.BUY_TO_CLOSE_PUT: PositionStatus.CLOSED,
        EventType.ASSIGNMENT: PositionStatus.ASSIGNED,
        EventType.EXPIRED_WORTHLESS: PositionStatus.PUT_EXPIRED,
    },
    PositionStatus.ASSIGNED: {
        EventType.SELL_TO_OPEN_CALL: PositionStatus.CALL_OPEN,
    },
    PositionStatus.CALL_OPEN: {
        EventType.BUY_TO_CLOSE_CALL: PositionStatus.ASSIGNED,
        EventType.CALLED_AWAY: PositionStatus.CALLED_AWAY,
        EventType.EXPIRED_WORTHLESS: PositionStatus.ASSIGNED,
    },
}

OPENING_EVENT = EventType.SELL_TO_OPEN_PUT


def get_valid_events(status: PositionStatus) -> list[EventType]:
    """Get list of events accepted from a given status."""
    return list(VALID_TRANSITIONS.get(status, {}).keys())


def can_transition(status: PositionStatus, event_type: EventType) -> bool:
    """Check if an event is accepted from the current status."""
    return event_type in VALID_TRANSITIONS.get(status, {})


def get_next_status(status: PositionStatus, event_type: EventType) -> PositionStatus:
    """
    Get the status reached by applying an event.

    Raises:
        TransitionError: If the pair is not in the transition table.
    """
    transitions = VALID_TRANSITIONS.get(status, {})
    if event_type not in transitions:
        if status in TERMINAL_STATES:
            raise TransitionError(
                f"Position is {status.value} (terminal); "
                f"cannot apply {event_type.value}"
            )
        valid = [e.value for e in get_valid_events(status)]
        raise TransitionError(
            f"Invalid event '{event_type.value}' from status '{status.value}'. "
            f"Valid events: {valid}"
        )
    return transitions[event_type]
