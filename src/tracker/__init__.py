"""
Wheel Tracker - record wheel strategy trades and report P&L.

Positions are derived by folding an append-only ledger of trade events
through the lifecycle state machine; P&L is computed from the resulting
snapshots and rolled up by time range and ticker.

Public API:
    TradeEvent: One immutable trade event
    Position: Snapshot of one wheel cycle
    PositionStatus / EventType: State machine enums
    apply_event / fold_events: Lifecycle fold
    InMemoryLedgerStore: In-process ledger store
    PnLEngine: Per-position P&L
    DashboardService: Full dashboard report
"""

from .exceptions import (
    AggregateFailure,
    ConcurrencyError,
    PositionNotFoundError,
    PriceLookupError,
    StaleDataWarning,
    TrackerError,
    TransitionError,
    ValidationError,
)
from .lifecycle import apply_event, fold_events, open_position
from .models import Deposit, DepositType, Position, PriceQuote, TradeEvent
from .state import (
    VALID_TRANSITIONS,
    EventType,
    PositionStatus,
    can_transition,
    get_next_status,
    get_valid_events,
)

__all__ = [
    # Models
    "TradeEvent",
    "Position",
    "Deposit",
    "DepositType",
    "PriceQuote",
    # State machine
    "PositionStatus",
    "EventType",
    "VALID_TRANSITIONS",
    "can_transition",
    "get_next_status",
    "get_valid_events",
    # Lifecycle
    "open_position",
    "apply_event",
    "fold_events",
    # Exceptions
    "TrackerError",
    "ValidationError",
    "TransitionError",
    "ConcurrencyError",
    "PositionNotFoundError",
    "PriceLookupError",
    "AggregateFailure",
    "StaleDataWarning",
]


# Deferred imports to keep ``import src.tracker`` light
def __getattr__(name: str):
    """Lazy import for the heavier services."""
    if name == "InMemoryLedgerStore":
        from .ledger import InMemoryLedgerStore
        return InMemoryLedgerStore
    if name == "PnLEngine":
        from .pnl import PnLEngine
        return PnLEngine
    if name == "DashboardService":
        from .dashboard import DashboardService
        return DashboardService
    if name == "CachingPriceProvider":
        from .pricing import CachingPriceProvider
        return CachingPriceProvider
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
