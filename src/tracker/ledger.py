"""
Trade ledger: the append-only record of trade events per position.

``TradeLedger`` is a read-only, ordered view over events. ``LedgerStore``
is the persistence contract used by the API and CLI; ``InMemoryLedgerStore``
implements it for tests and demos, ``src.server.repositories.ledger``
implements it on SQLAlchemy.
"""

import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Iterator, Optional, Protocol

from .exceptions import ConcurrencyError, PositionNotFoundError, TransitionError, ValidationError
from .lifecycle import apply_event, open_position
from .models import Position, TradeEvent
from .rolls import RollResult, roll_position
from .state import PositionStatus

logger = logging.getLogger(__name__)


class TradeLedger:
    """
    Ordered, immutable view of trade events grouped by position.

    Events within a position are ordered by ``occurred_at`` and keep
    submission order for events on the same date.
    """

    def __init__(self, events: Iterable[TradeEvent]):
        grouped: dict[str, list[TradeEvent]] = {}
        for event in events:
            if event.position_id is None:
                raise ValidationError(
                    f"Event {event.id} has no position id", field="position_id"
                )
            grouped.setdefault(event.position_id, []).append(event)

        self._by_position: dict[str, tuple[TradeEvent, ...]] = {
            pid: tuple(sorted(evts, key=lambda e: e.occurred_at))
            for pid, evts in grouped.items()
        }

    def events_for(self, position_id: str) -> tuple[TradeEvent, ...]:
        """Events of one position in ledger order (empty if unknown)."""
        return self._by_position.get(position_id, ())

    def position_ids(self) -> list[str]:
        return sorted(self._by_position)

    def tickers(self) -> list[str]:
        return sorted({evts[0].ticker for evts in self._by_position.values()})

    def events_between(self, start: Optional[date], end: date) -> list[TradeEvent]:
        """All events with ``start <= occurred_at <= end`` in date order."""
        selected = [
            e for e in self
            if (start is None or e.occurred_at >= start) and e.occurred_at <= end
        ]
        return sorted(selected, key=lambda e: e.occurred_at)

    def __iter__(self) -> Iterator[TradeEvent]:
        for pid in self.position_ids():
            yield from self._by_position[pid]

    def __len__(self) -> int:
        return sum(len(evts) for evts in self._by_position.values())


@dataclass(frozen=True)
class PositionFilter:
    """Criteria for listing positions. Unset fields match everything."""

    ticker: Optional[str] = None
    statuses: Optional[frozenset[PositionStatus]] = None
    open_only: bool = False
    closed_since: Optional[date] = None

    def matches(self, position: Position) -> bool:
        if self.ticker and position.ticker != self.ticker.upper():
            return False
        if self.statuses and position.status not in self.statuses:
            return False
        if self.open_only and not position.is_open:
            return False
        if self.closed_since is not None and (
            position.closed_at is None or position.closed_at < self.closed_since
        ):
            return False
        return True


class LedgerStore(Protocol):
    """Persistence contract for trade events and positions."""

    def append_event(
        self,
        position_id: Optional[str],
        event: TradeEvent,
        expected_version: Optional[int] = None,
    ) -> Position:
        ...

    def list_positions(self, filter: Optional[PositionFilter] = None) -> list[Position]:
        ...

    def get_position(self, position_id: str) -> Position:
        ...

    def roll(
        self,
        position_id: str,
        close_event: TradeEvent,
        open_event: TradeEvent,
        expected_version: Optional[int] = None,
    ) -> RollResult:
        ...


def new_position_id() -> str:
    return uuid.uuid4().hex


class InMemoryLedgerStore:
    """
    In-process LedgerStore.

    Each position is replaced by compare-and-swap on its version; the lock
    only guards the swap itself, so transitions computed from a stale read
    are rejected instead of queued.
    """

    def __init__(self) -> None:
        self._positions: dict[str, Position] = {}
        self._events: dict[str, TradeEvent] = {}
        self._swap_lock = threading.Lock()

    def append_event(
        self,
        position_id: Optional[str],
        event: TradeEvent,
        expected_version: Optional[int] = None,
    ) -> Position:
        """
        Append an event, opening a position when ``position_id`` is None.

        Args:
            position_id: Target position, or None to open a new one
            event: Event to append
            expected_version: Version the caller read; rejected on mismatch

        Returns:
            Position snapshot after the event

        Raises:
            PositionNotFoundError: If the position does not exist
            TransitionError: If the lifecycle rejects the event
            ConcurrencyError: If the position changed since it was read
            ValidationError: If the event id was already used for a
                different trade
        """
        position_id = position_id or event.position_id

        duplicate = self._events.get(event.id)
        if duplicate is not None:
            if not duplicate.same_payload(event) or (
                position_id is not None and duplicate.position_id != position_id
            ):
                raise ValidationError(
                    f"Event id {event.id} already recorded with different details",
                    field="id",
                )
            logger.info(f"Ignoring duplicate submission of event {event.id}")
            return self._positions[duplicate.position_id]

        if position_id is None:
            return self._open(event)

        current = self.get_position(position_id)
        if expected_version is not None and current.version != expected_version:
            raise ConcurrencyError(position_id, expected_version, current.version)

        updated = apply_event(current, event)
        self._swap(current, updated)
        logger.info(
            f"Position {position_id} ({updated.ticker}) now {updated.status.value} "
            f"at version {updated.version}"
        )
        return updated

    def _open(self, event: TradeEvent) -> Position:
        with self._swap_lock:
            for existing in self._positions.values():
                if existing.ticker == event.ticker and existing.is_open:
                    raise TransitionError(
                        f"{event.ticker} already has an open position ({existing.id})"
                    )
            position = open_position(event, new_position_id())
            self._positions[position.id] = position
            self._events[event.id] = position.events[-1]
        logger.info(f"Opened position {position.id} on {position.ticker}")
        return position

    def _swap(self, current: Position, updated: Position) -> None:
        with self._swap_lock:
            stored = self._positions[current.id]
            if stored.version != current.version:
                raise ConcurrencyError(current.id, current.version, stored.version)
            self._positions[current.id] = updated
            self._events[updated.events[-1].id] = updated.events[-1]

    def roll(
        self,
        position_id: str,
        close_event: TradeEvent,
        open_event: TradeEvent,
        expected_version: Optional[int] = None,
    ) -> RollResult:
        """
        Record both legs of a roll in one swap.

        Raises:
            PositionNotFoundError: If the position does not exist
            TransitionError: If the position has no open leg to roll
            ConcurrencyError: If the position changed since it was read
        """
        current = self.get_position(position_id)
        if expected_version is not None and current.version != expected_version:
            raise ConcurrencyError(position_id, expected_version, current.version)

        result = roll_position(current, close_event, open_event, new_position_id())
        with self._swap_lock:
            stored = self._positions[current.id]
            if stored.version != current.version:
                raise ConcurrencyError(current.id, current.version, stored.version)
            for position in result.touched:
                self._positions[position.id] = position
            self._events[result.close_event.id] = result.close_event
            self._events[result.open_event.id] = result.open_event

        logger.info(
            f"Rolled {current.ticker} position {current.id} into {result.position.id} "
            f"for net {result.net_premium}"
        )
        return result

    def get_position(self, position_id: str) -> Position:
        position = self._positions.get(position_id)
        if position is None:
            raise PositionNotFoundError(f"Position not found: {position_id}")
        return position

    def list_positions(self, filter: Optional[PositionFilter] = None) -> list[Position]:
        """Positions matching the filter, oldest first."""
        filter = filter or PositionFilter()
        positions = [p for p in self._positions.values() if filter.matches(p)]
        return sorted(positions, key=lambda p: (p.opened_at, p.ticker, p.id))

    def ledger(self) -> TradeLedger:
        """Snapshot of every recorded event."""
        return TradeLedger(
            e for p in self._positions.values() for e in p.events
        )
