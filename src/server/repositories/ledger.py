"""SQLAlchemy implementation of the ledger store.

Positions are rebuilt by folding their stored events; the ``positions``
row caches the latest snapshot and guards concurrent writers with an
optimistic ``UPDATE ... WHERE version = :expected``.
"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.server.database.models.position import PositionRecord
from src.server.database.models.trade_event import TradeEventRecord
from src.tracker.exceptions import (
    ConcurrencyError,
    PositionNotFoundError,
    TransitionError,
    ValidationError,
)
from src.tracker.ledger import PositionFilter, TradeLedger, new_position_id
from src.tracker.lifecycle import apply_event, fold_events, open_position
from src.tracker.models import Position, TradeEvent
from src.tracker.rolls import RollResult, roll_position
from src.tracker.state import OPEN_STATES, EventType

logger = logging.getLogger(__name__)


def _event_from_record(record: TradeEventRecord) -> TradeEvent:
    return TradeEvent(
        id=record.event_id,
        position_id=record.position_id,
        ticker=record.ticker,
        event_type=EventType(record.event_type),
        strike=Decimal(record.strike),
        premium_per_contract=Decimal(record.premium_per_contract),
        contracts=record.contracts,
        occurred_at=record.occurred_at,
        expiration_date=record.expiration_date,
        notes=record.notes,
    )


def _event_record(event: TradeEvent, position_id: str, sequence: int) -> TradeEventRecord:
    return TradeEventRecord(
        event_id=event.id,
        position_id=position_id,
        sequence=sequence,
        ticker=event.ticker,
        event_type=event.event_type.value,
        strike=str(event.strike),
        premium_per_contract=str(event.premium_per_contract),
        contracts=event.contracts,
        occurred_at=event.occurred_at,
        expiration_date=event.expiration_date,
        notes=event.notes,
    )


def _snapshot_values(position: Position) -> dict:
    """Column values mirroring a folded position."""
    return {
        "status": position.status.value,
        "version": position.version,
        "shares_held": position.shares_held,
        "cost_basis_per_share": (
            str(position.cost_basis_per_share)
            if position.cost_basis_per_share is not None else None
        ),
        "premium_collected": str(position.premium_collected),
        "realized_pl": str(position.realized_pl),
        "open_contracts": position.open_contracts,
        "last_event_at": position.last_event_at,
        "closed_at": position.closed_at,
        "open_ticker": position.ticker if position.is_open else None,
    }


class SqlLedgerStore:
    """Ledger store backed by a SQLAlchemy session.

    Attributes:
        db: SQLAlchemy database session
    """

    def __init__(self, db: Session):
        self.db = db

    def append_event(
        self,
        position_id: Optional[str],
        event: TradeEvent,
        expected_version: Optional[int] = None,
    ) -> Position:
        """Append an event, opening a position when ``position_id`` is None.

        The ledger is unchanged when this raises.

        Args:
            position_id: Target position, or None to open a new one
            event: Event to append
            expected_version: Version the caller read; rejected on mismatch

        Returns:
            Position snapshot after the event

        Raises:
            PositionNotFoundError: If the position does not exist
            TransitionError: If the lifecycle rejects the event
            ConcurrencyError: If another writer got there first
            ValidationError: If the event id was already used for a
                different trade
        """
        position_id = position_id or event.position_id

        duplicate = (
            self.db.query(TradeEventRecord)
            .filter(TradeEventRecord.event_id == event.id)
            .first()
        )
        if duplicate is not None:
            recorded = _event_from_record(duplicate)
            if not recorded.same_payload(event) or (
                position_id is not None and duplicate.position_id != position_id
            ):
                raise ValidationError(
                    f"Event id {event.id} already recorded with different details",
                    field="id",
                )
            logger.info(f"Ignoring duplicate submission of event {event.id}")
            return self.get_position(duplicate.position_id)

        if position_id is None:
            return self._open(event)

        current = self.get_position(position_id)
        if expected_version is not None and current.version != expected_version:
            raise ConcurrencyError(position_id, expected_version, current.version)

        updated = apply_event(current, event)

        result = self.db.execute(
            update(PositionRecord)
            .where(PositionRecord.id == position_id)
            .where(PositionRecord.version == current.version)
            .values(**_snapshot_values(updated))
        )
        if result.rowcount != 1:
            self.db.rollback()
            actual = self._stored_version(position_id)
            logger.warning(
                f"Concurrent update on position {position_id}: "
                f"expected version {current.version}, found {actual}"
            )
            raise ConcurrencyError(position_id, current.version, actual)

        self.db.add(_event_record(updated.events[-1], position_id, updated.version))
        self._commit(position_id, current.version)

        logger.info(
            f"Position {position_id} ({updated.ticker}) now {updated.status.value} "
            f"at version {updated.version}"
        )
        return updated

    def roll(
        self,
        position_id: str,
        close_event: TradeEvent,
        open_event: TradeEvent,
        expected_version: Optional[int] = None,
    ) -> RollResult:
        """Record both legs of a roll in one transaction.

        A call roll appends two events to the position. A put roll closes
        the position and inserts the new one in the same commit.

        Raises:
            PositionNotFoundError: If the position does not exist
            TransitionError: If the position has no open leg to roll
            ConcurrencyError: If another writer got there first
        """
        current = self.get_position(position_id)
        if expected_version is not None and current.version != expected_version:
            raise ConcurrencyError(position_id, expected_version, current.version)

        result = roll_position(current, close_event, open_event, new_position_id())
        snapshot = result.rolled_from or result.position

        updated = self.db.execute(
            update(PositionRecord)
            .where(PositionRecord.id == position_id)
            .where(PositionRecord.version == current.version)
            .values(**_snapshot_values(snapshot))
        )
        if updated.rowcount != 1:
            self.db.rollback()
            raise ConcurrencyError(
                position_id, current.version, self._stored_version(position_id)
            )

        self.db.add(_event_record(result.close_event, position_id, current.version + 1))
        if result.rolled_from is None:
            self.db.add(_event_record(result.open_event, position_id, current.version + 2))
        else:
            reopened = result.position
            self.db.add(PositionRecord(
                id=reopened.id,
                ticker=reopened.ticker,
                opened_at=reopened.opened_at,
                **_snapshot_values(reopened),
            ))
            self.db.add(_event_record(result.open_event, reopened.id, reopened.version))
        self._commit(position_id, current.version)

        logger.info(
            f"Rolled {current.ticker} position {position_id} into {result.position.id} "
            f"for net {result.net_premium}"
        )
        return result

    def _find_open(self, ticker: str) -> Optional[str]:
        """Id of the open position on a ticker, if any."""
        return (
            self.db.query(PositionRecord.id)
            .filter(PositionRecord.ticker == ticker)
            .filter(PositionRecord.status.in_([s.value for s in OPEN_STATES]))
            .scalar()
        )

    def _open(self, event: TradeEvent) -> Position:
        existing = self._find_open(event.ticker)
        if existing is not None:
            raise TransitionError(
                f"{event.ticker} already has an open position ({existing})"
            )

        position = open_position(event, new_position_id())
        record = PositionRecord(
            id=position.id,
            ticker=position.ticker,
            opened_at=position.opened_at,
            **_snapshot_values(position),
        )
        self.db.add(record)
        self.db.add(_event_record(position.events[-1], position.id, position.version))
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            winner = (
                self.db.query(PositionRecord.id)
                .filter(PositionRecord.open_ticker == event.ticker)
                .scalar()
            )
            if winner is None:
                logger.warning(f"Write conflict opening {event.ticker}: {e}")
                raise ConcurrencyError(position.id, 0, 0) from e
            logger.warning(
                f"Concurrent open on {event.ticker} lost to position {winner}"
            )
            raise TransitionError(
                f"{event.ticker} already has an open position ({winner})"
            ) from e

        logger.info(f"Opened position {position.id} on {position.ticker}")
        return position

    def _commit(self, position_id: str, expected: int) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Write conflict on position {position_id}: {e}")
            raise ConcurrencyError(
                position_id, expected, self._stored_version(position_id)
            ) from e

    def _stored_version(self, position_id: str) -> int:
        version = (
            self.db.query(PositionRecord.version)
            .filter(PositionRecord.id == position_id)
            .scalar()
        )
        return version if version is not None else 0

    def get_position(self, position_id: str) -> Position:
        """Rebuild a position from its events.

        Raises:
            PositionNotFoundError: If the position does not exist
        """
        records = (
            self.db.query(TradeEventRecord)
            .filter(TradeEventRecord.position_id == position_id)
            .order_by(TradeEventRecord.sequence)
            .all()
        )
        if not records:
            raise PositionNotFoundError(f"Position not found: {position_id}")
        return fold_events([_event_from_record(r) for r in records], position_id)

    def list_positions(self, filter: Optional[PositionFilter] = None) -> list[Position]:
        """Positions matching the filter, oldest first."""
        filter = filter or PositionFilter()

        query = self.db.query(TradeEventRecord).join(PositionRecord)
        if filter.ticker:
            query = query.filter(PositionRecord.ticker == filter.ticker.upper())
        if filter.statuses:
            query = query.filter(
                PositionRecord.status.in_([s.value for s in filter.statuses])
            )
        if filter.open_only:
            query = query.filter(
                PositionRecord.status.in_([s.value for s in OPEN_STATES])
            )
        records = query.order_by(
            TradeEventRecord.position_id, TradeEventRecord.sequence
        ).all()

        grouped: dict[str, list[TradeEvent]] = {}
        for record in records:
            grouped.setdefault(record.position_id, []).append(_event_from_record(record))

        positions = [fold_events(events, pid) for pid, events in grouped.items()]
        positions = [p for p in positions if filter.matches(p)]
        return sorted(positions, key=lambda p: (p.opened_at, p.ticker, p.id))

    def ledger(self) -> TradeLedger:
        """Snapshot of every recorded event."""
        records = self.db.query(TradeEventRecord).order_by(
            TradeEventRecord.position_id, TradeEventRecord.sequence
        ).all()
        return TradeLedger(_event_from_record(r) for r in records)

    def held_tickers(self) -> list[str]:
        """Tickers of positions currently holding shares."""
        rows = (
            self.db.query(PositionRecord.ticker)
            .filter(PositionRecord.shares_held > 0)
            .filter(PositionRecord.closed_at.is_(None))
            .distinct()
            .all()
        )
        return sorted(row[0] for row in rows)
