"""Trade event database model.

Append-only: rows are inserted, never updated.
"""

from typing import TYPE_CHECKING

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from src.server.database.session import Base, utcnow

if TYPE_CHECKING:
    from .position import PositionRecord


class TradeEventRecord(Base):
    """Stored trade event.

    Attributes:
        id: Row identifier
        event_id: Client-supplied event id; resubmitting it is a no-op
        position_id: Foreign key to PositionRecord
        sequence: 1-based order within the position (equals the version
            the position reached after this event)
        ticker: Ticker symbol
        event_type: EventType value
        strike: Strike (or share price for assignment/call-away), decimal text
        premium_per_contract: Option price per share, decimal text
        contracts: Number of contracts
        occurred_at: Trade date
        expiration_date: Option expiration, if given
        notes: Free text
        recorded_at: When the row was written
    """

    __tablename__ = "trade_events"
    __table_args__ = (
        UniqueConstraint("position_id", "sequence", name="uq_trade_events_position_sequence"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String, nullable=False, unique=True, index=True)
    position_id = Column(
        String,
        ForeignKey("positions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    sequence = Column(Integer, nullable=False)
    ticker = Column(String, nullable=False, index=True)
    event_type = Column(String, nullable=False)
    strike = Column(String, nullable=False)
    premium_per_contract = Column(String, nullable=False, default="0")
    contracts = Column(Integer, nullable=False)
    occurred_at = Column(Date, nullable=False, index=True)
    expiration_date = Column(Date, nullable=True)
    notes = Column(String, nullable=True)
    recorded_at = Column(DateTime, default=utcnow, nullable=False)

    position = relationship("PositionRecord", back_populates="events", lazy="select")

    def __repr__(self) -> str:
        return (
            f"<TradeEventRecord(event_id={self.event_id}, position_id={self.position_id}, "
            f"sequence={self.sequence}, type={self.event_type})>"
        )
