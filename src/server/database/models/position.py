"""Position snapshot database model.

One row per wheel cycle. The row caches the latest folded snapshot and
carries the ``version`` used for optimistic concurrency; the trade events
remain the source of truth.
"""

from typing import TYPE_CHECKING

from sqlalchemy import Column, Date, DateTime, Integer, String
from sqlalchemy.orm import relationship

from src.server.database.session import Base, utcnow

if TYPE_CHECKING:
    from .trade_event import TradeEventRecord


class PositionRecord(Base):
    """Position snapshot row.

    Money columns hold exact decimal text.

    Attributes:
        id: Position identifier (hex uuid)
        ticker: Underlying ticker symbol
        status: Current PositionStatus value
        version: Number of events applied
        shares_held: Shares currently held
        cost_basis_per_share: Assignment strike, if assigned
        premium_collected: Gross sell-to-open premium
        realized_pl: Share-leg P&L booked on call-away
        open_contracts: Contracts in the open lot
        opened_at: Date of the opening put
        last_event_at: Date of the latest event
        closed_at: Date the position reached a terminal state
        open_ticker: Ticker while the position is open, NULL once closed;
            unique, so a ticker has at most one open position
        events: Relationship to trade events, in sequence order
    """

    __tablename__ = "positions"

    id = Column(String, primary_key=True)
    ticker = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, index=True)
    version = Column(Integer, nullable=False, default=0)
    shares_held = Column(Integer, nullable=False, default=0)
    cost_basis_per_share = Column(String, nullable=True)
    premium_collected = Column(String, nullable=False, default="0")
    realized_pl = Column(String, nullable=False, default="0")
    open_contracts = Column(Integer, nullable=False, default=0)
    opened_at = Column(Date, nullable=False)
    last_event_at = Column(Date, nullable=False)
    closed_at = Column(Date, nullable=True, index=True)
    open_ticker = Column(String, nullable=True, unique=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )

    events = relationship(
        "TradeEventRecord",
        back_populates="position",
        cascade="all, delete-orphan",
        lazy="select",
        order_by="TradeEventRecord.sequence",
    )

    def __repr__(self) -> str:
        return (
            f"<PositionRecord(id={self.id}, ticker={self.ticker}, "
            f"status={self.status}, version={self.version})>"
        )
