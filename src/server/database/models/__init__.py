"""Database models for the backend server.

Models:
    PositionRecord: Latest snapshot and version of a wheel position
    TradeEventRecord: Append-only trade events per position
    DepositRecord: Cash deposits and withdrawals
"""

from .deposit import DepositRecord
from .position import PositionRecord
from .trade_event import TradeEventRecord

__all__ = [
    "PositionRecord",
    "TradeEventRecord",
    "DepositRecord",
]
