"""Pydantic request and response models."""

from src.server.models.common import ErrorResponse, HealthResponse, InfoResponse
from src.server.models.deposit import DepositCreate, DepositResponse
from src.server.models.trade_event import (
    PositionListResponse,
    PositionResponse,
    TradeEventCreate,
    TradeEventResponse,
)

__all__ = [
    # Common models
    "HealthResponse",
    "InfoResponse",
    "ErrorResponse",
    # Trade event models
    "TradeEventCreate",
    "TradeEventResponse",
    "PositionResponse",
    "PositionListResponse",
    # Deposit models
    "DepositCreate",
    "DepositResponse",
]
