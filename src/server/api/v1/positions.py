"""Position API endpoints.

Read-only views of positions and their P&L.
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from src.server.dependencies import get_dashboard_service, get_ledger_store
from src.server.models.trade_event import PositionListResponse, PositionResponse
from src.server.repositories.ledger import SqlLedgerStore
from src.tracker.dashboard import DashboardService
from src.tracker.exceptions import ValidationError
from src.tracker.expirations import (
    DEFAULT_DAYS_AHEAD,
    group_by_expiration,
    next_expiration,
    upcoming_expirations,
)
from src.tracker.ledger import PositionFilter
from src.tracker.models import normalize_ticker
from src.tracker.state import PositionStatus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["positions"])


def _parse_statuses(value: Optional[str]) -> Optional[frozenset[PositionStatus]]:
    if not value:
        return None
    statuses = set()
    for item in value.split(","):
        try:
            statuses.add(PositionStatus(item.strip().upper()))
        except ValueError as e:
            valid = [s.value for s in PositionStatus]
            raise ValidationError(
                f"Invalid status '{item}'. Valid: {valid}", field="status"
            ) from e
    return frozenset(statuses)


@router.get(
    "/positions",
    response_model=PositionListResponse,
    summary="List positions",
    description="List positions with optional ticker, status and open-only filters",
)
def list_positions(
    ticker: Optional[str] = Query(None, description="Filter by ticker"),
    status: Optional[str] = Query(
        None, description="Comma-separated statuses, e.g. PUT_OPEN,CALL_OPEN"
    ),
    open_only: bool = Query(False, description="Only open positions"),
    store: SqlLedgerStore = Depends(get_ledger_store),
) -> PositionListResponse:
    """List positions, oldest first."""
    position_filter = PositionFilter(
        ticker=normalize_ticker(ticker) if ticker else None,
        statuses=_parse_statuses(status),
        open_only=open_only,
    )
    positions = store.list_positions(position_filter)
    return PositionListResponse(
        positions=[PositionResponse.from_position(p) for p in positions],
        total=len(positions),
    )


@router.get(
    "/positions/overview",
    summary="Position status and P&L",
    description="Status and P&L of every position, for alerts and overview screens",
)
async def get_positions_overview(
    ticker: Optional[str] = Query(None, description="Filter by ticker"),
    service: DashboardService = Depends(get_dashboard_service),
) -> dict:
    """Per-position status and P&L. Never modifies anything."""
    results = await service.position_overview(
        normalize_ticker(ticker) if ticker else None
    )
    return {
        "positions": [r.to_dict() for r in results],
        "total": len(results),
        "stale": any(r.stale for r in results),
    }


@router.get(
    "/positions/expirations",
    summary="Upcoming expirations",
    description="Open option legs expiring within the next N days, overdue legs included",
    responses={400: {"description": "Invalid look-ahead window"}},
)
def get_upcoming_expirations(
    days: int = Query(DEFAULT_DAYS_AHEAD, description="Days ahead to look (0-365)"),
    store: SqlLedgerStore = Depends(get_ledger_store),
) -> dict:
    """Open legs by expiration date, soonest first."""
    legs = upcoming_expirations(
        store.list_positions(PositionFilter(open_only=True)), date.today(), days
    )
    upcoming = next_expiration(legs)
    return {
        "expirations": [leg.to_dict() for leg in legs],
        "byDate": {
            day: [leg.position_id for leg in group]
            for day, group in group_by_expiration(legs).items()
        },
        "total": len(legs),
        "overdue": sum(1 for leg in legs if leg.overdue),
        "nextExpiration": upcoming.isoformat() if upcoming else None,
    }


@router.get(
    "/positions/{position_id}",
    response_model=PositionResponse,
    summary="Get position",
    description="Get one position with its full event history",
    responses={404: {"description": "Position not found"}},
)
def get_position(
    position_id: str,
    store: SqlLedgerStore = Depends(get_ledger_store),
) -> PositionResponse:
    """Get a position with its events."""
    return PositionResponse.from_position(
        store.get_position(position_id), include_events=True
    )
