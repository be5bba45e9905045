"""Dashboard API endpoint.

Returns the full dashboard (metrics, P&L over time, P&L by ticker, win
rate) for one time range in a single response.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from src.server.dependencies import get_dashboard_service
from src.tracker.dashboard import DashboardService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["dashboard"])


@router.get(
    "/dashboard",
    summary="Get dashboard report",
    description="Metrics, cumulative P&L, P&L by ticker and win rate for a time range",
    responses={
        400: {"description": "Invalid time range"},
        500: {"description": "Dashboard could not be built"},
    },
)
async def get_dashboard(
    time_range: Optional[str] = Query(
        None, alias="timeRange", description="One of 1M, 3M, 6M, 1Y, All (default All)"
    ),
    service: DashboardService = Depends(get_dashboard_service),
) -> JSONResponse:
    """Build the dashboard report.

    Either the complete report is returned or an error; sub-reports are
    never returned on their own.

    Example:
        >>> GET /api/v1/dashboard?timeRange=3M
        >>> {
        >>>     "timeRange": "3M",
        >>>     "metrics": {"totalPL": 400.0, ...},
        >>>     "plOverTime": [{"date": "2026-01-05", "cumulativeTotalPL": 120.0}, ...],
        >>>     "plByTicker": [{"ticker": "AAPL", "totalPL": 400.0, ...}],
        >>>     "winRateData": {"winRate": 0.6, ...},
        >>>     "asOf": "2026-03-01T12:00:00+00:00",
        >>>     "stale": false
        >>> }
    """
    report = await service.build_report(time_range)
    return JSONResponse(
        content=report.report_dict(),
        headers={"Cache-Control": f"private, max-age={report.cache_max_age}"},
    )
