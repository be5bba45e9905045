"""CSV export endpoints for P&L and deposits."""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from src.server.dependencies import get_dashboard_service, get_deposit_repository
from src.server.repositories.deposit import DepositRepository
from src.tracker.dashboard import DashboardService
from src.tracker.export import deposits_csv, export_filename, pl_report_csv

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/export", tags=["export"])


def _csv_response(content: str, prefix: str) -> Response:
    filename = export_filename(prefix, date.today())
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get(
    "/pl",
    summary="Export P&L as CSV",
    description="Per-position P&L for positions opened in an optional date range",
    response_class=Response,
    responses={
        200: {"content": {"text/csv": {}}},
        400: {"description": "Invalid date range"},
        500: {"description": "Export could not be built"},
    },
)
async def export_pl(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    service: DashboardService = Depends(get_dashboard_service),
) -> Response:
    """P&L report CSV with a summary section."""
    results = await service.position_overview()
    content = pl_report_csv(results, start_date, end_date)
    logger.info(f"Exported P&L for {len(results)} positions")
    return _csv_response(content, "pl-report")


@router.get(
    "/deposits",
    summary="Export deposits as CSV",
    description="All deposits and withdrawals with totals",
    response_class=Response,
    responses={200: {"content": {"text/csv": {}}}},
)
def export_deposits(
    repository: DepositRepository = Depends(get_deposit_repository),
) -> Response:
    """Deposit history CSV with a summary section."""
    return _csv_response(deposits_csv(repository.list_deposits()), "deposits-export")
