"""API v1 router.

Mounts the feature routers under ``/api/v1`` and serves system info.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, status

from src.server.api.v1 import dashboard, deposits, events, export, positions, rolls
from src.server.config import settings
from src.server.database.session import check_database_connection
from src.server.models.common import InfoResponse

logger = logging.getLogger(__name__)

# Create v1 router
router = APIRouter(
    prefix="/api/v1",
    tags=["v1"],
)

# Include sub-routers
router.include_router(dashboard.router)
router.include_router(events.router)
router.include_router(rolls.router)
router.include_router(positions.router)
router.include_router(deposits.router)
router.include_router(export.router)


@router.get(
    "/info",
    response_model=InfoResponse,
    status_code=status.HTTP_200_OK,
    summary="Get system information",
    description="Returns system information including version and database status",
)
async def get_info() -> InfoResponse:
    """Get system information endpoint.

    Example:
        >>> GET /api/v1/info
        >>> {
        >>>     "app_name": "Wheel Tracker API",
        >>>     "version": "1.0.0",
        >>>     "status": "running",
        >>>     "database_connected": true,
        >>>     "live_prices": false,
        >>>     "timestamp": "2026-01-31T10:00:00"
        >>> }
    """
    return InfoResponse(
        app_name=settings.app_name,
        version=settings.version,
        status="running",
        database_connected=check_database_connection(),
        live_prices=bool(settings.resolve_finnhub_key()),
        timestamp=datetime.now(timezone.utc),
    )
