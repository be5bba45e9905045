"""FastAPI application entry point.

This module initializes the FastAPI application with middleware,
routers, error handlers and core endpoints.
"""

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.server import __version__
from src.server.api.v1.router import router as v1_router
from src.server.config import settings
from src.server.models.common import HealthResponse
from src.server.services.scheduler_service import get_scheduler_service
from src.tracker.exceptions import (
    AggregateFailure,
    ConcurrencyError,
    PositionNotFoundError,
    TransitionError,
    ValidationError,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Backend API for tracking wheel strategy trades and P&L",
    version=__version__,
    debug=settings.debug,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# Configure CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(v1_router)


@app.on_event("startup")
async def startup_event():
    """Log configuration and start the price refresh scheduler if enabled."""
    logger.info(f"Starting {settings.app_name} v{__version__}")
    logger.info(f"Debug mode: {settings.debug}")
    logger.info(f"Database path: {settings.database_path}")

    if not settings.scheduler_enabled:
        logger.info("Background scheduler disabled")
        return

    try:
        scheduler = get_scheduler_service()
        scheduler.initialize()
        scheduler.schedule_price_refresh()
        scheduler.start()
        logger.info("Background scheduler started successfully")
    except Exception as e:
        logger.error(f"Failed to start background scheduler: {e}", exc_info=True)


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the scheduler if it is running."""
    logger.info(f"Shutting down {settings.app_name}")

    scheduler = get_scheduler_service()
    if scheduler.is_running:
        try:
            scheduler.shutdown(wait=True)
        except Exception as e:
            logger.error(f"Error during scheduler shutdown: {e}", exc_info=True)


@app.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["health"],
    summary="Health check endpoint",
    description="Returns service health status including scheduler",
)
async def health_check() -> HealthResponse:
    """Health check endpoint.

    Example:
        >>> GET /health
        >>> {
        >>>     "status": "healthy",
        >>>     "timestamp": "2026-02-01T10:00:00Z",
        >>>     "scheduler_running": false
        >>> }
    """
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        scheduler_running=get_scheduler_service().is_running,
    )


@app.get(
    "/",
    status_code=status.HTTP_200_OK,
    tags=["root"],
    summary="Root endpoint",
    description="Returns welcome message with API information",
)
async def root():
    """Basic API information and links to documentation."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "api": "/api/v1/info",
    }


def _error_response(status_code: int, error: str, message: str, detail=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "detail": detail,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


# Error handlers
@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and parameters are client errors (400)."""
    errors = exc.errors()
    message = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
        for err in errors
    )
    logger.info(f"Rejected request to {request.url.path}: {message}")
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        "ValidationError",
        message or "Invalid request",
        detail=[{"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in errors],
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    """Domain validation failures (400) name the violated constraint."""
    logger.info(f"Rejected request to {request.url.path}: {exc}")
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        "ValidationError",
        str(exc),
        detail={"field": exc.field} if exc.field else None,
    )


@app.exception_handler(PositionNotFoundError)
async def not_found_handler(request: Request, exc: PositionNotFoundError):
    return _error_response(status.HTTP_404_NOT_FOUND, "NotFound", str(exc))


@app.exception_handler(TransitionError)
async def transition_error_handler(request: Request, exc: TransitionError):
    """Rejected transitions and version conflicts (409); nothing was written."""
    error = "ConcurrencyError" if isinstance(exc, ConcurrencyError) else "TransitionError"
    logger.warning(f"{error} on {request.url.path}: {exc}")
    return _error_response(status.HTTP_409_CONFLICT, error, str(exc))


@app.exception_handler(AggregateFailure)
async def aggregate_failure_handler(request: Request, exc: AggregateFailure):
    """Dashboard failures: details are in the log, not the response."""
    logger.error(f"Aggregate failure on {request.url.path}: {exc.__cause__!r}")
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "AggregateFailure",
        "Failed to build dashboard report",
    )


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "InternalServerError",
        "An unexpected error occurred",
        detail=str(exc) if settings.debug else None,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.server.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )
