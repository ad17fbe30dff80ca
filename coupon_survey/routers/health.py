"""Health check endpoints."""
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from coupon_survey.config import get_settings
from coupon_survey.version import APP_VERSION
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint for monitoring."""
    database = request.app.state.database
    if not await database.ping():
        return JSONResponse(
            status_code=503,
            content={"status": "error", "detail": "Database connection failed"},
        )

    return {
        "status": "ok",
        "database": "connected",
    }


@router.get("/status")
async def service_status(request: Request):
    """Version, environment and coupon delivery backend for display/monitoring."""
    settings = get_settings()
    sender = request.app.state.notification_sender
    return {
        "version": APP_VERSION,
        "environment": settings.environment,
        "notification_backend": sender.name,
    }
