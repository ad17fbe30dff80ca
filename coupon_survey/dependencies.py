"""FastAPI dependencies."""
import hmac
import logging

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from coupon_survey.config import Settings, get_settings
from coupon_survey.database import get_db
from coupon_survey.services.notifications import NotificationSender
from coupon_survey.services.survey_service import SurveyService

logger = logging.getLogger(__name__)


def get_notification_sender(request: Request) -> NotificationSender:
    """Return the sender selected for this application at startup."""
    return request.app.state.notification_sender


def get_survey_service(
    db: AsyncSession = Depends(get_db),
    notifier: NotificationSender = Depends(get_notification_sender),
    settings: Settings = Depends(get_settings),
) -> SurveyService:
    """Build a survey service bound to the request's database session."""
    return SurveyService(db, notifier, settings)


async def require_admin_key(
    x_admin_key: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Guard operator endpoints with the shared admin key."""
    if not settings.admin_api_key:
        logger.warning("Admin endpoint called but ADMIN_API_KEY is not configured")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")
    if not x_admin_key or not hmac.compare_digest(x_admin_key, settings.admin_api_key):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")
