"""Router handling survey submission, status and coupon lookup."""
from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError

from coupon_survey.dependencies import get_survey_service, require_admin_key
from coupon_survey.schemas.survey import (
    CouponLookupResponse,
    LineUserId,
    SurveyStatusResponse,
    SurveySubmission,
    SurveySubmitResponse,
)
from coupon_survey.services.survey_service import CouponIssueError, SurveyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/survey", tags=["survey"])


def _storage_unavailable(exc: SQLAlchemyError) -> HTTPException:
    logger.error(f"Survey storage error: {exc}")
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="storage_unavailable")


@router.post("/submit", response_model=SurveySubmitResponse)
async def submit_survey(
    submission: SurveySubmission,
    service: SurveyService = Depends(get_survey_service),
) -> SurveySubmitResponse:
    """Store the answers and return the user's coupon (new or previously issued)."""
    try:
        result = await service.submit(submission.line_user_id, submission.answers())
    except CouponIssueError as exc:
        logger.error(f"Survey submission failed for LINE user {submission.line_user_id}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="submission_failed"
        ) from exc
    except SQLAlchemyError as exc:
        raise _storage_unavailable(exc) from exc

    return SurveySubmitResponse(
        success=True,
        coupon_code=result.coupon_code,
        already_submitted=result.already_submitted,
    )


@router.get("/status", response_model=SurveyStatusResponse)
async def get_survey_status(
    line_user_id: Annotated[LineUserId, Query()],
    service: SurveyService = Depends(get_survey_service),
) -> SurveyStatusResponse:
    """Report whether the LINE user has already submitted, with their coupon."""
    try:
        survey_status = await service.get_status(line_user_id)
    except SQLAlchemyError as exc:
        raise _storage_unavailable(exc) from exc

    return SurveyStatusResponse(
        already_submitted=survey_status.already_submitted,
        coupon_code=survey_status.coupon_code,
    )


@router.get(
    "/coupons/{coupon_code}",
    response_model=CouponLookupResponse,
    dependencies=[Depends(require_admin_key)],
)
async def lookup_coupon(
    coupon_code: str,
    service: SurveyService = Depends(get_survey_service),
) -> CouponLookupResponse:
    """Return the submission a coupon was issued for (operators only)."""
    try:
        record = await service.get_by_coupon_code(coupon_code)
    except SQLAlchemyError as exc:
        raise _storage_unavailable(exc) from exc

    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="coupon_not_found")

    return CouponLookupResponse(
        coupon_code=record.coupon_code,
        line_user_id=record.line_user_id,
        submitted_at=record.submitted_at,
        coupon_sent_at=record.coupon_sent_at,
    )
