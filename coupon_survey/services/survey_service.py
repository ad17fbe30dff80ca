"""Survey submission and coupon issuance.

One record per LINE user. The unique constraint on ``line_user_id`` is the
only guard against concurrent duplicate submissions: whichever insert commits
first wins, and every other caller re-reads the winner's coupon. Coupon
delivery happens after the commit and never undoes it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from coupon_survey.config import Settings, get_settings
from coupon_survey.models.survey_response import (
    COUPON_CODE_CONSTRAINT,
    LINE_USER_CONSTRAINT,
    SurveyResponse,
)
from coupon_survey.schemas.survey import SurveyAnswers
from coupon_survey.services.coupon import generate_coupon_code, is_valid_coupon_code, normalize_coupon_code
from coupon_survey.services.notifications import NotificationSender

logger = logging.getLogger(__name__)

# Markers identifying which unique constraint an IntegrityError came from.
# Postgres reports the constraint name, SQLite reports table.column.
_CONSTRAINT_MARKERS = {
    LINE_USER_CONSTRAINT: (LINE_USER_CONSTRAINT, "survey_responses.line_user_id"),
    COUPON_CODE_CONSTRAINT: (COUPON_CODE_CONSTRAINT, "survey_responses.coupon_code"),
}


class SurveyServiceError(RuntimeError):
    """Base exception for survey service errors."""


class CouponIssueError(SurveyServiceError):
    """Raised when no unique coupon code could be stored for a submission."""


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of a submission: the user's coupon and how it was obtained."""

    coupon_code: str
    already_submitted: bool
    notification_sent: bool = False


@dataclass(frozen=True)
class SurveyStatus:
    """Whether a user has submitted, and their coupon if so."""

    already_submitted: bool
    coupon_code: Optional[str] = None


def violated_constraint(exc: IntegrityError) -> Optional[str]:
    """Return the name of the survey unique constraint an insert violated, if known."""
    orig = exc.orig
    candidates = []

    # psycopg exposes diag.constraint_name, asyncpg keeps it on the chained driver error
    diag = getattr(orig, "diag", None)
    if diag is not None:
        candidates.append(getattr(diag, "constraint_name", None))
    candidates.append(getattr(getattr(orig, "__cause__", None), "constraint_name", None))
    for name in candidates:
        if name in _CONSTRAINT_MARKERS:
            return name

    # Only the driver message: str(exc) also embeds the INSERT statement
    message = str(orig).lower()
    for name, markers in _CONSTRAINT_MARKERS.items():
        if any(marker in message for marker in markers):
            return name
    return None


class SurveyService:
    """Stores survey answers and issues one coupon per LINE user."""

    def __init__(
        self,
        db: AsyncSession,
        notifier: NotificationSender,
        settings: Optional[Settings] = None,
    ):
        """Initialize survey service.

        Args:
            db: Database session
            notifier: Sender used for the post-commit coupon push
            settings: Application settings (defaults to the cached settings)
        """
        self.db = db
        self.notifier = notifier
        self.settings = settings or get_settings()

    async def get_by_line_user_id(self, line_user_id: str) -> Optional[SurveyResponse]:
        result = await self.db.execute(
            select(SurveyResponse).where(SurveyResponse.line_user_id == line_user_id)
        )
        return result.scalar_one_or_none()

    async def get_by_coupon_code(self, coupon_code: str) -> Optional[SurveyResponse]:
        """Look up the record a coupon was issued for; malformed codes never hit the database."""
        code = normalize_coupon_code(coupon_code)
        if not is_valid_coupon_code(code):
            return None
        result = await self.db.execute(
            select(SurveyResponse).where(SurveyResponse.coupon_code == code)
        )
        return result.scalar_one_or_none()

    async def get_status(self, line_user_id: str) -> SurveyStatus:
        existing = await self.get_by_line_user_id(line_user_id)
        if existing is None:
            return SurveyStatus(already_submitted=False)
        return SurveyStatus(already_submitted=True, coupon_code=existing.coupon_code)

    async def submit(self, line_user_id: str, answers: SurveyAnswers) -> SubmissionResult:
        """Persist a submission and issue its coupon, or return the coupon already issued.

        Raises:
            ValueError: If line_user_id is empty
            CouponIssueError: If every generated coupon code collided
            SQLAlchemyError: If the database is unavailable
        """
        if not line_user_id or not line_user_id.strip():
            raise ValueError("line_user_id_required")

        existing = await self.get_by_line_user_id(line_user_id)
        if existing is not None:
            logger.info(f"LINE user {line_user_id} resubmitted survey, returning existing coupon")
            return SubmissionResult(coupon_code=existing.coupon_code, already_submitted=True)

        record, created = await self._insert_response(line_user_id, answers)
        if not created:
            return SubmissionResult(coupon_code=record.coupon_code, already_submitted=True)

        coupon_code = record.coupon_code
        logger.info(f"Stored survey response {record.response_id} for LINE user {line_user_id}")
        notification_sent = await self._deliver_coupon(record)
        return SubmissionResult(
            coupon_code=coupon_code,
            already_submitted=False,
            notification_sent=notification_sent,
        )

    async def _insert_response(
        self, line_user_id: str, answers: SurveyAnswers
    ) -> tuple[SurveyResponse, bool]:
        """Insert a new record, retrying coupon collisions and resolving identity races.

        Returns:
            The stored record and whether this call created it. When another
            request committed first, its record is returned with ``False``.
        """
        max_attempts = self.settings.coupon_max_attempts

        for attempt in range(1, max_attempts + 1):
            now = datetime.now(UTC)
            record = SurveyResponse(
                line_user_id=line_user_id,
                age_range=answers.age_range.value,
                gender=answers.gender.value,
                channels=[channel.value for channel in answers.channels],
                channel_other_text=answers.channel_other_text,
                price_range=answers.price_range.value,
                current_brand=answers.current_brand,
                coupon_code=generate_coupon_code(tz_name=self.settings.coupon_timezone),
                submitted_at=now,
            )
            self.db.add(record)
            try:
                await self.db.commit()
            except IntegrityError as exc:
                await self.db.rollback()
                constraint = violated_constraint(exc)

                if constraint == LINE_USER_CONSTRAINT:
                    winner = await self.get_by_line_user_id(line_user_id)
                    if winner is None:
                        raise
                    logger.info(
                        f"Concurrent survey submission for LINE user {line_user_id}; "
                        f"returning coupon {winner.coupon_code} from the first commit"
                    )
                    return winner, False

                if constraint == COUPON_CODE_CONSTRAINT:
                    logger.warning(
                        f"Coupon code collision on attempt {attempt}/{max_attempts} "
                        f"for LINE user {line_user_id}, regenerating"
                    )
                    continue

                raise
            return record, True

        logger.error(f"Could not issue a unique coupon for LINE user {line_user_id} after {max_attempts} attempts")
        raise CouponIssueError("coupon_generation_exhausted")

    async def _deliver_coupon(self, record: SurveyResponse) -> bool:
        """Push the coupon once and stamp coupon_sent_at on success. Never raises."""
        response_id = record.response_id
        try:
            delivered = await self.notifier.deliver(record.line_user_id, record.coupon_code)
        except Exception as exc:
            logger.error(f"Coupon delivery to LINE user {record.line_user_id} raised: {exc}")
            return False

        if not delivered:
            logger.warning(
                f"Coupon {record.coupon_code} stored but not delivered to LINE user {record.line_user_id}"
            )
            return False

        record.coupon_sent_at = datetime.now(UTC)
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error(f"Failed to stamp coupon_sent_at for response {response_id}: {exc}")
        return True
