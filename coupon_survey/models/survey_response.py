"""Survey response model: one row per LINE user, carrying the issued coupon."""
from __future__ import annotations

import uuid
from datetime import datetime, UTC

from sqlalchemy import Column, DateTime, Index, JSON, String, Text, Uuid, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB

from coupon_survey.database import Base

LINE_USER_CONSTRAINT = "uq_survey_responses_line_user_id"
COUPON_CODE_CONSTRAINT = "uq_survey_responses_coupon_code"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SurveyResponse(Base):
    """Persisted survey answers and the coupon issued for them."""

    __tablename__ = "survey_responses"

    response_id = Column(Uuid(), primary_key=True, default=uuid.uuid4)
    line_user_id = Column(String(64), nullable=False)

    age_range = Column(String(16), nullable=False)
    gender = Column(String(16), nullable=False)
    channels = Column(JSON().with_variant(JSONB(astext_type=Text()), "postgresql"), nullable=False)
    channel_other_text = Column(String(200), nullable=True)
    price_range = Column(String(16), nullable=False)
    current_brand = Column(String(200), nullable=False)

    coupon_code = Column(String(12), nullable=False)
    coupon_sent_at = Column(DateTime(timezone=True), nullable=True)

    submitted_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now())
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now(), onupdate=_utcnow
    )

    __table_args__ = (
        UniqueConstraint("line_user_id", name=LINE_USER_CONSTRAINT),
        UniqueConstraint("coupon_code", name=COUPON_CODE_CONSTRAINT),
        Index("ix_survey_responses_submitted_at", "submitted_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<SurveyResponse(response_id={self.response_id}, line_user_id={self.line_user_id}, "
            f"coupon_code={self.coupon_code})>")
