"""Pydantic schemas for survey submission and status endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Optional

from pydantic import Field, StringConstraints, field_validator

from coupon_survey.models.enums import AgeRange, Channel, Gender, PriceRange
from coupon_survey.schemas.base import BaseSchema


# Opaque LINE user id; surrounding whitespace is dropped before the length check
LineUserId = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=64)]


def _strip(value):
    if isinstance(value, str):
        return value.strip()
    return value


class SurveyAnswers(BaseSchema):
    """The five-step questionnaire answers."""

    age_range: AgeRange
    gender: Gender
    channels: list[Channel] = Field(..., min_length=1)
    channel_other_text: Optional[str] = Field(default=None, max_length=200)
    price_range: PriceRange
    current_brand: str = Field(..., min_length=1, max_length=200)

    @field_validator("channels")
    @classmethod
    def dedupe_channels(cls, value: list[Channel]) -> list[Channel]:
        """Drop repeated channels, keeping first-seen order."""
        return list(dict.fromkeys(value))

    @field_validator("channel_other_text", mode="before")
    @classmethod
    def blank_other_text_to_none(cls, value):
        value = _strip(value)
        return value or None

    @field_validator("current_brand", mode="before")
    @classmethod
    def strip_brand(cls, value):
        return _strip(value)


class SurveySubmission(SurveyAnswers):
    """Survey submission payload from the mini-app."""

    line_user_id: LineUserId

    def answers(self) -> SurveyAnswers:
        """Return only the questionnaire answers."""
        return SurveyAnswers.model_validate(self.model_dump(exclude={"line_user_id"}, mode="python"))


class SurveySubmitResponse(BaseSchema):
    """Response returned after handling a survey submission."""

    success: bool = True
    coupon_code: str
    already_submitted: bool = False


class SurveyStatusResponse(BaseSchema):
    """Submission state for a LINE user."""

    already_submitted: bool
    coupon_code: Optional[str] = None


class CouponLookupResponse(BaseSchema):
    """Operator view of an issued coupon."""

    coupon_code: str
    line_user_id: str
    submitted_at: datetime
    coupon_sent_at: Optional[datetime] = None
