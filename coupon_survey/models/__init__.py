"""Database models."""
from coupon_survey.models.survey_response import SurveyResponse

__all__ = [
    "SurveyResponse",
]
