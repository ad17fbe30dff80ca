"""API routers."""
from coupon_survey.routers import health, survey

__all__ = [
    "health",
    "survey",
]
