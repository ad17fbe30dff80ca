"""Tests for request/response schema serialization and normalization."""
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from coupon_survey.schemas.survey import CouponLookupResponse, SurveySubmission


class TestCouponLookupSerialization:
    def test_naive_datetimes_serialize_as_utc_in_json_mode(self):
        response = CouponLookupResponse(
            coupon_code="240115ABCDEF",
            line_user_id="U1",
            submitted_at=datetime(2024, 1, 15, 9, 30),
            coupon_sent_at=datetime(2024, 1, 15, 9, 31),
        )

        data = response.model_dump(mode="json")

        assert data["submitted_at"] == "2024-01-15T09:30:00Z"
        assert data["coupon_sent_at"] == "2024-01-15T09:31:00Z"
        assert data["coupon_code"] == "240115ABCDEF"

    def test_aware_datetimes_are_converted_to_utc(self):
        bangkok = timezone(timedelta(hours=7))
        response = CouponLookupResponse(
            coupon_code="240115ABCDEF",
            line_user_id="U1",
            submitted_at=datetime(2024, 1, 15, 16, 30, tzinfo=bangkok),
        )

        data = response.model_dump(mode="json")

        assert data["submitted_at"] == "2024-01-15T09:30:00Z"
        assert data["coupon_sent_at"] is None

    def test_python_mode_matches_json_mode(self):
        response = CouponLookupResponse(
            coupon_code="240115ABCDEF",
            line_user_id="U1",
            submitted_at=datetime(2024, 1, 15, 9, 30),
        )

        assert response.model_dump()["submitted_at"] == "2024-01-15T09:30:00Z"


class TestSurveySubmission:
    def test_blank_line_user_id_rejected(self, submission_payload):
        submission_payload["line_user_id"] = "   "

        with pytest.raises(ValidationError):
            SurveySubmission(**submission_payload)

    def test_answers_excludes_identity(self, submission_payload):
        submission = SurveySubmission(**submission_payload)

        answers = submission.answers()

        assert not hasattr(answers, "line_user_id")
        assert answers.current_brand == "Mega We Care"
