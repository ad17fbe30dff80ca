"""Service layer."""
from coupon_survey.services.coupon import generate_coupon_code, is_valid_coupon_code
from coupon_survey.services.notifications import (
    LineNotificationSender,
    LoggingNotificationSender,
    NotificationError,
    NotificationSender,
    RecordingNotificationSender,
    build_notification_sender,
)
from coupon_survey.services.survey_service import (
    CouponIssueError,
    SurveyService,
    SurveyServiceError,
    SubmissionResult,
    SurveyStatus,
)
from coupon_survey.services.survey_wizard import SurveyWizard, WizardError, WizardState
