"""Pytest configuration and fixtures."""
import os
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config as AlembicConfig
from httpx import AsyncClient, ASGITransport
from sqlalchemy import delete

BASE_DIR = Path(__file__).resolve().parent.parent
TEST_DB_PATH = BASE_DIR / "test.db"

# Ensure the application uses a dedicated SQLite database during tests
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["NOTIFICATION_BACKEND"] = "log"
os.environ["ADMIN_API_KEY"] = "test-admin-key"
os.environ["ENVIRONMENT"] = "test"
os.environ["COUPON_TIMEZONE"] = "UTC"

from coupon_survey.config import get_settings
from coupon_survey.database import Database
from coupon_survey.main import app
from coupon_survey.models import SurveyResponse
from coupon_survey.schemas.survey import SurveyAnswers
from coupon_survey.services.notifications import RecordingNotificationSender
from coupon_survey.services.survey_service import SurveyService

settings = get_settings()


def _remove_test_db():
    if TEST_DB_PATH.exists():
        try:
            TEST_DB_PATH.unlink()
        except PermissionError:
            # On Windows the file may still be in use; the next run cleans it up
            pass


@pytest.fixture(scope="session", autouse=True)
def apply_migrations():
    """Apply database migrations against the test database."""
    _remove_test_db()

    alembic_cfg = AlembicConfig(str(BASE_DIR / "alembic.ini"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.database_url)
    command.upgrade(alembic_cfg, "head")

    yield

    _remove_test_db()


@pytest.fixture
async def database():
    """Started Database against the migrated test file, emptied before each test."""
    db = Database(settings)
    db.startup()
    async with db.session() as session:
        await session.execute(delete(SurveyResponse))
        await session.commit()

    yield db

    await db.shutdown()


@pytest.fixture
async def db_session(database):
    """Create test database session."""
    async with database.session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def notifier():
    """Recording sender that reports successful delivery."""
    return RecordingNotificationSender()


@pytest.fixture
def survey_service(db_session, notifier):
    return SurveyService(db_session, notifier, settings)


@pytest.fixture
def valid_answers():
    return SurveyAnswers(
        age_range="25-34",
        gender="female",
        channels=["instagram", "other"],
        channel_other_text="LINE VOOM",
        price_range="500-1500",
        current_brand="Blackmores",
    )


@pytest.fixture
def submission_payload():
    return {
        "line_user_id": "U1234567890abcdef",
        "age_range": "35-44",
        "gender": "male",
        "channels": ["facebook", "ecommerce"],
        "channel_other_text": None,
        "price_range": "1500-2500",
        "current_brand": "Mega We Care",
    }


@pytest.fixture
async def test_app(database, notifier):
    """App wired to the test database and a recording sender (no lifespan run)."""
    app.state.database = database
    app.state.notification_sender = notifier
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client(test_app):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as http_client:
        yield http_client
