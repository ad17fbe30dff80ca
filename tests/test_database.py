"""Tests for the Database engine wrapper."""
import pytest
from sqlalchemy import inspect

from coupon_survey.config import get_settings
from coupon_survey.database import Database


def _database(url):
    return Database(get_settings().model_copy(update={"database_url": url}))


def test_session_before_startup_raises():
    database = _database("sqlite+aiosqlite:///:memory:")

    assert database.is_started is False
    with pytest.raises(RuntimeError):
        database.session()
    with pytest.raises(RuntimeError):
        database.engine


def test_sqlite_engine_has_no_pool_sizing():
    kwargs = _database("sqlite+aiosqlite:///./x.db")._engine_kwargs()

    assert "pool_size" not in kwargs
    assert kwargs["pool_pre_ping"] is True


def test_production_postgres_engine_is_conservative():
    settings = get_settings().model_copy(update={
        "database_url": "postgresql+asyncpg://u:p@db.example.com/survey",
        "environment": "production",
        "db_pool_size": 10,
        "db_max_overflow": 10,
    })

    kwargs = Database(settings)._engine_kwargs()

    assert kwargs["pool_size"] == 2
    assert kwargs["max_overflow"] == 2
    assert kwargs["connect_args"] == {"ssl": "require"}


async def test_create_all_and_ping(tmp_path):
    database = _database(f"sqlite+aiosqlite:///{tmp_path}/schema.db")
    database.startup()
    try:
        await database.create_all()
        assert await database.ping() is True

        async with database.engine.connect() as conn:
            table_names = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
            unique_names = await conn.run_sync(
                lambda sync_conn: {
                    constraint["name"]
                    for constraint in inspect(sync_conn).get_unique_constraints("survey_responses")
                }
            )
    finally:
        await database.shutdown()

    assert "survey_responses" in table_names
    assert unique_names == {"uq_survey_responses_line_user_id", "uq_survey_responses_coupon_code"}
    assert database.is_started is False


async def test_ping_reports_unreachable_database(tmp_path):
    database = _database(f"sqlite+aiosqlite:///{tmp_path}/missing/dir/survey.db")
    database.startup()
    try:
        assert await database.ping() is False
    finally:
        await database.shutdown()


async def test_startup_and_shutdown_are_idempotent():
    database = _database("sqlite+aiosqlite:///:memory:")
    database.startup()
    engine = database.engine
    database.startup()
    assert database.engine is engine

    await database.shutdown()
    await database.shutdown()
    assert database.is_started is False


async def test_health_reports_unavailable_database(client, test_app, tmp_path):
    broken = _database(f"sqlite+aiosqlite:///{tmp_path}/missing/dir/survey.db")
    broken.startup()
    test_app.state.database = broken
    try:
        response = await client.get("/health")
    finally:
        await broken.shutdown()

    assert response.status_code == 503
