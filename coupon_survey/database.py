"""Database connection and session management."""
import logging
from typing import AsyncIterator, Optional

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import declarative_base

from coupon_survey.config import Settings

logger = logging.getLogger(__name__)

# Base class for models
Base = declarative_base()


class Database:
    """Owns the async engine and session factory for one application instance.

    Constructed explicitly (normally in the FastAPI lifespan) and handed to
    whoever needs sessions, instead of living in module-level globals.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.url = settings.database_url
        self._engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None

    def _engine_kwargs(self) -> dict:
        """Build engine options for the configured database dialect."""
        kwargs = {
            "echo": False,
            "future": True,
            "pool_pre_ping": True,  # Verify connections before use
        }

        drivername = make_url(self.url).drivername
        if drivername.startswith("sqlite"):
            logger.debug("Using SQLite (no pool sizing or SSL)")
            return kwargs

        # Determine if we need SSL (for Heroku or other cloud databases)
        connect_args = {}
        needs_ssl = (
            "heroku" in self.url or
            "amazonaws" in self.url or
            self.settings.environment == "production"
        )
        if needs_ssl:
            connect_args["ssl"] = "require"
            logger.debug("SSL connection enabled (ssl=require)")

        pool_size = max(1, self.settings.db_pool_size)
        max_overflow = max(0, self.settings.db_max_overflow)
        if self.settings.environment == "production":
            # Keep production connection usage conservative to stay within hobby-tier limits
            pool_size = min(pool_size, 2)
            max_overflow = min(max_overflow, 2)

        kwargs.update(
            connect_args=connect_args,
            pool_recycle=3600,  # Recycle connections every hour
            pool_size=pool_size,
            max_overflow=max_overflow,
        )
        return kwargs

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database has not been started")
        return self._engine

    @property
    def is_started(self) -> bool:
        return self._engine is not None

    def startup(self) -> None:
        """Create the engine and session factory."""
        if self._engine is not None:
            return
        try:
            self._engine = create_async_engine(self.url, **self._engine_kwargs())
        except Exception as e:
            logger.error(f"Failed to create database engine: {e}")
            raise
        self._sessionmaker = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info(f"Database engine created for {make_url(self.url).drivername}")

    async def shutdown(self) -> None:
        """Dispose of the engine and every pooled connection."""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        logger.info("Database engine disposed")

    def session(self) -> AsyncSession:
        """Open a new session; use as ``async with database.session() as db``."""
        if self._sessionmaker is None:
            raise RuntimeError("Database has not been started")
        return self._sessionmaker()

    async def create_all(self) -> None:
        """Create all tables directly from model metadata (local development)."""
        import coupon_survey.models  # noqa: F401  (register models on Base)

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> bool:
        """Return True when a trivial query succeeds."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False
        return True


# Dependency for FastAPI
async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """FastAPI dependency to get a database session from the app's Database."""
    database: Database = request.app.state.database
    async with database.session() as session:
        try:
            yield session
        finally:
            await session.close()
