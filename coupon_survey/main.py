"""FastAPI application entry point."""
import os
import sys
import time

# Ensure console streams can emit Unicode (Thai brand names) on Windows
for stream in (sys.stdout, sys.stderr):
    if hasattr(stream, "reconfigure"):
        stream.reconfigure(encoding="utf-8", errors="backslashreplace")

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from contextlib import asynccontextmanager

from coupon_survey.config import get_settings
from coupon_survey.database import Database
from coupon_survey.routers import health, survey
from coupon_survey.services.notifications import build_notification_sender
from coupon_survey.version import APP_VERSION

# Create logs directory if it doesn't exist
logs_dir = Path(os.getenv("LOG_DIR", "logs"))
logs_dir.mkdir(parents=True, exist_ok=True)

log_file = logs_dir / "coupon_survey.log"
sql_log_file = logs_dir / "coupon_survey_sql.log"
api_log_file = logs_dir / "coupon_survey_api.log"

log_format = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

# General logs: 1 MB per file, keep 5 backups
rotating_handler = RotatingFileHandler(log_file, maxBytes=1024 * 1024, backupCount=5, encoding='utf-8')
rotating_handler.setFormatter(log_format)

sql_rotating_handler = RotatingFileHandler(sql_log_file, maxBytes=1024 * 1024, backupCount=5, encoding='utf-8')
sql_rotating_handler.setFormatter(log_format)

# API request logs: 2 MB per file, keep 15 backups
api_rotating_handler = RotatingFileHandler(api_log_file, maxBytes=2 * 1024 * 1024, backupCount=15, encoding='utf-8')
api_rotating_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))

# Force=True overrides any existing configuration (e.g., from uvicorn)
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(),
        rotating_handler,
    ],
    force=True,
)

logger = logging.getLogger(__name__)

# Dedicated API request logger
api_logger = logging.getLogger("coupon_survey.api")
api_logger.handlers.clear()
api_logger.addHandler(api_rotating_handler)
api_logger.setLevel(logging.INFO)
api_logger.propagate = False

uvicorn_access_logger = logging.getLogger("uvicorn.access")
if rotating_handler not in uvicorn_access_logger.handlers:
    uvicorn_access_logger.addHandler(rotating_handler)

# SQL statements go to their own file only
sqlalchemy_logger = logging.getLogger("sqlalchemy.engine.Engine")
sqlalchemy_logger.handlers.clear()
sqlalchemy_logger.addHandler(sql_rotating_handler)
sqlalchemy_logger.setLevel(logging.INFO if os.getenv("SQL_ECHO") else logging.WARNING)
sqlalchemy_logger.propagate = False

settings = get_settings()


@asynccontextmanager
async def lifespan(app_instance: FastAPI):
    """Create the database and notification sender, and tear them down on shutdown."""
    logger.info("=" * 60)
    logger.info("Coupon Survey API Starting")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Database: {settings.database_url.split('@')[-1] if '@' in settings.database_url else 'SQLite'}")
    logger.info(f"Notification backend: {settings.notification_backend}")
    logger.info("=" * 60)

    database = Database(settings)
    notification_sender = build_notification_sender(settings)
    database.startup()

    try:
        if settings.create_schema_on_startup:
            await database.create_all()
            logger.info("Database schema created from model metadata")

        await notification_sender.startup()

        app_instance.state.database = database
        app_instance.state.notification_sender = notification_sender

        yield
    finally:
        try:
            await notification_sender.shutdown()
        except Exception as e:
            logger.error(f"Error closing notification sender: {e}")
        await database.shutdown()
        logger.info("Coupon Survey API Shutting Down... Goodbye!")


app = FastAPI(
    title="Coupon Survey API",
    description="Customer survey with one-time coupon issuance for the LINE mini-app",
    version=APP_VERSION,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors with user-friendly messages."""
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")

    errors = []
    for error in exc.errors():
        loc = error.get("loc", [])
        field_path = " -> ".join(str(x) for x in loc[1:]) if len(loc) > 1 else "unknown field"
        errors.append({
            "field": field_path,
            "message": error.get("msg", "Validation error"),
            "type": error.get("type", "unknown"),
        })

    return JSONResponse(
        status_code=422,
        content={"detail": "validation_error", "errors": errors},
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every API request and its outcome to the dedicated API log file."""
    start_time = time.time()

    client_ip = request.client.host if request.client else "unknown"
    method = request.method
    path = request.url.path
    request_id = f"{method}:{path}:{int(start_time * 1000) % 100000}"

    api_logger.info(f">> {request_id} | START | {method} {path} | IP: {client_ip}")

    try:
        response = await call_next(request)
    except Exception as e:
        process_time = time.time() - start_time
        api_logger.error(
            f"<< {request_id} | EXCEPTION | {method} {path} | "
            f"Error: {str(e)[:100]} | Time: {process_time:.3f}s | IP: {client_ip}"
        )
        raise

    process_time = time.time() - start_time
    api_logger.info(
        f"<< {request_id} | COMPLETE | {method} {path} | "
        f"Status: {response.status_code} | Time: {process_time:.3f}s | IP: {client_ip}"
    )
    return response


allowed_origins = os.getenv("ALLOWED_ORIGINS", "").split(",")
if not allowed_origins or allowed_origins == [""]:
    # Default origins for development + production fallback
    allowed_origins = [
        settings.frontend_url,
        "http://localhost:3000",   # Next.js dev server
        "http://127.0.0.1:3000",
    ]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(survey.router)
app.include_router(health.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Coupon Survey API",
        "version": APP_VERSION,
        "environment": settings.environment,
        "docs": "/docs",
    }
