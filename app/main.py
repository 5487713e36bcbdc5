from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI

logger = logging.getLogger(__name__)

NUMERIC_SETTINGS = (
    "SESSION_TIMEOUT_HOURS",
    "SESSION_CLEANUP_INTERVAL_HOURS",
    "VALIDATION_CHUNK_SIZE",
    "VALIDATION_LARGE_DATASET_THRESHOLD",
    "VALIDATION_MAX_RETAINED_ISSUES",
    "IMPORT_BATCH_SIZE",
    "IMPORT_MAX_UPLOAD_BYTES",
)


def _validate_env() -> None:
    """
    Validate environment variables before anything touches the database.

    Collects every problem and raises one RuntimeError, so a bad deployment
    is fixed in a single restart.

    Rules:
    - DATABASE_URL, when set, must be a PostgreSQL or SQLite URL.
    - Numeric session, validation and import settings must be positive numbers.
    """

    from db.config import load_env_files, resolve_database_url

    load_env_files()

    errors: list[str] = []

    try:
        resolve_database_url()
    except RuntimeError as exc:
        errors.append(str(exc))

    for name in NUMERIC_SETTINGS:
        raw = os.getenv(name, "").strip()
        if not raw:
            continue
        try:
            value = float(raw)
        except ValueError:
            errors.append(f"{name}='{raw}' is not a number.")
            continue
        if value <= 0:
            errors.append(f"{name}='{raw}' must be greater than zero.")

    if errors:
        raise RuntimeError(
            "Startup validation failed: invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    if os.getenv("SQL_ECHO", "").strip().lower() not in {"1", "true", "yes", "on"}:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def _verify_database() -> None:
    """
    Fail startup when the database is unreachable or migrations are missing.

    Tables are never created here; run ``alembic upgrade head`` first.
    """
    from sqlalchemy import inspect as sa_inspect, text

    import db.models  # noqa: F401  registers every table on Base.metadata
    from db.base import Base
    from db.session import get_engine

    engine = get_engine()
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc
    logger.info("Database connectivity confirmed dialect=%s", engine.dialect.name)

    missing = sorted(set(Base.metadata.tables) - set(sa_inspect(engine).get_table_names()))
    if missing:
        logger.critical(
            "Media planning tables missing from the database: %s. Run 'alembic upgrade head' and restart.",
            ", ".join(missing),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing ({', '.join(missing)}). "
            "Run migrations and restart."
        )
    logger.info("Database schema validated tables=%d", len(Base.metadata.tables))


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Verify the database, report session store state and run the cleanup scheduler."""
    _verify_database()

    from app.scheduler.jobs import build_scheduler
    from app.services.session_store import get_session_store

    stats = get_session_store().get_stats()
    logger.info(
        "Session store ready total=%d active=%d expired=%d legacy=%d",
        stats.total,
        stats.active,
        stats.expired,
        stats.legacy,
    )

    scheduler = build_scheduler()
    scheduler.start()
    logger.info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
    try:
        yield
    finally:
        scheduler.shutdown(wait=True)
        logger.info("Scheduler shut down")


def create_app() -> FastAPI:
    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Media Plan Import API",
        description="Upload, validate and import media game plans from CSV or Excel files.",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import game_plan_import_router

    application.include_router(game_plan_import_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
