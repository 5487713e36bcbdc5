"""
app/scheduler/jobs.py

APScheduler-based housekeeping for import sessions.

Schedule
--------
  session_cleanup: once at startup, then every
                    ``SESSION_CLEANUP_INTERVAL_HOURS`` (default 6h), removing
                    expired sessions and migrating legacy ones.

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
Start it on app boot; shut it down gracefully on app shutdown.
The scheduler is wired into FastAPI via the ``lifespan`` context in main.py.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import get_session_settings
from app.services.session_store import CleanupResult, get_session_store

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Job: Session cleanup
# ---------------------------------------------------------------------------


def run_session_cleanup() -> CleanupResult | None:
    """
    Sweep the session store once. Failures are logged, never raised, so the
    next run is still scheduled.
    """
    logger.info("Scheduler: session_cleanup starting")
    try:
        result = get_session_store().cleanup_expired()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Scheduler: session_cleanup failed: %s", exc)
        return None

    logger.info(
        "Scheduler: session_cleanup complete removed=%d migrated=%d errors=%d",
        result.removed,
        result.migrated,
        result.errors,
    )
    return result


# ---------------------------------------------------------------------------
# Scheduler factory
# ---------------------------------------------------------------------------


def build_scheduler() -> BackgroundScheduler:
    """
    Build and register all periodic jobs.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    The caller must call ``.start()`` and ``.shutdown(wait=True)`` at the
    appropriate lifecycle points.
    """
    settings = get_session_settings()
    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler.add_job(
        run_session_cleanup,
        trigger="interval",
        hours=settings.cleanup_interval_hours,
        id="session_cleanup",
        name="Import session cleanup",
        replace_existing=True,
        misfire_grace_time=3600,
        coalesce=True,
        next_run_time=datetime.now(tz=timezone.utc),
    )

    return scheduler
