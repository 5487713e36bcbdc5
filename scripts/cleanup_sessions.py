"""
Remove expired import sessions from CLI.

Prints session statistics before and after the sweep. Exits with status 1
when the sweep fails or any session could not be processed.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path

from app.config import get_session_settings
from app.services.session_store import SessionStore
from db.repositories.session_backend import FileSessionBackend, LocalUploadStorage

logger = logging.getLogger("cleanup_sessions")


def _build_store(sessions_dir: Path) -> SessionStore:
    settings = get_session_settings()
    return SessionStore(
        backend=FileSessionBackend(sessions_dir),
        timeout_hours=settings.timeout_hours,
        upload_storage=LocalUploadStorage(sessions_dir / "uploads"),
    )


def main() -> int:
    parser = argparse.ArgumentParser(description="Clean up expired game plan import sessions.")
    parser.add_argument(
        "--dry-run",
        dest="dry_run",
        action="store_true",
        help="Only print session statistics; do not remove or migrate anything.",
    )
    parser.add_argument(
        "--sessions-dir",
        dest="sessions_dir",
        default=None,
        help="Session directory to sweep. Defaults to SESSIONS_DIR.",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    sessions_dir = Path(args.sessions_dir) if args.sessions_dir else get_session_settings().sessions_dir
    store = _build_store(sessions_dir)

    before = store.get_stats()
    print(json.dumps({"sessions_dir": str(sessions_dir), "before": before.to_dict()}, indent=2))
    if args.dry_run:
        return 0

    try:
        result = store.cleanup_expired()
    except Exception:
        logger.exception("Session cleanup failed sessions_dir=%s", sessions_dir)
        return 1

    after = store.get_stats()
    payload = {
        "removed": result.removed,
        "migrated": result.migrated,
        "errors": result.errors,
        "after": after.to_dict(),
    }
    print(json.dumps(payload, indent=2))
    return 1 if result.errors else 0


if __name__ == "__main__":
    raise SystemExit(main())
