"""
app/services/session_store.py

Import session store with sliding expiration.

Every successful read pushes ``expires_at`` to ``now + timeout``. Documents
written before expiry tracking existed ("legacy" sessions) are migrated on
first contact: their expiry is derived from ``created_at``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any

from app.config import get_session_settings
from app.domain.import_session import ImportSession, SessionStatus
from db.repositories.errors import FileStorageError, SessionStoreError
from db.repositories.session_backend import (
    FileSessionBackend,
    LocalUploadStorage,
    SessionBackend,
)

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CleanupResult:
    removed: int = 0
    migrated: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"removed": self.removed, "migrated": self.migrated, "errors": self.errors}


@dataclass(frozen=True)
class SessionStats:
    total: int = 0
    active: int = 0
    expired: int = 0
    legacy: int = 0
    unreadable: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "active": self.active,
            "expired": self.expired,
            "legacy": self.legacy,
            "unreadable": self.unreadable,
        }


class SessionStore:
    """
    Persists import sessions through a key-value backend.
    """

    def __init__(
        self,
        *,
        backend: SessionBackend,
        timeout_hours: float,
        upload_storage: LocalUploadStorage | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._backend = backend
        self._timeout = timedelta(hours=timeout_hours)
        self._upload_storage = upload_storage
        self._clock = clock

    @property
    def timeout(self) -> timedelta:
        return self._timeout

    @property
    def upload_storage(self) -> LocalUploadStorage | None:
        return self._upload_storage

    def create(self, session: ImportSession) -> ImportSession:
        now = self._clock()
        session.created_at = now
        session.last_accessed_at = now
        session.expires_at = now + self._timeout
        session.status = SessionStatus.PENDING
        self._write(session)
        logger.info("Created import session id=%s file=%s", session.id, session.file_name)
        return session

    def get_valid(self, session_id: str, *, touch: bool = True) -> ImportSession | None:
        """
        Load a live session and slide its expiry; None when absent, expired
        or unreadable.

        With ``touch=False`` the document is only read, so a status poll never
        writes over progress saved by a running import.
        """

        try:
            session = self._read(session_id)
        except SessionStoreError as exc:
            logger.warning("Unable to load session id=%s: %s", session_id, exc)
            return None
        if session is None:
            return None

        now = self._clock()
        if session.is_legacy:
            self._migrate_legacy(session, now=now)

        if self._is_expired(session, now=now):
            logger.info("Session expired id=%s expires_at=%s", session.id, session.expires_at)
            self.remove(session.id)
            return None

        if touch:
            session.last_accessed_at = now
            session.expires_at = now + self._timeout
            self._write(session)
        return session

    def save(self, session: ImportSession) -> None:
        """
        Persist in-place mutations (status, progress) without touching expiry.
        """

        self._write(session)

    def remove(self, session_id: str) -> bool:
        file_path: str | None = None
        try:
            payload = self._backend.read(session_id)
            if payload is not None:
                file_path = payload.get("file_path")
        except SessionStoreError as exc:
            logger.warning("Removing unreadable session id=%s: %s", session_id, exc)

        if file_path and self._upload_storage is not None:
            try:
                self._upload_storage.delete(file_path)
            except FileStorageError as exc:
                logger.warning("Failed to delete uploaded file for session id=%s: %s", session_id, exc)

        removed = self._backend.delete(session_id)
        if removed:
            logger.info("Removed import session id=%s", session_id)
        return removed

    def cleanup_expired(self) -> CleanupResult:
        """
        Remove expired sessions and migrate legacy ones.

        A failure on one document is logged and counted; the scan continues.
        """

        removed = 0
        migrated = 0
        errors = 0
        now = self._clock()

        for session_id in self._backend.keys():
            try:
                session = self._read(session_id)
                if session is None:
                    continue
                if session.is_legacy:
                    self._migrate_legacy(session, now=now)
                    if not self._is_expired(session, now=now):
                        migrated += 1
                        continue
                if self._is_expired(session, now=now):
                    self.remove(session_id)
                    removed += 1
            except Exception as exc:  # noqa: BLE001
                errors += 1
                logger.warning("Session cleanup skipped id=%s: %s", session_id, exc)

        logger.info(
            "Session cleanup finished removed=%d migrated=%d errors=%d",
            removed,
            migrated,
            errors,
        )
        return CleanupResult(removed=removed, migrated=migrated, errors=errors)

    def get_stats(self) -> SessionStats:
        total = 0
        active = 0
        expired = 0
        legacy = 0
        unreadable = 0
        now = self._clock()

        for session_id in self._backend.keys():
            total += 1
            try:
                session = self._read(session_id)
            except (SessionStoreError, KeyError, TypeError, ValueError):
                unreadable += 1
                continue
            if session is None:
                continue
            if session.is_legacy:
                legacy += 1
            elif self._is_expired(session, now=now):
                expired += 1
            else:
                active += 1

        return SessionStats(
            total=total,
            active=active,
            expired=expired,
            legacy=legacy,
            unreadable=unreadable,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _read(self, session_id: str) -> ImportSession | None:
        payload = self._backend.read(session_id)
        if payload is None:
            return None
        try:
            return ImportSession.from_dict(payload)
        except (KeyError, TypeError, ValueError) as exc:
            raise SessionStoreError(f"Malformed session document {session_id}: {exc}") from exc

    def _write(self, session: ImportSession) -> None:
        payload: dict[str, Any] = session.to_dict()
        self._backend.write(session.id, payload)

    def _migrate_legacy(self, session: ImportSession, *, now: datetime) -> None:
        created_at = session.created_at or now
        session.created_at = created_at
        session.last_accessed_at = created_at
        session.expires_at = created_at + self._timeout
        self._write(session)
        logger.info("Migrated legacy session id=%s expires_at=%s", session.id, session.expires_at)

    @staticmethod
    def _is_expired(session: ImportSession, *, now: datetime) -> bool:
        return session.expires_at is not None and now > session.expires_at


@lru_cache(maxsize=1)
def get_session_store() -> SessionStore:
    settings = get_session_settings()
    return SessionStore(
        backend=FileSessionBackend(settings.sessions_dir),
        timeout_hours=settings.timeout_hours,
        upload_storage=LocalUploadStorage(settings.sessions_dir / "uploads"),
    )
