"""
tests/test_session_store.py

Pytest unit tests for SessionStore and the session backends.

Coverage
--------
- Creation stamps and sliding expiration on every valid read
- Expired sessions removed on read and by cleanup
- Legacy sessions (no expiry fields) migrated or removed
- Cleanup idempotence and tolerance of corrupt documents
- File backend: atomic writes, marker removal, backup files ignored
- Uploaded file removed together with its session
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from app.domain.import_session import ImportScope, ImportSession, SessionStatus
from app.services.session_store import SessionStore
from db.repositories.errors import FileStorageError, SessionStoreError
from db.repositories.session_backend import (
    FileSessionBackend,
    InMemorySessionBackend,
    LocalUploadStorage,
)

START = datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(START)


@pytest.fixture()
def backend() -> InMemorySessionBackend:
    return InMemorySessionBackend()


@pytest.fixture()
def store(backend: InMemorySessionBackend, clock: FakeClock) -> SessionStore:
    return SessionStore(backend=backend, timeout_hours=6, clock=clock)


def _session(session_id: str = "abc123") -> ImportSession:
    return ImportSession(
        id=session_id,
        file_name="plan.csv",
        scope=ImportScope(country="Kenya", financial_cycle="FC03 2025"),
        records=[{"Country": "Kenya"}],
    )


def _legacy_payload(session_id: str, created_at: datetime) -> dict[str, object]:
    payload = _session(session_id).to_dict()
    payload["created_at"] = created_at.isoformat()
    payload["expires_at"] = None
    payload["last_accessed_at"] = None
    return payload


# ---------------------------------------------------------------------------
# Create / read
# ---------------------------------------------------------------------------


class TestCreateAndRead:
    def test_create_sets_expiry_fields(self, store: SessionStore) -> None:
        session = store.create(_session())

        assert session.created_at == START
        assert session.last_accessed_at == START
        assert session.expires_at == START + timedelta(hours=6)
        assert session.status == SessionStatus.PENDING

    def test_round_trip_keeps_scope_and_records(self, store: SessionStore) -> None:
        store.create(_session())

        loaded = store.get_valid("abc123")

        assert loaded is not None
        assert loaded.scope == ImportScope(country="Kenya", financial_cycle="FC03 2025")
        assert loaded.records == [{"Country": "Kenya"}]

    def test_unknown_session_returns_none(self, store: SessionStore) -> None:
        assert store.get_valid("missing") is None

    def test_invalid_session_id_returns_none(self, store: SessionStore) -> None:
        assert store.get_valid("../etc/passwd") is None

    def test_read_slides_expiry(self, store: SessionStore, clock: FakeClock) -> None:
        store.create(_session())

        clock.advance(hours=5)
        first = store.get_valid("abc123")
        clock.advance(hours=5)
        second = store.get_valid("abc123")

        assert first is not None and second is not None
        assert second.last_accessed_at == START + timedelta(hours=10)
        assert second.expires_at == second.last_accessed_at + timedelta(hours=6)

    def test_expires_at_always_equals_last_access_plus_timeout(
        self, store: SessionStore, clock: FakeClock
    ) -> None:
        store.create(_session())
        for _ in range(4):
            clock.advance(hours=2, minutes=30)
            session = store.get_valid("abc123")
            assert session is not None
            assert session.expires_at - session.last_accessed_at == store.timeout

    def test_untouched_read_keeps_expiry(self, store: SessionStore, clock: FakeClock) -> None:
        store.create(_session())

        clock.advance(hours=1)
        session = store.get_valid("abc123", touch=False)

        assert session is not None
        assert session.expires_at == START + timedelta(hours=6)

    def test_save_does_not_touch_expiry(self, store: SessionStore, clock: FakeClock) -> None:
        session = store.create(_session())
        clock.advance(hours=1)
        session.status = SessionStatus.VALIDATED

        store.save(session)
        reloaded = store.get_valid("abc123", touch=False)

        assert reloaded is not None
        assert reloaded.status == SessionStatus.VALIDATED
        assert reloaded.expires_at == START + timedelta(hours=6)

    def test_expired_session_is_removed_on_read(
        self, store: SessionStore, backend: InMemorySessionBackend, clock: FakeClock
    ) -> None:
        store.create(_session())

        clock.advance(hours=6, seconds=1)

        assert store.get_valid("abc123") is None
        assert backend.keys() == []

    def test_corrupt_document_reads_as_missing(
        self, store: SessionStore, backend: InMemorySessionBackend
    ) -> None:
        backend.write_raw("broken", "{not json")

        assert store.get_valid("broken") is None


# ---------------------------------------------------------------------------
# Legacy sessions
# ---------------------------------------------------------------------------


class TestLegacySessions:
    def test_recent_legacy_session_is_migrated_on_read(
        self, store: SessionStore, backend: InMemorySessionBackend, clock: FakeClock
    ) -> None:
        backend.write("old1", _legacy_payload("old1", START - timedelta(hours=2)))

        session = store.get_valid("old1")

        assert session is not None
        assert session.is_legacy is False
        assert session.expires_at == clock.now + timedelta(hours=6)

    def test_stale_legacy_session_is_removed_on_read(
        self, store: SessionStore, backend: InMemorySessionBackend
    ) -> None:
        backend.write("old2", _legacy_payload("old2", START - timedelta(hours=7)))

        assert store.get_valid("old2") is None
        assert backend.keys() == []

    def test_cleanup_migrates_recent_and_removes_stale_legacy(
        self, store: SessionStore, backend: InMemorySessionBackend
    ) -> None:
        backend.write("recent", _legacy_payload("recent", START - timedelta(hours=1)))
        backend.write("stale", _legacy_payload("stale", START - timedelta(days=2)))

        result = store.cleanup_expired()

        assert result.migrated == 1
        assert result.removed == 1
        assert backend.keys() == ["recent"]
        migrated = backend.read("recent")
        assert migrated is not None
        assert migrated["expires_at"] == (START + timedelta(hours=5)).isoformat()


# ---------------------------------------------------------------------------
# Cleanup
# ---------------------------------------------------------------------------


class TestCleanup:
    def test_cleanup_removes_only_expired(
        self, store: SessionStore, backend: InMemorySessionBackend, clock: FakeClock
    ) -> None:
        store.create(_session("early"))
        clock.advance(hours=4)
        store.create(_session("late"))
        clock.advance(hours=3)

        result = store.cleanup_expired()

        assert result.removed == 1
        assert result.errors == 0
        assert backend.keys() == ["late"]

    def test_cleanup_is_idempotent(self, store: SessionStore, clock: FakeClock) -> None:
        store.create(_session("one"))
        clock.advance(hours=7)

        first = store.cleanup_expired()
        second = store.cleanup_expired()

        assert first.removed == 1
        assert second.removed == 0
        assert second.migrated == 0
        assert second.errors == 0

    def test_corrupt_document_is_skipped_and_counted(
        self, store: SessionStore, backend: InMemorySessionBackend, clock: FakeClock
    ) -> None:
        backend.write_raw("broken", "[]")
        store.create(_session("expired"))
        clock.advance(hours=7)

        result = store.cleanup_expired()

        assert result.removed == 1
        assert result.errors == 1
        assert backend.keys() == ["broken"]

    def test_stats_classify_sessions(
        self, store: SessionStore, backend: InMemorySessionBackend, clock: FakeClock
    ) -> None:
        store.create(_session("expired"))
        clock.advance(hours=7)
        store.create(_session("active"))
        backend.write("legacy", _legacy_payload("legacy", clock.now))
        backend.write_raw("broken", "{")

        stats = store.get_stats()

        assert stats.to_dict() == {
            "total": 4,
            "active": 1,
            "expired": 1,
            "legacy": 1,
            "unreadable": 1,
        }


# ---------------------------------------------------------------------------
# File backend and upload storage
# ---------------------------------------------------------------------------


class TestFileSessionBackend:
    def test_write_and_read(self, tmp_path: Path) -> None:
        backend = FileSessionBackend(tmp_path)

        backend.write("abc", {"id": "abc", "value": 1})

        assert backend.read("abc") == {"id": "abc", "value": 1}
        assert (tmp_path / "abc.json").exists()
        assert list(tmp_path.glob("*.tmp")) == []

    def test_backup_files_are_not_listed(self, tmp_path: Path) -> None:
        backend = FileSessionBackend(tmp_path)
        backend.write("abc", {"id": "abc"})
        (tmp_path / "abc-backup.json").write_text(json.dumps({"id": "abc-backup"}), encoding="utf-8")

        assert backend.keys() == ["abc"]

    def test_delete_removes_markers(self, tmp_path: Path) -> None:
        backend = FileSessionBackend(tmp_path)
        backend.write("abc", {"id": "abc"})
        (tmp_path / "abc.marker").write_text("", encoding="utf-8")
        (tmp_path / "abc-marker").write_text("", encoding="utf-8")

        assert backend.delete("abc") is True
        assert list(tmp_path.iterdir()) == []
        assert backend.delete("abc") is False

    def test_corrupt_file_raises_store_error(self, tmp_path: Path) -> None:
        backend = FileSessionBackend(tmp_path)
        (tmp_path / "abc.json").write_text("{oops", encoding="utf-8")

        with pytest.raises(SessionStoreError):
            backend.read("abc")

    def test_invalid_key_is_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(SessionStoreError):
            FileSessionBackend(tmp_path).write("../escape", {})

    def test_missing_directory_has_no_keys(self, tmp_path: Path) -> None:
        assert FileSessionBackend(tmp_path / "absent").keys() == []


class TestUploadStorage:
    def test_removing_session_deletes_uploaded_file(self, tmp_path: Path, clock: FakeClock) -> None:
        storage = LocalUploadStorage(tmp_path / "uploads")
        store = SessionStore(
            backend=FileSessionBackend(tmp_path),
            timeout_hours=6,
            upload_storage=storage,
            clock=clock,
        )
        saved = storage.save(session_id="abc", file_name="plan.csv", content=b"Country\nKenya\n")
        session = _session("abc")
        session.file_path = str(saved)
        store.create(session)

        assert store.remove("abc") is True
        assert not saved.exists()

    def test_refuses_to_delete_outside_root(self, tmp_path: Path) -> None:
        storage = LocalUploadStorage(tmp_path / "uploads")
        outside = tmp_path / "other.csv"
        outside.write_text("x", encoding="utf-8")

        with pytest.raises(FileStorageError):
            storage.delete(outside)
        assert outside.exists()

    def test_file_name_is_sanitised(self, tmp_path: Path) -> None:
        storage = LocalUploadStorage(tmp_path)

        saved = storage.save(session_id="abc", file_name="../../plan 2025.csv", content=b"x")

        assert saved.parent == tmp_path
        assert saved.name == "abc_plan 2025.csv"
