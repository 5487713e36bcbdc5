"""
app/services/game_plan_import_service.py

Orchestrates the game plan import lifecycle: upload, mapping, validation,
background commit and progress tracking.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from functools import lru_cache
from typing import Any, Protocol

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session, sessionmaker

from app.config import ImportSettings, get_import_settings, get_validation_settings
from app.domain.import_session import (
    ImportProgress,
    ImportScope,
    ImportSession,
    SessionStatus,
)
from app.mappers.field_mapper import FieldMapper
from app.repositories.master_data_repository import MasterDataRepository
from app.services.import_committer import ImportCommitter
from app.services.import_file_parser import ImportFileError, ParsedUpload, parse_upload
from app.services.master_data_service import MasterDataService
from app.services.session_store import SessionStore, get_session_store
from app.services.validation_service import ValidationRun, ValidationService, get_validation_service
from app.validators.game_plan_validator import GamePlanRowValidator
from db.repositories.errors import FileStorageError

logger = logging.getLogger(__name__)

SESSION_NOT_FOUND_MESSAGE = "Session not found or has expired. Please upload a file again."


class ImportTaskExecutor(Protocol):
    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        ...


class FastAPIBackgroundTaskExecutor:
    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self._background_tasks = background_tasks

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        self._background_tasks.add_task(task, *args, **kwargs)


class InlineTaskExecutor:
    """
    Runs the task immediately; used by scripts and tests.
    """

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        task(*args, **kwargs)


class SessionNotFoundError(LookupError):
    """
    Raised when a session id is unknown, expired or unreadable.
    """

    def __init__(self, session_id: str) -> None:
        super().__init__(SESSION_NOT_FOUND_MESSAGE)
        self.session_id = session_id


class ImportStateError(RuntimeError):
    """
    Raised when an import is requested for a session that is already
    importing or imported.
    """


class UploadValidationError(RuntimeError):
    """
    Raised when an upload parsed but could not be validated. The session
    is kept in ``error`` status so its failure stays visible on review.
    """

    def __init__(self, session_id: str, message: str) -> None:
        super().__init__(message)
        self.session_id = session_id

    def to_dict(self) -> dict[str, str]:
        return {"message": str(self), "session_id": self.session_id}


class GamePlanImportService:
    """
    Coordinates session creation, validation, and background import execution.
    """

    def __init__(
        self,
        *,
        session_factory: sessionmaker[Session] | None = None,
        session_store: SessionStore | None = None,
        mapper: FieldMapper | None = None,
        validation_service: ValidationService | None = None,
        committer: ImportCommitter | None = None,
        settings: ImportSettings | None = None,
    ) -> None:
        if session_factory is None:
            from db.session import SessionLocal

            self._session_factory = SessionLocal
        else:
            self._session_factory = session_factory

        self._settings = settings or get_import_settings()
        self._session_store = session_store or get_session_store()
        self._mapper = mapper or FieldMapper(fuzzy_threshold=get_validation_settings().fuzzy_threshold)
        self._validation_service = validation_service or get_validation_service()
        self._committer = committer or ImportCommitter(
            batch_size=self._settings.batch_size,
            auto_create=self._settings.auto_create_entities,
        )

    @property
    def expected_fields(self) -> tuple[str, ...]:
        return self._mapper.expected_fields

    # ------------------------------------------------------------------
    # Upload and review
    # ------------------------------------------------------------------

    def upload(
        self,
        *,
        db: Session,
        file_name: str,
        content: bytes,
        country: str | None = None,
        financial_cycle: str | None = None,
        business_unit: str | None = None,
    ) -> ImportSession:
        if len(content) > self._settings.max_upload_bytes:
            raise ImportFileError(
                f"File is too large ({len(content)} bytes); the limit is "
                f"{self._settings.max_upload_bytes} bytes."
            )

        session_id = uuid.uuid4().hex
        file_path: str | None = None
        storage = self._session_store.upload_storage
        if storage is not None:
            try:
                file_path = str(storage.save(session_id=session_id, file_name=file_name, content=content))
            except FileStorageError as exc:
                logger.warning("Upload file not retained session=%s: %s", session_id, exc)

        session = ImportSession(
            id=session_id,
            file_name=file_name,
            file_size=len(content),
            file_path=file_path,
            scope=ImportScope(
                country=_clean(country),
                financial_cycle=_clean(financial_cycle),
                business_unit=_clean(business_unit),
            ),
        )
        self._session_store.create(session)

        try:
            parsed = parse_upload(file_name, content)
        except ImportFileError as exc:
            logger.warning("Upload rejected session=%s file=%s: %s", session_id, file_name, exc)
            session.status = SessionStatus.ERROR
            session.error_message = str(exc)
            self._session_store.save(session)
            self._session_store.remove(session_id)
            raise

        session.status = SessionStatus.UPLOADED
        session.original_headers = list(parsed.headers)
        session.record_count = len(parsed.records)

        try:
            run = self._map_and_validate(db=db, session=session, parsed=parsed)
        except Exception as exc:
            error_message = f"{type(exc).__name__}: {exc}"
            logger.exception("Upload validation failed session=%s file=%s", session_id, file_name)
            session.status = SessionStatus.ERROR
            session.error_message = error_message[:2000]
            self._session_store.save(session)
            raise UploadValidationError(
                session_id, f"Uploaded file could not be validated: {error_message}"
            ) from exc

        session.validation_issues = run.issues
        session.validation_summary = run.summary
        session.total_issue_count = run.total_issue_count
        session.is_large_dataset = run.is_large_dataset
        session.status = SessionStatus.VALIDATED
        self._session_store.save(session)

        logger.info(
            "Validated session=%s records=%d critical=%d warning=%d suggestion=%d",
            session_id,
            session.record_count,
            run.summary.critical,
            run.summary.warning,
            run.summary.suggestion,
        )
        return session

    def _map_and_validate(self, *, db: Session, session: ImportSession, parsed: ParsedUpload) -> ValidationRun:
        resolution = self._mapper.resolve(parsed.headers)
        session.field_mappings = dict(resolution.mapping)
        session.records = self._mapper.transform_records(parsed.records, resolution.mapping)
        logger.info(
            "Mapped headers session=%s mapped=%d unmapped=%s",
            session.id,
            len(resolution.mapping),
            list(resolution.unmapped_headers),
        )

        master_data_service = MasterDataService(source=MasterDataRepository(db))
        session.master_data = master_data_service.load()
        campaign_media = master_data_service.load_campaign_media(session.scope)

        validator = GamePlanRowValidator(
            master_data=session.master_data,
            campaign_media=campaign_media,
            scope=session.scope,
            auto_create=self._settings.auto_create_entities,
        )
        return self._validation_service.validate(session.records, validator)

    def get_session(self, session_id: str) -> ImportSession:
        session = self._session_store.get_valid(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def get_progress(self, session_id: str) -> ImportSession:
        session = self._session_store.get_valid(session_id, touch=False)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def start_import(
        self,
        *,
        session_id: str,
        executor: ImportTaskExecutor,
        replace_existing: bool = False,
        auto_create: bool | None = None,
    ) -> ImportSession:
        session = self.get_session(session_id)
        self._committer.ensure_committable(session)
        if session.status in (SessionStatus.IMPORTING, SessionStatus.IMPORTED):
            raise ImportStateError(f"Session {session_id} is already {session.status}.")

        session.status = SessionStatus.IMPORTING
        session.error_message = None
        session.import_results = None
        session.import_errors = []
        session.import_progress = ImportProgress(
            total=len(session.records),
            stage="queued",
            last_message="Import queued",
        )
        self._session_store.save(session)

        try:
            executor.submit(self._run_import, session_id, replace_existing, auto_create)
        except Exception:
            session.status = SessionStatus.ERROR
            session.error_message = "Failed to schedule game plan import."
            self._session_store.save(session)
            raise

        return session

    def _run_import(self, session_id: str, replace_existing: bool, auto_create: bool | None) -> None:
        session = self._session_store.get_valid(session_id, touch=False)
        if session is None:
            logger.error("Import session disappeared before the import started id=%s", session_id)
            return

        def save_progress(progress: ImportProgress) -> None:
            session.import_progress = progress
            self._session_store.save(session)

        with self._session_factory() as db:
            try:
                result = self._committer.commit(
                    db=db,
                    session=session,
                    replace_existing=replace_existing,
                    auto_create=auto_create,
                    progress_callback=save_progress,
                )
                session.status = SessionStatus.IMPORTED
                session.import_results = result.to_dict()
                session.import_errors = list(result.errors)
                self._session_store.save(session)
            except Exception as exc:
                self._mark_import_failed(db=db, session=session, exc=exc)

    def _mark_import_failed(self, *, db: Session, session: ImportSession, exc: Exception) -> None:
        error_message = f"{type(exc).__name__}: {exc}"
        logger.exception("Game plan import failed session=%s error=%s", session.id, error_message)
        db.rollback()
        try:
            session.status = SessionStatus.ERROR
            session.error_message = error_message[:2000]
            progress = session.import_progress or ImportProgress(total=len(session.records))
            session.import_progress = ImportProgress(
                current=progress.current,
                total=progress.total,
                percentage=progress.percentage,
                stage="failed",
                last_message=session.error_message,
            )
            self._session_store.save(session)
        except Exception:
            logger.exception("Failed to persist failed import state session=%s", session.id)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


@lru_cache(maxsize=1)
def get_game_plan_import_service() -> GamePlanImportService:
    return GamePlanImportService()
