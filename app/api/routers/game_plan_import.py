"""
Game plan import endpoints: upload, review, import and progress polling.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Form, HTTPException, Query, UploadFile, status
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.api.dependencies import get_import_upload
from app.config import get_validation_settings
from app.domain.import_session import ImportSession
from app.domain.validation import Severity
from app.schemas.game_plan_import import (
    HealthResponse,
    ImportAcceptedResponse,
    ImportProgressResponse,
    ImportRequest,
    RecordImportErrorResponse,
    SessionReviewResponse,
    UploadFileInfo,
    UploadResponse,
    ValidationIssueResponse,
    ValidationSummaryResponse,
)
from app.services.game_plan_import_service import (
    FastAPIBackgroundTaskExecutor,
    GamePlanImportService,
    ImportStateError,
    SessionNotFoundError,
    UploadValidationError,
    get_game_plan_import_service,
)
from app.services.import_committer import CriticalIssuesPresentError
from app.services.import_file_parser import ImportFileError
from app.services.session_store import get_session_store
from db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/media-sufficiency", tags=["game-plan-import"])


@router.post("/upload", response_model=UploadResponse)
def upload_game_plan(
    file: UploadFile = Depends(get_import_upload),
    country: str | None = Form(default=None),
    financial_cycle: str | None = Form(default=None),
    business_unit: str | None = Form(default=None),
    db: Session = Depends(get_db),
    service: GamePlanImportService = Depends(get_game_plan_import_service),
) -> UploadResponse:
    try:
        content = file.file.read()
    finally:
        file.file.close()

    try:
        session = service.upload(
            db=db,
            file_name=file.filename or "upload.csv",
            content=content,
            country=country,
            financial_cycle=financial_cycle,
            business_unit=business_unit,
        )
    except ImportFileError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except UploadValidationError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.to_dict()) from exc

    issue_limit = get_validation_settings().response_issue_limit
    return UploadResponse(
        session_id=session.id,
        status=session.status,
        file=_to_file_info(session),
        country=session.scope.country,
        financial_cycle=session.scope.financial_cycle,
        business_unit=session.scope.business_unit,
        original_headers=session.original_headers,
        expected_fields=list(service.expected_fields),
        field_mappings=session.field_mappings,
        validation_summary=ValidationSummaryResponse.model_validate(session.validation_summary),
        validation_issues=[
            ValidationIssueResponse.model_validate(issue) for issue in session.validation_issues[:issue_limit]
        ],
        is_large_dataset=session.is_large_dataset,
        total_issue_count=session.total_issue_count,
        can_import=session.validation_summary.can_import,
        expires_at=session.expires_at,
    )


@router.get("/session", response_model=SessionReviewResponse)
def get_import_session(
    session_id: str | None = Query(default=None, description="Import session ID returned by upload"),
    offset: int = Query(default=0, ge=0, description="Index of the first issue returned"),
    limit: int = Query(default=100, ge=1, le=1000, description="Max issues returned"),
    severity: str | None = Query(default=None, description="Optional severity filter"),
    service: GamePlanImportService = Depends(get_game_plan_import_service),
) -> SessionReviewResponse:
    session = _load_session(service, session_id)

    if severity is not None and severity not in Severity.ALL:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid severity '{severity}'. Allowed values: {list(Severity.ALL)}.",
        )

    issues = session.validation_issues
    if severity is not None:
        issues = [issue for issue in issues if issue.severity == severity]

    return SessionReviewResponse(
        session_id=session.id,
        status=session.status,
        file=_to_file_info(session),
        country=session.scope.country,
        financial_cycle=session.scope.financial_cycle,
        business_unit=session.scope.business_unit,
        original_headers=session.original_headers,
        field_mappings=session.field_mappings,
        records=session.records,
        validation_summary=ValidationSummaryResponse.model_validate(session.validation_summary),
        validation_issues=[
            ValidationIssueResponse.model_validate(issue) for issue in issues[offset : offset + limit]
        ],
        issues_offset=offset,
        issues_limit=limit,
        issues_returned_total=len(issues),
        is_large_dataset=session.is_large_dataset,
        total_issue_count=session.total_issue_count,
        can_import=session.validation_summary.can_import,
        created_at=session.created_at,
        expires_at=session.expires_at,
        error_message=session.error_message,
    )


@router.post(
    "/import",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ImportAcceptedResponse,
)
def start_game_plan_import(
    payload: ImportRequest,
    background_tasks: BackgroundTasks,
    service: GamePlanImportService = Depends(get_game_plan_import_service),
) -> ImportAcceptedResponse:
    session_id = _require_session_id(payload.session_id)
    try:
        session = service.start_import(
            session_id=session_id,
            executor=FastAPIBackgroundTaskExecutor(background_tasks),
            replace_existing=payload.replace_existing,
            auto_create=payload.auto_create,
        )
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except CriticalIssuesPresentError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.to_dict()) from exc
    except ImportStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    return ImportAcceptedResponse(
        session_id=session.id,
        status=session.status,
        total_records=len(session.records),
        message="Import started. Poll /media-sufficiency/import-progress for status.",
    )


@router.get("/import-progress", response_model=ImportProgressResponse)
def get_import_progress(
    session_id: str | None = Query(default=None, description="Import session ID"),
    service: GamePlanImportService = Depends(get_game_plan_import_service),
) -> ImportProgressResponse:
    session_id = _require_session_id(session_id)
    try:
        session = service.get_progress(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return _to_progress_response(session)


@router.get("/health", response_model=HealthResponse)
def import_health(db: Session = Depends(get_db)) -> HealthResponse:
    database_status = "ok"
    try:
        db.execute(text("SELECT 1"))
    except Exception as exc:  # noqa: BLE001
        logger.warning("Health check database probe failed: %s", exc)
        database_status = "unavailable"

    stats = get_session_store().get_stats()
    return HealthResponse(
        status="ok" if database_status == "ok" else "degraded",
        database=database_status,
        sessions=stats.to_dict(),
    )


def _require_session_id(session_id: str | None) -> str:
    cleaned = (session_id or "").strip()
    if not cleaned:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="session_id is required.",
        )
    return cleaned


def _load_session(service: GamePlanImportService, session_id: str | None) -> ImportSession:
    cleaned = _require_session_id(session_id)
    try:
        return service.get_session(cleaned)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


def _to_file_info(session: ImportSession) -> UploadFileInfo:
    return UploadFileInfo(
        file_name=session.file_name,
        file_size=session.file_size,
        record_count=session.record_count,
    )


def _to_progress_response(session: ImportSession) -> ImportProgressResponse:
    progress = session.import_progress
    return ImportProgressResponse(
        session_id=session.id,
        status=session.status,
        progress=progress.percentage if progress else 0,
        stage=progress.stage if progress else None,
        current_record=progress.current if progress else 0,
        total_records=progress.total if progress else len(session.records),
        last_message=progress.last_message if progress else None,
        results=session.import_results,
        errors=[RecordImportErrorResponse.model_validate(error) for error in session.import_errors],
        error_message=session.error_message,
    )
