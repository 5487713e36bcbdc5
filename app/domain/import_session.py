"""
app/domain/import_session.py

Import session document and the commit progress/result records stored in it.

A session is one upload attempt: the parsed rows, the header mapping, the
master-data snapshot used to validate it and, once an import starts, the
live progress written by the background commit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

from app.domain.master_data import MasterData
from app.domain.validation import ValidationIssue, ValidationSummary


class SessionStatus:
    PENDING = "pending"
    UPLOADED = "uploaded"
    VALIDATED = "validated"
    IMPORTING = "importing"
    IMPORTED = "imported"
    ERROR = "error"


@dataclass(frozen=True)
class ImportScope:
    """
    Upload-level selections that scope validation and replacement.
    """

    country: str | None = None
    financial_cycle: str | None = None
    business_unit: str | None = None


@dataclass(frozen=True)
class ImportProgress:
    current: int = 0
    total: int = 0
    percentage: int = 0
    stage: str = "queued"
    last_message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "current": self.current,
            "total": self.total,
            "percentage": self.percentage,
            "stage": self.stage,
            "last_message": self.last_message,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> ImportProgress | None:
        if not payload:
            return None
        return cls(
            current=int(payload.get("current", 0)),
            total=int(payload.get("total", 0)),
            percentage=int(payload.get("percentage", 0)),
            stage=str(payload.get("stage", "")),
            last_message=str(payload.get("last_message", "")),
        )


@dataclass(frozen=True)
class RecordImportError:
    row_index: int
    error: str
    campaign: str | None = None
    media_subtype: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "row_index": self.row_index,
            "error": self.error,
            "campaign": self.campaign,
            "media_subtype": self.media_subtype,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> RecordImportError:
        return cls(
            row_index=int(payload["row_index"]),
            error=str(payload["error"]),
            campaign=payload.get("campaign"),
            media_subtype=payload.get("media_subtype"),
        )


@dataclass(frozen=True)
class AutoCreatedEntity:
    """
    Campaign or range created by an import and awaiting governance review.
    """

    entity_type: str
    name: str
    id: int
    row_index: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_type": self.entity_type,
            "name": self.name,
            "id": self.id,
            "row_index": self.row_index,
        }


@dataclass(frozen=True)
class ImportResult:
    """
    Final outcome of one commit run.
    """

    records_total: int
    records_processed: int
    records_skipped: int
    game_plans_created: int
    game_plans_updated: int
    game_plans_deleted: int
    entities_created: dict[str, int] = field(default_factory=dict)
    auto_created: list[AutoCreatedEntity] = field(default_factory=list)
    errors: list[RecordImportError] = field(default_factory=list)

    @property
    def records_failed(self) -> int:
        return len(self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "records_total": self.records_total,
            "records_processed": self.records_processed,
            "records_skipped": self.records_skipped,
            "records_failed": self.records_failed,
            "game_plans_created": self.game_plans_created,
            "game_plans_updated": self.game_plans_updated,
            "game_plans_deleted": self.game_plans_deleted,
            "entities_created": dict(self.entities_created),
            "auto_created": [entity.to_dict() for entity in self.auto_created],
        }


def _format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_datetime(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = f"{text[:-1]}+00:00"
        parsed = datetime.fromisoformat(text)
    # Documents written without an offset are UTC.
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class ImportSession:
    """
    Mutable session document; persisted as JSON by the session store.

    ``expires_at`` and ``last_accessed_at`` are ``None`` only for documents
    written before sliding expiration existed.
    """

    id: str
    file_name: str
    file_size: int = 0
    file_path: str | None = None
    record_count: int = 0
    created_at: datetime | None = None
    expires_at: datetime | None = None
    last_accessed_at: datetime | None = None
    status: str = SessionStatus.PENDING
    scope: ImportScope = field(default_factory=ImportScope)
    original_headers: list[str] = field(default_factory=list)
    field_mappings: dict[str, str] = field(default_factory=dict)
    master_data: MasterData = field(default_factory=MasterData)
    records: list[dict[str, Any]] = field(default_factory=list)
    validation_issues: list[ValidationIssue] = field(default_factory=list)
    validation_summary: ValidationSummary = field(default_factory=ValidationSummary)
    is_large_dataset: bool = False
    total_issue_count: int = 0
    import_progress: ImportProgress | None = None
    import_results: dict[str, Any] | None = None
    import_errors: list[RecordImportError] = field(default_factory=list)
    error_message: str | None = None

    @property
    def is_legacy(self) -> bool:
        return self.expires_at is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "file_name": self.file_name,
            "file_size": self.file_size,
            "file_path": self.file_path,
            "record_count": self.record_count,
            "created_at": _format_datetime(self.created_at),
            "expires_at": _format_datetime(self.expires_at),
            "last_accessed_at": _format_datetime(self.last_accessed_at),
            "status": self.status,
            "country": self.scope.country,
            "financial_cycle": self.scope.financial_cycle,
            "business_unit": self.scope.business_unit,
            "original_headers": list(self.original_headers),
            "field_mappings": dict(self.field_mappings),
            "master_data": self.master_data.to_dict(),
            "records": self.records,
            "validation_issues": [issue.to_dict() for issue in self.validation_issues],
            "validation_summary": self.validation_summary.to_dict(),
            "is_large_dataset": self.is_large_dataset,
            "total_issue_count": self.total_issue_count,
            "import_progress": self.import_progress.to_dict() if self.import_progress else None,
            "import_results": self.import_results,
            "import_errors": [error.to_dict() for error in self.import_errors],
            "error_message": self.error_message,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> ImportSession:
        return cls(
            id=str(payload["id"]),
            file_name=str(payload.get("file_name") or ""),
            file_size=int(payload.get("file_size") or 0),
            file_path=payload.get("file_path"),
            record_count=int(payload.get("record_count") or 0),
            created_at=_parse_datetime(payload.get("created_at")),
            expires_at=_parse_datetime(payload.get("expires_at")),
            last_accessed_at=_parse_datetime(payload.get("last_accessed_at")),
            status=str(payload.get("status") or SessionStatus.PENDING),
            scope=ImportScope(
                country=payload.get("country"),
                financial_cycle=payload.get("financial_cycle"),
                business_unit=payload.get("business_unit"),
            ),
            original_headers=list(payload.get("original_headers") or []),
            field_mappings=dict(payload.get("field_mappings") or {}),
            master_data=MasterData.from_dict(payload.get("master_data")),
            records=list(payload.get("records") or []),
            validation_issues=[
                ValidationIssue.from_dict(item) for item in payload.get("validation_issues") or []
            ],
            validation_summary=ValidationSummary.from_dict(payload.get("validation_summary")),
            is_large_dataset=bool(payload.get("is_large_dataset", False)),
            total_issue_count=int(payload.get("total_issue_count") or 0),
            import_progress=ImportProgress.from_dict(payload.get("import_progress")),
            import_results=payload.get("import_results"),
            import_errors=[
                RecordImportError.from_dict(item) for item in payload.get("import_errors") or []
            ],
            error_message=payload.get("error_message"),
        )
