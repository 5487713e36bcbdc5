"""
app/schemas/game_plan_import.py

Request and response schemas for the game plan import endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ValidationIssueResponse(BaseModel):
    """
    API response model for one validation finding.
    """

    model_config = {"from_attributes": True}

    row_index: int = Field(..., ge=0)
    column_name: str
    severity: str
    message: str
    current_value: str = ""


class ValidationSummaryResponse(BaseModel):
    model_config = {"from_attributes": True}

    total: int = Field(..., ge=0)
    critical: int = Field(..., ge=0)
    warning: int = Field(..., ge=0)
    suggestion: int = Field(..., ge=0)
    by_field: dict[str, int] = Field(default_factory=dict)
    unique_rows: int = Field(default=0, ge=0)


class UploadFileInfo(BaseModel):
    file_name: str
    file_size: int = Field(..., ge=0)
    record_count: int = Field(..., ge=0)


class UploadResponse(BaseModel):
    """
    Result of uploading and validating a game plan file.
    """

    session_id: str
    status: str
    file: UploadFileInfo
    country: str | None = None
    financial_cycle: str | None = None
    business_unit: str | None = None
    original_headers: list[str] = Field(default_factory=list)
    expected_fields: list[str] = Field(default_factory=list)
    field_mappings: dict[str, str] = Field(default_factory=dict)
    validation_summary: ValidationSummaryResponse
    validation_issues: list[ValidationIssueResponse] = Field(default_factory=list)
    is_large_dataset: bool = False
    total_issue_count: int = Field(default=0, ge=0)
    can_import: bool
    expires_at: datetime | None = None


class SessionReviewResponse(BaseModel):
    """
    Review data for an existing session with one page of issues.
    """

    session_id: str
    status: str
    file: UploadFileInfo
    country: str | None = None
    financial_cycle: str | None = None
    business_unit: str | None = None
    original_headers: list[str] = Field(default_factory=list)
    field_mappings: dict[str, str] = Field(default_factory=dict)
    records: list[dict[str, Any]] = Field(default_factory=list)
    validation_summary: ValidationSummaryResponse
    validation_issues: list[ValidationIssueResponse] = Field(default_factory=list)
    issues_offset: int = Field(default=0, ge=0)
    issues_limit: int = Field(default=0, ge=0)
    issues_returned_total: int = Field(default=0, ge=0)
    is_large_dataset: bool = False
    total_issue_count: int = Field(default=0, ge=0)
    can_import: bool
    created_at: datetime | None = None
    expires_at: datetime | None = None
    error_message: str | None = None


class ImportRequest(BaseModel):
    session_id: str = ""
    replace_existing: bool = False
    auto_create: bool | None = None


class ImportAcceptedResponse(BaseModel):
    session_id: str
    status: str
    total_records: int = Field(..., ge=0)
    message: str


class RecordImportErrorResponse(BaseModel):
    model_config = {"from_attributes": True}

    row_index: int = Field(..., ge=0)
    error: str
    campaign: str | None = None
    media_subtype: str | None = None


class ImportProgressResponse(BaseModel):
    """
    Polling payload for a running or finished import.
    """

    session_id: str
    status: str
    progress: int = Field(default=0, ge=0, le=100)
    stage: str | None = None
    current_record: int = Field(default=0, ge=0)
    total_records: int = Field(default=0, ge=0)
    last_message: str | None = None
    results: dict[str, Any] | None = None
    errors: list[RecordImportErrorResponse] = Field(default_factory=list)
    error_message: str | None = None


class CriticalIssuesErrorResponse(BaseModel):
    message: str
    session_id: str
    critical_count: int = Field(..., ge=0)


class HealthResponse(BaseModel):
    status: str
    database: str
    sessions: dict[str, int] = Field(default_factory=dict)
