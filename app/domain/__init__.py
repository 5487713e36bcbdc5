"""
app/domain package marker.
"""

from app.domain.import_session import (
    AutoCreatedEntity,
    ImportProgress,
    ImportResult,
    ImportScope,
    ImportSession,
    RecordImportError,
    SessionStatus,
)
from app.domain.master_data import MasterData, ReferenceEntity
from app.domain.validation import Severity, ValidationIssue, ValidationSummary

__all__ = [
    "AutoCreatedEntity",
    "ImportProgress",
    "ImportResult",
    "ImportScope",
    "ImportSession",
    "MasterData",
    "RecordImportError",
    "ReferenceEntity",
    "SessionStatus",
    "Severity",
    "ValidationIssue",
    "ValidationSummary",
]
