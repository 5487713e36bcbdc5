"""
app/services package marker.
"""

from app.services.game_plan_import_service import (
    GamePlanImportService,
    ImportStateError,
    SessionNotFoundError,
    get_game_plan_import_service,
)
from app.services.import_committer import CriticalIssuesPresentError, ImportCommitter
from app.services.import_file_parser import ImportFileError, ParsedUpload, parse_upload
from app.services.master_data_service import MasterDataService
from app.services.session_store import SessionStore, get_session_store
from app.services.validation_service import ValidationService, get_validation_service

__all__ = [
    "CriticalIssuesPresentError",
    "GamePlanImportService",
    "ImportCommitter",
    "ImportFileError",
    "ImportStateError",
    "MasterDataService",
    "ParsedUpload",
    "SessionNotFoundError",
    "SessionStore",
    "ValidationService",
    "get_game_plan_import_service",
    "get_session_store",
    "get_validation_service",
    "parse_upload",
]
