"""
app/schemas package marker.
"""

from app.schemas.game_plan_import import (
    CriticalIssuesErrorResponse,
    HealthResponse,
    ImportAcceptedResponse,
    ImportProgressResponse,
    ImportRequest,
    SessionReviewResponse,
    UploadResponse,
)

__all__ = [
    "CriticalIssuesErrorResponse",
    "HealthResponse",
    "ImportAcceptedResponse",
    "ImportProgressResponse",
    "ImportRequest",
    "SessionReviewResponse",
    "UploadResponse",
]
