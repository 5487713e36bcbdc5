"""
Repository-layer exceptions for session storage and reference data flows.
"""

from __future__ import annotations


class RepositoryError(Exception):
    """Base exception for repository failures."""


class SessionStoreError(RepositoryError):
    """Raised when a session document cannot be read, parsed or written."""


class FileStorageError(RepositoryError):
    """Raised when storing or deleting an uploaded file fails."""


class ReferenceEntityError(RepositoryError):
    """Raised when a reference entity cannot be resolved or created."""
