"""
Repository layer exports.
"""

from db.repositories.errors import (
    FileStorageError,
    ReferenceEntityError,
    RepositoryError,
    SessionStoreError,
)
from db.repositories.session_backend import (
    FileSessionBackend,
    InMemorySessionBackend,
    LocalUploadStorage,
    SessionBackend,
)

__all__ = [
    "FileSessionBackend",
    "InMemorySessionBackend",
    "LocalUploadStorage",
    "SessionBackend",
    "RepositoryError",
    "SessionStoreError",
    "FileStorageError",
    "ReferenceEntityError",
]
