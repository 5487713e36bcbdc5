"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from db.config import PROJECT_ROOT, load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


@dataclass(frozen=True)
class SessionSettings:
    """
    Import session storage and expiry settings.
    """

    sessions_dir: Path = PROJECT_ROOT / "data" / "sessions"
    timeout_hours: float = 6.0
    cleanup_interval_hours: float = 6.0


@dataclass(frozen=True)
class ValidationSettings:
    """
    Chunked validation limits.
    """

    chunk_size: int = 1000
    large_dataset_threshold: int = 5000
    max_retained_issues: int = 500
    response_issue_limit: int = 100
    fuzzy_threshold: float = 0.6


@dataclass(frozen=True)
class ImportSettings:
    """
    Import commit behaviour.
    """

    batch_size: int = 10
    auto_create_entities: bool = True
    max_upload_bytes: int = 50 * 1024 * 1024


def _resolve_sessions_dir(raw: str) -> Path:
    path = Path(raw)
    return path if path.is_absolute() else PROJECT_ROOT / path


@lru_cache(maxsize=1)
def get_session_settings() -> SessionSettings:
    """
    Return cached session settings from environment variables.
    """

    return SessionSettings(
        sessions_dir=_resolve_sessions_dir(_get_str_env("SESSIONS_DIR", "data/sessions")),
        timeout_hours=max(0.01, _get_float_env("SESSION_TIMEOUT_HOURS", 6.0)),
        cleanup_interval_hours=max(0.01, _get_float_env("SESSION_CLEANUP_INTERVAL_HOURS", 6.0)),
    )


@lru_cache(maxsize=1)
def get_validation_settings() -> ValidationSettings:
    """
    Return cached validation settings from environment variables.
    """

    return ValidationSettings(
        chunk_size=max(1, _get_int_env("VALIDATION_CHUNK_SIZE", 1000)),
        large_dataset_threshold=max(0, _get_int_env("VALIDATION_LARGE_DATASET_THRESHOLD", 5000)),
        max_retained_issues=max(1, _get_int_env("VALIDATION_MAX_RETAINED_ISSUES", 500)),
        response_issue_limit=max(1, _get_int_env("VALIDATION_RESPONSE_ISSUE_LIMIT", 100)),
        fuzzy_threshold=min(1.0, max(0.0, _get_float_env("FIELD_MAPPING_FUZZY_THRESHOLD", 0.6))),
    )


@lru_cache(maxsize=1)
def get_import_settings() -> ImportSettings:
    """
    Return cached import commit settings from environment variables.
    """

    return ImportSettings(
        batch_size=max(1, _get_int_env("IMPORT_BATCH_SIZE", 10)),
        auto_create_entities=_get_bool_env("IMPORT_AUTO_CREATE_ENTITIES", True),
        max_upload_bytes=max(1024, _get_int_env("IMPORT_MAX_UPLOAD_BYTES", 50 * 1024 * 1024)),
    )
