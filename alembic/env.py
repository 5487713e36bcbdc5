"""
Alembic environment for the media-planning schema.

The target database is, in order: ``-x db_url=...``, ALEMBIC_DATABASE_URL,
``sqlalchemy.url`` in alembic.ini, then the application's own resolution
(DATABASE_URL, SQLITE_PATH or the local SQLite file).
"""

from __future__ import annotations

import os
from logging.config import fileConfig
from typing import Any

from alembic import context
from sqlalchemy import engine_from_config, pool

import db.models  # noqa: F401  registers every table on Base.metadata
from db.base import Base
from db.config import ensure_supported_url, is_sqlite_url, load_env_files, resolve_database_url

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _migration_url() -> str:
    load_env_files()

    candidates = (
        context.get_x_argument(as_dictionary=True).get("db_url"),
        os.getenv("ALEMBIC_DATABASE_URL"),
        config.get_main_option("sqlalchemy.url"),
    )
    for candidate in candidates:
        if candidate and candidate.strip():
            return ensure_supported_url(candidate)
    return resolve_database_url()


def _context_options(url: str) -> dict[str, Any]:
    # SQLite cannot ALTER most constraints in place; batch mode recreates tables.
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "compare_server_default": True,
        "render_as_batch": is_sqlite_url(url),
    }


def run_migrations_offline() -> None:
    url = _migration_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_context_options(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = _migration_url()
    configuration = config.get_section(config.config_ini_section, {})
    configuration["sqlalchemy.url"] = url

    connectable = engine_from_config(configuration, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, **_context_options(url))

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
