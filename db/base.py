"""
db/base.py

Declarative base and the audit timestamp mixin shared by the
media-planning reference tables and game plans.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import DateTime, func, inspect
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """
    Declarative base for every ORM model in the import service.
    """

    type_annotation_map: dict[type, Any] = {}

    def __repr__(self) -> str:
        identity = inspect(self).identity
        name = getattr(self, "name", None)
        label = f" name={name!r}" if name is not None else ""
        return f"<{type(self).__name__} id={identity[0] if identity else None}{label}>"


class TimestampMixin:
    """
    created_at is stamped by the database on INSERT; updated_at is refreshed
    in Python on every UPDATE so re-imports are visible in the row itself.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=utc_now,
    )
