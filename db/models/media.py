"""
db/models/media.py

Media types (TV, Digital, ...) and their subtypes (Open TV, Paid Social, ...).
"""

from __future__ import annotations

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class MediaType(Base, TimestampMixin):
    __tablename__ = "media_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)

    __table_args__ = (UniqueConstraint("name", name="uq_media_types_name"),)


class MediaSubType(Base, TimestampMixin):
    __tablename__ = "media_sub_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    media_type_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("media_types.id", ondelete="CASCADE"),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("name", "media_type_id", name="uq_media_sub_types_name_media_type_id"),
        Index("ix_media_sub_types_media_type_id", "media_type_id"),
    )
