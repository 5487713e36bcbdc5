"""
db/models/product.py

Product hierarchy: categories, ranges and the campaigns that promote them.

Ranges and campaigns can be created on the fly by an import. Those rows are
flagged ``pending_review`` so an admin can confirm or merge them later.
"""

from __future__ import annotations

from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class EntityStatus:
    ACTIVE = "active"
    PENDING_REVIEW = "pending_review"


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)

    __table_args__ = (UniqueConstraint("name", name="uq_categories_name"),)


class Range(Base, TimestampMixin):
    __tablename__ = "ranges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=EntityStatus.ACTIVE,
        comment="active, pending_review",
    )
    created_by: Mapped[str | None] = mapped_column(String(120), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("name", name="uq_ranges_name"),
        Index("ix_ranges_category_id", "category_id"),
    )


class Campaign(Base, TimestampMixin):
    __tablename__ = "campaigns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    range_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("ranges.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=EntityStatus.ACTIVE,
        comment="active, pending_review",
    )
    created_by: Mapped[str | None] = mapped_column(String(120), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("name", "range_id", name="uq_campaigns_name_range_id"),
        Index("ix_campaigns_name", "name"),
        Index("ix_campaigns_status", "status"),
    )
