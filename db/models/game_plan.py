"""
db/models/game_plan.py

One row of planned media spend for a campaign in a country.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import Date, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class GamePlan(Base, TimestampMixin):
    __tablename__ = "game_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=False,
    )
    media_sub_type_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("media_sub_types.id", ondelete="RESTRICT"),
        nullable=False,
    )
    country_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("countries.id", ondelete="RESTRICT"),
        nullable=False,
    )
    category_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
    )
    range_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("ranges.id", ondelete="SET NULL"),
        nullable=True,
    )
    business_unit_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("business_units.id", ondelete="SET NULL"),
        nullable=True,
    )
    pm_type_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("pm_types.id", ondelete="SET NULL"),
        nullable=True,
    )
    financial_cycle_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("financial_cycles.id", ondelete="SET NULL"),
        nullable=True,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    burst: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_budget: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    q1_budget: Mapped[float | None] = mapped_column(Float, nullable=True)
    q2_budget: Mapped[float | None] = mapped_column(Float, nullable=True)
    q3_budget: Mapped[float | None] = mapped_column(Float, nullable=True)
    q4_budget: Mapped[float | None] = mapped_column(Float, nullable=True)
    target_reach: Mapped[float | None] = mapped_column(
        Float,
        nullable=True,
        comment="Fraction between 0 and 1",
    )
    current_reach: Mapped[float | None] = mapped_column(
        Float,
        nullable=True,
        comment="Fraction between 0 and 1",
    )
    digital_same_as_tv: Mapped[str | None] = mapped_column(String(32), nullable=True)
    campaign_status: Mapped[str | None] = mapped_column(String(64), nullable=True)
    campaign_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    campaign_priority: Mapped[str | None] = mapped_column(String(64), nullable=True)
    last_modified_by: Mapped[str | None] = mapped_column(String(120), nullable=True)
    import_session_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="Import session that last wrote this row",
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index(
            "ix_game_plans_natural_key",
            "campaign_id",
            "media_sub_type_id",
            "country_id",
            "financial_cycle_id",
            "year",
            "burst",
            "start_date",
        ),
        Index("ix_game_plans_scope", "country_id", "financial_cycle_id", "business_unit_id"),
    )
