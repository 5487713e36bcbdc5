"""
db/models/organisation.py

Business units, PM types and financial cycles ("Last Update") that scope
game plans.
"""

from __future__ import annotations

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class BusinessUnit(Base, TimestampMixin):
    __tablename__ = "business_units"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)

    __table_args__ = (UniqueConstraint("name", name="uq_business_units_name"),)


class PMType(Base, TimestampMixin):
    __tablename__ = "pm_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)

    __table_args__ = (UniqueConstraint("name", name="uq_pm_types_name"),)


class FinancialCycle(Base, TimestampMixin):
    __tablename__ = "financial_cycles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(
        String(120),
        nullable=False,
        comment="Planning period label, e.g. 'FC05 2025'",
    )

    __table_args__ = (UniqueConstraint("name", name="uq_financial_cycles_name"),)
