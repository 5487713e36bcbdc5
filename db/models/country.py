"""
db/models/country.py

Country reference entity.
"""

from __future__ import annotations

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class Country(Base, TimestampMixin):
    __tablename__ = "countries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    sub_region: Mapped[str | None] = mapped_column(
        String(120),
        nullable=True,
        comment="Planning sub-region the country rolls up to",
    )

    __table_args__ = (UniqueConstraint("name", name="uq_countries_name"),)
