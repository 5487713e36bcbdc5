"""
app/repositories/master_data_repository.py

Read-side queries for reference entities and existing game plan media.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.import_session import ImportScope
from app.domain.master_data import ReferenceEntity
from db.models import (
    BusinessUnit,
    Campaign,
    Category,
    Country,
    FinancialCycle,
    GamePlan,
    MediaSubType,
    MediaType,
    PMType,
    Range,
)

T = TypeVar("T")


class MasterDataRepository:
    """
    SQLAlchemy-backed master data source.

    A failing query rolls the session back before re-raising so the next
    query starts on a clean transaction.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def list_countries(self) -> list[ReferenceEntity]:
        stmt = select(Country.id, Country.name, Country.sub_region).order_by(Country.name)
        rows = self._run(lambda: self._session.execute(stmt).all())
        return [
            ReferenceEntity(id=row.id, name=row.name, sub_region=row.sub_region or None)
            for row in rows
        ]

    def list_categories(self) -> list[ReferenceEntity]:
        return self._list_named(Category)

    def list_ranges(self) -> list[ReferenceEntity]:
        return self._list_named(Range)

    def list_media_types(self) -> list[ReferenceEntity]:
        return self._list_named(MediaType)

    def list_media_sub_types(self) -> list[ReferenceEntity]:
        stmt = select(MediaSubType.id, MediaSubType.name, MediaSubType.media_type_id).order_by(
            MediaSubType.name
        )
        rows = self._run(lambda: self._session.execute(stmt).all())
        return [ReferenceEntity(id=row.id, name=row.name, parent_id=row.media_type_id) for row in rows]

    def list_business_units(self) -> list[ReferenceEntity]:
        return self._list_named(BusinessUnit)

    def list_pm_types(self) -> list[ReferenceEntity]:
        return self._list_named(PMType)

    def list_campaigns(self) -> list[ReferenceEntity]:
        stmt = select(Campaign.id, Campaign.name, Campaign.range_id).order_by(Campaign.name)
        rows = self._run(lambda: self._session.execute(stmt).all())
        return [ReferenceEntity(id=row.id, name=row.name, parent_id=row.range_id) for row in rows]

    def campaign_media_types(self, scope: ImportScope) -> dict[str, set[str]]:
        """
        Media type names already planned per campaign within the upload scope.
        """

        stmt = (
            select(Campaign.name, MediaType.name)
            .select_from(GamePlan)
            .join(Campaign, GamePlan.campaign_id == Campaign.id)
            .join(MediaSubType, GamePlan.media_sub_type_id == MediaSubType.id)
            .join(MediaType, MediaSubType.media_type_id == MediaType.id)
            .distinct()
        )
        if scope.country:
            stmt = stmt.join(Country, GamePlan.country_id == Country.id).where(
                Country.name == scope.country
            )
        if scope.financial_cycle:
            stmt = stmt.join(FinancialCycle, GamePlan.financial_cycle_id == FinancialCycle.id).where(
                FinancialCycle.name == scope.financial_cycle
            )
        if scope.business_unit:
            stmt = stmt.join(BusinessUnit, GamePlan.business_unit_id == BusinessUnit.id).where(
                BusinessUnit.name == scope.business_unit
            )

        media_by_campaign: dict[str, set[str]] = {}
        for campaign_name, media_type_name in self._run(lambda: self._session.execute(stmt).all()):
            media_by_campaign.setdefault(campaign_name, set()).add(media_type_name)
        return media_by_campaign

    def _list_named(self, model: Any) -> list[ReferenceEntity]:
        stmt = select(model.id, model.name).order_by(model.name)
        rows = self._run(lambda: self._session.execute(stmt).all())
        return [ReferenceEntity(id=row.id, name=row.name) for row in rows]

    def _run(self, query: Callable[[], T]) -> T:
        try:
            return query()
        except SQLAlchemyError:
            self._session.rollback()
            raise
