"""
app/repositories/game_plan_repository.py

Write-side persistence for game plan imports: reference entity upserts by
natural key and game plan lookup/creation.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Iterable, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from db.models import (
    BusinessUnit,
    Campaign,
    Category,
    Country,
    EntityStatus,
    FinancialCycle,
    GamePlan,
    MediaSubType,
    MediaType,
    PMType,
    Range,
)
from db.repositories.errors import ReferenceEntityError

ModelT = TypeVar("ModelT")

TRADITIONAL_ALIAS_OF = {"Traditional": "TV"}


class GamePlanRepository:
    """
    Repository used by the import committer.

    Inserts of reference entities run inside a SAVEPOINT; a unique
    constraint violation (another import created the same row first) rolls
    back only that savepoint and returns the winning row.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Reference entities
    # ------------------------------------------------------------------

    def get_or_create_country(self, name: str, *, sub_region: str | None = None) -> tuple[Country, bool]:
        country, created = self._get_or_create(Country, {"name": name}, {"sub_region": sub_region})
        if not created and sub_region and not country.sub_region:
            country.sub_region = sub_region
        return country, created

    def get_or_create_category(self, name: str) -> tuple[Category, bool]:
        return self._get_or_create(Category, {"name": name})

    def get_or_create_media_type(self, name: str) -> tuple[MediaType, bool]:
        return self._get_or_create(MediaType, {"name": name})

    def get_or_create_media_sub_type(self, name: str, *, media_type_name: str) -> tuple[MediaSubType, bool]:
        existing = self.find_media_sub_type(name, media_type_name=media_type_name)
        if existing is not None:
            return existing, False
        media_type, _ = self.get_or_create_media_type(media_type_name)
        return self._get_or_create(MediaSubType, {"name": name, "media_type_id": media_type.id})

    def find_media_sub_type(self, name: str, *, media_type_name: str) -> MediaSubType | None:
        candidates = [media_type_name]
        alias = TRADITIONAL_ALIAS_OF.get(media_type_name)
        if alias:
            candidates.append(alias)
        for candidate in candidates:
            stmt = (
                select(MediaSubType)
                .join(MediaType, MediaSubType.media_type_id == MediaType.id)
                .where(MediaSubType.name == name, MediaType.name == candidate)
            )
            found = self._session.execute(stmt).scalars().first()
            if found is not None:
                return found
        return None

    def get_or_create_business_unit(self, name: str) -> tuple[BusinessUnit, bool]:
        return self._get_or_create(BusinessUnit, {"name": name})

    def get_or_create_pm_type(self, name: str) -> tuple[PMType, bool]:
        return self._get_or_create(PMType, {"name": name})

    def get_or_create_financial_cycle(self, name: str) -> tuple[FinancialCycle, bool]:
        return self._get_or_create(FinancialCycle, {"name": name})

    def find_range(self, name: str) -> Range | None:
        stmt = select(Range).where(Range.name == name)
        return self._session.execute(stmt).scalars().first()

    def create_range(
        self,
        name: str,
        *,
        category_id: int | None,
        status: str = EntityStatus.ACTIVE,
        created_by: str | None = None,
        notes: str | None = None,
    ) -> tuple[Range, bool]:
        return self._get_or_create(
            Range,
            {"name": name},
            {"category_id": category_id, "status": status, "created_by": created_by, "notes": notes},
        )

    def find_campaign(self, name: str, *, range_id: int | None) -> Campaign | None:
        stmt = select(Campaign).where(Campaign.name == name)
        if range_id is None:
            stmt = stmt.where(Campaign.range_id.is_(None))
        else:
            stmt = stmt.where(Campaign.range_id == range_id)
        found = self._session.execute(stmt).scalars().first()
        if found is not None:
            return found
        # Campaigns created before ranges were tracked have no range link.
        stmt = select(Campaign).where(Campaign.name == name, Campaign.range_id.is_(None))
        return self._session.execute(stmt).scalars().first()

    def create_campaign(
        self,
        name: str,
        *,
        range_id: int | None,
        status: str = EntityStatus.ACTIVE,
        created_by: str | None = None,
        notes: str | None = None,
    ) -> tuple[Campaign, bool]:
        return self._get_or_create(
            Campaign,
            {"name": name, "range_id": range_id},
            {"status": status, "created_by": created_by, "notes": notes},
        )

    # ------------------------------------------------------------------
    # Game plans
    # ------------------------------------------------------------------

    def find_game_plan(
        self,
        *,
        campaign_id: int,
        media_sub_type_id: int,
        country_id: int,
        financial_cycle_id: int | None,
        year: int,
        burst: int,
        start_date: date | None,
    ) -> GamePlan | None:
        stmt = select(GamePlan).where(
            GamePlan.campaign_id == campaign_id,
            GamePlan.media_sub_type_id == media_sub_type_id,
            GamePlan.country_id == country_id,
            GamePlan.year == year,
            GamePlan.burst == burst,
        )
        if financial_cycle_id is None:
            stmt = stmt.where(GamePlan.financial_cycle_id.is_(None))
        else:
            stmt = stmt.where(GamePlan.financial_cycle_id == financial_cycle_id)
        if start_date is None:
            stmt = stmt.where(GamePlan.start_date.is_(None))
        else:
            stmt = stmt.where(GamePlan.start_date == start_date)
        return self._session.execute(stmt).scalars().first()

    def add_game_plan(self, **values: Any) -> GamePlan:
        game_plan = GamePlan(**values)
        self._session.add(game_plan)
        self._session.flush()
        return game_plan

    def delete_game_plans(
        self,
        *,
        country_names: Iterable[str],
        financial_cycle_name: str,
        business_unit_name: str | None = None,
    ) -> int:
        """
        Delete the game plans of the given countries in one financial cycle,
        optionally limited to one business unit.
        """

        names = sorted({name for name in country_names if name})
        if not names:
            return 0

        country_ids = select(Country.id).where(Country.name.in_(names))
        cycle_ids = select(FinancialCycle.id).where(FinancialCycle.name == financial_cycle_name)
        stmt = delete(GamePlan).where(
            GamePlan.country_id.in_(country_ids),
            GamePlan.financial_cycle_id.in_(cycle_ids),
        )
        if business_unit_name:
            unit_ids = select(BusinessUnit.id).where(BusinessUnit.name == business_unit_name)
            stmt = stmt.where(GamePlan.business_unit_id.in_(unit_ids))

        result = self._session.execute(stmt.execution_options(synchronize_session=False))
        return int(result.rowcount or 0)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_or_create(
        self,
        model: type[ModelT],
        lookup: dict[str, Any],
        defaults: dict[str, Any] | None = None,
    ) -> tuple[ModelT, bool]:
        existing = self._find_by(model, lookup)
        if existing is not None:
            return existing, False

        entity = model(**lookup, **(defaults or {}))
        try:
            with self._session.begin_nested():
                self._session.add(entity)
                self._session.flush()
        except IntegrityError as exc:
            winner = self._find_by(model, lookup)
            if winner is None:
                raise ReferenceEntityError(
                    f"Could not create {model.__name__} {lookup}: {exc.orig}"
                ) from exc
            return winner, False
        return entity, True

    def _find_by(self, model: type[ModelT], lookup: dict[str, Any]) -> ModelT | None:
        stmt = select(model)
        for column_name, value in lookup.items():
            column = getattr(model, column_name)
            stmt = stmt.where(column.is_(None) if value is None else column == value)
        return self._session.execute(stmt).scalars().first()
