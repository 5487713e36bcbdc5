"""
tests/test_repositories.py

Pytest tests for GamePlanRepository and MasterDataRepository on an
in-memory SQLite database.

Coverage
--------
- get_or_create returns the existing row on the second call
- Traditional media resolves subtypes stored under TV
- Campaign lookup falls back to campaigns without a range
- delete_game_plans limited to country, financial cycle and business unit
- Master data lists sorted by name with media subtype parents
- Campaign range links and country sub regions in the master data snapshot
- Campaign media context filtered by upload scope
"""

from __future__ import annotations

from datetime import date
from typing import Iterator

import pytest
from sqlalchemy.orm import Session

from app.domain.import_session import ImportScope
from app.repositories.game_plan_repository import GamePlanRepository
from app.repositories.master_data_repository import MasterDataRepository
from db.base import Base
from db.models import Campaign
from db.session import build_session_factory, create_db_engine


@pytest.fixture()
def db() -> Iterator[Session]:
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(engine)
    session = build_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def repository(db: Session) -> GamePlanRepository:
    return GamePlanRepository(db)


def _plan(
    repository: GamePlanRepository,
    *,
    campaign: str,
    media: str,
    subtype: str,
    country: str = "Kenya",
    cycle: str = "FC03 2025",
    unit: str = "Nivea",
    burst: int = 1,
) -> None:
    category, _ = repository.get_or_create_category("Face Care")
    range_row, _ = repository.create_range("Luminous", category_id=category.id)
    campaign_row, _ = repository.create_campaign(campaign, range_id=range_row.id)
    sub_type, _ = repository.get_or_create_media_sub_type(subtype, media_type_name=media)
    country_row, _ = repository.get_or_create_country(country)
    cycle_row, _ = repository.get_or_create_financial_cycle(cycle)
    unit_row, _ = repository.get_or_create_business_unit(unit)
    repository.add_game_plan(
        campaign_id=campaign_row.id,
        media_sub_type_id=sub_type.id,
        country_id=country_row.id,
        financial_cycle_id=cycle_row.id,
        business_unit_id=unit_row.id,
        year=2025,
        burst=burst,
        start_date=date(2025, 3, 1),
        total_budget=1000.0,
    )


# ---------------------------------------------------------------------------
# GamePlanRepository
# ---------------------------------------------------------------------------


class TestGamePlanRepository:
    def test_get_or_create_is_idempotent(self, repository: GamePlanRepository) -> None:
        first, created_first = repository.get_or_create_country("Kenya", sub_region="East Africa")
        second, created_second = repository.get_or_create_country("Kenya")

        assert created_first is True
        assert created_second is False
        assert second.id == first.id
        assert second.sub_region == "East Africa"

    def test_missing_sub_region_is_filled_in(self, repository: GamePlanRepository) -> None:
        repository.get_or_create_country("Kenya")
        country, created = repository.get_or_create_country("Kenya", sub_region="East Africa")

        assert created is False
        assert country.sub_region == "East Africa"

    def test_traditional_resolves_tv_subtypes(self, repository: GamePlanRepository) -> None:
        open_tv, _ = repository.get_or_create_media_sub_type("Open TV", media_type_name="TV")

        found = repository.find_media_sub_type("Open TV", media_type_name="Traditional")
        same, created = repository.get_or_create_media_sub_type("Open TV", media_type_name="Traditional")

        assert found is not None and found.id == open_tv.id
        assert created is False
        assert same.id == open_tv.id

    def test_campaign_lookup_falls_back_to_unranged_campaign(
        self, db: Session, repository: GamePlanRepository
    ) -> None:
        db.add(Campaign(name="Legacy Launch", range_id=None))
        db.flush()
        range_row, _ = repository.create_range("Luminous", category_id=None)

        found = repository.find_campaign("Legacy Launch", range_id=range_row.id)

        assert found is not None
        assert found.range_id is None

    def test_delete_is_limited_to_scope(self, repository: GamePlanRepository) -> None:
        _plan(repository, campaign="Glow Up", media="TV", subtype="Open TV")
        _plan(repository, campaign="Glow Up", media="TV", subtype="Open TV", burst=2)
        _plan(repository, campaign="Glow Up", media="TV", subtype="Open TV", country="Chile")
        _plan(repository, campaign="Glow Up", media="TV", subtype="Open TV", cycle="FC01 2025")
        _plan(repository, campaign="Glow Up", media="TV", subtype="Open TV", unit="Derma", burst=3)

        deleted = repository.delete_game_plans(
            country_names=["Kenya"],
            financial_cycle_name="FC03 2025",
            business_unit_name="Nivea",
        )

        assert deleted == 2

    def test_delete_without_countries_is_a_no_op(self, repository: GamePlanRepository) -> None:
        _plan(repository, campaign="Glow Up", media="TV", subtype="Open TV")

        assert repository.delete_game_plans(country_names=[""], financial_cycle_name="FC03 2025") == 0


# ---------------------------------------------------------------------------
# MasterDataRepository
# ---------------------------------------------------------------------------


class TestMasterDataRepository:
    def test_lists_are_sorted_and_subtypes_carry_parent(
        self, db: Session, repository: GamePlanRepository
    ) -> None:
        repository.get_or_create_country("Kenya")
        repository.get_or_create_country("Chile")
        sub_type, _ = repository.get_or_create_media_sub_type("Open TV", media_type_name="TV")

        source = MasterDataRepository(db)

        assert [country.name for country in source.list_countries()] == ["Chile", "Kenya"]
        [listed] = source.list_media_sub_types()
        assert listed.name == "Open TV"
        assert listed.parent_id == sub_type.media_type_id

    def test_campaign_media_filtered_by_scope(self, db: Session, repository: GamePlanRepository) -> None:
        _plan(repository, campaign="Glow Up", media="TV", subtype="Open TV")
        _plan(repository, campaign="Glow Up", media="Digital", subtype="Paid Social")
        _plan(repository, campaign="Night Care", media="Digital", subtype="Paid Social", country="Chile")

        source = MasterDataRepository(db)
        scoped = source.campaign_media_types(
            ImportScope(country="Kenya", financial_cycle="FC03 2025", business_unit="Nivea")
        )
        unscoped = source.campaign_media_types(ImportScope())

        assert scoped == {"Glow Up": {"TV", "Digital"}}
        assert unscoped == {"Glow Up": {"TV", "Digital"}, "Night Care": {"Digital"}}

    def test_campaigns_carry_range_and_countries_carry_sub_region(
        self, db: Session, repository: GamePlanRepository
    ) -> None:
        repository.get_or_create_country("Kenya", sub_region="East Africa")
        repository.get_or_create_country("Chile")
        range_row, _ = repository.create_range("Luminous", category_id=None)
        repository.create_campaign("Glow Up", range_id=range_row.id)

        source = MasterDataRepository(db)

        assert [(country.name, country.sub_region) for country in source.list_countries()] == [
            ("Chile", None),
            ("Kenya", "East Africa"),
        ]
        [campaign] = source.list_campaigns()
        assert campaign.parent_id == range_row.id
