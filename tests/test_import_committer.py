"""
tests/test_import_committer.py

Pytest tests for ImportCommitter against an in-memory SQLite database.

Coverage
--------
- Sessions with critical issues are rejected before any write
- Records become game plans with typed, normalised values
- Re-importing the same file updates instead of duplicating
- Missing ranges and campaigns auto-created as pending_review
- Auto-create disabled fails only the affected record
- A failing record does not abort the import
- Records missing required values (blank or "-") are skipped
- Batched progress reporting
- Replace mode deletes the scope's existing game plans first
- Traditional media resolves to existing TV subtypes
"""

from __future__ import annotations

from datetime import date
from typing import Any, Iterator

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.domain.import_session import ImportProgress, ImportScope, ImportSession
from app.domain.validation import Severity, ValidationIssue, ValidationSummary
from app.services.import_committer import AUTO_CREATED_BY, CriticalIssuesPresentError, ImportCommitter
from db.base import Base
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
    Range,
)
from db.session import build_session_factory, create_db_engine


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def db() -> Iterator[Session]:
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(engine)
    session = build_session_factory(engine)()
    try:
        _seed(session)
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


def _seed(db: Session) -> None:
    category = Category(name="Face Care")
    tv = MediaType(name="TV")
    db.add_all([Country(name="Kenya"), category, tv, BusinessUnit(name="Nivea")])
    db.flush()
    luminous = Range(name="Luminous", category_id=category.id, status=EntityStatus.ACTIVE)
    db.add_all([luminous, MediaSubType(name="Open TV", media_type_id=tv.id)])
    db.flush()
    db.add(Campaign(name="Glow Up", range_id=luminous.id, status=EntityStatus.ACTIVE))
    db.commit()


def _record(**overrides: Any) -> dict[str, Any]:
    record = {
        "Year": "2025",
        "Country": "Kenya",
        "Category": "Face Care",
        "Range": "Luminous",
        "Campaign": "Glow Up",
        "Media": "TV",
        "Media Subtype": "Open TV",
        "Start Date": "01-Mar-25",
        "End Date": "31-Mar-25",
        "Budget": "10,000",
        "Q1 Budget": "10000",
        "Target Reach": "60",
        "Current Reach": "0.25",
        "Business Unit": "Nivea",
        "Burst": "1",
        "Digital Same As TV": "Yes",
    }
    record.update(overrides)
    return record


def _session(records: list[dict[str, Any]], session_id: str = "session1") -> ImportSession:
    return ImportSession(
        id=session_id,
        file_name="plan.csv",
        scope=ImportScope(country="Kenya", financial_cycle="FC03 2025", business_unit="Nivea"),
        records=records,
    )


def _count(db: Session, model: type) -> int:
    return int(db.scalar(select(func.count()).select_from(model)) or 0)


@pytest.fixture()
def committer() -> ImportCommitter:
    return ImportCommitter(batch_size=10, auto_create=True)


# ---------------------------------------------------------------------------
# Critical gate
# ---------------------------------------------------------------------------


class TestCriticalGate:
    def test_summary_with_critical_issues_blocks_import(self, db: Session, committer: ImportCommitter) -> None:
        session = _session([_record()])
        session.validation_summary = ValidationSummary(total=1, critical=1)
        countries_before = _count(db, Country)

        with pytest.raises(CriticalIssuesPresentError) as ctx:
            committer.commit(db=db, session=session)

        assert ctx.value.critical_count == 1
        assert ctx.value.to_dict()["session_id"] == "session1"
        assert _count(db, GamePlan) == 0
        assert _count(db, Country) == countries_before
        assert _count(db, FinancialCycle) == 0

    def test_stored_critical_issue_blocks_import(self, db: Session, committer: ImportCommitter) -> None:
        session = _session([_record()])
        session.validation_issues = [
            ValidationIssue(row_index=0, column_name="Country", severity=Severity.CRITICAL, message="bad")
        ]

        with pytest.raises(CriticalIssuesPresentError):
            committer.commit(db=db, session=session)

        assert _count(db, GamePlan) == 0


# ---------------------------------------------------------------------------
# Writing game plans
# ---------------------------------------------------------------------------


class TestCommit:
    def test_records_become_game_plans(self, db: Session, committer: ImportCommitter) -> None:
        result = committer.commit(db=db, session=_session([_record(), _record(Burst="2")]))

        assert result.records_processed == 2
        assert result.game_plans_created == 2
        assert result.game_plans_updated == 0
        assert result.errors == []
        assert result.entities_created == {"financial_cycle": 1}

        plan = db.execute(select(GamePlan).where(GamePlan.burst == 1)).scalar_one()
        assert plan.total_budget == pytest.approx(10000.0)
        assert plan.target_reach == pytest.approx(0.6)
        assert plan.current_reach == pytest.approx(0.25)
        assert plan.start_date == date(2025, 3, 1)
        assert plan.end_date == date(2025, 3, 31)
        assert plan.year == 2025
        assert plan.digital_same_as_tv == "Yes"
        assert plan.import_session_id == "session1"
        cycle = db.get(FinancialCycle, plan.financial_cycle_id)
        assert cycle is not None and cycle.name == "FC03 2025"

    def test_reimport_updates_existing_rows(self, db: Session, committer: ImportCommitter) -> None:
        committer.commit(db=db, session=_session([_record(), _record(Burst="2")]))

        result = committer.commit(
            db=db,
            session=_session([_record(Budget="12000"), _record(Burst="2")], session_id="session2"),
        )

        assert result.game_plans_created == 0
        assert result.game_plans_updated == 2
        assert _count(db, GamePlan) == 2
        plan = db.execute(select(GamePlan).where(GamePlan.burst == 1)).scalar_one()
        assert plan.total_budget == pytest.approx(12000.0)
        assert plan.import_session_id == "session2"

    def test_duplicate_rows_in_one_file_collapse(self, db: Session, committer: ImportCommitter) -> None:
        result = committer.commit(db=db, session=_session([_record(), _record(Budget="500")]))

        assert result.game_plans_created == 1
        assert result.game_plans_updated == 1
        assert _count(db, GamePlan) == 1

    def test_year_defaults_to_start_date_and_burst_to_one(self, db: Session, committer: ImportCommitter) -> None:
        committer.commit(db=db, session=_session([_record(Year="25", Burst="")]))

        plan = db.execute(select(GamePlan)).scalar_one()
        assert plan.year == 2025
        assert plan.burst == 1

    def test_traditional_media_uses_existing_tv_subtype(self, db: Session, committer: ImportCommitter) -> None:
        result = committer.commit(db=db, session=_session([_record(Media="Traditional")]))

        assert result.game_plans_created == 1
        assert "media_sub_type" not in result.entities_created
        assert _count(db, MediaType) == 1
        assert _count(db, MediaSubType) == 1

    def test_new_reference_entities_are_counted(self, db: Session, committer: ImportCommitter) -> None:
        result = committer.commit(
            db=db,
            session=_session([_record(Media="Digital", **{"Media Subtype": "Paid Social"})]),
        )

        assert result.entities_created["media_sub_type"] == 1
        assert _count(db, MediaType) == 2


# ---------------------------------------------------------------------------
# Auto-create governance
# ---------------------------------------------------------------------------


class TestAutoCreate:
    def test_missing_range_and_campaign_are_created_for_review(
        self, db: Session, committer: ImportCommitter
    ) -> None:
        result = committer.commit(
            db=db,
            session=_session([_record(Range="Radiance", Campaign="Spring Launch")]),
        )

        assert [(entity.entity_type, entity.name) for entity in result.auto_created] == [
            ("range", "Radiance"),
            ("campaign", "Spring Launch"),
        ]
        new_range = db.execute(select(Range).where(Range.name == "Radiance")).scalar_one()
        campaign = db.execute(select(Campaign).where(Campaign.name == "Spring Launch")).scalar_one()
        assert new_range.status == EntityStatus.PENDING_REVIEW
        assert new_range.created_by == AUTO_CREATED_BY
        assert campaign.status == EntityStatus.PENDING_REVIEW
        assert campaign.range_id == new_range.id
        assert "session1" in (campaign.notes or "")
        assert result.entities_created["range"] == 1
        assert result.entities_created["campaign"] == 1

    def test_auto_created_campaign_is_reused_by_later_rows(
        self, db: Session, committer: ImportCommitter
    ) -> None:
        result = committer.commit(
            db=db,
            session=_session([_record(Campaign="Spring Launch"), _record(Campaign="Spring Launch", Burst="2")]),
        )

        assert len(result.auto_created) == 1
        assert _count(db, Campaign) == 2

    def test_disabled_auto_create_fails_only_that_record(self, db: Session) -> None:
        committer = ImportCommitter(auto_create=False)

        result = committer.commit(
            db=db,
            session=_session([_record(), _record(Campaign="Unknown Campaign", Burst="2")]),
        )

        assert result.records_processed == 1
        assert result.records_failed == 1
        assert result.errors[0].row_index == 1
        assert result.errors[0].campaign == "Unknown Campaign"
        assert "does not exist" in result.errors[0].error
        assert _count(db, Campaign) == 1

    def test_request_override_beats_committer_default(self, db: Session, committer: ImportCommitter) -> None:
        result = committer.commit(
            db=db,
            session=_session([_record(Campaign="Unknown Campaign")]),
            auto_create=False,
        )

        assert result.records_failed == 1
        assert result.auto_created == []


# ---------------------------------------------------------------------------
# Fault tolerance and progress
# ---------------------------------------------------------------------------


class TestFaultTolerance:
    def test_failing_record_does_not_abort_import(self, db: Session, committer: ImportCommitter) -> None:
        records = [
            _record(),
            _record(Year="not a year", **{"Start Date": "soon"}, Burst="2"),
            _record(Burst="3"),
        ]

        result = committer.commit(db=db, session=_session(records))

        assert result.records_processed == 2
        assert result.records_failed == 1
        assert result.errors[0].row_index == 1
        assert result.errors[0].media_subtype == "Open TV"
        assert _count(db, GamePlan) == 2

    def test_failed_record_leaves_no_partial_entities(self, db: Session) -> None:
        committer = ImportCommitter(auto_create=False)
        records = [_record(Country="Chile", Campaign="Unknown Campaign")]

        result = committer.commit(db=db, session=_session(records))

        assert result.records_failed == 1
        assert result.entities_created == {}
        assert _count(db, Country) == 1

    def test_records_missing_required_values_are_skipped(
        self, db: Session, committer: ImportCommitter
    ) -> None:
        result = committer.commit(db=db, session=_session([_record(Budget=""), {"Country": " "}, _record()]))

        assert result.records_skipped == 2
        assert result.records_processed == 1

    def test_dash_in_required_value_is_skipped(self, db: Session, committer: ImportCommitter) -> None:
        session = _session([_record(Budget="-", **{"Start Date": "-"}), _record(**{"End Date": "-"})])

        result = committer.commit(db=db, session=session)

        assert result.records_skipped == 2
        assert result.records_processed == 0
        assert _count(db, GamePlan) == 0

    def test_progress_reported_after_each_batch(self, db: Session, committer: ImportCommitter) -> None:
        updates: list[ImportProgress] = []
        records = [_record(Burst=str(index + 1)) for index in range(25)]

        result = committer.commit(db=db, session=_session(records), progress_callback=updates.append)

        assert result.game_plans_created == 25
        assert [update.stage for update in updates] == [
            "preparing",
            "importing",
            "importing",
            "importing",
            "completed",
        ]
        assert [update.current for update in updates[1:4]] == [10, 20, 25]
        assert updates[-1].percentage == 100
        assert updates[-1].total == 25


class TestReplaceExisting:
    def test_replace_deletes_scope_before_import(self, db: Session, committer: ImportCommitter) -> None:
        committer.commit(db=db, session=_session([_record(), _record(Burst="2")]))

        result = committer.commit(
            db=db,
            session=_session([_record(Burst="5")], session_id="session2"),
            replace_existing=True,
        )

        assert result.game_plans_deleted == 2
        assert result.game_plans_created == 1
        assert [plan.burst for plan in db.execute(select(GamePlan)).scalars()] == [5]

    def test_replace_without_financial_cycle_keeps_rows(self, db: Session, committer: ImportCommitter) -> None:
        committer.commit(db=db, session=_session([_record()]))
        session = _session([_record(Burst="2")], session_id="session2")
        session.scope = ImportScope(country="Kenya")

        result = committer.commit(db=db, session=session, replace_existing=True)

        assert result.game_plans_deleted == 0
        assert _count(db, GamePlan) == 2
