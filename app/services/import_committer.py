"""
app/services/import_committer.py

Replays a validated import session against the relational schema.

Records are committed in small batches. Each record runs inside its own
SAVEPOINT: a failing record is rolled back, logged and reported, and the
import carries on with the next one. Reference entities are resolved by
natural key before the game plan row that points at them is written.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Mapping

from sqlalchemy.orm import Session

from app.domain.import_session import (
    AutoCreatedEntity,
    ImportProgress,
    ImportResult,
    ImportScope,
    ImportSession,
    RecordImportError,
)
from app.domain.validation import Severity
from app.repositories.game_plan_repository import GamePlanRepository
from app.validators.game_plan_validator import DIGITAL_SAME_AS_TV_FIELD, REQUIRED_FIELDS
from app.validators.value_parsers import (
    is_blank,
    is_null_marker,
    normalize_reach,
    parse_date,
    parse_number,
    parse_positive_int,
    parse_year,
)
from db.models import EntityStatus
from db.repositories.errors import ReferenceEntityError

logger = logging.getLogger(__name__)

AUTO_CREATED_BY = "import_auto"

ProgressCallback = Callable[[ImportProgress], None]


class CriticalIssuesPresentError(RuntimeError):
    """
    Raised when a session still has critical validation issues.
    """

    def __init__(self, *, session_id: str, critical_count: int) -> None:
        super().__init__(
            f"Import blocked: session {session_id} has {critical_count} critical validation "
            "issue(s). Fix the file and upload it again."
        )
        self.session_id = session_id
        self.critical_count = critical_count

    def to_dict(self) -> dict[str, object]:
        return {
            "message": str(self),
            "session_id": self.session_id,
            "critical_count": self.critical_count,
        }


# ---------------------------------------------------------------------------
# Record parsing
# ---------------------------------------------------------------------------


def _optional_text(record: Mapping[str, Any], field_name: str) -> str | None:
    value = record.get(field_name)
    if is_blank(value):
        return None
    text = str(value).strip()
    return None if text == "-" else text


def _lenient_number(value: Any) -> float | None:
    try:
        return parse_number(value)
    except ValueError:
        return None


def _lenient_date(value: Any) -> date | None:
    try:
        return parse_date(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class GamePlanValues:
    """
    Typed values of one transformed record, ready for persistence.
    """

    country: str
    sub_region: str | None
    category: str
    range_name: str
    campaign: str
    media: str
    media_subtype: str
    business_unit: str | None
    pm_type: str | None
    financial_cycle: str | None
    year: int
    burst: int
    start_date: date | None
    end_date: date | None
    total_budget: float
    q1_budget: float | None
    q2_budget: float | None
    q3_budget: float | None
    q4_budget: float | None
    target_reach: float | None
    current_reach: float | None
    digital_same_as_tv: str | None
    campaign_status: str | None
    campaign_type: str | None
    campaign_priority: str | None
    last_modified_by: str | None

    @classmethod
    def from_record(cls, record: Mapping[str, Any], scope: ImportScope) -> GamePlanValues:
        start_date = _lenient_date(record.get("Start Date"))
        end_date = _lenient_date(record.get("End Date"))

        try:
            year = parse_year(record.get("Year"))
        except ValueError:
            if start_date is None:
                raise ValueError("Year is missing or invalid and no Start Date to derive it from")
            year = start_date.year

        try:
            burst = parse_positive_int(record.get("Burst")) or 1
        except ValueError:
            burst = 1

        return cls(
            country=_optional_text(record, "Country") or scope.country or "",
            sub_region=_optional_text(record, "Sub Region"),
            category=_optional_text(record, "Category") or "",
            range_name=_optional_text(record, "Range") or "",
            campaign=_optional_text(record, "Campaign") or "",
            media=_optional_text(record, "Media") or "",
            media_subtype=_optional_text(record, "Media Subtype") or "",
            business_unit=_optional_text(record, "Business Unit") or scope.business_unit,
            pm_type=_optional_text(record, "PM Type"),
            financial_cycle=scope.financial_cycle or _optional_text(record, "Last Update"),
            year=year,
            burst=burst,
            start_date=start_date,
            end_date=end_date,
            total_budget=_lenient_number(record.get("Budget")) or 0.0,
            q1_budget=_lenient_number(record.get("Q1 Budget")),
            q2_budget=_lenient_number(record.get("Q2 Budget")),
            q3_budget=_lenient_number(record.get("Q3 Budget")),
            q4_budget=_lenient_number(record.get("Q4 Budget")),
            target_reach=normalize_reach(_lenient_number(record.get("Target Reach"))),
            current_reach=normalize_reach(_lenient_number(record.get("Current Reach"))),
            digital_same_as_tv=_optional_text(record, DIGITAL_SAME_AS_TV_FIELD),
            campaign_status=_optional_text(record, "Campaign Status"),
            campaign_type=_optional_text(record, "Campaign Type"),
            campaign_priority=_optional_text(record, "Campaign Priority"),
            last_modified_by=_optional_text(record, "Last Modified By"),
        )


# ---------------------------------------------------------------------------
# Commit state
# ---------------------------------------------------------------------------


@dataclass
class _CommitState:
    entity_ids: dict[tuple[str, ...], int] = field(default_factory=dict)
    entities_created: dict[str, int] = field(default_factory=dict)
    auto_created: list[AutoCreatedEntity] = field(default_factory=list)
    errors: list[RecordImportError] = field(default_factory=list)
    processed: int = 0
    skipped: int = 0
    created: int = 0
    updated: int = 0


@dataclass
class _RecordScope:
    """
    Cache entries and counters produced by one record; merged into the
    commit state only once the record's SAVEPOINT is released.
    """

    entity_ids: dict[tuple[str, ...], int] = field(default_factory=dict)
    entities_created: dict[str, int] = field(default_factory=dict)
    auto_created: list[AutoCreatedEntity] = field(default_factory=list)
    game_plan_created: bool = False

    def merge_into(self, state: _CommitState) -> None:
        state.entity_ids.update(self.entity_ids)
        for kind, count in self.entities_created.items():
            state.entities_created[kind] = state.entities_created.get(kind, 0) + count
        state.auto_created.extend(self.auto_created)
        state.processed += 1
        if self.game_plan_created:
            state.created += 1
        else:
            state.updated += 1


# ---------------------------------------------------------------------------
# Committer
# ---------------------------------------------------------------------------


class ImportCommitter:
    """
    Writes the records of a validated session to the database.
    """

    def __init__(self, *, batch_size: int = 10, auto_create: bool = True) -> None:
        self._batch_size = max(1, batch_size)
        self._auto_create = auto_create

    def commit(
        self,
        *,
        db: Session,
        session: ImportSession,
        replace_existing: bool = False,
        auto_create: bool | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> ImportResult:
        self.ensure_committable(session)
        allow_auto_create = self._auto_create if auto_create is None else auto_create

        repository = GamePlanRepository(db)
        records = session.records
        total = len(records)
        state = _CommitState()
        report = progress_callback or (lambda _progress: None)

        report(ImportProgress(current=0, total=total, percentage=0, stage="preparing",
                              last_message="Preparing import"))

        deleted = 0
        if replace_existing:
            deleted = self._replace_existing(repository, session)
            db.commit()

        for batch_start in range(0, total, self._batch_size):
            batch = records[batch_start : batch_start + self._batch_size]
            for offset, record in enumerate(batch):
                row_index = batch_start + offset
                self._import_one(
                    db=db,
                    repository=repository,
                    session=session,
                    record=record,
                    row_index=row_index,
                    state=state,
                    allow_auto_create=allow_auto_create,
                )
            db.commit()

            current = min(batch_start + len(batch), total)
            report(
                ImportProgress(
                    current=current,
                    total=total,
                    percentage=int(current * 100 / total) if total else 100,
                    stage="importing",
                    last_message=(
                        f"Processed {current}/{total} records "
                        f"({state.created} created, {state.updated} updated, {len(state.errors)} failed)"
                    ),
                )
            )

        result = ImportResult(
            records_total=total,
            records_processed=state.processed,
            records_skipped=state.skipped,
            game_plans_created=state.created,
            game_plans_updated=state.updated,
            game_plans_deleted=deleted,
            entities_created=dict(state.entities_created),
            auto_created=list(state.auto_created),
            errors=list(state.errors),
        )
        report(
            ImportProgress(
                current=total,
                total=total,
                percentage=100,
                stage="completed",
                last_message=(
                    f"Import completed: {result.game_plans_created} created, "
                    f"{result.game_plans_updated} updated, {result.records_failed} failed"
                ),
            )
        )
        logger.info(
            "Import committed session=%s processed=%d skipped=%d failed=%d created=%d updated=%d deleted=%d",
            session.id,
            result.records_processed,
            result.records_skipped,
            result.records_failed,
            result.game_plans_created,
            result.game_plans_updated,
            result.game_plans_deleted,
        )
        return result

    @staticmethod
    def ensure_committable(session: ImportSession) -> None:
        critical_count = max(
            session.validation_summary.critical,
            sum(1 for issue in session.validation_issues if issue.severity == Severity.CRITICAL),
        )
        if critical_count > 0:
            raise CriticalIssuesPresentError(session_id=session.id, critical_count=critical_count)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _import_one(
        self,
        *,
        db: Session,
        repository: GamePlanRepository,
        session: ImportSession,
        record: Mapping[str, Any],
        row_index: int,
        state: _CommitState,
        allow_auto_create: bool,
    ) -> None:
        if all(is_blank(value) for value in record.values()) or any(
            is_null_marker(record.get(field_name)) for field_name in REQUIRED_FIELDS
        ):
            state.skipped += 1
            return

        record_scope = _RecordScope()
        try:
            with db.begin_nested():
                values = GamePlanValues.from_record(record, session.scope)
                self._write_record(
                    repository=repository,
                    session=session,
                    values=values,
                    row_index=row_index,
                    state=state,
                    record_scope=record_scope,
                    allow_auto_create=allow_auto_create,
                )
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Import record failed session=%s row=%d error=%s",
                session.id,
                row_index,
                exc,
            )
            state.errors.append(
                RecordImportError(
                    row_index=row_index,
                    error=f"{type(exc).__name__}: {exc}"[:1000],
                    campaign=_optional_text(record, "Campaign"),
                    media_subtype=_optional_text(record, "Media Subtype"),
                )
            )
            return

        record_scope.merge_into(state)

    def _write_record(
        self,
        *,
        repository: GamePlanRepository,
        session: ImportSession,
        values: GamePlanValues,
        row_index: int,
        state: _CommitState,
        record_scope: _RecordScope,
        allow_auto_create: bool,
    ) -> None:
        def resolve(kind: str, key: tuple[str, ...], factory: Callable[[], tuple[Any, bool]]) -> int:
            cache_key = (kind, *key)
            cached = state.entity_ids.get(cache_key) or record_scope.entity_ids.get(cache_key)
            if cached is not None:
                return cached
            entity, created = factory()
            record_scope.entity_ids[cache_key] = entity.id
            if created:
                record_scope.entities_created[kind] = record_scope.entities_created.get(kind, 0) + 1
            return entity.id

        country_id = resolve(
            "country",
            (values.country,),
            lambda: repository.get_or_create_country(values.country, sub_region=values.sub_region),
        )
        category_id = resolve(
            "category",
            (values.category,),
            lambda: repository.get_or_create_category(values.category),
        )
        range_id = resolve(
            "range",
            (values.range_name,),
            lambda: self._resolve_range(
                repository,
                session=session,
                values=values,
                category_id=category_id,
                row_index=row_index,
                record_scope=record_scope,
                allow_auto_create=allow_auto_create,
            ),
        )
        media_sub_type_id = resolve(
            "media_sub_type",
            (values.media, values.media_subtype),
            lambda: repository.get_or_create_media_sub_type(
                values.media_subtype,
                media_type_name=values.media,
            ),
        )
        business_unit_id = (
            resolve(
                "business_unit",
                (values.business_unit,),
                lambda: repository.get_or_create_business_unit(values.business_unit or ""),
            )
            if values.business_unit
            else None
        )
        pm_type_id = (
            resolve(
                "pm_type",
                (values.pm_type,),
                lambda: repository.get_or_create_pm_type(values.pm_type or ""),
            )
            if values.pm_type
            else None
        )
        financial_cycle_id = (
            resolve(
                "financial_cycle",
                (values.financial_cycle,),
                lambda: repository.get_or_create_financial_cycle(values.financial_cycle or ""),
            )
            if values.financial_cycle
            else None
        )
        campaign_id = resolve(
            "campaign",
            (values.campaign, str(range_id)),
            lambda: self._resolve_campaign(
                repository,
                session=session,
                values=values,
                range_id=range_id,
                row_index=row_index,
                record_scope=record_scope,
                allow_auto_create=allow_auto_create,
            ),
        )

        plan_values: dict[str, Any] = {
            "category_id": category_id,
            "range_id": range_id,
            "business_unit_id": business_unit_id,
            "pm_type_id": pm_type_id,
            "end_date": values.end_date,
            "total_budget": values.total_budget,
            "q1_budget": values.q1_budget,
            "q2_budget": values.q2_budget,
            "q3_budget": values.q3_budget,
            "q4_budget": values.q4_budget,
            "target_reach": values.target_reach,
            "current_reach": values.current_reach,
            "digital_same_as_tv": values.digital_same_as_tv,
            "campaign_status": values.campaign_status,
            "campaign_type": values.campaign_type,
            "campaign_priority": values.campaign_priority,
            "last_modified_by": values.last_modified_by,
            "import_session_id": session.id,
        }
        natural_key: dict[str, Any] = {
            "campaign_id": campaign_id,
            "media_sub_type_id": media_sub_type_id,
            "country_id": country_id,
            "financial_cycle_id": financial_cycle_id,
            "year": values.year,
            "burst": values.burst,
            "start_date": values.start_date,
        }

        existing = repository.find_game_plan(**natural_key)
        if existing is None:
            repository.add_game_plan(**natural_key, **plan_values)
            record_scope.game_plan_created = True
        else:
            for attribute, value in plan_values.items():
                setattr(existing, attribute, value)

    def _resolve_range(
        self,
        repository: GamePlanRepository,
        *,
        session: ImportSession,
        values: GamePlanValues,
        category_id: int,
        row_index: int,
        record_scope: _RecordScope,
        allow_auto_create: bool,
    ) -> tuple[Any, bool]:
        existing = repository.find_range(values.range_name)
        if existing is not None:
            return existing, False
        if not allow_auto_create:
            raise ReferenceEntityError(f"Range '{values.range_name}' does not exist")

        range_row, created = repository.create_range(
            values.range_name,
            category_id=category_id,
            status=EntityStatus.PENDING_REVIEW,
            created_by=AUTO_CREATED_BY,
            notes=_auto_created_note(session.id, row_index),
        )
        if created:
            record_scope.auto_created.append(
                AutoCreatedEntity(entity_type="range", name=range_row.name, id=range_row.id, row_index=row_index)
            )
        return range_row, created

    def _resolve_campaign(
        self,
        repository: GamePlanRepository,
        *,
        session: ImportSession,
        values: GamePlanValues,
        range_id: int,
        row_index: int,
        record_scope: _RecordScope,
        allow_auto_create: bool,
    ) -> tuple[Any, bool]:
        existing = repository.find_campaign(values.campaign, range_id=range_id)
        if existing is not None:
            return existing, False
        if not allow_auto_create:
            raise ReferenceEntityError(f"Campaign '{values.campaign}' does not exist")

        campaign, created = repository.create_campaign(
            values.campaign,
            range_id=range_id,
            status=EntityStatus.PENDING_REVIEW,
            created_by=AUTO_CREATED_BY,
            notes=_auto_created_note(session.id, row_index),
        )
        if created:
            record_scope.auto_created.append(
                AutoCreatedEntity(entity_type="campaign", name=campaign.name, id=campaign.id, row_index=row_index)
            )
        return campaign, created

    def _replace_existing(self, repository: GamePlanRepository, session: ImportSession) -> int:
        financial_cycle = session.scope.financial_cycle
        if not financial_cycle:
            logger.warning(
                "Replace requested without a financial cycle; keeping existing game plans session=%s",
                session.id,
            )
            return 0

        country_names = {_optional_text(record, "Country") for record in session.records}
        if session.scope.country:
            country_names.add(session.scope.country)
        deleted = repository.delete_game_plans(
            country_names=[name for name in country_names if name],
            financial_cycle_name=financial_cycle,
            business_unit_name=session.scope.business_unit,
        )
        logger.info(
            "Replaced game plans session=%s financial_cycle=%s deleted=%d",
            session.id,
            financial_cycle,
            deleted,
        )
        return deleted


def _auto_created_note(session_id: str, row_index: int) -> str:
    return f"Auto-created by import session {session_id} (record {row_index + 1}); needs review."
