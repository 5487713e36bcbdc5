"""
app/services/master_data_service.py

Best-effort master data snapshot for one import session.

Every reference list is loaded independently. A failing query is logged and
replaced by an empty list (or the default business units), so a partially
migrated database degrades validation instead of blocking uploads.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Protocol

from app.domain.import_session import ImportScope
from app.domain.master_data import MasterData, ReferenceEntity

logger = logging.getLogger(__name__)

DEFAULT_BUSINESS_UNITS: tuple[ReferenceEntity, ...] = (
    ReferenceEntity(id=1, name="Nivea"),
    ReferenceEntity(id=2, name="Derma"),
)

TV_MEDIA_TYPE = "TV"
TRADITIONAL_MEDIA_TYPE = "Traditional"


class MasterDataSource(Protocol):
    def list_countries(self) -> list[ReferenceEntity]:
        ...

    def list_categories(self) -> list[ReferenceEntity]:
        ...

    def list_ranges(self) -> list[ReferenceEntity]:
        ...

    def list_media_types(self) -> list[ReferenceEntity]:
        ...

    def list_media_sub_types(self) -> list[ReferenceEntity]:
        ...

    def list_business_units(self) -> list[ReferenceEntity]:
        ...

    def list_pm_types(self) -> list[ReferenceEntity]:
        ...

    def list_campaigns(self) -> list[ReferenceEntity]:
        ...

    def campaign_media_types(self, scope: ImportScope) -> dict[str, set[str]]:
        ...


def build_media_to_subtypes(
    media_types: Iterable[ReferenceEntity],
    media_sub_types: Iterable[ReferenceEntity],
) -> dict[str, tuple[str, ...]]:
    """
    Group subtype names under their parent media type name.

    Subtypes of "TV" are also listed under "Traditional", the name older
    planning files use for the same channel.
    """

    type_names = {media_type.id: media_type.name for media_type in media_types}
    grouped: dict[str, list[str]] = {}
    for sub_type in media_sub_types:
        parent_name = type_names.get(sub_type.parent_id) if sub_type.parent_id is not None else None
        if parent_name is None:
            continue
        bucket = grouped.setdefault(parent_name, [])
        if sub_type.name not in bucket:
            bucket.append(sub_type.name)

    tv_subtypes = grouped.get(TV_MEDIA_TYPE)
    if tv_subtypes:
        traditional = grouped.setdefault(TRADITIONAL_MEDIA_TYPE, [])
        for name in tv_subtypes:
            if name not in traditional:
                traditional.append(name)

    return {media_type: tuple(names) for media_type, names in grouped.items()}


class MasterDataService:
    """
    Loads reference data snapshots and campaign media context.
    """

    def __init__(self, *, source: MasterDataSource) -> None:
        self._source = source

    def load(self) -> MasterData:
        countries = self._safe_list("countries", self._source.list_countries)
        categories = self._safe_list("categories", self._source.list_categories)
        ranges = self._safe_list("ranges", self._source.list_ranges)
        media_types = self._safe_list("media_types", self._source.list_media_types)
        media_sub_types = self._safe_list("media_sub_types", self._source.list_media_sub_types)
        business_units = self._safe_list(
            "business_units",
            self._source.list_business_units,
            fallback=DEFAULT_BUSINESS_UNITS,
        )
        pm_types = self._safe_list("pm_types", self._source.list_pm_types)
        campaigns = self._safe_list("campaigns", self._source.list_campaigns)

        master_data = MasterData(
            countries=countries,
            categories=categories,
            ranges=ranges,
            media_types=media_types,
            media_sub_types=media_sub_types,
            business_units=business_units,
            pm_types=pm_types,
            campaigns=campaigns,
            media_to_subtypes=build_media_to_subtypes(media_types, media_sub_types),
        )
        logger.info(
            "Loaded master data countries=%d categories=%d ranges=%d media_types=%d "
            "media_sub_types=%d business_units=%d pm_types=%d campaigns=%d",
            len(countries),
            len(categories),
            len(ranges),
            len(media_types),
            len(media_sub_types),
            len(business_units),
            len(pm_types),
            len(campaigns),
        )
        return master_data

    def load_campaign_media(self, scope: ImportScope) -> dict[str, set[str]]:
        try:
            return self._source.campaign_media_types(scope)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Campaign media context unavailable for scope=%s: %s", scope, exc)
            return {}

    @staticmethod
    def _safe_list(
        kind: str,
        loader: Callable[[], list[ReferenceEntity]],
        *,
        fallback: tuple[ReferenceEntity, ...] = (),
    ) -> tuple[ReferenceEntity, ...]:
        try:
            return tuple(loader())
        except Exception as exc:  # noqa: BLE001
            logger.warning("Master data query failed kind=%s, using fallback: %s", kind, exc)
            return fallback
