"""
app/validators/game_plan_validator.py

Row-level validation of transformed game plan records.

Each record is checked against the master-data snapshot taken for the
session, the upload scope (country / financial cycle / business unit) and
the media already planned for its campaign in that scope. Issues are
returned in the order the checks run.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Iterable, Mapping

from app.domain.import_session import ImportScope
from app.domain.master_data import MasterData
from app.domain.validation import Severity, ValidationIssue
from app.validators.value_parsers import (
    is_blank,
    is_null_marker,
    parse_date,
    parse_number,
    parse_positive_int,
    parse_year,
    stringify,
)

REQUIRED_FIELDS: tuple[str, ...] = (
    "Year",
    "Country",
    "Category",
    "Range",
    "Campaign",
    "Media",
    "Media Subtype",
    "Start Date",
    "End Date",
    "Budget",
)

NUMERIC_FIELDS: tuple[str, ...] = (
    "Budget",
    "Q1 Budget",
    "Q2 Budget",
    "Q3 Budget",
    "Q4 Budget",
    "Target Reach",
    "Current Reach",
)

REACH_FIELDS: frozenset[str] = frozenset({"Target Reach", "Current Reach"})

TEXT_FIELDS: tuple[str, ...] = (
    "Country",
    "Category",
    "Range",
    "Campaign",
    "Media",
    "Media Subtype",
    "Business Unit",
    "PM Type",
)

DIGITAL_SAME_AS_TV_FIELD = "Digital Same As TV"

TV_MEDIA_TYPES: frozenset[str] = frozenset({"TV", "Traditional"})
DIGITAL_MEDIA_TYPES: frozenset[str] = frozenset({"Digital"})

_CYCLE_YEAR = re.compile(r"\b(20\d{2})\b")


def financial_cycle_year(financial_cycle: str | None) -> int | None:
    """
    Extract the calendar year from a cycle label such as ``FC05 2025``.
    """

    if not financial_cycle:
        return None
    match = _CYCLE_YEAR.search(financial_cycle)
    return int(match.group(1)) if match else None


class GamePlanRowValidator:
    """
    Validates one transformed record at a time for a single upload.
    """

    def __init__(
        self,
        *,
        master_data: MasterData,
        campaign_media: Mapping[str, Iterable[str]] | None = None,
        scope: ImportScope | None = None,
        auto_create: bool = True,
    ) -> None:
        self._scope = scope or ImportScope()
        self._auto_create = auto_create
        self._campaign_media: dict[str, frozenset[str]] = {
            campaign: frozenset(media_types)
            for campaign, media_types in (campaign_media or {}).items()
        }

        self._countries = master_data.names("countries")
        self._categories = master_data.names("categories")
        self._ranges = master_data.names("ranges")
        self._campaigns = master_data.names("campaigns")
        self._range_ids = {entity.name: entity.id for entity in master_data.ranges}
        self._campaign_ranges: dict[str, set[int | None]] = {}
        for campaign in master_data.campaigns:
            self._campaign_ranges.setdefault(campaign.name, set()).add(campaign.parent_id)
        self._country_sub_regions = {
            country.name: country.sub_region
            for country in master_data.countries
            if country.sub_region
        }
        self._business_units = master_data.names("business_units")
        self._pm_types = master_data.names("pm_types")
        self._media_to_subtypes: dict[str, frozenset[str]] = {
            media_type: frozenset(subtypes)
            for media_type, subtypes in master_data.media_to_subtypes.items()
        }
        self._media_types = master_data.names("media_types") | frozenset(self._media_to_subtypes)
        self._media_sub_types = master_data.names("media_sub_types").union(
            *self._media_to_subtypes.values()
        )
        self._cycle_year = financial_cycle_year(self._scope.financial_cycle)

    def is_completely_empty(self, record: Mapping[str, Any]) -> bool:
        return all(is_blank(value) for value in record.values())

    def validate_record(self, record: Mapping[str, Any], row_index: int) -> list[ValidationIssue]:
        if self.is_completely_empty(record):
            return []

        issues: list[ValidationIssue] = []
        self._check_required(record, row_index, issues)
        self._check_references(record, row_index, issues)
        self._check_scope(record, row_index, issues)
        self._check_digital_same_as_tv(record, row_index, issues)
        self._check_numbers(record, row_index, issues)
        start_date = self._check_date(record, "Start Date", row_index, issues)
        end_date = self._check_date(record, "End Date", row_index, issues)
        self._check_date_order(record, start_date, end_date, row_index, issues)
        self._check_year_and_burst(record, start_date, row_index, issues)
        self._check_whitespace(record, row_index, issues)
        return issues

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def _check_required(
        self,
        record: Mapping[str, Any],
        row_index: int,
        issues: list[ValidationIssue],
    ) -> None:
        for field_name in REQUIRED_FIELDS:
            if field_name not in record:
                self._add(
                    issues,
                    row_index,
                    field_name,
                    Severity.CRITICAL,
                    f"Missing required column '{field_name}' in CSV file",
                    None,
                )
            elif is_null_marker(record[field_name]):
                self._add(
                    issues,
                    row_index,
                    field_name,
                    Severity.CRITICAL,
                    f"{field_name} is required and cannot be empty",
                    record[field_name],
                )

    def _check_references(
        self,
        record: Mapping[str, Any],
        row_index: int,
        issues: list[ValidationIssue],
    ) -> None:
        country = _text(record, "Country")
        if country is not None and country not in self._countries:
            self._add(
                issues,
                row_index,
                "Country",
                Severity.CRITICAL,
                f"Country '{country}' does not exist in master data",
                country,
            )
        elif country is not None:
            self._check_sub_region(record, country, row_index, issues)

        category = _text(record, "Category")
        if category is not None and category not in self._categories:
            self._add(
                issues,
                row_index,
                "Category",
                Severity.CRITICAL,
                f"Category '{category}' does not exist in master data",
                category,
            )

        self._check_auto_creatable(record, "Range", self._ranges, row_index, issues)
        self._check_auto_creatable(record, "Campaign", self._campaigns, row_index, issues)
        self._check_campaign_range(record, row_index, issues)

        media = _text(record, "Media")
        media_is_valid = media is not None and media in self._media_types
        if media is not None and not media_is_valid:
            valid = ", ".join(sorted(self._media_types)) or "none loaded"
            self._add(
                issues,
                row_index,
                "Media",
                Severity.CRITICAL,
                f"Media '{media}' must be a valid media type (valid: {valid})",
                media,
            )

        subtype = _text(record, "Media Subtype")
        if subtype is not None:
            if subtype not in self._media_sub_types:
                self._add(
                    issues,
                    row_index,
                    "Media Subtype",
                    Severity.CRITICAL,
                    f"Media Subtype '{subtype}' does not exist in master data",
                    subtype,
                )
            elif media_is_valid and subtype not in self._media_to_subtypes.get(media, frozenset()):
                self._add(
                    issues,
                    row_index,
                    "Media Subtype",
                    Severity.CRITICAL,
                    f"Media Subtype '{subtype}' is not valid for Media '{media}'",
                    subtype,
                )

        business_unit = _text(record, "Business Unit")
        if business_unit is not None and business_unit not in self._business_units:
            self._add(
                issues,
                row_index,
                "Business Unit",
                Severity.WARNING,
                f"Business Unit '{business_unit}' does not exist in master data",
                business_unit,
            )

        pm_type = _text(record, "PM Type")
        if pm_type is not None and pm_type not in self._pm_types:
            self._add(
                issues,
                row_index,
                "PM Type",
                Severity.WARNING,
                f"PM Type '{pm_type}' should exist in master data",
                pm_type,
            )

    def _check_auto_creatable(
        self,
        record: Mapping[str, Any],
        field_name: str,
        known: frozenset[str],
        row_index: int,
        issues: list[ValidationIssue],
    ) -> None:
        value = _text(record, field_name)
        if value is None or value in known:
            return
        if self._auto_create:
            self._add(
                issues,
                row_index,
                field_name,
                Severity.WARNING,
                f"{field_name} '{value}' does not exist and will be auto-created during import "
                "and flagged for review",
                value,
            )
        else:
            self._add(
                issues,
                row_index,
                field_name,
                Severity.CRITICAL,
                f"{field_name} '{value}' does not exist in master data",
                value,
            )

    def _check_sub_region(
        self,
        record: Mapping[str, Any],
        country: str,
        row_index: int,
        issues: list[ValidationIssue],
    ) -> None:
        sub_region = _text(record, "Sub Region")
        known = self._country_sub_regions.get(country)
        # Countries without a stored sub region get it backfilled on import.
        if sub_region is None or known is None:
            return
        if sub_region.lower() != known.strip().lower():
            self._add(
                issues,
                row_index,
                "Sub Region",
                Severity.CRITICAL,
                f"Country '{country}' does not match the specified Sub Region '{sub_region}' "
                f"(expected '{known}')",
                sub_region,
            )

    def _check_campaign_range(
        self,
        record: Mapping[str, Any],
        row_index: int,
        issues: list[ValidationIssue],
    ) -> None:
        campaign = _text(record, "Campaign")
        range_name = _text(record, "Range")
        if campaign is None or range_name is None:
            return
        linked_ranges = self._campaign_ranges.get(campaign)
        range_id = self._range_ids.get(range_name)
        if not linked_ranges or range_id is None:
            return
        # Campaigns without a range link match any range.
        if range_id in linked_ranges or None in linked_ranges:
            return

        message = (
            f"Campaign '{campaign}' exists but is linked to a different range than "
            f"'{range_name}' specified in your data"
        )
        if self._auto_create:
            self._add(
                issues,
                row_index,
                "Campaign",
                Severity.WARNING,
                f"{message}; a new campaign will be created under '{range_name}' "
                "and flagged for review",
                campaign,
            )
        else:
            self._add(
                issues,
                row_index,
                "Campaign",
                Severity.CRITICAL,
                message,
                campaign,
            )

    def _check_scope(
        self,
        record: Mapping[str, Any],
        row_index: int,
        issues: list[ValidationIssue],
    ) -> None:
        selected = (self._scope.country or "").strip()
        country = _text(record, "Country")
        if not selected or country is None:
            return
        if country.lower() != selected.lower():
            self._add(
                issues,
                row_index,
                "Country",
                Severity.CRITICAL,
                f"Country '{country}' does not match the selected country '{selected}' for this upload",
                country,
            )

    def _check_digital_same_as_tv(
        self,
        record: Mapping[str, Any],
        row_index: int,
        issues: list[ValidationIssue],
    ) -> None:
        campaign = _text(record, "Campaign")
        if campaign is None:
            return
        value = record.get(DIGITAL_SAME_AS_TV_FIELD)
        if not is_blank(value):
            return

        media_types = self._campaign_media.get(campaign, frozenset())
        has_tv = bool(media_types & TV_MEDIA_TYPES)
        has_digital = bool(media_types & DIGITAL_MEDIA_TYPES)

        if has_tv and has_digital:
            self._add(
                issues,
                row_index,
                DIGITAL_SAME_AS_TV_FIELD,
                Severity.CRITICAL,
                f"{DIGITAL_SAME_AS_TV_FIELD} is required because campaign '{campaign}' has both TV "
                "and Digital media in game plans for this country/financial cycle.",
                value,
            )
        elif has_tv:
            self._add(
                issues,
                row_index,
                DIGITAL_SAME_AS_TV_FIELD,
                Severity.WARNING,
                f"{DIGITAL_SAME_AS_TV_FIELD} should be filled for TV-only campaigns for consistency.",
                value,
            )
        elif has_digital:
            self._add(
                issues,
                row_index,
                DIGITAL_SAME_AS_TV_FIELD,
                Severity.WARNING,
                f"{DIGITAL_SAME_AS_TV_FIELD} should be filled for Digital-only campaigns for consistency.",
                value,
            )

    def _check_numbers(
        self,
        record: Mapping[str, Any],
        row_index: int,
        issues: list[ValidationIssue],
    ) -> None:
        for field_name in NUMERIC_FIELDS:
            raw_value = record.get(field_name)
            if is_null_marker(raw_value):
                continue
            try:
                number = parse_number(raw_value)
            except ValueError:
                self._add(
                    issues,
                    row_index,
                    field_name,
                    Severity.WARNING,
                    f"{field_name} must be a number; '{stringify(raw_value)}' will be treated as empty",
                    raw_value,
                )
                continue

            if number is None:
                continue
            if field_name == "Budget" and number <= 0:
                self._add(
                    issues,
                    row_index,
                    field_name,
                    Severity.WARNING,
                    "Budget should be greater than zero",
                    raw_value,
                )
            if field_name in REACH_FIELDS and number > 100:
                self._add(
                    issues,
                    row_index,
                    field_name,
                    Severity.SUGGESTION,
                    f"{field_name} above 100% will be capped at 100%",
                    raw_value,
                )

    def _check_date(
        self,
        record: Mapping[str, Any],
        field_name: str,
        row_index: int,
        issues: list[ValidationIssue],
    ) -> date | None:
        raw_value = record.get(field_name)
        try:
            parsed = parse_date(raw_value)
        except ValueError:
            self._add(
                issues,
                row_index,
                field_name,
                Severity.WARNING,
                f"{field_name} must be a valid date (DD-MMM-YY or YYYY-MM-DD)",
                raw_value,
            )
            return None

        if parsed is not None and self._cycle_year is not None and parsed.year != self._cycle_year:
            self._add(
                issues,
                row_index,
                field_name,
                Severity.WARNING,
                f"{field_name} is in {parsed.year} but the financial cycle "
                f"'{self._scope.financial_cycle}' is for {self._cycle_year}",
                raw_value,
            )
        return parsed

    def _check_date_order(
        self,
        record: Mapping[str, Any],
        start_date: date | None,
        end_date: date | None,
        row_index: int,
        issues: list[ValidationIssue],
    ) -> None:
        if start_date is None or end_date is None:
            return
        if end_date < start_date:
            self._add(
                issues,
                row_index,
                "End Date",
                Severity.CRITICAL,
                "End Date must be on or after Start Date",
                record.get("End Date"),
            )

    def _check_year_and_burst(
        self,
        record: Mapping[str, Any],
        start_date: date | None,
        row_index: int,
        issues: list[ValidationIssue],
    ) -> None:
        raw_year = record.get("Year")
        if not is_null_marker(raw_year):
            try:
                year = parse_year(raw_year)
            except ValueError:
                self._add(
                    issues,
                    row_index,
                    "Year",
                    Severity.WARNING,
                    "Year must be a 4-digit year between 2000 and 2100",
                    raw_year,
                )
            else:
                if start_date is not None and start_date.year != year:
                    self._add(
                        issues,
                        row_index,
                        "Year",
                        Severity.WARNING,
                        f"Year {year} does not match the Start Date year {start_date.year}",
                        raw_year,
                    )

        raw_burst = record.get("Burst")
        if not is_null_marker(raw_burst):
            try:
                parse_positive_int(raw_burst)
            except ValueError:
                self._add(
                    issues,
                    row_index,
                    "Burst",
                    Severity.WARNING,
                    "Burst must be a positive integer (1 or greater)",
                    raw_burst,
                )

    def _check_whitespace(
        self,
        record: Mapping[str, Any],
        row_index: int,
        issues: list[ValidationIssue],
    ) -> None:
        for field_name in TEXT_FIELDS:
            value = record.get(field_name)
            if isinstance(value, str) and value.strip() and value != value.strip():
                self._add(
                    issues,
                    row_index,
                    field_name,
                    Severity.SUGGESTION,
                    f"{field_name} has leading or trailing whitespace; it will be trimmed on import",
                    value,
                )

    @staticmethod
    def _add(
        issues: list[ValidationIssue],
        row_index: int,
        column_name: str,
        severity: str,
        message: str,
        value: Any,
    ) -> None:
        issues.append(
            ValidationIssue(
                row_index=row_index,
                column_name=column_name,
                severity=severity,
                message=message,
                current_value=stringify(value),
            )
        )


def _text(record: Mapping[str, Any], field_name: str) -> str | None:
    value = record.get(field_name)
    if is_blank(value):
        return None
    return str(value).strip()
