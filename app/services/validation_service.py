"""
app/services/validation_service.py

Chunked validation driver.

Records are validated in fixed-size chunks with a cooperative pause in
between. For large datasets only a prefix of the issues is retained for
display while the summary keeps counting every issue, so totals stay exact.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from app.config import get_validation_settings
from app.domain.validation import Severity, SummaryCounter, ValidationIssue, ValidationSummary
from app.validators.game_plan_validator import GamePlanRowValidator
from app.validators.value_parsers import is_blank, parse_date

logger = logging.getLogger(__name__)

DUPLICATE_KEY_FIELDS: tuple[str, ...] = (
    "Campaign",
    "Range",
    "Country",
    "Media Subtype",
    "Year",
    "Burst",
    "Start Date",
)
DUPLICATE_DATE_FIELDS: frozenset[str] = frozenset({"Start Date"})


def _yield_between_chunks() -> None:
    time.sleep(0)


def _duplicate_key_part(field_name: str, value: Any) -> str:
    if field_name in DUPLICATE_DATE_FIELDS:
        try:
            parsed = parse_date(value)
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed.isoformat()
    return str(value or "").strip().lower()


@dataclass(frozen=True)
class ValidationRun:
    """
    Result of validating every record of an upload.
    """

    issues: list[ValidationIssue]
    summary: ValidationSummary
    total_issue_count: int
    is_large_dataset: bool
    records_validated: int
    skipped_empty_records: int = 0
    chunk_count: int = 0

    @property
    def can_import(self) -> bool:
        return self.summary.can_import


class ValidationService:
    """
    Runs the row validator across all records of an upload.
    """

    def __init__(
        self,
        *,
        chunk_size: int,
        large_dataset_threshold: int,
        max_retained_issues: int,
        pause: Callable[[], None] = _yield_between_chunks,
    ) -> None:
        self._chunk_size = max(1, chunk_size)
        self._large_dataset_threshold = max(0, large_dataset_threshold)
        self._max_retained_issues = max(1, max_retained_issues)
        self._pause = pause

    def validate(
        self,
        records: Sequence[Mapping[str, Any]],
        validator: GamePlanRowValidator,
    ) -> ValidationRun:
        total_records = len(records)
        is_large_dataset = total_records > self._large_dataset_threshold
        retain_limit = self._max_retained_issues if is_large_dataset else None

        retained: list[ValidationIssue] = []
        counter = SummaryCounter()
        seen_keys: dict[tuple[str, ...], int] = {}
        skipped_empty = 0
        chunk_count = 0

        for chunk_start in range(0, total_records, self._chunk_size):
            if chunk_count:
                self._pause()
            chunk_count += 1
            chunk = records[chunk_start : chunk_start + self._chunk_size]

            for offset, record in enumerate(chunk):
                row_index = chunk_start + offset
                if validator.is_completely_empty(record):
                    skipped_empty += 1
                    continue

                row_issues = validator.validate_record(record, row_index)
                duplicate = self._check_duplicate(record, row_index, seen_keys)
                if duplicate is not None:
                    row_issues.append(duplicate)

                for issue in row_issues:
                    counter.add(issue)
                    if retain_limit is None or len(retained) < retain_limit:
                        retained.append(issue)

            logger.debug(
                "Validated chunk %d (%d records, %d issues so far)",
                chunk_count,
                len(chunk),
                counter.total,
            )

        summary = counter.build()
        if is_large_dataset and counter.total > len(retained):
            logger.info(
                "Large dataset: retained %d of %d validation issues for %d records",
                len(retained),
                counter.total,
                total_records,
            )

        return ValidationRun(
            issues=retained,
            summary=summary,
            total_issue_count=counter.total,
            is_large_dataset=is_large_dataset,
            records_validated=total_records - skipped_empty,
            skipped_empty_records=skipped_empty,
            chunk_count=chunk_count,
        )

    def _check_duplicate(
        self,
        record: Mapping[str, Any],
        row_index: int,
        seen_keys: dict[tuple[str, ...], int],
    ) -> ValidationIssue | None:
        if any(is_blank(record.get(name)) for name in ("Campaign", "Country", "Media Subtype")):
            return None
        key = tuple(_duplicate_key_part(name, record.get(name)) for name in DUPLICATE_KEY_FIELDS)
        first_row = seen_keys.get(key)
        if first_row is None:
            seen_keys[key] = row_index
            return None
        return ValidationIssue(
            row_index=row_index,
            column_name="Campaign",
            severity=Severity.WARNING,
            message=(
                f"Duplicate of row {first_row + 1}: same Campaign, Range, Country, Media Subtype, "
                "Year, Burst and Start Date; the later row overwrites the earlier one on import"
            ),
            current_value=str(record.get("Campaign") or ""),
        )


def get_validation_service() -> ValidationService:
    settings = get_validation_settings()
    return ValidationService(
        chunk_size=settings.chunk_size,
        large_dataset_threshold=settings.large_dataset_threshold,
        max_retained_issues=settings.max_retained_issues,
    )
