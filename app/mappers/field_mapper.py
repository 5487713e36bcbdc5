"""
app/mappers/field_mapper.py

Header-to-canonical field mapping for game plan uploads.

Headers are matched in three passes, first match wins per header:

    1. exact      - trimmed, case-insensitive equality with a canonical name
    2. synonym    - equality with a known synonym, then substring containment
                    (longest synonym first)
    3. fuzzy      - character-set Jaccard similarity above the threshold

A canonical field is assigned to at most one header. Headers that match
nothing stay unmapped and keep their original name when records are
transformed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

EXPECTED_FIELDS: tuple[str, ...] = (
    "Year",
    "Sub Region",
    "Country",
    "Category",
    "Range",
    "Campaign",
    "Media",
    "Media Subtype",
    "Start Date",
    "End Date",
    "Budget",
    "Q1 Budget",
    "Q2 Budget",
    "Q3 Budget",
    "Q4 Budget",
    "Target Reach",
    "Current Reach",
    "Business Unit",
    "PM Type",
    "Campaign Status",
    "Campaign Type",
    "Campaign Priority",
    "Last Update",
    "Last Modified By",
    "Burst",
    "Digital Same As TV",
)

# "cat" is intentionally absent from Category: too short to be a safe alias.
FIELD_SYNONYMS: dict[str, tuple[str, ...]] = {
    "Year": ("year", "yr", "fiscal year", "fy"),
    "Sub Region": ("sub region", "subregion", "region", "area"),
    "Country": ("country", "nation", "market"),
    "Category": ("category", "product category"),
    "Range": ("range", "product range", "product line"),
    "Campaign": ("campaign", "camp", "initiative", "campaign name"),
    "Media": ("media", "media type", "channel"),
    "Media Subtype": ("media subtype", "subtype", "sub type", "media sub type"),
    "Start Date": ("start date", "start", "from date", "begin date", "initial date"),
    "End Date": ("end date", "end", "to date", "finish date"),
    "Budget": ("budget", "total budget", "spend", "total spend"),
    "Q1 Budget": ("q1 budget", "q1", "q1 spend", "quarter 1 budget"),
    "Q2 Budget": ("q2 budget", "q2", "q2 spend", "quarter 2 budget"),
    "Q3 Budget": ("q3 budget", "q3", "q3 spend", "quarter 3 budget"),
    "Q4 Budget": ("q4 budget", "q4", "q4 spend", "quarter 4 budget"),
    "Target Reach": ("target reach", "target", "goal reach", "reach target"),
    "Current Reach": ("current reach", "actual reach", "reach", "achieved reach"),
    "Business Unit": ("business unit", "bu", "division", "department"),
    "PM Type": ("pm type", "pm", "project manager type"),
    "Campaign Status": ("campaign status", "status", "state", "campaign state"),
    "Campaign Type": ("campaign type", "type", "campaign classification"),
    "Campaign Priority": ("campaign priority", "priority", "importance"),
    "Last Update": (
        "last update",
        "financial cycle",
        "cycle",
        "period",
        "fiscal period",
        "fiscal cycle",
        "upload date",
        "date uploaded",
    ),
    "Last Modified By": ("last modified by", "modified by", "updated by", "editor"),
    "Burst": ("burst", "flight", "burst number"),
    "Digital Same As TV": (
        "is digital target the same than tv?",
        "is digital target the same than tv",
        "is digital target same as tv",
        "digital target same as tv",
        "digital same as tv",
        "same as tv",
    ),
}

DEFAULT_FUZZY_THRESHOLD = 0.6


def normalize_header(header: str) -> str:
    """
    Lowercase and trim a header for comparison.
    """

    return header.strip().lower()


def jaccard_similarity(left: str, right: str) -> float:
    """
    Jaccard index of the character sets of two strings.
    """

    left_chars = set(left.lower())
    right_chars = set(right.lower())
    union = left_chars | right_chars
    if not union:
        return 0.0
    return len(left_chars & right_chars) / len(union)


@dataclass(frozen=True)
class FieldMappingResolution:
    """
    Resolved header mapping plus how each header was matched.
    """

    mapping: dict[str, str]
    strategies: dict[str, str]
    unmapped_headers: tuple[str, ...]


class FieldMapper:
    """
    Maps arbitrary upload headers onto the canonical game plan fields.
    """

    def __init__(
        self,
        *,
        expected_fields: Sequence[str] = EXPECTED_FIELDS,
        synonyms: Mapping[str, Sequence[str]] | None = None,
        fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD,
    ) -> None:
        self._expected_fields: tuple[str, ...] = tuple(expected_fields)
        source_synonyms = synonyms if synonyms is not None else FIELD_SYNONYMS
        self._synonyms: dict[str, tuple[str, ...]] = {
            canonical: tuple(normalize_header(value) for value in values)
            for canonical, values in source_synonyms.items()
            if canonical in self._expected_fields
        }
        self._fuzzy_threshold = max(0.0, min(1.0, fuzzy_threshold))

    @property
    def expected_fields(self) -> tuple[str, ...]:
        return self._expected_fields

    def resolve(self, headers: Sequence[str]) -> FieldMappingResolution:
        """
        Resolve original header -> canonical field for every header that
        matches; each canonical field is used at most once.
        """

        mapping: dict[str, str] = {}
        strategies: dict[str, str] = {}
        assigned: set[str] = set()
        candidates = [header for header in dict.fromkeys(headers) if header and header.strip()]

        self._match_exact(candidates, mapping, strategies, assigned)
        self._match_synonyms(candidates, mapping, strategies, assigned)
        self._match_fuzzy(candidates, mapping, strategies, assigned)

        unmapped = tuple(header for header in headers if header not in mapping)
        return FieldMappingResolution(
            mapping=mapping,
            strategies=strategies,
            unmapped_headers=unmapped,
        )

    def suggest_mappings(self, headers: Sequence[str]) -> dict[str, str]:
        return self.resolve(headers).mapping

    def transform_records(
        self,
        records: Sequence[Mapping[str, Any]],
        mapping: Mapping[str, str],
    ) -> list[dict[str, Any]]:
        return transform_records(records, mapping)

    def _match_exact(
        self,
        headers: list[str],
        mapping: dict[str, str],
        strategies: dict[str, str],
        assigned: set[str],
    ) -> None:
        # Verbatim matches first so "Media" beats "media" for the same field.
        for verbatim in (True, False):
            for header in headers:
                if header in mapping:
                    continue
                for canonical in self._expected_fields:
                    if canonical in assigned:
                        continue
                    if verbatim:
                        matched = header.strip() == canonical
                    else:
                        matched = normalize_header(header) == canonical.lower()
                    if matched:
                        self._assign(header, canonical, "exact", mapping, strategies, assigned)
                        break

    def _match_synonyms(
        self,
        headers: list[str],
        mapping: dict[str, str],
        strategies: dict[str, str],
        assigned: set[str],
    ) -> None:
        for header in headers:
            if header in mapping:
                continue
            normalized = normalize_header(header)
            for canonical in self._expected_fields:
                if canonical in assigned:
                    continue
                if normalized in self._synonyms.get(canonical, ()):
                    self._assign(header, canonical, "synonym", mapping, strategies, assigned)
                    break

        contained = sorted(
            (
                (synonym, canonical)
                for canonical in self._expected_fields
                for synonym in self._synonyms.get(canonical, ())
            ),
            key=lambda pair: len(pair[0]),
            reverse=True,
        )
        for header in headers:
            if header in mapping:
                continue
            normalized = normalize_header(header)
            for synonym, canonical in contained:
                if canonical in assigned:
                    continue
                if synonym in normalized:
                    self._assign(header, canonical, "synonym", mapping, strategies, assigned)
                    break

    def _match_fuzzy(
        self,
        headers: list[str],
        mapping: dict[str, str],
        strategies: dict[str, str],
        assigned: set[str],
    ) -> None:
        for header in headers:
            if header in mapping:
                continue
            normalized = normalize_header(header)
            best_field: str | None = None
            best_score = self._fuzzy_threshold
            for canonical in self._expected_fields:
                if canonical in assigned:
                    continue
                score = jaccard_similarity(normalized, canonical.lower())
                if score > best_score:
                    best_field = canonical
                    best_score = score
            if best_field is not None:
                self._assign(header, best_field, "fuzzy", mapping, strategies, assigned)

    @staticmethod
    def _assign(
        header: str,
        canonical: str,
        strategy: str,
        mapping: dict[str, str],
        strategies: dict[str, str],
        assigned: set[str],
    ) -> None:
        mapping[header] = canonical
        strategies[header] = strategy
        assigned.add(canonical)


def transform_records(
    records: Sequence[Mapping[str, Any]],
    mapping: Mapping[str, str],
) -> list[dict[str, Any]]:
    """
    Rename record keys through ``mapping``; unmapped keys keep their name.
    """

    transformed: list[dict[str, Any]] = []
    for record in records:
        row: dict[str, Any] = {}
        for key, value in record.items():
            row[mapping.get(key, key)] = value
        transformed.append(row)
    return transformed
