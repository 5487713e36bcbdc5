"""
app/domain/validation.py

Validation issue and summary models produced while reviewing an import.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping


class Severity:
    CRITICAL = "critical"
    WARNING = "warning"
    SUGGESTION = "suggestion"

    ALL: tuple[str, ...] = (CRITICAL, WARNING, SUGGESTION)


@dataclass(frozen=True)
class ValidationIssue:
    """
    One finding for one record and column.

    ``row_index`` is zero-based and refers to the record position in the
    parsed file (header row excluded).
    """

    row_index: int
    column_name: str
    severity: str
    message: str
    current_value: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "row_index": self.row_index,
            "column_name": self.column_name,
            "severity": self.severity,
            "message": self.message,
            "current_value": self.current_value,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> ValidationIssue:
        return cls(
            row_index=int(payload["row_index"]),
            column_name=str(payload["column_name"]),
            severity=str(payload["severity"]),
            message=str(payload["message"]),
            current_value=str(payload.get("current_value") or ""),
        )


@dataclass(frozen=True)
class ValidationSummary:
    """
    Issue counts for a whole validation run.
    """

    total: int = 0
    critical: int = 0
    warning: int = 0
    suggestion: int = 0
    by_field: dict[str, int] = field(default_factory=dict)
    unique_rows: int = 0

    @property
    def can_import(self) -> bool:
        return self.critical == 0

    @classmethod
    def from_issues(cls, issues: Iterable[ValidationIssue]) -> ValidationSummary:
        counter = SummaryCounter()
        for issue in issues:
            counter.add(issue)
        return counter.build()

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "critical": self.critical,
            "warning": self.warning,
            "suggestion": self.suggestion,
            "by_field": dict(self.by_field),
            "unique_rows": self.unique_rows,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> ValidationSummary:
        if not payload:
            return cls()
        return cls(
            total=int(payload.get("total", 0)),
            critical=int(payload.get("critical", 0)),
            warning=int(payload.get("warning", 0)),
            suggestion=int(payload.get("suggestion", 0)),
            by_field={str(key): int(value) for key, value in (payload.get("by_field") or {}).items()},
            unique_rows=int(payload.get("unique_rows", 0)),
        )


class SummaryCounter:
    """
    Incremental issue tally, so totals stay exact when the issue list
    itself is truncated.
    """

    def __init__(self) -> None:
        self._by_severity: dict[str, int] = {severity: 0 for severity in Severity.ALL}
        self._by_field: dict[str, int] = {}
        self._rows: set[int] = set()
        self._total = 0

    @property
    def total(self) -> int:
        return self._total

    def add(self, issue: ValidationIssue) -> None:
        self._total += 1
        self._by_severity[issue.severity] = self._by_severity.get(issue.severity, 0) + 1
        self._by_field[issue.column_name] = self._by_field.get(issue.column_name, 0) + 1
        self._rows.add(issue.row_index)

    def build(self) -> ValidationSummary:
        return ValidationSummary(
            total=self._total,
            critical=self._by_severity.get(Severity.CRITICAL, 0),
            warning=self._by_severity.get(Severity.WARNING, 0),
            suggestion=self._by_severity.get(Severity.SUGGESTION, 0),
            by_field=dict(self._by_field),
            unique_rows=len(self._rows),
        )
