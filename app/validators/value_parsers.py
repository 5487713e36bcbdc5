"""
app/validators/value_parsers.py

Lenient parsers for the numeric and date cells found in planning exports.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any

NULL_MARKERS: frozenset[str] = frozenset({"", "-"})

_NUMBER_NOISE = re.compile(r"[^0-9.\-]")
_DAY_MONTH_YEAR = re.compile(r"^(\d{1,2})-([A-Za-z]{3})-(\d{2}|\d{4})$")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[ T].*)?$")

_MONTHS: dict[str, int] = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def is_null_marker(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and value.strip() in NULL_MARKERS


def stringify(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def parse_number(value: Any) -> float | None:
    """
    Parse a budget/reach cell.

    Thousands separators, currency symbols, percent signs and whitespace are
    stripped. Blank and ``-`` mean "no value" and return None. Raises
    ValueError when nothing numeric is left.
    """

    if is_null_marker(value):
        return None
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)

    cleaned = _NUMBER_NOISE.sub("", str(value))
    if cleaned in {"", "-", ".", "-."}:
        raise ValueError(f"Not a number: {value!r}")
    try:
        return float(cleaned)
    except ValueError as exc:
        raise ValueError(f"Not a number: {value!r}") from exc


def normalize_reach(value: float | None) -> float | None:
    """
    Express reach as a fraction: 1-100 is read as a percentage, anything
    above 100 is capped at 1.0.
    """

    if value is None:
        return None
    if value > 100:
        return 1.0
    if value > 1:
        return value / 100
    return value


def parse_date(value: Any) -> date | None:
    """
    Parse ``DD-MMM-YY``, ``DD-MMM-YYYY`` or ``YYYY-MM-DD`` cells.

    Two-digit years are read as 20YY. Returns None for blank cells and
    raises ValueError for anything else that does not parse.
    """

    if is_null_marker(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    match = _DAY_MONTH_YEAR.match(text)
    if match:
        day, month_name, year_text = match.groups()
        month = _MONTHS.get(month_name.lower())
        if month is None:
            raise ValueError(f"Unknown month in date: {text!r}")
        year = int(year_text)
        if len(year_text) == 2:
            year += 2000
        return date(year, month, int(day))

    match = _ISO_DATE.match(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return date(year, month, day)

    raise ValueError(f"Unrecognised date: {text!r}")


def parse_year(value: Any) -> int:
    """
    Parse a 4-digit planning year between 2000 and 2100.
    """

    number = parse_number(value)
    if number is None or not number.is_integer():
        raise ValueError(f"Not a year: {value!r}")
    year = int(number)
    if not 2000 <= year <= 2100:
        raise ValueError(f"Year out of range: {year}")
    return year


def parse_positive_int(value: Any) -> int | None:
    number = parse_number(value)
    if number is None:
        return None
    if not number.is_integer() or number < 1:
        raise ValueError(f"Not a positive integer: {value!r}")
    return int(number)
