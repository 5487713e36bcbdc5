"""
tests/test_value_parsers.py

Pytest unit tests for the lenient cell parsers.

Coverage
--------
- Numbers with separators, currency and percent signs
- Blank and "-" cells treated as missing
- Reach normalisation to a 0-1 fraction
- DD-MMM-YY, DD-MMM-YYYY and ISO dates
- Year range and positive integer parsing
"""

from __future__ import annotations

from datetime import date, datetime

import pytest

from app.validators.value_parsers import (
    is_blank,
    is_null_marker,
    normalize_reach,
    parse_date,
    parse_number,
    parse_positive_int,
    parse_year,
)


# ---------------------------------------------------------------------------
# Blank handling
# ---------------------------------------------------------------------------


class TestBlankValues:
    def test_none_and_whitespace_are_blank(self) -> None:
        assert is_blank(None)
        assert is_blank("   ")
        assert not is_blank("-")
        assert not is_blank(0)

    def test_dash_is_a_null_marker(self) -> None:
        assert is_null_marker("-")
        assert is_null_marker(" - ")
        assert not is_null_marker("0")


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------


class TestParseNumber:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("1,200.50", 1200.5),
            ("$1,000", 1000.0),
            ("50%", 50.0),
            (" 75 ", 75.0),
            ("-20", -20.0),
            (12, 12.0),
        ],
    )
    def test_parses_noisy_numbers(self, raw: object, expected: float) -> None:
        assert parse_number(raw) == pytest.approx(expected)

    @pytest.mark.parametrize("raw", ["", "-", None])
    def test_missing_values_return_none(self, raw: object) -> None:
        assert parse_number(raw) is None

    @pytest.mark.parametrize("raw", ["abc", "n/a", True])
    def test_garbage_raises_value_error(self, raw: object) -> None:
        with pytest.raises(ValueError):
            parse_number(raw)


class TestNormalizeReach:
    def test_fraction_is_unchanged(self) -> None:
        assert normalize_reach(0.45) == pytest.approx(0.45)

    def test_percentage_is_divided_by_one_hundred(self) -> None:
        assert normalize_reach(45.0) == pytest.approx(0.45)

    def test_values_above_one_hundred_are_capped(self) -> None:
        assert normalize_reach(150.0) == 1.0

    def test_none_stays_none(self) -> None:
        assert normalize_reach(None) is None


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


class TestParseDate:
    def test_two_digit_year(self) -> None:
        assert parse_date("05-Mar-25") == date(2025, 3, 5)

    def test_four_digit_year(self) -> None:
        assert parse_date("31-dec-2024") == date(2024, 12, 31)

    def test_iso_date_and_timestamp(self) -> None:
        assert parse_date("2025-07-01") == date(2025, 7, 1)
        assert parse_date("2025-07-01T00:00:00") == date(2025, 7, 1)

    def test_date_objects_pass_through(self) -> None:
        assert parse_date(date(2025, 1, 2)) == date(2025, 1, 2)
        assert parse_date(datetime(2025, 1, 2, 10, 30)) == date(2025, 1, 2)

    def test_blank_returns_none(self) -> None:
        assert parse_date("") is None
        assert parse_date("-") is None

    @pytest.mark.parametrize("raw", ["05/03/2025", "32-Jan-25", "05-Foo-25", "next week"])
    def test_unparseable_dates_raise(self, raw: str) -> None:
        with pytest.raises(ValueError):
            parse_date(raw)


# ---------------------------------------------------------------------------
# Integers
# ---------------------------------------------------------------------------


class TestParseYear:
    def test_valid_year(self) -> None:
        assert parse_year("2025") == 2025

    def test_float_year_from_excel(self) -> None:
        assert parse_year(2025.0) == 2025

    @pytest.mark.parametrize("raw", ["1999", "2101", "25.5", "", "FY25"])
    def test_invalid_years_raise(self, raw: str) -> None:
        with pytest.raises(ValueError):
            parse_year(raw)


class TestParsePositiveInt:
    def test_valid_burst(self) -> None:
        assert parse_positive_int("3") == 3

    def test_blank_returns_none(self) -> None:
        assert parse_positive_int("") is None

    @pytest.mark.parametrize("raw", ["0", "-1", "1.5"])
    def test_non_positive_or_fractional_raise(self, raw: str) -> None:
        with pytest.raises(ValueError):
            parse_positive_int(raw)
