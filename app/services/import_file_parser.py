"""
app/services/import_file_parser.py

Turns an uploaded CSV or Excel workbook into a header list plus one dict per
data row. Every cell value is kept as a string; typing happens later in the
validators and the committer.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

import openpyxl

CSV_EXTENSIONS = (".csv",)
EXCEL_EXTENSIONS = (".xlsx", ".xlsm")
SUPPORTED_EXTENSIONS = CSV_EXTENSIONS + EXCEL_EXTENSIONS


class ImportFileError(ValueError):
    """
    Raised when an upload cannot be read as a tabular game plan file.
    """


@dataclass(frozen=True)
class ParsedUpload:
    headers: list[str]
    records: list[dict[str, str]] = field(default_factory=list)


def parse_upload(file_name: str, content: bytes) -> ParsedUpload:
    """
    Parse ``content`` according to the extension of ``file_name``.
    """

    lowered = (file_name or "").strip().lower()
    if lowered.endswith(CSV_EXTENSIONS):
        return _parse_csv(content)
    if lowered.endswith(EXCEL_EXTENSIONS):
        return _parse_excel(content)
    raise ImportFileError(
        f"Unsupported file type: {file_name!r}. Upload a CSV or Excel (.xlsx) file."
    )


def _parse_csv(content: bytes) -> ParsedUpload:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ImportFileError("CSV file must be UTF-8 encoded.") from exc

    reader = csv.DictReader(io.StringIO(text, newline=""))
    if not reader.fieldnames:
        raise ImportFileError("CSV file is empty or missing a header row.")

    headers = [(name or "").strip() for name in reader.fieldnames]
    _ensure_headers(headers)

    records: list[dict[str, str]] = []
    try:
        for row in reader:
            record: dict[str, str] = {}
            for raw_name, header in zip(reader.fieldnames, headers):
                value = row.get(raw_name)
                record[header] = "" if value is None else str(value)
            records.append(record)
    except csv.Error as exc:
        raise ImportFileError(f"Malformed CSV at line {reader.line_num}: {exc}") from exc

    return ParsedUpload(headers=headers, records=records)


def _parse_excel(content: bytes) -> ParsedUpload:
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except Exception as exc:  # noqa: BLE001
        raise ImportFileError(f"Failed to open Excel file: {exc}") from exc

    try:
        worksheet = workbook.worksheets[0] if workbook.worksheets else None
        if worksheet is None:
            raise ImportFileError("Excel file has no worksheets.")

        rows = worksheet.iter_rows(values_only=True)
        header_row = next(rows, None)
        if header_row is None:
            raise ImportFileError("Excel sheet is empty or missing a header row.")

        headers = [_cell_text(value).strip() for value in header_row]
        while headers and not headers[-1]:
            headers.pop()
        _ensure_headers(headers)

        records: list[dict[str, str]] = []
        for row in rows:
            values = [_cell_text(value) for value in row]
            if not any(value.strip() for value in values):
                continue
            record = {
                header: (values[index] if index < len(values) else "")
                for index, header in enumerate(headers)
            }
            records.append(record)
    finally:
        workbook.close()

    return ParsedUpload(headers=headers, records=records)


def _ensure_headers(headers: list[str]) -> None:
    if not headers or not any(headers):
        raise ImportFileError("File has no column headers.")
    if any(not header for header in headers):
        raise ImportFileError("File contains an empty column header.")
    duplicates = sorted({header for header in headers if headers.count(header) > 1})
    if duplicates:
        raise ImportFileError(f"Duplicate column headers: {', '.join(duplicates)}")


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
