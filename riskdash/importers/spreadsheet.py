from __future__ import annotations

import io
import zipfile
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import IO, Any, Dict, List, Optional, Sequence, Tuple, Union

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from riskdash.models.risks import (
    STATUS_CLOSED,
    STATUS_IN_PROGRESS,
    STATUS_MITIGATED,
    STATUS_OPEN,
    ImportResult,
    RiskRecord,
)
from riskdash.records import create_record, new_record_id, validate_record_input

Source = Union[str, Path, bytes, IO[bytes]]

# Synonyms are tried in order, each against every header, so the more
# specific synonym wins ("Description" over "Risk ID").
COLUMN_SYNONYMS: Dict[str, Tuple[str, ...]] = {
    "name": ("name", "description", "risk"),
    "probability": ("probability", "likelihood"),
    "impact": ("impact", "severity"),
    "owner": ("owner", "responsible"),
    "status": ("status",),
    "notes": ("notes",),
    "comments": ("comment", "lesson"),
    "category": ("category", "type"),
    "mitigation": ("mitigation", "effectiveness"),
    "project": ("project",),
}

_REQUIRED_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("name", "name/description/risk"),
    ("probability", "probability/likelihood"),
    ("impact", "impact/severity"),
)

_STATUS_KEYWORDS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("open",), STATUS_OPEN),
    (("progress", "active"), STATUS_IN_PROGRESS),
    (("mitigated", "controlled"), STATUS_MITIGATED),
    (("closed", "resolved"), STATUS_CLOSED),
)

_EMPTY_MARKERS = ("", "n/a")


def normalize_status(status: str) -> str:
    text = status.lower().strip()
    for keywords, normalized in _STATUS_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return normalized
    return STATUS_OPEN


def map_columns(headers: Sequence[Any]) -> Dict[str, int]:
    """Map field names to column indexes; unmatched fields are left out."""
    normalized = [str(h if h is not None else "").lower().strip() for h in headers]
    column_map: Dict[str, int] = {}
    for field_name, synonyms in COLUMN_SYNONYMS.items():
        for synonym in synonyms:
            index = next(
                (i for i, header in enumerate(normalized) if synonym in header),
                None,
            )
            if index is not None:
                column_map[field_name] = index
                break
    return column_map


def import_workbook(source: Source, *, now: Optional[datetime] = None) -> ImportResult:
    try:
        rows = _read_first_sheet(source)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as exc:
        return ImportResult(
            success=False,
            errors=[f"Error parsing Excel file: {exc}"],
        )
    return import_rows(rows, now=now)


def import_rows(rows: Sequence[Sequence[Any]], *, now: Optional[datetime] = None) -> ImportResult:
    """Convert a header row plus data rows into validated records."""
    if len(rows) < 2:
        return ImportResult(
            success=False,
            errors=["Excel file must have at least a header row and one data row"],
        )

    headers = rows[0]
    column_map = map_columns(headers)

    errors: List[str] = []
    for field_name, label in _REQUIRED_COLUMNS:
        if field_name not in column_map:
            errors.append(f"Missing required column: {label}")
    if errors:
        return ImportResult(success=False, errors=errors)

    percent_mitigation = False
    if "mitigation" in column_map:
        percent_mitigation = "%" in str(headers[column_map["mitigation"]] or "")

    records: List[RiskRecord] = []
    for index, row in enumerate(rows[1:], start=1):
        record, row_errors = _convert_row(row, index, column_map, percent_mitigation, now)
        errors.extend(row_errors)
        if record is not None:
            records.append(record)

    return ImportResult(success=not errors, records=records, errors=errors)


def _read_first_sheet(source: Source) -> List[Tuple[Any, ...]]:
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)
    elif isinstance(source, Path):
        source = str(source)
    wb = openpyxl.load_workbook(source, read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0]
        return [tuple(row) for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()


def _cell(row: Sequence[Any], column_map: Dict[str, int], field_name: str) -> Any:
    index = column_map.get(field_name)
    if index is None or index >= len(row):
        return None
    value = row[index]
    if isinstance(value, str) and value.strip().lower() in _EMPTY_MARKERS:
        return None
    return value


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def _convert_row(
    row: Sequence[Any],
    row_number: int,
    column_map: Dict[str, int],
    percent_mitigation: bool,
    now: Optional[datetime],
) -> Tuple[Optional[RiskRecord], List[str]]:
    name = _text(_cell(row, column_map, "name"))
    raw_probability = _cell(row, column_map, "probability")
    raw_impact = _cell(row, column_map, "impact")

    if name is None and _text(raw_probability) is None and _text(raw_impact) is None:
        return None, []

    prefix = f"Row {row_number}: "
    errors: List[str] = []

    if name is None:
        errors.append(prefix + "Missing risk name/description")

    probability = _number(raw_probability)
    impact = _number(raw_impact)
    if probability is None:
        errors.append(prefix + "Missing or invalid probability")
    if impact is None:
        errors.append(prefix + "Missing or invalid impact")

    mitigation = 0.0
    raw_mitigation = _cell(row, column_map, "mitigation")
    if _text(raw_mitigation) is not None:
        parsed = _number(raw_mitigation)
        if parsed is None:
            errors.append(prefix + "Invalid mitigation effectiveness")
        else:
            mitigation = parsed / 100 if percent_mitigation else parsed

    # Unreadable cells are reported before range checks.
    if errors or name is None or probability is None or impact is None:
        return None, errors

    errors = [
        prefix + message
        for message in validate_record_input(name, probability, impact, mitigation)
    ]
    if errors:
        return None, errors

    status_text = _text(_cell(row, column_map, "status"))
    record = create_record(
        name,
        int(probability),
        int(impact),
        mitigation,
        owner=_text(_cell(row, column_map, "owner")),
        category=_text(_cell(row, column_map, "category")),
        project=_text(_cell(row, column_map, "project")),
        status=normalize_status(status_text) if status_text else STATUS_OPEN,
        notes=_text(_cell(row, column_map, "notes")),
        comments=_text(_cell(row, column_map, "comments")),
        now=now,
    )
    return replace(record, id=new_record_id()), []
