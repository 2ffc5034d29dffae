from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Collection, Optional, Sequence, Tuple

from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

Column = Tuple[str, int]

MAX_SHEET_TITLE = 31
_INVALID_TITLE_CHARS = re.compile(r"[\[\]:*?/\\]")


def format_date(value: Optional[datetime]) -> str:
    return value.strftime("%m/%d/%Y") if value is not None else ""


def yes_no(value: bool) -> str:
    return "Yes" if value else "No"


def or_na(value: Optional[str]) -> str:
    return value if value else "N/A"


def write_table(
    ws: Worksheet,
    columns: Sequence[Column],
    rows: Sequence[Sequence[Any]],
) -> None:
    """Write a header row and data rows, sizing each column."""
    ws.append([header for header, _ in columns])
    for row in rows:
        ws.append(list(row))
    for idx, (_, width) in enumerate(columns, start=1):
        ws.column_dimensions[get_column_letter(idx)].width = width


def safe_sheet_title(name: str, taken: Collection[str]) -> str:
    """Return an Excel-legal sheet title not already in *taken*."""
    base = _INVALID_TITLE_CHARS.sub("-", name).strip("'").strip() or "Sheet"
    title = base[:MAX_SHEET_TITLE]
    counter = 2
    lowered = {t.lower() for t in taken}
    while title.lower() in lowered:
        suffix = f" ({counter})"
        title = base[:MAX_SHEET_TITLE - len(suffix)] + suffix
        counter += 1
    return title
