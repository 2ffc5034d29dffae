from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, List, Sequence

from openpyxl import Workbook

from riskdash.exporters.base import BaseExporter
from riskdash.exporters.sheets import Column, format_date, or_na, write_table, yes_no
from riskdash.levels import MAX_RATING, MIN_RATING, RISK_MATRIX, level_ranges
from riskdash.models.risks import RiskRecord

REGISTER_SHEET = "Risk Register"
MATRIX_SHEET = "Risk Matrix"

REGISTER_COLUMNS: Sequence[Column] = (
    ("Risk ID", 12),
    ("Description", 50),
    ("Project", 25),
    ("Category", 15),
    ("Owner", 20),
    (f"Probability ({MIN_RATING}-{MAX_RATING})", 12),
    (f"Impact ({MIN_RATING}-{MAX_RATING})", 12),
    ("Risk Score", 12),
    ("Risk Level", 15),
    ("Mitigation Effectiveness (%)", 18),
    ("Residual Score", 12),
    ("Residual Risk Level", 15),
    ("Status", 12),
    ("Notes", 30),
    ("Comments/Lessons", 30),
    ("Created Date", 12),
    ("Updated Date", 12),
    ("Mitigation Date", 12),
    ("Root Cause", 10),
)


def register_row(record: RiskRecord) -> List[Any]:
    return [
        record.id or "",
        record.description,
        or_na(record.project),
        or_na(record.category),
        or_na(record.owner),
        record.probability,
        record.impact,
        record.score,
        record.risk_level,
        round(record.mitigation_effectiveness * 100, 1),
        record.residual_score,
        record.residual_risk_level,
        record.status,
        record.notes or "",
        record.comments or "",
        format_date(record.created_at),
        format_date(record.updated_at),
        format_date(record.mitigation_date),
        yes_no(record.root_cause),
    ]


def build_register_workbook(records: Iterable[RiskRecord]) -> Workbook:
    wb = Workbook()
    ws = wb.active
    ws.title = REGISTER_SHEET
    write_table(ws, REGISTER_COLUMNS, [register_row(r) for r in records])

    matrix_ws = wb.create_sheet(MATRIX_SHEET)
    matrix_ws.append([""] + [f"Impact {i}" for i in range(MIN_RATING, MAX_RATING + 1)])
    for probability, row in enumerate(RISK_MATRIX, start=MIN_RATING):
        matrix_ws.append([f"Probability {probability}"] + list(row))
    matrix_ws.append([])
    matrix_ws.append(["Risk Level Categories:"])
    for line in level_ranges():
        matrix_ws.append([line])
    matrix_ws.column_dimensions["A"].width = 34
    return wb


class RegisterExporter(BaseExporter):
    def export(self) -> List[Path]:
        self._ensure_output_dir()
        self._log("Exporting risk register...")
        written = self._write_workbook(
            f"risk-register-{self.date_stamp}.xlsx",
            build_register_workbook(self.records),
        )
        self._log(f"Exporting risk register... done ({len(self.records)} risks)")
        return written
