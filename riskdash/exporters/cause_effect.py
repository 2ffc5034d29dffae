from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Sequence

from openpyxl import Workbook

from riskdash.exporters.base import BaseExporter
from riskdash.exporters.sheets import Column, or_na, write_table, yes_no
from riskdash.models.risks import RiskRecord

RELATIONSHIP_SHEET = "Cause-Effect Analysis"
ROOT_CAUSE_SHEET = "Root Causes"

RELATIONSHIP_COLUMNS: Sequence[Column] = (
    ("Risk ID", 12),
    ("Description", 40),
    ("Project", 25),
    ("Is Root Cause", 12),
    ("Causes (Risk IDs)", 20),
    ("Effects (Risk IDs)", 20),
    ("Risk Score", 12),
    ("Risk Level", 15),
    ("Status", 12),
)

ROOT_CAUSE_COLUMNS: Sequence[Column] = (
    ("Root Cause Risk ID", 15),
    ("Description", 40),
    ("Project", 25),
    ("Direct Effects Count", 18),
    ("Risk Score", 12),
    ("Mitigation Status", 15),
)


def has_relationships(record: RiskRecord) -> bool:
    return bool(record.causes or record.effects)


def build_cause_effect_workbook(records: Iterable[RiskRecord]) -> Workbook:
    records = list(records)

    wb = Workbook()
    ws = wb.active
    ws.title = RELATIONSHIP_SHEET
    write_table(ws, RELATIONSHIP_COLUMNS, [
        [
            r.id or "",
            r.description,
            or_na(r.project),
            yes_no(r.root_cause),
            ", ".join(r.causes),
            ", ".join(r.effects),
            r.score,
            r.risk_level,
            r.status,
        ]
        for r in records
        if has_relationships(r)
    ])

    root_causes = [r for r in records if r.root_cause]
    if root_causes:
        root_ws = wb.create_sheet(ROOT_CAUSE_SHEET)
        write_table(root_ws, ROOT_CAUSE_COLUMNS, [
            [
                r.id or "",
                r.description,
                or_na(r.project),
                len(r.effects),
                r.score,
                r.status,
            ]
            for r in root_causes
        ])
    return wb


class CauseEffectExporter(BaseExporter):
    def export(self) -> List[Path]:
        self._ensure_output_dir()
        self._log("Exporting cause-effect analysis...")
        linked = sum(1 for r in self.records if has_relationships(r))
        written = self._write_workbook(
            f"cause-effect-analysis-{self.date_stamp}.xlsx",
            build_cause_effect_workbook(self.records),
        )
        self._log(f"Exporting cause-effect analysis... done ({linked} linked risks)")
        return written
