from __future__ import annotations

from pathlib import Path
from typing import List, Sequence

from openpyxl import Workbook

from riskdash.exporters.base import BaseExporter
from riskdash.exporters.sheets import Column, write_table

TEMPLATE_SHEET = "Risk Template"
TEMPLATE_FILENAME = "risk_template.xlsx"

TEMPLATE_COLUMNS: Sequence[Column] = (
    ("Name/Description", 40),
    ("Probability", 12),
    ("Impact", 12),
    ("Mitigation Effectiveness", 22),
    ("Owner", 20),
    ("Status", 12),
    ("Category", 15),
    ("Project", 25),
    ("Notes", 30),
    ("Comments/Lessons", 40),
)

TEMPLATE_EXAMPLES = (
    (
        "Sample cyber security risk", 5, 4, 0.2, "IT Security Team", "Open",
        "Cybersecurity", "Network Upgrade", "Needs immediate attention",
        "Previous incidents suggest this is critical",
    ),
    (
        "Supply chain disruption", 3, 5, 0.5, "Operations Manager", "In Progress",
        "Operations", "Network Upgrade", "Monitoring suppliers",
        "Recent shortages highlighted our dependency on a single vendor",
    ),
)


def build_template_workbook() -> Workbook:
    wb = Workbook()
    ws = wb.active
    ws.title = TEMPLATE_SHEET
    write_table(ws, TEMPLATE_COLUMNS, TEMPLATE_EXAMPLES)
    return wb


class TemplateExporter(BaseExporter):
    def export(self) -> List[Path]:
        self._ensure_output_dir()
        written = self._write_workbook(TEMPLATE_FILENAME, build_template_workbook())
        if written:
            self._log(f"Template written to {written[0]}")
        return written
