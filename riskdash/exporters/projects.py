from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Sequence

from openpyxl import Workbook

from riskdash.aggregation import list_projects, project_financials, summarize_project
from riskdash.exporters.base import BaseExporter
from riskdash.exporters.sheets import Column, format_date, safe_sheet_title, write_table
from riskdash.models.config import DEFAULT_THRESHOLDS, Thresholds
from riskdash.models.risks import RiskRecord

SUMMARY_SHEET = "Project Summary"

SUMMARY_COLUMNS: Sequence[Column] = (
    ("Project Name", 25),
    ("Total Risks", 12),
    ("High Risk Count", 15),
    ("Open Risks", 12),
    ("Mitigated Risks", 15),
    ("Average Risk Score", 18),
    ("Risk Trend", 12),
    ("Profitability Impact", 18),
    ("Total Financial Impact", 20),
    ("Potential Savings", 18),
    ("Impact Category", 15),
)

TIMELINE_COLUMNS: Sequence[Column] = (
    ("Date", 12),
    ("Risk ID", 12),
    ("Event", 12),
    ("Description", 40),
    ("Risk Level", 15),
)


def build_project_summary_workbook(
    records: Iterable[RiskRecord],
    now: datetime,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> Workbook:
    records = list(records)
    summaries = [
        summarize_project(records, name, now=now, thresholds=thresholds)
        for name in list_projects(records)
    ]
    financials = {
        name: project_financials(records, name, thresholds)
        for name in list_projects(records)
    }

    wb = Workbook()
    ws = wb.active
    ws.title = SUMMARY_SHEET
    rows = []
    for summary in summaries:
        money = financials[summary.project_name]
        rows.append([
            summary.project_name,
            summary.total_risks,
            summary.high_risks,
            summary.open_risks,
            summary.mitigated_risks,
            summary.average_score,
            summary.risk_trend,
            summary.expected_profitability_impact,
            round(money.total_financial_impact, 2),
            round(money.potential_savings, 2),
            money.impact_category,
        ])
    write_table(ws, SUMMARY_COLUMNS, rows)

    for summary in summaries:
        if not summary.timeline:
            continue
        title = safe_sheet_title(f"{summary.project_name} Timeline", wb.sheetnames)
        timeline_ws = wb.create_sheet(title)
        write_table(timeline_ws, TIMELINE_COLUMNS, [
            [
                format_date(entry.date),
                entry.risk_id,
                entry.event,
                entry.description,
                entry.risk_level,
            ]
            for entry in summary.timeline
        ])
    return wb


class ProjectSummaryExporter(BaseExporter):
    def export(self) -> List[Path]:
        self._ensure_output_dir()
        self._log("Exporting project summaries...")
        projects = list_projects(self.records)
        written = self._write_workbook(
            f"project-risk-analytics-{self.date_stamp}.xlsx",
            build_project_summary_workbook(self.records, self.now, self.thresholds),
        )
        if projects:
            self._log(
                "Exporting project summaries... "
                + ", ".join(projects)
                + f" done ({len(projects)} projects)"
            )
        else:
            self._log("Exporting project summaries... done (0 projects)")
        return written
