from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from riskdash.aggregation import list_projects, project_financials, summarize, summarize_project
from riskdash.exporters.base import BaseExporter
from riskdash.exporters.sheets import format_date
from riskdash.formatters.markdown_formatter import MarkdownFormatter
from riskdash.models.risks import ProjectFinancials, ProjectRiskSummary, RiskSummary


def format_currency(amount: float) -> str:
    return f"${amount:,.0f}"


class SummaryExporter(BaseExporter):
    """Dashboard report: overall counts plus one section per project."""

    def __init__(self, *args: Any, project: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.project = project

    def export(self) -> List[Path]:
        self._ensure_output_dir()
        self._log("Exporting dashboard summary...")

        projects = list_projects(self.records)
        if self.project is not None:
            projects = [p for p in projects if p == self.project] or [self.project]

        overall = summarize(self.records)
        sections = [
            (
                summarize_project(
                    self.records, name, now=self.now, thresholds=self.thresholds,
                ),
                project_financials(self.records, name, self.thresholds),
            )
            for name in projects
        ]

        payload: Dict[str, Any] = {
            "generated": self.now.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "summary": asdict(overall),
            "projects": [
                {**asdict(summary), "financials": asdict(money)}
                for summary, money in sections
            ],
        }
        markdown = MarkdownFormatter.render(
            title="Risk Dashboard",
            body=self._build_body(overall, sections),
            frontmatter={
                "generated": payload["generated"],
                "risk_count": overall.total,
                "project_count": len(sections),
            },
        )
        name = "summary" if self.project is None else f"summary-{_slug(self.project)}"
        written = self._write_document(name, markdown, payload)
        self._log(f"Exporting dashboard summary... done ({overall.total} risks)")
        return written

    def _build_body(
        self,
        overall: RiskSummary,
        sections: List[Tuple[ProjectRiskSummary, ProjectFinancials]],
    ) -> str:
        parts: List[str] = []
        noun = "risk" if overall.total == 1 else "risks"
        parts.append(f"{overall.total} {noun} in the register on {self.date_stamp}.")
        parts.append("")

        parts.append("## Risk Levels")
        parts.append("")
        parts.append(MarkdownFormatter.table(
            ["Level", "Count"], [[k, v] for k, v in overall.by_level.items()],
        ))
        parts.append("")

        parts.append("## Status")
        parts.append("")
        if overall.by_status:
            parts.append(MarkdownFormatter.table(
                ["Status", "Count"], [[k, v] for k, v in overall.by_status.items()],
            ))
        else:
            parts.append("[//]: # (No risks recorded)")
        parts.append("")

        parts.append("## Projects")
        parts.append("")
        if not sections:
            parts.append("[//]: # (No projects set)")
        for summary, money in sections:
            parts.extend(_project_section(summary, money))

        return "\n".join(parts)


def _project_section(summary: ProjectRiskSummary, money: ProjectFinancials) -> List[str]:
    parts = [
        f"### {summary.project_name}",
        "",
        f"- **Total Risks:** {summary.total_risks}",
        f"- **High Risks:** {summary.high_risks}",
        f"- **Open:** {summary.open_risks}",
        f"- **Mitigated:** {summary.mitigated_risks}",
        f"- **Average Score:** {summary.average_score}",
        f"- **Trend:** {summary.risk_trend}",
        f"- **Profitability Impact:** {summary.expected_profitability_impact}",
        f"- **Financial Impact:** {format_currency(money.total_financial_impact)}"
        f" ({money.impact_category})",
        f"- **Potential Savings:** {format_currency(money.potential_savings)}",
        "",
    ]
    if summary.timeline:
        parts.append("#### Recent Activity")
        parts.append("")
        parts.append(MarkdownFormatter.table(
            ["Date", "Risk ID", "Event", "Risk Level"],
            [
                [format_date(e.date), e.risk_id, e.event, e.risk_level]
                for e in summary.timeline
            ],
        ))
        parts.append("")
    return parts


def _slug(name: str) -> str:
    return "-".join("".join(c if c.isalnum() else " " for c in name.lower()).split()) or "project"
