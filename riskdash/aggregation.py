from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

from riskdash.levels import level_names
from riskdash.models.config import DEFAULT_THRESHOLDS, Thresholds
from riskdash.models.risks import (
    STATUS_CLOSED,
    STATUS_IN_PROGRESS,
    STATUS_MITIGATED,
    STATUS_OPEN,
    ProjectFinancials,
    ProjectRiskSummary,
    RiskRecord,
    RiskSummary,
    TimelineEntry,
)
from riskdash.records import ensure_utc, utcnow
from riskdash.scoring import round_half_up

OPEN_STATUSES = (STATUS_OPEN, STATUS_IN_PROGRESS)
RESOLVED_STATUSES = (STATUS_MITIGATED, STATUS_CLOSED)

SORTABLE_FIELDS = (
    "score",
    "residual_score",
    "probability",
    "impact",
    "mitigation_effectiveness",
    "description",
    "status",
    "created_at",
    "updated_at",
)

_TIMELINE_SNIPPET = 50


def summarize(records: Iterable[RiskRecord]) -> RiskSummary:
    by_level: Dict[str, int] = {name: 0 for name in level_names()}
    by_status: Dict[str, int] = {}
    by_project: Dict[str, int] = {}
    total = 0

    for record in records:
        total += 1
        by_level[record.risk_level] = by_level.get(record.risk_level, 0) + 1
        by_status[record.status] = by_status.get(record.status, 0) + 1
        if record.project:
            by_project[record.project] = by_project.get(record.project, 0) + 1

    return RiskSummary(
        total=total,
        by_level=by_level,
        by_status=by_status,
        by_project=by_project,
    )


def list_projects(records: Iterable[RiskRecord]) -> List[str]:
    projects: List[str] = []
    for record in records:
        if record.project and record.project not in projects:
            projects.append(record.project)
    return projects


def summarize_project(
    records: Iterable[RiskRecord],
    project_name: str,
    *,
    now: Optional[datetime] = None,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> ProjectRiskSummary:
    project_records = [r for r in records if r.project == project_name]
    total = len(project_records)

    high_risks = sum(1 for r in project_records if r.risk_level in thresholds.high_risk_levels)
    open_risks = sum(1 for r in project_records if r.status in OPEN_STATUSES)
    mitigated_risks = sum(1 for r in project_records if r.status in RESOLVED_STATUSES)

    average_score = (
        sum(r.score for r in project_records) / total if total else 0.0
    )

    return ProjectRiskSummary(
        project_name=project_name,
        total_risks=total,
        high_risks=high_risks,
        open_risks=open_risks,
        mitigated_risks=mitigated_risks,
        average_score=round_half_up(average_score),
        risk_trend=_risk_trend(
            project_records, ensure_utc(now) if now is not None else utcnow(), thresholds,
        ),
        expected_profitability_impact=_profitability_impact(
            high_risks, average_score, thresholds,
        ),
        timeline=_build_timeline(project_records, thresholds.timeline_limit),
    )


def _risk_trend(
    records: Sequence[RiskRecord],
    now: datetime,
    thresholds: Thresholds,
) -> str:
    # Share of records created recently, not a time series of scores.
    cutoff = now - timedelta(days=thresholds.trend_window_days)
    recent = sum(1 for r in records if ensure_utc(r.created_at) > cutoff)
    if recent > len(records) * thresholds.trend_increasing_ratio:
        return "increasing"
    if recent < len(records) * thresholds.trend_decreasing_ratio:
        return "decreasing"
    return "stable"


def _profitability_impact(
    high_risks: int,
    average_score: float,
    thresholds: Thresholds,
) -> str:
    if (high_risks > thresholds.profitability_high_count
            or average_score > thresholds.profitability_high_average):
        return "high"
    if (high_risks > thresholds.profitability_medium_count
            or average_score > thresholds.profitability_medium_average):
        return "medium"
    return "low"


def _build_timeline(records: Sequence[RiskRecord], limit: int) -> List[TimelineEntry]:
    timeline: List[TimelineEntry] = []
    for record in records:
        timeline.append(TimelineEntry(
            date=ensure_utc(record.created_at),
            risk_id=record.id or "",
            event="created",
            description=f"Risk created: {record.description[:_TIMELINE_SNIPPET]}...",
            risk_level=record.risk_level,
        ))
    for record in records:
        if record.mitigation_date is not None:
            timeline.append(TimelineEntry(
                date=ensure_utc(record.mitigation_date),
                risk_id=record.id or "",
                event="mitigated",
                description=f"Risk mitigated: {record.description[:_TIMELINE_SNIPPET]}...",
                risk_level=record.residual_risk_level,
            ))
    timeline.sort(key=lambda entry: entry.date)
    return timeline[-limit:]


def financial_impact(
    record: RiskRecord,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> float:
    """Expected loss in the currency of ``dollar_effect_per_unit``.

    Records without per-unit figures fall back to an estimate derived from
    the score and a nominal project value.
    """
    if record.dollar_effect_per_unit is not None:
        return (
            record.dollar_effect_per_unit
            * (record.exposure_units or 0)
            * (record.probability / 5)
        )
    return (
        record.score
        * thresholds.financial_base_value
        * (record.probability * 0.2)
        * 0.01
    )


def mitigation_savings(
    record: RiskRecord,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> float:
    if record.mitigation_savings is not None:
        return record.mitigation_savings
    return financial_impact(record, thresholds) * record.mitigation_effectiveness


def impact_category(amount: float, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> str:
    if amount >= thresholds.impact_high_amount:
        return "high"
    if amount >= thresholds.impact_medium_amount:
        return "medium"
    return "low"


def project_financials(
    records: Iterable[RiskRecord],
    project_name: str,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> ProjectFinancials:
    project_records = [r for r in records if r.project == project_name]
    total = sum(financial_impact(r, thresholds) for r in project_records)
    savings = sum(
        mitigation_savings(r, thresholds)
        for r in project_records
        if r.status in RESOLVED_STATUSES
    )
    return ProjectFinancials(
        project_name=project_name,
        total_financial_impact=total,
        potential_savings=savings,
        impact_category=impact_category(total, thresholds),
    )


def filter_records(
    records: Iterable[RiskRecord],
    *,
    level: Optional[str] = None,
    status: Optional[str] = None,
    category: Optional[str] = None,
    project: Optional[str] = None,
) -> List[RiskRecord]:
    wanted: Dict[str, Any] = {
        "risk_level": level,
        "status": status,
        "category": category,
        "project": project,
    }
    active = {k: v for k, v in wanted.items() if v}
    return [
        r for r in records
        if all(getattr(r, k) == v for k, v in active.items())
    ]


def sort_records(
    records: Iterable[RiskRecord],
    field: str = "score",
    descending: bool = True,
) -> List[RiskRecord]:
    if field not in SORTABLE_FIELDS:
        raise ValueError(
            f"Cannot sort by '{field}'. Choose one of: " + ", ".join(SORTABLE_FIELDS)
        )

    def _key(record: RiskRecord) -> Any:
        value = getattr(record, field)
        return value.lower() if isinstance(value, str) else value

    return sorted(records, key=_key, reverse=descending)
