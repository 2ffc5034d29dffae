from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

STATUS_OPEN = "Open"
STATUS_IN_PROGRESS = "In Progress"
STATUS_MITIGATED = "Mitigated"
STATUS_CLOSED = "Closed"

STATUSES = (STATUS_OPEN, STATUS_IN_PROGRESS, STATUS_MITIGATED, STATUS_CLOSED)

RISK_TYPES = ("root_cause", "intermediate", "effect")


@dataclass(frozen=True)
class RiskLevel:
    threshold: int
    name: str
    color: str
    text_color: str = ""


@dataclass(frozen=True)
class RiskMetrics:
    score: int
    risk_level: str
    residual_score: float
    residual_risk_level: str


@dataclass
class RiskRecord:
    description: str
    probability: int
    impact: int
    mitigation_effectiveness: float
    score: int
    risk_level: str
    residual_score: float
    residual_risk_level: str
    status: str
    created_at: datetime
    updated_at: datetime
    id: Optional[str] = None
    owner: Optional[str] = None
    category: Optional[str] = None
    project: Optional[str] = None
    notes: Optional[str] = None
    comments: Optional[str] = None
    mitigation_date: Optional[datetime] = None
    causes: List[str] = field(default_factory=list)
    effects: List[str] = field(default_factory=list)
    root_cause: bool = False
    risk_type: Optional[str] = None
    dollar_effect_per_unit: Optional[float] = None
    exposure_units: Optional[float] = None
    exposure_unit_type: Optional[str] = None
    financial_impact: Optional[float] = None
    mitigation_savings: Optional[float] = None


@dataclass
class TimelineEntry:
    date: datetime
    risk_id: str
    event: str
    description: str
    risk_level: str


@dataclass
class RiskSummary:
    total: int
    by_level: Dict[str, int]
    by_status: Dict[str, int]
    by_project: Dict[str, int]


@dataclass
class ProjectRiskSummary:
    project_name: str
    total_risks: int
    high_risks: int
    open_risks: int
    mitigated_risks: int
    average_score: float
    risk_trend: str
    expected_profitability_impact: str
    timeline: List[TimelineEntry] = field(default_factory=list)


@dataclass
class ProjectFinancials:
    project_name: str
    total_financial_impact: float
    potential_savings: float
    impact_category: str


@dataclass
class ImportResult:
    success: bool
    records: List[RiskRecord] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
