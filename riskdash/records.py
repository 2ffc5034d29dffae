from __future__ import annotations

import secrets
import string
from dataclasses import fields, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from riskdash.models.risks import (
    RISK_TYPES,
    STATUS_OPEN,
    STATUSES,
    RiskRecord,
)
from riskdash.scoring import compute_metrics, validate_assessment_inputs, validate_mitigation

_ID_ALPHABET = string.ascii_lowercase + string.digits
_ID_LENGTH = 9

_IMMUTABLE_FIELDS = frozenset({"id", "created_at", "updated_at"})
DERIVED_FIELDS = frozenset({
    "score",
    "risk_level",
    "residual_score",
    "residual_risk_level",
    "financial_impact",
    "mitigation_savings",
})
_METRIC_INPUTS = frozenset({"probability", "impact", "mitigation_effectiveness"})
_FINANCIAL_INPUTS = frozenset({
    "probability",
    "mitigation_effectiveness",
    "dollar_effect_per_unit",
    "exposure_units",
})
_RECORD_FIELDS = frozenset(f.name for f in fields(RiskRecord))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Naive timestamps are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def new_record_id() -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_LENGTH))


def validate_record_input(
    description: Optional[str],
    probability: float,
    impact: float,
    mitigation_effectiveness: float = 0.0,
    status: Optional[str] = None,
    risk_type: Optional[str] = None,
) -> List[str]:
    """Collect every problem with a record's raw inputs without raising."""
    errors: List[str] = []
    if not description or not description.strip():
        errors.append("Description is required")
    errors.extend(validate_assessment_inputs(probability, impact))
    errors.extend(validate_mitigation(mitigation_effectiveness))
    if status is not None and status not in STATUSES:
        errors.append("Status must be one of: " + ", ".join(STATUSES))
    if risk_type is not None and risk_type not in RISK_TYPES:
        errors.append("Risk type must be one of: " + ", ".join(RISK_TYPES))
    return errors


def financial_fields(
    probability: int,
    mitigation_effectiveness: float,
    dollar_effect_per_unit: Optional[float],
    exposure_units: Optional[float],
) -> Dict[str, Optional[float]]:
    if dollar_effect_per_unit is None:
        return {"financial_impact": None, "mitigation_savings": None}
    impact = dollar_effect_per_unit * (exposure_units or 0) * (probability / 5)
    return {
        "financial_impact": impact,
        "mitigation_savings": impact * mitigation_effectiveness,
    }


def create_record(
    description: str,
    probability: int,
    impact: int,
    mitigation_effectiveness: float = 0.0,
    *,
    owner: Optional[str] = None,
    category: Optional[str] = None,
    project: Optional[str] = None,
    status: Optional[str] = None,
    notes: Optional[str] = None,
    comments: Optional[str] = None,
    causes: Optional[Iterable[str]] = None,
    effects: Optional[Iterable[str]] = None,
    root_cause: bool = False,
    risk_type: Optional[str] = None,
    mitigation_date: Optional[datetime] = None,
    dollar_effect_per_unit: Optional[float] = None,
    exposure_units: Optional[float] = None,
    exposure_unit_type: Optional[str] = None,
    now: Optional[datetime] = None,
) -> RiskRecord:
    """Build a record with its derived fields computed.

    The returned record has no id; the store assigns one on ``add``.
    """
    metrics = compute_metrics(probability, impact, mitigation_effectiveness)
    timestamp = ensure_utc(now) if now is not None else utcnow()
    if mitigation_date is not None:
        mitigation_date = ensure_utc(mitigation_date)
    financial = financial_fields(
        int(probability),
        mitigation_effectiveness,
        dollar_effect_per_unit,
        exposure_units,
    )
    return RiskRecord(
        description=description,
        probability=int(probability),
        impact=int(impact),
        mitigation_effectiveness=float(mitigation_effectiveness),
        score=metrics.score,
        risk_level=metrics.risk_level,
        residual_score=metrics.residual_score,
        residual_risk_level=metrics.residual_risk_level,
        status=status or STATUS_OPEN,
        created_at=timestamp,
        updated_at=timestamp,
        owner=owner,
        category=category,
        project=project,
        notes=notes,
        comments=comments,
        mitigation_date=mitigation_date,
        causes=list(causes or []),
        effects=list(effects or []),
        root_cause=bool(root_cause),
        risk_type=risk_type,
        dollar_effect_per_unit=dollar_effect_per_unit,
        exposure_units=exposure_units,
        exposure_unit_type=exposure_unit_type,
        **financial,
    )


def update_record(
    existing: RiskRecord,
    changes: Mapping[str, Any],
    now: Optional[datetime] = None,
) -> RiskRecord:
    """Return a copy of *existing* with *changes* applied and derived fields refreshed."""
    unknown = sorted(set(changes) - _RECORD_FIELDS)
    if unknown:
        raise ValueError("Unknown risk field(s): " + ", ".join(unknown))
    forbidden = sorted(set(changes) & (_IMMUTABLE_FIELDS | DERIVED_FIELDS))
    if forbidden:
        raise ValueError("Field(s) cannot be changed directly: " + ", ".join(forbidden))

    updates: Dict[str, Any] = dict(changes)
    for list_field in ("causes", "effects"):
        if list_field in updates:
            updates[list_field] = list(updates[list_field] or [])

    if updates.get("mitigation_date") is not None:
        updates["mitigation_date"] = ensure_utc(updates["mitigation_date"])

    merged = replace(existing, **updates)
    refreshed: Dict[str, Any] = {
        "updated_at": ensure_utc(now) if now is not None else utcnow(),
    }

    if _METRIC_INPUTS & set(changes):
        metrics = compute_metrics(
            merged.probability, merged.impact, merged.mitigation_effectiveness,
        )
        refreshed.update(
            score=metrics.score,
            risk_level=metrics.risk_level,
            residual_score=metrics.residual_score,
            residual_risk_level=metrics.residual_risk_level,
        )

    if _FINANCIAL_INPUTS & set(changes):
        refreshed.update(financial_fields(
            merged.probability,
            merged.mitigation_effectiveness,
            merged.dollar_effect_per_unit,
            merged.exposure_units,
        ))

    return replace(merged, **refreshed)
