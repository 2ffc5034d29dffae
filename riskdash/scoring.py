from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import List

from riskdash.exceptions import ScoreRangeError
from riskdash.levels import MAX_RATING, MIN_RATING, classify, matrix_lookup
from riskdash.models.risks import RiskMetrics

__all__ = [
    "classify",
    "compute_metrics",
    "compute_residual_score",
    "compute_score",
    "round_half_up",
    "validate_assessment_inputs",
    "validate_mitigation",
]


def _in_range(value: float) -> bool:
    return MIN_RATING <= value <= MAX_RATING


def _is_whole(value: float) -> bool:
    return float(value).is_integer()


def compute_score(probability: int, impact: int) -> int:
    if not (_in_range(probability) and _in_range(impact)):
        raise ScoreRangeError(
            f"Probability and Impact must be between {MIN_RATING} and {MAX_RATING}"
        )
    if not (_is_whole(probability) and _is_whole(impact)):
        raise ScoreRangeError("Probability and Impact must be whole numbers")
    return matrix_lookup(int(probability), int(impact))


def round_half_up(value: float, places: int = 1) -> float:
    """Round to *places* decimals with halves rounded up, not to even."""
    step = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(step, rounding=ROUND_HALF_UP))


def compute_residual_score(score: float, mitigation_effectiveness: float) -> float:
    return round_half_up(score * (1 - mitigation_effectiveness))


def compute_metrics(
    probability: int,
    impact: int,
    mitigation_effectiveness: float = 0.0,
) -> RiskMetrics:
    score = compute_score(probability, impact)
    residual_score = compute_residual_score(score, mitigation_effectiveness)
    return RiskMetrics(
        score=score,
        risk_level=classify(score).name,
        residual_score=residual_score,
        residual_risk_level=classify(residual_score).name,
    )


def validate_assessment_inputs(probability: float, impact: float) -> List[str]:
    errors: List[str] = []
    for label, value in (("Probability", probability), ("Impact", impact)):
        if not _in_range(value):
            errors.append(f"{label} must be between {MIN_RATING} and {MAX_RATING}")
        elif not _is_whole(value):
            errors.append(f"{label} must be a whole number")
    return errors


def validate_mitigation(effectiveness: float) -> List[str]:
    if effectiveness < 0 or effectiveness > 1:
        return ["Mitigation effectiveness must be between 0 and 1 (0% to 100%)"]
    return []
