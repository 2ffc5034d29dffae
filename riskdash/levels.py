from __future__ import annotations

from typing import List, Tuple

from riskdash.models.risks import RiskLevel

MIN_RATING = 1
MAX_RATING = 5

# Ordered by threshold; classify() relies on this order.
RISK_LEVELS: Tuple[RiskLevel, ...] = (
    RiskLevel(1, "ACCEPTABLE", "teal", "dark teal"),
    RiskLevel(3, "VERY LOW", "green", "dark green"),
    RiskLevel(5, "LOW", "yellow", "dark yellow"),
    RiskLevel(8, "SIGNIFICANT", "orange", "dark orange"),
    RiskLevel(10, "HIGH", "red", "light red"),
    RiskLevel(15, "VERY HIGH", "dark red", "light red"),
    RiskLevel(20, "PROCEED AT YOUR OWN RISK", "maroon", "light red"),
)

# Probability rows x impact columns.
RISK_MATRIX: Tuple[Tuple[int, ...], ...] = tuple(
    tuple(p * i for i in range(MIN_RATING, MAX_RATING + 1))
    for p in range(MIN_RATING, MAX_RATING + 1)
)


def classify(score: float) -> RiskLevel:
    """Return the level with the greatest threshold not above *score*.

    Scores below the smallest threshold fall into the lowest level.
    """
    for level in reversed(RISK_LEVELS):
        if score >= level.threshold:
            return level
    return RISK_LEVELS[0]


def matrix_lookup(probability: int, impact: int) -> int:
    return RISK_MATRIX[probability - MIN_RATING][impact - MIN_RATING]


def level_names() -> List[str]:
    return [level.name for level in RISK_LEVELS]


def level_ranges() -> List[str]:
    """Legend lines such as ``"1-2: ACCEPTABLE"`` covering 1 to the max score."""
    max_score = MAX_RATING * MAX_RATING
    lines: List[str] = []
    for idx, level in enumerate(RISK_LEVELS):
        if idx + 1 < len(RISK_LEVELS):
            upper = RISK_LEVELS[idx + 1].threshold - 1
        else:
            upper = max_score
        lines.append(f"{level.threshold}-{upper}: {level.name}")
    return lines
