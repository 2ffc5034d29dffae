from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

from riskdash.exceptions import ConfigError


@dataclass(frozen=True)
class Thresholds:
    """Policy cut-offs used by the aggregation engine.

    Trend: a project is "increasing" when more than ``trend_increasing_ratio``
    of its records were created within the last ``trend_window_days``, and
    "decreasing" when fewer than ``trend_decreasing_ratio`` were.

    Profitability: "high" when the high-risk count exceeds
    ``profitability_high_count`` or the average score exceeds
    ``profitability_high_average``; "medium" on the corresponding medium
    cut-offs; otherwise "low".
    """

    trend_window_days: int = 30
    trend_increasing_ratio: float = 0.3
    trend_decreasing_ratio: float = 0.1
    profitability_high_count: int = 3
    profitability_high_average: float = 15.0
    profitability_medium_count: int = 1
    profitability_medium_average: float = 8.0
    high_risk_levels: Tuple[str, ...] = ("HIGH", "VERY HIGH", "PROCEED AT YOUR OWN RISK")
    financial_base_value: float = 500000.0
    impact_high_amount: float = 150000.0
    impact_medium_amount: float = 50000.0
    timeline_limit: int = 10

    def __post_init__(self) -> None:
        if self.trend_window_days < 1:
            raise ConfigError("trend_window_days must be at least 1.")
        if not 0 <= self.trend_decreasing_ratio <= self.trend_increasing_ratio <= 1:
            raise ConfigError(
                "Trend ratios must satisfy 0 <= trend_decreasing_ratio "
                "<= trend_increasing_ratio <= 1."
            )
        if self.impact_medium_amount > self.impact_high_amount:
            raise ConfigError("impact_medium_amount cannot exceed impact_high_amount.")
        if self.timeline_limit < 1:
            raise ConfigError("timeline_limit must be at least 1.")


DEFAULT_THRESHOLDS = Thresholds()


@dataclass
class AppConfig:
    register_file: str
    export_dir: str
    thresholds: Thresholds = field(default_factory=Thresholds)

    def __post_init__(self) -> None:
        if not self.register_file:
            raise ConfigError("Register file cannot be empty.")
        if not self.register_file.endswith(".json"):
            self.register_file = self.register_file + ".json"
        if not self.export_dir:
            raise ConfigError("Export directory cannot be empty.")
