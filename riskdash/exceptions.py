from __future__ import annotations

from typing import List, Optional


class RiskDashError(Exception):
    """Base exception with user-friendly message."""
    pass


class ConfigError(RiskDashError):
    pass


class StoreError(RiskDashError):
    pass


class RecordNotFoundError(StoreError):
    pass


class ValidationError(RiskDashError):
    def __init__(self, errors: List[str], message: Optional[str] = None) -> None:
        self.errors = list(errors)
        super().__init__(message or "; ".join(self.errors))


class ImportFileError(RiskDashError):
    pass


class ScoreRangeError(ValueError):
    """Raised when a score is computed from out-of-range inputs.

    Callers are expected to validate first, so this signals a programming
    error rather than bad user input.
    """
