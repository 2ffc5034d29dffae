from __future__ import annotations

import json
from dataclasses import asdict, fields, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from riskdash.exceptions import RecordNotFoundError, StoreError
from riskdash.models.risks import RiskRecord
from riskdash.records import (
    DERIVED_FIELDS,
    ensure_utc,
    financial_fields,
    new_record_id,
    update_record,
    validate_record_input,
)
from riskdash.scoring import compute_metrics

REGISTER_VERSION = 1

_DATETIME_FIELDS = ("created_at", "updated_at", "mitigation_date")
_INPUT_FIELDS = frozenset(f.name for f in fields(RiskRecord)) - DERIVED_FIELDS
_REQUIRED_INPUTS = (
    "description",
    "probability",
    "impact",
    "status",
    "created_at",
    "updated_at",
)


class RiskStore:
    """In-memory risk register.

    Every mutation rebinds a new tuple, so a sequence returned by ``list()``
    is never changed behind the caller's back.
    """

    def __init__(self, records: Iterable[RiskRecord] = ()) -> None:
        self._records: Tuple[RiskRecord, ...] = ()
        self.add_many(records)

    def __len__(self) -> int:
        return len(self._records)

    def list(self) -> List[RiskRecord]:
        return list(self._records)

    def get(self, record_id: str) -> RiskRecord:
        for record in self._records:
            if record.id == record_id:
                return record
        raise RecordNotFoundError(f"Risk not found: {record_id}")

    def add(self, record: RiskRecord) -> RiskRecord:
        if record.id is None:
            record = replace(record, id=self._unused_id())
        elif any(r.id == record.id for r in self._records):
            raise StoreError(f"Duplicate risk id: {record.id}")
        self._records = self._records + (record,)
        return record

    def add_many(self, records: Iterable[RiskRecord]) -> List[RiskRecord]:
        return [self.add(record) for record in records]

    def update(
        self,
        record_id: str,
        changes: Mapping[str, Any],
        now: Optional[datetime] = None,
    ) -> RiskRecord:
        updated = update_record(self.get(record_id), changes, now=now)
        self._records = tuple(
            updated if r.id == record_id else r for r in self._records
        )
        return updated

    def remove(self, record_id: str) -> RiskRecord:
        record = self.get(record_id)
        self._records = tuple(r for r in self._records if r.id != record_id)
        return record

    def _unused_id(self) -> str:
        taken = {r.id for r in self._records}
        while True:
            candidate = new_record_id()
            if candidate not in taken:
                return candidate

    @classmethod
    def load(cls, path: Path) -> "RiskStore":
        if not path.is_file():
            return cls()
        try:
            with open(path, "r", encoding="utf-8") as f:
                payload = json.load(f)
        except (OSError, ValueError) as exc:
            raise StoreError(f"Cannot read risk register {path.name}: {exc}") from exc

        if not isinstance(payload, dict) or not isinstance(payload.get("risks"), list):
            raise StoreError(
                f"Invalid risk register {path.name}: expected an object with a 'risks' list."
            )
        return cls(record_from_dict(raw) for raw in payload["risks"])

    def save(self, path: Path) -> None:
        payload = {
            "version": REGISTER_VERSION,
            "risks": [record_to_dict(r) for r in self._records],
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
            f.write("\n")


def record_to_dict(record: RiskRecord) -> Dict[str, Any]:
    data = asdict(record)
    for name in _DATETIME_FIELDS:
        value = data.get(name)
        if isinstance(value, datetime):
            data[name] = value.isoformat()
    return data


def record_from_dict(raw: Any) -> RiskRecord:
    """Rebuild a record from its stored form.

    Only the raw inputs are read; scores, levels and financial figures are
    recomputed from them.
    """
    if not isinstance(raw, dict):
        raise StoreError("Invalid risk entry: expected an object.")
    record_id = raw.get("id", "?")
    missing = [name for name in _REQUIRED_INPUTS if raw.get(name) is None]
    if missing:
        raise StoreError(f"Invalid risk entry {record_id}: missing " + ", ".join(missing))

    data = {k: v for k, v in raw.items() if k in _INPUT_FIELDS}
    try:
        for name in _DATETIME_FIELDS:
            if data.get(name) is not None:
                data[name] = parse_datetime(data[name])
        for name in ("causes", "effects"):
            data[name] = list(data.get(name) or [])
        data["mitigation_effectiveness"] = float(data.get("mitigation_effectiveness") or 0.0)

        errors = validate_record_input(
            data["description"],
            data["probability"],
            data["impact"],
            data["mitigation_effectiveness"],
            data["status"],
            data.get("risk_type"),
        )
        if errors:
            raise StoreError(f"Invalid risk entry {record_id}: " + "; ".join(errors))

        data["probability"] = int(data["probability"])
        data["impact"] = int(data["impact"])
        metrics = compute_metrics(
            data["probability"], data["impact"], data["mitigation_effectiveness"],
        )
        data.update(
            score=metrics.score,
            risk_level=metrics.risk_level,
            residual_score=metrics.residual_score,
            residual_risk_level=metrics.residual_risk_level,
        )
        data.update(financial_fields(
            data["probability"],
            data["mitigation_effectiveness"],
            data.get("dollar_effect_per_unit"),
            data.get("exposure_units"),
        ))
        return RiskRecord(**data)
    except (TypeError, ValueError) as exc:
        raise StoreError(f"Invalid risk entry {record_id}: {exc}") from exc


def parse_datetime(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValueError(f"Invalid timestamp: {value!r}") from exc
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")
    return ensure_utc(parsed)
