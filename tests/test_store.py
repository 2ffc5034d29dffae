from __future__ import annotations

import json
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from riskdash.exceptions import RecordNotFoundError, StoreError
from riskdash.records import create_record
from riskdash.store import RiskStore, parse_datetime, record_from_dict, record_to_dict

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _store() -> RiskStore:
    return RiskStore([
        replace(create_record("Server outage", 4, 5, 0.5, project="Apollo", now=NOW), id="r1"),
        replace(create_record("Vendor delay", 2, 3, project="Gemini", now=NOW), id="r2"),
    ])


class TestRiskStore:
    def test_add_assigns_id(self) -> None:
        store = RiskStore()
        added = store.add(create_record("Power loss", 3, 3, now=NOW))
        assert added.id is not None
        assert len(added.id) == 9
        assert store.get(added.id) == added

    def test_add_keeps_existing_id(self) -> None:
        store = _store()
        assert [r.id for r in store.list()] == ["r1", "r2"]

    def test_add_duplicate_id_rejected(self) -> None:
        store = _store()
        with pytest.raises(StoreError, match="Duplicate risk id: r1"):
            store.add(replace(create_record("Other", 1, 1, now=NOW), id="r1"))

    def test_get_missing(self) -> None:
        with pytest.raises(RecordNotFoundError, match="Risk not found: nope"):
            _store().get("nope")

    def test_update_replaces_record(self) -> None:
        store = _store()
        updated = store.update("r2", {"impact": 5}, now=NOW + timedelta(hours=1))
        assert updated.score == 10
        assert store.get("r2").score == 10
        assert len(store) == 2

    def test_update_missing(self) -> None:
        with pytest.raises(RecordNotFoundError):
            _store().update("nope", {"notes": "x"})

    def test_remove(self) -> None:
        store = _store()
        removed = store.remove("r1")
        assert removed.description == "Server outage"
        assert [r.id for r in store.list()] == ["r2"]

    def test_listed_snapshot_not_mutated(self) -> None:
        store = _store()
        snapshot = store.list()
        store.remove("r1")
        store.add(create_record("New", 1, 2, now=NOW))
        assert [r.id for r in snapshot] == ["r1", "r2"]


class TestPersistence:
    def test_save_and_load(self, tmp_path: Path) -> None:
        path = tmp_path / "data" / "risks.json"
        store = _store()
        store.update("r1", {"mitigation_date": NOW + timedelta(days=3)}, now=NOW)
        store.save(path)

        loaded = RiskStore.load(path)
        assert loaded.list() == store.list()

    def test_saved_format(self, tmp_path: Path) -> None:
        path = tmp_path / "risks.json"
        _store().save(path)
        payload = json.loads(path.read_text(encoding="utf-8"))
        assert payload["version"] == 1
        assert payload["risks"][0]["id"] == "r1"
        assert payload["risks"][0]["created_at"] == "2026-03-01T12:00:00+00:00"

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        assert len(RiskStore.load(tmp_path / "missing.json")) == 0

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "risks.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(StoreError, match="Cannot read risk register risks.json"):
            RiskStore.load(path)

    def test_invalid_shape(self, tmp_path: Path) -> None:
        path = tmp_path / "risks.json"
        path.write_text('{"items": []}', encoding="utf-8")
        with pytest.raises(StoreError, match="expected an object with a 'risks' list"):
            RiskStore.load(path)

    def test_invalid_entry(self, tmp_path: Path) -> None:
        path = tmp_path / "risks.json"
        path.write_text('{"risks": [{"id": "x1", "description": "only"}]}', encoding="utf-8")
        with pytest.raises(StoreError, match="Invalid risk entry x1"):
            RiskStore.load(path)


class TestRecordDicts:
    def test_unknown_keys_ignored(self) -> None:
        data = record_to_dict(_store().get("r1"))
        data["legacy_field"] = "ignored"
        assert record_from_dict(data) == _store().get("r1")

    def test_bad_timestamp(self) -> None:
        data = record_to_dict(_store().get("r1"))
        data["created_at"] = "yesterday"
        with pytest.raises(StoreError, match="Invalid timestamp"):
            record_from_dict(data)

    def test_not_an_object(self) -> None:
        with pytest.raises(StoreError, match="expected an object"):
            record_from_dict(["r1"])

    def test_stale_derived_fields_recomputed(self) -> None:
        data = record_to_dict(_store().get("r1"))
        data.update(
            probability=5, impact=5, score=1, risk_level="ACCEPTABLE",
            residual_score=0, residual_risk_level="ACCEPTABLE",
        )
        record = record_from_dict(data)
        assert record.score == 25
        assert record.risk_level == "PROCEED AT YOUR OWN RISK"
        assert record.residual_score == 12.5
        assert record.residual_risk_level == "HIGH"

    def test_financials_recomputed(self) -> None:
        data = record_to_dict(_store().get("r1"))
        data.update(dollar_effect_per_unit=100.0, exposure_units=10, financial_impact=1.0)
        record = record_from_dict(data)
        assert record.financial_impact == pytest.approx(800.0)
        assert record.mitigation_savings == pytest.approx(400.0)

    def test_null_lists_become_empty(self) -> None:
        data = record_to_dict(_store().get("r1"))
        data["causes"] = None
        data["effects"] = None
        record = record_from_dict(data)
        assert record.causes == []
        assert record.effects == []

    def test_out_of_range_rating_rejected(self) -> None:
        data = record_to_dict(_store().get("r1"))
        data["probability"] = 9
        with pytest.raises(StoreError, match="Invalid risk entry r1: Probability must be between 1 and 5"):
            record_from_dict(data)

    def test_non_numeric_rating_rejected(self) -> None:
        data = record_to_dict(_store().get("r1"))
        data["impact"] = "severe"
        with pytest.raises(StoreError, match="Invalid risk entry r1"):
            record_from_dict(data)

    def test_unknown_status_rejected(self) -> None:
        data = record_to_dict(_store().get("r1"))
        data["status"] = "Pending"
        with pytest.raises(StoreError, match="Status must be one of"):
            record_from_dict(data)


class TestParseDatetime:
    def test_zulu_suffix(self) -> None:
        assert parse_datetime("2026-03-01T12:00:00Z") == NOW

    def test_naive_is_utc(self) -> None:
        assert parse_datetime("2026-03-01T12:00:00") == NOW

    def test_date_only(self) -> None:
        assert parse_datetime("2026-03-01") == datetime(2026, 3, 1, tzinfo=timezone.utc)

    def test_invalid(self) -> None:
        with pytest.raises(ValueError, match="Invalid timestamp"):
            parse_datetime(42)
