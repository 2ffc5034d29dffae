from __future__ import annotations

import json
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List
from unittest.mock import patch

import pytest
import yaml
from openpyxl import load_workbook

from riskdash.exporters.base import BaseExporter
from riskdash.exporters.cause_effect import CauseEffectExporter, build_cause_effect_workbook
from riskdash.exporters.projects import ProjectSummaryExporter, build_project_summary_workbook
from riskdash.exporters.register import (
    MATRIX_SHEET,
    REGISTER_COLUMNS,
    REGISTER_SHEET,
    RegisterExporter,
    build_register_workbook,
    register_row,
)
from riskdash.exporters.sheets import format_date, or_na, safe_sheet_title, yes_no
from riskdash.exporters.summary import SummaryExporter, format_currency
from riskdash.exporters.template import (
    TEMPLATE_COLUMNS,
    TEMPLATE_FILENAME,
    TemplateExporter,
    build_template_workbook,
)
from riskdash.formatters.markdown_formatter import MarkdownFormatter
from riskdash.models.risks import RiskRecord
from riskdash.records import create_record

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
CREATED = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def _risk(record_id: str, probability: int = 2, impact: int = 2, **kwargs: Any) -> RiskRecord:
    record = create_record(
        f"Risk {record_id}", probability, impact, now=CREATED, **kwargs
    )
    return replace(record, id=record_id)


def _records() -> List[RiskRecord]:
    return [
        _risk("r1", 4, 5, mitigation_effectiveness=0.5, project="Apollo", owner="IT",
              status="Mitigated", root_cause=True, effects=["r2"]),
        _risk("r2", 3, 3, project="Apollo", causes=["r1"]),
        _risk("r3", 1, 2, project="Gemini"),
        _risk("r4", 2, 2),
    ]


class _Concrete(BaseExporter):
    def export(self) -> List[Path]:
        return []


class TestBaseExporter:
    def test_cannot_instantiate(self) -> None:
        with pytest.raises(TypeError):
            BaseExporter([], Path("/tmp/test"))  # type: ignore[abstract]

    def test_ensure_output_dir_creates_directory(self, tmp_path: Path) -> None:
        exporter = _Concrete([], tmp_path / "nested" / "dir")
        exporter._ensure_output_dir()
        assert (tmp_path / "nested" / "dir").is_dir()

    def test_log_prints_to_stdout(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        _Concrete([], tmp_path)._log("hello world")
        assert "hello world" in capsys.readouterr().out

    def test_date_stamp_uses_now(self, tmp_path: Path) -> None:
        assert _Concrete([], tmp_path, now=NOW).date_stamp == "2026-03-01"

    def test_write_document_creates_md_and_yaml_by_default(self, tmp_path: Path) -> None:
        exporter = _Concrete([], tmp_path)
        markdown = MarkdownFormatter.render(
            title="Test Doc", body="Content here.", frontmatter={"status": "active"},
        )
        exporter._write_document("test-doc", markdown, {"status": "active"})

        assert (tmp_path / "test-doc.md").exists()
        assert not (tmp_path / "test-doc.json").exists()
        assert (tmp_path / "test-doc.yaml").exists()
        content = (tmp_path / "test-doc.md").read_text(encoding="utf-8")
        assert content.startswith("---\nstatus: active\n---\n")
        assert "# Test Doc" in content

    def test_write_document_creates_json_with_keep_raw_json(self, tmp_path: Path) -> None:
        exporter = _Concrete([], tmp_path, keep_raw_json=True)
        exporter._write_document("test-doc", "# Doc\n", {"title": "Doc", "count": 2})

        assert json.loads((tmp_path / "test-doc.json").read_text(encoding="utf-8")) == {
            "title": "Doc",
            "count": 2,
        }

    def test_write_document_markdown_and_data_kept_apart(self, tmp_path: Path) -> None:
        exporter = _Concrete([], tmp_path)
        exporter._write_document("doc", "# Custom\n", {"a": 1})
        assert (tmp_path / "doc.md").read_text(encoding="utf-8") == "# Custom\n"
        assert yaml.safe_load((tmp_path / "doc.yaml").read_text(encoding="utf-8")) == {"a": 1}

    def test_should_write_returns_true_for_new_file(self, tmp_path: Path) -> None:
        assert _Concrete([], tmp_path)._should_write(tmp_path / "new.md") is True

    def test_should_write_returns_true_with_force(self, tmp_path: Path) -> None:
        existing = tmp_path / "existing.md"
        existing.write_text("old", encoding="utf-8")
        assert _Concrete([], tmp_path, force=True)._should_write(existing) is True

    def test_should_write_prompts_and_respects_no(self, tmp_path: Path) -> None:
        existing = tmp_path / "existing.md"
        existing.write_text("old", encoding="utf-8")
        with patch("builtins.input", return_value="n"):
            assert _Concrete([], tmp_path)._should_write(existing) is False

    def test_should_write_prompts_and_respects_yes(self, tmp_path: Path) -> None:
        existing = tmp_path / "existing.md"
        existing.write_text("old", encoding="utf-8")
        with patch("builtins.input", return_value="yes"):
            assert _Concrete([], tmp_path)._should_write(existing) is True

    def test_should_write_reprompts_on_unknown_answer(self, tmp_path: Path) -> None:
        existing = tmp_path / "existing.md"
        existing.write_text("old", encoding="utf-8")
        with patch("builtins.input", side_effect=["maybe", "y"]) as mock_input:
            assert _Concrete([], tmp_path)._should_write(existing) is True
        assert mock_input.call_count == 2

    def test_should_write_all_sets_overwrite_all(self, tmp_path: Path) -> None:
        first = tmp_path / "first.md"
        second = tmp_path / "second.md"
        first.write_text("old", encoding="utf-8")
        second.write_text("old", encoding="utf-8")
        exporter = _Concrete([], tmp_path)

        with patch("builtins.input", return_value="a") as mock_input:
            assert exporter._should_write(first) is True
            assert exporter._should_write(second) is True
        assert mock_input.call_count == 1


class TestSheetHelpers:
    def test_format_date(self) -> None:
        assert format_date(NOW) == "03/01/2026"
        assert format_date(None) == ""

    def test_yes_no_and_na(self) -> None:
        assert yes_no(True) == "Yes"
        assert yes_no(False) == "No"
        assert or_na(None) == "N/A"
        assert or_na("") == "N/A"
        assert or_na("Apollo") == "Apollo"

    def test_safe_sheet_title(self) -> None:
        assert safe_sheet_title("R&D / Labs Timeline", []) == "R&D - Labs Timeline"
        assert safe_sheet_title("Apollo Timeline", ["apollo timeline"]) == "Apollo Timeline (2)"
        long_title = safe_sheet_title("A" * 40, [])
        assert len(long_title) == 31
        deduped = safe_sheet_title("A" * 40, [long_title])
        assert len(deduped) == 31
        assert deduped.endswith(" (2)")


class TestRegisterExport:
    def test_register_row(self) -> None:
        row = register_row(_records()[0])
        assert len(row) == len(REGISTER_COLUMNS)
        assert row[0] == "r1"
        assert row[5:9] == [4, 5, 20, "PROCEED AT YOUR OWN RISK"]
        assert row[9] == 50
        assert row[10:12] == [10.0, "HIGH"]
        assert row[15] == "01/01/2026"
        assert row[17] == ""
        assert row[18] == "Yes"

    def test_fractional_percentage_kept(self) -> None:
        row = register_row(_risk("r9", 4, 5, mitigation_effectiveness=0.125))
        assert row[9] == 12.5
        assert row[10] == 17.5

    def test_missing_optionals_shown_as_na(self) -> None:
        row = register_row(_records()[3])
        assert row[2:5] == ["N/A", "N/A", "N/A"]
        assert row[18] == "No"

    def test_workbook_layout(self, tmp_path: Path) -> None:
        path = tmp_path / "register.xlsx"
        build_register_workbook(_records()).save(path)

        wb = load_workbook(path)
        assert wb.sheetnames == [REGISTER_SHEET, MATRIX_SHEET]
        rows = list(wb[REGISTER_SHEET].iter_rows(values_only=True))
        assert list(rows[0]) == [header for header, _ in REGISTER_COLUMNS]
        assert len(rows) == 5

        matrix = list(wb[MATRIX_SHEET].iter_rows(values_only=True))
        assert matrix[0][1:] == ("Impact 1", "Impact 2", "Impact 3", "Impact 4", "Impact 5")
        assert matrix[3][0] == "Probability 3"
        assert matrix[3][4] == 12
        assert matrix[5][5] == 25
        legend = [row[0] for row in matrix if row and row[0]]
        assert "Risk Level Categories:" in legend
        assert "20-25: PROCEED AT YOUR OWN RISK" in legend

    def test_exporter_writes_dated_file(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        written = RegisterExporter(_records(), tmp_path / "out", now=NOW).export()
        assert written == [tmp_path / "out" / "risk-register-2026-03-01.xlsx"]
        assert written[0].is_file()
        assert "done (4 risks)" in capsys.readouterr().out

    def test_existing_file_skipped_when_declined(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        target = tmp_path / "risk-register-2026-03-01.xlsx"
        target.write_bytes(b"old")
        with patch("builtins.input", return_value="n"):
            written = RegisterExporter(_records(), tmp_path, now=NOW).export()
        assert written == []
        assert target.read_bytes() == b"old"
        assert "Skipped risk-register-2026-03-01.xlsx" in capsys.readouterr().out

    def test_force_overwrites(self, tmp_path: Path) -> None:
        target = tmp_path / "risk-register-2026-03-01.xlsx"
        target.write_bytes(b"old")
        with patch("builtins.input") as mock_input:
            RegisterExporter(_records(), tmp_path, force=True, now=NOW).export()
        mock_input.assert_not_called()
        assert load_workbook(target).sheetnames == [REGISTER_SHEET, MATRIX_SHEET]


class TestProjectSummaryExport:
    def test_summary_rows_and_timelines(self, tmp_path: Path) -> None:
        path = tmp_path / "projects.xlsx"
        build_project_summary_workbook(_records(), NOW).save(path)

        wb = load_workbook(path)
        assert wb.sheetnames == ["Project Summary", "Apollo Timeline", "Gemini Timeline"]

        rows = list(wb["Project Summary"].iter_rows(values_only=True))
        assert rows[0][0] == "Project Name"
        apollo = rows[1]
        assert apollo[:8] == ("Apollo", 2, 1, 1, 1, 14.5, "decreasing", "medium")
        assert apollo[8] == pytest.approx(107000)
        assert apollo[10] == "medium"

        timeline = list(wb["Apollo Timeline"].iter_rows(values_only=True))
        assert timeline[0] == ("Date", "Risk ID", "Event", "Description", "Risk Level")
        assert [row[1] for row in timeline[1:]] == ["r1", "r2"]
        assert timeline[1][0] == "01/01/2026"

    def test_exporter_logs_projects(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        written = ProjectSummaryExporter(_records(), tmp_path, now=NOW).export()
        assert written == [tmp_path / "project-risk-analytics-2026-03-01.xlsx"]
        assert "Apollo, Gemini done (2 projects)" in capsys.readouterr().out

    def test_no_projects(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        ProjectSummaryExporter([_risk("x")], tmp_path, now=NOW).export()
        assert "done (0 projects)" in capsys.readouterr().out
        wb = load_workbook(tmp_path / "project-risk-analytics-2026-03-01.xlsx")
        assert wb.sheetnames == ["Project Summary"]


class TestCauseEffectExport:
    def test_only_linked_records(self, tmp_path: Path) -> None:
        path = tmp_path / "ce.xlsx"
        build_cause_effect_workbook(_records()).save(path)

        wb = load_workbook(path)
        assert wb.sheetnames == ["Cause-Effect Analysis", "Root Causes"]
        rows = list(wb["Cause-Effect Analysis"].iter_rows(values_only=True))
        assert [row[0] for row in rows[1:]] == ["r1", "r2"]
        assert rows[1][3] == "Yes"
        assert rows[1][5] == "r2"
        assert rows[2][4] == "r1"

        roots = list(wb["Root Causes"].iter_rows(values_only=True))
        assert roots[1] == ("r1", "Risk r1", "Apollo", 1, 20, "Mitigated")

    def test_no_root_causes_sheet_when_none(self, tmp_path: Path) -> None:
        path = tmp_path / "ce.xlsx"
        build_cause_effect_workbook([_risk("a")]).save(path)
        assert load_workbook(path).sheetnames == ["Cause-Effect Analysis"]

    def test_exporter(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        written = CauseEffectExporter(_records(), tmp_path, now=NOW).export()
        assert written == [tmp_path / "cause-effect-analysis-2026-03-01.xlsx"]
        assert "done (2 linked risks)" in capsys.readouterr().out


class TestTemplateExport:
    def test_template_layout(self, tmp_path: Path) -> None:
        path = tmp_path / "t.xlsx"
        build_template_workbook().save(path)
        rows = list(load_workbook(path)["Risk Template"].iter_rows(values_only=True))
        assert list(rows[0]) == [header for header, _ in TEMPLATE_COLUMNS]
        assert len(rows) == 3
        assert rows[1][1:4] == (5, 4, 0.2)

    def test_exporter(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        written = TemplateExporter([], tmp_path).export()
        assert written == [tmp_path / TEMPLATE_FILENAME]
        assert "Template written to" in capsys.readouterr().out


class TestSummaryExport:
    def test_format_currency(self) -> None:
        assert format_currency(1234567.89) == "$1,234,568"
        assert format_currency(0) == "$0"

    def test_writes_markdown_and_yaml(self, tmp_path: Path) -> None:
        written = SummaryExporter(_records(), tmp_path, now=NOW).export()
        assert written == [tmp_path / "summary.md", tmp_path / "summary.yaml"]

        markdown = (tmp_path / "summary.md").read_text(encoding="utf-8")
        assert markdown.startswith("---\n")
        assert "risk_count: 4" in markdown
        assert "project_count: 2" in markdown
        assert "# Risk Dashboard" in markdown
        assert "## Risk Levels" in markdown
        assert "### Apollo" in markdown
        assert "### Gemini" in markdown
        assert "- **High Risks:** 1" in markdown
        assert "#### Recent Activity" in markdown

        payload = yaml.safe_load((tmp_path / "summary.yaml").read_text(encoding="utf-8"))
        assert payload["generated"] == "2026-03-01T12:00:00Z"
        assert payload["summary"]["total"] == 4
        assert [p["project_name"] for p in payload["projects"]] == ["Apollo", "Gemini"]
        assert payload["projects"][0]["financials"]["impact_category"] == "medium"
        assert payload["projects"][0]["timeline"][0]["date"].startswith("2026-01-01")

    def test_keep_raw_json(self, tmp_path: Path) -> None:
        SummaryExporter(_records(), tmp_path, keep_raw_json=True, now=NOW).export()
        payload = json.loads((tmp_path / "summary.json").read_text(encoding="utf-8"))
        assert payload["summary"]["by_project"] == {"Apollo": 2, "Gemini": 1}

    def test_single_project(self, tmp_path: Path) -> None:
        written = SummaryExporter(
            _records(), tmp_path, project="Gemini", now=NOW,
        ).export()
        assert written[0] == tmp_path / "summary-gemini.md"
        markdown = written[0].read_text(encoding="utf-8")
        assert "### Gemini" in markdown
        assert "### Apollo" not in markdown

    def test_empty_register(self, tmp_path: Path) -> None:
        SummaryExporter([], tmp_path, now=NOW).export()
        markdown = (tmp_path / "summary.md").read_text(encoding="utf-8")
        assert "0 risks in the register on 2026-03-01." in markdown
        assert "[//]: # (No projects set)" in markdown
