from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, List, Optional

from openpyxl import Workbook

from riskdash.formatters.json_formatter import JsonFormatter
from riskdash.formatters.markdown_formatter import MarkdownFormatter
from riskdash.formatters.yaml_formatter import YamlFormatter
from riskdash.models.config import DEFAULT_THRESHOLDS, Thresholds
from riskdash.models.risks import RiskRecord
from riskdash.records import utcnow


class BaseExporter(ABC):
    def __init__(
        self,
        records: Iterable[RiskRecord],
        output_dir: Path,
        *,
        force: bool = False,
        keep_raw_json: bool = False,
        thresholds: Thresholds = DEFAULT_THRESHOLDS,
        now: Optional[datetime] = None,
    ) -> None:
        self.records: List[RiskRecord] = list(records)
        self.output_dir = output_dir
        self.force = force
        self.keep_raw_json = keep_raw_json
        self.thresholds = thresholds
        self.now = now or utcnow()
        self._overwrite_all = False
        self._md_formatter = MarkdownFormatter()
        self._json_formatter = JsonFormatter()
        self._yaml_formatter = YamlFormatter()

    @abstractmethod
    def export(self) -> List[Path]:
        """Write the export into output_dir and return the files written."""
        ...

    @property
    def date_stamp(self) -> str:
        return self.now.strftime("%Y-%m-%d")

    def _ensure_output_dir(self) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def _log(self, message: str) -> None:
        print(message)

    def _should_write(self, path: Path) -> bool:
        """Check whether *path* should be written, prompting if needed."""
        if not path.exists():
            return True
        if self.force or self._overwrite_all:
            return True
        while True:
            answer = input(
                f"Overwrite existing {path.name}? [Yes/No/All] "
            ).strip().lower()
            if answer in ("y", "yes"):
                return True
            if answer in ("n", "no"):
                return False
            if answer in ("a", "all"):
                self._overwrite_all = True
                return True

    def _write_workbook(self, filename: str, workbook: Workbook) -> List[Path]:
        path = self.output_dir / filename
        if not self._should_write(path):
            self._log(f"Skipped {path.name}")
            return []
        workbook.save(path)
        return [path]

    def _write_document(self, name: str, markdown: str, data: Any) -> List[Path]:
        """Write the rendered *markdown*, then *data* as YAML and, when requested, JSON."""
        written: List[Path] = []

        md_path = self.output_dir / (name + ".md")
        if self._should_write(md_path):
            self._md_formatter.write(markdown, md_path)
            written.append(md_path)

        if self.keep_raw_json:
            json_path = self.output_dir / (name + ".json")
            if self._should_write(json_path):
                self._json_formatter.write(data, json_path)
                written.append(json_path)

        yaml_path = self.output_dir / (name + ".yaml")
        if self._should_write(yaml_path):
            self._yaml_formatter.write(data, yaml_path)
            written.append(yaml_path)

        return written
