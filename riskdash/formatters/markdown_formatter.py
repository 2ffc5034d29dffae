from __future__ import annotations

from pathlib import Path
import textwrap
from typing import Any, Dict, List, Optional, Sequence

import yaml

from riskdash.formatters.base import BaseFormatter, to_plain


class MarkdownFormatter(BaseFormatter):
    _MAX_LINE_LENGTH = 120

    def write(self, data: Any, output_path: Path) -> None:
        """Write *data*, a Markdown document built with ``render``."""
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(str(data))

    def file_extension(self) -> str:
        return ".md"

    @classmethod
    def render(
        cls,
        title: str,
        body: str,
        frontmatter: Optional[Dict[str, Any]] = None,
    ) -> str:
        parts = []
        if frontmatter:
            fm_text = yaml.safe_dump(
                to_plain(frontmatter),
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False,
            ).rstrip("\n")
            parts.append(f"---\n{fm_text}\n---\n")
        if title:
            parts.append(f"# {title}\n")
        if body:
            parts.append(cls._wrap_body(body.rstrip("\n")) + "\n")
        return "\n".join(parts)

    @staticmethod
    def table(headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> str:
        """Render a pipe table; numeric columns are right-aligned."""
        str_rows = [["" if v is None else str(v) for v in row] for row in rows]
        widths = [len(h) for h in headers]
        for row in str_rows:
            for idx, cell in enumerate(row):
                widths[idx] = max(widths[idx], len(cell))

        numeric = [
            bool(rows) and all(isinstance(row[idx], (int, float)) for row in rows)
            for idx in range(len(headers))
        ]

        def _line(cells: Sequence[str]) -> str:
            padded = [
                cell.rjust(widths[idx]) if numeric[idx] else cell.ljust(widths[idx])
                for idx, cell in enumerate(cells)
            ]
            return "| " + " | ".join(padded) + " |"

        separator = "|" + "|".join(
            ("-" * (w + 1) + ":") if numeric[idx] else ("-" * (w + 2))
            for idx, w in enumerate(widths)
        ) + "|"
        lines: List[str] = [_line(list(headers)), separator]
        lines.extend(_line(row) for row in str_rows)
        return "\n".join(lines)

    @classmethod
    def _wrap_body(cls, body: str) -> str:
        wrapped_lines = []
        for line in body.splitlines():
            if cls._should_preserve_line(line):
                wrapped_lines.append(line)
                continue
            wrapped_lines.append(
                textwrap.fill(
                    line,
                    width=cls._MAX_LINE_LENGTH,
                    break_long_words=False,
                    break_on_hyphens=False,
                )
            )
        return "\n".join(wrapped_lines)

    @classmethod
    def _should_preserve_line(cls, line: str) -> bool:
        if not line or len(line) <= cls._MAX_LINE_LENGTH:
            return True
        return line.startswith(("#", "- ", "* ", "> ", "|", "    ", "\t"))
