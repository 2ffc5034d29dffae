from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from riskdash.aggregation import SORTABLE_FIELDS, filter_records, sort_records
from riskdash.config import read_config, write_config
from riskdash.exceptions import ImportFileError, ValidationError
from riskdash.exporters.base import BaseExporter
from riskdash.exporters.cause_effect import CauseEffectExporter
from riskdash.exporters.projects import ProjectSummaryExporter
from riskdash.exporters.register import RegisterExporter
from riskdash.exporters.summary import SummaryExporter
from riskdash.exporters.template import TemplateExporter
from riskdash.formatters.markdown_formatter import MarkdownFormatter
from riskdash.importers.spreadsheet import import_workbook
from riskdash.models.config import AppConfig
from riskdash.models.risks import STATUSES, RiskRecord
from riskdash.records import create_record, validate_record_input
from riskdash.store import RiskStore, parse_datetime

DEFAULT_REGISTER_FILE = "risks.json"
DEFAULT_EXPORT_DIR = "exports"

_EXPORT_FLAGS = (
    "export_all",
    "export_register",
    "export_projects",
    "export_cause_effect",
    "template",
    "summary",
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="riskdash",
        description="Risk register scoring, summaries and Excel import/export.",
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--init",
        nargs="?",
        const=DEFAULT_REGISTER_FILE,
        metavar="REGISTER_FILE",
        help=f"Initialize configuration (register file defaults to {DEFAULT_REGISTER_FILE}).",
    )
    group.add_argument("--add", metavar="DESCRIPTION", help="Add a risk.")
    group.add_argument("--update", metavar="ID", help="Update the risk with this id.")
    group.add_argument("--remove", metavar="ID", help="Remove the risk with this id.")
    group.add_argument("--list", action="store_true", help="List risks.")
    group.add_argument(
        "--import", dest="import_file", metavar="FILE", help="Import risks from an Excel workbook.",
    )
    group.add_argument("--export-all", action="store_true", help="Run every export.")
    group.add_argument(
        "--export-register", action="store_true", help="Export the risk register workbook.",
    )
    group.add_argument(
        "--export-projects", action="store_true", help="Export project summaries and timelines.",
    )
    group.add_argument(
        "--export-cause-effect", action="store_true", help="Export cause-effect relationships.",
    )
    group.add_argument("--template", action="store_true", help="Write an import template.")
    group.add_argument(
        "--summary", action="store_true", help="Write the dashboard summary report.",
    )

    fields = parser.add_argument_group("risk fields (--add, --update)")
    fields.add_argument("-p", "--probability", type=int, help="Probability, 1-5.")
    fields.add_argument("-i", "--impact", type=int, help="Impact, 1-5.")
    fields.add_argument(
        "-m", "--mitigation", type=float, help="Mitigation effectiveness, 0-1.",
    )
    fields.add_argument("--owner")
    fields.add_argument("--category")
    fields.add_argument("--project", help="Project name; also filters --list and --summary.")
    fields.add_argument("--status", choices=STATUSES, help="Status; also filters --list.")
    fields.add_argument("--notes")
    fields.add_argument("--comments")
    fields.add_argument("--mitigation-date", metavar="DATE", help="ISO date of mitigation.")
    fields.add_argument("--causes", metavar="IDS", help="Comma-separated ids of causing risks.")
    fields.add_argument("--effects", metavar="IDS", help="Comma-separated ids of effect risks.")
    fields.add_argument(
        "--root-cause", action="store_true", default=None, help="Mark as a root cause.",
    )

    listing = parser.add_argument_group("listing (--list)")
    listing.add_argument("--level", help="Only risks at this risk level.")
    listing.add_argument(
        "--sort", choices=SORTABLE_FIELDS, default="score", help="Sort field (default: score).",
    )
    listing.add_argument("--ascending", action="store_true", help="Sort ascending.")

    parser.add_argument(
        "--force", action="store_true",
        help="Overwrite existing files without confirmation.",
    )
    parser.add_argument(
        "--keep-raw-json", action="store_true",
        help="Also write raw JSON alongside the Markdown and YAML summary.",
    )
    return parser


def _run_init(register_file: str) -> None:
    config = AppConfig(register_file=register_file, export_dir=DEFAULT_EXPORT_DIR)

    cwd = Path.cwd()
    write_config(cwd, config)

    register_path = cwd / config.register_file
    if not register_path.exists():
        RiskStore().save(register_path)
    (cwd / config.export_dir).mkdir(parents=True, exist_ok=True)

    print("Configuration saved to .riskdash.ini")
    print(f"Risk register: {config.register_file}")
    print(f"Created directory: {config.export_dir}/")


def _split_ids(value: Optional[str]) -> Optional[List[str]]:
    if value is None:
        return None
    return [part.strip() for part in value.split(",") if part.strip()]


def _field_changes(args: argparse.Namespace) -> Dict[str, Any]:
    changes: Dict[str, Any] = {
        "probability": args.probability,
        "impact": args.impact,
        "mitigation_effectiveness": args.mitigation,
        "owner": args.owner,
        "category": args.category,
        "project": args.project,
        "status": args.status,
        "notes": args.notes,
        "comments": args.comments,
        "causes": _split_ids(args.causes),
        "effects": _split_ids(args.effects),
        "root_cause": args.root_cause,
    }
    if args.mitigation_date is not None:
        try:
            changes["mitigation_date"] = parse_datetime(args.mitigation_date)
        except ValueError as exc:
            raise ValidationError([str(exc)]) from exc
    return {k: v for k, v in changes.items() if v is not None}


def _describe(record: RiskRecord) -> str:
    return (
        f"{record.id}: {record.description} "
        f"(score {record.score}, {record.risk_level}; "
        f"residual {record.residual_score}, {record.residual_risk_level})"
    )


def _run_add(args: argparse.Namespace, store: RiskStore, register_path: Path) -> None:
    changes = _field_changes(args)
    missing = [
        f"{label} is required"
        for key, label in (("probability", "Probability"), ("impact", "Impact"))
        if key not in changes
    ]
    if missing:
        raise ValidationError(missing)

    probability = changes.pop("probability")
    impact = changes.pop("impact")
    mitigation = changes.pop("mitigation_effectiveness", 0.0)
    errors = validate_record_input(
        args.add, probability, impact, mitigation, changes.get("status"),
    )
    if errors:
        raise ValidationError(errors)

    record = store.add(create_record(args.add, probability, impact, mitigation, **changes))
    store.save(register_path)
    print(f"Added risk {_describe(record)}")


def _run_update(args: argparse.Namespace, store: RiskStore, register_path: Path) -> None:
    changes = _field_changes(args)
    if not changes:
        raise ValidationError(["No changes given. Pass at least one risk field option."])

    existing = store.get(args.update)
    errors = validate_record_input(
        existing.description,
        changes.get("probability", existing.probability),
        changes.get("impact", existing.impact),
        changes.get("mitigation_effectiveness", existing.mitigation_effectiveness),
        changes.get("status"),
    )
    if errors:
        raise ValidationError(errors)

    record = store.update(args.update, changes)
    store.save(register_path)
    print(f"Updated risk {_describe(record)}")


def _run_remove(args: argparse.Namespace, store: RiskStore, register_path: Path) -> None:
    record = store.remove(args.remove)
    store.save(register_path)
    print(f"Removed risk {record.id}: {record.description}")


def _run_list(args: argparse.Namespace, store: RiskStore) -> None:
    records = sort_records(
        filter_records(
            store.list(),
            level=args.level,
            status=args.status,
            category=args.category,
            project=args.project,
        ),
        args.sort,
        descending=not args.ascending,
    )
    if not records:
        print("No risks found matching the current filters.")
        return
    print(MarkdownFormatter.table(
        ["ID", "Score", "Level", "Residual", "Status", "Project", "Description"],
        [
            [
                r.id,
                r.score,
                r.risk_level,
                r.residual_score,
                r.status,
                r.project or "",
                r.description,
            ]
            for r in records
        ],
    ))


def _run_import(args: argparse.Namespace, store: RiskStore, register_path: Path) -> None:
    path = Path(args.import_file)
    if not path.is_file():
        raise ImportFileError(f"Import file not found: {path}")

    result = import_workbook(path)
    for message in result.errors:
        print(f"Warning: {message}")
    if not result.records:
        raise ImportFileError(f"No risks imported from {path.name}.")

    records = result.records
    if args.project:
        records = [r if r.project else replace(r, project=args.project) for r in records]
    store.add_many(records)
    store.save(register_path)

    noun = "risk" if len(records) == 1 else "risks"
    print(f"Imported {len(records)} {noun} from {path.name}")


def _run_export(
    args: argparse.Namespace, config: AppConfig, store: RiskStore, output_dir: Path,
) -> None:
    export_kwargs: Dict[str, Any] = {
        "force": args.force,
        "keep_raw_json": args.keep_raw_json,
        "thresholds": config.thresholds,
    }
    records = store.list()

    exporters: List[BaseExporter] = []
    if args.export_all or args.export_register:
        exporters.append(RegisterExporter(records, output_dir, **export_kwargs))
    if args.export_all or args.export_projects:
        exporters.append(ProjectSummaryExporter(records, output_dir, **export_kwargs))
    if args.export_all or args.export_cause_effect:
        exporters.append(CauseEffectExporter(records, output_dir, **export_kwargs))
    if args.export_all or args.summary:
        exporters.append(
            SummaryExporter(records, output_dir, project=args.project, **export_kwargs)
        )
    if args.template:
        exporters.append(TemplateExporter(records, output_dir, **export_kwargs))

    for exporter in exporters:
        exporter.export()


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    if args.init is not None:
        _run_init(args.init)
        return

    wants_store = args.list or any(
        value is not None for value in (args.add, args.update, args.remove, args.import_file)
    )
    wants_export = any(getattr(args, flag) for flag in _EXPORT_FLAGS)
    if not (wants_store or wants_export):
        parser.print_help()
        return

    cwd = Path.cwd()
    config = read_config(cwd)
    register_path = cwd / config.register_file
    store = RiskStore.load(register_path)

    if args.add is not None:
        _run_add(args, store, register_path)
    elif args.update is not None:
        _run_update(args, store, register_path)
    elif args.remove is not None:
        _run_remove(args, store, register_path)
    elif args.list:
        _run_list(args, store)
    elif args.import_file is not None:
        _run_import(args, store, register_path)
    else:
        _run_export(args, config, store, cwd / config.export_dir)
