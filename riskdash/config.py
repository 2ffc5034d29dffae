from __future__ import annotations

import configparser
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict

from riskdash.exceptions import ConfigError
from riskdash.models.config import AppConfig, Thresholds

CONFIG_FILENAME = ".riskdash.ini"
_SECTION = "riskdash"
_THRESHOLDS_SECTION = "thresholds"
_REQUIRED_KEYS = ("register_file", "export_dir")


def config_exists(directory: Path) -> bool:
    return (directory / CONFIG_FILENAME).is_file()


def write_config(directory: Path, config: AppConfig) -> None:
    cp = configparser.ConfigParser()
    cp[_SECTION] = {
        "register_file": config.register_file,
        "export_dir": config.export_dir,
    }
    overrides = _threshold_overrides(config.thresholds)
    if overrides:
        cp[_THRESHOLDS_SECTION] = overrides
    path = directory / CONFIG_FILENAME
    with open(path, "w", encoding="utf-8") as f:
        cp.write(f)


def read_config(directory: Path) -> AppConfig:
    path = directory / CONFIG_FILENAME
    if not path.is_file():
        raise ConfigError(
            "Configuration not found. Run riskdash --init first."
        )

    cp = configparser.ConfigParser()
    try:
        cp.read(str(path), encoding="utf-8")
    except configparser.Error as exc:
        raise ConfigError(
            f"Invalid configuration format in {CONFIG_FILENAME}. "
            "Run riskdash --init to reconfigure."
        ) from exc

    if not cp.has_section(_SECTION):
        raise ConfigError(
            f"Invalid configuration: missing [{_SECTION}] section in {CONFIG_FILENAME}."
        )

    for key in _REQUIRED_KEYS:
        if not cp.has_option(_SECTION, key) or not cp.get(_SECTION, key).strip():
            raise ConfigError(
                f"Invalid configuration: missing or empty '{key}' in {CONFIG_FILENAME}. "
                "Run riskdash --init to reconfigure."
            )

    thresholds = Thresholds()
    if cp.has_section(_THRESHOLDS_SECTION):
        thresholds = _read_thresholds(cp[_THRESHOLDS_SECTION])

    return AppConfig(
        register_file=cp.get(_SECTION, "register_file").strip(),
        export_dir=cp.get(_SECTION, "export_dir").strip(),
        thresholds=thresholds,
    )


def _read_thresholds(section: configparser.SectionProxy) -> Thresholds:
    known = {f.name: f for f in fields(Thresholds)}
    defaults = Thresholds()
    values: Dict[str, Any] = {}
    for key, raw in section.items():
        if key not in known:
            raise ConfigError(
                f"Invalid configuration: unknown threshold '{key}' in {CONFIG_FILENAME}."
            )
        default = getattr(defaults, key)
        try:
            if isinstance(default, tuple):
                values[key] = tuple(
                    part.strip() for part in raw.split(",") if part.strip()
                )
            elif isinstance(default, int):
                values[key] = int(raw)
            else:
                values[key] = float(raw)
        except ValueError as exc:
            raise ConfigError(
                f"Invalid configuration: threshold '{key}' must be a number, got '{raw}'."
            ) from exc
    return Thresholds(**values)


def _threshold_overrides(thresholds: Thresholds) -> Dict[str, str]:
    """Only values that differ from the defaults are returned."""
    defaults = Thresholds()
    out: Dict[str, str] = {}
    for f in fields(Thresholds):
        value = getattr(thresholds, f.name)
        if value == getattr(defaults, f.name):
            continue
        out[f.name] = ", ".join(value) if isinstance(value, tuple) else str(value)
    return out
