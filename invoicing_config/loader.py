"""
Settings loader (``invoicing_config.loader``).

Responsibility
--------------
Reads YAML files, merges overrides onto the built-in defaults, applies
environment overrides and parses the result into ``LedgerSettings``.
Runtime callers use ``invoicing_config.get_active_settings()`` instead.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Out-of-range or wrongly typed values  -> ``ValueError``.
"""

from __future__ import annotations

import copy
import hashlib
import json
import re
from pathlib import Path
from typing import Any, Mapping

import yaml

from invoicing_config.schema import (
    LOG_LEVELS,
    DatabaseSettings,
    LedgerSettings,
    NumberingSettings,
)

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

CONFIG_PATH_ENV = "INVOICING_CONFIG"
DATABASE_URL_ENV = "DATABASE_URL"

_PREFIX_RE = re.compile(r"[A-Za-z][A-Za-z0-9]*")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively overlay ``override`` on ``base``; neither is modified."""
    result = copy.deepcopy(dict(base))
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(result.get(key), Mapping):
            result[key] = merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def compute_checksum(data: Mapping[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, Mapping):
        raise ValueError(f"'{name}' must be a mapping")
    return value


def _positive_int(section: str, key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"{section}.{key} must be a positive integer, got {value!r}")
    return value


def parse_settings(data: Mapping[str, Any]) -> LedgerSettings:
    database = _section(data, "database")
    numbering = _section(data, "numbering")
    due_dates = _section(data, "due_dates")
    logging_section = _section(data, "logging")

    url = database.get("url")
    if not isinstance(url, str) or not url:
        raise ValueError("database.url is required")

    prefix = numbering.get("document_prefix", "FACT")
    if not isinstance(prefix, str) or not _PREFIX_RE.fullmatch(prefix):
        raise ValueError(f"numbering.document_prefix must be alphanumeric, got {prefix!r}")

    due_soon_days = due_dates.get("due_soon_days", 7)
    if isinstance(due_soon_days, bool) or not isinstance(due_soon_days, int) or due_soon_days < 0:
        raise ValueError(f"due_dates.due_soon_days must be a non-negative integer, got {due_soon_days!r}")

    level = str(logging_section.get("level", "INFO")).upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"logging.level must be one of {LOG_LEVELS}, got {level!r}")

    return LedgerSettings(
        database=DatabaseSettings(url=url, echo=bool(database.get("echo", False))),
        numbering=NumberingSettings(
            document_prefix=prefix,
            sequence_width=_positive_int(
                "numbering", "sequence_width", numbering.get("sequence_width", 4)
            ),
            max_number_attempts=_positive_int(
                "numbering", "max_number_attempts", numbering.get("max_number_attempts", 3)
            ),
        ),
        due_soon_days=due_soon_days,
        log_level=level,
        checksum=compute_checksum(data),
    )


def load_settings(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """
    Defaults, then the override file, then the environment.

    Args:
        config_path: Override YAML.  Falls back to ``$INVOICING_CONFIG``.
        environ: Environment mapping; tests pass a dict.
    """
    environ = environ if environ is not None else {}
    data = load_yaml_file(DEFAULTS_PATH)

    path = config_path or environ.get(CONFIG_PATH_ENV)
    if path:
        data = merge(data, load_yaml_file(Path(path)))

    database_url = environ.get(DATABASE_URL_ENV)
    if database_url:
        data = merge(data, {"database": {"url": database_url}})

    return parse_settings(data)
