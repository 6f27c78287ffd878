"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads the YAML configuration file and parses it into the frozen
``ledger_config.schema`` dataclasses.  The public runtime entry point is
``ledger_config.get_active_config()``; this module is its tooling.

Invariants enforced
-------------------
* Unknown keys in a section raise ``ValueError``; a typo never silently
  falls back to a default.
* ``compute_checksum`` is a deterministic SHA-256 over the parsed data.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Bad values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    AutoPostAccounts,
    ExpenseAccounts,
    LedgerConfiguration,
    NumberingConfig,
    PagingConfig,
    ReportingAccounts,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, name: str) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"{name}: expected a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{name}: expected a number, got {value!r}") from exc


def _account_list(value: Any, name: str) -> tuple[str, ...]:
    if isinstance(value, (str, int)):
        return (str(value),)
    if not isinstance(value, list):
        raise ValueError(f"{name}: expected a list of account numbers, got {value!r}")
    return tuple(str(v) for v in value)


def _parse_section(cls, data: dict[str, Any] | None, section: str):
    """Build a section dataclass from a mapping, coercing by field type."""
    data = data or {}
    if not isinstance(data, dict):
        raise ValueError(f"{section}: expected a mapping, got {type(data).__name__}")

    known = {f.name: f for f in fields(cls)}
    unknown = set(data) - set(known)
    if unknown:
        raise ValueError(f"{section}: unknown key(s) {', '.join(sorted(unknown))}")

    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        default = getattr(cls(), key)
        name = f"{section}.{key}"
        if isinstance(default, Decimal):
            kwargs[key] = parse_decimal(value, name)
        elif isinstance(default, tuple):
            kwargs[key] = _account_list(value, name)
        elif isinstance(default, bool):
            kwargs[key] = bool(value)
        elif isinstance(default, int):
            kwargs[key] = int(value)
        else:
            kwargs[key] = str(value)
    return cls(**kwargs)


def parse_configuration(
    data: dict[str, Any],
    source_path: str | None = None,
) -> LedgerConfiguration:
    """
    Parse a configuration mapping.

    Postconditions:
        - Sections absent from ``data`` take their schema defaults.
        - ``checksum`` identifies ``data``.
    """
    top_level = {
        "entity_name", "numbering", "paging",
        "autopost", "expense", "reporting",
    }
    unknown = set(data) - top_level
    if unknown:
        raise ValueError(f"Unknown configuration key(s): {', '.join(sorted(unknown))}")

    config = LedgerConfiguration(
        entity_name=str(data.get("entity_name", "Company")),
        numbering=_parse_section(NumberingConfig, data.get("numbering"), "numbering"),
        paging=_parse_section(PagingConfig, data.get("paging"), "paging"),
        autopost=_parse_section(AutoPostAccounts, data.get("autopost"), "autopost"),
        expense=_parse_section(ExpenseAccounts, data.get("expense"), "expense"),
        reporting=_parse_section(ReportingAccounts, data.get("reporting"), "reporting"),
        checksum=compute_checksum(data),
        source_path=source_path,
    )
    _validate(config)
    return config


def _validate(config: LedgerConfiguration) -> None:
    if config.numbering.entry_number_start < 1:
        raise ValueError("numbering.entry_number_start must be positive")
    if config.numbering.expense_number_start < 1:
        raise ValueError("numbering.expense_number_start must be positive")
    if not 1 <= config.paging.default_page_size <= config.paging.max_page_size:
        raise ValueError("paging.default_page_size must be between 1 and max_page_size")
    if not 1 <= config.paging.drilldown_default_limit <= config.paging.drilldown_max_limit:
        raise ValueError(
            "paging.drilldown_default_limit must be between 1 and drilldown_max_limit"
        )
    if config.autopost.default_hourly_rate <= 0:
        raise ValueError("autopost.default_hourly_rate must be positive")


def load_configuration(path: Path) -> LedgerConfiguration:
    return parse_configuration(load_yaml_file(path), source_path=str(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Postconditions:
        - Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
