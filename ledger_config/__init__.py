"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the runtime configuration through ``get_active_config()``.
    Modules read account numbers, numbering starts and paging limits from
    the returned ``LedgerConfiguration``; they never read YAML or the
    environment themselves.

Architecture position:
    Configuration -- sits above ``ledger_kernel`` and below
    ``ledger_modules``.  The kernel MUST NEVER import from
    ``ledger_config``; modules pass plain values down to kernel services.

Failure modes:
    - ``FileNotFoundError`` -- the override path does not exist.
    - ``ValueError`` -- unknown keys or invalid values.

Audit relevance:
    Every ``get_active_config()`` call emits a ``ledger_config_loaded`` log
    entry with the source path and checksum.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from ledger_config.loader import compute_checksum, load_configuration, parse_configuration
from ledger_config.schema import (
    AutoPostAccounts,
    ExpenseAccounts,
    LedgerConfiguration,
    NumberingConfig,
    PagingConfig,
    ReportingAccounts,
)

_logger = logging.getLogger("ledger_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"
CONFIG_PATH_ENV = "LEDGER_CONFIG_PATH"


def get_active_config(config_path: Path | str | None = None) -> LedgerConfiguration:
    """The public configuration entrypoint.

    Resolution order: explicit ``config_path``, then the
    ``LEDGER_CONFIG_PATH`` environment variable, then the packaged
    ``defaults.yaml``.

    Raises:
        FileNotFoundError: If the selected file does not exist.
        ValueError: If the file fails validation.
    """
    path = Path(config_path or os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)
    config = load_configuration(path)

    _logger.info(
        "ledger_config_loaded",
        extra={
            "config_path": str(path),
            "checksum": config.checksum,
            "entity_name": config.entity_name,
        },
    )
    return config


__all__ = [
    "AutoPostAccounts",
    "CONFIG_PATH_ENV",
    "DEFAULT_CONFIG_PATH",
    "ExpenseAccounts",
    "LedgerConfiguration",
    "NumberingConfig",
    "PagingConfig",
    "ReportingAccounts",
    "compute_checksum",
    "get_active_config",
    "parse_configuration",
]
