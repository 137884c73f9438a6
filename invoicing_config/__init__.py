"""
invoicing_config -- single public entrypoint for runtime settings.

Responsibility:
    Provides the only way to obtain settings at runtime through
    ``get_active_settings()``.  No other component reads settings files or
    environment variables directly.

Architecture position:
    Configuration.  Sits above ``invoicing_kernel``; the kernel never
    imports from this package.  ``bridges`` translates settings into
    kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- the override file does not exist.
    - ``ValueError`` -- a setting is out of range or wrongly typed.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

from invoicing_config.loader import load_settings
from invoicing_config.schema import (
    DatabaseSettings,
    LedgerSettings,
    NumberingSettings,
)

_logger = logging.getLogger("invoicing_kernel.config")


def get_active_settings(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """The ONLY public settings entrypoint.

    Args:
        config_path: Optional override YAML; defaults to ``$INVOICING_CONFIG``.
        environ: Environment to read; defaults to ``os.environ``.

    Returns:
        Frozen ``LedgerSettings``.
    """
    settings = load_settings(
        config_path=config_path,
        environ=os.environ if environ is None else environ,
    )
    _logger.info(
        "INVOICING_CONFIG_TRACE",
        extra={
            "trace_type": "INVOICING_CONFIG_TRACE",
            "checksum": settings.checksum,
            "document_prefix": settings.document_prefix,
            "sequence_width": settings.sequence_width,
            "due_soon_days": settings.due_soon_days,
        },
    )
    return settings


__all__ = [
    "get_active_settings",
    "LedgerSettings",
    "DatabaseSettings",
    "NumberingSettings",
]
