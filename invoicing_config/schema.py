"""
LedgerSettings schema.

Typed form of the YAML settings.  The loader parses the merged YAML into
these frozen dataclasses; nothing else reads the raw mapping.
"""

from __future__ import annotations

from dataclasses import dataclass

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    echo: bool = False


@dataclass(frozen=True)
class NumberingSettings:
    """Document number series."""

    document_prefix: str = "FACT"
    sequence_width: int = 4
    max_number_attempts: int = 3


@dataclass(frozen=True)
class LedgerSettings:
    """Complete runtime settings for the invoicing ledger."""

    database: DatabaseSettings
    numbering: NumberingSettings
    due_soon_days: int = 7
    log_level: str = "INFO"
    checksum: str = ""

    @property
    def database_url(self) -> str:
        return self.database.url

    @property
    def document_prefix(self) -> str:
        return self.numbering.document_prefix

    @property
    def sequence_width(self) -> int:
        return self.numbering.sequence_width

    @property
    def max_number_attempts(self) -> int:
        return self.numbering.max_number_attempts
