"""
Config -> Kernel Bridges.

Functions that turn ``LedgerSettings`` into kernel inputs.  They live in
invoicing_config because the kernel must never import invoicing_config.

Usage:
    settings = get_active_settings()
    init_engine(settings)
    with session_scope() as session:
        ledger = InvoiceLedger(session, options=build_ledger_options(settings))
"""

from __future__ import annotations

from sqlalchemy.engine import Engine

from invoicing_config.schema import LedgerSettings
from invoicing_kernel.db.engine import init_engine_from_url
from invoicing_kernel.logging_config import configure_logging
from invoicing_kernel.services.invoice_ledger import LedgerOptions


def build_ledger_options(settings: LedgerSettings) -> LedgerOptions:
    return LedgerOptions(
        document_prefix=settings.document_prefix,
        sequence_width=settings.sequence_width,
        max_number_attempts=settings.max_number_attempts,
        due_soon_days=settings.due_soon_days,
    )


def init_engine(settings: LedgerSettings, **pool_options) -> Engine:
    """Configure logging at the settings' level and open the engine."""
    configure_logging(level=settings.log_level)
    return init_engine_from_url(
        settings.database_url, echo=settings.database.echo, **pool_options
    )
