"""
invoicing_kernel -- invoicing ledger engine.

Issues, prices, numbers and tracks invoices through their lifecycle.

Layers:
    db/         engine, declarative base, column types
    domain/     pure values and rules (codec, pricing, lifecycle, ...)
    models/     SQLAlchemy ORM tables
    selectors/  read-only queries
    services/   numbering, storage, the InvoiceLedger orchestrator
"""

__version__ = "0.1.0"
