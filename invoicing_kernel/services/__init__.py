"""Kernel services: numbering, storage and the invoice ledger."""

from invoicing_kernel.services.invoice_ledger import InvoiceLedger, LedgerOptions
from invoicing_kernel.services.invoice_store import InvoiceStore, SqlInvoiceStore
from invoicing_kernel.services.sequence_service import DocumentNumberGenerator

__all__ = [
    "InvoiceLedger",
    "LedgerOptions",
    "InvoiceStore",
    "SqlInvoiceStore",
    "DocumentNumberGenerator",
]
