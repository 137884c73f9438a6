"""
Pure domain layer: value objects, codec, pricing, numbering, lifecycle.

Nothing here performs I/O.  "Today" always arrives from a ``Clock``.
"""

from invoicing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from invoicing_kernel.domain.document_number import DocumentNumber, next_after
from invoicing_kernel.domain.item_codec import decode_items, encode_items
from invoicing_kernel.domain.lifecycle import INVOICE_WORKFLOW, InvoiceLifecycle
from invoicing_kernel.domain.pricing import PricingResult, price
from invoicing_kernel.domain.values import (
    DueLabel,
    DueStatus,
    Invoice,
    InvoiceDetail,
    InvoiceRequest,
    InvoiceState,
    InvoiceSummary,
    LedgerSummary,
    LineItem,
    MonthlyReport,
    PaymentInfo,
    PaymentMethod,
    StateTotals,
    TaxCategory,
)

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "DocumentNumber",
    "next_after",
    "encode_items",
    "decode_items",
    "INVOICE_WORKFLOW",
    "InvoiceLifecycle",
    "PricingResult",
    "price",
    "DueLabel",
    "DueStatus",
    "Invoice",
    "InvoiceDetail",
    "InvoiceRequest",
    "InvoiceState",
    "InvoiceSummary",
    "LedgerSummary",
    "LineItem",
    "MonthlyReport",
    "PaymentInfo",
    "PaymentMethod",
    "StateTotals",
    "TaxCategory",
]
