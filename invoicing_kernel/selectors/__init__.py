"""Read-only query selectors."""

from invoicing_kernel.selectors.base import BaseSelector
from invoicing_kernel.selectors.invoice_selector import InvoiceSelector

__all__ = [
    "BaseSelector",
    "InvoiceSelector",
]
