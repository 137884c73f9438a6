"""SQLAlchemy ORM models.  Importing this package registers every table."""

from invoicing_kernel.models.invoice import InvoiceModel
from invoicing_kernel.models.sequence import DocumentSequence

__all__ = [
    "InvoiceModel",
    "DocumentSequence",
]
