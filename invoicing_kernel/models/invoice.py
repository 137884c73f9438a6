"""
Module: invoicing_kernel.models.invoice
Responsibility: ORM persistence for invoices, one row per invoice with its
    line items encoded into a single text column.
Architecture position: Kernel > Models.  May import from db/base.py and
    db/types.py.  Domain types are imported lazily inside to_dto().

Invariants enforced:
    - document_number is unique (uq_invoice_document_number).  A concurrent
      duplicate fails at INSERT with IntegrityError.
    - state and tax_category are limited to their closed sets by check
      constraints.
    - version is an optimistic lock counter.  Every UPDATE is issued with
      ``WHERE version = :loaded`` and bumps it; a stale write raises
      StaleDataError at flush.
    - total = subtotal + tax - discount (checked by the pricing engine
      before write, not by the database).

Failure modes:
    - IntegrityError on duplicate document_number.
    - StaleDataError when another transaction updated the row first.
    - DecodeError from to_dto() when the stored item text is corrupt.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from invoicing_kernel.db.base import TrackedBase
from invoicing_kernel.db.types import DocumentNumberText, EncodedItems, Money

if TYPE_CHECKING:
    from invoicing_kernel.domain.values import Invoice, InvoiceSummary


class InvoiceModel(TrackedBase):
    """Persistent invoice.

    Contract:
        Rows in state 'pending' may be rewritten; 'paid' and 'cancelled'
        rows only ever gain notes through the ledger.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("document_number", name="uq_invoice_document_number"),
        CheckConstraint(
            "state IN ('pending', 'paid', 'cancelled')",
            name="ck_invoices_valid_state",
        ),
        CheckConstraint(
            "tax_category IN ('standard', 'reduced', 'super_reduced', 'exempt')",
            name="ck_invoices_valid_tax_category",
        ),
        CheckConstraint("due_date >= issue_date", name="ck_invoices_due_after_issue"),
        Index("idx_invoice_state", "state"),
        Index("idx_invoice_issue_date", "issue_date"),
        Index("idx_invoice_state_due_date", "state", "due_date"),
        Index("idx_invoice_payment_method", "payment_method"),
    )

    document_number: Mapped[DocumentNumberText] = mapped_column(nullable=False)

    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    customer_tax_id: Mapped[str] = mapped_column(String(20), nullable=False)
    customer_address: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    issue_date: Mapped[date] = mapped_column(nullable=False)
    due_date: Mapped[date] = mapped_column(nullable=False)
    concept: Mapped[str] = mapped_column(String(500), nullable=False)

    tax_category: Mapped[str] = mapped_column(String(20), nullable=False)
    items: Mapped[EncodedItems] = mapped_column(nullable=False, default="[]")

    discount: Mapped[Money] = mapped_column(nullable=False)
    subtotal: Mapped[Money] = mapped_column(nullable=False)
    tax: Mapped[Money] = mapped_column(nullable=False)
    total: Mapped[Money] = mapped_column(nullable=False)

    state: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    payment_method: Mapped[str] = mapped_column(String(30), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {
        "version_id_col": version,
        "eager_defaults": True,
    }

    def __repr__(self) -> str:
        return f"<Invoice {self.document_number} state={self.state} v{self.version}>"

    def to_dto(self) -> Invoice:
        """Convert ORM model to frozen domain DTO, decoding the line items."""
        from invoicing_kernel.domain.item_codec import decode_items
        from invoicing_kernel.domain.values import (
            Invoice as InvoiceDTO,
            InvoiceState,
            PaymentMethod,
            TaxCategory,
        )

        return InvoiceDTO(
            id=self.id,
            document_number=self.document_number,
            customer_name=self.customer_name,
            customer_tax_id=self.customer_tax_id,
            customer_address=self.customer_address,
            issue_date=self.issue_date,
            due_date=self.due_date,
            concept=self.concept,
            tax_category=TaxCategory(self.tax_category),
            items=tuple(decode_items(self.items)),
            discount=self.discount,
            subtotal=self.subtotal,
            tax=self.tax,
            total=self.total,
            state=InvoiceState(self.state),
            payment_method=PaymentMethod(self.payment_method),
            notes=self.notes,
            version=self.version,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def to_summary(self, days_to_due: int) -> InvoiceSummary:
        """Listing row; does not decode the line items."""
        from invoicing_kernel.domain.values import InvoiceState, InvoiceSummary

        return InvoiceSummary(
            id=self.id,
            document_number=self.document_number,
            customer_name=self.customer_name,
            issue_date=self.issue_date,
            due_date=self.due_date,
            total=self.total,
            state=InvoiceState(self.state),
            days_to_due=days_to_due,
        )
