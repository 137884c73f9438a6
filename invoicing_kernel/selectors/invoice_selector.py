"""
Module: invoicing_kernel.selectors.invoice_selector
Responsibility: Read-only queries over stored invoices: lookups, filtered
    listings and the rows behind the monthly report and overall totals.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Listings return InvoiceSummary rows and never decode line items, so a
      corrupt item column only fails the full-detail read of that invoice.
    - days_to_due on every row is derived from the injected clock.
    - Listings are ordered newest issue date first, then by document
      number descending.

Failure modes:
    - Returns None or an empty list when nothing matches (never raises on
      absence of data).
    - DecodeError from get()/get_by_number() when stored items are corrupt.
    - InvalidDateRangeError from list_issued_between() when start > end.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import Select, func, select

from invoicing_kernel.domain.clock import Clock, SystemClock
from invoicing_kernel.domain.due_dates import days_to_due
from invoicing_kernel.domain.values import (
    Invoice,
    InvoiceState,
    InvoiceSummary,
    PaymentMethod,
)
from invoicing_kernel.exceptions import InvalidDateRangeError
from invoicing_kernel.models.invoice import InvoiceModel
from invoicing_kernel.selectors.base import BaseSelector


class InvoiceSelector(BaseSelector[InvoiceModel]):
    """Query side of the invoice ledger."""

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, invoice_id: UUID) -> Invoice | None:
        model = self.session.get(InvoiceModel, invoice_id)
        return model.to_dto() if model is not None else None

    def get_by_number(self, document_number: str) -> Invoice | None:
        model = self.session.execute(
            select(InvoiceModel).where(InvoiceModel.document_number == document_number)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def list_all(self) -> list[InvoiceSummary]:
        return self._summaries(self._base_query())

    def list_by_state(self, state: InvoiceState) -> list[InvoiceSummary]:
        return self._summaries(
            self._base_query().where(InvoiceModel.state == state.value)
        )

    def search_by_customer(self, text: str) -> list[InvoiceSummary]:
        """Case-insensitive substring match on the customer name."""
        needle = (text or "").strip().lower()
        return self._summaries(
            self._base_query().where(
                func.lower(InvoiceModel.customer_name).contains(needle, autoescape=True)
            )
        )

    def list_by_payment_method(self, method: PaymentMethod) -> list[InvoiceSummary]:
        return self._summaries(
            self._base_query().where(InvoiceModel.payment_method == method.value)
        )

    def list_issued_between(self, start: date, end: date) -> list[InvoiceSummary]:
        """Invoices issued on or after ``start`` and on or before ``end``."""
        if start > end:
            raise InvalidDateRangeError(start.isoformat(), end.isoformat())
        return self._summaries(
            self._base_query().where(InvoiceModel.issue_date.between(start, end))
        )

    def list_overdue(self) -> list[InvoiceSummary]:
        """Pending invoices whose due date is before today."""
        today = self._clock.today()
        return self._summaries(
            self._base_query().where(
                InvoiceModel.state == InvoiceState.PENDING.value,
                InvoiceModel.due_date < today,
            )
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _base_query(self) -> Select:
        return select(InvoiceModel).order_by(
            InvoiceModel.issue_date.desc(),
            func.length(InvoiceModel.document_number).desc(),
            InvoiceModel.document_number.desc(),
        )

    def _summaries(self, query: Select) -> list[InvoiceSummary]:
        today = self._clock.today()
        return [
            model.to_summary(days_to_due(model.due_date, today))
            for model in self.session.execute(query).scalars()
        ]
