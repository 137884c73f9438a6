"""
InvoiceLedger -- orchestrates invoice creation, mutation and reads.

Thin glue layer that:
1. Validates requests (``domain.validation``)
2. Prices them (``domain.pricing``)
3. Reserves document numbers (``InvoiceStore.reserve_next``)
4. Encodes line items (``domain.item_codec``)
5. Gates pay/cancel/update through ``InvoiceLifecycle``
6. Derives due-date status and reports for readers

All computation lives in the domain layer.  This service owns the
transaction boundary: it commits on success and rolls back on failure.

Usage:
    ledger = InvoiceLedger(session, clock=SystemClock())
    invoice = ledger.create(request)
    ledger.pay(invoice.id, PaymentInfo(payment_method=PaymentMethod.CARD))
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from invoicing_kernel.domain.clock import Clock, SystemClock
from invoicing_kernel.domain.document_number import DEFAULT_PREFIX, DEFAULT_WIDTH
from invoicing_kernel.domain.due_dates import DEFAULT_DUE_SOON_DAYS, derive_due_status
from invoicing_kernel.domain.item_codec import encode_items
from invoicing_kernel.domain.lifecycle import CANCEL, PAY, InvoiceLifecycle, append_note
from invoicing_kernel.domain.pricing import PricingResult, price
from invoicing_kernel.domain.reporting import build_monthly_report, build_summary, month_bounds
from invoicing_kernel.domain.validation import ValidatedRequest, validate_payment, validate_request
from invoicing_kernel.domain.values import (
    DueStatus,
    Invoice,
    InvoiceDetail,
    InvoiceRequest,
    InvoiceState,
    InvoiceSummary,
    LedgerSummary,
    MonthlyReport,
    PaymentInfo,
    PaymentMethod,
)
from invoicing_kernel.exceptions import (
    DuplicateDocumentNumberError,
    InvoiceNotFoundError,
    OptimisticLockError,
    ValidationError,
)
from invoicing_kernel.logging_config import LogContext, get_logger
from invoicing_kernel.models.invoice import InvoiceModel
from invoicing_kernel.selectors.invoice_selector import InvoiceSelector
from invoicing_kernel.services.invoice_store import InvoiceStore, SqlInvoiceStore

logger = get_logger("services.invoice_ledger")


@dataclass(frozen=True)
class LedgerOptions:
    """Tunables of the ledger.  Built from settings by ``invoicing_config.bridges``."""

    document_prefix: str = DEFAULT_PREFIX
    sequence_width: int = DEFAULT_WIDTH
    max_number_attempts: int = 3
    due_soon_days: int = DEFAULT_DUE_SOON_DAYS

    def __post_init__(self):
        if self.max_number_attempts < 1:
            raise ValueError("max_number_attempts must be at least 1")
        if self.sequence_width < 1:
            raise ValueError("sequence_width must be at least 1")
        if self.due_soon_days < 0:
            raise ValueError("due_soon_days must not be negative")


class InvoiceLedger:
    """
    Invoice operations over one session.

    Transaction boundary: every mutating method commits on success and
    rolls back on any failure, so a rejected request leaves nothing behind
    (not even a consumed document number).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        options: LedgerOptions | None = None,
        store: InvoiceStore | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._options = options or LedgerOptions()
        self._store = store or SqlInvoiceStore(
            session, clock=self._clock, sequence_width=self._options.sequence_width
        )
        self._selector = InvoiceSelector(session, clock=self._clock)
        self._lifecycle = InvoiceLifecycle()

    # =========================================================================
    # Mutations
    # =========================================================================

    def create(self, request: InvoiceRequest) -> Invoice:
        """
        Validate, price, number and store a new pending invoice.

        Raises:
            ValidationError: The request is rejected; nothing is written.
            DuplicateDocumentNumberError: Every attempt collided.
        """
        try:
            validated = validate_request(request, self._clock.today())
            pricing = price(validated.items, validated.tax_category, validated.discount)
            encoded = encode_items(validated.items)

            logger.info("invoice_create_started", extra={
                "customer_tax_id": validated.customer_tax_id,
                "item_count": len(validated.items),
                "total": str(pricing.total),
            })

            model = self._insert_with_number(validated, pricing, encoded)
            invoice = model.to_dto()
            self._session.commit()

            with LogContext.bind(invoice_id=str(invoice.id), document_number=invoice.document_number):
                logger.info("invoice_created", extra={
                    "subtotal": str(invoice.subtotal),
                    "tax": str(invoice.tax),
                    "discount": str(invoice.discount),
                    "total": str(invoice.total),
                })
            return invoice

        except ValidationError as exc:
            self._session.rollback()
            logger.warning("invoice_create_rejected", extra={"field": exc.field, "reason": exc.reason})
            raise
        except Exception:
            self._session.rollback()
            raise

    def update(
        self,
        invoice_id: UUID,
        request: InvoiceRequest,
        expected_version: int | None = None,
    ) -> Invoice:
        """
        Replace the editable fields of a pending invoice.

        Document number and state are kept.  Notes in the request are
        appended to the existing notes.
        """
        try:
            model = self._load_for_update(invoice_id, expected_version)
            self._lifecycle.require_editable(InvoiceState(model.state), invoice_id=str(invoice_id))

            validated = validate_request(request, self._clock.today())
            pricing = price(validated.items, validated.tax_category, validated.discount)
            encoded = encode_items(validated.items)

            notes = append_note(model.notes, validated.notes)
            self._assign(model, validated, pricing, encoded)
            model.notes = notes
            self._store.save(model)

            invoice = model.to_dto()
            self._session.commit()
            logger.info("invoice_updated", extra={
                "invoice_id": str(invoice_id),
                "document_number": invoice.document_number,
                "version": invoice.version,
                "total": str(invoice.total),
            })
            return invoice
        except Exception:
            self._session.rollback()
            raise

    def pay(
        self,
        invoice_id: UUID,
        payment: PaymentInfo | None = None,
        expected_version: int | None = None,
    ) -> Invoice:
        """Mark a pending invoice paid and annotate its notes."""
        payment = payment or PaymentInfo()
        try:
            model = self._load_for_update(invoice_id, expected_version)
            # Lifecycle gate runs before payment validation
            self._lifecycle.transition(InvoiceState(model.state), PAY, invoice_id=str(invoice_id))
            payment_date = validate_payment(payment, self._clock.today())

            outcome = self._lifecycle.apply_payment(
                state=InvoiceState(model.state),
                current_method=PaymentMethod(model.payment_method),
                current_notes=model.notes,
                payment=payment,
                payment_date=payment_date,
                invoice_id=str(invoice_id),
            )
            model.state = outcome.state.value
            model.payment_method = outcome.payment_method.value
            model.notes = outcome.notes
            self._store.save(model)

            invoice = model.to_dto()
            self._session.commit()
            logger.info("invoice_paid", extra={
                "invoice_id": str(invoice_id),
                "document_number": invoice.document_number,
                "payment_method": invoice.payment_method.value,
                "payment_date": payment_date.isoformat(),
            })
            return invoice
        except Exception:
            self._session.rollback()
            raise

    def cancel(self, invoice_id: UUID, expected_version: int | None = None) -> Invoice:
        try:
            model = self._load_for_update(invoice_id, expected_version)
            new_state = self._lifecycle.transition(
                InvoiceState(model.state), CANCEL, invoice_id=str(invoice_id)
            )
            model.state = new_state.value
            self._store.save(model)

            invoice = model.to_dto()
            self._session.commit()
            logger.info("invoice_cancelled", extra={
                "invoice_id": str(invoice_id),
                "document_number": invoice.document_number,
            })
            return invoice
        except Exception:
            self._session.rollback()
            raise

    def delete(self, invoice_id: UUID) -> None:
        """Remove an invoice in any state.  Its number is never reissued."""
        try:
            model = self._load_for_update(invoice_id)
            document_number = model.document_number
            self._store.delete(model)
            self._session.commit()
            logger.info("invoice_deleted", extra={
                "invoice_id": str(invoice_id),
                "document_number": document_number,
            })
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, invoice_id: UUID) -> InvoiceDetail:
        invoice = self._selector.get(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return self._detail(invoice)

    def get_by_number(self, document_number: str) -> InvoiceDetail:
        invoice = self._selector.get_by_number(document_number)
        if invoice is None:
            raise InvoiceNotFoundError(document_number)
        return self._detail(invoice)

    def derive(self, invoice: Invoice) -> DueStatus:
        return derive_due_status(invoice.due_date, self._clock.today(), self._options.due_soon_days)

    def list_all(self) -> list[InvoiceSummary]:
        return self._selector.list_all()

    def list_by_state(self, state: InvoiceState) -> list[InvoiceSummary]:
        return self._selector.list_by_state(state)

    def search_by_customer(self, text: str) -> list[InvoiceSummary]:
        return self._selector.search_by_customer(text)

    def list_by_payment_method(self, method: PaymentMethod) -> list[InvoiceSummary]:
        return self._selector.list_by_payment_method(method)

    def list_issued_between(self, start: date, end: date) -> list[InvoiceSummary]:
        return self._selector.list_issued_between(start, end)

    def list_overdue(self) -> list[InvoiceSummary]:
        return self._selector.list_overdue()

    def monthly_report(self, year: int, month: int) -> MonthlyReport:
        """Aggregates over the invoices issued in one calendar month."""
        try:
            first, last = month_bounds(year, month)
        except ValueError as exc:
            raise ValidationError("period", f"{year}-{month} is not a calendar month") from exc

        report = build_monthly_report(year, month, self._selector.list_issued_between(first, last))
        logger.info("monthly_report_built", extra={
            "period": report.period,
            "invoice_count": report.summary.invoice_count,
            "total_amount": str(report.summary.total_amount),
        })
        return report

    def totals(self) -> LedgerSummary:
        return build_summary(self._selector.list_all())

    # =========================================================================
    # Internals
    # =========================================================================

    def _detail(self, invoice: Invoice) -> InvoiceDetail:
        status = self.derive(invoice)
        return InvoiceDetail(
            invoice=invoice,
            days_to_due=status.days_to_due,
            due_label=status.due_label,
        )

    def _load_for_update(self, invoice_id: UUID, expected_version: int | None = None) -> InvoiceModel:
        model = self._store.find_by_id(invoice_id, for_update=True)
        if model is None:
            raise InvoiceNotFoundError(str(invoice_id))
        if expected_version is not None and model.version != expected_version:
            logger.warning("invoice_version_conflict", extra={
                "invoice_id": str(invoice_id),
                "expected_version": expected_version,
                "actual_version": model.version,
            })
            raise OptimisticLockError(
                "Invoice",
                str(invoice_id),
                expected_version=expected_version,
                actual_version=model.version,
            )
        return model

    @staticmethod
    def _assign(
        model: InvoiceModel,
        validated: ValidatedRequest,
        pricing: PricingResult,
        encoded: str,
    ) -> None:
        model.customer_name = validated.customer_name
        model.customer_tax_id = validated.customer_tax_id
        model.customer_address = validated.customer_address
        model.issue_date = validated.issue_date
        model.due_date = validated.due_date
        model.concept = validated.concept
        model.tax_category = validated.tax_category.value
        model.items = encoded
        model.discount = pricing.discount
        model.subtotal = pricing.subtotal
        model.tax = pricing.tax
        model.total = pricing.total
        model.payment_method = validated.payment_method.value

    def _insert_with_number(
        self,
        validated: ValidatedRequest,
        pricing: PricingResult,
        encoded: str,
    ) -> InvoiceModel:
        """
        Reserve a number and insert, retrying on a number collision.

        The counter increment of a failed attempt is kept, so each retry
        reserves a fresh number.
        """
        year = self._clock.today().year
        attempts = self._options.max_number_attempts

        for attempt in range(1, attempts + 1):
            number = self._store.reserve_next(self._options.document_prefix, year)
            model = InvoiceModel(
                document_number=number,
                state=InvoiceState.PENDING.value,
                notes=validated.notes,
            )
            self._assign(model, validated, pricing, encoded)
            try:
                return self._store.save(model)
            except DuplicateDocumentNumberError:
                logger.warning("document_number_retry", extra={
                    "document_number": number,
                    "attempt": attempt,
                    "max_attempts": attempts,
                })
                if attempt == attempts:
                    raise DuplicateDocumentNumberError(number, attempts=attempt)

        raise AssertionError("unreachable")
