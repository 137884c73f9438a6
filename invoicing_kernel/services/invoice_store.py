"""
InvoiceStore -- persistence collaborator of the invoice ledger.

Responsibility:
    The write-side storage contract the ledger depends on (save, lookup,
    delete, greatest number, number reservation) and its SQLAlchemy
    implementation.  Filtered reads live in ``InvoiceSelector``.

Architecture position:
    Kernel > Services.  ``InvoiceLedger`` talks only to ``InvoiceStore``;
    ``SqlInvoiceStore`` is the shipped implementation.

Invariants enforced:
    - Inserts run inside a savepoint so a unique-constraint violation on the
      document number is reported as DuplicateDocumentNumberError without
      discarding the rest of the caller's transaction (including the
      counter increment).
    - Updates and deletes go through the mapper's version check; a stale
      write is reported as OptimisticLockError.
    - Never commits.  The ledger owns the transaction boundary.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from invoicing_kernel.domain.clock import Clock
from invoicing_kernel.exceptions import DuplicateDocumentNumberError, OptimisticLockError
from invoicing_kernel.logging_config import get_logger
from invoicing_kernel.models.invoice import InvoiceModel
from invoicing_kernel.services.sequence_service import (
    DocumentNumberGenerator,
    greatest_number_with_prefix,
)

logger = get_logger("services.invoice_store")


class InvoiceStore(ABC):
    """Storage contract for invoices."""

    @abstractmethod
    def save(self, invoice: InvoiceModel) -> InvoiceModel:
        """Insert or update ``invoice`` within the current transaction."""

    @abstractmethod
    def find_by_id(self, invoice_id: UUID, for_update: bool = False) -> InvoiceModel | None:
        """Invoice with ``invoice_id``; locked when ``for_update``."""

    @abstractmethod
    def find_by_number(self, document_number: str) -> InvoiceModel | None:
        ...

    @abstractmethod
    def delete(self, invoice: InvoiceModel) -> None:
        ...

    @abstractmethod
    def find_greatest_number_with_prefix(self, prefix_text: str) -> str | None:
        """Numerically greatest document number starting with ``prefix_text``."""

    @abstractmethod
    def reserve_next(self, prefix: str, year: int) -> str:
        """Atomically reserve the next document number of a series."""


class SqlInvoiceStore(InvoiceStore):
    """``InvoiceStore`` over a SQLAlchemy session."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        sequence_width: int = 4,
        generator: DocumentNumberGenerator | None = None,
    ):
        self._session = session
        self._generator = generator or DocumentNumberGenerator(
            session,
            clock=clock,
            width=sequence_width,
            greatest_lookup=self.find_greatest_number_with_prefix,
        )

    def save(self, invoice: InvoiceModel) -> InvoiceModel:
        try:
            with self._session.begin_nested():
                self._session.add(invoice)
                self._session.flush()
        except IntegrityError as exc:
            if self.find_by_number(invoice.document_number) is not None:
                logger.warning(
                    "document_number_collision",
                    extra={"document_number": invoice.document_number},
                )
                raise DuplicateDocumentNumberError(invoice.document_number) from exc
            raise
        except StaleDataError as exc:
            raise OptimisticLockError(
                "Invoice", str(invoice.id), expected_version=invoice.version
            ) from exc
        return invoice

    def find_by_id(self, invoice_id: UUID, for_update: bool = False) -> InvoiceModel | None:
        query = select(InvoiceModel).where(InvoiceModel.id == invoice_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        return self._session.execute(query).scalar_one_or_none()

    def find_by_number(self, document_number: str) -> InvoiceModel | None:
        return self._session.execute(
            select(InvoiceModel).where(InvoiceModel.document_number == document_number)
        ).scalar_one_or_none()

    def delete(self, invoice: InvoiceModel) -> None:
        try:
            self._session.delete(invoice)
            self._session.flush()
        except StaleDataError as exc:
            raise OptimisticLockError(
                "Invoice", str(invoice.id), expected_version=invoice.version
            ) from exc

    def find_greatest_number_with_prefix(self, prefix_text: str) -> str | None:
        return greatest_number_with_prefix(self._session, prefix_text)

    def reserve_next(self, prefix: str, year: int) -> str:
        return self._generator.reserve_next(prefix, year)
