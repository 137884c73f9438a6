"""
DocumentNumberGenerator -- per-year document numbers via locked counter rows.

Responsibility:
    Hands out ``PREFIX-YYYY-NNNN`` numbers that are unique and strictly
    increasing within a year, restarting at 1 each year.  Each series
    (``PREFIX-YYYY``) has one row in ``document_sequences`` that is read
    and bumped under ``SELECT ... FOR UPDATE``.

Architecture position:
    Kernel > Services.  Used by ``SqlInvoiceStore.reserve_next`` on behalf
    of ``InvoiceLedger.create``.

Invariants enforced:
    - The locked counter row is the source of the next value.  The greatest
      stored number is read once, to seed a series' counter on first use,
      so numbering continues after invoices that predate the counter.
    - The increment is transactional.  It becomes visible when the
      caller commits; a rollback hands the number back.

Failure modes:
    - IntegrityError: two transactions creating the same series counter.
      Handled by rolling back the savepoint and re-reading under lock.
    - InvalidDocumentNumberError: a stored number of the series is
      malformed and cannot seed the counter.
"""

from __future__ import annotations

from typing import Callable

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from invoicing_kernel.domain.clock import Clock, SystemClock
from invoicing_kernel.domain.document_number import (
    DEFAULT_PREFIX,
    DEFAULT_WIDTH,
    DocumentNumber,
    next_after,
    series_prefix,
)
from invoicing_kernel.logging_config import get_logger
from invoicing_kernel.models.invoice import InvoiceModel
from invoicing_kernel.models.sequence import DocumentSequence

logger = get_logger("services.sequence")


def greatest_number_with_prefix(session: Session, prefix_text: str) -> str | None:
    """
    Greatest stored document number starting with ``prefix_text``.

    Ordered numerically (length, then text) so ``...-10000`` ranks above
    ``...-9999``.
    """
    return session.execute(
        select(InvoiceModel.document_number)
        .where(InvoiceModel.document_number.startswith(prefix_text, autoescape=True))
        .order_by(
            func.length(InvoiceModel.document_number).desc(),
            InvoiceModel.document_number.desc(),
        )
        .limit(1)
    ).scalar_one_or_none()


class DocumentNumberGenerator:
    """
    Reserves document numbers.

    Contract:
        ``reserve_next()`` returns the formatted next number of the current
        year's series.  Does NOT commit; the caller owns the transaction.

    Seeding reads the greatest stored number through ``greatest_lookup``;
    ``SqlInvoiceStore`` passes its own ``find_greatest_number_with_prefix``.

    Usage:
        generator = DocumentNumberGenerator(session, clock)
        number = generator.reserve_next()      # "FACT-2025-0001"
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        prefix: str = DEFAULT_PREFIX,
        width: int = DEFAULT_WIDTH,
        greatest_lookup: Callable[[str], str | None] | None = None,
    ):
        self._session = session
        self._greatest = greatest_lookup or (lambda text: greatest_number_with_prefix(session, text))
        self._clock = clock or SystemClock()
        self._prefix = prefix
        self._width = width

    @staticmethod
    def series_name(prefix: str, year: int) -> str:
        return f"{prefix}-{year:04d}"

    def reserve_next(self, prefix: str | None = None, year: int | None = None) -> str:
        """
        Reserve the next number of a series.

        Args:
            prefix: Series prefix; defaults to the configured one.
            year: Series year; defaults to the clock's current year.

        Returns:
            The formatted document number.
        """
        prefix = prefix or self._prefix
        year = year if year is not None else self._clock.today().year

        sequence = self._next_value(prefix, year)
        number = DocumentNumber(prefix, year, sequence).format(self._width)
        logger.info(
            "document_number_reserved",
            extra={"document_number": number, "series": self.series_name(prefix, year)},
        )
        return number

    def current_value(self, prefix: str | None = None, year: int | None = None) -> int | None:
        """Last sequence handed out for a series, or None if never used."""
        prefix = prefix or self._prefix
        year = year if year is not None else self._clock.today().year
        return self._session.execute(
            select(DocumentSequence.current_value).where(
                DocumentSequence.name == self.series_name(prefix, year)
            )
        ).scalar_one_or_none()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_counter(self, name: str) -> DocumentSequence | None:
        return self._session.execute(
            select(DocumentSequence)
            .where(DocumentSequence.name == name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _first_value(self, prefix: str, year: int) -> int:
        greatest = self._greatest(series_prefix(prefix, year))
        return next_after(greatest, prefix, year).sequence

    def _next_value(self, prefix: str, year: int) -> int:
        name = self.series_name(prefix, year)
        counter = self._lock_counter(name)

        if counter is None:
            # First use of this series; a concurrent creator may win the insert
            first = self._first_value(prefix, year)
            savepoint = self._session.begin_nested()
            try:
                counter = DocumentSequence(name=name, current_value=first)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "document_sequence_created",
                    extra={"series": name, "first_value": first},
                )
                return counter.current_value
            except IntegrityError:
                logger.debug("document_sequence_race_retry", extra={"series": name})
                savepoint.rollback()
                counter = self._lock_counter(name)
                if counter is None:
                    raise

        counter.current_value += 1
        assert counter.current_value > 0
        self._session.flush()
        return counter.current_value
