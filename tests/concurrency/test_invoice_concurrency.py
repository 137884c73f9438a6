"""
Concurrency tests for invoice mutations and document numbering.

Two kinds of conflict are covered:
- Optimistic locking: a writer holding a stale version is rejected
- Number collisions: a reserved number already taken triggers a retry

SQLite serializes writers, so the two-session tests below finish each
session's read before the other session writes.  The threaded tests need
PostgreSQL (``-m postgres`` with DATABASE_URL set).

Skip with: pytest -m "not slow_locks"
"""

from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import func, select, update

from invoicing_kernel.domain.values import InvoiceState
from invoicing_kernel.exceptions import DuplicateDocumentNumberError, OptimisticLockError
from invoicing_kernel.models.invoice import InvoiceModel
from invoicing_kernel.models.sequence import DocumentSequence
from invoicing_kernel.services.invoice_ledger import InvoiceLedger, LedgerOptions
from invoicing_kernel.services.invoice_store import SqlInvoiceStore

pytestmark = pytest.mark.slow_locks


class TestOptimisticLocking:

    def test_expected_version_mismatch_rejected(self, session_factory, clock, make_request):
        session_a, session_b = session_factory(), session_factory()
        ledger_a = InvoiceLedger(session_a, clock=clock)
        ledger_b = InvoiceLedger(session_b, clock=clock)

        invoice = ledger_a.create(make_request())
        seen = ledger_a.get(invoice.id).invoice
        session_a.commit()

        ledger_b.pay(invoice.id)

        with pytest.raises(OptimisticLockError) as exc_info:
            ledger_a.cancel(invoice.id, expected_version=seen.version)
        assert exc_info.value.expected_version == 1
        assert exc_info.value.actual_version == 2
        assert ledger_a.get(invoice.id).invoice.state is InvoiceState.PAID

    def test_matching_expected_version_accepted(self, ledger, make_request):
        invoice = ledger.create(make_request())
        cancelled = ledger.cancel(invoice.id, expected_version=invoice.version)
        assert cancelled.version == invoice.version + 1

    def test_conflict_is_logged(self, ledger, make_request, captured_logs):
        invoice = ledger.create(make_request())
        ledger.pay(invoice.id)
        with pytest.raises(OptimisticLockError):
            ledger.cancel(invoice.id, expected_version=1)
        conflicts = [r for r in captured_logs() if r["message"] == "invoice_version_conflict"]
        assert conflicts[0]["actual_version"] == 2

    def test_stale_flush_rejected(self, session_factory, clock, make_request):
        session_a, session_b = session_factory(), session_factory()
        ledger_b = InvoiceLedger(session_b, clock=clock)
        invoice = ledger_b.create(make_request())

        store_a = SqlInvoiceStore(session_a, clock=clock)
        stale = store_a.find_by_id(invoice.id)
        session_a.commit()

        ledger_b.pay(invoice.id)

        stale.concept = "Overwritten by a stale writer"
        with pytest.raises(OptimisticLockError):
            store_a.save(stale)
        session_a.rollback()

        assert ledger_b.get(invoice.id).invoice.concept == "March development services"


class TestNumberCollisionRetry:

    @staticmethod
    def _rewind_counter(session) -> None:
        session.execute(update(DocumentSequence).values(current_value=0))
        session.commit()

    def test_collision_retries_with_next_number(self, ledger, session, make_request, captured_logs):
        ledger.create(make_request())
        self._rewind_counter(session)

        invoice = ledger.create(make_request())

        assert invoice.document_number == "FACT-2025-0002"
        retries = [r for r in captured_logs() if r["message"] == "document_number_retry"]
        assert retries[0]["document_number"] == "FACT-2025-0001"
        assert retries[0]["attempt"] == 1

    def test_attempts_exhausted(self, session, clock, make_request):
        ledger = InvoiceLedger(session, clock=clock, options=LedgerOptions(max_number_attempts=1))
        ledger.create(make_request())
        self._rewind_counter(session)

        with pytest.raises(DuplicateDocumentNumberError) as exc_info:
            ledger.create(make_request())
        assert exc_info.value.document_number == "FACT-2025-0001"
        assert exc_info.value.attempts == 1

        count = session.execute(select(func.count()).select_from(InvoiceModel)).scalar_one()
        current = session.execute(select(DocumentSequence.current_value)).scalar_one()
        assert count == 1
        assert current == 0


@pytest.mark.postgres
class TestParallelCreate:

    def test_parallel_creates_get_distinct_consecutive_numbers(
        self, session_factory, clock, make_request
    ):
        workers = 8

        def create_one(_):
            ledger = InvoiceLedger(session_factory(), clock=clock)
            return ledger.create(make_request()).document_number

        with ThreadPoolExecutor(max_workers=workers) as pool:
            numbers = list(pool.map(create_one, range(workers)))

        assert sorted(numbers) == [f"FACT-2025-{n:04d}" for n in range(1, workers + 1)]

    def test_parallel_pay_and_cancel_one_wins(self, session_factory, clock, make_request):
        invoice = InvoiceLedger(session_factory(), clock=clock).create(make_request())

        def pay():
            return InvoiceLedger(session_factory(), clock=clock).pay(invoice.id)

        def cancel():
            return InvoiceLedger(session_factory(), clock=clock).cancel(invoice.id)

        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [pool.submit(pay), pool.submit(cancel)]
            outcomes = []
            for future in futures:
                try:
                    outcomes.append(future.result().state)
                except Exception as exc:
                    outcomes.append(type(exc).__name__)

        assert outcomes.count("InvalidStateTransitionError") == 1
        final = InvoiceLedger(session_factory(), clock=clock).get(invoice.id).invoice.state
        assert final in outcomes
