"""
Pytest fixtures for the invoicing kernel test suite.

Provides:
- A fresh database per test (SQLite file under tmp_path by default)
- Deterministic clock, ledger and request factories
- Captured structured logs

Environment Variables:
- DATABASE_URL: PostgreSQL connection URL.  When set to a postgresql URL,
  every test runs against it and tests marked ``postgres`` are enabled.
  Otherwise each test gets its own SQLite database file.
"""

import json
import logging
import os
import threading
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy import text
from sqlalchemy.orm import Session

from invoicing_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from invoicing_kernel.domain.clock import DeterministicClock
from invoicing_kernel.domain.values import (
    InvoiceRequest,
    LineItem,
    PaymentMethod,
    TaxCategory,
)
from invoicing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from invoicing_kernel.services.invoice_ledger import InvoiceLedger, LedgerOptions

# Clock starts here for every test: Saturday 15 March 2025, noon UTC
TEST_NOW = datetime(2025, 3, 15, 12, 0, 0, tzinfo=timezone.utc)
TEST_TODAY = TEST_NOW.date()


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture invoicing_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger):
            ledger.create(request)
            logs = captured_logs()
            assert any(r["message"] == "invoice_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("invoicing_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


def _postgres_url() -> str | None:
    url = os.environ.get("DATABASE_URL", "")
    return url if url.startswith("postgresql") else None


def pytest_collection_modifyitems(config, items):
    """Skip ``postgres`` tests unless DATABASE_URL points at PostgreSQL."""
    if _postgres_url():
        return
    skip = pytest.mark.skip(reason="DATABASE_URL is not a PostgreSQL URL")
    for item in items:
        if "postgres" in item.keywords:
            item.add_marker(skip)


def _truncate_all(engine) -> None:
    with engine.begin() as conn:
        conn.execute(text("TRUNCATE invoices, document_sequences"))


@pytest.fixture
def db_engine(tmp_path):
    """Engine with all tables created; torn down after the test."""
    pg_url = _postgres_url()
    url = pg_url or f"sqlite:///{tmp_path / 'invoicing.db'}"
    engine = init_engine_from_url(url, echo=False, pool_size=10, max_overflow=10, pool_timeout=10)
    create_tables()
    yield engine
    if pg_url:
        _truncate_all(engine)
    else:
        drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    sess = get_session()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def session_factory(db_engine):
    """Factory for extra sessions (one per simulated client or thread).

    Every session it hands out is closed at teardown.
    """
    factory = get_session_factory()
    created: list[Session] = []
    lock = threading.Lock()

    def tracked_factory() -> Session:
        with lock:
            s = factory()
            created.append(s)
            return s

    yield tracked_factory

    for s in created:
        try:
            s.rollback()
        finally:
            s.close()


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(TEST_NOW)


@pytest.fixture
def ledger_options() -> LedgerOptions:
    return LedgerOptions()


@pytest.fixture
def ledger(session, clock, ledger_options) -> InvoiceLedger:
    return InvoiceLedger(session, clock=clock, options=ledger_options)


DEFAULT_ITEMS = (
    LineItem("Development", 40, Decimal("50.00")),
    LineItem("Testing", 20, Decimal("45.00")),
)


@pytest.fixture
def make_request():
    """
    Build an InvoiceRequest with valid defaults; override any field.

    The defaults price to subtotal 2900.00, tax 609.00, total 3509.00.
    """

    def _make(**overrides) -> InvoiceRequest:
        fields = dict(
            customer_name="Acme Consulting SL",
            customer_tax_id="B12345678",
            customer_address="Calle Mayor 1, Madrid",
            issue_date=date(2025, 3, 10),
            due_date=date(2025, 4, 9),
            concept="March development services",
            tax_category=TaxCategory.STANDARD,
            items=DEFAULT_ITEMS,
            payment_method=PaymentMethod.BANK_TRANSFER,
            discount=Decimal("0.00"),
            notes=None,
        )
        fields.update(overrides)
        return InvoiceRequest(**fields)

    return _make
