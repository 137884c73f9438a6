"""Tests for report aggregation."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from invoicing_kernel.domain.reporting import (
    average_ticket,
    build_monthly_report,
    build_summary,
    is_overdue,
    month_bounds,
)
from invoicing_kernel.domain.values import InvoiceState, InvoiceSummary


def _row(total: str, state=InvoiceState.PENDING, days_to_due=10) -> InvoiceSummary:
    return InvoiceSummary(
        id=uuid4(),
        document_number="FACT-2025-0001",
        customer_name="Acme",
        issue_date=date(2025, 3, 1),
        due_date=date(2025, 3, 31),
        total=Decimal(total),
        state=state,
        days_to_due=days_to_due,
    )


def test_empty_summary():
    summary = build_summary([])
    assert summary.invoice_count == 0
    assert summary.total_amount == Decimal("0.00")
    assert summary.average_ticket == Decimal("0.00")
    assert set(summary.by_state) == set(InvoiceState)
    assert summary.by_state[InvoiceState.PAID].count == 0


def test_summary_totals_by_state():
    rows = [
        _row("100.00", InvoiceState.PAID),
        _row("50.00", InvoiceState.PENDING),
        _row("25.50", InvoiceState.PENDING, days_to_due=-3),
        _row("10.00", InvoiceState.CANCELLED, days_to_due=-30),
    ]
    summary = build_summary(rows)

    assert summary.invoice_count == 4
    assert summary.total_amount == Decimal("185.50")
    assert summary.collected_amount == Decimal("100.00")
    assert summary.outstanding_amount == Decimal("75.50")
    assert summary.by_state[InvoiceState.PENDING].count == 2
    assert summary.by_state[InvoiceState.CANCELLED].amount == Decimal("10.00")
    assert summary.overdue_count == 1
    assert summary.average_ticket == Decimal("46.38")


def test_by_state_is_read_only():
    summary = build_summary([_row("1.00")])
    with pytest.raises(TypeError):
        summary.by_state[InvoiceState.PAID] = None


def test_overdue_only_for_pending_past_due():
    assert is_overdue(_row("1.00", InvoiceState.PENDING, days_to_due=-1))
    assert not is_overdue(_row("1.00", InvoiceState.PENDING, days_to_due=0))
    assert not is_overdue(_row("1.00", InvoiceState.PAID, days_to_due=-1))


def test_average_ticket_rounds_half_up():
    assert average_ticket(Decimal("10.00"), 3) == Decimal("3.33")
    assert average_ticket(Decimal("0.05"), 2) == Decimal("0.03")


@pytest.mark.parametrize(
    "year, month, first, last",
    [
        (2025, 2, date(2025, 2, 1), date(2025, 2, 28)),
        (2024, 2, date(2024, 2, 1), date(2024, 2, 29)),
        (2025, 12, date(2025, 12, 1), date(2025, 12, 31)),
        (9999, 12, date(9999, 12, 1), date(9999, 12, 31)),
    ],
)
def test_month_bounds(year, month, first, last):
    assert month_bounds(year, month) == (first, last)


def test_month_bounds_rejects_bad_month():
    with pytest.raises(ValueError):
        month_bounds(2025, 13)


def test_monthly_report_period_label():
    report = build_monthly_report(2025, 3, [_row("10.00")])
    assert report.period == "2025-03"
    assert report.summary.invoice_count == 1
