"""
Report aggregation over a set of invoices.

Pure functions; the selector picks the rows and derives each row's
``days_to_due`` before they arrive here.  Every state appears in
``by_state`` even when it has no invoices.
"""

from __future__ import annotations

import calendar
from datetime import date
from decimal import Decimal
from types import MappingProxyType
from typing import Iterable

from invoicing_kernel.db.types import ZERO, round_money
from invoicing_kernel.domain.values import (
    InvoiceState,
    InvoiceSummary,
    LedgerSummary,
    MonthlyReport,
    StateTotals,
)


def is_overdue(row: InvoiceSummary) -> bool:
    """Pending and past its due date.  Derived; never stored."""
    return row.state is InvoiceState.PENDING and row.days_to_due < 0


def average_ticket(total_amount: Decimal, count: int) -> Decimal:
    if count == 0:
        return ZERO
    return round_money(total_amount / count)


def build_summary(rows: Iterable[InvoiceSummary]) -> LedgerSummary:
    counts = {state: 0 for state in InvoiceState}
    amounts = {state: ZERO for state in InvoiceState}
    overdue = 0

    for row in rows:
        counts[row.state] += 1
        amounts[row.state] += row.total
        if is_overdue(row):
            overdue += 1

    count = sum(counts.values())
    total_amount = sum(amounts.values(), ZERO)
    by_state = MappingProxyType({
        state: StateTotals(count=counts[state], amount=amounts[state])
        for state in InvoiceState
    })
    return LedgerSummary(
        invoice_count=count,
        total_amount=total_amount,
        by_state=by_state,
        overdue_count=overdue,
        average_ticket=average_ticket(total_amount, count),
    )


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a calendar month.  Raises ValueError on bad input."""
    first = date(year, month, 1)
    return first, first.replace(day=calendar.monthrange(year, month)[1])


def build_monthly_report(year: int, month: int, rows: Iterable[InvoiceSummary]) -> MonthlyReport:
    """Summary of ``rows``, which must all be issued in ``year``-``month``."""
    return MonthlyReport(year=year, month=month, summary=build_summary(rows))
