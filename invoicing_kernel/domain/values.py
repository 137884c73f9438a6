"""
Invoicing Domain Models (``invoicing_kernel.domain.values``).

Responsibility
--------------
Frozen dataclass value objects and closed enumerations for the nouns of
invoicing: line items, invoices, create/update requests, payments, and the
derived read views (detail, summary, reports).

Architecture position
---------------------
**Domain layer** -- pure data definitions with ZERO I/O.  Produced by the
ORM ``to_dto()`` mappers and returned to callers by ``InvoiceLedger``.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``TaxCategory`` is a closed set; its percentages are read-only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Mapping
from uuid import UUID

from invoicing_kernel.db.types import ZERO, round_money
from invoicing_kernel.exceptions import InvalidTaxCategoryError


class InvoiceState(Enum):
    """Persisted lifecycle state."""
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not InvoiceState.PENDING


class TaxCategory(Enum):
    """Tax bracket; each maps to a fixed percentage."""
    STANDARD = "standard"
    REDUCED = "reduced"
    SUPER_REDUCED = "super_reduced"
    EXEMPT = "exempt"

    @property
    def percentage(self) -> Decimal:
        return _TAX_PERCENTAGES[self]

    @classmethod
    def parse(cls, value: TaxCategory | str) -> TaxCategory:
        """Accept a member, its value or its name; anything else is rejected."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for member in cls:
                if value in (member.value, member.name):
                    return member
        raise InvalidTaxCategoryError(value)


_TAX_PERCENTAGES: Mapping[TaxCategory, Decimal] = MappingProxyType({
    TaxCategory.STANDARD: Decimal("21"),
    TaxCategory.REDUCED: Decimal("10"),
    TaxCategory.SUPER_REDUCED: Decimal("4"),
    TaxCategory.EXEMPT: Decimal("0"),
})


class PaymentMethod(Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CARD = "card"
    DIRECT_DEBIT = "direct_debit"
    CHEQUE = "cheque"
    PROMISSORY_NOTE = "promissory_note"


class DueLabel(Enum):
    """Display label derived from days remaining until the due date."""
    ON_TRACK = "OnTrack"
    DUE_SOON = "DueSoon"
    OVERDUE = "Overdue"


@dataclass(frozen=True)
class LineItem:
    """A single billable row.  Owned by its invoice; no identity of its own."""
    description: str
    quantity: int
    unit_price: Decimal

    @property
    def amount(self) -> Decimal:
        # Display amount, rounded on its own; the subtotal sums unrounded products
        return round_money(self.unit_price * self.quantity)


@dataclass(frozen=True)
class InvoiceRequest:
    """Caller-supplied fields for create and full update."""
    customer_name: str
    customer_tax_id: str
    customer_address: str
    issue_date: date
    due_date: date
    concept: str
    tax_category: TaxCategory | str
    items: tuple[LineItem, ...]
    payment_method: PaymentMethod
    discount: Decimal = ZERO
    notes: str | None = None


@dataclass(frozen=True)
class PaymentInfo:
    """Details recorded when an invoice is paid."""
    payment_method: PaymentMethod | None = None
    payment_date: date | None = None  # defaults to today
    notes: str | None = None


@dataclass(frozen=True)
class Invoice:
    """A stored invoice."""
    id: UUID
    document_number: str
    customer_name: str
    customer_tax_id: str
    customer_address: str
    issue_date: date
    due_date: date
    concept: str
    tax_category: TaxCategory
    items: tuple[LineItem, ...]
    discount: Decimal
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    state: InvoiceState
    payment_method: PaymentMethod
    notes: str | None = None
    version: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class DueStatus:
    days_to_due: int
    due_label: DueLabel


@dataclass(frozen=True)
class InvoiceDetail:
    """Full read view: the invoice plus its derived due-date fields."""
    invoice: Invoice
    days_to_due: int
    due_label: DueLabel


@dataclass(frozen=True)
class InvoiceSummary:
    """Light row for listings."""
    id: UUID
    document_number: str
    customer_name: str
    issue_date: date
    due_date: date
    total: Decimal
    state: InvoiceState
    days_to_due: int


@dataclass(frozen=True)
class StateTotals:
    count: int = 0
    amount: Decimal = ZERO


@dataclass(frozen=True)
class LedgerSummary:
    """Aggregates over a set of invoices."""
    invoice_count: int
    total_amount: Decimal
    by_state: Mapping[InvoiceState, StateTotals]
    overdue_count: int
    average_ticket: Decimal

    @property
    def collected_amount(self) -> Decimal:
        return self.by_state[InvoiceState.PAID].amount

    @property
    def outstanding_amount(self) -> Decimal:
        return self.by_state[InvoiceState.PENDING].amount


@dataclass(frozen=True)
class MonthlyReport:
    """LedgerSummary scoped to the invoices issued in one calendar month."""
    year: int
    month: int
    summary: LedgerSummary
    period: str = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "period", f"{self.year:04d}-{self.month:02d}")
