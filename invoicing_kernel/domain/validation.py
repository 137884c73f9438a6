"""
Request validation.

Responsibility:
    Check every caller-supplied field of a create/update request or a
    payment before anything is priced or written, and return the values in
    their canonical form (trimmed text, parsed tax category, Decimal
    discount, tuple of items).

Failure modes:
    - ValidationError (or a subclass) naming the first offending field.
    Monetary range checks on the discount need the subtotal and live in
    ``pricing.validate_discount``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation

from invoicing_kernel.db.types import MONEY_INTEGER_DIGITS, fits_money_column, to_money
from invoicing_kernel.domain.values import (
    InvoiceRequest,
    LineItem,
    PaymentInfo,
    PaymentMethod,
    TaxCategory,
)
from invoicing_kernel.exceptions import (
    InvalidDateRangeError,
    InvalidDiscountError,
    InvalidLineItemError,
    ValidationError,
)

CUSTOMER_NAME_MIN = 3
CUSTOMER_NAME_MAX = 200
CUSTOMER_ADDRESS_MAX = 500
CONCEPT_MAX = 500
DESCRIPTION_MAX = 500

# Spanish NIF/NIE or CIF
TAX_ID_RE = re.compile(r"[XYZ]?[0-9]{7,8}[A-Z]|[A-W][0-9]{7}[0-9A-J]")


@dataclass(frozen=True)
class ValidatedRequest:
    customer_name: str
    customer_tax_id: str
    customer_address: str
    issue_date: date
    due_date: date
    concept: str
    tax_category: TaxCategory
    items: tuple[LineItem, ...]
    payment_method: PaymentMethod
    discount: Decimal
    notes: str | None


def _required_text(field: str, value: object, max_length: int, min_length: int = 1) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, "is required")
    text = value.strip()
    if len(text) < min_length:
        raise ValidationError(field, f"must be at least {min_length} characters")
    if len(text) > max_length:
        raise ValidationError(field, f"must be at most {max_length} characters")
    return text


def validate_tax_id(value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("customer_tax_id", "is required")
    tax_id = value.strip().upper()
    if not TAX_ID_RE.fullmatch(tax_id):
        raise ValidationError("customer_tax_id", f"{value!r} is not a valid NIF/CIF")
    return tax_id


def validate_dates(issue_date: object, due_date: object, today: date) -> None:
    if not isinstance(issue_date, date):
        raise ValidationError("issue_date", "is required")
    if not isinstance(due_date, date):
        raise ValidationError("due_date", "is required")
    if issue_date > today:
        raise ValidationError("issue_date", f"{issue_date} is in the future")
    if due_date < issue_date:
        raise InvalidDateRangeError(issue_date.isoformat(), due_date.isoformat())


def validate_item(item: object, index: int) -> LineItem:
    if not isinstance(item, LineItem):
        raise InvalidLineItemError("not a line item", index)
    if not isinstance(item.description, str) or not item.description.strip():
        raise InvalidLineItemError("description is required", index)
    if len(item.description) > DESCRIPTION_MAX:
        raise InvalidLineItemError(f"description exceeds {DESCRIPTION_MAX} characters", index)
    if isinstance(item.quantity, bool) or not isinstance(item.quantity, int):
        raise InvalidLineItemError("quantity must be an integer", index)
    if item.quantity <= 0:
        raise InvalidLineItemError("quantity must be positive", index)
    if not isinstance(item.unit_price, Decimal) or not item.unit_price.is_finite():
        raise InvalidLineItemError("unit price must be a finite Decimal", index)
    if item.unit_price < 0:
        raise InvalidLineItemError("unit price must not be negative", index)
    if not fits_money_column(item.unit_price * item.quantity):
        raise InvalidLineItemError(f"amount exceeds {MONEY_INTEGER_DIGITS} integer digits", index)
    return item


def validate_items(items: object) -> tuple[LineItem, ...]:
    if items is None or isinstance(items, (str, bytes)):
        raise InvalidLineItemError("items must be a sequence of line items")
    checked = tuple(validate_item(item, index) for index, item in enumerate(items))
    if not checked:
        raise InvalidLineItemError("at least one line item is required")
    return checked


def _coerce_discount(value: object) -> Decimal:
    try:
        return to_money(value if value is not None else 0)
    except (TypeError, InvalidOperation):
        raise InvalidDiscountError(str(value), "", "discount must be a Decimal amount")


def validate_request(request: InvoiceRequest, today: date) -> ValidatedRequest:
    """
    Validate a create/update request.

    Args:
        request: Caller-supplied fields.
        today: Current date from the injected clock.

    Returns:
        The request in canonical form.
    """
    customer_name = _required_text(
        "customer_name", request.customer_name, CUSTOMER_NAME_MAX, CUSTOMER_NAME_MIN
    )
    tax_id = validate_tax_id(request.customer_tax_id)

    address = request.customer_address or ""
    if not isinstance(address, str):
        raise ValidationError("customer_address", "must be text")
    address = address.strip()
    if len(address) > CUSTOMER_ADDRESS_MAX:
        raise ValidationError("customer_address", f"must be at most {CUSTOMER_ADDRESS_MAX} characters")

    concept = _required_text("concept", request.concept, CONCEPT_MAX)
    validate_dates(request.issue_date, request.due_date, today)
    category = TaxCategory.parse(request.tax_category)
    items = validate_items(request.items)

    if not isinstance(request.payment_method, PaymentMethod):
        raise ValidationError("payment_method", f"unknown payment method {request.payment_method!r}")

    if request.notes is not None and not isinstance(request.notes, str):
        raise ValidationError("notes", "must be text")

    return ValidatedRequest(
        customer_name=customer_name,
        customer_tax_id=tax_id,
        customer_address=address,
        issue_date=request.issue_date,
        due_date=request.due_date,
        concept=concept,
        tax_category=category,
        items=items,
        payment_method=request.payment_method,
        discount=_coerce_discount(request.discount),
        notes=(request.notes or "").strip() or None,
    )


def validate_payment(payment: PaymentInfo, today: date) -> date:
    """
    Check a payment and resolve its date.

    Returns:
        The payment date, defaulting to ``today``.
    """
    if payment.payment_method is not None and not isinstance(payment.payment_method, PaymentMethod):
        raise ValidationError("payment_method", f"unknown payment method {payment.payment_method!r}")
    payment_date = payment.payment_date or today
    if not isinstance(payment_date, date):
        raise ValidationError("payment_date", "must be a date")
    if payment_date > today:
        raise ValidationError("payment_date", f"{payment_date} is in the future")
    return payment_date
