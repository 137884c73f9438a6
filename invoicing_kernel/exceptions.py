"""
Typed Exception Hierarchy for the Invoicing Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers must be able to tell a rejected request from a corrupted record from
a lost race without parsing message strings.  Every error therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

Example:
    try:
        ledger.pay(invoice_id, payment)
    except InvalidStateTransitionError as e:
        api_response(code=e.code, state=e.current_state, action=e.action)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InvoicingError (base)
    |
    +-- ValidationError
    |   +-- InvalidTaxCategoryError
    |   +-- InvalidDiscountError
    |   +-- InvalidDateRangeError
    |   +-- InvalidLineItemError
    |   +-- InvalidDocumentNumberError
    |
    +-- DecodeError
    |
    +-- InvoiceStateError
    |   +-- InvalidStateTransitionError
    |
    +-- InvoiceNotFoundError
    |
    +-- DuplicateDocumentNumberError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Bad request field (dates, customer, ...)
                | INVALID_TAX_CATEGORY        | Tax category outside the closed set
                | INVALID_DISCOUNT            | discount < 0, > subtotal, or > 2 places
                | INVALID_DATE_RANGE          | due_date before issue_date
                | INVALID_LINE_ITEM           | Empty list, bad quantity or unit price
                | INVALID_DOCUMENT_NUMBER     | Text is not PREFIX-YYYY-NNNN
----------------|-----------------------------|-----------------------------------------
Data integrity  | ITEM_DECODE_ERROR           | Stored item text is malformed
----------------|-----------------------------|-----------------------------------------
Lifecycle       | INVALID_STATE_TRANSITION    | Pay/cancel/update from illegal state
----------------|-----------------------------|-----------------------------------------
Lookup          | INVOICE_NOT_FOUND           | No invoice with that id / number
----------------|-----------------------------|-----------------------------------------
Numbering       | DUPLICATE_DOCUMENT_NUMBER   | Number already taken at insert time
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Invoice modified by another transaction

===============================================================================
HANDLING PATTERNS
===============================================================================

1. ValidationError: reject immediately, never retry.  Nothing was written.
2. DecodeError: the stored record is corrupt.  Surface as a data-integrity
   failure; never substitute an empty item list.
3. InvalidStateTransitionError: surface as a conflict, never auto-correct.
4. DuplicateDocumentNumberError: the ledger already retried a bounded number
   of times before raising this.
5. OptimisticLockError: reload the invoice and decide again.
"""


class InvoicingError(Exception):
    """
    Base exception for all invoicing kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVOICING_ERROR"


# Validation exceptions


class ValidationError(InvoicingError):
    """A request was rejected before any write."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class InvalidTaxCategoryError(ValidationError):
    """Tax category is not one of the closed set."""

    code: str = "INVALID_TAX_CATEGORY"

    def __init__(self, category: object):
        self.category = category
        super().__init__("tax_category", f"unknown tax category {category!r}")


class InvalidDiscountError(ValidationError):
    """Discount is negative, exceeds the subtotal, or is not cent-exact."""

    code: str = "INVALID_DISCOUNT"

    def __init__(self, discount: str, subtotal: str, reason: str):
        self.discount = discount
        self.subtotal = subtotal
        super().__init__("discount", reason)


class InvalidDateRangeError(ValidationError):
    """Due date precedes issue date."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, issue_date: str, due_date: str):
        self.issue_date = issue_date
        self.due_date = due_date
        super().__init__(
            "due_date",
            f"due date {due_date} is before issue date {issue_date}",
        )


class InvalidLineItemError(ValidationError):
    """Item list is empty or an item has an illegal quantity or price."""

    code: str = "INVALID_LINE_ITEM"

    def __init__(self, reason: str, index: int | None = None):
        self.index = index
        field = "items" if index is None else f"items[{index}]"
        super().__init__(field, reason)


class InvalidDocumentNumberError(ValidationError):
    """Text does not have the PREFIX-YYYY-NNNN shape."""

    code: str = "INVALID_DOCUMENT_NUMBER"

    def __init__(self, value: str):
        self.value = value
        super().__init__(
            "document_number", f"{value!r} is not of the form PREFIX-YYYY-NNNN"
        )


# Data integrity


class DecodeError(InvoicingError):
    """Encoded line-item text could not be decoded."""

    code: str = "ITEM_DECODE_ERROR"

    def __init__(self, fragment: str, reason: str):
        self.fragment = fragment
        self.reason = reason
        super().__init__(f"Cannot decode items ({reason}): {fragment!r}")


# Lifecycle


class InvoiceStateError(InvoicingError):
    """Base exception for lifecycle errors."""

    code: str = "INVOICE_STATE_ERROR"


class InvalidStateTransitionError(InvoiceStateError):
    """The requested operation is not legal from the invoice's state."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(
        self,
        current_state: str,
        action: str,
        reason: str,
        invoice_id: str | None = None,
    ):
        self.invoice_id = invoice_id
        self.current_state = current_state
        self.action = action
        self.reason = reason
        super().__init__(reason)


# Lookup


class InvoiceNotFoundError(InvoicingError):
    """No invoice matches the given id or document number."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Invoice not found: {key}")


# Numbering


class DuplicateDocumentNumberError(InvoicingError):
    """The document number is already used by another invoice."""

    code: str = "DUPLICATE_DOCUMENT_NUMBER"

    def __init__(self, document_number: str, attempts: int = 1):
        self.document_number = document_number
        self.attempts = attempts
        super().__init__(
            f"Document number {document_number} already exists "
            f"(after {attempts} attempt(s))"
        )


# Concurrency


class ConcurrencyError(InvoicingError):
    """Base exception for concurrency errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        expected_version: int | None = None,
        actual_version: int | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )
