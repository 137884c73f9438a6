"""
Invoice lifecycle.

State machine for invoices and the side effects of paying one.

    pending --pay--> paid
    pending --cancel--> cancelled
    pending --update--> pending

``paid`` and ``cancelled`` are terminal.  Every other (state, action)
pair is rejected with a fixed message and the state is left as it was.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from invoicing_kernel.domain.values import InvoiceState, PaymentInfo, PaymentMethod
from invoicing_kernel.exceptions import InvalidStateTransitionError
from invoicing_kernel.logging_config import get_logger

logger = get_logger("domain.lifecycle")

PAY = "pay"
CANCEL = "cancel"
UPDATE = "update"


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""
    from_state: InvoiceState
    to_state: InvoiceState
    action: str


@dataclass(frozen=True)
class Rejection:
    """A (state, action) pair that is refused, with the message to raise."""
    from_state: InvoiceState
    action: str
    reason: str


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""
    name: str
    description: str
    initial_state: InvoiceState
    states: tuple[InvoiceState, ...]
    transitions: tuple[Transition, ...]
    rejections: tuple[Rejection, ...] = ()

    def find(self, from_state: InvoiceState, action: str) -> Transition | None:
        for transition in self.transitions:
            if transition.from_state is from_state and transition.action == action:
                return transition
        return None

    def rejection_reason(self, from_state: InvoiceState, action: str) -> str:
        for rejection in self.rejections:
            if rejection.from_state is from_state and rejection.action == action:
                return rejection.reason
        return f"cannot {action} an invoice in state {from_state.value}"


INVOICE_WORKFLOW = Workflow(
    name="invoice",
    description="Issued invoice lifecycle",
    initial_state=InvoiceState.PENDING,
    states=(InvoiceState.PENDING, InvoiceState.PAID, InvoiceState.CANCELLED),
    transitions=(
        Transition(InvoiceState.PENDING, InvoiceState.PAID, action=PAY),
        Transition(InvoiceState.PENDING, InvoiceState.CANCELLED, action=CANCEL),
        Transition(InvoiceState.PENDING, InvoiceState.PENDING, action=UPDATE),
    ),
    rejections=(
        Rejection(InvoiceState.PAID, PAY, "invoice is already paid"),
        Rejection(InvoiceState.CANCELLED, PAY, "cannot pay a cancelled invoice"),
        Rejection(InvoiceState.CANCELLED, CANCEL, "invoice is already cancelled"),
        Rejection(InvoiceState.PAID, CANCEL, "cannot cancel a paid invoice"),
        Rejection(InvoiceState.PAID, UPDATE, "cannot modify a paid invoice"),
        Rejection(InvoiceState.CANCELLED, UPDATE, "cannot modify a cancelled invoice"),
    ),
)


@dataclass(frozen=True)
class PaymentOutcome:
    """Field values an invoice takes on when it is paid."""
    state: InvoiceState
    payment_method: PaymentMethod
    notes: str


def payment_annotation(payment_date: date, note: str | None = None) -> str:
    header = f"--- Payment recorded on {payment_date.isoformat()} ---"
    if note:
        return f"{header}\n{note}"
    return header


def append_note(existing: str | None, addition: str | None) -> str | None:
    """Notes only grow: ``addition`` goes after a blank line."""
    if not addition:
        return existing
    if not existing:
        return addition
    return f"{existing}\n\n{addition}"


class InvoiceLifecycle:
    """
    Applies ``INVOICE_WORKFLOW`` to invoice states.

    Stateless; one instance can be shared.
    """

    def __init__(self, workflow: Workflow = INVOICE_WORKFLOW):
        self._workflow = workflow

    @property
    def workflow(self) -> Workflow:
        return self._workflow

    def can(self, state: InvoiceState, action: str) -> bool:
        return self._workflow.find(state, action) is not None

    def transition(
        self,
        state: InvoiceState,
        action: str,
        invoice_id: str | None = None,
    ) -> InvoiceState:
        """
        Target state of ``action`` from ``state``.

        Raises:
            InvalidStateTransitionError: The pair is not a valid transition.
        """
        found = self._workflow.find(state, action)
        if found is None:
            reason = self._workflow.rejection_reason(state, action)
            logger.warning(
                "invoice_transition_rejected",
                extra={
                    "invoice_id": invoice_id,
                    "from_state": state.value,
                    "action": action,
                    "reason": reason,
                },
            )
            raise InvalidStateTransitionError(
                current_state=state.value,
                action=action,
                reason=reason,
                invoice_id=invoice_id,
            )
        return found.to_state

    def require_editable(self, state: InvoiceState, invoice_id: str | None = None) -> None:
        """Only pending invoices accept full-field updates."""
        self.transition(state, UPDATE, invoice_id=invoice_id)

    def apply_payment(
        self,
        state: InvoiceState,
        current_method: PaymentMethod,
        current_notes: str | None,
        payment: PaymentInfo,
        payment_date: date,
        invoice_id: str | None = None,
    ) -> PaymentOutcome:
        """
        Pay an invoice.

        The payment method changes only when the payment names a different
        one.  A dated annotation, followed by the payment note if any, is
        appended to the existing notes.
        """
        new_state = self.transition(state, PAY, invoice_id=invoice_id)

        method = current_method
        if payment.payment_method is not None and payment.payment_method is not current_method:
            method = payment.payment_method

        notes = append_note(current_notes, payment_annotation(payment_date, payment.notes))
        return PaymentOutcome(state=new_state, payment_method=method, notes=notes)
