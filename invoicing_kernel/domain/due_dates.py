"""Due-date derivation: days remaining and the label shown to readers."""

from __future__ import annotations

from datetime import date

from invoicing_kernel.domain.values import DueLabel, DueStatus

DEFAULT_DUE_SOON_DAYS = 7


def days_to_due(due_date: date, today: date) -> int:
    """Signed day count; negative once the due date has passed."""
    return (due_date - today).days


def due_label(days: int, due_soon_days: int = DEFAULT_DUE_SOON_DAYS) -> DueLabel:
    if days < 0:
        return DueLabel.OVERDUE
    if days <= due_soon_days:
        return DueLabel.DUE_SOON
    return DueLabel.ON_TRACK


def derive_due_status(
    due_date: date,
    today: date,
    due_soon_days: int = DEFAULT_DUE_SOON_DAYS,
) -> DueStatus:
    days = days_to_due(due_date, today)
    return DueStatus(days_to_due=days, due_label=due_label(days, due_soon_days))
