"""
DocumentNumber -- format, parse and successor of ``PREFIX-YYYY-NNNN``.

Pure value logic.  Reservation against storage lives in
``invoicing_kernel.services.sequence_service``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from invoicing_kernel.exceptions import InvalidDocumentNumberError

DEFAULT_PREFIX = "FACT"
DEFAULT_WIDTH = 4

_NUMBER_RE = re.compile(r"(?P<prefix>[A-Za-z][A-Za-z0-9]*)-(?P<year>[0-9]{4})-(?P<sequence>[0-9]+)")


@dataclass(frozen=True)
class DocumentNumber:
    prefix: str
    year: int
    sequence: int

    def format(self, width: int = DEFAULT_WIDTH) -> str:
        # Zero-padded to width; wider sequences are written in full
        return f"{self.prefix}-{self.year:04d}-{self.sequence:0{width}d}"

    def __str__(self) -> str:
        return self.format()

    def next(self) -> DocumentNumber:
        return DocumentNumber(self.prefix, self.year, self.sequence + 1)

    @classmethod
    def parse(cls, text: str) -> DocumentNumber:
        """
        Parse ``PREFIX-YYYY-NNNN``.

        Raises:
            InvalidDocumentNumberError: ``text`` does not match, or the
                sequence is zero.
        """
        match = _NUMBER_RE.fullmatch(text or "")
        if match is None:
            raise InvalidDocumentNumberError(text)
        sequence = int(match.group("sequence"))
        if sequence < 1:
            raise InvalidDocumentNumberError(text)
        return cls(match.group("prefix"), int(match.group("year")), sequence)


def series_prefix(prefix: str, year: int) -> str:
    """The ``PREFIX-YYYY-`` text shared by every number of one year."""
    return f"{prefix}-{year:04d}-"


def next_after(greatest: str | None, prefix: str, year: int) -> DocumentNumber:
    """
    Successor of the greatest existing number of a series.

    No existing number yields sequence 1.  A number from another prefix or
    year is rejected rather than continued.
    """
    if greatest is None:
        return DocumentNumber(prefix, year, 1)
    current = DocumentNumber.parse(greatest)
    if current.prefix != prefix or current.year != year:
        raise InvalidDocumentNumberError(greatest)
    return current.next()


def numeric_sort_key(text: str) -> tuple[int, str]:
    """Order numbers of one series numerically: by length, then text."""
    return len(text), text
