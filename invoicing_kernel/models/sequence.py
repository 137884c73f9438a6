"""
Module: invoicing_kernel.models.sequence
Responsibility: Counter rows backing per-year document number series.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per series name (``PREFIX-YYYY``), enforced by a unique
      constraint so two first-use inserts cannot both succeed.
    - current_value is the last sequence handed out for the series.  It is
      only read and written under ``SELECT ... FOR UPDATE``.
"""

from sqlalchemy import BigInteger, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from invoicing_kernel.db.base import Base


class DocumentSequence(Base):
    """Sequence counter for one document number series."""

    __tablename__ = "document_sequences"

    __table_args__ = (
        UniqueConstraint("name", name="uq_document_sequence_name"),
    )

    # Series name, e.g. "FACT-2025"
    name: Mapped[str] = mapped_column(String(50), nullable=False)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<DocumentSequence {self.name}={self.current_value}>"
