"""
Module: insolvency_kernel.models.transaction
Responsibility: ORM persistence for the Fund Ledger -- the append-only record
    of money moving in and out of a case.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: transactions are never updated or deleted through the
      application (ORM listener).  Corrections are new offsetting
      transactions.
    - amount >= 0 (ck_transaction_amount); direction comes from kind.
    - seq is allocated per case by SequenceService and breaks occurred_at
      ties in insertion order.
    - There is NO stored balance anywhere.  Available funds are recomputed
      from these rows on every read.

Audit relevance:
    Every recorded transaction mirrors into the activity log as
    "transaction.recorded".
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from insolvency_kernel.db.base import Base, UUIDString


class TransactionKind(str, Enum):
    """Direction-bearing kind of a fund movement."""

    RECEIPT = "receipt"
    PAYMENT = "payment"
    FEE = "fee"
    INTEREST = "interest"


# Kinds that increase available funds; the others decrease them.
INFLOW_KINDS = frozenset({TransactionKind.RECEIPT, TransactionKind.INTEREST})
OUTFLOW_KINDS = frozenset({TransactionKind.PAYMENT, TransactionKind.FEE})


class FundTransaction(Base):
    """
    One immutable money movement on a case.

    Guarantees:
        - occurred_at is caller-supplied and may be backdated.
        - (occurred_at, seq) is a total order over a case's transactions.
    """

    __tablename__ = "transactions"

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_transaction_amount"),
        CheckConstraint(
            "kind IN ('receipt', 'payment', 'fee', 'interest')",
            name="ck_transaction_kind",
        ),
        Index("idx_tx_case_time", "case_id", "occurred_at"),
        Index("idx_tx_case_kind_time", "case_id", "kind", "occurred_at"),
        UniqueConstraint("case_id", "seq", name="uq_tx_case_seq"),
    )

    case_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("cases.id", ondelete="CASCADE"),
        nullable=False,
    )

    kind: Mapped[TransactionKind] = mapped_column(
        String(20),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="AUD",
    )

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    ref: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(
        String(4000),
        nullable=True,
    )

    # Insertion order tie-break for equal occurred_at, per case
    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    recorded_by_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    @property
    def is_inflow(self) -> bool:
        return TransactionKind(self.kind) in INFLOW_KINDS

    def __repr__(self) -> str:
        return f"<FundTransaction {self.kind} {self.amount} {self.currency}>"
