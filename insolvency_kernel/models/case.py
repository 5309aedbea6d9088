"""
Module: insolvency_kernel.models.case
Responsibility: ORM persistence for insolvency/administration cases, the
    ownership root of claims, transactions, distributions and the case's
    activity log.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - reference is globally unique (uq_case_reference).
    - status is one of open, on_hold, closed (ck_case_status).  Closed is
      terminal; a closed case is immutable to every ledger operation.
    - ledger_version is the case-level optimistic lock.  Every mutating
      ledger operation compare-and-increments it under a row lock, so two
      writers on one case can never both commit against the same snapshot.
    - transaction_seq and activity_seq are the last ordering numbers handed
      out to the case's transactions and activity entries.  They only move
      while the case row is locked, so cases never wait on each other.

Failure modes:
    - IntegrityError on duplicate reference.
    - ImmutabilityViolationError when a closed case's status, reference or
      closed_at is modified (ORM listener).

Audit relevance:
    Case status drives ledger admissibility.  Deleting a case removes its
    dependents through ON DELETE CASCADE foreign keys declared on the
    dependent tables.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from insolvency_kernel.db.base import TrackedBase


class CaseStatus(str, Enum):
    """Case lifecycle status.

    Transitions: OPEN <-> ON_HOLD, OPEN/ON_HOLD -> CLOSED (terminal).
    """

    OPEN = "open"
    ON_HOLD = "on_hold"
    CLOSED = "closed"


VALID_CASE_TRANSITIONS: dict[CaseStatus, frozenset[CaseStatus]] = {
    CaseStatus.OPEN: frozenset({CaseStatus.ON_HOLD, CaseStatus.CLOSED}),
    CaseStatus.ON_HOLD: frozenset({CaseStatus.OPEN, CaseStatus.CLOSED}),
    CaseStatus.CLOSED: frozenset(),
}


class Case(TrackedBase):
    """
    An insolvency or administration case.

    Guarantees:
        - reference is unique and immutable once the case is closed.
        - closed_at is set iff status is CLOSED.
        - currency is the single currency in which the case's funds are kept.

    Non-goals:
        - Client and manager assignment live with the case-management
          collaborators, not in the ledger core.
    """

    __tablename__ = "cases"

    __table_args__ = (
        UniqueConstraint("reference", name="uq_case_reference"),
        CheckConstraint(
            "status IN ('open', 'on_hold', 'closed')",
            name="ck_case_status",
        ),
        Index("idx_cases_status_stage", "status", "stage"),
    )

    reference: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    status: Mapped[CaseStatus] = mapped_column(
        String(20),
        nullable=False,
        default=CaseStatus.OPEN,
    )

    # Free-form workflow label (e.g., "investigation", "realisation")
    stage: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="AUD",
    )

    opened_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Case-level optimistic lock, bumped by every mutating ledger operation
    ledger_version: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    # Per-case ordering counters, advanced only under the case lock
    transaction_seq: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    activity_seq: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    @property
    def is_closed(self) -> bool:
        return CaseStatus(self.status) == CaseStatus.CLOSED

    def __repr__(self) -> str:
        return f"<Case {self.reference} ({self.status})>"
