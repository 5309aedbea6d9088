"""
Module: insolvency_kernel.models.claim
Responsibility: ORM persistence for creditor claims against a case and their
    adjudication outcome.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One claim per (case, creditor) pair (uq_claim_case_creditor).
    - amount_claimed >= 0 and immutable once lodged.
    - amount_admitted >= 0 and <= amount_claimed when present.
    - amount_admitted is non-null iff status = admitted (ck_claim_admitted_amount).
    - admitted and rejected are terminal (ORM listener).

Failure modes:
    - IntegrityError on duplicate (case, creditor) or violated CHECK.
    - ImmutabilityViolationError on changing amount_claimed or a terminal claim.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from insolvency_kernel.db.base import Base, UUIDString


class ClaimStatus(str, Enum):
    """Claim adjudication status.

    Graph: LODGED -> UNDER_REVIEW -> {ADMITTED, REJECTED}, and LODGED may be
    adjudicated directly.  ADMITTED and REJECTED are terminal.
    """

    LODGED = "lodged"
    UNDER_REVIEW = "under_review"
    ADMITTED = "admitted"
    REJECTED = "rejected"


TERMINAL_CLAIM_STATUSES = frozenset({ClaimStatus.ADMITTED, ClaimStatus.REJECTED})

VALID_CLAIM_TRANSITIONS: dict[ClaimStatus, frozenset[ClaimStatus]] = {
    ClaimStatus.LODGED: frozenset({
        ClaimStatus.UNDER_REVIEW, ClaimStatus.ADMITTED, ClaimStatus.REJECTED,
    }),
    ClaimStatus.UNDER_REVIEW: frozenset({
        ClaimStatus.ADMITTED, ClaimStatus.REJECTED,
    }),
    # Terminal states: no reopening; an appeal is a new claim
    ClaimStatus.ADMITTED: frozenset(),
    ClaimStatus.REJECTED: frozenset(),
}


class Claim(Base):
    """
    A creditor's claim against one case.

    Guarantees:
        - Exactly one claim per (case_id, creditor_id).
        - status == ADMITTED <=> amount_admitted is not None.

    Non-goals:
        - Re-adjudication of a terminal claim; an appeal is a new claim.
    """

    __tablename__ = "claims"

    __table_args__ = (
        UniqueConstraint("case_id", "creditor_id", name="uq_claim_case_creditor"),
        CheckConstraint("amount_claimed >= 0", name="ck_claim_amount_claimed"),
        CheckConstraint(
            "amount_admitted IS NULL OR "
            "(amount_admitted >= 0 AND amount_admitted <= amount_claimed)",
            name="ck_claim_amount_admitted_range",
        ),
        CheckConstraint(
            "(status = 'admitted' AND amount_admitted IS NOT NULL) OR "
            "(status <> 'admitted' AND amount_admitted IS NULL)",
            name="ck_claim_admitted_amount",
        ),
        CheckConstraint(
            "status IN ('lodged', 'under_review', 'admitted', 'rejected')",
            name="ck_claim_status",
        ),
        Index("idx_claims_case", "case_id"),
        Index("idx_claims_creditor", "creditor_id"),
    )

    case_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("cases.id", ondelete="CASCADE"),
        nullable=False,
    )

    creditor_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("creditors.id", ondelete="RESTRICT"),
        nullable=False,
    )

    amount_claimed: Mapped[Decimal] = mapped_column(nullable=False)

    amount_admitted: Mapped[Decimal | None] = mapped_column(nullable=True)

    status: Mapped[ClaimStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ClaimStatus.LODGED,
    )

    lodged_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    adjudicated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @property
    def is_terminal(self) -> bool:
        return ClaimStatus(self.status) in TERMINAL_CLAIM_STATUSES

    def __repr__(self) -> str:
        return f"<Claim {self.id} {self.status} {self.amount_claimed}>"
