"""
Module: insolvency_kernel.models.distribution
Responsibility: ORM persistence for distribution rounds and their per-creditor
    payout lines.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - round_no unique per case (uq_distribution_case_round); the service
      additionally requires it to be strictly greater than every prior round.
    - total_amount >= 0 and fixed once declared.
    - One line per creditor per distribution (uq_line_distribution_creditor).
    - sum(lines.amount) == total_amount exactly (enforced by the apportionment
      and asserted before commit).
    - Distributions and lines are immutable after creation (ORM listener).

Failure modes:
    - IntegrityError on round reuse or duplicate creditor line.
    - ImmutabilityViolationError on any UPDATE/DELETE through the ORM.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from insolvency_kernel.db.base import Base, UUIDString


class Distribution(Base):
    """
    A declared payout round for one case.

    Guarantees:
        - lines are loaded in ascending creditor id order.
        - window_start/window_end are informational only.
    """

    __tablename__ = "distributions"

    __table_args__ = (
        UniqueConstraint("case_id", "round_no", name="uq_distribution_case_round"),
        CheckConstraint("total_amount >= 0", name="ck_distribution_total"),
        CheckConstraint("round_no >= 1", name="ck_distribution_round_no"),
        Index("idx_distributions_case", "case_id"),
    )

    case_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("cases.id", ondelete="CASCADE"),
        nullable=False,
    )

    round_no: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    declared_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    declared_by_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    window_start: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )

    window_end: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )

    lines: Mapped[list["DistributionLine"]] = relationship(
        back_populates="distribution",
        order_by="DistributionLine.creditor_id",
        lazy="selectin",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Distribution round {self.round_no} total {self.total_amount}>"


class DistributionLine(Base):
    """One creditor's share of a distribution round (never zero)."""

    __tablename__ = "distribution_lines"

    __table_args__ = (
        UniqueConstraint(
            "distribution_id", "creditor_id", name="uq_line_distribution_creditor"
        ),
        CheckConstraint("amount >= 0", name="ck_distribution_line_amount"),
        Index("idx_dist_lines_dist", "distribution_id"),
    )

    distribution_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("distributions.id", ondelete="CASCADE"),
        nullable=False,
    )

    creditor_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("creditors.id", ondelete="RESTRICT"),
        nullable=False,
    )

    # The admitted claim this share was apportioned against
    claim_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("claims.id", ondelete="CASCADE"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    distribution: Mapped[Distribution] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return f"<DistributionLine {self.creditor_id} {self.amount}>"
