"""
Module: insolvency_kernel.models.activity_log
Responsibility: ORM persistence for the append-only, hash-chained activity log.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: entries are never updated or deleted through the
      application (ORM listener).  The only removal path is the database
      cascade when the owning case itself is deleted.
    - seq increases monotonically within a case scope, allocated by
      SequenceService from the case row (or the global case-less counter).
    - hash = H(entity_type | entity_id | action | payload_hash | prev_hash),
      chained per case scope (case-less entries form their own chain).

Audit relevance:
    This IS the audit trail.  Every mutation of the fund ledger, the claims
    register and the distribution engine writes one entry carrying a
    snapshot of the post-mutation state.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from insolvency_kernel.db.base import Base, UUIDString


class ActivityLogEntry(Base):
    """
    One immutable audit record.

    Guarantees:
        - prev_hash is None only for the first entry of a case scope.
        - snapshot is the JSON form of the entity after the mutation.
    """

    __tablename__ = "activity_log"

    __table_args__ = (
        Index("idx_activity_case_time", "case_id", "created_at"),
        Index("idx_activity_entity", "entity_type", "entity_id"),
        Index("idx_activity_action", "action"),
        # Case-less entries (case_id NULL) take their seq from a global counter
        UniqueConstraint("case_id", "seq", name="uq_activity_case_seq"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Nullable for case-less events (creditor registration, case deletion)
    case_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("cases.id", ondelete="CASCADE"),
        nullable=True,
    )

    actor_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    # Dotted action name, e.g. "transaction.recorded"
    action: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    entity_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    entity_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    snapshot: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    payload_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    prev_hash: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ActivityLogEntry {self.seq} {self.action} on {self.entity_type}:{self.entity_id}>"

    @property
    def is_genesis(self) -> bool:
        """True for the first entry of its case scope."""
        return self.prev_hash is None
