"""
Module: insolvency_kernel.models.creditor
Responsibility: ORM persistence for creditors, the counterparties that lodge
    claims against cases and receive distribution lines.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Restrict-on-delete: a creditor referenced by any claim or distribution
      line cannot be deleted (FK ON DELETE RESTRICT plus a before_flush
      check raising CreditorReferencedError).  Such creditors are
      deactivated instead.
"""

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from insolvency_kernel.db.base import TrackedBase


class Creditor(TrackedBase):
    """
    A creditor; many-to-many with cases through Claim.

    Guarantees:
        - is_active False blocks new claims but never touches history.
    """

    __tablename__ = "creditors"

    __table_args__ = (
        Index("idx_creditor_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    contact_email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    contact_phone: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    def __repr__(self) -> str:
        return f"<Creditor {self.name}>"
