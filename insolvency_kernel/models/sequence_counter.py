"""
Module: insolvency_kernel.models.sequence_counter
Responsibility: One row per named ordering sequence (fund transactions,
    activity log).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - name is unique; the row is the only source of the next value.
    - current_value only ever grows, one step per allocation.
"""

from sqlalchemy import BigInteger, CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from insolvency_kernel.db.base import Base


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"

    __table_args__ = (
        CheckConstraint("current_value >= 0", name="ck_sequence_counter_value"),
    )

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<SequenceCounter {self.name}={self.current_value}>"
