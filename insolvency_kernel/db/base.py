"""
Module: insolvency_kernel.db.base
Responsibility: Declarative roots for the case ledger's ORM models and the
    column conventions they share.
Architecture position: Kernel > DB.  Imported by every model; imports
    nothing from the rest of the kernel.

Invariants enforced:
    - Every row is keyed by a uuid4, stored as its 36-character text form so
      SQLite and PostgreSQL compare and sort it identically.  Creditor ids
      are the tie-break key of the apportionment, so that ordering matters.
    - Annotated Decimal columns are Numeric(14, 2): money, never float.
    - Annotated datetime columns are timezone-aware.
    - Reference entities (cases, creditors) carry who created them and
      when they last changed.  Ledger records carry their own timestamps.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID column stored as String(36).  Accepts UUIDs or their text form."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(value if isinstance(value, UUID) else UUID(str(value)))

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(14, 2),
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """Mutable reference entity: creation and last-change stamps plus actors."""

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )
    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    updated_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
