"""
Module: insolvency_kernel.selectors.base
Responsibility: Common root of the query side.  Every figure a selector
    reports (available funds, admitted totals, distributed totals) is
    aggregated from the immutable records when asked; no balance is stored.
Architecture position: Kernel > Selectors.  May import from db/, models/
    and domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Selectors never add, delete, flush or commit.
    - Results are DTOs or plain values, never ORM instances.
    - The caller owns the session, so figures read within one scope share
      one snapshot (and, under the case lock, one version of the case).
"""

from abc import ABC
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from insolvency_kernel.selectors.dto_mapping import money


class BaseSelector(ABC):
    def __init__(self, session: Session):
        self.session = session

    def _sum_money(self, column, *criteria, join=None) -> Decimal:
        """SUM(column) over rows matching ``criteria``, as money; 0.00 when none match."""
        stmt = select(func.coalesce(func.sum(column), 0))
        if join is not None:
            stmt = stmt.join(*join)
        return money(self.session.execute(stmt.where(*criteria)).scalar_one())
