"""
Module: insolvency_kernel.selectors.distribution_selector
Responsibility: Read-only distribution queries: rounds with their lines,
    the last round number, committed and distributed totals, and the
    distribution progress projection.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - distributed_total is the sum of DistributionLine amounts, recomputed
      on every call.  committed_total is the sum of Distribution totals.
      The two are equal because every round's lines sum to its total.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from insolvency_kernel.domain.dtos import DistributionInfo, DistributionProgress
from insolvency_kernel.exceptions import DistributionNotFoundError
from insolvency_kernel.models.distribution import Distribution, DistributionLine
from insolvency_kernel.selectors.base import BaseSelector
from insolvency_kernel.selectors.dto_mapping import distribution_to_dto


class DistributionSelector(BaseSelector):
    """Derived views over a case's distribution rounds."""

    def get_distribution(self, distribution_id: UUID) -> DistributionInfo:
        distribution = self.session.get(Distribution, distribution_id)
        if distribution is None:
            raise DistributionNotFoundError(str(distribution_id))
        return distribution_to_dto(distribution)

    def get_round(self, case_id: UUID, round_no: int) -> DistributionInfo | None:
        distribution = self.session.execute(
            select(Distribution).where(
                Distribution.case_id == case_id,
                Distribution.round_no == round_no,
            )
        ).scalar_one_or_none()
        return distribution_to_dto(distribution) if distribution else None

    def list_distributions(self, case_id: UUID) -> list[DistributionInfo]:
        """All rounds of a case in ascending round order, lines included."""
        stmt = (
            select(Distribution)
            .where(Distribution.case_id == case_id)
            .order_by(Distribution.round_no)
        )
        return [distribution_to_dto(d) for d in self.session.execute(stmt).scalars()]

    def last_round_no(self, case_id: UUID) -> int | None:
        return self.session.execute(
            select(func.max(Distribution.round_no)).where(
                Distribution.case_id == case_id
            )
        ).scalar_one()

    def committed_total(self, case_id: UUID) -> Decimal:
        """Sum of total_amount over every declared round of the case."""
        return self._sum_money(Distribution.total_amount, Distribution.case_id == case_id)

    def distributed_total(self, case_id: UUID) -> Decimal:
        """Sum of every DistributionLine amount across the case's rounds."""
        return self._sum_money(
            DistributionLine.amount,
            Distribution.case_id == case_id,
            join=(Distribution, DistributionLine.distribution_id == Distribution.id),
        )

    def distribution_progress(self, case_id: UUID) -> DistributionProgress:
        round_count = self.session.execute(
            select(func.count(Distribution.id)).where(Distribution.case_id == case_id)
        ).scalar_one()
        return DistributionProgress(
            case_id=case_id,
            distributed_total=self.distributed_total(case_id),
            round_count=int(round_count),
            last_round_no=self.last_round_no(case_id),
        )
