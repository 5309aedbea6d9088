"""
Module: insolvency_kernel.selectors.claims_selector
Responsibility: Read-only Claims Register queries: claim lookup and listing,
    the admitted set used for apportionment, the admitted total and the
    claims verification projection.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - admitted_claims() is ordered by ascending creditor id, the
      apportionment tie-break order.
    - admitted_pct is 0 when nothing is under consideration, otherwise
      round(100 * admitted / considered, 2) with half-up rounding.
"""

from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import case, func, select

from insolvency_kernel.domain.dtos import ClaimInfo, ClaimsVerification
from insolvency_kernel.exceptions import ClaimNotFoundError
from insolvency_kernel.models.claim import Claim, ClaimStatus
from insolvency_kernel.selectors.base import BaseSelector
from insolvency_kernel.selectors.dto_mapping import claim_to_dto

# Claims still in play for the verification projection (rejected excluded)
CONSIDERED_STATUSES = (
    ClaimStatus.LODGED.value,
    ClaimStatus.UNDER_REVIEW.value,
    ClaimStatus.ADMITTED.value,
)


class ClaimsSelector(BaseSelector):
    """Derived views over a case's claims."""

    def get_claim(self, claim_id: UUID) -> ClaimInfo:
        claim = self.session.get(Claim, claim_id)
        if claim is None:
            raise ClaimNotFoundError(str(claim_id))
        return claim_to_dto(claim)

    def find_claim(self, case_id: UUID, creditor_id: UUID) -> ClaimInfo | None:
        """The claim for a (case, creditor) pair, if one was lodged."""
        claim = self.session.execute(
            select(Claim).where(
                Claim.case_id == case_id,
                Claim.creditor_id == creditor_id,
            )
        ).scalar_one_or_none()
        return claim_to_dto(claim) if claim else None

    def list_claims(
        self,
        case_id: UUID,
        status: ClaimStatus | str | None = None,
    ) -> list[ClaimInfo]:
        """Claims of a case in lodgement order, optionally filtered by status."""
        stmt = select(Claim).where(Claim.case_id == case_id)
        if status is not None:
            stmt = stmt.where(Claim.status == ClaimStatus(status).value)
        stmt = stmt.order_by(Claim.lodged_at, Claim.creditor_id)
        return [claim_to_dto(c) for c in self.session.execute(stmt).scalars()]

    def admitted_claims(self, case_id: UUID) -> list[ClaimInfo]:
        """Admitted claims of a case in ascending creditor id order."""
        stmt = (
            select(Claim)
            .where(
                Claim.case_id == case_id,
                Claim.status == ClaimStatus.ADMITTED.value,
            )
            .order_by(Claim.creditor_id)
        )
        return [claim_to_dto(c) for c in self.session.execute(stmt).scalars()]

    def admitted_total(self, case_id: UUID) -> Decimal:
        """Sum of amount_admitted over the case's admitted claims."""
        return self._sum_money(
            Claim.amount_admitted,
            Claim.case_id == case_id,
            Claim.status == ClaimStatus.ADMITTED.value,
        )

    def claims_verification(self, case_id: UUID) -> ClaimsVerification:
        considered, admitted = self.session.execute(
            select(
                func.coalesce(
                    func.sum(case((Claim.status.in_(CONSIDERED_STATUSES), 1), else_=0)),
                    0,
                ),
                func.coalesce(
                    func.sum(
                        case((Claim.status == ClaimStatus.ADMITTED.value, 1), else_=0)
                    ),
                    0,
                ),
            ).where(Claim.case_id == case_id)
        ).one()

        considered = int(considered)
        admitted = int(admitted)
        if considered == 0:
            pct = Decimal("0.00")
        else:
            pct = (Decimal(100 * admitted) / Decimal(considered)).quantize(
                Decimal("0.01"), rounding=ROUND_HALF_UP
            )

        return ClaimsVerification(
            case_id=case_id,
            total_considered=considered,
            admitted_count=admitted,
            admitted_pct=pct,
        )
