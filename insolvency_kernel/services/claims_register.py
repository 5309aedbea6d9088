"""
ClaimsRegisterService -- lodgement and adjudication of creditor claims.

Responsibility:
    Lodges one claim per (case, creditor) and moves it through the
    adjudication state machine:

        lodged -> under_review -> {admitted, rejected}
        lodged -> {admitted, rejected}

    admitted and rejected are terminal; there is no reopening path.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - amount_admitted is non-null iff status == admitted, and
      0 <= amount_admitted <= amount_claimed.  Moving into rejected clears
      amount_admitted.
    - amount_claimed is immutable once lodged.
    - Every lodgement and transition takes the case lock and appends an
      activity entry with the full claim snapshot.

Failure modes:
    - ValidationError (bad amount, closed case, inactive creditor),
      DuplicateClaimError, InvalidTransitionError, ClaimNotFoundError,
      ConflictError.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from insolvency_kernel.db.types import parse_money
from insolvency_kernel.domain.clock import Clock
from insolvency_kernel.domain.dtos import ClaimInfo
from insolvency_kernel.exceptions import (
    ClaimNotFoundError,
    CreditorInactiveError,
    CreditorNotFoundError,
    DuplicateClaimError,
    InvalidTransitionError,
    ValidationError,
)
from insolvency_kernel.logging_config import get_logger
from insolvency_kernel.models.claim import (
    TERMINAL_CLAIM_STATUSES,
    VALID_CLAIM_TRANSITIONS,
    Claim,
    ClaimStatus,
)
from insolvency_kernel.models.creditor import Creditor
from insolvency_kernel.selectors.dto_mapping import claim_to_dto
from insolvency_kernel.services.audit_trail import AuditAction, AuditTrail
from insolvency_kernel.services.base import BaseService

logger = get_logger("services.claims_register")


class ClaimsRegisterService(BaseService[Claim]):
    """Write side of the Claims Register; returns ClaimInfo DTOs."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditTrail | None = None,
    ):
        super().__init__(session, clock)
        self._audit = audit or AuditTrail(session, self.clock)

    def lodge_claim(
        self,
        case_id: UUID,
        creditor_id: UUID,
        amount_claimed: Decimal | str | int,
        actor_id: UUID,
    ) -> ClaimInfo:
        """
        Lodge a creditor's claim against a case.

        Raises:
            ValidationError: amount_claimed invalid, case closed, creditor
                unknown or inactive.
            DuplicateClaimError: The creditor already has a claim on the case.
        """
        amount = parse_money(amount_claimed, field="amount_claimed")

        self._lock_case(case_id, "lodge claim")

        creditor = self.session.get(Creditor, creditor_id)
        if creditor is None:
            raise CreditorNotFoundError(str(creditor_id))
        if not creditor.is_active:
            raise CreditorInactiveError(str(creditor_id))

        existing = self.session.execute(
            select(Claim.id).where(
                Claim.case_id == case_id,
                Claim.creditor_id == creditor_id,
            )
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateClaimError(str(case_id), str(creditor_id))

        claim = Claim(
            case_id=case_id,
            creditor_id=creditor_id,
            amount_claimed=amount,
            amount_admitted=None,
            status=ClaimStatus.LODGED.value,
            lodged_at=self.clock.now(),
        )
        self.session.add(claim)
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise DuplicateClaimError(str(case_id), str(creditor_id)) from exc

        info = claim_to_dto(claim)
        self._audit.record(
            case_id=case_id,
            actor_id=actor_id,
            action=AuditAction.CLAIM_LODGED,
            entity_type="Claim",
            entity_id=claim.id,
            snapshot=info.to_snapshot(),
        )
        logger.info(
            "claim_lodged",
            extra={
                "case_id": str(case_id),
                "claim_id": str(claim.id),
                "creditor_id": str(creditor_id),
                "amount_claimed": str(amount),
            },
        )
        return info

    def transition(
        self,
        claim_id: UUID,
        to_status: ClaimStatus | str,
        actor_id: UUID,
        amount_admitted: Decimal | str | int | None = None,
    ) -> ClaimInfo:
        """
        Move a claim along the adjudication graph.

        Preconditions:
            - ``amount_admitted`` is given iff ``to_status`` is admitted.
        Postconditions:
            - status == admitted <=> amount_admitted is not None.

        Raises:
            ClaimNotFoundError: Unknown claim.
            CaseClosedError: The claim's case is closed.
            InvalidTransitionError: Illegal edge, unknown status, or an
                admitted amount that is missing, invalid or out of range.
        """
        claim = self.session.get(Claim, claim_id)
        if claim is None:
            raise ClaimNotFoundError(str(claim_id))

        self._lock_case(claim.case_id, "transition claim")
        # Re-read under the case lock
        self.session.refresh(claim)

        from_status = ClaimStatus(claim.status)
        try:
            target = ClaimStatus(to_status)
        except ValueError as exc:
            raise InvalidTransitionError(
                str(claim_id), from_status.value, str(to_status), "unknown status"
            ) from exc

        if target not in VALID_CLAIM_TRANSITIONS[from_status]:
            reason = (
                f"{from_status.value} is terminal"
                if from_status in TERMINAL_CLAIM_STATUSES
                else "transition not permitted"
            )
            raise InvalidTransitionError(str(claim_id), from_status.value, target.value, reason)

        admitted = self._admitted_amount(claim, from_status, target, amount_admitted)

        claim.status = target.value
        claim.amount_admitted = admitted
        if target in TERMINAL_CLAIM_STATUSES:
            claim.adjudicated_at = self.clock.now()
        self.session.flush()

        info = claim_to_dto(claim)
        snapshot = info.to_snapshot()
        snapshot["previous_status"] = from_status.value
        self._audit.record(
            case_id=claim.case_id,
            actor_id=actor_id,
            action=AuditAction.CLAIM_TRANSITIONED,
            entity_type="Claim",
            entity_id=claim.id,
            snapshot=snapshot,
        )
        logger.info(
            "claim_transitioned",
            extra={
                "case_id": str(claim.case_id),
                "claim_id": str(claim_id),
                "from_status": from_status.value,
                "to_status": target.value,
                "amount_admitted": str(admitted) if admitted is not None else None,
            },
        )
        return info

    def _admitted_amount(
        self,
        claim: Claim,
        from_status: ClaimStatus,
        target: ClaimStatus,
        amount_admitted,
    ) -> Decimal | None:
        if target != ClaimStatus.ADMITTED:
            if amount_admitted is not None:
                raise InvalidTransitionError(
                    str(claim.id),
                    from_status.value,
                    target.value,
                    "amount_admitted is only set on admission",
                )
            return None

        if amount_admitted is None:
            raise InvalidTransitionError(
                str(claim.id), from_status.value, target.value, "amount_admitted is required"
            )
        try:
            admitted = parse_money(amount_admitted, field="amount_admitted")
        except ValidationError as exc:
            raise InvalidTransitionError(
                str(claim.id), from_status.value, target.value, str(exc)
            ) from exc
        if admitted > claim.amount_claimed:
            raise InvalidTransitionError(
                str(claim.id),
                from_status.value,
                target.value,
                f"amount_admitted {admitted} exceeds amount_claimed {claim.amount_claimed}",
            )
        return admitted
