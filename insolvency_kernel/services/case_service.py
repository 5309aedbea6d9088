"""
CaseService -- case lifecycle for the ledger's collaborator surface.

Responsibility:
    Opens cases, moves them between open and on_hold, changes their
    workflow stage, closes them, and deletes them.  Closing a case freezes
    it for every ledger operation.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Case references are unique.
    - Status graph: OPEN <-> ON_HOLD, OPEN/ON_HOLD -> CLOSED (terminal).
    - Status changes take the case lock, so a close can never interleave
      with a distribution declaration on the same case.
    - Deleting a case removes its claims, transactions, distributions and
      case-scoped activity through ON DELETE CASCADE.  The deletion itself
      is recorded as a case-less activity entry so it outlives the case.

Failure modes:
    - DuplicateCaseReferenceError, CaseNotFoundError,
      InvalidCaseTransitionError, CaseClosedError, ConflictError.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from insolvency_kernel.db.types import validate_currency
from insolvency_kernel.domain.clock import Clock
from insolvency_kernel.domain.dtos import CaseInfo
from insolvency_kernel.exceptions import (
    CaseNotFoundError,
    DuplicateCaseReferenceError,
    InvalidCaseTransitionError,
    ValidationError,
)
from insolvency_kernel.logging_config import get_logger
from insolvency_kernel.models.case import VALID_CASE_TRANSITIONS, Case, CaseStatus
from insolvency_kernel.models.claim import Claim
from insolvency_kernel.models.distribution import Distribution
from insolvency_kernel.models.transaction import FundTransaction
from insolvency_kernel.selectors.dto_mapping import case_to_dto
from insolvency_kernel.services.audit_trail import AuditAction, AuditTrail
from insolvency_kernel.services.base import BaseService

logger = get_logger("services.case")


class CaseService(BaseService[Case]):
    """
    Service for managing cases.

    All public methods return CaseInfo DTOs, not ORM Case entities.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditTrail | None = None,
    ):
        super().__init__(session, clock)
        self._audit = audit or AuditTrail(session, self.clock)

    def _get_by_id(self, case_id: UUID) -> Case:
        case = self.session.get(Case, case_id)
        if case is None:
            raise CaseNotFoundError(str(case_id))
        return case

    def get_case(self, case_id: UUID) -> CaseInfo:
        return case_to_dto(self._get_by_id(case_id))

    def get_case_by_reference(self, reference: str) -> CaseInfo:
        case = self.session.execute(
            select(Case).where(Case.reference == reference)
        ).scalar_one_or_none()
        if case is None:
            raise CaseNotFoundError(reference)
        return case_to_dto(case)

    def open_case(
        self,
        reference: str,
        actor_id: UUID,
        stage: str = "intake",
        currency: str = "AUD",
    ) -> CaseInfo:
        """
        Open a new case.

        Raises:
            ValidationError: On an empty reference or stage, or a bad currency.
            DuplicateCaseReferenceError: If the reference is taken.
        """
        reference = (reference or "").strip()
        if not reference:
            raise ValidationError("Case reference is required", field="reference")
        if not stage or not stage.strip():
            raise ValidationError("Case stage is required", field="stage")
        currency = validate_currency(currency)

        existing = self.session.execute(
            select(Case.id).where(Case.reference == reference)
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateCaseReferenceError(reference)

        case = Case(
            reference=reference,
            status=CaseStatus.OPEN.value,
            stage=stage.strip(),
            currency=currency,
            opened_at=self.clock.now(),
            ledger_version=0,
            created_by_id=actor_id,
        )
        self.session.add(case)
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise DuplicateCaseReferenceError(reference) from exc

        info = case_to_dto(case)
        self._audit.record(
            case_id=case.id,
            actor_id=actor_id,
            action=AuditAction.CASE_OPENED,
            entity_type="Case",
            entity_id=case.id,
            snapshot=info.to_snapshot(),
        )
        logger.info(
            "case_opened",
            extra={"case_id": str(case.id), "reference": reference, "currency": currency},
        )
        return info

    def _change_status(
        self,
        case_id: UUID,
        to_status: CaseStatus,
        actor_id: UUID,
        operation: str,
    ) -> CaseInfo:
        case = self._lock_case(case_id, operation)
        from_status = CaseStatus(case.status)

        if to_status not in VALID_CASE_TRANSITIONS[from_status]:
            raise InvalidCaseTransitionError(str(case_id), from_status.value, to_status.value)

        case.status = to_status.value
        case.updated_by_id = actor_id
        if to_status == CaseStatus.CLOSED:
            case.closed_at = self.clock.now()
        self.session.flush()

        info = case_to_dto(case)
        snapshot = info.to_snapshot()
        snapshot["previous_status"] = from_status.value
        self._audit.record(
            case_id=case.id,
            actor_id=actor_id,
            action=(
                AuditAction.CASE_CLOSED
                if to_status == CaseStatus.CLOSED
                else AuditAction.CASE_STATUS_CHANGED
            ),
            entity_type="Case",
            entity_id=case.id,
            snapshot=snapshot,
        )
        logger.info(
            "case_status_changed",
            extra={
                "case_id": str(case_id),
                "from_status": from_status.value,
                "to_status": to_status.value,
            },
        )
        return info

    def put_on_hold(self, case_id: UUID, actor_id: UUID) -> CaseInfo:
        return self._change_status(case_id, CaseStatus.ON_HOLD, actor_id, "put case on hold")

    def resume(self, case_id: UUID, actor_id: UUID) -> CaseInfo:
        return self._change_status(case_id, CaseStatus.OPEN, actor_id, "resume case")

    def close_case(self, case_id: UUID, actor_id: UUID) -> CaseInfo:
        """Close a case.  Terminal: every later ledger operation is refused."""
        return self._change_status(case_id, CaseStatus.CLOSED, actor_id, "close case")

    def change_stage(self, case_id: UUID, stage: str, actor_id: UUID) -> CaseInfo:
        if not stage or not stage.strip():
            raise ValidationError("Case stage is required", field="stage")

        case = self._lock_case(case_id, "change case stage")
        previous = case.stage
        case.stage = stage.strip()
        case.updated_by_id = actor_id
        self.session.flush()

        info = case_to_dto(case)
        snapshot = info.to_snapshot()
        snapshot["previous_stage"] = previous
        self._audit.record(
            case_id=case.id,
            actor_id=actor_id,
            action=AuditAction.CASE_STAGE_CHANGED,
            entity_type="Case",
            entity_id=case.id,
            snapshot=snapshot,
        )
        logger.info(
            "case_stage_changed",
            extra={"case_id": str(case_id), "from_stage": previous, "to_stage": info.stage},
        )
        return info

    def delete_case(self, case_id: UUID, actor_id: UUID) -> CaseInfo:
        """
        Delete a case and, through the database cascade, everything it owns.

        Closed cases may be deleted.  The returned DTO is the case as it was.
        """
        case = self._lock_case(case_id, "delete case", allow_closed=True)
        info = case_to_dto(case)

        counts = {
            "claims": self._count(Claim, case_id),
            "transactions": self._count(FundTransaction, case_id),
            "distributions": self._count(Distribution, case_id),
        }

        self.session.delete(case)
        self.session.flush()
        # Dependents vanished at the database; drop any stale copies
        self.session.expire_all()

        snapshot = info.to_snapshot()
        snapshot["removed"] = counts
        self._audit.record(
            case_id=None,
            actor_id=actor_id,
            action=AuditAction.CASE_DELETED,
            entity_type="Case",
            entity_id=info.id,
            snapshot=snapshot,
        )
        logger.info(
            "case_deleted",
            extra={"case_id": str(case_id), "reference": info.reference, **counts},
        )
        return info

    def _count(self, model, case_id: UUID) -> int:
        return int(
            self.session.execute(
                select(func.count(model.id)).where(model.case_id == case_id)
            ).scalar_one()
        )
