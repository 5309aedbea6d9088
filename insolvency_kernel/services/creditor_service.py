"""
CreditorService -- creditor registration and maintenance.

Responsibility:
    Registers creditors, updates their contact details, deactivates them,
    and deletes creditors that carry no financial history.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - A creditor referenced by a claim or distribution line is never
      deleted (CreditorReferencedError); it is deactivated instead.
    - Inactive creditors cannot lodge new claims (checked by
      ClaimsRegisterService).
    - Every mutation is recorded as a case-less activity entry.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from insolvency_kernel.domain.clock import Clock
from insolvency_kernel.domain.dtos import CreditorInfo
from insolvency_kernel.exceptions import CreditorNotFoundError, ValidationError
from insolvency_kernel.logging_config import get_logger
from insolvency_kernel.models.creditor import Creditor
from insolvency_kernel.selectors.dto_mapping import creditor_to_dto
from insolvency_kernel.services.audit_trail import AuditAction, AuditTrail
from insolvency_kernel.services.base import BaseService

logger = get_logger("services.creditor")


class CreditorService(BaseService[Creditor]):
    """Service for managing creditors; returns CreditorInfo DTOs."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditTrail | None = None,
    ):
        super().__init__(session, clock)
        self._audit = audit or AuditTrail(session, self.clock)

    def _get_by_id(self, creditor_id: UUID) -> Creditor:
        creditor = self.session.get(Creditor, creditor_id)
        if creditor is None:
            raise CreditorNotFoundError(str(creditor_id))
        return creditor

    def get_creditor(self, creditor_id: UUID) -> CreditorInfo:
        return creditor_to_dto(self._get_by_id(creditor_id))

    def list_creditors(self, active_only: bool = True) -> list[CreditorInfo]:
        stmt = select(Creditor)
        if active_only:
            stmt = stmt.where(Creditor.is_active == True)  # noqa: E712
        stmt = stmt.order_by(Creditor.name, Creditor.id)
        return [creditor_to_dto(c) for c in self.session.execute(stmt).scalars()]

    def register_creditor(
        self,
        name: str,
        actor_id: UUID,
        contact_email: str | None = None,
        contact_phone: str | None = None,
    ) -> CreditorInfo:
        """
        Register a new, active creditor.

        Raises:
            ValidationError: If name is empty.
        """
        if not name or not name.strip():
            raise ValidationError("Creditor name is required", field="name")

        creditor = Creditor(
            name=name.strip(),
            contact_email=contact_email,
            contact_phone=contact_phone,
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(creditor)
        self.session.flush()

        info = creditor_to_dto(creditor)
        self._audit.record(
            case_id=None,
            actor_id=actor_id,
            action=AuditAction.CREDITOR_REGISTERED,
            entity_type="Creditor",
            entity_id=creditor.id,
            snapshot=info.to_snapshot(),
        )
        logger.info("creditor_registered", extra={"creditor_id": str(creditor.id)})
        return info

    def update_contact(
        self,
        creditor_id: UUID,
        actor_id: UUID,
        contact_email: str | None = None,
        contact_phone: str | None = None,
    ) -> CreditorInfo:
        """Replace the creditor's contact details (None clears a field)."""
        creditor = self._get_by_id(creditor_id)
        creditor.contact_email = contact_email
        creditor.contact_phone = contact_phone
        creditor.updated_by_id = actor_id
        self.session.flush()

        info = creditor_to_dto(creditor)
        self._audit.record(
            case_id=None,
            actor_id=actor_id,
            action=AuditAction.CREDITOR_UPDATED,
            entity_type="Creditor",
            entity_id=creditor.id,
            snapshot=info.to_snapshot(),
        )
        logger.info("creditor_updated", extra={"creditor_id": str(creditor_id)})
        return info

    def deactivate_creditor(self, creditor_id: UUID, actor_id: UUID) -> CreditorInfo:
        """Block new claims from this creditor.  Idempotent."""
        creditor = self._get_by_id(creditor_id)
        if not creditor.is_active:
            return creditor_to_dto(creditor)

        creditor.is_active = False
        creditor.updated_by_id = actor_id
        self.session.flush()

        info = creditor_to_dto(creditor)
        self._audit.record(
            case_id=None,
            actor_id=actor_id,
            action=AuditAction.CREDITOR_DEACTIVATED,
            entity_type="Creditor",
            entity_id=creditor.id,
            snapshot=info.to_snapshot(),
        )
        logger.info("creditor_deactivated", extra={"creditor_id": str(creditor_id)})
        return info

    def delete_creditor(self, creditor_id: UUID, actor_id: UUID) -> None:
        """
        Delete a creditor with no claims and no distribution lines.

        Raises:
            CreditorNotFoundError: If the creditor does not exist.
            CreditorReferencedError: If the creditor has financial history.
        """
        creditor = self._get_by_id(creditor_id)
        info = creditor_to_dto(creditor)

        self.session.delete(creditor)
        self.session.flush()

        self._audit.record(
            case_id=None,
            actor_id=actor_id,
            action=AuditAction.CREDITOR_DELETED,
            entity_type="Creditor",
            entity_id=info.id,
            snapshot=info.to_snapshot(),
        )
        logger.info("creditor_deleted", extra={"creditor_id": str(creditor_id)})
