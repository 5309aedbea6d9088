"""
AuditTrail -- append-only, hash-chained activity log.

Responsibility:
    Records one immutable ActivityLogEntry for every mutating action on
    the fund ledger, the claims register, the distribution engine and the
    case/creditor collaborator surface.  Verifies the hash chain for
    tamper detection.

Architecture position:
    Kernel > Services -- imperative shell, called by every write service.

Invariants enforced:
    - Append-only: the only write this class exposes is ``record``.  There
      is no update or delete operation, and the ORM listeners block both.
    - Per-scope sequence monotonicity via SequenceService (never MAX()+1):
      a case's entries are numbered from its own row, case-less entries
      from the global activity_log counter.
    - Chain integrity: ``hash = H(entity_type | entity_id | action |
      payload_hash | prev_hash)`` where prev_hash is the hash of the
      previous entry in the same case scope.  Case-less entries form their
      own chain.  The predecessor is read after the scope's counter row
      (the case row, or the global counter) is write-locked by the seq
      allocation, so concurrent writers cannot fork a chain.

Failure modes:
    - AuditChainBrokenError from ``verify_chain`` on a hash or link mismatch.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from insolvency_kernel.domain.clock import Clock, SystemClock
from insolvency_kernel.domain.dtos import ActivityEntryInfo
from insolvency_kernel.exceptions import AuditChainBrokenError
from insolvency_kernel.logging_config import get_logger
from insolvency_kernel.models.activity_log import ActivityLogEntry
from insolvency_kernel.selectors.dto_mapping import activity_to_dto
from insolvency_kernel.services.sequence_service import SequenceService
from insolvency_kernel.utils.hashing import (
    GENESIS_MARKER,
    hash_activity_entry,
    hash_payload,
    to_json_safe,
)

logger = get_logger("services.audit_trail")


class AuditAction:
    """Action names recorded in the activity log."""

    CASE_OPENED = "case.opened"
    CASE_STATUS_CHANGED = "case.status_changed"
    CASE_STAGE_CHANGED = "case.stage_changed"
    CASE_CLOSED = "case.closed"
    CASE_DELETED = "case.deleted"
    CREDITOR_REGISTERED = "creditor.registered"
    CREDITOR_UPDATED = "creditor.updated"
    CREDITOR_DEACTIVATED = "creditor.deactivated"
    CREDITOR_DELETED = "creditor.deleted"
    TRANSACTION_RECORDED = "transaction.recorded"
    CLAIM_LODGED = "claim.lodged"
    CLAIM_TRANSITIONED = "claim.transitioned"
    DISTRIBUTION_DECLARED = "distribution.declared"


class AuditTrail:
    """
    Write-only interface to the activity log, plus chain verification.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - History reads live in ActivitySelector.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)

    def _scope_filter(self, case_id: UUID | None):
        if case_id is None:
            return ActivityLogEntry.case_id.is_(None)
        return ActivityLogEntry.case_id == case_id

    def _last_hash(self, case_id: UUID | None) -> str | None:
        """Hash of the newest entry in a case scope."""
        last = self._session.execute(
            select(ActivityLogEntry.hash)
            .where(self._scope_filter(case_id))
            .order_by(ActivityLogEntry.seq.desc())
            .limit(1)
        ).scalar_one_or_none()
        return last

    def record(
        self,
        case_id: UUID | None,
        actor_id: UUID,
        action: str,
        entity_type: str,
        entity_id: UUID | None,
        snapshot: dict[str, Any] | None = None,
    ) -> ActivityEntryInfo:
        """
        Append one entry to the activity log.

        Postconditions:
            - A new entry is flushed with a monotonically increasing seq
              and a valid link to its case scope's previous entry.

        Args:
            case_id: Owning case, or None for case-less events.
            actor_id: Who performed the action.
            action: Dotted action name (see AuditAction).
            entity_type: Type of the entity acted upon.
            entity_id: ID of the entity acted upon.
            snapshot: Post-mutation state of the entity.
        """
        seq = self._sequence_service.next_value(SequenceService.ACTIVITY_LOG, case_id)

        prev_hash = self._last_hash(case_id)

        payload = to_json_safe(snapshot or {})
        payload_hash = hash_payload(payload)
        entry_hash = hash_activity_entry(
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            action=action,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        entry = ActivityLogEntry(
            seq=seq,
            case_id=case_id,
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            snapshot=payload,
            created_at=self._clock.now(),
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=entry_hash,
        )
        self._session.add(entry)
        self._session.flush()

        logger.info(
            "activity_recorded",
            extra={
                "action": action,
                "entity_type": entity_type,
                "entity_id": str(entity_id) if entity_id is not None else None,
                "seq": seq,
            },
        )
        return activity_to_dto(entry)

    def verify_chain(self, case_id: UUID | None) -> int:
        """
        Recompute and check the hash chain of one case scope.

        Returns:
            Number of entries verified.

        Raises:
            AuditChainBrokenError: If any payload hash, entry hash or
                prev_hash link does not match.
        """
        entries = self._session.execute(
            select(ActivityLogEntry)
            .where(self._scope_filter(case_id))
            .order_by(ActivityLogEntry.seq)
        ).scalars().all()

        expected_prev: str | None = None
        for entry in entries:
            if entry.prev_hash != expected_prev:
                logger.critical(
                    "audit_chain_broken",
                    extra={"entry_id": str(entry.id), "check": "prev_hash"},
                )
                raise AuditChainBrokenError(
                    str(entry.id),
                    expected_prev or GENESIS_MARKER,
                    entry.prev_hash or GENESIS_MARKER,
                )

            payload_hash = hash_payload(entry.snapshot or {})
            if payload_hash != entry.payload_hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"entry_id": str(entry.id), "check": "payload_hash"},
                )
                raise AuditChainBrokenError(str(entry.id), payload_hash, entry.payload_hash)

            expected_hash = hash_activity_entry(
                entity_type=entry.entity_type,
                entity_id=str(entry.entity_id) if entry.entity_id is not None else None,
                action=entry.action,
                payload_hash=entry.payload_hash,
                prev_hash=entry.prev_hash,
            )
            if expected_hash != entry.hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"entry_id": str(entry.id), "check": "hash"},
                )
                raise AuditChainBrokenError(str(entry.id), expected_hash, entry.hash)

            expected_prev = entry.hash

        logger.info(
            "audit_chain_valid",
            extra={
                "case_id": str(case_id) if case_id is not None else None,
                "entry_count": len(entries),
            },
        )
        return len(entries)
