"""
ORM-level immutability enforcement for the case ledger.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners registered here intercept those events and raise
ImmutabilityViolationError when an append-only record would be changed:

    session.flush()
         |
         v
    [before_flush]   --> creditor deletion check --> CreditorReferencedError
         |
         v
    [before_update]  --> _check_*_immutability() --> ImmutabilityViolationError
         |
         v
    [before_delete]  --> _check_*_delete() --------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Protected entities:

Entity            | When immutable                | Allowed changes
------------------|-------------------------------|------------------------------
FundTransaction   | Always                        | none
ActivityLogEntry  | Always                        | none
Distribution      | Always                        | none
DistributionLine  | Always                        | none
Claim             | Identity and amount_claimed   | status/amount_admitted until
                  | always; everything once       | the claim is terminal
                  | admitted or rejected          |
Case              | status/reference/closed_at    | stage and audit columns
                  | once closed                   |
Creditor          | Deletion while referenced     | contact fields, is_active

Case deletion removes dependents through ON DELETE CASCADE at the database,
never through ORM deletes, so these listeners never block it.

Usage:

    from insolvency_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup; repeated calls are no-ops

    # TESTS ONLY
    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect, text
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import get_history

from insolvency_kernel.exceptions import (
    CreditorReferencedError,
    ImmutabilityViolationError,
)
from insolvency_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Audit metadata columns that may change on an otherwise frozen row
_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})

# Claim columns that never change once lodged
CLAIM_IDENTITY_FIELDS = frozenset({"case_id", "creditor_id", "amount_claimed"})

# Case columns frozen once the case is closed
CLOSED_CASE_FIELDS = frozenset({"status", "reference", "closed_at"})


def _block(entity_type: str, entity_id, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _previous_value(target, attr: str):
    """Value of ``attr`` as last loaded from the database."""
    hist = get_history(target, attr)
    if hist.deleted:
        return hist.deleted[0]
    if hist.unchanged:
        return hist.unchanged[0]
    return getattr(target, attr)


def _changed_fields(target) -> list[str]:
    return [
        attr.key
        for attr in inspect(target).attrs
        if attr.key not in _AUDIT_FIELDS and attr.history.has_changes()
    ]


# =============================================================================
# Always-immutable ledger records
# =============================================================================


def _check_append_only_update(mapper, connection, target):
    """Block any UPDATE of an append-only ledger record."""
    entity_type = type(target).__name__
    _block(
        entity_type,
        target.id,
        "UPDATE",
        f"{entity_type} records are append-only and cannot be modified",
    )


def _check_append_only_delete(mapper, connection, target):
    """Block any ORM DELETE of an append-only ledger record."""
    entity_type = type(target).__name__
    _block(
        entity_type,
        target.id,
        "DELETE",
        f"{entity_type} records are append-only and cannot be deleted",
    )


# =============================================================================
# Claims
# =============================================================================


def _check_claim_immutability(mapper, connection, target):
    """
    Freeze claim identity, and freeze terminal claims entirely.

    The adjudication itself (lodged/under_review -> admitted/rejected) is
    allowed; any change after the claim was already terminal is not.
    """
    from insolvency_kernel.models.claim import TERMINAL_CLAIM_STATUSES, ClaimStatus

    for field in CLAIM_IDENTITY_FIELDS:
        if get_history(target, field).deleted:
            _block(
                "Claim",
                target.id,
                "UPDATE",
                f"Cannot modify field '{field}' on a lodged claim",
                field=field,
            )

    previous_status = ClaimStatus(_previous_value(target, "status"))
    if previous_status in TERMINAL_CLAIM_STATUSES:
        changed = _changed_fields(target)
        if changed:
            _block(
                "Claim",
                target.id,
                "UPDATE",
                f"Cannot modify field '{changed[0]}' on {previous_status.value} claim",
                field=changed[0],
            )


def _check_claim_delete(mapper, connection, target):
    _block(
        "Claim",
        target.id,
        "DELETE",
        "Claims are removed only with their case",
    )


# =============================================================================
# Cases
# =============================================================================


def _check_case_immutability(mapper, connection, target):
    """Freeze status, reference and closed_at once a case is closed."""
    from insolvency_kernel.models.case import CaseStatus

    if CaseStatus(_previous_value(target, "status")) != CaseStatus.CLOSED:
        return

    for field in CLOSED_CASE_FIELDS:
        if get_history(target, field).has_changes():
            _block(
                "Case",
                target.id,
                "UPDATE",
                f"Cannot modify field '{field}' on closed case",
                field=field,
            )


# =============================================================================
# Creditors
# =============================================================================


def _check_creditor_deletion_before_flush(session, flush_context, instances):
    """
    Prevent deleting a creditor with financial history.

    Runs in before_flush so the check happens before the flush plan is
    finalized.  The RESTRICT foreign keys back this up at the database.
    """
    from insolvency_kernel.models.creditor import Creditor

    for obj in list(session.deleted):
        if not isinstance(obj, Creditor):
            continue

        with session.no_autoflush:
            referenced = session.execute(
                text(
                    "SELECT EXISTS (SELECT 1 FROM claims WHERE creditor_id = :cid) "
                    "OR EXISTS (SELECT 1 FROM distribution_lines WHERE creditor_id = :cid)"
                ),
                {"cid": str(obj.id)},
            ).scalar()

        if referenced:
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "Creditor",
                    "entity_id": str(obj.id),
                    "operation": "DELETE",
                    "reason": "creditor_has_financial_history",
                },
            )
            raise CreditorReferencedError(creditor_id=str(obj.id))


# =============================================================================
# Registration
# =============================================================================


def _listeners():
    from insolvency_kernel.models.activity_log import ActivityLogEntry
    from insolvency_kernel.models.case import Case
    from insolvency_kernel.models.claim import Claim
    from insolvency_kernel.models.distribution import Distribution, DistributionLine
    from insolvency_kernel.models.transaction import FundTransaction

    listeners = [
        (Session, "before_flush", _check_creditor_deletion_before_flush),
        (Claim, "before_update", _check_claim_immutability),
        (Claim, "before_delete", _check_claim_delete),
        (Case, "before_update", _check_case_immutability),
    ]
    for model in (FundTransaction, ActivityLogEntry, Distribution, DistributionLine):
        listeners.append((model, "before_update", _check_append_only_update))
        listeners.append((model, "before_delete", _check_append_only_delete))
    return listeners


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Call after the models are importable and before any ledger operation.
    Registering twice is a no-op.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that intentionally violate immutability
    rules to verify detection.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
