"""ORM row -> DTO conversion shared by selectors and services."""

from datetime import datetime, timezone
from decimal import Decimal

from insolvency_kernel.db.types import round_money
from insolvency_kernel.domain.clock import to_utc
from insolvency_kernel.domain.dtos import (
    ActivityEntryInfo,
    CaseInfo,
    ClaimInfo,
    CreditorInfo,
    DistributionInfo,
    DistributionLineInfo,
    TransactionInfo,
)
from insolvency_kernel.models.activity_log import ActivityLogEntry
from insolvency_kernel.models.case import Case, CaseStatus
from insolvency_kernel.models.claim import Claim, ClaimStatus
from insolvency_kernel.models.creditor import Creditor
from insolvency_kernel.models.distribution import Distribution
from insolvency_kernel.models.transaction import FundTransaction, TransactionKind


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive values read back from drivers without tz support."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def money(value) -> Decimal:
    """Normalize a stored or aggregated amount to two places (NULL -> 0.00)."""
    if value is None:
        return Decimal("0.00")
    return round_money(value)


def case_to_dto(case: Case) -> CaseInfo:
    return CaseInfo(
        id=case.id,
        reference=case.reference,
        status=CaseStatus(case.status),
        stage=case.stage,
        currency=case.currency,
        opened_at=as_utc(case.opened_at),
        closed_at=as_utc(case.closed_at),
        ledger_version=case.ledger_version,
    )


def creditor_to_dto(creditor: Creditor) -> CreditorInfo:
    return CreditorInfo(
        id=creditor.id,
        name=creditor.name,
        contact_email=creditor.contact_email,
        contact_phone=creditor.contact_phone,
        is_active=bool(creditor.is_active),
    )


def transaction_to_dto(tx: FundTransaction) -> TransactionInfo:
    return TransactionInfo(
        id=tx.id,
        case_id=tx.case_id,
        kind=TransactionKind(tx.kind),
        amount=money(tx.amount),
        currency=tx.currency,
        occurred_at=as_utc(tx.occurred_at),
        ref=tx.ref,
        notes=tx.notes,
        seq=tx.seq,
        recorded_at=as_utc(tx.recorded_at),
        recorded_by_id=tx.recorded_by_id,
    )


def claim_to_dto(claim: Claim) -> ClaimInfo:
    return ClaimInfo(
        id=claim.id,
        case_id=claim.case_id,
        creditor_id=claim.creditor_id,
        amount_claimed=money(claim.amount_claimed),
        amount_admitted=(
            None if claim.amount_admitted is None else money(claim.amount_admitted)
        ),
        status=ClaimStatus(claim.status),
        lodged_at=as_utc(claim.lodged_at),
        adjudicated_at=as_utc(claim.adjudicated_at),
    )


def distribution_to_dto(distribution: Distribution) -> DistributionInfo:
    lines = sorted(distribution.lines, key=lambda line: line.creditor_id)
    return DistributionInfo(
        id=distribution.id,
        case_id=distribution.case_id,
        round_no=distribution.round_no,
        total_amount=money(distribution.total_amount),
        declared_at=as_utc(distribution.declared_at),
        declared_by_id=distribution.declared_by_id,
        window_start=distribution.window_start,
        window_end=distribution.window_end,
        lines=tuple(
            DistributionLineInfo(
                creditor_id=line.creditor_id,
                claim_id=line.claim_id,
                amount=money(line.amount),
            )
            for line in lines
        ),
    )


def activity_to_dto(entry: ActivityLogEntry) -> ActivityEntryInfo:
    return ActivityEntryInfo(
        id=entry.id,
        seq=entry.seq,
        case_id=entry.case_id,
        actor_id=entry.actor_id,
        action=entry.action,
        entity_type=entry.entity_type,
        entity_id=entry.entity_id,
        snapshot=dict(entry.snapshot or {}),
        created_at=as_utc(entry.created_at),
        hash=entry.hash,
        prev_hash=entry.prev_hash,
    )


__all__ = [
    "as_utc",
    "to_utc",
    "money",
    "case_to_dto",
    "creditor_to_dto",
    "transaction_to_dto",
    "claim_to_dto",
    "distribution_to_dto",
    "activity_to_dto",
]
