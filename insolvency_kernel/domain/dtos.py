"""
Data transfer objects for the case ledger.

Frozen dataclasses returned by services and selectors.  No ORM, no I/O.
Each mutable-entity DTO can render itself as an activity log snapshot
(``to_snapshot``) with amounts as fixed two-place strings, so the stored
snapshot and its hash never depend on float or Decimal formatting.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from insolvency_kernel.models.case import CaseStatus
from insolvency_kernel.models.claim import ClaimStatus
from insolvency_kernel.models.transaction import INFLOW_KINDS, TransactionKind


def _money(value: Decimal | None) -> str | None:
    return None if value is None else f"{value:.2f}"


def _iso(value: date | datetime | None) -> str | None:
    return None if value is None else value.isoformat()


@dataclass(frozen=True)
class CaseInfo:
    """Immutable case record."""

    id: UUID
    reference: str
    status: CaseStatus
    stage: str
    currency: str
    opened_at: datetime
    closed_at: datetime | None
    ledger_version: int

    @property
    def is_closed(self) -> bool:
        return self.status == CaseStatus.CLOSED

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "reference": self.reference,
            "status": self.status.value,
            "stage": self.stage,
            "currency": self.currency,
            "opened_at": _iso(self.opened_at),
            "closed_at": _iso(self.closed_at),
        }


@dataclass(frozen=True)
class CreditorInfo:
    """Immutable creditor record."""

    id: UUID
    name: str
    contact_email: str | None
    contact_phone: str | None
    is_active: bool

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "name": self.name,
            "contact_email": self.contact_email,
            "contact_phone": self.contact_phone,
            "is_active": self.is_active,
        }


@dataclass(frozen=True)
class TransactionInfo:
    """Immutable fund movement."""

    id: UUID
    case_id: UUID
    kind: TransactionKind
    amount: Decimal
    currency: str
    occurred_at: datetime
    ref: str | None
    notes: str | None
    seq: int
    recorded_at: datetime
    recorded_by_id: UUID

    @property
    def signed_amount(self) -> Decimal:
        """Positive for inflows, negative for outflows."""
        return self.amount if self.kind in INFLOW_KINDS else -self.amount

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "case_id": str(self.case_id),
            "kind": self.kind.value,
            "amount": _money(self.amount),
            "currency": self.currency,
            "occurred_at": _iso(self.occurred_at),
            "ref": self.ref,
            "notes": self.notes,
            "seq": self.seq,
        }


@dataclass(frozen=True)
class ClaimInfo:
    """Immutable claim record."""

    id: UUID
    case_id: UUID
    creditor_id: UUID
    amount_claimed: Decimal
    amount_admitted: Decimal | None
    status: ClaimStatus
    lodged_at: datetime
    adjudicated_at: datetime | None

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "case_id": str(self.case_id),
            "creditor_id": str(self.creditor_id),
            "amount_claimed": _money(self.amount_claimed),
            "amount_admitted": _money(self.amount_admitted),
            "status": self.status.value,
            "lodged_at": _iso(self.lodged_at),
            "adjudicated_at": _iso(self.adjudicated_at),
        }


@dataclass(frozen=True)
class DistributionLineInfo:
    """One creditor's committed share of a round."""

    creditor_id: UUID
    claim_id: UUID
    amount: Decimal


@dataclass(frozen=True)
class DistributionInfo:
    """Immutable distribution round with its lines (ascending creditor id)."""

    id: UUID
    case_id: UUID
    round_no: int
    total_amount: Decimal
    declared_at: datetime
    declared_by_id: UUID
    window_start: date | None
    window_end: date | None
    lines: tuple[DistributionLineInfo, ...] = field(default_factory=tuple)

    @property
    def lines_total(self) -> Decimal:
        return sum((line.amount for line in self.lines), Decimal("0.00"))

    def amount_for(self, creditor_id: UUID) -> Decimal:
        """The creditor's share, zero if the creditor has no line."""
        for line in self.lines:
            if line.creditor_id == creditor_id:
                return line.amount
        return Decimal("0.00")

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "case_id": str(self.case_id),
            "round_no": self.round_no,
            "total_amount": _money(self.total_amount),
            "window_start": _iso(self.window_start),
            "window_end": _iso(self.window_end),
            "lines": [
                {
                    "creditor_id": str(line.creditor_id),
                    "claim_id": str(line.claim_id),
                    "amount": _money(line.amount),
                }
                for line in self.lines
            ],
        }


@dataclass(frozen=True)
class ActivityEntryInfo:
    """Immutable activity log entry as seen by readers."""

    id: UUID
    seq: int
    case_id: UUID | None
    actor_id: UUID
    action: str
    entity_type: str
    entity_id: UUID | None
    snapshot: dict[str, Any]
    created_at: datetime
    hash: str
    prev_hash: str | None


# Read projections


@dataclass(frozen=True)
class FundsSummary:
    """Net cash position of a case."""

    case_id: UUID
    total_in: Decimal
    total_out: Decimal
    available_funds: Decimal


@dataclass(frozen=True)
class ClaimsVerification:
    """Adjudication progress of a case's claims (rejected claims excluded)."""

    case_id: UUID
    total_considered: int
    admitted_count: int
    admitted_pct: Decimal


@dataclass(frozen=True)
class DistributionProgress:
    """Cumulative payout position of a case."""

    case_id: UUID
    distributed_total: Decimal
    round_count: int = 0
    last_round_no: int | None = None
