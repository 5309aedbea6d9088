"""
Module: insolvency_kernel.selectors.funds_selector
Responsibility: Read-only Fund Ledger queries: available funds, the funds
    summary projection, point-in-time balance and transaction listing.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - No stored balances.  available_funds = sum(receipt + interest)
      - sum(payment + fee), recomputed from FundTransaction rows on every call.
    - Ordering for listings is (occurred_at, seq): caller-supplied time
      first, insertion order as tie-break.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, select

from insolvency_kernel.domain.dtos import FundsSummary, TransactionInfo
from insolvency_kernel.models.transaction import (
    INFLOW_KINDS,
    OUTFLOW_KINDS,
    FundTransaction,
    TransactionKind,
)
from insolvency_kernel.selectors.base import BaseSelector
from insolvency_kernel.selectors.dto_mapping import money, to_utc, transaction_to_dto

_INFLOW_VALUES = sorted(k.value for k in INFLOW_KINDS)
_OUTFLOW_VALUES = sorted(k.value for k in OUTFLOW_KINDS)


class FundsSelector(BaseSelector):
    """Derived views over a case's fund transactions."""

    def totals(
        self,
        case_id: UUID,
        as_of: datetime | None = None,
    ) -> tuple[Decimal, Decimal]:
        """(total_in, total_out) over transactions with occurred_at <= as_of."""
        stmt = select(
            func.coalesce(
                func.sum(
                    case(
                        (FundTransaction.kind.in_(_INFLOW_VALUES), FundTransaction.amount),
                        else_=0,
                    )
                ),
                0,
            ),
            func.coalesce(
                func.sum(
                    case(
                        (FundTransaction.kind.in_(_OUTFLOW_VALUES), FundTransaction.amount),
                        else_=0,
                    )
                ),
                0,
            ),
        ).where(FundTransaction.case_id == case_id)

        if as_of is not None:
            stmt = stmt.where(FundTransaction.occurred_at <= to_utc(as_of))

        total_in, total_out = self.session.execute(stmt).one()
        return money(total_in), money(total_out)

    def available_funds(self, case_id: UUID) -> Decimal:
        """Net cash position: receipts + interest - payments - fees."""
        total_in, total_out = self.totals(case_id)
        return total_in - total_out

    def balance_as_of(self, case_id: UUID, at: datetime) -> Decimal:
        """Net cash position counting only transactions that occurred by ``at``."""
        total_in, total_out = self.totals(case_id, as_of=at)
        return total_in - total_out

    def funds_summary(self, case_id: UUID) -> FundsSummary:
        total_in, total_out = self.totals(case_id)
        return FundsSummary(
            case_id=case_id,
            total_in=total_in,
            total_out=total_out,
            available_funds=total_in - total_out,
        )

    def list_transactions(
        self,
        case_id: UUID,
        kind: TransactionKind | str | None = None,
    ) -> list[TransactionInfo]:
        """Transactions of a case in (occurred_at, seq) order."""
        stmt = select(FundTransaction).where(FundTransaction.case_id == case_id)
        if kind is not None:
            stmt = stmt.where(FundTransaction.kind == TransactionKind(kind).value)
        stmt = stmt.order_by(FundTransaction.occurred_at, FundTransaction.seq)
        return [transaction_to_dto(tx) for tx in self.session.execute(stmt).scalars()]
