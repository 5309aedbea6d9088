"""
FundLedgerService -- the append-only record of money moving through a case.

Responsibility:
    Records receipts, payments, fees and interest against a case.  There is
    no stored balance: available funds are always recomputed from the
    transaction history by FundsSelector.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Transactions are immutable once recorded; corrections are new
      offsetting transactions (ORM listener blocks UPDATE/DELETE).
    - amount >= 0 at two decimal places; floats are refused.
    - Currency is recorded, never converted: it must equal the case currency.
    - Conservation: a payment or fee may not take available funds below
      the amount already committed to distributions, so
      distributed_total <= available_funds holds after every commit.
    - Every recorded transaction appends one "transaction.recorded"
      activity entry in the same database transaction.

Failure modes:
    - ValidationError (bad amount, kind, timestamp), CaseClosedError,
      CaseNotFoundError, CurrencyMismatchError, InsufficientFundsError,
      ConflictError.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from insolvency_kernel.db.types import parse_money, validate_currency
from insolvency_kernel.domain.clock import Clock
from insolvency_kernel.domain.dtos import TransactionInfo
from insolvency_kernel.exceptions import (
    CurrencyMismatchError,
    InsufficientFundsError,
    ValidationError,
)
from insolvency_kernel.logging_config import get_logger
from insolvency_kernel.models.transaction import OUTFLOW_KINDS, FundTransaction, TransactionKind
from insolvency_kernel.selectors.distribution_selector import DistributionSelector
from insolvency_kernel.selectors.dto_mapping import to_utc, transaction_to_dto
from insolvency_kernel.selectors.funds_selector import FundsSelector
from insolvency_kernel.services.audit_trail import AuditAction, AuditTrail
from insolvency_kernel.services.base import BaseService
from insolvency_kernel.services.sequence_service import SequenceService

logger = get_logger("services.fund_ledger")

MAX_REF_LENGTH = 255
MAX_NOTES_LENGTH = 4000


def parse_kind(kind: TransactionKind | str) -> TransactionKind:
    try:
        return TransactionKind(kind)
    except ValueError as exc:
        raise ValidationError(f"Unknown transaction kind: {kind!r}", field="kind") from exc


class FundLedgerService(BaseService[FundTransaction]):
    """
    Write side of the Fund Ledger.

    Non-goals:
        - Payment execution (bank transfers).
        - Interest accrual schedules; interest arrives as recorded amounts.
        - Currency conversion.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditTrail | None = None,
    ):
        super().__init__(session, clock)
        self._audit = audit or AuditTrail(session, self.clock)
        self._sequences = SequenceService(session)
        self._funds = FundsSelector(session)
        self._distributions = DistributionSelector(session)

    def record_transaction(
        self,
        case_id: UUID,
        kind: TransactionKind | str,
        amount: Decimal | str | int,
        occurred_at: datetime,
        actor_id: UUID,
        ref: str | None = None,
        notes: str | None = None,
        currency: str | None = None,
    ) -> TransactionInfo:
        """
        Record one money movement.

        Preconditions:
            - occurred_at is caller-supplied and may be backdated; a naive
              value is taken as UTC.
        Postconditions:
            - One FundTransaction and one activity entry are flushed.

        Raises:
            ValidationError: amount < 0, over-precise, float; unknown kind;
                missing occurred_at; ref/notes too long.
            CaseClosedError: The case is closed.
            CurrencyMismatchError: currency differs from the case currency.
            InsufficientFundsError: An outflow would dip below committed
                distributions.
        """
        tx_kind = parse_kind(kind)
        value = parse_money(amount)
        if not isinstance(occurred_at, datetime):
            raise ValidationError("occurred_at must be a datetime", field="occurred_at")
        if ref is not None and len(ref) > MAX_REF_LENGTH:
            raise ValidationError(f"ref exceeds {MAX_REF_LENGTH} characters", field="ref")
        if notes is not None and len(notes) > MAX_NOTES_LENGTH:
            raise ValidationError(f"notes exceed {MAX_NOTES_LENGTH} characters", field="notes")

        case = self._lock_case(case_id, "record transaction")

        tx_currency = case.currency if currency is None else validate_currency(currency)
        if tx_currency != case.currency:
            raise CurrencyMismatchError(str(case_id), case.currency, tx_currency)

        if tx_kind in OUTFLOW_KINDS:
            available = self._funds.available_funds(case_id)
            committed = self._distributions.committed_total(case_id)
            headroom = available - committed
            if value > headroom:
                logger.warning(
                    "outflow_exceeds_headroom",
                    extra={
                        "case_id": str(case_id),
                        "kind": tx_kind.value,
                        "amount": str(value),
                        "headroom": str(headroom),
                    },
                )
                raise InsufficientFundsError(str(case_id), value, headroom)

        tx = FundTransaction(
            case_id=case_id,
            kind=tx_kind.value,
            amount=value,
            currency=tx_currency,
            occurred_at=to_utc(occurred_at),
            ref=ref,
            notes=notes,
            seq=self._sequences.next_value(SequenceService.TRANSACTION, case_id),
            recorded_at=self.clock.now(),
            recorded_by_id=actor_id,
        )
        self.session.add(tx)
        self.session.flush()

        info = transaction_to_dto(tx)
        self._audit.record(
            case_id=case_id,
            actor_id=actor_id,
            action=AuditAction.TRANSACTION_RECORDED,
            entity_type="Transaction",
            entity_id=tx.id,
            snapshot=info.to_snapshot(),
        )
        logger.info(
            "transaction_recorded",
            extra={
                "case_id": str(case_id),
                "transaction_id": str(tx.id),
                "kind": tx_kind.value,
                "amount": str(value),
                "seq": tx.seq,
            },
        )
        return info
