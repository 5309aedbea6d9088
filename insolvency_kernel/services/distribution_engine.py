"""
DistributionService -- declares pro-rata payout rounds.

Responsibility:
    Converts a portion of a case's available funds into a committed,
    auditable, exactly-summing set of distribution lines across the case's
    admitted creditors.

Architecture position:
    Kernel > Services -- imperative shell.  Reads the consistent snapshot
    through selectors, delegates the arithmetic to the pure
    ApportionmentEngine, persists the round atomically.

Invariants enforced:
    Checked in this order, all after the case lock is held so funds,
    admitted claims and prior rounds are read as of one instant:
      1. The case is open or on hold (CaseClosedError otherwise).
      2. round_no >= 1 and strictly greater than every prior round of the
         case (InvalidRoundError otherwise).
      3. 0 <= total_amount <= available_funds - committed distributions
         (InsufficientFundsError otherwise).  Cumulative distributions can
         never exceed cumulative net funds received.
      4. At least one admitted claim, with a positive admitted total when
         total_amount > 0 (NoAdmittedClaimsError otherwise).
    - sum(lines) == total_amount exactly (largest-remainder apportionment).
    - Lines whose final amount is zero are omitted.
    - The Distribution, its lines and the "distribution.declared" activity
      entry commit together or not at all.

Failure modes:
    - ValidationError and its distribution subclasses above, ConflictError.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from insolvency_engines.apportionment import ApportionmentEngine
from insolvency_kernel.db.types import MONEY_QUANTUM, parse_money
from insolvency_kernel.domain.clock import Clock
from insolvency_kernel.domain.dtos import DistributionInfo
from insolvency_kernel.exceptions import (
    DistributionInvariantError,
    InsufficientFundsError,
    InvalidRoundError,
    NoAdmittedClaimsError,
    ValidationError,
)
from insolvency_kernel.logging_config import get_logger
from insolvency_kernel.models.distribution import Distribution, DistributionLine
from insolvency_kernel.selectors.claims_selector import ClaimsSelector
from insolvency_kernel.selectors.distribution_selector import DistributionSelector
from insolvency_kernel.selectors.dto_mapping import distribution_to_dto
from insolvency_kernel.selectors.funds_selector import FundsSelector
from insolvency_kernel.services.audit_trail import AuditAction, AuditTrail
from insolvency_kernel.services.base import BaseService

logger = get_logger("services.distribution")


class DistributionService(BaseService[Distribution]):
    """Write side of the Distribution Engine."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditTrail | None = None,
        engine: ApportionmentEngine | None = None,
    ):
        super().__init__(session, clock)
        self._audit = audit or AuditTrail(session, self.clock)
        self._engine = engine or ApportionmentEngine()
        self._funds = FundsSelector(session)
        self._claims = ClaimsSelector(session)
        self._distributions = DistributionSelector(session)

    def remaining_distributable(self, case_id: UUID) -> Decimal:
        """available_funds - committed distributions, as of this session's snapshot."""
        return self._funds.available_funds(case_id) - self._distributions.committed_total(
            case_id
        )

    def declare_distribution(
        self,
        case_id: UUID,
        round_no: int,
        total_amount: Decimal | str | int,
        actor_id: UUID,
        window_start: date | None = None,
        window_end: date | None = None,
    ) -> DistributionInfo:
        """
        Declare and commit one distribution round.

        Postconditions:
            - One Distribution and one DistributionLine per creditor with a
              non-zero share are flushed, with sum(lines) == total_amount.

        Raises:
            CaseClosedError, InvalidRoundError, InsufficientFundsError,
            NoAdmittedClaimsError, DistributionInvariantError, ValidationError,
            ConflictError.
        """
        total = parse_money(total_amount, field="total_amount", signed=True)
        if window_start is not None and window_end is not None and window_start > window_end:
            raise ValidationError(
                f"window_start {window_start} is after window_end {window_end}",
                field="window_start",
            )

        self._lock_case(case_id, "declare distribution")

        last_round = self._distributions.last_round_no(case_id)
        if (
            isinstance(round_no, bool)
            or not isinstance(round_no, int)
            or round_no < 1
            or (last_round is not None and round_no <= last_round)
        ):
            logger.warning(
                "distribution_round_rejected",
                extra={"case_id": str(case_id), "round_no": round_no, "last_round_no": last_round},
            )
            raise InvalidRoundError(str(case_id), round_no, last_round)

        available = self._funds.available_funds(case_id)
        committed = self._distributions.committed_total(case_id)
        remaining = available - committed
        if total < 0 or total > remaining:
            logger.warning(
                "distribution_insufficient_funds",
                extra={
                    "case_id": str(case_id),
                    "requested": str(total),
                    "available": str(available),
                    "committed": str(committed),
                },
            )
            raise InsufficientFundsError(str(case_id), total, remaining)

        admitted = self._claims.admitted_claims(case_id)
        if not admitted:
            raise NoAdmittedClaimsError(str(case_id))

        weights = [(c.creditor_id, c.amount_admitted) for c in admitted]
        if total > 0 and sum((w for _, w in weights), Decimal("0")) == 0:
            raise NoAdmittedClaimsError(str(case_id), "admitted amounts sum to zero")

        logger.info(
            "distribution_started",
            extra={
                "case_id": str(case_id),
                "round_no": round_no,
                "total_amount": str(total),
                "admitted_count": len(admitted),
            },
        )

        result = self._engine.apportion(total=total, weights=weights, quantum=MONEY_QUANTUM)
        lines_total = sum((s.amount for s in result.nonzero_shares), Decimal("0.00"))
        if lines_total != total:
            # Checked before anything is added to the session
            raise DistributionInvariantError(
                str(case_id), f"lines sum to {lines_total}, expected {total}"
            )

        claim_by_creditor = {c.creditor_id: c.id for c in admitted}

        distribution = Distribution(
            case_id=case_id,
            round_no=round_no,
            total_amount=total,
            declared_at=self.clock.now(),
            declared_by_id=actor_id,
            window_start=window_start,
            window_end=window_end,
        )
        self.session.add(distribution)
        for share in result.nonzero_shares:
            distribution.lines.append(
                DistributionLine(
                    creditor_id=share.key,
                    claim_id=claim_by_creditor[share.key],
                    amount=share.amount,
                )
            )

        try:
            self.session.flush()
        except IntegrityError as exc:
            # Unique (case_id, round_no) lost to a writer that bypassed the lock
            raise InvalidRoundError(str(case_id), round_no, last_round) from exc

        info = distribution_to_dto(distribution)
        self._audit.record(
            case_id=case_id,
            actor_id=actor_id,
            action=AuditAction.DISTRIBUTION_DECLARED,
            entity_type="Distribution",
            entity_id=distribution.id,
            snapshot=info.to_snapshot(),
        )
        logger.info(
            "distribution_declared",
            extra={
                "case_id": str(case_id),
                "distribution_id": str(distribution.id),
                "round_no": round_no,
                "total_amount": str(total),
                "line_count": len(info.lines),
                "remainder_units": result.remainder_units,
            },
        )
        return info
