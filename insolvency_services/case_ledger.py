"""
insolvency_services.case_ledger -- transactional facade over the kernel.

Responsibility:
    Gives collaborators (reporting layer, UI, admin CLI) one object through
    which every ledger operation runs.  Each call opens its own
    ``session_scope()`` transaction, wires the kernel services for that
    session, and commits or rolls back as a unit.

Architecture position:
    Services -- the only place kernel services are constructed and the
    only place transactions are committed.  Kernel services flush; the
    facade commits.

Invariants enforced:
    - Commit-or-nothing per call: an error leaves no partial effect.
    - ConflictError is the only error retried, at most
      ``conflict_retries`` times with linear backoff.  Every other error
      propagates on the first attempt.
    - Immutability listeners are registered before the first operation.
    - ``LogContext`` carries the correlation id, case id, actor id and
      operation name for every log line emitted inside a call.

Failure modes:
    - Any InsolvencyKernelError raised by the kernel, unchanged.
    - ConflictError once retries are exhausted.

Usage:
    settings = get_active_config()
    ledger = CaseLedger.from_settings(settings, create_schema=True)
    case = ledger.open_case("LIQ-2024-001", actor_id)
    ledger.record_transaction(case.id, "receipt", "10000.00", now, actor_id)
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import date, datetime
from decimal import Decimal
from typing import TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from insolvency_config import LedgerSettings
from insolvency_engines.apportionment import ApportionmentEngine
from insolvency_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from insolvency_kernel.db.immutability import register_immutability_listeners
from insolvency_kernel.domain.clock import Clock, SystemClock
from insolvency_kernel.domain.dtos import (
    CaseInfo,
    ClaimInfo,
    ClaimsVerification,
    CreditorInfo,
    DistributionInfo,
    DistributionProgress,
    FundsSummary,
    TransactionInfo,
)
from insolvency_kernel.exceptions import ConflictError
from insolvency_kernel.logging_config import LogContext, get_logger
from insolvency_kernel.models.claim import ClaimStatus
from insolvency_kernel.models.transaction import TransactionKind
from insolvency_kernel.selectors.activity_selector import (
    DEFAULT_PAGE_SIZE,
    ActivityHistory,
    ActivitySelector,
    Cursor,
)
from insolvency_kernel.selectors.claims_selector import ClaimsSelector
from insolvency_kernel.selectors.distribution_selector import DistributionSelector
from insolvency_kernel.selectors.funds_selector import FundsSelector
from insolvency_kernel.services.audit_trail import AuditTrail
from insolvency_kernel.services.case_service import CaseService
from insolvency_kernel.services.claims_register import ClaimsRegisterService
from insolvency_kernel.services.creditor_service import CreditorService
from insolvency_kernel.services.distribution_engine import DistributionService
from insolvency_kernel.services.fund_ledger import FundLedgerService

logger = get_logger("services.case_ledger")

T = TypeVar("T")


class CaseLedger:
    """Case Ledger & Distribution Engine, one transaction per call."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
        conflict_retries: int = 0,
        conflict_backoff_seconds: float = 0.0,
        history_page_size: int = DEFAULT_PAGE_SIZE,
        default_currency: str = "AUD",
        engine: ApportionmentEngine | None = None,
    ):
        """
        Args:
            session_factory: Session factory; defaults to the one created by
                ``init_engine_from_url``.
            clock: Time source for every recorded timestamp.
            conflict_retries: Extra attempts after a ConflictError.
            conflict_backoff_seconds: Sleep before retry n is n times this.
            history_page_size: Default page size for ``history``.
            default_currency: Currency for cases opened without one.
            engine: Apportionment engine for distribution rounds.
        """
        if conflict_retries < 0:
            raise ValueError(f"conflict_retries must be >= 0, got {conflict_retries}")
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._conflict_retries = conflict_retries
        self._conflict_backoff = conflict_backoff_seconds
        self._history_page_size = history_page_size
        self._default_currency = default_currency
        self._engine = engine or ApportionmentEngine()
        register_immutability_listeners()

    @classmethod
    def from_settings(
        cls,
        settings: LedgerSettings,
        clock: Clock | None = None,
        create_schema: bool = False,
    ) -> CaseLedger:
        """Initialize the engine from ``settings`` and build a ledger on it."""
        init_engine_from_url(
            settings.database_url,
            echo=settings.echo_sql,
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            pool_timeout=settings.pool_timeout,
        )
        if create_schema:
            create_tables()
        return cls(
            session_factory=get_session_factory(),
            clock=clock,
            conflict_retries=settings.conflict_retries,
            conflict_backoff_seconds=settings.conflict_backoff_seconds,
            history_page_size=settings.history_page_size,
            default_currency=settings.default_currency,
        )

    # ------------------------------------------------------------------
    # Transaction plumbing
    # ------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        work: Callable[[Session], T],
        case_id: UUID | None = None,
        actor_id: UUID | None = None,
        retry: bool = True,
    ) -> T:
        attempts = 1 + (self._conflict_retries if retry else 0)
        correlation_id = str(uuid4())
        with LogContext.bind(
            correlation_id=correlation_id,
            case_id=str(case_id) if case_id else None,
            actor_id=str(actor_id) if actor_id else None,
            operation=operation,
        ):
            t0 = time.monotonic()
            for attempt in range(1, attempts + 1):
                try:
                    with session_scope(self._session_factory) as session:
                        result = work(session)
                    logger.debug(
                        "operation_completed",
                        extra={
                            "attempts": attempt,
                            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                        },
                    )
                    return result
                except ConflictError:
                    if attempt >= attempts:
                        logger.warning(
                            "operation_conflict_exhausted",
                            extra={"attempts": attempt},
                        )
                        raise
                    logger.info("operation_conflict_retry", extra={"attempt": attempt})
                    if self._conflict_backoff:
                        time.sleep(self._conflict_backoff * attempt)
        raise AssertionError("unreachable")

    def _read(self, operation: str, work: Callable[[Session], T], case_id=None) -> T:
        return self._run(operation, work, case_id=case_id, retry=False)

    def _audit(self, session: Session) -> AuditTrail:
        return AuditTrail(session, self._clock)

    # ------------------------------------------------------------------
    # Cases
    # ------------------------------------------------------------------

    def open_case(
        self,
        reference: str,
        actor_id: UUID,
        stage: str = "intake",
        currency: str | None = None,
    ) -> CaseInfo:
        return self._run(
            "open_case",
            lambda s: CaseService(s, self._clock, self._audit(s)).open_case(
                reference, actor_id, stage=stage, currency=currency or self._default_currency
            ),
            actor_id=actor_id,
        )

    def get_case(self, case_id: UUID) -> CaseInfo:
        return self._read("get_case", lambda s: CaseService(s, self._clock).get_case(case_id), case_id)

    def get_case_by_reference(self, reference: str) -> CaseInfo:
        return self._read(
            "get_case_by_reference",
            lambda s: CaseService(s, self._clock).get_case_by_reference(reference),
        )

    def put_case_on_hold(self, case_id: UUID, actor_id: UUID) -> CaseInfo:
        return self._run(
            "put_case_on_hold",
            lambda s: CaseService(s, self._clock, self._audit(s)).put_on_hold(case_id, actor_id),
            case_id,
            actor_id,
        )

    def resume_case(self, case_id: UUID, actor_id: UUID) -> CaseInfo:
        return self._run(
            "resume_case",
            lambda s: CaseService(s, self._clock, self._audit(s)).resume(case_id, actor_id),
            case_id,
            actor_id,
        )

    def change_case_stage(self, case_id: UUID, stage: str, actor_id: UUID) -> CaseInfo:
        return self._run(
            "change_case_stage",
            lambda s: CaseService(s, self._clock, self._audit(s)).change_stage(
                case_id, stage, actor_id
            ),
            case_id,
            actor_id,
        )

    def close_case(self, case_id: UUID, actor_id: UUID) -> CaseInfo:
        return self._run(
            "close_case",
            lambda s: CaseService(s, self._clock, self._audit(s)).close_case(case_id, actor_id),
            case_id,
            actor_id,
        )

    def delete_case(self, case_id: UUID, actor_id: UUID) -> CaseInfo:
        return self._run(
            "delete_case",
            lambda s: CaseService(s, self._clock, self._audit(s)).delete_case(case_id, actor_id),
            case_id,
            actor_id,
        )

    # ------------------------------------------------------------------
    # Creditors
    # ------------------------------------------------------------------

    def register_creditor(
        self,
        name: str,
        actor_id: UUID,
        contact_email: str | None = None,
        contact_phone: str | None = None,
    ) -> CreditorInfo:
        return self._run(
            "register_creditor",
            lambda s: CreditorService(s, self._clock, self._audit(s)).register_creditor(
                name, actor_id, contact_email=contact_email, contact_phone=contact_phone
            ),
            actor_id=actor_id,
        )

    def update_creditor_contact(
        self,
        creditor_id: UUID,
        actor_id: UUID,
        contact_email: str | None = None,
        contact_phone: str | None = None,
    ) -> CreditorInfo:
        return self._run(
            "update_creditor_contact",
            lambda s: CreditorService(s, self._clock, self._audit(s)).update_contact(
                creditor_id, actor_id, contact_email=contact_email, contact_phone=contact_phone
            ),
            actor_id=actor_id,
        )

    def deactivate_creditor(self, creditor_id: UUID, actor_id: UUID) -> CreditorInfo:
        return self._run(
            "deactivate_creditor",
            lambda s: CreditorService(s, self._clock, self._audit(s)).deactivate_creditor(
                creditor_id, actor_id
            ),
            actor_id=actor_id,
        )

    def delete_creditor(self, creditor_id: UUID, actor_id: UUID) -> None:
        self._run(
            "delete_creditor",
            lambda s: CreditorService(s, self._clock, self._audit(s)).delete_creditor(
                creditor_id, actor_id
            ),
            actor_id=actor_id,
        )

    def get_creditor(self, creditor_id: UUID) -> CreditorInfo:
        return self._read(
            "get_creditor", lambda s: CreditorService(s, self._clock).get_creditor(creditor_id)
        )

    def list_creditors(self, active_only: bool = True) -> list[CreditorInfo]:
        return self._read(
            "list_creditors",
            lambda s: CreditorService(s, self._clock).list_creditors(active_only=active_only),
        )

    # ------------------------------------------------------------------
    # Fund Ledger
    # ------------------------------------------------------------------

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
    ) -> UUID:
        """Record one money movement and return its transaction id."""
        info = self._run(
            "record_transaction",
            lambda s: FundLedgerService(s, self._clock, self._audit(s)).record_transaction(
                case_id,
                kind,
                amount,
                occurred_at,
                actor_id,
                ref=ref,
                notes=notes,
                currency=currency,
            ),
            case_id,
            actor_id,
        )
        return info.id

    def available_funds(self, case_id: UUID) -> Decimal:
        return self._read(
            "available_funds", lambda s: FundsSelector(s).available_funds(case_id), case_id
        )

    def balance_as_of(self, case_id: UUID, at: datetime) -> Decimal:
        return self._read(
            "balance_as_of", lambda s: FundsSelector(s).balance_as_of(case_id, at), case_id
        )

    def funds_summary(self, case_id: UUID) -> FundsSummary:
        return self._read(
            "funds_summary", lambda s: FundsSelector(s).funds_summary(case_id), case_id
        )

    def list_transactions(
        self,
        case_id: UUID,
        kind: TransactionKind | str | None = None,
    ) -> list[TransactionInfo]:
        return self._read(
            "list_transactions",
            lambda s: FundsSelector(s).list_transactions(case_id, kind=kind),
            case_id,
        )

    # ------------------------------------------------------------------
    # Claims Register
    # ------------------------------------------------------------------

    def lodge_claim(
        self,
        case_id: UUID,
        creditor_id: UUID,
        amount_claimed: Decimal | str | int,
        actor_id: UUID,
    ) -> ClaimInfo:
        return self._run(
            "lodge_claim",
            lambda s: ClaimsRegisterService(s, self._clock, self._audit(s)).lodge_claim(
                case_id, creditor_id, amount_claimed, actor_id
            ),
            case_id,
            actor_id,
        )

    def transition(
        self,
        claim_id: UUID,
        to_status: ClaimStatus | str,
        actor_id: UUID,
        amount_admitted: Decimal | str | int | None = None,
    ) -> ClaimInfo:
        return self._run(
            "transition_claim",
            lambda s: ClaimsRegisterService(s, self._clock, self._audit(s)).transition(
                claim_id, to_status, actor_id, amount_admitted=amount_admitted
            ),
            actor_id=actor_id,
        )

    def get_claim(self, claim_id: UUID) -> ClaimInfo:
        return self._read("get_claim", lambda s: ClaimsSelector(s).get_claim(claim_id))

    def list_claims(
        self,
        case_id: UUID,
        status: ClaimStatus | str | None = None,
    ) -> list[ClaimInfo]:
        return self._read(
            "list_claims", lambda s: ClaimsSelector(s).list_claims(case_id, status=status), case_id
        )

    def admitted_total(self, case_id: UUID) -> Decimal:
        return self._read(
            "admitted_total", lambda s: ClaimsSelector(s).admitted_total(case_id), case_id
        )

    def claims_verification(self, case_id: UUID) -> ClaimsVerification:
        return self._read(
            "claims_verification",
            lambda s: ClaimsSelector(s).claims_verification(case_id),
            case_id,
        )

    # ------------------------------------------------------------------
    # Distribution Engine
    # ------------------------------------------------------------------

    def declare_distribution(
        self,
        case_id: UUID,
        round_no: int,
        total_amount: Decimal | str | int,
        actor_id: UUID,
        window_start: date | None = None,
        window_end: date | None = None,
    ) -> DistributionInfo:
        return self._run(
            "declare_distribution",
            lambda s: DistributionService(
                s, self._clock, self._audit(s), self._engine
            ).declare_distribution(
                case_id,
                round_no,
                total_amount,
                actor_id,
                window_start=window_start,
                window_end=window_end,
            ),
            case_id,
            actor_id,
        )

    def get_distribution(self, distribution_id: UUID) -> DistributionInfo:
        return self._read(
            "get_distribution",
            lambda s: DistributionSelector(s).get_distribution(distribution_id),
        )

    def list_distributions(self, case_id: UUID) -> list[DistributionInfo]:
        return self._read(
            "list_distributions",
            lambda s: DistributionSelector(s).list_distributions(case_id),
            case_id,
        )

    def distributed_total(self, case_id: UUID) -> Decimal:
        return self._read(
            "distributed_total",
            lambda s: DistributionSelector(s).distributed_total(case_id),
            case_id,
        )

    def distribution_progress(self, case_id: UUID) -> DistributionProgress:
        return self._read(
            "distribution_progress",
            lambda s: DistributionSelector(s).distribution_progress(case_id),
            case_id,
        )

    def remaining_distributable(self, case_id: UUID) -> Decimal:
        return self._read(
            "remaining_distributable",
            lambda s: DistributionService(s, self._clock).remaining_distributable(case_id),
            case_id,
        )

    # ------------------------------------------------------------------
    # Audit Trail
    # ------------------------------------------------------------------

    def history(
        self,
        case_id: UUID | None,
        since: datetime | None = None,
        page_size: int | None = None,
    ) -> ActivityHistory:
        """
        Lazy, restartable history of a case, newest first.

        Nothing is read until the result is iterated.  Each page runs in
        its own short transaction, so the result may be held and iterated
        long after this call returns.
        """

        def fetch_page(cursor: Cursor | None, limit: int):
            return self._read(
                "history_page",
                lambda s: ActivitySelector(s).page(case_id, since=since, after=cursor, limit=limit),
                case_id,
            )

        return ActivityHistory(fetch_page, page_size=page_size or self._history_page_size)

    def verify_audit_chain(self, case_id: UUID | None) -> int:
        """Recompute the case's hash chain; returns the number of entries checked."""
        return self._read(
            "verify_audit_chain",
            lambda s: AuditTrail(s, self._clock).verify_chain(case_id),
            case_id,
        )
