"""
SequenceService -- ordering numbers for ledger records.

Responsibility:
    Hands out the ``seq`` numbers that order a case's fund transactions
    recorded at the same instant and fix the order of its activity log hash
    chain.  Case-less activity (creditor maintenance, case deletion) takes
    its numbers from one global counter row.

Architecture position:
    Kernel > Services -- infrastructure used by FundLedgerService and
    AuditTrail inside their caller's transaction.

Invariants enforced:
    - Per-case numbers live on the case row and are allocated by
      ``UPDATE cases SET <counter> = <counter> + 1``.  Callers hold the case
      lock already, so allocation adds no contention, and writers on
      different cases never touch a shared row.
    - Case-less numbers come from ``sequence_counters`` with the same
      increment-then-read pattern.  MAX()+1 is never used.
    - Values committed for one counter are strictly increasing.  A rolled
      back transaction leaves no trace in the counter.

Failure modes:
    - KeyError: unknown counter name, or an unseeded global counter.
    - CaseNotFoundError: per-case allocation for a case that does not exist.
    - Lock waits on a counter row surface as ConflictError from
      ``session_scope()``.
"""

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from insolvency_kernel.exceptions import CaseNotFoundError
from insolvency_kernel.logging_config import get_logger
from insolvency_kernel.models.case import Case
from insolvency_kernel.models.sequence_counter import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """Per-case and case-less sequences; never commits."""

    TRANSACTION = "transaction"
    ACTIVITY_LOG = "activity_log"

    # Global counter rows; only the case-less activity chain needs one
    SEEDED = (ACTIVITY_LOG,)

    CASE_COUNTERS = {
        TRANSACTION: Case.transaction_seq,
        ACTIVITY_LOG: Case.activity_seq,
    }

    def __init__(self, session: Session):
        self._session = session

    def next_value(self, name: str, case_id: UUID | None = None) -> int:
        """Allocate the next value of counter ``name`` for ``case_id`` (None: case-less)."""
        if case_id is None:
            value = self._next_global(name)
        else:
            value = self._next_for_case(name, case_id)
        logger.debug(
            "sequence_allocated",
            extra={
                "sequence_name": name,
                "case_id": str(case_id) if case_id is not None else None,
                "value": value,
            },
        )
        return value

    def current_value(self, name: str, case_id: UUID | None = None) -> int | None:
        """Last allocated value (0 if none yet), or None for an unknown counter or case."""
        if case_id is None:
            stmt = select(SequenceCounter.current_value).where(SequenceCounter.name == name)
        else:
            column = self.CASE_COUNTERS.get(name)
            if column is None:
                return None
            stmt = select(column).where(Case.id == case_id)
        return self._session.execute(stmt).scalar_one_or_none()

    def _next_for_case(self, name: str, case_id: UUID) -> int:
        column = self.CASE_COUNTERS.get(name)
        if column is None:
            raise KeyError(f"No per-case sequence counter {name!r}")
        bumped = self._session.execute(
            update(Case)
            .where(Case.id == case_id)
            .values({column: column + 1})
            .execution_options(synchronize_session=False)
        )
        if bumped.rowcount != 1:
            raise CaseNotFoundError(str(case_id))
        return int(self._session.execute(select(column).where(Case.id == case_id)).scalar_one())

    def _next_global(self, name: str) -> int:
        bumped = self._session.execute(
            update(SequenceCounter)
            .where(SequenceCounter.name == name)
            .values(current_value=SequenceCounter.current_value + 1)
            .execution_options(synchronize_session=False)
        )
        if bumped.rowcount != 1:
            raise KeyError(f"Sequence counter {name!r} is not seeded; run create_tables()")
        return int(self.current_value(name))

    def initialize_sequences(self) -> None:
        """Seed every counter in SEEDED that does not exist yet."""
        existing = set(
            self._session.execute(
                select(SequenceCounter.name).where(SequenceCounter.name.in_(self.SEEDED))
            ).scalars()
        )
        missing = [name for name in self.SEEDED if name not in existing]
        for name in missing:
            self._session.add(SequenceCounter(name=name, current_value=0))
        self._session.flush()
        if missing:
            logger.info("sequences_seeded", extra={"sequence_names": missing})
