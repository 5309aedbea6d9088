"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write-side service, plus the case-level lock every mutating
    ledger operation takes before it reads anything.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or roll back themselves.  The caller
      (CaseLedger or a test harness) owns commit/rollback.
    - Case-level mutual exclusion: ``_lock_case`` takes ``SELECT ... FOR
      UPDATE`` on the case row and then compare-and-increments
      ``ledger_version``.  Two writers on one case can never both commit
      against the same snapshot; the loser gets ConflictError.  Every read
      made after the lock sees one consistent cross-entity snapshot.

Failure modes:
    - CaseNotFoundError if the case does not exist.
    - CaseClosedError if the case is closed and the operation requires it
      to be open or on hold.
    - ConflictError if the case's ledger_version moved underneath us.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from insolvency_kernel.db.base import Base
from insolvency_kernel.domain.clock import Clock, SystemClock
from insolvency_kernel.exceptions import CaseClosedError, CaseNotFoundError, ConflictError
from insolvency_kernel.logging_config import get_logger
from insolvency_kernel.models.case import Case

logger = get_logger("services.base")

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - Does NOT provide read projections; those live in
          ``insolvency_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        """
        Args:
            session: SQLAlchemy session for database operations.
            clock: Time source for recorded timestamps. Defaults to SystemClock.
        """
        self.session = session
        self.clock = clock or SystemClock()

    def _lock_case(
        self,
        case_id: UUID,
        operation: str,
        allow_closed: bool = False,
    ) -> Case:
        """
        Acquire the case for a mutating ledger operation.

        Preconditions:
            - Called before any other read the operation depends on.
        Postconditions:
            - The case row is locked until the transaction ends and its
              ledger_version has been bumped by exactly one.

        Raises:
            CaseNotFoundError, CaseClosedError, ConflictError.
        """
        case = self.session.execute(
            select(Case)
            .where(Case.id == case_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if case is None:
            raise CaseNotFoundError(str(case_id))

        if case.is_closed and not allow_closed:
            logger.warning(
                "case_closed_rejected",
                extra={"case_id": str(case_id), "operation": operation},
            )
            raise CaseClosedError(str(case_id), operation)

        version = case.ledger_version
        result = self.session.execute(
            update(Case)
            .where(Case.id == case_id, Case.ledger_version == version)
            .values(ledger_version=version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "case_version_conflict",
                extra={"case_id": str(case_id), "operation": operation, "version": version},
            )
            raise ConflictError("Case", str(case_id), "ledger_version changed concurrently")

        set_committed_value(case, "ledger_version", version + 1)
        return case
