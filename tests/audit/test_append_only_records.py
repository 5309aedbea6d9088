"""
Tests for ORM immutability enforcement.

Covers:
- Transactions, activity entries, distributions and their lines reject
  UPDATE and DELETE
- Claim identity is frozen and terminal claims are frozen entirely
- Closed cases keep their status, reference and closed_at
- Creditors with financial history cannot be deleted
- Listener registration is idempotent
"""

from decimal import Decimal

import pytest
from sqlalchemy import event, select

from insolvency_kernel.db.immutability import (
    _check_append_only_update,
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from insolvency_kernel.exceptions import CreditorReferencedError, ImmutabilityViolationError
from insolvency_kernel.models.activity_log import ActivityLogEntry
from insolvency_kernel.models.case import Case
from insolvency_kernel.models.claim import Claim
from insolvency_kernel.models.distribution import Distribution, DistributionLine
from insolvency_kernel.models.transaction import FundTransaction


class TestAppendOnlyRecords:
    def test_transaction_update_blocked(self, create_case, record_tx, session):
        case = create_case()
        tx = record_tx(case.id, "receipt", "100.00")

        row = session.get(FundTransaction, tx.id)
        row.amount = Decimal("1.00")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_transaction_delete_blocked(self, create_case, record_tx, session):
        case = create_case()
        tx = record_tx(case.id, "receipt", "100.00")

        session.delete(session.get(FundTransaction, tx.id))
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_activity_entry_update_blocked(self, create_case, session):
        case = create_case()
        entry = session.execute(
            select(ActivityLogEntry).where(ActivityLogEntry.case_id == case.id)
        ).scalar_one()

        entry.action = "case.forged"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_activity_entry_delete_blocked(self, create_case, session):
        case = create_case()
        entry = session.execute(
            select(ActivityLogEntry).where(ActivityLogEntry.case_id == case.id)
        ).scalar_one()

        session.delete(entry)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_distribution_and_lines_frozen(
        self, funded_case, create_claim, distribution_service, session, test_actor_id
    ):
        create_claim(funded_case.id, "10.00", admitted="10.00")
        dist = distribution_service.declare_distribution(
            funded_case.id, 1, "100.00", test_actor_id
        )

        row = session.get(Distribution, dist.id)
        row.total_amount = Decimal("50.00")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_distribution_line_amount_frozen(
        self, funded_case, create_claim, distribution_service, session, test_actor_id
    ):
        create_claim(funded_case.id, "10.00", admitted="10.00")
        distribution_service.declare_distribution(funded_case.id, 1, "100.00", test_actor_id)

        line = session.execute(select(DistributionLine)).scalar_one()
        line.amount = Decimal("99.99")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestClaimImmutability:
    def test_amount_claimed_frozen(self, create_case, create_claim, session):
        case = create_case()
        claim = create_claim(case.id, "100.00")

        row = session.get(Claim, claim.id)
        row.amount_claimed = Decimal("200.00")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_terminal_claim_frozen(self, create_case, create_claim, session):
        case = create_case()
        claim = create_claim(case.id, "100.00", admitted="100.00")

        row = session.get(Claim, claim.id)
        row.amount_admitted = Decimal("50.00")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_claim_delete_blocked(self, create_case, create_claim, session):
        case = create_case()
        claim = create_claim(case.id, "100.00")

        session.delete(session.get(Claim, claim.id))
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestCaseImmutability:
    def test_closed_case_cannot_reopen_through_orm(
        self, create_case, case_service, session, test_actor_id
    ):
        case = create_case()
        case_service.close_case(case.id, test_actor_id)

        row = session.get(Case, case.id)
        row.status = "open"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_closed_case_stage_still_editable(
        self, create_case, case_service, session, test_actor_id
    ):
        case = create_case()
        case_service.close_case(case.id, test_actor_id)

        row = session.get(Case, case.id)
        row.stage = "archived"
        session.flush()
        assert session.get(Case, case.id).stage == "archived"


class TestCreditorDeletion:
    def test_creditor_with_claim_cannot_be_deleted(
        self, create_case, create_claim, creditor_service, test_actor_id
    ):
        case = create_case()
        claim = create_claim(case.id, "100.00")

        with pytest.raises(CreditorReferencedError):
            creditor_service.delete_creditor(claim.creditor_id, test_actor_id)


class TestRegistration:
    def test_register_twice_is_noop(self, db_engine):
        register_immutability_listeners()
        register_immutability_listeners()
        assert event.contains(FundTransaction, "before_update", _check_append_only_update)

    def test_unregister_then_register_restores_protection(
        self, create_case, record_tx, session
    ):
        case = create_case()
        info = record_tx(case.id, "receipt", "10.00")

        unregister_immutability_listeners()
        try:
            assert not event.contains(FundTransaction, "before_update", _check_append_only_update)
        finally:
            register_immutability_listeners()

        row = session.get(FundTransaction, info.id)
        row.notes = "edited"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
