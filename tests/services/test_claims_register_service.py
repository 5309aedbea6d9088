"""
Tests for ClaimsRegisterService and ClaimsSelector.

Covers:
- Lodgement rules: duplicates, amounts, inactive creditors, closed cases
- The adjudication state machine and its terminal states
- The admitted-amount invariant
- Admitted totals and the claims verification projection
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from insolvency_kernel.exceptions import (
    CaseClosedError,
    ClaimNotFoundError,
    CreditorInactiveError,
    CreditorNotFoundError,
    DuplicateClaimError,
    InvalidTransitionError,
    ValidationError,
)
from insolvency_kernel.models.claim import ClaimStatus
from insolvency_kernel.services.audit_trail import AuditAction


class TestLodgeClaim:
    def test_lodged_claim_has_no_admitted_amount(self, create_case, create_claim):
        case = create_case()
        claim = create_claim(case.id, "500.00")

        assert claim.status == ClaimStatus.LODGED
        assert claim.amount_claimed == Decimal("500.00")
        assert claim.amount_admitted is None
        assert claim.adjudicated_at is None

    def test_duplicate_claim_for_same_creditor_rejected(
        self, create_case, create_creditor, create_claim
    ):
        case = create_case()
        creditor = create_creditor()
        create_claim(case.id, "100.00", creditor_id=creditor.id)

        with pytest.raises(DuplicateClaimError):
            create_claim(case.id, "200.00", creditor_id=creditor.id)

    def test_same_creditor_may_claim_in_two_cases(
        self, create_case, create_creditor, create_claim
    ):
        creditor = create_creditor()
        first = create_claim(create_case().id, "100.00", creditor_id=creditor.id)
        second = create_claim(create_case().id, "100.00", creditor_id=creditor.id)
        assert first.id != second.id

    def test_negative_amount_rejected(self, create_case, create_claim):
        case = create_case()
        with pytest.raises(ValidationError):
            create_claim(case.id, "-1.00")

    def test_closed_case_rejected(self, create_case, case_service, create_claim, test_actor_id):
        case = create_case()
        case_service.close_case(case.id, test_actor_id)
        with pytest.raises(CaseClosedError):
            create_claim(case.id, "1.00")

    def test_unknown_creditor_rejected(self, create_case, create_claim):
        case = create_case()
        with pytest.raises(CreditorNotFoundError):
            create_claim(case.id, "1.00", creditor_id=uuid4())

    def test_inactive_creditor_rejected(
        self, create_case, create_creditor, creditor_service, create_claim, test_actor_id
    ):
        case = create_case()
        creditor = create_creditor()
        creditor_service.deactivate_creditor(creditor.id, test_actor_id)

        with pytest.raises(CreditorInactiveError):
            create_claim(case.id, "1.00", creditor_id=creditor.id)

    def test_lodgement_recorded_in_activity_log(
        self, create_case, create_claim, activity_selector
    ):
        case = create_case()
        claim = create_claim(case.id, "75.00")

        (entry,) = activity_selector.entries_for_entity("Claim", claim.id)
        assert entry.action == AuditAction.CLAIM_LODGED
        assert entry.snapshot["amount_claimed"] == "75.00"
        assert entry.snapshot["status"] == "lodged"


class TestTransitions:
    def test_lodged_straight_to_admitted_then_back_fails(
        self, create_case, create_claim, claims_register, test_actor_id
    ):
        """Admitting 500.00 of 500.00 succeeds; moving back to lodged does not."""
        case = create_case()
        claim = create_claim(case.id, "500.00")

        admitted = claims_register.transition(
            claim.id, ClaimStatus.ADMITTED, test_actor_id, amount_admitted="500.00"
        )
        assert admitted.status == ClaimStatus.ADMITTED
        assert admitted.amount_admitted == Decimal("500.00")
        assert admitted.adjudicated_at is not None

        with pytest.raises(InvalidTransitionError) as exc_info:
            claims_register.transition(claim.id, ClaimStatus.LODGED, test_actor_id)
        assert exc_info.value.from_status == "admitted"

    def test_review_then_reject(self, create_case, create_claim, claims_register, test_actor_id):
        case = create_case()
        claim = create_claim(case.id, "300.00")

        reviewed = claims_register.transition(claim.id, "under_review", test_actor_id)
        assert reviewed.status == ClaimStatus.UNDER_REVIEW
        assert reviewed.adjudicated_at is None

        rejected = claims_register.transition(claim.id, "rejected", test_actor_id)
        assert rejected.status == ClaimStatus.REJECTED
        assert rejected.amount_admitted is None

    def test_review_then_partial_admission(
        self, create_case, create_claim, claims_register, test_actor_id
    ):
        case = create_case()
        claim = create_claim(case.id, "300.00")
        claims_register.transition(claim.id, "under_review", test_actor_id)

        admitted = claims_register.transition(
            claim.id, "admitted", test_actor_id, amount_admitted="120.50"
        )
        assert admitted.amount_admitted == Decimal("120.50")

    def test_admitted_amount_may_be_zero(
        self, create_case, create_claim, claims_register, test_actor_id
    ):
        case = create_case()
        claim = create_claim(case.id, "300.00")
        admitted = claims_register.transition(
            claim.id, "admitted", test_actor_id, amount_admitted="0.00"
        )
        assert admitted.amount_admitted == Decimal("0.00")

    @pytest.mark.parametrize("terminal", ["admitted", "rejected"])
    @pytest.mark.parametrize("target", ["lodged", "under_review", "admitted", "rejected"])
    def test_terminal_states_have_no_exits(
        self, create_case, create_claim, claims_register, test_actor_id, terminal, target
    ):
        case = create_case()
        claim = create_claim(case.id, "10.00")
        claims_register.transition(
            claim.id,
            terminal,
            test_actor_id,
            amount_admitted="10.00" if terminal == "admitted" else None,
        )

        with pytest.raises(InvalidTransitionError):
            claims_register.transition(
                claim.id,
                target,
                test_actor_id,
                amount_admitted="10.00" if target == "admitted" else None,
            )

    def test_under_review_cannot_return_to_lodged(
        self, create_case, create_claim, claims_register, test_actor_id
    ):
        case = create_case()
        claim = create_claim(case.id, "10.00")
        claims_register.transition(claim.id, "under_review", test_actor_id)
        with pytest.raises(InvalidTransitionError):
            claims_register.transition(claim.id, "lodged", test_actor_id)

    def test_self_transition_rejected(
        self, create_case, create_claim, claims_register, test_actor_id
    ):
        case = create_case()
        claim = create_claim(case.id, "10.00")
        with pytest.raises(InvalidTransitionError):
            claims_register.transition(claim.id, "lodged", test_actor_id)

    def test_unknown_status_rejected(
        self, create_case, create_claim, claims_register, test_actor_id
    ):
        case = create_case()
        claim = create_claim(case.id, "10.00")
        with pytest.raises(InvalidTransitionError, match="unknown status"):
            claims_register.transition(claim.id, "withdrawn", test_actor_id)

    def test_unknown_claim_rejected(self, claims_register, test_actor_id):
        with pytest.raises(ClaimNotFoundError):
            claims_register.transition(uuid4(), "rejected", test_actor_id)


class TestAdmittedAmountInvariant:
    def test_admission_requires_amount(
        self, create_case, create_claim, claims_register, test_actor_id
    ):
        case = create_case()
        claim = create_claim(case.id, "10.00")
        with pytest.raises(InvalidTransitionError, match="required"):
            claims_register.transition(claim.id, "admitted", test_actor_id)

    def test_admitted_amount_cannot_exceed_claimed(
        self, create_case, create_claim, claims_register, test_actor_id
    ):
        case = create_case()
        claim = create_claim(case.id, "10.00")
        with pytest.raises(InvalidTransitionError, match="exceeds"):
            claims_register.transition(
                claim.id, "admitted", test_actor_id, amount_admitted="10.01"
            )

    def test_negative_admitted_amount_rejected(
        self, create_case, create_claim, claims_register, test_actor_id
    ):
        case = create_case()
        claim = create_claim(case.id, "10.00")
        with pytest.raises(InvalidTransitionError):
            claims_register.transition(
                claim.id, "admitted", test_actor_id, amount_admitted="-1.00"
            )

    def test_amount_on_non_admission_rejected(
        self, create_case, create_claim, claims_register, test_actor_id
    ):
        case = create_case()
        claim = create_claim(case.id, "10.00")
        with pytest.raises(InvalidTransitionError):
            claims_register.transition(
                claim.id, "rejected", test_actor_id, amount_admitted="5.00"
            )

    def test_failed_transition_leaves_claim_unchanged(
        self, create_case, create_claim, claims_register, claims_selector, test_actor_id
    ):
        case = create_case()
        claim = create_claim(case.id, "10.00")
        with pytest.raises(InvalidTransitionError):
            claims_register.transition(
                claim.id, "admitted", test_actor_id, amount_admitted="99.00"
            )

        current = claims_selector.get_claim(claim.id)
        assert current.status == ClaimStatus.LODGED
        assert current.amount_admitted is None

    def test_transition_snapshot_records_previous_status(
        self, create_case, create_claim, claims_register, activity_selector, test_actor_id
    ):
        case = create_case()
        claim = create_claim(case.id, "10.00")
        claims_register.transition(claim.id, "admitted", test_actor_id, amount_admitted="10.00")

        entries = activity_selector.entries_for_entity("Claim", claim.id)
        assert [e.action for e in entries] == [
            AuditAction.CLAIM_LODGED,
            AuditAction.CLAIM_TRANSITIONED,
        ]
        assert entries[1].snapshot["previous_status"] == "lodged"
        assert entries[1].snapshot["amount_admitted"] == "10.00"


class TestClaimsQueries:
    def test_admitted_total_sums_admitted_claims_only(
        self, create_case, create_claim, claims_selector
    ):
        case = create_case()
        create_claim(case.id, "6000.00", admitted="6000.00")
        create_claim(case.id, "2500.00", admitted="2000.00")
        create_claim(case.id, "900.00")

        assert claims_selector.admitted_total(case.id) == Decimal("8000.00")

    def test_admitted_total_of_empty_case_is_zero(self, create_case, claims_selector):
        assert claims_selector.admitted_total(create_case().id) == Decimal("0.00")

    def test_admitted_claims_ordered_by_creditor(
        self, create_case, create_claim, claims_selector
    ):
        case = create_case()
        for _ in range(4):
            create_claim(case.id, "1.00", admitted="1.00")

        creditor_ids = [c.creditor_id for c in claims_selector.admitted_claims(case.id)]
        assert creditor_ids == sorted(creditor_ids)

    def test_list_claims_filtered_by_status(
        self, create_case, create_claim, claims_selector
    ):
        case = create_case()
        create_claim(case.id, "1.00", admitted="1.00")
        lodged = create_claim(case.id, "2.00")

        assert [c.id for c in claims_selector.list_claims(case.id, status="lodged")] == [lodged.id]
        assert len(claims_selector.list_claims(case.id)) == 2

    def test_claims_verification_excludes_rejected(
        self, create_case, create_claim, claims_register, claims_selector, test_actor_id
    ):
        case = create_case()
        create_claim(case.id, "1.00", admitted="1.00")
        create_claim(case.id, "1.00")
        create_claim(case.id, "1.00")
        rejected = create_claim(case.id, "1.00")
        claims_register.transition(rejected.id, "rejected", test_actor_id)

        verification = claims_selector.claims_verification(case.id)
        assert verification.total_considered == 3
        assert verification.admitted_count == 1
        assert verification.admitted_pct == Decimal("33.33")

    def test_claims_verification_with_no_claims(self, create_case, claims_selector):
        verification = claims_selector.claims_verification(create_case().id)
        assert verification.total_considered == 0
        assert verification.admitted_pct == Decimal("0.00")
