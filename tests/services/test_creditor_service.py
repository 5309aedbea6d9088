"""Tests for CreditorService."""

from uuid import uuid4

import pytest

from insolvency_kernel.exceptions import (
    CreditorNotFoundError,
    CreditorReferencedError,
    ValidationError,
)
from insolvency_kernel.services.audit_trail import AuditAction


class TestCreditorService:
    def test_register(self, creditor_service, test_actor_id):
        creditor = creditor_service.register_creditor(
            "  Acme Pty Ltd ", test_actor_id, contact_email="ap@acme.example"
        )

        assert creditor.name == "Acme Pty Ltd"
        assert creditor.contact_email == "ap@acme.example"
        assert creditor.contact_phone is None
        assert creditor.is_active

    def test_blank_name_rejected(self, creditor_service, test_actor_id):
        with pytest.raises(ValidationError):
            creditor_service.register_creditor(" ", test_actor_id)

    def test_update_contact(self, create_creditor, creditor_service, test_actor_id):
        creditor = create_creditor()
        updated = creditor_service.update_contact(
            creditor.id, test_actor_id, contact_phone="+61 2 5550 1234"
        )

        assert updated.contact_phone == "+61 2 5550 1234"
        assert updated.contact_email is None

    def test_deactivate_is_idempotent(
        self, create_creditor, creditor_service, activity_selector, test_actor_id
    ):
        creditor = create_creditor()
        creditor_service.deactivate_creditor(creditor.id, test_actor_id)
        again = creditor_service.deactivate_creditor(creditor.id, test_actor_id)

        assert not again.is_active
        actions = [e.action for e in activity_selector.entries_for_entity("Creditor", creditor.id)]
        assert actions == [AuditAction.CREDITOR_REGISTERED, AuditAction.CREDITOR_DEACTIVATED]

    def test_list_active_only(self, create_creditor, creditor_service, test_actor_id):
        active = create_creditor("Alpha")
        inactive = create_creditor("Beta")
        creditor_service.deactivate_creditor(inactive.id, test_actor_id)

        assert [c.id for c in creditor_service.list_creditors()] == [active.id]
        assert len(creditor_service.list_creditors(active_only=False)) == 2

    def test_delete_unreferenced_creditor(
        self, create_creditor, creditor_service, activity_selector, test_actor_id
    ):
        creditor = create_creditor()
        creditor_service.delete_creditor(creditor.id, test_actor_id)

        with pytest.raises(CreditorNotFoundError):
            creditor_service.get_creditor(creditor.id)
        actions = [e.action for e in activity_selector.entries_for_entity("Creditor", creditor.id)]
        assert actions[-1] == AuditAction.CREDITOR_DELETED

    def test_delete_referenced_creditor_blocked(
        self, create_case, create_claim, creditor_service, test_actor_id
    ):
        claim = create_claim(create_case().id, "1.00")
        with pytest.raises(CreditorReferencedError):
            creditor_service.delete_creditor(claim.creditor_id, test_actor_id)

    def test_unknown_creditor(self, creditor_service, test_actor_id):
        with pytest.raises(CreditorNotFoundError):
            creditor_service.deactivate_creditor(uuid4(), test_actor_id)
