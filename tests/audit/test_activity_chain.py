"""
Tests for the hash-chained activity log.

Covers:
- Chain linkage per case scope and for case-less entries
- Verification success and detection of tampering made outside the ORM
- Lazy, restartable, newest-first history with keyset pagination
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import text

from insolvency_kernel.exceptions import AuditChainBrokenError
from insolvency_kernel.services.audit_trail import AuditAction
from insolvency_kernel.utils.hashing import hash_activity_entry, hash_payload


class TestChainLinkage:
    def test_first_entry_of_a_case_is_genesis(self, create_case, activity_selector):
        case = create_case()

        (entry,) = activity_selector.page(case.id)
        assert entry.action == AuditAction.CASE_OPENED
        assert entry.prev_hash is None

    def test_entries_link_to_previous_hash(self, create_case, record_tx, activity_selector):
        case = create_case()
        record_tx(case.id, "receipt", "1.00")
        record_tx(case.id, "receipt", "2.00")

        newest_first = activity_selector.page(case.id)
        oldest_first = list(reversed(newest_first))
        assert oldest_first[0].prev_hash is None
        for prev, entry in zip(oldest_first, oldest_first[1:]):
            assert entry.prev_hash == prev.hash

    def test_cases_have_independent_chains(self, create_case, activity_selector):
        first = create_case()
        second = create_case()

        assert activity_selector.page(first.id)[0].prev_hash is None
        assert activity_selector.page(second.id)[0].prev_hash is None

    def test_hash_recomputable_from_stored_fields(self, create_case, activity_selector):
        case = create_case()
        (entry,) = activity_selector.page(case.id)

        assert entry.hash == hash_activity_entry(
            entity_type=entry.entity_type,
            entity_id=str(entry.entity_id),
            action=entry.action,
            payload_hash=hash_payload(entry.snapshot),
            prev_hash=entry.prev_hash,
        )

    def test_creditor_entries_form_caseless_chain(
        self, create_creditor, activity_selector, audit_trail
    ):
        create_creditor("Acme Pty Ltd")
        create_creditor("Bolt Holdings")

        entries = activity_selector.page(None)
        assert [e.action for e in entries] == [AuditAction.CREDITOR_REGISTERED] * 2
        assert entries[0].prev_hash == entries[1].hash
        assert audit_trail.verify_chain(None) == 2


class TestVerifyChain:
    def test_intact_chain_verifies(self, funded_case, audit_trail, captured_logs):
        # case.opened + two transactions
        assert audit_trail.verify_chain(funded_case.id) == 3
        assert any(r["message"] == "audit_chain_valid" for r in captured_logs())

    def test_empty_scope_verifies(self, audit_trail):
        assert audit_trail.verify_chain(None) == 0

    def test_rewritten_action_detected(self, funded_case, audit_trail, session):
        session.flush()
        session.execute(
            text(
                "UPDATE activity_log SET action = 'transaction.voided' "
                "WHERE case_id = :cid AND seq = :seq"
            ),
            {"cid": str(funded_case.id), "seq": self._newest_seq(session, funded_case.id)},
        )
        session.expire_all()

        with pytest.raises(AuditChainBrokenError):
            audit_trail.verify_chain(funded_case.id)

    def test_removed_entry_detected(self, funded_case, audit_trail, session):
        session.flush()
        middle = self._ordered_seqs(session, funded_case.id)[1]
        session.execute(
            text("DELETE FROM activity_log WHERE case_id = :cid AND seq = :seq"),
            {"cid": str(funded_case.id), "seq": middle},
        )
        session.expire_all()

        with pytest.raises(AuditChainBrokenError):
            audit_trail.verify_chain(funded_case.id)

    @staticmethod
    def _ordered_seqs(session, case_id) -> list[int]:
        rows = session.execute(
            text("SELECT seq FROM activity_log WHERE case_id = :cid ORDER BY seq"),
            {"cid": str(case_id)},
        ).scalars()
        return list(rows)

    @classmethod
    def _newest_seq(cls, session, case_id) -> int:
        return cls._ordered_seqs(session, case_id)[-1]


class TestHistory:
    def test_history_is_newest_first(
        self, create_case, record_tx, activity_selector, deterministic_clock
    ):
        case = create_case()
        for _ in range(3):
            deterministic_clock.advance(60)
            record_tx(case.id, "receipt", "1.00")

        entries = list(activity_selector.history(case.id))
        times = [e.created_at for e in entries]
        assert times == sorted(times, reverse=True)
        assert entries[-1].action == AuditAction.CASE_OPENED

    def test_same_instant_ordered_by_sequence(self, create_case, record_tx, activity_selector):
        case = create_case()
        record_tx(case.id, "receipt", "1.00")
        record_tx(case.id, "receipt", "2.00")

        seqs = [e.seq for e in activity_selector.history(case.id)]
        assert seqs == sorted(seqs, reverse=True)

    def test_pages_cover_everything_once(self, create_case, record_tx, activity_selector):
        case = create_case()
        for _ in range(6):
            record_tx(case.id, "receipt", "1.00")

        paged = [e.seq for e in activity_selector.history(case.id, page_size=2)]
        unpaged = [e.seq for e in activity_selector.history(case.id, page_size=100)]
        assert paged == unpaged
        assert len(paged) == 7

    def test_history_is_restartable(self, create_case, record_tx, activity_selector):
        case = create_case()
        record_tx(case.id, "receipt", "1.00")

        history = activity_selector.history(case.id, page_size=1)
        first_pass = [e.id for e in history]
        second_pass = [e.id for e in history]
        assert first_pass == second_pass

    def test_restart_sees_new_entries(self, create_case, record_tx, activity_selector):
        case = create_case()
        history = activity_selector.history(case.id)
        assert len(list(history)) == 1

        record_tx(case.id, "receipt", "1.00")
        assert len(list(history)) == 2

    def test_since_filters_older_entries(
        self, create_case, record_tx, activity_selector, deterministic_clock
    ):
        case = create_case()
        deterministic_clock.advance(3600)
        cutoff = deterministic_clock.now()
        record_tx(case.id, "receipt", "1.00")

        entries = list(activity_selector.history(case.id, since=cutoff))
        assert [e.action for e in entries] == [AuditAction.TRANSACTION_RECORDED]

    def test_take_limits_without_reading_everything(
        self, create_case, record_tx, activity_selector
    ):
        case = create_case()
        for _ in range(5):
            record_tx(case.id, "receipt", "1.00")

        newest = activity_selector.history(case.id, page_size=2).take(3)
        assert len(newest) == 3
        assert newest[0].action == AuditAction.TRANSACTION_RECORDED

    def test_since_accepts_other_timezones(
        self, create_case, activity_selector, deterministic_clock
    ):
        case = create_case()
        opened = deterministic_clock.now()
        plus_ten = timezone(timedelta(hours=10))

        local_equivalent = opened.astimezone(plus_ten)
        assert len(list(activity_selector.history(case.id, since=local_equivalent))) == 1
        later = local_equivalent + timedelta(seconds=1)
        assert list(activity_selector.history(case.id, since=later)) == []

    def test_invalid_page_size_rejected(self, activity_selector):
        with pytest.raises(ValueError):
            activity_selector.history(None, page_size=0)
