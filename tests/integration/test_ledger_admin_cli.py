"""
Tests for the ledger_admin command line.

Each test points DATABASE_URL at a fresh SQLite file so the commands and
the test share one database across separate engines.
"""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from insolvency_config import CONFIG_ENV_VAR, DATABASE_URL_ENV_VAR, LedgerSettings
from insolvency_kernel.db.engine import reset_engine
from insolvency_services import CaseLedger
from scripts.ledger_admin import build_parser, main


@pytest.fixture
def database_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'admin.db'}"
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.setenv(DATABASE_URL_ENV_VAR, url)
    yield url
    reset_engine()


@pytest.fixture
def populated_case(database_url):
    assert main(["init-db"]) == 0
    actor = uuid4()
    ledger = CaseLedger.from_settings(LedgerSettings(database_url=database_url))
    case = ledger.open_case("LIQ-CLI-1", actor)
    ledger.record_transaction(
        case.id, "receipt", "900.00", datetime(2024, 1, 5, tzinfo=timezone.utc), actor
    )
    creditor = ledger.register_creditor("Cli Creditor", actor)
    claim = ledger.lodge_claim(case.id, creditor.id, "300.00", actor)
    ledger.transition(claim.id, "admitted", actor, amount_admitted="300.00")
    ledger.declare_distribution(case.id, 1, "150.00", actor)
    return case


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_reference_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["summary"])

    def test_history_limit_default(self):
        args = build_parser().parse_args(["history", "--reference", "X"])
        assert args.limit == 50


class TestCommands:
    def test_init_db(self, database_url, capsys):
        assert main(["init-db"]) == 0
        assert "schema is ready" in capsys.readouterr().out

    def test_summary(self, populated_case, capsys):
        assert main(["summary", "--reference", "LIQ-CLI-1"]) == 0

        out = capsys.readouterr().out
        assert "Case LIQ-CLI-1  [open]" in out
        assert "available funds:    900.00" in out
        assert "distributed total:  150.00" in out
        assert "remaining:          750.00" in out

    def test_history(self, populated_case, capsys):
        assert main(["history", "--reference", "LIQ-CLI-1", "--limit", "2"]) == 0

        lines = capsys.readouterr().out.strip().splitlines()
        assert len(lines) == 2
        assert "distribution.declared" in lines[0]

    def test_verify_audit(self, populated_case, capsys):
        assert main(["verify-audit", "--reference", "LIQ-CLI-1"]) == 0
        assert "intact (5 entries)" in capsys.readouterr().out

    def test_unknown_case_exits_with_error(self, populated_case, capsys):
        assert main(["summary", "--reference", "NOPE"]) == 1
        assert "Error [" in capsys.readouterr().err
