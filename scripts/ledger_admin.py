#!/usr/bin/env python3
"""
Administrative commands for the insolvency case ledger.

Usage:
    python scripts/ledger_admin.py init-db
    python scripts/ledger_admin.py summary --reference LIQ-2024-001
    python scripts/ledger_admin.py history --reference LIQ-2024-001 --limit 20
    python scripts/ledger_admin.py verify-audit --reference LIQ-2024-001

Settings come from get_active_config(): --config, then
INSOLVENCY_LEDGER_CONFIG, then the packaged default.  DATABASE_URL
overrides the database.

Exit codes: 0 success, 1 ledger error (unknown case, broken audit chain).
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from insolvency_config import get_active_config
from insolvency_kernel.exceptions import InsolvencyKernelError
from insolvency_kernel.logging_config import configure_logging
from insolvency_services import CaseLedger


def cmd_init_db(ledger: CaseLedger, args: argparse.Namespace) -> int:
    # Tables are created by CaseLedger.from_settings(create_schema=True)
    print("Database schema is ready.")
    return 0


def cmd_summary(ledger: CaseLedger, args: argparse.Namespace) -> int:
    case = ledger.get_case_by_reference(args.reference)
    funds = ledger.funds_summary(case.id)
    claims = ledger.claims_verification(case.id)
    progress = ledger.distribution_progress(case.id)

    print(f"Case {case.reference}  [{case.status.value}]  stage={case.stage}  currency={case.currency}")
    print(f"  id:                 {case.id}")
    print(f"  total in:           {funds.total_in}")
    print(f"  total out:          {funds.total_out}")
    print(f"  available funds:    {funds.available_funds}")
    print(f"  claims considered:  {claims.total_considered}")
    print(f"  claims admitted:    {claims.admitted_count} ({claims.admitted_pct}%)")
    print(f"  admitted total:     {ledger.admitted_total(case.id)}")
    print(f"  distributed total:  {progress.distributed_total}")
    print(f"  rounds declared:    {progress.round_count}")
    print(f"  remaining:          {ledger.remaining_distributable(case.id)}")
    return 0


def cmd_history(ledger: CaseLedger, args: argparse.Namespace) -> int:
    case = ledger.get_case_by_reference(args.reference)
    entries = ledger.history(case.id).take(args.limit)
    if not entries:
        print("No activity recorded.")
        return 0
    for entry in entries:
        print(
            f"{entry.created_at.isoformat()}  #{entry.seq:<6} {entry.action:<24} "
            f"{entry.entity_type}:{entry.entity_id}  actor={entry.actor_id}"
        )
    return 0


def cmd_verify_audit(ledger: CaseLedger, args: argparse.Namespace) -> int:
    case = ledger.get_case_by_reference(args.reference)
    count = ledger.verify_audit_chain(case.id)
    print(f"Audit chain for {case.reference} is intact ({count} entries).")
    return 0


COMMANDS = {
    "init-db": cmd_init_db,
    "summary": cmd_summary,
    "history": cmd_history,
    "verify-audit": cmd_verify_audit,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Insolvency case ledger administration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", type=Path, default=None, help="Settings YAML file")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create tables and seed sequence counters")

    p = sub.add_parser("summary", help="Funds, claims and distribution projections")
    p.add_argument("--reference", required=True, help="Case reference")

    p = sub.add_parser("history", help="Newest activity entries of a case")
    p.add_argument("--reference", required=True, help="Case reference")
    p.add_argument("--limit", type=int, default=50, help="Maximum entries (default 50)")

    p = sub.add_parser("verify-audit", help="Recompute the case's audit hash chain")
    p.add_argument("--reference", required=True, help="Case reference")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    settings = get_active_config(args.config)
    configure_logging(level=settings.log_level)
    ledger = CaseLedger.from_settings(settings, create_schema=args.command == "init-db")

    try:
        return COMMANDS[args.command](ledger, args)
    except InsolvencyKernelError as exc:
        print(f"Error [{exc.code}]: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
