"""
insolvency_services -- transactional facade over the insolvency kernel.

``CaseLedger`` is the entry point collaborators use; it owns commit and
rollback and retries ConflictError within configured bounds.
"""

from insolvency_services.case_ledger import CaseLedger

__all__ = ["CaseLedger"]
