"""
Insolvency Kernel - Case Ledger & Distribution Engine

A case-scoped, append-only financial core with:
- Fund ledger derived by recomputation (no stored balances)
- Claims register with an enforced adjudication state machine
- Pro-rata distribution rounds with exact-sum apportionment
- Hash-chained activity log for reconstruction and disputes
"""

__version__ = "0.1.0"
