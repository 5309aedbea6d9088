"""ORM models for the case ledger."""

from insolvency_kernel.models.activity_log import ActivityLogEntry
from insolvency_kernel.models.case import VALID_CASE_TRANSITIONS, Case, CaseStatus
from insolvency_kernel.models.claim import (
    TERMINAL_CLAIM_STATUSES,
    VALID_CLAIM_TRANSITIONS,
    Claim,
    ClaimStatus,
)
from insolvency_kernel.models.creditor import Creditor
from insolvency_kernel.models.distribution import Distribution, DistributionLine
from insolvency_kernel.models.sequence_counter import SequenceCounter
from insolvency_kernel.models.transaction import (
    INFLOW_KINDS,
    OUTFLOW_KINDS,
    FundTransaction,
    TransactionKind,
)

__all__ = [
    "ActivityLogEntry",
    "Case",
    "CaseStatus",
    "VALID_CASE_TRANSITIONS",
    "Claim",
    "ClaimStatus",
    "TERMINAL_CLAIM_STATUSES",
    "VALID_CLAIM_TRANSITIONS",
    "Creditor",
    "Distribution",
    "DistributionLine",
    "SequenceCounter",
    "FundTransaction",
    "TransactionKind",
    "INFLOW_KINDS",
    "OUTFLOW_KINDS",
]
