"""
Domain layer: injectable clock and immutable DTOs / read projections.

Nothing here performs I/O (except SystemClock, the sanctioned time source).
"""

from insolvency_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from insolvency_kernel.domain.dtos import (
    ActivityEntryInfo,
    CaseInfo,
    ClaimInfo,
    ClaimsVerification,
    CreditorInfo,
    DistributionInfo,
    DistributionLineInfo,
    DistributionProgress,
    FundsSummary,
    TransactionInfo,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "ActivityEntryInfo",
    "CaseInfo",
    "ClaimInfo",
    "ClaimsVerification",
    "CreditorInfo",
    "DistributionInfo",
    "DistributionLineInfo",
    "DistributionProgress",
    "FundsSummary",
    "TransactionInfo",
]
