"""Selectors for the insolvency kernel (read side)."""

from insolvency_kernel.selectors.activity_selector import (
    ActivityHistory,
    ActivitySelector,
)
from insolvency_kernel.selectors.claims_selector import ClaimsSelector
from insolvency_kernel.selectors.distribution_selector import DistributionSelector
from insolvency_kernel.selectors.funds_selector import FundsSelector

__all__ = [
    "ActivityHistory",
    "ActivitySelector",
    "ClaimsSelector",
    "DistributionSelector",
    "FundsSelector",
]
