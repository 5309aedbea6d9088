"""Services for the insolvency kernel (write side)."""

from insolvency_kernel.services.audit_trail import AuditAction, AuditTrail
from insolvency_kernel.services.case_service import CaseService
from insolvency_kernel.services.claims_register import ClaimsRegisterService
from insolvency_kernel.services.creditor_service import CreditorService
from insolvency_kernel.services.distribution_engine import DistributionService
from insolvency_kernel.services.fund_ledger import FundLedgerService
from insolvency_kernel.services.sequence_service import SequenceService

__all__ = [
    "AuditAction",
    "AuditTrail",
    "CaseService",
    "ClaimsRegisterService",
    "CreditorService",
    "DistributionService",
    "FundLedgerService",
    "SequenceService",
]
