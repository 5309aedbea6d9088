"""
Typed Exception Hierarchy for the Insolvency Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Case ledger errors are reported synchronously to the caller and must be
handled precisely. Callers catch by TYPE, read a machine-readable CODE, and
use structured attributes instead of parsing messages:

    try:
        engine.declare_distribution(case_id, round_no=2, total_amount=total)
    except InsufficientFundsError as e:
        api_response(code=e.code, requested=e.requested, available=e.available)
    except ConflictError:
        retry()  # the only retryable kind

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from InsolvencyKernelError:

    InsolvencyKernelError (base)
    |
    +-- ValidationError
    |   +-- CaseNotFoundError
    |   +-- CaseClosedError
    |   +-- DuplicateCaseReferenceError
    |   +-- InvalidCaseTransitionError
    |   +-- CreditorNotFoundError
    |   +-- CreditorInactiveError
    |   +-- ClaimNotFoundError
    |   +-- DistributionNotFoundError
    |   +-- CurrencyMismatchError
    |   +-- DistributionError
    |       +-- InvalidRoundError
    |       +-- InsufficientFundsError
    |       +-- NoAdmittedClaimsError
    |       +-- DistributionInvariantError
    |
    +-- ClaimError
    |   +-- DuplicateClaimError
    |   +-- InvalidTransitionError
    |
    +-- ConcurrencyError
    |   +-- ConflictError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |   +-- CreditorReferencedError
    |
    +-- AuditError
        +-- AuditChainBrokenError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Malformed or out-of-range input
                | CASE_NOT_FOUND              | Case ID doesn't exist
                | CASE_CLOSED                 | Ledger operation on a closed case
                | DUPLICATE_CASE_REFERENCE    | Case reference already used
                | INVALID_CASE_TRANSITION     | Case status change not permitted
                | CREDITOR_NOT_FOUND          | Creditor ID doesn't exist
                | CREDITOR_INACTIVE           | Deactivated creditor lodging a claim
                | CLAIM_NOT_FOUND             | Claim ID doesn't exist
                | DISTRIBUTION_NOT_FOUND      | Distribution ID doesn't exist
                | CURRENCY_MISMATCH           | Transaction currency != case currency
----------------|-----------------------------|-----------------------------------------
Distribution    | INVALID_ROUND               | Round number reused or not increasing
                | INSUFFICIENT_FUNDS          | Amount exceeds remaining funds
                | NO_ADMITTED_CLAIMS          | Nothing to apportion against
----------------|-----------------------------|-----------------------------------------
Claim           | DUPLICATE_CLAIM             | Claim exists for (case, creditor)
                | INVALID_TRANSITION          | Illegal claim status change
----------------|-----------------------------|-----------------------------------------
Concurrency     | CONFLICT                    | Concurrent modification (retryable)
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Modifying an append-only record
                | CREDITOR_REFERENCED         | Deleting creditor with history
----------------|-----------------------------|-----------------------------------------
Audit           | AUDIT_CHAIN_BROKEN          | Hash chain validation failed

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Only ConflictError is expected to be retried.  Every other error is a
   deterministic rejection of the request; retrying it yields the same
   result.

2. No error is ever partially applied.  The failing operation's transaction
   is rolled back as a unit by the session scope.

3. AuditChainBrokenError is never raised by a mutation.  It comes from
   explicit chain verification and means the activity log was tampered
   with outside the application.
"""

from decimal import Decimal


class InsolvencyKernelError(Exception):
    """
    Base exception for all insolvency kernel errors.

    All subclasses carry a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INSOLVENCY_KERNEL_ERROR"


# Validation exceptions


class ValidationError(InsolvencyKernelError):
    """Malformed or out-of-range input, or an operation on a closed case."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class CaseNotFoundError(ValidationError):
    """Case with given ID was not found."""

    code: str = "CASE_NOT_FOUND"

    def __init__(self, case_id: str):
        self.case_id = case_id
        super().__init__(f"Case not found: {case_id}", field="case_id")


class CaseClosedError(ValidationError):
    """Closed cases are immutable to every ledger operation."""

    code: str = "CASE_CLOSED"

    def __init__(self, case_id: str, operation: str):
        self.case_id = case_id
        self.operation = operation
        super().__init__(
            f"Cannot {operation}: case {case_id} is closed", field="case_id"
        )


class DuplicateCaseReferenceError(ValidationError):
    """Case reference is already in use."""

    code: str = "DUPLICATE_CASE_REFERENCE"

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(
            f"Case reference already exists: {reference}", field="reference"
        )


class InvalidCaseTransitionError(ValidationError):
    """Case status change is not permitted."""

    code: str = "INVALID_CASE_TRANSITION"

    def __init__(self, case_id: str, from_status: str, to_status: str):
        self.case_id = case_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Case {case_id} cannot move from {from_status} to {to_status}",
            field="status",
        )


class CreditorNotFoundError(ValidationError):
    """Creditor with given ID was not found."""

    code: str = "CREDITOR_NOT_FOUND"

    def __init__(self, creditor_id: str):
        self.creditor_id = creditor_id
        super().__init__(f"Creditor not found: {creditor_id}", field="creditor_id")


class CreditorInactiveError(ValidationError):
    """Deactivated creditors cannot lodge new claims."""

    code: str = "CREDITOR_INACTIVE"

    def __init__(self, creditor_id: str):
        self.creditor_id = creditor_id
        super().__init__(
            f"Creditor {creditor_id} is inactive", field="creditor_id"
        )


class ClaimNotFoundError(ValidationError):
    """Claim with given ID was not found."""

    code: str = "CLAIM_NOT_FOUND"

    def __init__(self, claim_id: str):
        self.claim_id = claim_id
        super().__init__(f"Claim not found: {claim_id}", field="claim_id")


class DistributionNotFoundError(ValidationError):
    """Distribution with given ID was not found."""

    code: str = "DISTRIBUTION_NOT_FOUND"

    def __init__(self, distribution_id: str):
        self.distribution_id = distribution_id
        super().__init__(
            f"Distribution not found: {distribution_id}", field="distribution_id"
        )


class CurrencyMismatchError(ValidationError):
    """Transaction currency differs from the case currency."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, case_id: str, case_currency: str, currency: str):
        self.case_id = case_id
        self.case_currency = case_currency
        self.currency = currency
        super().__init__(
            f"Case {case_id} is kept in {case_currency}, got {currency}",
            field="currency",
        )


# Distribution exceptions


class DistributionError(ValidationError):
    """Base exception for distribution declaration failures."""

    code: str = "DISTRIBUTION_ERROR"


class InvalidRoundError(DistributionError):
    """Round number is reused, retroactive, or not positive."""

    code: str = "INVALID_ROUND"

    def __init__(self, case_id: str, round_no: int, last_round_no: int | None):
        self.case_id = case_id
        self.round_no = round_no
        self.last_round_no = last_round_no
        super().__init__(
            f"Round {round_no} is not valid for case {case_id} "
            f"(last declared round: {last_round_no})",
            field="round_no",
        )


class InsufficientFundsError(DistributionError):
    """
    Requested amount exceeds the funds remaining after prior distributions.

    This is the conservation guard: cumulative distributions can never
    exceed cumulative net funds received.
    """

    code: str = "INSUFFICIENT_FUNDS"

    def __init__(self, case_id: str, requested: Decimal, available: Decimal):
        self.case_id = case_id
        self.requested = requested
        self.available = available
        super().__init__(
            (
                f"Case {case_id}: requested {requested} is negative"
                if requested < 0
                else f"Case {case_id}: requested {requested} exceeds available {available}"
            ),
            field="amount",
        )


class DistributionInvariantError(DistributionError):
    """
    A computed round broke its own arithmetic invariant (lines not summing
    to the total).  The declaration fails as a unit; nothing is persisted.
    """

    code: str = "DISTRIBUTION_INVARIANT"

    def __init__(self, case_id: str | None, detail: str):
        self.case_id = case_id
        self.detail = detail
        scope = f"Case {case_id}" if case_id is not None else "Apportionment"
        super().__init__(f"{scope}: {detail}")


class NoAdmittedClaimsError(DistributionError):
    """No admitted claim to apportion a distribution against."""

    code: str = "NO_ADMITTED_CLAIMS"

    def __init__(self, case_id: str, reason: str = "no admitted claims"):
        self.case_id = case_id
        self.reason = reason
        super().__init__(
            f"Case {case_id} cannot distribute: {reason}"
        )


# Claim exceptions


class ClaimError(InsolvencyKernelError):
    """Base exception for claims register errors."""

    code: str = "CLAIM_ERROR"


class DuplicateClaimError(ClaimError):
    """A claim already exists for this (case, creditor) pair."""

    code: str = "DUPLICATE_CLAIM"

    def __init__(self, case_id: str, creditor_id: str):
        self.case_id = case_id
        self.creditor_id = creditor_id
        super().__init__(
            f"Creditor {creditor_id} already has a claim against case {case_id}"
        )


class InvalidTransitionError(ClaimError):
    """Claim status change is not permitted, or its amount is invalid."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, claim_id: str, from_status: str, to_status: str, reason: str):
        self.claim_id = claim_id
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        super().__init__(
            f"Claim {claim_id} cannot move from {from_status} to {to_status}: {reason}"
        )


# Concurrency exceptions


class ConcurrencyError(InsolvencyKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConflictError(ConcurrencyError):
    """
    Concurrent modification or transaction-isolation failure.

    The whole operation was rolled back; the caller may retry it.
    """

    code: str = "CONFLICT"

    def __init__(self, entity_type: str, entity_id: str | None, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Conflict on {entity_type} {entity_id}: {reason}"
        )


# Immutability exceptions


class ImmutabilityError(InsolvencyKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


class CreditorReferencedError(ImmutabilityError):
    """Creditor with financial history cannot be deleted, only deactivated."""

    code: str = "CREDITOR_REFERENCED"

    def __init__(self, creditor_id: str):
        self.creditor_id = creditor_id
        super().__init__(
            f"Creditor {creditor_id} is referenced by claims or distribution "
            "lines and cannot be deleted"
        )


# Audit exceptions


class AuditError(InsolvencyKernelError):
    """Base exception for audit trail errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Activity log hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, entry_id: str, expected_hash: str, actual_hash: str):
        self.entry_id = entry_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at entry {entry_id}: "
            f"expected {expected_hash}, got {actual_hash}"
        )
