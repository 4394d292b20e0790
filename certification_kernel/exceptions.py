"""
Typed Exception Hierarchy for the Certification Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (API controllers, the reconciliation CLI, alerting hooks) must be able
to react to a failure without parsing its message:

    try:
        lifecycle.transition(customer_id, "CERTIFIED", reason, actor)
    except RuleViolationError as e:
        render_choices(e.allowed_targets)           # Structured data
    except ConcurrentModificationError:
        retry_later()                               # Safe to retry

Every exception has a CODE class attribute (machine-readable, API-safe) and
carries its context as attributes, never only inside the message string.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    CertificationKernelError (base)
    |
    +-- CustomerError
    |   +-- CustomerNotFoundError
    |   +-- CustomerNotDeletedError
    |
    +-- TransitionError
    |   +-- RuleViolationError
    |
    +-- ValidationError
    |   +-- UnknownStatusError
    |   +-- UnknownCategoryError
    |   +-- InvalidMonthError
    |   +-- InvalidMonthRangeError
    |   +-- ReasonTooLongError
    |   +-- InvalidActorError
    |   +-- InvalidPageError
    |   +-- InvalidTransitionTableError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentModificationError
    |
    +-- AuditError
    |   +-- StatusHistoryChainBrokenError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- AggregateError
    |   +-- AggregateInconsistencyError
    |
    +-- ReconciliationError
        +-- ReconciliationInProgressError
        +-- ReconciliationNotHeldError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Customer        | CUSTOMER_NOT_FOUND          | Customer missing or soft-deleted
                | CUSTOMER_NOT_DELETED        | Restore of a customer that is live
----------------|-----------------------------|-----------------------------------------
Transition      | TRANSITION_NOT_ALLOWED      | from -> to not in the transition table
----------------|-----------------------------|-----------------------------------------
Validation      | UNKNOWN_STATUS              | Value outside the status vocabulary
                | UNKNOWN_CATEGORY            | Value outside the certificate types
                | INVALID_MONTH               | Month key not in yyyy-mm format
                | INVALID_MONTH_RANGE         | start month after end month
                | REASON_TOO_LONG             | Reason text exceeds configured limit
                | INVALID_ACTOR               | Empty or oversized actor string
                | INVALID_PAGE                | Negative page or bad page size
                | INVALID_TRANSITION_TABLE    | Loaded table breaks vocabulary rules
----------------|-----------------------------|-----------------------------------------
Concurrency     | CONCURRENT_MODIFICATION     | Lost a race after bounded retries
----------------|-----------------------------|-----------------------------------------
Audit           | HISTORY_CHAIN_BROKEN        | Status or hash linkage mismatch
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | UPDATE/DELETE of an append-only row
----------------|-----------------------------|-----------------------------------------
Aggregate       | AGGREGATE_INCONSISTENCY     | Stored counter differs from truth
----------------|-----------------------------|-----------------------------------------
Reconciliation  | RECONCILIATION_IN_PROGRESS  | Another run holds the guard
                | RECONCILIATION_NOT_HELD     | Release by a run that is not the holder

===============================================================================
HANDLING PATTERNS
===============================================================================

1. RULE VIOLATIONS carry the legal alternatives:

    except RuleViolationError as e:
        return {"error": e.code, "allowed": sorted(s.value for s in e.allowed_targets)}

2. CONCURRENCY ERRORS are retryable (the no-op guard makes retries safe):

    except ConcurrencyError as e:
        assert e.retryable

3. AGGREGATE INCONSISTENCIES are operational signals, not user errors. The
   reconciliation job corrects them and logs each one.
"""

from enum import Enum
from typing import Any


class CertificationKernelError(Exception):
    """
    Base exception for all certification kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "CERTIFICATION_KERNEL_ERROR"
    retryable: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Render a response-safe dict: code, message and public attributes."""
        details = {
            k: _render(v)
            for k, v in vars(self).items()
            if not k.startswith("_")
        }
        return {"code": self.code, "message": str(self), **details}


def _render(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(_render(v) for v in value)
    if isinstance(value, (tuple, list)):
        return [_render(v) for v in value]
    if isinstance(value, dict):
        return {k: _render(v) for k, v in value.items()}
    if isinstance(value, Enum):
        return value.value
    return value


# Customer-related exceptions


class CustomerError(CertificationKernelError):
    """Base exception for customer lookup errors."""

    code: str = "CUSTOMER_ERROR"


class CustomerNotFoundError(CustomerError):
    """Customer does not exist or has been soft-deleted."""

    code: str = "CUSTOMER_NOT_FOUND"

    def __init__(self, customer_id: str):
        self.customer_id = customer_id
        super().__init__(f"Customer not found: {customer_id}")


class CustomerNotDeletedError(CustomerError):
    """Restore requested for a customer that is not soft-deleted."""

    code: str = "CUSTOMER_NOT_DELETED"

    def __init__(self, customer_id: str):
        self.customer_id = customer_id
        super().__init__(f"Customer {customer_id} is not deleted")


# Transition-related exceptions


class TransitionError(CertificationKernelError):
    """Base exception for status transition errors."""

    code: str = "TRANSITION_ERROR"


class RuleViolationError(TransitionError):
    """
    Requested transition is not a legal business transition.

    Carries the full set of legal targets from the current status so a
    caller can render the valid alternatives.
    """

    code: str = "TRANSITION_NOT_ALLOWED"

    def __init__(
        self,
        from_status: Any,
        to_status: Any,
        allowed_targets: frozenset,
        message: str | None = None,
    ):
        self.from_status = from_status
        self.to_status = to_status
        self.allowed_targets = frozenset(allowed_targets)
        super().__init__(
            message
            or f"Transition {getattr(from_status, 'value', from_status)} -> "
            f"{getattr(to_status, 'value', to_status)} is not allowed"
        )


# Validation exceptions


class ValidationError(CertificationKernelError):
    """Base exception for malformed input rejected at the boundary."""

    code: str = "VALIDATION_ERROR"


class UnknownStatusError(ValidationError):
    """Value is not a member of the closed status vocabulary."""

    code: str = "UNKNOWN_STATUS"

    def __init__(self, value: Any):
        self.value = repr(value) if not isinstance(value, str) else value
        super().__init__(f"Unknown status: {value!r}")


class UnknownCategoryError(ValidationError):
    """Value is not a known certificate type."""

    code: str = "UNKNOWN_CATEGORY"

    def __init__(self, value: Any):
        self.value = repr(value) if not isinstance(value, str) else value
        super().__init__(f"Unknown certificate type: {value!r}")


class InvalidMonthError(ValidationError):
    """Month key is not in yyyy-mm format."""

    code: str = "INVALID_MONTH"

    def __init__(self, month: Any):
        self.month = repr(month) if not isinstance(month, str) else month
        super().__init__(f"Invalid month key {month!r}: expected yyyy-mm")


class InvalidMonthRangeError(ValidationError):
    """Month range start is after its end."""

    code: str = "INVALID_MONTH_RANGE"

    def __init__(self, start: str, end: str):
        self.start = start
        self.end = end
        super().__init__(f"Invalid month range: {start} is after {end}")


class ReasonTooLongError(ValidationError):
    """Transition reason exceeds the configured maximum length."""

    code: str = "REASON_TOO_LONG"

    def __init__(self, length: int, max_length: int):
        self.length = length
        self.max_length = max_length
        super().__init__(
            f"Reason is {length} characters, maximum is {max_length}"
        )


class InvalidActorError(ValidationError):
    """Actor string is empty or too long."""

    code: str = "INVALID_ACTOR"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid actor: {reason}")


class InvalidPageError(ValidationError):
    """Pagination parameters are out of bounds."""

    code: str = "INVALID_PAGE"

    def __init__(self, page: int, page_size: int, max_page_size: int):
        self.page = page
        self.page_size = page_size
        self.max_page_size = max_page_size
        super().__init__(
            f"Invalid page request: page={page}, page_size={page_size} "
            f"(page >= 0, 1 <= page_size <= {max_page_size})"
        )


class InvalidTransitionTableError(ValidationError):
    """Transition table definition breaks the vocabulary rules."""

    code: str = "INVALID_TRANSITION_TABLE"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid transition table: {reason}")


# Concurrency-related exceptions


class ConcurrencyError(CertificationKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"
    retryable: bool = True


class ConcurrentModificationError(ConcurrencyError):
    """Another transition committed between read and write, retries exhausted."""

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, customer_id: str, attempts: int):
        self.customer_id = customer_id
        self.attempts = attempts
        super().__init__(
            f"Customer {customer_id} was modified concurrently; "
            f"gave up after {attempts} attempt(s)"
        )


# Audit-related exceptions


class AuditError(CertificationKernelError):
    """Base exception for audit trail errors."""

    code: str = "AUDIT_ERROR"


class StatusHistoryChainBrokenError(AuditError):
    """Status history linkage or hash chain validation failed."""

    code: str = "HISTORY_CHAIN_BROKEN"

    def __init__(self, customer_id: str, record_id: str, reason: str):
        self.customer_id = customer_id
        self.record_id = record_id
        self.reason = reason
        super().__init__(
            f"Status history chain broken for customer {customer_id} "
            f"at record {record_id}: {reason}"
        )


# Immutability-related exceptions


class ImmutabilityError(CertificationKernelError):
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


# Aggregate-related exceptions


class AggregateError(CertificationKernelError):
    """Base exception for aggregate counter errors."""

    code: str = "AGGREGATE_ERROR"


class AggregateInconsistencyError(AggregateError):
    """
    Stored aggregate counters disagree with customer ground truth.

    Non-fatal: an operational signal for alerting. The reconciliation job
    corrects the drift.
    """

    code: str = "AGGREGATE_INCONSISTENCY"

    def __init__(self, drift: list[dict[str, Any]]):
        self.drift = drift
        self.drift_count = len(drift)
        super().__init__(
            f"{len(drift)} aggregate counter(s) disagree with ground truth"
        )


# Reconciliation-related exceptions


class ReconciliationError(CertificationKernelError):
    """Base exception for reconciliation job errors."""

    code: str = "RECONCILIATION_ERROR"


class ReconciliationInProgressError(ReconciliationError):
    """Another reconciliation run holds the single-flight guard."""

    code: str = "RECONCILIATION_IN_PROGRESS"
    retryable: bool = True

    def __init__(self, lock_name: str, holder_run_id: str):
        self.lock_name = lock_name
        self.holder_run_id = holder_run_id
        super().__init__(
            f"Reconciliation '{lock_name}' already in progress (run {holder_run_id})"
        )


class ReconciliationNotHeldError(ReconciliationError):
    """Release attempted by a run that does not hold the guard."""

    code: str = "RECONCILIATION_NOT_HELD"

    def __init__(self, lock_name: str, run_id: str):
        self.lock_name = lock_name
        self.run_id = run_id
        super().__init__(
            f"Run {run_id} does not hold reconciliation lock '{lock_name}'"
        )
