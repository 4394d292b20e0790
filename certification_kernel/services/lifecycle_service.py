"""
CertificationLifecycleService -- one status change, end to end.

Responsibility:
    Validate a requested status change, persist the new status, append the
    history record and apply the monthly counter increment when the change
    is a first certification -- all in one transaction per call.

Architecture position:
    Kernel > Services.  The only writer of Customer.current_status.  Uses
    StatusTransitionValidator, AuditTrailStore and MonthlyAggregateStore.

Invariants enforced:
    - Same-status requests are no-op successes: no history row, no
      increment.  This is what makes a timed-out call safe to retry.
    - Count eligibility is decided from the before/after state:
      target is CERTIFIED and certified_at was unset.  Re-entering
      CERTIFIED never counts twice.
    - Status update, history append and increment share the caller's
      transaction: all of them commit or none does.
    - Per-customer serialization: the customer row is read with
      SELECT ... FOR UPDATE and written under its version token.  A version
      conflict rolls back the attempt's savepoint and the next attempt
      re-validates against the freshly read state.

Failure modes:
    - CustomerNotFoundError: missing or soft-deleted customer.
    - RuleViolationError: illegal transition (carries the legal targets).
    - UnknownStatusError / ReasonTooLongError / InvalidActorError /
      ValidationError: malformed input, rejected before any read.
    - ConcurrentModificationError: version conflicts on every attempt.
"""

import time
from uuid import UUID, uuid4

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from certification_kernel.config import CertificationConfig
from certification_kernel.domain.clock import Clock, SystemClock
from certification_kernel.domain.dtos import (
    CustomerSnapshot,
    StatusHistoryEntry,
    TransitionOutcome,
    TransitionResult,
)
from certification_kernel.domain.months import month_of
from certification_kernel.domain.status import CustomerStatus, category_of, parse_status
from certification_kernel.domain.transitions import (
    StatusTransitionValidator,
    load_transition_table,
)
from certification_kernel.exceptions import (
    ConcurrentModificationError,
    ReasonTooLongError,
    RuleViolationError,
    ValidationError,
)
from certification_kernel.logging_config import LogContext, get_logger
from certification_kernel.services.aggregate_store import MonthlyAggregateStore
from certification_kernel.services.audit_trail import AuditTrailStore
from certification_kernel.services.customer_registry import CustomerRegistry, require_actor

logger = get_logger("services.lifecycle")


def validator_from_config(config: CertificationConfig) -> StatusTransitionValidator:
    """Validator over the configured table, or the canonical one."""
    if config.transition_table_path:
        return StatusTransitionValidator(load_transition_table(config.transition_table_path))
    return StatusTransitionValidator()


class CertificationLifecycleService:
    """
    Orchestrates status transitions.

    Defines its own transaction boundary: by default ``transition()``
    commits on success and rolls back on failure.  Set ``auto_commit=False``
    to leave commit/rollback to the caller.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        validator: StatusTransitionValidator | None = None,
        config: CertificationConfig | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or CertificationConfig()
        self._validator = validator or validator_from_config(self._config)
        self._auto_commit = auto_commit

        self._audit = AuditTrailStore(session, self._clock)
        self._aggregates = MonthlyAggregateStore(session, self._clock)
        self._registry = CustomerRegistry(session, self._clock, self._audit, self._config)

    @property
    def validator(self) -> StatusTransitionValidator:
        return self._validator

    # ------------------------------------------------------------------
    # API affordances
    # ------------------------------------------------------------------

    def allowed_targets(self, status) -> frozenset[CustomerStatus]:
        return self._validator.allowed_targets(status)

    def is_allowed(self, from_status, to_status) -> bool:
        return self._validator.is_allowed(from_status, to_status)

    def allowed_targets_for(self, customer_id: UUID) -> frozenset[CustomerStatus]:
        """Legal next statuses for a customer's current status."""
        customer = self._registry.load(customer_id)
        return self._validator.allowed_targets(customer.current_status)

    def can_transition(self, customer_id: UUID, target_status) -> bool:
        customer = self._registry.load(customer_id)
        return self._validator.is_allowed(customer.current_status, target_status)

    # ------------------------------------------------------------------
    # Transition
    # ------------------------------------------------------------------

    def transition(
        self,
        customer_id: UUID,
        target_status,
        reason: str | None,
        actor: str,
    ) -> TransitionResult:
        """
        Move a customer to ``target_status``.

        Postconditions:
            - APPLIED: status updated, one history record appended, and,
              for a first certification, the month (and category) counter
              incremented.
            - NO_OP: nothing written.

        Raises:
            See module docstring.
        """
        target = parse_status(target_status)
        reason = self._validate_reason(reason)
        actor = require_actor(actor, self._config.actor_max_length)

        correlation_id = str(uuid4())
        with LogContext.bind(
            correlation_id=correlation_id,
            customer_id=str(customer_id),
            actor=actor,
        ):
            logger.info("transition_started", extra={"target_status": target})
            t0 = time.monotonic()
            try:
                result = self._transition_with_retry(customer_id, target, reason, actor)

                if self._auto_commit:
                    self._session.commit()

                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                if result.is_noop:
                    logger.info(
                        "transition_noop",
                        extra={"status": target, "duration_ms": duration_ms},
                    )
                else:
                    logger.info(
                        "transition_completed",
                        extra={
                            "from_status": result.history.from_status,
                            "to_status": target,
                            "count_eligible": result.count_eligible,
                            "month": result.month,
                            "attempts": result.attempts,
                            "duration_ms": duration_ms,
                        },
                    )
                return result

            except RuleViolationError as exc:
                if self._auto_commit:
                    self._session.rollback()
                logger.warning(
                    "transition_rejected",
                    extra={
                        "from_status": exc.from_status,
                        "to_status": exc.to_status,
                        "allowed_targets": exc.allowed_targets,
                    },
                )
                raise

            except Exception:
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                if self._auto_commit:
                    self._session.rollback()
                logger.error(
                    "transition_failed",
                    extra={"duration_ms": duration_ms},
                    exc_info=True,
                )
                raise

    def _validate_reason(self, reason) -> str | None:
        if reason is None:
            return None
        if not isinstance(reason, str):
            raise ValidationError(f"reason must be a string, got {type(reason).__name__}")
        if len(reason) > self._config.reason_max_length:
            raise ReasonTooLongError(len(reason), self._config.reason_max_length)
        return reason

    def _transition_with_retry(
        self,
        customer_id: UUID,
        target: CustomerStatus,
        reason: str | None,
        actor: str,
    ) -> TransitionResult:
        max_attempts = self._config.max_transition_retries
        for attempt in range(1, max_attempts + 1):
            try:
                with self._session.begin_nested():
                    return self._attempt(customer_id, target, reason, actor, attempt)
            except StaleDataError:
                logger.warning(
                    "transition_conflict_retry",
                    extra={"attempt": attempt, "max_attempts": max_attempts},
                )
        raise ConcurrentModificationError(str(customer_id), max_attempts)

    def _attempt(
        self,
        customer_id: UUID,
        target: CustomerStatus,
        reason: str | None,
        actor: str,
        attempt: int,
    ) -> TransitionResult:
        customer = self._registry.load(customer_id, for_update=True)
        current = customer.current_status

        if current == target:
            return TransitionResult(
                outcome=TransitionOutcome.NO_OP,
                customer=CustomerSnapshot.from_model(customer),
                attempts=attempt,
            )

        self._validator.validate(current, target)

        count_eligible = target == CustomerStatus.CERTIFIED and customer.certified_at is None

        customer.current_status = target
        customer.updated_by = actor
        if count_eligible:
            customer.certified_at = self._clock.today()
        # Version check happens here; a conflict raises StaleDataError.
        self._session.flush()

        record = self._audit.append(
            customer_id=customer.id,
            from_status=current,
            to_status=target,
            reason=reason,
            actor=actor,
        )

        month = category = None
        if count_eligible:
            month = month_of(customer.certified_at)
            category = category_of(customer.certificate_type)
            self._aggregates.increment_for_month(month, category)

        return TransitionResult(
            outcome=TransitionOutcome.APPLIED,
            customer=CustomerSnapshot.from_model(customer),
            history=StatusHistoryEntry.from_model(record),
            count_eligible=count_eligible,
            month=month,
            category=category,
            attempts=attempt,
        )
