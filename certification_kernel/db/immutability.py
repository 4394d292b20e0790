"""
ORM-Level Immutability Enforcement (Layer 1 of 2).

===============================================================================
WHY THIS EXISTS
===============================================================================

The status history is the audit trail of every status change a customer
went through.  It is only ever appended to.  Reconciliation runs are the
audit trail of every aggregate rewrite.  Neither may be edited after the
fact.

  Layer 1: THIS FILE (ORM event listeners)
    - Catches modifications through Python/SQLAlchemy code
    - Fires BEFORE the SQL is sent to the database

  Layer 2: db/sql/*.sql (PostgreSQL triggers, see db/triggers.py)
    - Catches raw SQL, bulk UPDATE statements, direct psql access

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity               | When Immutable          | Why
---------------------|-------------------------|----------------------------------
StatusHistoryRecord  | ALWAYS (from creation)  | Audit trail of status changes
ReconciliationRun    | ALWAYS (from creation)  | Audit trail of aggregate rewrites

===============================================================================
USAGE
===============================================================================

    from certification_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY - never in production):

    unregister_immutability_listeners()
    # ... do forbidden operation ...
    register_immutability_listeners()
"""

from sqlalchemy import event

from certification_kernel.exceptions import ImmutabilityViolationError
from certification_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _block(entity_type: str, target, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_status_history_immutability(mapper, connection, target):
    """Prevent any updates to StatusHistoryRecord rows."""
    _block(
        "StatusHistoryRecord",
        target,
        "UPDATE",
        "Status history records are append-only and cannot be modified",
    )


def _check_status_history_delete(mapper, connection, target):
    """Prevent deletion of StatusHistoryRecord rows."""
    _block(
        "StatusHistoryRecord",
        target,
        "DELETE",
        "Status history records cannot be deleted",
    )


def _check_reconciliation_run_immutability(mapper, connection, target):
    """Prevent any updates to ReconciliationRun rows."""
    _block(
        "ReconciliationRun",
        target,
        "UPDATE",
        "Reconciliation runs are immutable audit artifacts",
    )


def _check_reconciliation_run_delete(mapper, connection, target):
    """Prevent deletion of ReconciliationRun rows."""
    _block(
        "ReconciliationRun",
        target,
        "DELETE",
        "Reconciliation runs cannot be deleted",
    )


def _listeners():
    from certification_kernel.models.reconciliation import ReconciliationRun
    from certification_kernel.models.status_history import StatusHistoryRecord

    return [
        (StatusHistoryRecord, "before_update", _check_status_history_immutability),
        (StatusHistoryRecord, "before_delete", _check_status_history_delete),
        (ReconciliationRun, "before_update", _check_reconciliation_run_immutability),
        (ReconciliationRun, "before_delete", _check_reconciliation_run_delete),
    ]


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Call this after all models are imported but before any database
    operations begin.  Registering twice is harmless.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
