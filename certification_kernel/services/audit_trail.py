"""
AuditTrailStore -- append-only, hash-chained status history.

Responsibility:
    Appends one StatusHistoryRecord per status change and validates a
    customer's chain on demand.

Architecture position:
    Kernel > Services.  Called by CertificationLifecycleService (every
    applied transition) and CustomerRegistry (the genesis record).

Invariants enforced:
    - seq is max(seq) + 1 for the customer.  The caller holds the customer
      row lock, so allocation is race-free; the (customer_id, seq) unique
      constraint is the backstop.
    - A record's from_status equals the previous record's to_status.  Only
      the first record may have from_status NULL.
    - hash = H(customer_id | seq | from | to | reason | actor | changed_at | prev_hash).
    - changed_at never goes backwards within a customer's chain, so the
      (changed_at, seq) order and the seq order agree.

Failure modes:
    - StatusHistoryChainBrokenError: append would break linkage, or
      validate_chain found a linkage, sequence or hash mismatch.
"""

from uuid import UUID

from sqlalchemy import func, select

from certification_kernel.domain.status import CustomerStatus
from certification_kernel.exceptions import StatusHistoryChainBrokenError
from certification_kernel.logging_config import get_logger
from certification_kernel.models.status_history import StatusHistoryRecord
from certification_kernel.services.base import BaseService
from certification_kernel.utils.hashing import hash_status_change

logger = get_logger("services.audit_trail")


class AuditTrailStore(BaseService):
    """
    Append and verify status history records.

    Guarantees:
        - ``append`` flushes exactly one row or raises.
        - ``validate_chain`` returns True or raises with the first bad record.
    """

    def latest(self, customer_id: UUID) -> StatusHistoryRecord | None:
        return self.session.execute(
            select(StatusHistoryRecord)
            .where(StatusHistoryRecord.customer_id == customer_id)
            .order_by(StatusHistoryRecord.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

    def records_for(self, customer_id: UUID) -> list[StatusHistoryRecord]:
        """All records of a customer, oldest first."""
        return list(
            self.session.execute(
                select(StatusHistoryRecord)
                .where(StatusHistoryRecord.customer_id == customer_id)
                .order_by(StatusHistoryRecord.changed_at, StatusHistoryRecord.seq)
            ).scalars()
        )

    def count_for(self, customer_id: UUID) -> int:
        return self.session.execute(
            select(func.count())
            .select_from(StatusHistoryRecord)
            .where(StatusHistoryRecord.customer_id == customer_id)
        ).scalar_one()

    def append(
        self,
        customer_id: UUID,
        from_status: CustomerStatus | None,
        to_status: CustomerStatus,
        reason: str | None,
        actor: str,
    ) -> StatusHistoryRecord:
        """
        Append the next record of a customer's chain.

        Preconditions:
            - The caller holds the customer row lock (or is creating the
              customer in this transaction).
        Postconditions:
            - A new record is flushed, linked to the previous one.

        Raises:
            StatusHistoryChainBrokenError: ``from_status`` does not continue
                the chain.
        """
        previous = self.latest(customer_id)
        expected_from = previous.to_status if previous is not None else None
        if from_status != expected_from:
            logger.critical(
                "status_history_append_rejected",
                extra={
                    "customer_id": str(customer_id),
                    "from_status": from_status,
                    "expected_from_status": expected_from,
                },
            )
            raise StatusHistoryChainBrokenError(
                customer_id=str(customer_id),
                record_id=str(previous.id) if previous is not None else "-",
                reason=(
                    f"from_status {getattr(from_status, 'value', from_status)} does not "
                    f"continue chain ending in {getattr(expected_from, 'value', expected_from)}"
                ),
            )

        changed_at = self.clock.now()
        if previous is not None and previous.changed_at > changed_at:
            changed_at = previous.changed_at

        seq = previous.seq + 1 if previous is not None else 1
        prev_hash = previous.hash if previous is not None else None

        record = StatusHistoryRecord(
            customer_id=customer_id,
            seq=seq,
            from_status=from_status,
            to_status=to_status,
            reason=reason,
            actor=actor,
            changed_at=changed_at,
            prev_hash=prev_hash,
            hash=hash_status_change(
                customer_id=customer_id,
                seq=seq,
                from_status=from_status,
                to_status=to_status,
                reason=reason,
                actor=actor,
                changed_at=changed_at,
                prev_hash=prev_hash,
            ),
        )
        self.session.add(record)
        self.session.flush()

        logger.info(
            "status_history_appended",
            extra={
                "customer_id": str(customer_id),
                "seq": seq,
                "from_status": from_status,
                "to_status": to_status,
            },
        )
        return record

    def validate_chain(self, customer_id: UUID) -> bool:
        """
        Verify a customer's whole chain.

        Checks, record by record: seq continuity from 1, genesis only at
        seq 1, status linkage, prev_hash linkage, the recomputed hash and
        non-decreasing changed_at.

        Raises:
            StatusHistoryChainBrokenError: first record that fails a check.
        """
        records = self.records_for(customer_id)
        previous: StatusHistoryRecord | None = None

        for position, record in enumerate(records, start=1):
            problem = self._check_record(record, previous, position)
            if problem is not None:
                logger.critical(
                    "status_history_chain_broken",
                    extra={
                        "customer_id": str(customer_id),
                        "record_id": str(record.id),
                        "seq": record.seq,
                        "problem": problem,
                    },
                )
                raise StatusHistoryChainBrokenError(
                    customer_id=str(customer_id),
                    record_id=str(record.id),
                    reason=problem,
                )
            previous = record

        logger.info(
            "status_history_chain_valid",
            extra={"customer_id": str(customer_id), "records": len(records)},
        )
        return True

    @staticmethod
    def _check_record(
        record: StatusHistoryRecord,
        previous: StatusHistoryRecord | None,
        position: int,
    ) -> str | None:
        if record.seq != position:
            return f"expected seq {position}, found {record.seq}"

        if previous is None:
            if record.from_status is not None:
                return "first record must have no from_status"
            if record.prev_hash is not None:
                return "first record must have no prev_hash"
        else:
            if record.from_status is None:
                return "only the first record may have no from_status"
            if record.from_status != previous.to_status:
                return (
                    f"from_status {record.from_status.value} does not match previous "
                    f"to_status {previous.to_status.value}"
                )
            if record.prev_hash != previous.hash:
                return "prev_hash does not match previous record hash"
            if record.changed_at < previous.changed_at:
                return "changed_at goes backwards"

        expected_hash = hash_status_change(
            customer_id=record.customer_id,
            seq=record.seq,
            from_status=record.from_status,
            to_status=record.to_status,
            reason=record.reason,
            actor=record.actor,
            changed_at=record.changed_at,
            prev_hash=record.prev_hash,
        )
        if record.hash != expected_hash:
            return "hash mismatch"
        return None
