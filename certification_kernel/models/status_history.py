"""
Module: certification_kernel.models.status_history
Responsibility: ORM persistence for the append-only status change trail.
Architecture position: Kernel > Models.  May import from db/ and domain/status.

Invariants enforced:
    - Append-only; no UPDATE or DELETE (ORM listener + PostgreSQL trigger).
    - (customer_id, seq) is unique; seq starts at 1 and has no gaps.
    - from_status is NULL only on a customer's first record.
    - Chain: record k's to_status equals record k+1's from_status, and
      hash = H(customer_id | seq | from | to | reason | actor | changed_at | prev_hash).
      Both are checked by AuditTrailStore.validate_chain().

Ordering is (customer_id, changed_at, seq).  seq breaks ties between
records written in the same instant.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from certification_kernel.config import ACTOR_COLUMN_LENGTH, REASON_COLUMN_LENGTH
from certification_kernel.db.base import Base, UUIDString
from certification_kernel.db.types import StatusType, UTCDateTime, status_check_sql
from certification_kernel.domain.status import CustomerStatus


class StatusHistoryRecord(Base):
    """
    One status change of one customer.

    Non-goals:
        - This model does NOT enforce chain or hash correctness at INSERT
          time; that is the responsibility of AuditTrailStore.
    """

    __tablename__ = "status_history"

    __table_args__ = (
        UniqueConstraint("customer_id", "seq", name="uq_status_history_customer_seq"),
        CheckConstraint(
            f"from_status IS NULL OR {status_check_sql('from_status')}",
            name="ck_status_history_from_status",
        ),
        CheckConstraint(status_check_sql("to_status"), name="ck_status_history_to_status"),
        CheckConstraint("seq >= 1", name="ck_status_history_seq_positive"),
        Index("idx_status_history_order", "customer_id", "changed_at", "seq"),
    )

    customer_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("customers.id"),
        nullable=False,
    )

    # Per-customer position in the chain, starting at 1
    seq: Mapped[int] = mapped_column(nullable=False)

    from_status: Mapped[CustomerStatus | None] = mapped_column(StatusType(), nullable=True)

    to_status: Mapped[CustomerStatus] = mapped_column(StatusType(), nullable=False)

    reason: Mapped[str | None] = mapped_column(String(REASON_COLUMN_LENGTH), nullable=True)

    actor: Mapped[str] = mapped_column(String(ACTOR_COLUMN_LENGTH), nullable=False)

    changed_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    # Hash of the previous record of the same customer (null for the first)
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None

    def __repr__(self) -> str:
        source = self.from_status.value if self.from_status else None
        return f"<StatusHistoryRecord {self.customer_id}#{self.seq} {source}->{self.to_status.value}>"
