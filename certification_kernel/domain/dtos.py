"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable values handed across the kernel boundary: customer snapshots,
    status history entries, transition results, aggregate rows and history
    pages.  Callers never receive live ORM entities from services or
    selectors, so nothing they hold can leak a write back into a session.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  ``from_model()``
    class methods are boundary converters invoked only from services and
    selectors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from certification_kernel.domain.status import CertificateType, CustomerStatus

if TYPE_CHECKING:
    from certification_kernel.models.customer import Customer as CustomerModel
    from certification_kernel.models.status_history import (
        StatusHistoryRecord as StatusHistoryModel,
    )


class TransitionOutcome(str, Enum):
    """What a transition call did."""

    APPLIED = "applied"
    NO_OP = "no_op"


@dataclass(frozen=True)
class CustomerSnapshot:
    """Status-relevant view of a customer at a point in time."""

    id: UUID
    current_status: CustomerStatus
    certified_at: date | None
    certificate_type: CertificateType | None
    deleted_at: datetime | None
    version: int
    name: str | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @classmethod
    def from_model(cls, model: CustomerModel) -> CustomerSnapshot:
        return cls(
            id=model.id,
            current_status=model.current_status,
            certified_at=model.certified_at,
            certificate_type=model.certificate_type,
            deleted_at=model.deleted_at,
            version=model.version,
            name=model.name,
        )


@dataclass(frozen=True)
class StatusHistoryEntry:
    """One append-only status change."""

    id: UUID
    customer_id: UUID
    seq: int
    from_status: CustomerStatus | None
    to_status: CustomerStatus
    reason: str | None
    actor: str
    changed_at: datetime
    hash: str
    prev_hash: str | None = None

    @classmethod
    def from_model(cls, model: StatusHistoryModel) -> StatusHistoryEntry:
        return cls(
            id=model.id,
            customer_id=model.customer_id,
            seq=model.seq,
            from_status=model.from_status,
            to_status=model.to_status,
            reason=model.reason,
            actor=model.actor,
            changed_at=model.changed_at,
            hash=model.hash,
            prev_hash=model.prev_hash,
        )


@dataclass(frozen=True)
class TransitionResult:
    """
    Result of ``CertificationLifecycleService.transition``.

    ``history`` is None for a no-op.  ``month`` is set only when the
    transition was count-eligible.
    """

    outcome: TransitionOutcome
    customer: CustomerSnapshot
    history: StatusHistoryEntry | None = None
    count_eligible: bool = False
    month: str | None = None
    category: str | None = None
    attempts: int = 1

    @property
    def is_noop(self) -> bool:
        return self.outcome == TransitionOutcome.NO_OP


@dataclass(frozen=True)
class MonthlyCountRow:
    month: str
    count: int
    updated_at: datetime | None = None


@dataclass(frozen=True)
class CategoryCountRow:
    month: str
    category: str
    count: int
    updated_at: datetime | None = None


@dataclass(frozen=True)
class HistoryPage:
    """One page of a customer's status history, oldest first."""

    customer_id: UUID
    page: int
    page_size: int
    total: int
    records: tuple[StatusHistoryEntry, ...] = field(default_factory=tuple)

    @property
    def has_next(self) -> bool:
        return (self.page + 1) * self.page_size < self.total

    @property
    def total_pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size
