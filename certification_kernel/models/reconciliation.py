"""
Module: certification_kernel.models.reconciliation
Responsibility: ORM persistence for the reconciliation single-flight guard
    and the append-only log of reconciliation runs.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - ReconciliationLock: one row per lock name.  run_id is NULL when the
      guard is free; a run takes it under SELECT ... FOR UPDATE and clears
      it on release.
    - ReconciliationRun: append-only (ORM listener + PostgreSQL trigger).
      One row per finished run, carrying the full diff report.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from certification_kernel.config import ACTOR_COLUMN_LENGTH
from certification_kernel.db.base import Base, UUIDString
from certification_kernel.db.types import UTCDateTime


class ReconciliationLock(Base):
    """Named exclusivity guard for reconciliation runs."""

    __tablename__ = "reconciliation_locks"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    # Run currently holding the guard (null when free)
    run_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    acquired_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    acquired_by: Mapped[str | None] = mapped_column(String(ACTOR_COLUMN_LENGTH), nullable=True)

    @property
    def is_held(self) -> bool:
        return self.run_id is not None

    def __repr__(self) -> str:
        return f"<ReconciliationLock {self.name} held_by={self.run_id}>"


class ReconciliationRun(Base):
    """Immutable record of one reconciliation run and its diff report."""

    __tablename__ = "reconciliation_runs"

    __table_args__ = (
        Index("idx_reconciliation_runs_started", "started_at"),
    )

    run_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, unique=True)

    # Scope label: full / recent / between
    scope: Mapped[str] = mapped_column(String(20), nullable=False)

    start_month: Mapped[str | None] = mapped_column(String(7), nullable=True)

    end_month: Mapped[str | None] = mapped_column(String(7), nullable=True)

    dry_run: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    actor: Mapped[str] = mapped_column(String(ACTOR_COLUMN_LENGTH), nullable=False)

    started_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    finished_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    drift_count: Mapped[int] = mapped_column(nullable=False, default=0)

    corrections_count: Mapped[int] = mapped_column(nullable=False, default=0)

    report: Mapped[dict] = mapped_column(JSON, nullable=False)

    report_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<ReconciliationRun {self.run_id} {self.scope} drift={self.drift_count}>"
