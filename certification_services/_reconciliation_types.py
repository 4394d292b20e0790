"""
certification_services._reconciliation_types -- value types for reconciliation.

Responsibility:
    Frozen dataclasses describing a reconciliation scope, a per-key diff and
    the run report.  No I/O.

Architecture position:
    Services -- shared DTOs for ReconciliationJob and its callers (the CLI,
    alerting hooks, tests).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any
from uuid import UUID

from certification_kernel.domain.months import recent_window, validate_range


@dataclass(frozen=True)
class ReconciliationScope:
    """
    Which months a run recomputes.

    * ``full()`` -- every month (initial backfill).
    * ``recent(n)`` -- the rolling window of the last ``n`` months ending
      with the current month; older months are left untouched.
    * ``between(start, end)`` -- an explicit inclusive window.
    """

    kind: str
    start: str | None = None
    end: str | None = None
    months: int | None = None

    @classmethod
    def full(cls) -> ReconciliationScope:
        return cls(kind="full")

    @classmethod
    def recent(cls, months: int = 12) -> ReconciliationScope:
        if not isinstance(months, int) or months < 1:
            raise ValueError(f"months must be a positive integer, got {months!r}")
        return cls(kind="recent", months=months)

    @classmethod
    def between(cls, start: str, end: str) -> ReconciliationScope:
        validate_range(start, end)
        return cls(kind="between", start=start, end=end)

    def resolve(self, today: date) -> tuple[str | None, str | None]:
        """Concrete ``(start, end)`` month bounds; None means open."""
        if self.kind == "full":
            return None, None
        if self.kind == "recent":
            return recent_window(today, self.months)
        return self.start, self.end


@dataclass(frozen=True)
class AggregateDiff:
    """Stored vs recomputed value of one counter.  ``category`` is None for the month total."""

    month: str
    category: str | None
    previous: int
    recomputed: int

    @property
    def delta(self) -> int:
        return self.recomputed - self.previous

    @property
    def is_drift(self) -> bool:
        return self.previous != self.recomputed

    def to_dict(self) -> dict[str, Any]:
        return {
            "month": self.month,
            "category": self.category,
            "previous": self.previous,
            "recomputed": self.recomputed,
        }


@dataclass(frozen=True)
class ReconciliationReport:
    """
    Outcome of one reconciliation run.

    ``diffs`` lists every counter in scope (month totals first, then the
    category breakdown); ``corrections`` lists drift the verification pass
    found and fixed after the main pass committed.
    """

    run_id: UUID
    scope: ReconciliationScope
    start_month: str | None
    end_month: str | None
    dry_run: bool
    actor: str
    started_at: datetime
    finished_at: datetime
    diffs: tuple[AggregateDiff, ...] = field(default_factory=tuple)
    corrections: tuple[AggregateDiff, ...] = field(default_factory=tuple)

    @property
    def drift(self) -> tuple[AggregateDiff, ...]:
        return tuple(d for d in self.diffs if d.is_drift)

    @property
    def drift_count(self) -> int:
        return len(self.drift)

    @property
    def is_clean(self) -> bool:
        return not self.drift and not self.corrections

    @property
    def recomputed_totals(self) -> dict[str, int]:
        return {d.month: d.recomputed for d in self.diffs if d.category is None}

    @property
    def recomputed_by_category(self) -> dict[tuple[str, str], int]:
        return {
            (d.month, d.category): d.recomputed
            for d in self.diffs
            if d.category is not None
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": str(self.run_id),
            "scope": self.scope.kind,
            "start_month": self.start_month,
            "end_month": self.end_month,
            "dry_run": self.dry_run,
            "actor": self.actor,
            "diffs": [d.to_dict() for d in self.diffs],
            "corrections": [d.to_dict() for d in self.corrections],
            "drift_count": self.drift_count,
            "total_certified": sum(self.recomputed_totals.values()),
        }
