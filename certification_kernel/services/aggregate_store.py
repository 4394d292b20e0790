"""
MonthlyAggregateStore -- monthly certified-customer counters.

Responsibility:
    Atomic create-or-increment of the monthly counters on the live path,
    point and range reads, and the wholesale snapshot/replace primitives
    the reconciliation job uses to rewrite a window of months.

Architecture position:
    Kernel > Services.  Called by CertificationLifecycleService (increment)
    and by certification_services.reconciliation_job (snapshot/replace).

Invariants enforced:
    - increment_for_month is ONE statement per counter:
      ``INSERT ... ON CONFLICT (key) DO UPDATE SET certified_count =
      certified_count + 1``.  There is no read-then-write window, and
      contention is limited to the single row of the affected key.
    - Month keys are validated before any SQL is issued.
    - Counts are never negative (CHECK constraint).

Failure modes:
    - InvalidMonthError / InvalidMonthRangeError / UnknownCategoryError on
      malformed keys.
    - RuntimeError on a backend without an upsert construct.
"""

from collections.abc import Mapping
from datetime import datetime
from uuid import uuid4

from sqlalchemy import delete, select

from certification_kernel.domain.dtos import CategoryCountRow, MonthlyCountRow
from certification_kernel.domain.months import validate_month, validate_range
from certification_kernel.domain.status import parse_category
from certification_kernel.logging_config import get_logger
from certification_kernel.models.monthly_count import (
    MonthlyCertifiedCount,
    MonthlyCertifiedCountByCategory,
)
from certification_kernel.services.base import BaseService

logger = get_logger("services.aggregate_store")

MonthTotals = Mapping[str, int]
CategoryTotals = Mapping[tuple[str, str], int]


def _dialect_insert(dialect_name: str):
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"No atomic upsert available for dialect {dialect_name!r}")
    return insert


def _in_window(column, start: str | None, end: str | None):
    clauses = []
    if start is not None:
        clauses.append(column >= start)
    if end is not None:
        clauses.append(column <= end)
    return clauses


class MonthlyAggregateStore(BaseService):
    """
    Monthly counters, overall and by category.

    Guarantees:
        - Concurrent increments of the same key never lose an update.
        - Reads return 0 / empty for months that were never incremented.
    """

    def _insert(self):
        return _dialect_insert(self.session.get_bind().dialect.name)

    def _upsert_increment(self, model, index_elements: list[str], values: dict, now: datetime) -> int:
        insert = self._insert()
        stmt = insert(model).values(
            id=uuid4(),
            certified_count=1,
            created_at=now,
            updated_at=now,
            **values,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=index_elements,
            set_={
                "certified_count": model.certified_count + 1,
                "updated_at": now,
            },
        ).returning(model.certified_count)
        return self.session.execute(stmt).scalar_one()

    def increment_for_month(self, month: str, category: str | None = None) -> int:
        """
        Atomically add one certification to ``month`` (and to
        ``(month, category)`` when a category is given).

        Returns:
            The month's new total.
        """
        validate_month(month)
        category_key = parse_category(category) if category is not None else None
        now = self.clock.now()

        total = self._upsert_increment(
            MonthlyCertifiedCount, ["month"], {"month": month}, now
        )
        category_total = None
        if category_key is not None:
            category_total = self._upsert_increment(
                MonthlyCertifiedCountByCategory,
                ["month", "category"],
                {"month": month, "category": category_key},
                now,
            )

        logger.info(
            "aggregate_incremented",
            extra={
                "month": month,
                "category": category_key,
                "certified_count": total,
                "category_count": category_total,
            },
        )
        return total

    def get_for_month(self, month: str) -> int:
        validate_month(month)
        count = self.session.execute(
            select(MonthlyCertifiedCount.certified_count)
            .where(MonthlyCertifiedCount.month == month)
        ).scalar_one_or_none()
        return count or 0

    def get_range(self, start: str, end: str) -> list[MonthlyCountRow]:
        """Stored months in ``[start, end]``, ordered by month."""
        validate_range(start, end)
        rows = self.session.execute(
            select(MonthlyCertifiedCount)
            .where(*_in_window(MonthlyCertifiedCount.month, start, end))
            .order_by(MonthlyCertifiedCount.month)
        ).scalars()
        return [
            MonthlyCountRow(month=r.month, count=r.certified_count, updated_at=r.updated_at)
            for r in rows
        ]

    def get_for_month_by_category(self, month: str) -> dict[str, int]:
        validate_month(month)
        rows = self.session.execute(
            select(
                MonthlyCertifiedCountByCategory.category,
                MonthlyCertifiedCountByCategory.certified_count,
            ).where(MonthlyCertifiedCountByCategory.month == month)
        ).all()
        return {category: count for category, count in rows}

    def get_range_by_category(
        self,
        start: str,
        end: str,
        category: str | None = None,
    ) -> list[CategoryCountRow]:
        """Stored (month, category) rows in ``[start, end]``, ordered by month then category."""
        validate_range(start, end)
        stmt = select(MonthlyCertifiedCountByCategory).where(
            *_in_window(MonthlyCertifiedCountByCategory.month, start, end)
        )
        if category is not None:
            stmt = stmt.where(MonthlyCertifiedCountByCategory.category == parse_category(category))
        rows = self.session.execute(
            stmt.order_by(
                MonthlyCertifiedCountByCategory.month,
                MonthlyCertifiedCountByCategory.category,
            )
        ).scalars()
        return [
            CategoryCountRow(
                month=r.month,
                category=r.category,
                count=r.certified_count,
                updated_at=r.updated_at,
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Reconciliation primitives
    # ------------------------------------------------------------------

    def lock_window(self, start: str | None, end: str | None) -> None:
        """
        Take row locks on every stored counter in the window.

        Live increments of those rows wait until the caller's transaction
        ends.  No-op on SQLite, where BEGIN IMMEDIATE already excludes
        other writers.
        """
        for model in (MonthlyCertifiedCount, MonthlyCertifiedCountByCategory):
            self.session.execute(
                select(model.id)
                .where(*_in_window(model.month, start, end))
                .with_for_update()
            ).all()

    def snapshot(
        self,
        start: str | None = None,
        end: str | None = None,
    ) -> tuple[dict[str, int], dict[tuple[str, str], int]]:
        """
        Stored counters in the window (None bounds are open).

        Returns:
            ``(totals by month, totals by (month, category))``.
        """
        if start is not None and end is not None:
            validate_range(start, end)
        totals = dict(
            self.session.execute(
                select(MonthlyCertifiedCount.month, MonthlyCertifiedCount.certified_count)
                .where(*_in_window(MonthlyCertifiedCount.month, start, end))
            ).all()
        )
        by_category = {
            (month, category): count
            for month, category, count in self.session.execute(
                select(
                    MonthlyCertifiedCountByCategory.month,
                    MonthlyCertifiedCountByCategory.category,
                    MonthlyCertifiedCountByCategory.certified_count,
                ).where(*_in_window(MonthlyCertifiedCountByCategory.month, start, end))
            ).all()
        }
        return totals, by_category

    def replace(
        self,
        start: str | None,
        end: str | None,
        totals: MonthTotals,
        by_category: CategoryTotals,
    ) -> int:
        """
        Make the stored counters in the window equal ``totals`` /
        ``by_category`` exactly.

        Keys missing from the new values are deleted; changed keys are
        updated in place; new keys are inserted.  Keys outside the window
        are rejected.

        Returns:
            Number of rows written (inserted, updated or deleted).
        """
        for month in list(totals) + [m for m, _ in by_category]:
            validate_month(month)
            if (start is not None and month < start) or (end is not None and month > end):
                raise ValueError(f"Month {month} outside replacement window {start}..{end}")

        now = self.clock.now()
        written = 0

        current, current_by_category = self.snapshot(start, end)

        for month in sorted(set(current) | set(totals)):
            new = totals.get(month, 0)
            old = current.get(month)
            if old == new or (old is None and new == 0):
                continue
            if new == 0:
                self.session.execute(
                    delete(MonthlyCertifiedCount).where(MonthlyCertifiedCount.month == month)
                )
            elif old is None:
                self.session.add(
                    MonthlyCertifiedCount(
                        month=month, certified_count=new, created_at=now, updated_at=now
                    )
                )
            else:
                row = self.session.execute(
                    select(MonthlyCertifiedCount)
                    .where(MonthlyCertifiedCount.month == month)
                    .execution_options(populate_existing=True)
                ).scalar_one()
                row.certified_count = new
                row.updated_at = now
            written += 1

        for key in sorted(set(current_by_category) | set(by_category)):
            month, category = key
            new = by_category.get(key, 0)
            old = current_by_category.get(key)
            if old == new or (old is None and new == 0):
                continue
            if new == 0:
                self.session.execute(
                    delete(MonthlyCertifiedCountByCategory).where(
                        MonthlyCertifiedCountByCategory.month == month,
                        MonthlyCertifiedCountByCategory.category == category,
                    )
                )
            elif old is None:
                self.session.add(
                    MonthlyCertifiedCountByCategory(
                        month=month,
                        category=parse_category(category),
                        certified_count=new,
                        created_at=now,
                        updated_at=now,
                    )
                )
            else:
                row = self.session.execute(
                    select(MonthlyCertifiedCountByCategory)
                    .where(
                        MonthlyCertifiedCountByCategory.month == month,
                        MonthlyCertifiedCountByCategory.category == category,
                    )
                    .execution_options(populate_existing=True)
                ).scalar_one()
                row.certified_count = new
                row.updated_at = now
            written += 1

        self.session.flush()
        logger.info(
            "aggregates_replaced",
            extra={"start": start, "end": end, "rows_written": written},
        )
        return written
