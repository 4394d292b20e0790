"""
AggregateSelector -- reporting reads of the monthly certified counters.

Unlike MonthlyAggregateStore.get_range, which returns stored rows only,
the selector can fill months without a row with zero so reporting
endpoints get a dense series.
"""

from sqlalchemy import select

from certification_kernel.domain.dtos import CategoryCountRow, MonthlyCountRow
from certification_kernel.domain.months import iter_months, validate_range
from certification_kernel.domain.status import parse_category
from certification_kernel.models.monthly_count import (
    MonthlyCertifiedCount,
    MonthlyCertifiedCountByCategory,
)
from certification_kernel.selectors.base import BaseSelector


class AggregateSelector(BaseSelector):

    def get_monthly_counts(
        self,
        start: str,
        end: str,
        fill_missing: bool = False,
    ) -> list[MonthlyCountRow]:
        """Counts for ``[start, end]`` ordered by month."""
        validate_range(start, end)
        rows = {
            r.month: r
            for r in self.session.execute(
                select(MonthlyCertifiedCount)
                .where(
                    MonthlyCertifiedCount.month >= start,
                    MonthlyCertifiedCount.month <= end,
                )
                .order_by(MonthlyCertifiedCount.month)
            ).scalars()
        }
        months = iter_months(start, end) if fill_missing else sorted(rows)
        result = []
        for month in months:
            row = rows.get(month)
            result.append(
                MonthlyCountRow(
                    month=month,
                    count=row.certified_count if row else 0,
                    updated_at=row.updated_at if row else None,
                )
            )
        return result

    def get_monthly_counts_by_category(
        self,
        start: str,
        end: str,
        category: str | None = None,
    ) -> list[CategoryCountRow]:
        """Per-category counts for ``[start, end]`` ordered by month then category."""
        validate_range(start, end)
        stmt = select(MonthlyCertifiedCountByCategory).where(
            MonthlyCertifiedCountByCategory.month >= start,
            MonthlyCertifiedCountByCategory.month <= end,
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

    def get_category_totals(self, start: str, end: str) -> dict[str, int]:
        """Sum per category over the range."""
        totals: dict[str, int] = {}
        for row in self.get_monthly_counts_by_category(start, end):
            totals[row.category] = totals.get(row.category, 0) + row.count
        return totals
