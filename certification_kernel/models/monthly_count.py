"""
Module: certification_kernel.models.monthly_count
Responsibility: ORM persistence for the monthly certified-customer counters,
    overall and per certificate category.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - One row per month (per (month, category) for the breakdown); rows are
      created lazily by the first increment.
    - certified_count >= 0 (CHECK constraint).
    - Live writes go through MonthlyAggregateStore's atomic upsert only;
      wholesale rewrites come from the reconciliation job.
"""

from datetime import datetime

from sqlalchemy import CheckConstraint, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from certification_kernel.db.base import Base
from certification_kernel.db.types import UTCDateTime


class MonthlyCertifiedCount(Base):
    """Number of customers whose first certification fell in ``month``."""

    __tablename__ = "monthly_certified_count"

    __table_args__ = (
        UniqueConstraint("month", name="uq_monthly_certified_count_month"),
        CheckConstraint("certified_count >= 0", name="ck_monthly_certified_count_non_negative"),
    )

    month: Mapped[str] = mapped_column(String(7), nullable=False)

    certified_count: Mapped[int] = mapped_column(nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<MonthlyCertifiedCount {self.month}={self.certified_count}>"


class MonthlyCertifiedCountByCategory(Base):
    """Same as MonthlyCertifiedCount, partitioned by certificate category."""

    __tablename__ = "monthly_certified_count_by_category"

    __table_args__ = (
        UniqueConstraint("month", "category", name="uq_monthly_count_by_category_key"),
        CheckConstraint(
            "certified_count >= 0",
            name="ck_monthly_count_by_category_non_negative",
        ),
    )

    month: Mapped[str] = mapped_column(String(7), nullable=False)

    category: Mapped[str] = mapped_column(String(64), nullable=False)

    certified_count: Mapped[int] = mapped_column(nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<MonthlyCertifiedCountByCategory {self.month}/{self.category}={self.certified_count}>"
