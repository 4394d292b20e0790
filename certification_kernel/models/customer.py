"""
Module: certification_kernel.models.customer
Responsibility: ORM persistence for the status-relevant slice of a customer.
Architecture position: Kernel > Models.  May import from db/ and domain/status.

Invariants enforced:
    - current_status is always in the status vocabulary (validator on
      assignment, StatusType on bind, CHECK constraint in the table).
    - version is the optimistic concurrency token (version_id_col).  Every
      UPDATE is guarded by ``WHERE version = :expected``; a lost race
      surfaces as StaleDataError and is retried by the lifecycle service.
    - certified_at is set once, by the lifecycle service, on the first
      transition into CERTIFIED.

Customer attributes unrelated to status belong to the general customer
repository and are not modelled here; ``name`` is a display label only.
"""

from datetime import date, datetime

from sqlalchemy import CheckConstraint, Date, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from certification_kernel.db.base import TrackedBase
from certification_kernel.db.types import (
    CertificateTypeType,
    StatusType,
    UTCDateTime,
    status_check_sql,
)
from certification_kernel.domain.status import (
    CertificateType,
    CustomerStatus,
    parse_certificate_type,
    parse_status,
)


class Customer(TrackedBase):
    """
    A customer moving through the certification pipeline.

    Guarantees:
        - ``current_status`` is a CustomerStatus member after any assignment.
        - ``is_deleted`` reflects the soft-delete marker.
    """

    __tablename__ = "customers"

    __table_args__ = (
        CheckConstraint(status_check_sql("current_status"), name="ck_customers_status"),
        Index("idx_customers_status_certified", "current_status", "certified_at"),
        Index("idx_customers_deleted", "deleted_at"),
    )

    name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    current_status: Mapped[CustomerStatus] = mapped_column(
        StatusType(),
        nullable=False,
        default=CustomerStatus.NEW,
    )

    # Effective date of the first certification
    certified_at: Mapped[date | None] = mapped_column(Date, nullable=True)

    certificate_type: Mapped[CertificateType | None] = mapped_column(
        CertificateTypeType(),
        nullable=True,
    )

    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @validates("current_status")
    def _validate_status(self, key, value):
        return parse_status(value)

    @validates("certificate_type")
    def _validate_certificate_type(self, key, value):
        return parse_certificate_type(value)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return f"<Customer {self.id} {self.current_status}>"
