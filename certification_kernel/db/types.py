"""
Module: certification_kernel.db.types
Responsibility: Column types shared by every model: the boundary
    TypeDecorators for the closed vocabularies, a UTC-normalizing datetime,
    and Annotated aliases for recurring column shapes.
Architecture position: Kernel > DB.  May import the pure domain vocabulary;
    MUST NOT import from models/, services/ or selectors/.

Invariants enforced:
    - StatusType never binds a value outside CustomerStatus.  An unknown
      value raises UnknownStatusError before any SQL is sent.
    - CertificateTypeType never binds a value outside CertificateType.
    - UTCDateTime always returns timezone-aware UTC datetimes, on backends
      that store naive values (SQLite) as well as on PostgreSQL.

Failure modes:
    - UnknownStatusError / UnknownCategoryError from process_bind_param
      (SQLAlchemy wraps them in StatementError at flush time).
"""

from datetime import datetime, timezone
from typing import Annotated

from sqlalchemy import BigInteger, DateTime, String
from sqlalchemy.types import TypeDecorator

from certification_kernel.domain.status import (
    CustomerStatus,
    parse_certificate_type,
    parse_status,
)


class UTCDateTime(TypeDecorator):
    """DateTime(timezone=True) that always round-trips as aware UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class StatusType(TypeDecorator):
    """CustomerStatus stored by canonical name."""

    impl = String(32)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return parse_status(value).value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return CustomerStatus(value)


class CertificateTypeType(TypeDecorator):
    """Optional CertificateType stored by canonical name."""

    impl = String(64)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        certificate_type = parse_certificate_type(value)
        return certificate_type.value if certificate_type is not None else None

    def process_result_value(self, value, dialect):
        return parse_certificate_type(value)


def status_check_sql(column: str) -> str:
    """SQL CHECK expression restricting ``column`` to the status vocabulary."""
    values = ", ".join(f"'{s.value}'" for s in CustomerStatus)
    return f"{column} IN ({values})"


# yyyy-mm month key
MonthKey = Annotated[str, String(7)]

# Aggregate category (certificate type name or OTHER)
CategoryKey = Annotated[str, String(64)]

# Monotonic sequence number for ordering
Sequence = Annotated[int, BigInteger]

# SHA-256 hash as hex string (64 characters)
PayloadHash = Annotated[str, String(64)]

# Opaque caller identity
Actor = Annotated[str, String(100)]

# Free-text reason for a status change
LongText = Annotated[str, String(4000)]

Timestamp = Annotated[datetime, UTCDateTime()]
