"""Database layer - engine, base classes, types, and append-only guards."""

from certification_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from certification_kernel.db.engine import create_tables, get_engine, get_session
from certification_kernel.db.types import (
    CertificateTypeType,
    MonthKey,
    PayloadHash,
    Sequence,
    StatusType,
    UTCDateTime,
)

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "UTCDateTime",
    "StatusType",
    "CertificateTypeType",
    "MonthKey",
    "PayloadHash",
    "Sequence",
]
