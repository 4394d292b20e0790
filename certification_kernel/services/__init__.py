"""Kernel services: lifecycle orchestration, audit trail, aggregates, customer registry."""

from certification_kernel.services.aggregate_store import MonthlyAggregateStore
from certification_kernel.services.audit_trail import AuditTrailStore
from certification_kernel.services.customer_registry import CustomerRegistry
from certification_kernel.services.lifecycle_service import CertificationLifecycleService

__all__ = [
    "AuditTrailStore",
    "CertificationLifecycleService",
    "CustomerRegistry",
    "MonthlyAggregateStore",
]
