"""ORM models for the certification kernel."""

from certification_kernel.models.customer import Customer
from certification_kernel.models.monthly_count import (
    MonthlyCertifiedCount,
    MonthlyCertifiedCountByCategory,
)
from certification_kernel.models.reconciliation import ReconciliationLock, ReconciliationRun
from certification_kernel.models.status_history import StatusHistoryRecord

__all__ = [
    "Customer",
    "StatusHistoryRecord",
    "MonthlyCertifiedCount",
    "MonthlyCertifiedCountByCategory",
    "ReconciliationLock",
    "ReconciliationRun",
    "import_all_models",
]


def import_all_models() -> None:
    """
    Ensure every model is registered on ``Base.metadata``.

    Importing this package already does that; the function exists so
    create_tables() has an explicit, idempotent hook to call.
    """
    from certification_kernel.models import (  # noqa: F401
        customer,
        monthly_count,
        reconciliation,
        status_history,
    )
