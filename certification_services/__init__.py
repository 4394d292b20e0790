"""
certification_services -- Package init and public API.

Responsibility:
    Out-of-band operational components built on top of the kernel.  Today
    that is the reconciliation job, which recomputes the monthly counters
    from customer ground truth and owns its own transaction boundaries.

Architecture position:
    Services -- operational jobs over certification_kernel.

    Dependency direction (enforced by tests/architecture/test_kernel_boundary.py):
        certification_services/ -> certification_kernel/  (allowed)
        certification_kernel/   -> certification_services/ (FORBIDDEN)
"""

from certification_services._reconciliation_types import (
    AggregateDiff,
    ReconciliationReport,
    ReconciliationScope,
)
from certification_services.reconciliation_job import ReconciliationJob, compute_diffs

__all__ = [
    "AggregateDiff",
    "ReconciliationJob",
    "ReconciliationReport",
    "ReconciliationScope",
    "compute_diffs",
]
