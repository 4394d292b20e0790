"""Pure domain: status vocabulary, transition table, month keys, clock and DTOs."""

from certification_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from certification_kernel.domain.status import (
    UNCATEGORIZED,
    CertificateType,
    CustomerStatus,
    parse_category,
    parse_status,
)
from certification_kernel.domain.transitions import (
    CANONICAL_TRANSITIONS,
    StatusTransitionValidator,
    load_transition_table,
)

__all__ = [
    "CANONICAL_TRANSITIONS",
    "UNCATEGORIZED",
    "CertificateType",
    "Clock",
    "CustomerStatus",
    "DeterministicClock",
    "StatusTransitionValidator",
    "SystemClock",
    "load_transition_table",
    "parse_category",
    "parse_status",
]
