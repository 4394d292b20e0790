"""
Certification Kernel

The customer certification lifecycle engine:
- Closed status vocabulary with an immutable transition table
- Idempotent, per-customer serialized status transitions
- Append-only, hash-chained status history
- Atomic monthly certification counters
"""

__version__ = "0.1.0"
