"""Utility functions for the certification kernel."""

from certification_kernel.utils.hashing import (
    canonicalize_json,
    hash_payload,
    hash_status_change,
)

__all__ = [
    "canonicalize_json",
    "hash_payload",
    "hash_status_change",
]
