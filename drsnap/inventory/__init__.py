"""
Snapshot inventory for drsnap.

This module lists snapshots on the DR host and applies the retention policy.

Invariants:
    - Snapshot names sort by natural_key (numeric runs as numbers)
    - Expiry is best-effort per snapshot but fatal if listing fails
"""

from .inventory import (
    DeletionResult,
    ExpiryReport,
    SnapshotInfo,
    SnapshotInventory,
    expired_names,
    expiry_threshold,
)
from .ordering import natural_key, version_sorted

__all__ = [
    "SnapshotInventory",
    "SnapshotInfo",
    "ExpiryReport",
    "DeletionResult",
    "expiry_threshold",
    "expired_names",
    "natural_key",
    "version_sorted",
]
