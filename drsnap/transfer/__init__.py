"""
Transfer module for drsnap.

This module pushes the staged snapshot to the DR host with rsync, retrying
with a fixed backoff.
"""

from .transfer import (
    SNAPSHOT_NAME_FORMAT,
    SnapshotTransfer,
    TransferResult,
    partial_name_for,
    snapshot_name_for,
)

__all__ = [
    "SnapshotTransfer",
    "TransferResult",
    "SNAPSHOT_NAME_FORMAT",
    "snapshot_name_for",
    "partial_name_for",
]
