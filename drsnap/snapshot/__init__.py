"""
Snapshot module for drsnap.

This module pulls a self-contained, compressed base backup of the live
database into the local staging directory.

Invariants:
    - Only one snapshot is staged at a time
    - Snapshots are tar format and include standby settings (-R)
"""

from .producer import PullResult, SnapshotProducer

__all__ = ["SnapshotProducer", "PullResult"]
