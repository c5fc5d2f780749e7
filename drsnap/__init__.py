"""
drsnap - Disaster-recovery snapshots for a single PostgreSQL instance.

This package pulls a compressed, self-contained physical snapshot from a live
database host, pushes it to a DR host over SSH and keeps the last N snapshots.

Flow:
    ┌──────────────┐   pg_basebackup   ┌──────────────┐   rsync/ssh   ┌──────────────────────────┐
    │  PostgreSQL  │──────────────────▶│   Staging    │──────────────▶│ DR host                  │
    │  (live)      │                   │   directory  │               │ <dr_path>/<instance>/... │
    └──────────────┘                   └──────────────┘               └──────────────────────────┘

Invariants:
    - At most one snapshot is staged locally at a time
    - Snapshot names are sortable timestamps (YYYY-MM-DD_HHMM)
    - Expiry only ever deletes snapshots older than the retention threshold
    - Every external tool is invoked through a CommandRunner

How to change safely:
    - Keep snapshot names monotonically sortable
    - New steps go into ACTION_PLANS in main.py

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
