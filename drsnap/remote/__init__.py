"""
Remote session gateway for the DR host.

All remote work (connectivity checks, listing, deletion, publishing a
transferred snapshot) goes through RemoteGateway over ssh.
"""

from .gateway import (
    DeletionOutcome,
    RemoteGateway,
    is_leftover_name,
    partial_name_for,
    trash_path_for,
)

__all__ = [
    "RemoteGateway",
    "DeletionOutcome",
    "partial_name_for",
    "trash_path_for",
    "is_leftover_name",
]
