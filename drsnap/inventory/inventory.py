"""
Snapshot inventory and retention for the DR host.

The SnapshotInventory answers two questions about
<snapshots_path>/<instance>:
- what snapshots exist (list, info)
- which of them the retention policy retires (expire)

Expiry:
    keep_minus_one = max(snapshots_to_keep - 1, 1)
    if count <= keep_minus_one: nothing to do
    threshold = version_sorted(names)[-keep_minus_one]
    delete every name ordered strictly before threshold
    delete hidden .<name>.partial / .<name>.trash leftovers, except the
    partial of the currently staged snapshot

Expiry runs before a new snapshot is pushed, so after the push the instance
holds snapshots_to_keep snapshots (or 2 when snapshots_to_keep < 2).

Invariants:
    - The threshold snapshot and everything after it are never deleted
    - Threshold selection and deletion eligibility use the same ordering
    - A failed listing aborts expiry; a failed delete does not
    - Re-running expire without new snapshots deletes nothing
    - Leftover cleanup is best-effort and never aborts expiry

How to change safely:
    - Snapshot names must stay monotonically sortable under natural_key
    - Never make delete failures fatal; the next run retries them
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..config import BackupConfig
from ..errors import InventoryError, RemoteCommandError
from ..remote import DeletionOutcome, RemoteGateway, is_leftover_name
from .ordering import natural_key, version_sorted

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SnapshotInfo:
    """A snapshot directory on the DR host.

    Attributes:
        name: Directory name (YYYY-MM-DD_HHMM), also the sort key
        size: Human readable apparent size
        mtime: Last modification time as reported by the DR host
    """

    name: str
    size: str
    mtime: str

    def __str__(self) -> str:
        return f"{self.name} [size {self.size}, last mod. time {self.mtime}]"


@dataclass(frozen=True)
class DeletionResult:
    """Outcome of deleting one expired snapshot."""

    name: str
    outcome: DeletionOutcome
    error: Optional[str] = None


@dataclass
class ExpiryReport:
    """Summary of one expiry pass.

    Attributes:
        total: Snapshots found before expiry
        keep_minus_one: Snapshots the pass retains
        threshold: Oldest retained snapshot, None if nothing was eligible
        results: One entry per snapshot deletion attempt
        leftovers: One entry per leftover partial or trash deletion attempt
    """

    total: int
    keep_minus_one: int
    threshold: Optional[str] = None
    results: List[DeletionResult] = field(default_factory=list)
    leftovers: List[DeletionResult] = field(default_factory=list)

    def _names(self, outcome: DeletionOutcome) -> List[str]:
        return [r.name for r in self.results if r.outcome is outcome]

    @property
    def deleted(self) -> List[str]:
        return self._names(DeletionOutcome.DELETED)

    @property
    def not_found(self) -> List[str]:
        return self._names(DeletionOutcome.NOT_FOUND)

    @property
    def failed(self) -> List[str]:
        return self._names(DeletionOutcome.FAILED)

    @property
    def reaped(self) -> List[str]:
        """Leftover names actually removed by this pass."""
        return [r.name for r in self.leftovers if r.outcome is DeletionOutcome.DELETED]


def expiry_threshold(names: Sequence[str], keep_minus_one: int) -> Optional[str]:
    """Oldest snapshot name that must be retained.

    Args:
        names: Snapshot names in any order
        keep_minus_one: Number of newest snapshots to retain (>= 1)

    Returns:
        The threshold name, or None if no snapshot is eligible for deletion
    """
    if keep_minus_one < 1:
        raise ValueError("keep_minus_one must be at least 1")
    if len(names) <= keep_minus_one:
        return None
    return version_sorted(names)[-keep_minus_one]


def expired_names(names: Sequence[str], keep_minus_one: int) -> List[str]:
    """Names ordered strictly before the threshold, in host order."""
    threshold = expiry_threshold(names, keep_minus_one)
    if threshold is None:
        return []
    limit = natural_key(threshold)
    return [name for name in names if natural_key(name) < limit]


class SnapshotInventory:
    """Lists and expires snapshots of one instance on the DR host.

    Example:
        >>> inventory = SnapshotInventory(config, gateway)
        >>> for snap in inventory.info():
        ...     print(snap)
        >>> report = inventory.expire()
    """

    def __init__(self, config: BackupConfig, gateway: RemoteGateway) -> None:
        self.config = config
        self.gateway = gateway

    @property
    def path(self) -> str:
        return self.config.instance_path

    def snapshot_path(self, name: str) -> str:
        return f"{self.path}/{name}"

    def list(self) -> List[str]:
        """Snapshot names in the order the DR host returned them.

        Raises:
            InventoryError: If the instance directory cannot be listed
        """
        try:
            return self.gateway.list_dir(self.path)
        except RemoteCommandError as e:
            raise InventoryError(
                f"Could not list snapshot path for instance {self.config.instance_name} "
                f"on the DR host (exit {e.returncode})",
                instance=self.config.instance_name,
            ) from e

    def info(self) -> List[SnapshotInfo]:
        """Size and mtime of every snapshot, in host order.

        Raises:
            InventoryError: If listing fails
            RemoteCommandError: If a snapshot cannot be stat'ed
        """
        logger.info(f"Listing current DR snapshots for instance {self.config.instance_name} ...")
        snapshots = []
        for name in self.list():
            size, mtime = self.gateway.size_and_mtime(self.snapshot_path(name))
            snapshots.append(SnapshotInfo(name=name, size=size, mtime=mtime))
        return snapshots

    def expire(self, keep_partial: Optional[str] = None) -> ExpiryReport:
        """Delete snapshots beyond the retention policy.

        Hidden leftovers of interrupted pushes are removed in the same pass.

        Args:
            keep_partial: Partial directory name to spare, normally the one
                the next push of the staged snapshot resumes

        Returns:
            ExpiryReport with one DeletionResult per attempted delete

        Raises:
            InventoryError: If the snapshot set cannot be listed
        """
        keep_minus_one = self.config.retention.keep_minus_one
        logger.info(
            "Expiring older DR snapshots if needed "
            f"(DR_SNAPSHOTS_TO_KEEP={self.config.retention.snapshots_to_keep}) ..."
        )

        names = self.list()
        report = ExpiryReport(total=len(names), keep_minus_one=keep_minus_one)
        report.threshold = expiry_threshold(names, keep_minus_one)

        if report.threshold is None:
            logger.info("No snapshots found to remove...")
        else:
            for name in expired_names(names, keep_minus_one):
                report.results.append(self._delete(name))

        for name in self._leftovers(keep_partial):
            report.leftovers.append(self._delete(name, kind="leftover"))

        if report.results or report.leftovers:
            self._log_report(report)
        return report

    def _leftovers(self, keep_partial: Optional[str]) -> List[str]:
        try:
            hidden = self.gateway.list_hidden(self.path)
        except RemoteCommandError as e:
            logger.warning(
                f"Could not list leftover transfers for instance "
                f"{self.config.instance_name} (exit {e.returncode}), skipping"
            )
            return []
        return [name for name in hidden if is_leftover_name(name) and name != keep_partial]

    def _delete(self, name: str, kind: str = "snapshot") -> DeletionResult:
        logger.info(f"Expiring {kind} {name} ...")
        try:
            outcome = self.gateway.delete(self.snapshot_path(name))
        except RemoteCommandError as e:
            logger.info(f"Could not expire {kind} {name} (exit {e.returncode}), skipping")
            return DeletionResult(name=name, outcome=DeletionOutcome.FAILED, error=e.message)
        return DeletionResult(name=name, outcome=outcome)

    def _log_report(self, report: ExpiryReport) -> None:
        logger.info(
            f"Expiry finished: {len(report.deleted)} deleted, "
            f"{len(report.not_found)} already gone, {len(report.failed)} failed, "
            f"{len(report.reaped)} leftover transfer(s) removed",
            extra={
                "instance": self.config.instance_name,
                "threshold": report.threshold,
                "deleted": report.deleted,
                "not_found": report.not_found,
                "failed": report.failed,
                "reaped": report.reaped,
            },
        )
