"""
Unit tests for SnapshotInventory.

Tests cover:
- Listing and info
- Expiry decisions and idempotence
- Best-effort deletion with an aggregated report
- Reaping of leftover partial and trash directories
"""

from typing import Dict, List, Set, Tuple

import pytest

from drsnap.config import BackupConfig, DrHostConfig, RetentionConfig
from drsnap.errors import InventoryError, RemoteCommandError
from drsnap.inventory import SnapshotInfo, SnapshotInventory
from drsnap.remote import DeletionOutcome


class FakeGateway:
    """In-memory stand-in for RemoteGateway holding one instance directory."""

    def __init__(self, names: List[str]) -> None:
        self.names = list(names)
        self.hidden: List[str] = []
        self.hidden_list_fails = False
        self.fail_delete: Set[str] = set()
        self.vanished: Set[str] = set()
        self.list_fails = False
        self.deleted: List[str] = []
        self.sizes: Dict[str, Tuple[str, str]] = {}

    def list_dir(self, path: str) -> List[str]:
        if self.list_fails:
            raise RemoteCommandError("ls failed", returncode=2)
        return list(self.names)

    def list_hidden(self, path: str) -> List[str]:
        if self.hidden_list_fails:
            raise RemoteCommandError("ls -A failed", returncode=2)
        return list(self.hidden)

    def size_and_mtime(self, path: str) -> Tuple[str, str]:
        name = path.rsplit("/", 1)[-1]
        return self.sizes.get(name, ("1.0G", "2024-01-01 03:00"))

    def delete(self, path: str) -> DeletionOutcome:
        name = path.rsplit("/", 1)[-1]
        if name in self.fail_delete:
            raise RemoteCommandError(f"Could not delete {path}", returncode=1)
        entries = self.hidden if name.startswith(".") else self.names
        if name in self.vanished:
            entries.remove(name)
            return DeletionOutcome.NOT_FOUND
        entries.remove(name)
        self.deleted.append(path)
        return DeletionOutcome.DELETED


def make_config(keep: int = 3) -> BackupConfig:
    return BackupConfig(
        instance_name="appx",
        dr_host=DrHostConfig(snapshots_path="/dr"),
        retention=RetentionConfig(snapshots_to_keep=keep),
    )


def days(n: int) -> List[str]:
    return [f"2024-01-{day:02d}_0300" for day in range(1, n + 1)]


class TestListing:
    """Tests for list() and info()."""

    def test_list(self):
        gateway = FakeGateway(["b", "a"])
        inventory = SnapshotInventory(make_config(), gateway)
        assert inventory.list() == ["b", "a"]

    def test_list_empty_is_valid(self):
        inventory = SnapshotInventory(make_config(), FakeGateway([]))
        assert inventory.list() == []

    def test_list_failure_is_fatal(self):
        gateway = FakeGateway(["a"])
        gateway.list_fails = True
        inventory = SnapshotInventory(make_config(), gateway)

        with pytest.raises(InventoryError) as exc_info:
            inventory.list()

        assert exc_info.value.instance == "appx"

    def test_info_in_host_order(self):
        """info() keeps the order the host returned."""
        gateway = FakeGateway(["2024-01-02_0300", "2024-01-01_0300"])
        gateway.sizes["2024-01-02_0300"] = ("2.5G", "2024-01-02 03:10")
        inventory = SnapshotInventory(make_config(), gateway)

        snapshots = inventory.info()

        assert [s.name for s in snapshots] == ["2024-01-02_0300", "2024-01-01_0300"]
        assert snapshots[0] == SnapshotInfo("2024-01-02_0300", "2.5G", "2024-01-02 03:10")

    def test_info_line_format(self):
        snap = SnapshotInfo("2024-01-02_0300", "2.5G", "2024-01-02 03:10")
        assert str(snap) == "2024-01-02_0300 [size 2.5G, last mod. time 2024-01-02 03:10]"


class TestExpire:
    """Tests for expire()."""

    def test_noop_within_policy(self):
        """Nothing is deleted when count <= keep - 1."""
        gateway = FakeGateway(days(2))
        report = SnapshotInventory(make_config(keep=3), gateway).expire()

        assert report.threshold is None
        assert report.results == []
        assert gateway.names == days(2)

    def test_keeps_keep_minus_one_newest(self):
        """Expire before transfer leaves keep - 1 snapshots."""
        gateway = FakeGateway(days(5))
        report = SnapshotInventory(make_config(keep=3), gateway).expire()

        assert gateway.names == ["2024-01-04_0300", "2024-01-05_0300"]
        assert report.threshold == "2024-01-04_0300"
        assert report.deleted == ["2024-01-01_0300", "2024-01-02_0300", "2024-01-03_0300"]
        assert gateway.deleted[0] == "/dr/appx/2024-01-01_0300"

    @pytest.mark.parametrize("keep", [0, 1, 2])
    def test_small_keep_still_keeps_one(self, keep):
        """keep below 2 is clamped so one snapshot always survives."""
        gateway = FakeGateway(days(4))
        SnapshotInventory(make_config(keep=keep), gateway).expire()
        assert gateway.names == ["2024-01-04_0300"]

    def test_idempotent(self):
        """A second run without new snapshots changes nothing."""
        gateway = FakeGateway(days(6))
        inventory = SnapshotInventory(make_config(keep=3), gateway)

        inventory.expire()
        after_first = list(gateway.names)
        report = inventory.expire()

        assert gateway.names == after_first
        assert report.results == []

    def test_version_aware_names(self):
        """Numeric names expire in numeric order."""
        gateway = FakeGateway(["9", "10", "2"])
        report = SnapshotInventory(make_config(keep=2), gateway).expire()

        assert report.threshold == "10"
        assert gateway.names == ["10"]

    def test_delete_failure_is_not_fatal(self):
        """Failed deletes are recorded and the pass continues."""
        gateway = FakeGateway(days(5))
        gateway.fail_delete.add("2024-01-02_0300")
        report = SnapshotInventory(make_config(keep=3), gateway).expire()

        assert report.failed == ["2024-01-02_0300"]
        assert report.deleted == ["2024-01-01_0300", "2024-01-03_0300"]
        failed = [r for r in report.results if r.outcome is DeletionOutcome.FAILED][0]
        assert "Could not delete" in failed.error
        assert "2024-01-02_0300" in gateway.names

    def test_failed_delete_retried_next_run(self):
        gateway = FakeGateway(days(5))
        gateway.fail_delete.add("2024-01-02_0300")
        inventory = SnapshotInventory(make_config(keep=3), gateway)
        inventory.expire()

        gateway.fail_delete.clear()
        report = inventory.expire()

        assert report.deleted == ["2024-01-02_0300"]
        assert gateway.names == ["2024-01-04_0300", "2024-01-05_0300"]

    def test_not_found_reported(self):
        gateway = FakeGateway(days(4))
        gateway.vanished.add("2024-01-01_0300")
        report = SnapshotInventory(make_config(keep=3), gateway).expire()

        assert report.not_found == ["2024-01-01_0300"]
        assert report.deleted == ["2024-01-02_0300"]

    def test_list_failure_aborts(self):
        gateway = FakeGateway(days(5))
        gateway.list_fails = True

        with pytest.raises(InventoryError):
            SnapshotInventory(make_config(), gateway).expire()

    def test_report_counts(self):
        gateway = FakeGateway(days(4))
        report = SnapshotInventory(make_config(keep=3), gateway).expire()

        assert report.total == 4
        assert report.keep_minus_one == 2


class TestLeftovers:
    """Tests for reaping hidden leftovers of interrupted pushes."""

    def test_stale_partials_reaped(self):
        """Partials of earlier failed pushes are deleted by expire."""
        gateway = FakeGateway(days(2))
        gateway.hidden = [".2024-01-01_0300.partial", ".2024-01-02_0300.trash"]
        report = SnapshotInventory(make_config(keep=3), gateway).expire()

        assert gateway.hidden == []
        assert report.reaped == [".2024-01-01_0300.partial", ".2024-01-02_0300.trash"]
        assert gateway.deleted == [
            "/dr/appx/.2024-01-01_0300.partial",
            "/dr/appx/.2024-01-02_0300.trash",
        ]
        assert report.results == []

    def test_staged_partial_spared(self):
        """The partial a re-push would resume is kept."""
        gateway = FakeGateway(days(1))
        gateway.hidden = [".2024-01-01_0300.partial", ".2024-01-05_0300.partial"]
        report = SnapshotInventory(make_config(), gateway).expire(
            keep_partial=".2024-01-05_0300.partial"
        )

        assert gateway.hidden == [".2024-01-05_0300.partial"]
        assert report.reaped == [".2024-01-01_0300.partial"]

    def test_unrelated_hidden_entries_untouched(self):
        gateway = FakeGateway(days(1))
        gateway.hidden = [".lock", ".profile"]
        report = SnapshotInventory(make_config(), gateway).expire()

        assert gateway.hidden == [".lock", ".profile"]
        assert report.leftovers == []

    def test_leftover_delete_failure_is_not_fatal(self):
        gateway = FakeGateway(days(4))
        gateway.hidden = [".2024-01-01_0300.partial"]
        gateway.fail_delete.add(".2024-01-01_0300.partial")
        report = SnapshotInventory(make_config(keep=3), gateway).expire()

        assert report.deleted == ["2024-01-01_0300", "2024-01-02_0300"]
        assert report.reaped == []
        assert report.leftovers[0].outcome is DeletionOutcome.FAILED

    def test_hidden_listing_failure_is_not_fatal(self):
        gateway = FakeGateway(days(4))
        gateway.hidden_list_fails = True
        report = SnapshotInventory(make_config(keep=3), gateway).expire()

        assert report.deleted == ["2024-01-01_0300", "2024-01-02_0300"]
        assert report.leftovers == []

    def test_reaped_separately_from_snapshots(self):
        """Snapshot counts are not mixed with leftover counts."""
        gateway = FakeGateway(days(4))
        gateway.hidden = [".2024-01-03_0300.partial"]
        report = SnapshotInventory(make_config(keep=3), gateway).expire()

        assert report.deleted == ["2024-01-01_0300", "2024-01-02_0300"]
        assert report.reaped == [".2024-01-03_0300.partial"]
