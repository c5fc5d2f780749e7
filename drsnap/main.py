"""
drsnap - Main entry point.

Maps one action keyword to an ordered plan of steps:

    info       list + describe DR snapshots (no connectivity check, verbose)
    expire     check -> expire
    backup     check -> reset staging + pull -> expire -> transfer
    pull-only  check -> reset staging + pull
    push-only  check -> expire -> transfer

Usage:
    drsnap <info|backup|pull-only|push-only|expire>

Configuration is entirely via environment variables with compiled-in
defaults. See config.py for all available settings.

Exit codes:
    0   success, or usage requested (no action / -h)
    1   invalid action, configuration error or any fatal failure

Invariants:
    - Remote-touching actions other than info check ssh connectivity first
    - Expiry runs before transfer, so the new snapshot is never a candidate
    - Expiry spares the staged snapshot's partial directory so a re-push
      resumes it
    - The first fatal error aborts the plan; nothing after it runs

How to change safely:
    - New actions need an Action member and an ACTION_PLANS entry
    - Keep the info action read-only
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import json_log_formatter

from .config import BackupConfig
from .errors import DrSnapError
from .inventory import ExpiryReport, SnapshotInfo, SnapshotInventory
from .remote import RemoteGateway
from .runner import CommandRunner, SubprocessRunner
from .snapshot import PullResult, SnapshotProducer
from .transfer import SnapshotTransfer, TransferResult

logger = logging.getLogger(__name__)


class Action(Enum):
    """Supported command-line actions."""

    INFO = "info"
    BACKUP = "backup"
    PULL_ONLY = "pull-only"
    PUSH_ONLY = "push-only"
    EXPIRE = "expire"


class Step(Enum):
    """Component calls an action is composed of."""

    CHECK = "check"
    LIST_INFO = "list_info"
    PULL = "pull"
    EXPIRE = "expire"
    TRANSFER = "transfer"


ACTION_PLANS: Dict[Action, Tuple[Step, ...]] = {
    Action.INFO: (Step.LIST_INFO,),
    Action.EXPIRE: (Step.CHECK, Step.EXPIRE),
    Action.BACKUP: (Step.CHECK, Step.PULL, Step.EXPIRE, Step.TRANSFER),
    Action.PULL_ONLY: (Step.CHECK, Step.PULL),
    Action.PUSH_ONLY: (Step.CHECK, Step.EXPIRE, Step.TRANSFER),
}

# Actions that always narrate, even in cron mode
VERBOSE_ACTIONS = frozenset({Action.INFO})

ACTION_HELP = {
    Action.INFO: "shows current remote DR snapshot infos",
    Action.BACKUP: "pull and transfer a new snapshot to the DR host",
    Action.PULL_ONLY: "pull a new snapshot on the DB host",
    Action.PUSH_ONLY: "transfer / re-transfer the most recent snapshot to the DR host",
    Action.EXPIRE: "drop all extra DR snapshots (DR_SNAPSHOTS_TO_KEEP=3 by default)",
}


def setup_logging(config: BackupConfig, verbose: bool = False) -> None:
    """Configure logging based on configuration.

    Args:
        config: Backup configuration
        verbose: Narrate progress even in cron (quiet) mode
    """
    if config.observability.quiet and not verbose:
        level = logging.WARNING
    else:
        level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]


class BackupOrchestrator:
    """Runs the step plan of an action against one instance.

    Attributes:
        config: Backup configuration
        gateway: DR host gateway
        inventory: DR snapshot inventory
        producer: Local snapshot producer
        transfer: Snapshot transfer

    Example:
        >>> orchestrator = BackupOrchestrator(BackupConfig.from_env())
        >>> orchestrator.run(Action.BACKUP)
    """

    def __init__(
        self,
        config: BackupConfig,
        runner: Optional[CommandRunner] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.runner = runner or SubprocessRunner()

        self.gateway = RemoteGateway(config.dr_host, self.runner)
        self.inventory = SnapshotInventory(config, self.gateway)
        self.producer = SnapshotProducer(config.database, config.staging, self.runner)
        self.transfer = SnapshotTransfer(config, self.gateway, self.runner, sleep=sleep)

        # Results of the last run, for callers and tests
        self.snapshots: List[SnapshotInfo] = []
        self.pull_result: Optional[PullResult] = None
        self.expiry_report: Optional[ExpiryReport] = None
        self.transfer_result: Optional[TransferResult] = None

        self._steps: Dict[Step, Callable[[], None]] = {
            Step.CHECK: self.gateway.check_connectivity,
            Step.LIST_INFO: self._list_info,
            Step.PULL: self._pull,
            Step.EXPIRE: self._expire,
            Step.TRANSFER: self._transfer,
        }

    def run(self, action: Action) -> None:
        """Execute every step of the action's plan in order.

        Raises:
            DrSnapError: On the first fatal failure
        """
        logger.info(f"Starting ACTION {action.value} ({datetime.now():%c})")
        for step in ACTION_PLANS[action]:
            logger.debug(f"Running step {step.value}")
            self._steps[step]()
        logger.info(f"Finished ({datetime.now():%c})")

    def _list_info(self) -> None:
        self.snapshots = self.inventory.info()
        for snapshot in self.snapshots:
            print(snapshot)

    def _pull(self) -> None:
        self.producer.reset_staging()
        self.pull_result = self.producer.pull()

    def _expire(self) -> None:
        self.expiry_report = self.inventory.expire(keep_partial=self.transfer.partial_name())

    def _transfer(self) -> None:
        self.transfer_result = self.transfer.transfer()


class _UsageParser(argparse.ArgumentParser):
    """ArgumentParser that reports bad input with exit status 1."""

    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_help(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    lines = [f"  {action.value:<10} {ACTION_HELP[action]}" for action in Action]
    parser = _UsageParser(
        prog="drsnap",
        description=(
            "Pull compressed self-contained snapshots locally via pg_basebackup and "
            "rsync them to a remote DR host, keeping the last DR_SNAPSHOTS_TO_KEEP "
            "snapshots. Requires enough free disk space on the DB host to store one "
            "snapshot."
        ),
        epilog="actions:\n" + "\n".join(lines),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("action", nargs="?", metavar="ACTION", help="action to run")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point. Returns the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.action is None:
        parser.print_help()
        return 0

    try:
        action = Action(args.action)
    except ValueError:
        parser.print_help()
        return 1

    try:
        config = BackupConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging(config, verbose=action in VERBOSE_ACTIONS)
    config.log_config()

    orchestrator = BackupOrchestrator(config)
    try:
        orchestrator.run(action)
    except DrSnapError as e:
        logger.error(e.message, extra={"code": e.code, **e.details})
        return 1

    return 0


def cli() -> None:
    """Console script wrapper."""
    sys.exit(main())


if __name__ == "__main__":
    cli()
