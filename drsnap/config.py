"""
Configuration management for drsnap.

Every tunable has a compiled-in default matching a typical Debian/Ubuntu
PostgreSQL install. Values can be overridden through environment variables so
cron entries and tests can point the tool at other hosts and paths.

Invariants:
    - One BackupConfig addresses exactly one database instance
    - Configuration objects are immutable once loaded
    - Passwords are never logged

How to change safely:
    - Add new settings with defaults that keep existing cron entries working
    - Extend validate() together with any new setting
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

LOG_FORMATS = ("text", "json")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class DrHostConfig:
    """Remote DR host configuration.

    Attributes:
        host: SSH host of the DR machine
        port: SSH port
        user: SSH user owning the snapshot directories
        snapshots_path: Root directory for snapshots on the DR host.
            <snapshots_path>/<instance> must be pre-created.
        ssh_binary: ssh executable
        rsync_binary: rsync executable
    """

    host: str = "localhost"
    port: int = 22
    user: str = "postgres"
    snapshots_path: str = "/var/lib/postgresql/dr_snapshots"
    ssh_binary: str = "ssh"
    rsync_binary: str = "rsync"

    @property
    def address(self) -> str:
        """user@host string for ssh/rsync."""
        return f"{self.user}@{self.host}"

    @classmethod
    def from_env(cls) -> DrHostConfig:
        """Load configuration from environment variables."""
        return cls(
            host=os.getenv("DR_SSH_HOST", "localhost"),
            port=int(os.getenv("DR_SSH_PORT", "22")),
            user=os.getenv("DR_SSH_USER", "postgres"),
            snapshots_path=os.getenv("DR_SNAPSHOTS_PATH", "/var/lib/postgresql/dr_snapshots"),
            ssh_binary=os.getenv("DR_SSH_BINARY", "ssh"),
            rsync_binary=os.getenv("DR_RSYNC_BINARY", "rsync"),
        )


@dataclass(frozen=True)
class RetentionConfig:
    """Snapshot retention on the DR host.

    Attributes:
        snapshots_to_keep: Snapshots to keep after a backup. Values below 2
            still keep one previous snapshot while a new one is pushed.
    """

    snapshots_to_keep: int = 3

    @property
    def keep_minus_one(self) -> int:
        """Snapshots kept by expiry before the next transfer (at least 1)."""
        return max(self.snapshots_to_keep - 1, 1)

    @classmethod
    def from_env(cls) -> RetentionConfig:
        """Load configuration from environment variables."""
        return cls(snapshots_to_keep=int(os.getenv("DR_SNAPSHOTS_TO_KEEP", "3")))


@dataclass(frozen=True)
class DatabaseConfig:
    """Source database and pg_basebackup configuration.

    Attributes:
        bindir: Directory containing pg_basebackup
        host: Host name or unix socket directory
        port: PostgreSQL port
        user: Replication-capable user
        password: Optional password, passed to pg_basebackup as PGPASSWORD
        compress_level: Gzip compression level (0-9)
    """

    bindir: str = "/usr/lib/postgresql/13/bin"
    host: str = "/var/run/postgresql"
    port: int = 5432
    user: str = "postgres"
    password: str | None = field(default=None, repr=False)
    compress_level: int = 3

    @property
    def basebackup_binary(self) -> str:
        return os.path.join(self.bindir, "pg_basebackup")

    @classmethod
    def from_env(cls) -> DatabaseConfig:
        """Load configuration from environment variables."""
        return cls(
            bindir=os.getenv("PG_BINDIR", "/usr/lib/postgresql/13/bin"),
            host=os.getenv("PG_HOST", "/var/run/postgresql"),
            port=int(os.getenv("PG_PORT", "5432")),
            user=os.getenv("PG_USER", "postgres"),
            password=os.getenv("PG_PASSWORD"),
            compress_level=int(os.getenv("COMPRESS_LEVEL", "3")),
        )


@dataclass(frozen=True)
class StagingConfig:
    """Local staging area on the database host.

    Attributes:
        path: Directory holding the one in-flight snapshot
        drop_after_transfer: Remove the staging directory after a push
    """

    path: str = "/var/lib/postgresql/backups/dr_temp_snap"
    drop_after_transfer: bool = False

    @classmethod
    def from_env(cls) -> StagingConfig:
        """Load configuration from environment variables."""
        return cls(
            path=os.getenv("TEMP_SNAPSHOT_PATH", "/var/lib/postgresql/backups/dr_temp_snap"),
            drop_after_transfer=_env_bool("DROP_TEMP_SNAP_AFTER_TRANSFER", "false"),
        )


@dataclass(frozen=True)
class TransferConfig:
    """Push retry policy.

    Attributes:
        retries: Maximum rsync attempts
        backoff_seconds: Sleep between failed attempts
    """

    retries: int = 3
    backoff_seconds: float = 60.0

    @classmethod
    def from_env(cls) -> TransferConfig:
        """Load configuration from environment variables."""
        return cls(
            retries=int(os.getenv("DR_PUSH_RETRIES", "3")),
            backoff_seconds=float(os.getenv("DR_PUSH_BACKOFF_SECONDS", "60")),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        quiet: Cron mode; only failures are printed
        log_level: Logging level used when not quiet
        log_format: Log format (text, json)
    """

    quiet: bool = True
    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            quiet=_env_bool("CRON_MODE", "true"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )


@dataclass(frozen=True)
class BackupConfig:
    """Complete configuration for one instance.

    Attributes:
        instance_name: Subdirectory of snapshots_path holding this
            instance's snapshots
        dr_host: DR host configuration
        retention: Retention policy
        database: Source database configuration
        staging: Local staging configuration
        transfer: Push retry configuration
        observability: Logging configuration
    """

    instance_name: str = "appx"
    dr_host: DrHostConfig = field(default_factory=DrHostConfig)
    retention: RetentionConfig = field(default_factory=RetentionConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    staging: StagingConfig = field(default_factory=StagingConfig)
    transfer: TransferConfig = field(default_factory=TransferConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @property
    def instance_path(self) -> str:
        """Directory on the DR host holding this instance's snapshots."""
        return f"{self.dr_host.snapshots_path.rstrip('/')}/{self.instance_name}"

    @classmethod
    def from_env(cls) -> BackupConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If a value cannot be parsed or is invalid.
        """
        config = cls(
            instance_name=os.getenv("DR_INSTANCE_NAME", "appx"),
            dr_host=DrHostConfig.from_env(),
            retention=RetentionConfig.from_env(),
            database=DatabaseConfig.from_env(),
            staging=StagingConfig.from_env(),
            transfer=TransferConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        name = self.instance_name
        if not name or "/" in name or name in (".", "..") or name.startswith("."):
            raise ValueError(f"Invalid DR_INSTANCE_NAME '{name}'")

        if not self.dr_host.host:
            raise ValueError("DR_SSH_HOST is required")
        if not 1 <= self.dr_host.port <= 65535:
            raise ValueError(f"DR_SSH_PORT out of range: {self.dr_host.port}")
        if not self.dr_host.snapshots_path.startswith("/"):
            raise ValueError("DR_SNAPSHOTS_PATH must be an absolute path")

        if self.retention.snapshots_to_keep < 0:
            raise ValueError("DR_SNAPSHOTS_TO_KEEP must not be negative")

        if not 0 <= self.database.compress_level <= 9:
            raise ValueError(
                f"COMPRESS_LEVEL must be between 0 and 9, got {self.database.compress_level}"
            )
        if not 1 <= self.database.port <= 65535:
            raise ValueError(f"PG_PORT out of range: {self.database.port}")

        if not self.staging.path:
            raise ValueError("TEMP_SNAPSHOT_PATH is required")

        if self.transfer.retries < 1:
            raise ValueError("DR_PUSH_RETRIES must be at least 1")
        if self.transfer.backoff_seconds < 0:
            raise ValueError("DR_PUSH_BACKOFF_SECONDS must not be negative")

        if self.observability.log_format not in LOG_FORMATS:
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. "
                f"Must be one of: {', '.join(LOG_FORMATS)}"
            )

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Backup configuration loaded",
            extra={
                "instance": self.instance_name,
                "dr_host": self.dr_host.address,
                "dr_port": self.dr_host.port,
                "dr_path": self.instance_path,
                "snapshots_to_keep": self.retention.snapshots_to_keep,
                "pg_host": self.database.host,
                "pg_port": self.database.port,
                "compress_level": self.database.compress_level,
                "staging_path": self.staging.path,
                "push_retries": self.transfer.retries,
            },
        )
