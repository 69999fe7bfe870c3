"""Configuration management for backup-dashboard."""

import os
from dataclasses import dataclass, field
from typing import Optional

from croniter import croniter


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class DatabaseConfig:
    """Target PostgreSQL database and client tool configuration."""
    host: str = "localhost"
    port: int = 5432
    user: str = "postgres"
    password: str = ""
    name: str = "postgres"

    # Client executables
    pg_dump_path: str = "pg_dump"
    psql_path: str = "psql"
    createdb_path: str = "createdb"
    restore_stop_on_error: bool = False

    @classmethod
    def from_env(cls) -> 'DatabaseConfig':
        """Create config from environment variables."""
        return cls(
            host=os.getenv("DB_HOST", "localhost"),
            port=int(os.getenv("DB_PORT", "5432")),
            user=os.getenv("DB_USER", "postgres"),
            password=os.getenv("DB_PASSWORD", ""),
            name=os.getenv("DB_NAME", "postgres"),
            pg_dump_path=os.getenv("PG_DUMP_PATH", "pg_dump"),
            psql_path=os.getenv("PSQL_PATH", "psql"),
            createdb_path=os.getenv("CREATEDB_PATH", "createdb"),
            restore_stop_on_error=_env_bool("RESTORE_STOP_ON_ERROR", "false"),
        )

    @property
    def identity(self) -> str:
        """Identity of the target database, used to key mutual exclusion."""
        return f"{self.host}:{self.port}/{self.name}"

    def __post_init__(self):
        """Validate configuration."""
        if not 0 < self.port < 65536:
            raise ValueError(f"port must be between 1 and 65535, got {self.port}")
        if not self.name:
            raise ValueError("database name must not be empty")


@dataclass(frozen=True)
class ObjectStorageConfig:
    """S3-compatible object storage configuration."""
    endpoint_url: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    region: Optional[str] = None
    bucket: str = "backups"
    chunk_size: int = 1024 * 1024

    @classmethod
    def from_env(cls) -> 'ObjectStorageConfig':
        """Create config from environment variables."""
        return cls(
            endpoint_url=os.getenv("COS_ENDPOINT", None),
            access_key_id=os.getenv("COS_ACCESS_KEY_ID", None),
            secret_access_key=os.getenv("COS_SECRET_ACCESS_KEY", None),
            region=os.getenv("COS_REGION", None),
            bucket=os.getenv("COS_BUCKET_NAME", "backups"),
            chunk_size=int(os.getenv("COS_CHUNK_SIZE", str(1024 * 1024))),
        )

    def __post_init__(self):
        """Validate configuration."""
        if not self.bucket:
            raise ValueError("bucket must not be empty")
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")


@dataclass(frozen=True)
class NotifierConfig:
    """Email escalation configuration."""
    username: Optional[str] = None
    password: Optional[str] = None
    recipient: Optional[str] = None
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    subject: str = "Backup Dashboard Notification"

    @classmethod
    def from_env(cls) -> 'NotifierConfig':
        """Create config from environment variables."""
        return cls(
            username=os.getenv("EMAIL_USER", None),
            password=os.getenv("EMAIL_PASS", None),
            recipient=os.getenv("NOTIFY_EMAIL", None),
            smtp_host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
            smtp_port=int(os.getenv("SMTP_PORT", "587")),
        )

    @property
    def enabled(self) -> bool:
        return bool(self.username and self.password and self.recipient)


@dataclass(frozen=True)
class AuditConfig:
    """Audit log configuration."""
    log_file: str = "./logs/backup.log"
    display_limit: int = 50

    @classmethod
    def from_env(cls) -> 'AuditConfig':
        """Create config from environment variables."""
        return cls(
            log_file=os.getenv("AUDIT_LOG_FILE", "./logs/backup.log"),
            display_limit=int(os.getenv("AUDIT_DISPLAY_LIMIT", "50")),
        )

    def __post_init__(self):
        """Validate configuration."""
        if self.display_limit <= 0:
            raise ValueError(f"display_limit must be positive, got {self.display_limit}")


@dataclass(frozen=True)
class ScheduleConfig:
    """Recurring backup trigger. No expression means no automatic backups."""
    cron_expression: Optional[str] = None

    @classmethod
    def from_env(cls) -> 'ScheduleConfig':
        """Create config from environment variables."""
        return cls(cron_expression=os.getenv("AUTO_BACKUP_SCHEDULE") or None)

    @property
    def enabled(self) -> bool:
        return self.cron_expression is not None

    def __post_init__(self):
        """Validate configuration."""
        if self.cron_expression is not None and not croniter.is_valid(self.cron_expression):
            raise ValueError(f"Invalid cron expression: {self.cron_expression}")


@dataclass(frozen=True)
class DashboardConfig:
    """Main configuration for backup-dashboard."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    storage: ObjectStorageConfig = field(default_factory=ObjectStorageConfig)
    notifier: NotifierConfig = field(default_factory=NotifierConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    temp_dir: str = "./temp"
    serialize_operations: bool = True

    @classmethod
    def from_env(cls) -> 'DashboardConfig':
        """Create complete config from environment variables."""
        return cls(
            database=DatabaseConfig.from_env(),
            storage=ObjectStorageConfig.from_env(),
            notifier=NotifierConfig.from_env(),
            audit=AuditConfig.from_env(),
            schedule=ScheduleConfig.from_env(),
            temp_dir=os.getenv("TEMP_DIR", "./temp"),
            serialize_operations=_env_bool("SERIALIZE_OPERATIONS", "true"),
        )
